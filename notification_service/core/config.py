from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "Notification Service"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    # Logging
    LOGGING_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # Queue Settings
    NOTIFICATION_QUEUE: str = "q:notification"
    SELECTOR_ATTRIBUTE: str = "event"
    POLL_INTERVAL_SECONDS: float = 10.0

    # Batch processing
    BATCH_TIMEOUT_SECONDS: Optional[float] = None
    DEADLINE_SAFETY_MARGIN_MS: int = 1000
    MAX_CONCURRENCY: Optional[int] = None

    # Simulated notification delivery
    NOTIFICATION_DELAY_MS: int = 100
    NOTIFICATION_SUCCESS_RATE: float = 1.0

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        allowed_envs = ["development", "staging", "production", "testing"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()

    @field_validator("NOTIFICATION_SUCCESS_RATE")
    @classmethod
    def validate_success_rate(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("Success rate must be between 0 and 1")
        return v

    @field_validator("BATCH_TIMEOUT_SECONDS", "MAX_CONCURRENCY")
    @classmethod
    def validate_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("must be positive when set")
        return v


# Global settings instance
settings = Settings()
