import logging
import sys
from typing import Optional
import structlog
from pythonjsonlogger.json import JsonFormatter

from notification_service.core.config import settings

# Above CRITICAL, so nothing passes the level filter.
_SILENT = logging.CRITICAL + 10


def _build_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(
            JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    enabled: Optional[bool] = None,
):
    """
    Configure structured logging for the application.

    In json mode structlog hands its event dict to the stdlib record as
    ``extra`` and python-json-logger renders the whole record, so plain
    ``logging`` loggers and structlog loggers share one JSON line format.
    """
    level = level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT
    enabled = settings.LOGGING_ENABLED if enabled is None else enabled

    logging.basicConfig(
        handlers=[_build_handler(log_format)],
        level=getattr(logging, level) if enabled else _SILENT,
        force=True,
    )

    if log_format == "json":
        renderer = structlog.stdlib.render_to_log_kwargs
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ContextLogger:
    """Thin wrapper over a structlog logger, optionally pre-bound with context."""

    def __init__(self, name: str, **context):
        logger = structlog.get_logger(name)
        self.logger = logger.bind(**context) if context else logger

    def with_context(self, **kwargs) -> structlog.stdlib.BoundLogger:
        return self.logger.bind(**kwargs)

    def for_message(self, message_id: str) -> structlog.stdlib.BoundLogger:
        """Logger bound to one queue message, for per-item trace lines."""
        return self.with_context(message_id=message_id)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)


def get_logger(name: str, **context) -> ContextLogger:
    return ContextLogger(name, **context)
