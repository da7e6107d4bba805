from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from notification_service.core.config import settings
from notification_service.core.logging import setup_logging

# Create Celery instance
celery_app = Celery(
    "notification_service",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["notification_service.workers.tasks"],
)

# Configure Celery
celery_app.conf.update(
    # Task serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task routing
    task_routes={
        "notification_service.workers.tasks.*": {"queue": "notification_tasks"},
    },

    # Worker configuration
    worker_concurrency=4,
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    # Beat schedule for periodic tasks
    beat_schedule={
        "poll-notification-queue": {
            "task": "notification_service.workers.tasks.poll_notification_queue",
            "schedule": settings.POLL_INTERVAL_SECONDS,
        },
        # Pump delayed (redelivery) messages frequently
        "pump-delayed-notifications": {
            "task": "notification_service.workers.tasks.pump_delayed_queue",
            "schedule": 5.0,
        },
        # Return orphaned :processing claims after their visibility timeout
        "sweep-notification-claims": {
            "task": "notification_service.workers.tasks.sweep_processing_queue",
            "schedule": 20.0,
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging()
