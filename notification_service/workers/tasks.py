import asyncio
from typing import Optional

from notification_service.core.config import settings
from notification_service.core.logging import get_logger
from notification_service.core.queue_policies import get_policy
from notification_service.core.redis_client import redis_client
from .celery_app import celery_app
from .notification_consumer import get_consumer

logger = get_logger(__name__)


def _run(coro_fn):
    # Each task gets a fresh loop; worker processes never have one running.
    return asyncio.run(coro_fn())


async def _poll_notification_queue_once():
    consumer = get_consumer()
    try:
        return await consumer.poll_once()
    finally:
        # Connections are bound to this event loop.
        await consumer.redis.disconnect()


async def _pump_delayed_queue(queue_name: Optional[str] = None):
    queue_name = queue_name or settings.NOTIFICATION_QUEUE
    await redis_client.ensure_connected()
    try:
        moved = await redis_client.move_ready_delayed_to_main(queue_name)
    finally:
        await redis_client.disconnect()
    if moved:
        logger.info("Moved delayed messages", queue=queue_name, moved=moved)
    return {"queue": queue_name, "moved": moved}


@celery_app.task(name="notification_service.workers.tasks.poll_notification_queue", ignore_result=True)
def poll_notification_queue():
    """Receive one batch from the notification queue and acknowledge or redeliver per message."""
    return _run(_poll_notification_queue_once)


@celery_app.task(name="notification_service.workers.tasks.pump_delayed_queue", ignore_result=True)
def pump_delayed_queue():
    """Move ready delayed messages back to the notification queue."""
    return _run(_pump_delayed_queue)


async def _sweep_processing_queue(queue_name: Optional[str] = None):
    queue_name = queue_name or settings.NOTIFICATION_QUEUE
    await redis_client.ensure_connected()
    try:
        counts = await redis_client.sweep_expired_claims(queue_name, get_policy(queue_name))
    finally:
        await redis_client.disconnect()
    return {"queue": queue_name, **counts}


@celery_app.task(name="notification_service.workers.tasks.sweep_processing_queue", ignore_result=True)
def sweep_processing_queue():
    """Visibility sweeper: return claims nobody settled to the queue or the DLQ."""
    return _run(_sweep_processing_queue)
