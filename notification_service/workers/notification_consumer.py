import asyncio
from typing import Any, Dict, Optional

from notification_service.core.config import settings
from notification_service.core.logging import get_logger, setup_logging
from notification_service.core.redis_client import RedisClient
from notification_service.services.action_registry import ActionExecutor
from notification_service.services.notification_service import build_notification_registry
from .base_consumer import BaseConsumer
from .envelope_validator import collect_record_ids

logger = get_logger(__name__)


class NotificationConsumer(BaseConsumer):
    """Consumer for the notification queue.

    Each message names its notification in the ``event`` message attribute;
    the body is passed through to the sender untouched.
    """

    def __init__(
        self,
        executor: Optional[ActionExecutor] = None,
        queue_name: Optional[str] = None,
        redis: Optional[RedisClient] = None,
    ):
        super().__init__(
            queue_name=queue_name or settings.NOTIFICATION_QUEUE,
            executor=executor or build_notification_registry(),
            selector_attribute=settings.SELECTOR_ATTRIBUTE,
            batch_timeout=settings.BATCH_TIMEOUT_SECONDS,
            max_concurrency=settings.MAX_CONCURRENCY,
            redis=redis,
        )


_consumer: Optional[NotificationConsumer] = None


def get_consumer() -> NotificationConsumer:
    """Process-wide consumer, created (and logging configured) on first use."""
    global _consumer
    if _consumer is None:
        setup_logging()
        _consumer = NotificationConsumer()
    return _consumer


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """
    Entry point for an SQS event source mapping with ReportBatchItemFailures.

    Returns ``{"batchItemFailures": [{"itemIdentifier": ...}, ...]}`` so that
    only the failed messages are redelivered.
    """
    consumer = get_consumer()
    logger.info("Received notification batch", record_count=len(collect_record_ids(event)))

    report = asyncio.run(consumer.process_batch(event, context))
    return report.to_sqs_response()


if __name__ == "__main__":
    get_consumer().run_sync_consumer()
