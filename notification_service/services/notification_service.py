import asyncio
import random
import time
from enum import Enum
from typing import Optional

from notification_service.core.config import settings
from notification_service.core.exceptions import ActionExecutionError, UnsupportedActionError
from notification_service.core.logging import get_logger
from notification_service.services.action_registry import ActionRegistry

logger = get_logger(__name__)


class NotificationEvent(str, Enum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"


class NotificationService:
    """Mock notification sender that simulates delivery to an external channel.

    A real implementation would call an email server, SMS gateway or push
    service here. Sends for events outside ``NotificationEvent`` are rejected,
    and a ``1 - success_rate`` share of the rest fail as if the channel were down.
    """

    def __init__(self, delay_ms: Optional[int] = None, success_rate: Optional[float] = None):
        self.delay_ms = settings.NOTIFICATION_DELAY_MS if delay_ms is None else delay_ms
        self.success_rate = settings.NOTIFICATION_SUCCESS_RATE if success_rate is None else success_rate

    async def send_notification(self, event: str, payload: str = "") -> None:
        """Send a notification of the given event type."""
        logger.info("Sending notification", notification_event=event, payload_size=len(payload))
        start_time = time.time()

        # Simulate delivery latency
        await asyncio.sleep(self.delay_ms / 1000.0)

        try:
            NotificationEvent(event)
        except ValueError:
            logger.error("Failed to send notification, unsupported event", notification_event=event)
            raise UnsupportedActionError(event)

        if random.random() >= self.success_rate:
            logger.error("Failed to send notification, channel unavailable", notification_event=event)
            raise ActionExecutionError(f"Notification channel rejected {event}")

        logger.info(
            "Notification sent",
            notification_event=event,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )

    async def execute(self, selector: str, payload: str) -> None:
        await self.send_notification(selector, payload)


def build_notification_registry(
    service: Optional[NotificationService] = None,
) -> ActionRegistry[NotificationEvent]:
    """Registry with one handler per ``NotificationEvent``, all backed by ``service``."""
    service = service or NotificationService()
    registry: ActionRegistry[NotificationEvent] = ActionRegistry(NotificationEvent)

    for event in NotificationEvent:
        async def send(payload: str, _event: NotificationEvent = event) -> None:
            await service.send_notification(_event.value, payload)

        registry.register(event, send)

    return registry
