import asyncio
from typing import Any, Mapping, Optional

from notification_service.core.config import settings
from notification_service.core.exceptions import UnsupportedActionError
from notification_service.core.logging import get_logger
from notification_service.schemas.outcome import FailureReason, ProcessingOutcome, SelectorResult
from notification_service.schemas.queue import Item
from notification_service.services.action_registry import ActionExecutor

logger = get_logger(__name__)


def extract_selector(item: Item, attribute_name: str) -> SelectorResult:
    """Read the action selector from an item's message attributes.

    Accepts the SQS attribute shape ``{"stringValue": "...", "dataType": "String"}``
    or a bare string. Missing, non-string and empty values are invalid.
    """
    value: Any = item.attributes.get(attribute_name)
    if isinstance(value, Mapping):
        value = value.get("stringValue")

    if not isinstance(value, str) or not value:
        return SelectorResult(failure_reason=FailureReason.INVALID_SELECTOR)
    return SelectorResult(selector=value)


class ItemDispatcher:
    """Routes one item to the action executor and reduces the result to an outcome.

    ``dispatch`` never raises for a fault in the item or the executor.
    Cancellation is passed through so a batch deadline can stop it.
    """

    def __init__(self, executor: ActionExecutor, selector_attribute: Optional[str] = None):
        self.executor = executor
        self.selector_attribute = selector_attribute or settings.SELECTOR_ATTRIBUTE

    async def dispatch(self, item: Item) -> ProcessingOutcome:
        log = logger.for_message(item.id)
        log.debug("Processing message")

        result = extract_selector(item, self.selector_attribute)
        if not result.ok:
            log.error(
                "Event attribute is missing or invalid",
                attribute=self.selector_attribute,
                outcome="failed",
                failure_reason=result.failure_reason.value,
            )
            return ProcessingOutcome.failure(item.id, result.failure_reason)

        log = log.bind(notification_event=result.selector)
        try:
            await self.executor.execute(result.selector, item.payload)
        except asyncio.CancelledError:
            raise
        except UnsupportedActionError as e:
            log.error(
                "Failed to send notification",
                outcome="failed",
                failure_reason=FailureReason.UNSUPPORTED_ACTION.value,
                error=str(e),
            )
            return ProcessingOutcome.failure(item.id, FailureReason.UNSUPPORTED_ACTION)
        except Exception as e:
            log.error(
                "Failed to send notification",
                outcome="failed",
                failure_reason=FailureReason.EXECUTION_ERROR.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ProcessingOutcome.failure(item.id, FailureReason.EXECUTION_ERROR)

        log.info("Notification sent successfully", outcome="succeeded")
        return ProcessingOutcome.success(item.id)
