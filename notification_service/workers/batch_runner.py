import asyncio
import time
from typing import Dict, List, Optional

from notification_service.core.logging import get_logger
from notification_service.schemas.outcome import FailureReason, ProcessingOutcome
from notification_service.schemas.queue import BatchEnvelope, Item
from notification_service.workers.dispatcher import ItemDispatcher

logger = get_logger(__name__)


class ConcurrentBatchRunner:
    """
    Fans the dispatcher out over every item of a batch at once.

    All items start together and the runner waits for every one of them to
    settle; a failure never cancels a sibling. With ``max_concurrency`` set, at
    most that many dispatches are in flight. When a ``timeout`` elapses, items
    still running are cancelled and reported as failed with ``timeout``.
    """

    def __init__(self, dispatcher: ItemDispatcher, max_concurrency: Optional[int] = None):
        if max_concurrency is not None and max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self.dispatcher = dispatcher
        self.max_concurrency = max_concurrency

    async def run(
        self,
        envelope: BatchEnvelope,
        timeout: Optional[float] = None,
    ) -> List[ProcessingOutcome]:
        """Process every item; returns one outcome per item, in no guaranteed order."""
        start_time = time.time()
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def _run_one(item: Item) -> ProcessingOutcome:
            if semaphore is None:
                return await self.dispatcher.dispatch(item)
            async with semaphore:
                return await self.dispatcher.dispatch(item)

        tasks: Dict[asyncio.Task, Item] = {
            asyncio.create_task(_run_one(item)): item for item in envelope.items
        }
        logger.debug("Batch dispatch started", item_count=len(tasks), timeout=timeout)

        try:
            _, pending = await asyncio.wait(list(tasks), timeout=timeout)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes = []
        for task, item in tasks.items():
            if task in pending:
                logger.error(
                    "Message did not settle before the batch deadline",
                    message_id=item.id,
                    timeout=timeout,
                    outcome="failed",
                    failure_reason=FailureReason.TIMEOUT.value,
                )
                outcomes.append(ProcessingOutcome.failure(item.id, FailureReason.TIMEOUT))
            elif task.cancelled():
                logger.error(
                    "Message processing task was cancelled",
                    message_id=item.id,
                    outcome="failed",
                    failure_reason=FailureReason.EXECUTION_ERROR.value,
                )
                outcomes.append(ProcessingOutcome.failure(item.id, FailureReason.EXECUTION_ERROR))
            elif task.exception() is not None:
                error = task.exception()
                logger.error(
                    "Message processing task raised",
                    message_id=item.id,
                    error=str(error),
                    error_type=type(error).__name__,
                    outcome="failed",
                    failure_reason=FailureReason.EXECUTION_ERROR.value,
                )
                outcomes.append(ProcessingOutcome.failure(item.id, FailureReason.EXECUTION_ERROR))
            else:
                outcomes.append(task.result())

        logger.info(
            "Batch dispatch completed",
            item_count=len(outcomes),
            timed_out=len(pending),
            duration_ms=int((time.time() - start_time) * 1000),
        )
        return outcomes
