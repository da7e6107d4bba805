import asyncio
from typing import Any, Dict, Optional

from notification_service.core.config import settings
from notification_service.core.exceptions import EnvelopeValidationError
from notification_service.core.logging import get_logger
from notification_service.core.queue_policies import get_policy
from notification_service.core.redis_client import RedisClient, redis_client
from notification_service.schemas.outcome import FailureReport
from notification_service.services.action_registry import ActionExecutor
from notification_service.workers.batch_runner import ConcurrentBatchRunner
from notification_service.workers.dispatcher import ItemDispatcher
from notification_service.workers.envelope_validator import validate_batch
from notification_service.workers.report_builder import build_failure_report, failed_report_for


class BaseConsumer:
    """Base class for batch consumers that report failures per message."""

    def __init__(
        self,
        queue_name: str,
        executor: ActionExecutor,
        selector_attribute: Optional[str] = None,
        batch_timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        redis: Optional[RedisClient] = None,
    ):
        self.queue_name = queue_name
        self.logger = get_logger(self.__class__.__name__, queue=queue_name)
        self.redis = redis or redis_client
        self.policy = get_policy(queue_name)
        self.batch_timeout = batch_timeout
        self.dispatcher = ItemDispatcher(executor, selector_attribute)
        self.runner = ConcurrentBatchRunner(self.dispatcher, max_concurrency)

    def resolve_timeout(self, context: Any = None) -> Optional[float]:
        """
        Deadline for one batch, in seconds.

        The configured batch timeout and the invocation context's remaining
        time (less the safety margin) both cap it; the smaller one wins.
        """
        limits = []
        if self.batch_timeout is not None:
            limits.append(self.batch_timeout)

        remaining = getattr(context, "get_remaining_time_in_millis", None)
        if callable(remaining):
            millis = remaining() - settings.DEADLINE_SAFETY_MARGIN_MS
            limits.append(max(millis, 0) / 1000.0)

        return min(limits) if limits else None

    async def process_batch(self, raw: Any, context: Any = None) -> FailureReport:
        """
        Process one delivered batch and return the ids to redeliver.

        Never raises for batch content: a malformed envelope fails every id
        that can be read from it, and each item's fault stays with that item.
        """
        try:
            envelope = validate_batch(raw)
        except EnvelopeValidationError as e:
            self.logger.error(
                "Invalid batch envelope, failing all records",
                issues=e.issues,
                failed_count=len(e.record_ids),
            )
            return failed_report_for(e.record_ids)

        try:
            outcomes = await self.runner.run(envelope, timeout=self.resolve_timeout(context))
        except Exception as e:
            self.logger.error(
                "Unexpected error during batch processing, failing all records",
                error=str(e),
            )
            return failed_report_for(envelope.item_ids)

        report = build_failure_report(outcomes)
        self.logger.info(
            "Batch processed",
            total_count=len(envelope),
            success_count=len(envelope) - len(report.failed_item_ids),
            failure_count=len(report.failed_item_ids),
        )
        return report

    async def poll_once(self) -> Dict[str, Any]:
        """Receive one batch from Redis, process it and apply the report."""
        await self.redis.ensure_connected()

        batch = await self.redis.receive_batch(self.queue_name, self.policy.batch_size)
        if not batch:
            return {"status": "no_message", "queue": self.queue_name}

        report = await self.process_batch(batch.event)
        counts = await self.redis.apply_report(batch, report, self.policy)

        self.logger.debug("Batch report applied", **counts)
        return {"status": "processed", "queue": self.queue_name, "received": len(batch), **counts}

    async def run_consumer(self, idle_sleep: Optional[float] = None):
        """Main consumer loop."""
        idle_sleep = settings.POLL_INTERVAL_SECONDS if idle_sleep is None else idle_sleep
        self.logger.info("Starting consumer")

        while True:
            try:
                await self.redis.move_ready_delayed_to_main(self.queue_name)
                await self.redis.sweep_expired_claims(self.queue_name, self.policy)
                result = await self.poll_once()
                if result["status"] == "no_message":
                    await asyncio.sleep(idle_sleep)
            except Exception as e:
                self.logger.error("Error in consumer loop", error=str(e))
                await asyncio.sleep(5)  # Wait before retrying

    def run_sync_consumer(self):
        """Synchronous wrapper for async consumer."""
        asyncio.run(self.run_consumer())
