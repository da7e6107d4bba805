"""
Unit tests for the notification consumer and its entry points.
"""
import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from notification_service.core.redis_client import ReceivedBatch
from notification_service.schemas.outcome import FailureReport
from notification_service.services.notification_service import (
    NotificationService,
    build_notification_registry,
)
from notification_service.workers import notification_consumer
from notification_service.workers.notification_consumer import NotificationConsumer, handler


@pytest.fixture
def registry():
    return build_notification_registry(NotificationService(delay_ms=0))


@pytest.fixture
def consumer(registry, mock_redis):
    return NotificationConsumer(executor=registry, queue_name="q:test", redis=mock_redis)


class TestProcessBatch:
    """Test cases for NotificationConsumer.process_batch."""

    @pytest.mark.asyncio
    async def test_supported_and_unsupported_events(self, consumer, record_factory, event_factory):
        raw = event_factory(
            record_factory("a", event="task_created"),
            record_factory("b", event="unsupported_action"),
        )

        report = await consumer.process_batch(raw)

        assert report.to_response() == {"failedItemIds": ["b"]}

    @pytest.mark.asyncio
    async def test_missing_event_attribute(self, consumer, record_factory, event_factory):
        report = await consumer.process_batch(event_factory(record_factory("m-1", event=None)))

        assert report.to_response() == {"failedItemIds": ["m-1"]}

    @pytest.mark.asyncio
    async def test_all_succeed(self, consumer, record_factory, event_factory):
        raw = event_factory(*(record_factory(f"m-{i}", event="task_updated") for i in range(5)))

        report = await consumer.process_batch(raw)

        assert report.all_succeeded
        assert report.to_response() == {"failedItemIds": []}

    @pytest.mark.asyncio
    async def test_structural_failure_fails_every_readable_id(self, consumer, record_factory, event_factory):
        broken = record_factory("c")
        del broken["messageAttributes"]
        raw = event_factory(record_factory("a"), record_factory("b"), broken)

        report = await consumer.process_batch(raw)

        assert report.to_response() == {"failedItemIds": ["a", "b", "c"]}

    @pytest.mark.asyncio
    async def test_empty_batch(self, consumer):
        report = await consumer.process_batch({"Records": []})

        assert report.to_response() == {"failedItemIds": []}

    @pytest.mark.asyncio
    async def test_executor_error_stays_with_its_item(self, record_factory, event_factory, mock_redis):
        executor = MagicMock()

        async def execute(selector, payload):
            if payload == "explode":
                raise RuntimeError("channel down")

        executor.execute = execute
        consumer = NotificationConsumer(executor=executor, queue_name="q:test", redis=mock_redis)
        raw = event_factory(
            record_factory("a"),
            record_factory("b", body="explode"),
            record_factory("c"),
        )

        report = await consumer.process_batch(raw)

        assert report.to_response() == {"failedItemIds": ["b"]}

    @pytest.mark.asyncio
    async def test_runner_crash_fails_whole_batch(self, consumer, record_factory, event_factory):
        consumer.runner.run = AsyncMock(side_effect=RuntimeError("unexpected"))

        report = await consumer.process_batch(event_factory(record_factory("a"), record_factory("b")))

        assert report.to_response() == {"failedItemIds": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_context_deadline_is_passed_to_runner(self, consumer, record_factory, event_factory):
        consumer.runner.run = AsyncMock(return_value=[])
        context = MagicMock()
        context.get_remaining_time_in_millis.return_value = 3000

        await consumer.process_batch(event_factory(record_factory("a")), context)

        assert consumer.runner.run.await_args.kwargs["timeout"] == pytest.approx(2.0)


class TestResolveTimeout:
    """Test cases for BaseConsumer.resolve_timeout."""

    def test_no_limits(self, consumer):
        consumer.batch_timeout = None

        assert consumer.resolve_timeout() is None
        assert consumer.resolve_timeout(object()) is None

    def test_batch_timeout_only(self, consumer):
        consumer.batch_timeout = 5.0

        assert consumer.resolve_timeout() == 5.0

    def test_context_deadline_less_margin(self, consumer):
        consumer.batch_timeout = None
        context = MagicMock()
        context.get_remaining_time_in_millis.return_value = 10000

        assert consumer.resolve_timeout(context) == pytest.approx(9.0)

    def test_smaller_limit_wins(self, consumer):
        consumer.batch_timeout = 2.5
        context = MagicMock()
        context.get_remaining_time_in_millis.return_value = 10000

        assert consumer.resolve_timeout(context) == 2.5

    def test_deadline_already_inside_margin(self, consumer):
        consumer.batch_timeout = None
        context = MagicMock()
        context.get_remaining_time_in_millis.return_value = 500

        assert consumer.resolve_timeout(context) == 0.0


class TestPollOnce:
    """Test cases for BaseConsumer.poll_once."""

    @pytest.mark.asyncio
    async def test_no_messages(self, consumer, mock_redis):
        result = await consumer.poll_once()

        assert result == {"status": "no_message", "queue": "q:test"}
        mock_redis.ensure_connected.assert_awaited_once()
        mock_redis.apply_report.assert_not_called()

    @pytest.mark.asyncio
    async def test_processes_and_applies_report(self, consumer, mock_redis, record_factory):
        records = [record_factory("a"), record_factory("b", event="unsupported_action")]
        batch = ReceivedBatch(queue="q:test", records=records, claimed=[json.dumps(r) for r in records])
        mock_redis.receive_batch.return_value = batch
        mock_redis.apply_report.return_value = {"acknowledged": 1, "retried": 1, "dead_lettered": 0}

        result = await consumer.poll_once()

        mock_redis.receive_batch.assert_awaited_once_with("q:test", consumer.policy.batch_size)
        applied_batch, report, policy = mock_redis.apply_report.await_args.args
        assert applied_batch is batch
        assert report == FailureReport(failed_item_ids=frozenset({"b"}))
        assert policy is consumer.policy
        assert result == {
            "status": "processed",
            "queue": "q:test",
            "received": 2,
            "acknowledged": 1,
            "retried": 1,
            "dead_lettered": 0,
        }

    @pytest.mark.asyncio
    async def test_run_consumer_idles_when_queue_is_empty(self, consumer, mock_redis, monkeypatch):
        sleep = AsyncMock(side_effect=asyncio.CancelledError())
        monkeypatch.setattr("notification_service.workers.base_consumer.asyncio.sleep", sleep)

        with pytest.raises(asyncio.CancelledError):
            await consumer.run_consumer(idle_sleep=0.5)

        mock_redis.move_ready_delayed_to_main.assert_awaited_once_with("q:test")
        mock_redis.sweep_expired_claims.assert_awaited_once_with("q:test", consumer.policy)
        sleep.assert_awaited_once_with(0.5)


class TestHandler:
    """Test cases for the SQS-style handler entry point."""

    @pytest.fixture
    def installed_consumer(self, monkeypatch, consumer):
        monkeypatch.setattr(notification_consumer, "_consumer", consumer)
        return consumer

    def test_returns_batch_item_failures(self, installed_consumer, record_factory, event_factory):
        raw = event_factory(
            record_factory("a"),
            record_factory("b", event=None),
            record_factory("c", event="unsupported_action"),
        )

        response = handler(raw, None)

        assert response == {
            "batchItemFailures": [{"itemIdentifier": "b"}, {"itemIdentifier": "c"}]
        }

    def test_all_succeeded(self, installed_consumer, record_factory, event_factory):
        assert handler(event_factory(record_factory("a")), None) == {"batchItemFailures": []}

    def test_malformed_event(self, installed_consumer):
        assert handler({"Records": [{"messageId": "x"}]}, None) == {
            "batchItemFailures": [{"itemIdentifier": "x"}]
        }

    def test_get_consumer_reuses_instance(self, installed_consumer):
        assert notification_consumer.get_consumer() is installed_consumer
