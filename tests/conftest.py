"""
Pytest configuration and fixtures for notification service tests.
"""
import json
import logging
import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("NOTIFICATION_DELAY_MS", "0")

import pytest
import structlog
from unittest.mock import AsyncMock, MagicMock

from notification_service.core.redis_client import ReceivedBatch, RedisClient


def make_record(message_id, event="task_created", body=None, receive_count=None):
    """Build one raw queue record in the SQS shape."""
    record = {
        "messageId": message_id,
        "receiptHandle": f"rh-{message_id}",
        "body": body if body is not None else json.dumps({"taskId": message_id}),
        "messageAttributes": {},
        "attributes": {},
    }
    if event is not None:
        record["messageAttributes"]["event"] = {"stringValue": event, "dataType": "String"}
    if receive_count is not None:
        record["attributes"]["ApproximateReceiveCount"] = str(receive_count)
    return record


def make_event(*records):
    return {"Records": list(records)}


@pytest.fixture
def record_factory():
    """Factory for raw queue records."""
    return make_record


@pytest.fixture
def event_factory():
    """Factory for raw batch events."""
    return make_event


@pytest.fixture
def mock_executor():
    """Mock action executor that succeeds for every item."""
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=None)
    return executor


@pytest.fixture
def mock_redis():
    """Mock Redis client with the queue operations used by consumers."""
    redis_mock = MagicMock(spec=RedisClient)
    redis_mock.ensure_connected = AsyncMock()
    redis_mock.disconnect = AsyncMock()
    redis_mock.receive_batch = AsyncMock(return_value=ReceivedBatch(queue="q:test"))
    redis_mock.apply_report = AsyncMock(
        return_value={"acknowledged": 0, "retried": 0, "dead_lettered": 0}
    )
    redis_mock.move_ready_delayed_to_main = AsyncMock(return_value=0)
    redis_mock.sweep_expired_claims = AsyncMock(return_value={"requeued": 0, "dead_lettered": 0})
    return redis_mock


@pytest.fixture
def redis_connection():
    """Mock redis.asyncio connection for RedisClient internals."""
    connection = AsyncMock()
    connection.lmove = AsyncMock(return_value=None)
    connection.lrem = AsyncMock(return_value=1)
    connection.lpush = AsyncMock(return_value=1)
    connection.zadd = AsyncMock(return_value=1)
    connection.llen = AsyncMock(return_value=0)
    return connection


@pytest.fixture
def reset_logging():
    """Undo any logging configuration a test applies."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
