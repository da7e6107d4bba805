import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import redis.asyncio as redis
from redis.asyncio import ConnectionPool

from notification_service.core.config import settings
from notification_service.core.queue_policies import QueuePolicy, get_policy
from notification_service.schemas.outcome import FailureReport

logger = logging.getLogger(__name__)

RECEIVE_COUNT = "ApproximateReceiveCount"


@dataclass
class ReceivedBatch:
    """Records claimed from a queue, plus the raw entries holding them in ``:processing``."""

    queue: str
    records: List[Dict[str, Any]] = field(default_factory=list)
    claimed: List[str] = field(default_factory=list)

    @property
    def event(self) -> Dict[str, Any]:
        return {"Records": self.records}

    def __len__(self) -> int:
        return len(self.records)


def _receive_count(record: Dict[str, Any]) -> int:
    try:
        return int((record.get("attributes") or {}).get(RECEIVE_COUNT, 0))
    except (TypeError, ValueError):
        return 0


class RedisClient:
    """
    Redis-backed queue with SQS-style batch receive and partial acknowledgement.

    Layout per queue ``q``: ``q`` (ready list), ``q:processing`` (claimed),
    ``q:claims`` (zset of claim times), ``q:delayed`` (zset scored by
    visibility time) and ``q:dlq``.
    """

    def __init__(self, url: Optional[str] = None, max_connections: Optional[int] = None):
        self.pool = ConnectionPool.from_url(
            url or settings.REDIS_URL,
            max_connections=max_connections or settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        self.client: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection."""
        try:
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    async def disconnect(self):
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            await self.pool.disconnect()
            self.client = None
            logger.info("Redis connection closed")

    async def ensure_connected(self):
        if not self.client:
            await self.connect()

    async def send_message(
        self,
        queue_name: str,
        body: str,
        attributes: Optional[Dict[str, str]] = None,
    ) -> str:
        """Publish one message; returns its message id."""
        message_id = str(uuid.uuid4())
        record = {
            "messageId": message_id,
            "body": body,
            "messageAttributes": {
                name: {"stringValue": value, "dataType": "String"}
                for name, value in (attributes or {}).items()
            },
            "attributes": {
                RECEIVE_COUNT: "0",
                "SentTimestamp": str(int(time.time() * 1000)),
            },
        }
        try:
            await self.client.lpush(queue_name, json.dumps(record))
            logger.debug(f"Message {message_id} queued to {queue_name}")
            return message_id
        except Exception as e:
            logger.error(f"Failed to queue message to {queue_name}: {e}")
            raise

    async def receive_batch(self, queue_name: str, max_messages: int) -> ReceivedBatch:
        """
        Claim up to ``max_messages`` into ``:processing`` and bump their receive count.

        Each claim is timestamped in ``:claims`` so ``sweep_expired_claims`` can
        return it to the queue if it is never settled.
        """
        processing_queue = f"{queue_name}:processing"
        batch = ReceivedBatch(queue=queue_name)

        for _ in range(max_messages):
            message_json = await self.client.lmove(queue_name, processing_queue, "RIGHT", "LEFT")
            if message_json is None:
                break

            try:
                record = json.loads(message_json)
            except (ValueError, TypeError):
                record = None
            if not isinstance(record, dict) or not isinstance(record.get("messageId"), str):
                # Unreadable entries can never be processed; park them.
                await self.client.lpush(f"{queue_name}:dlq", message_json)
                await self.client.lrem(processing_queue, 1, message_json)
                logger.error(f"Unreadable message moved from {queue_name} to dead-letter queue")
                continue

            await self.client.zadd(f"{queue_name}:claims", {message_json: time.time()})

            attributes = dict(record.get("attributes") or {})
            attributes[RECEIVE_COUNT] = str(_receive_count(record) + 1)
            record["attributes"] = attributes

            batch.records.append(record)
            batch.claimed.append(message_json)

        return batch

    async def _release_claim(self, queue_name: str, raw: str) -> int:
        removed = await self.client.lrem(f"{queue_name}:processing", 1, raw)
        await self.client.zrem(f"{queue_name}:claims", raw)
        return removed

    async def apply_report(
        self,
        batch: ReceivedBatch,
        report: FailureReport,
        policy: Optional[QueuePolicy] = None,
    ) -> Dict[str, int]:
        """
        Acknowledge succeeded records and redeliver failed ones.

        Failed records become visible again after the policy's visibility
        timeout, or go to ``:dlq`` once they have been received
        ``max_receive_count`` times. A claim is released only after the
        redelivery write succeeds, so a failed write leaves the record in
        ``:processing`` for the sweeper.
        """
        policy = policy or get_policy(batch.queue)
        counts = {"acknowledged": 0, "retried": 0, "dead_lettered": 0}

        for record, raw in zip(batch.records, batch.claimed):
            message_id = record["messageId"]

            if message_id not in report.failed_item_ids:
                counts["acknowledged"] += 1
            elif _receive_count(record) >= policy.max_receive_count:
                await self.client.lpush(f"{batch.queue}:dlq", json.dumps(record))
                counts["dead_lettered"] += 1
                logger.warning(f"Message {message_id} moved to {batch.queue}:dlq")
            else:
                await self.delay_message(
                    batch.queue, record, policy.visibility_timeout_seconds
                )
                counts["retried"] += 1

            await self._release_claim(batch.queue, raw)

        return counts

    async def sweep_expired_claims(
        self,
        queue_name: str,
        policy: Optional[QueuePolicy] = None,
    ) -> Dict[str, int]:
        """
        Return claims older than the visibility timeout to the queue.

        Covers workers that died between ``receive_batch`` and ``apply_report``.
        The orphan counts as received, so it goes to ``:dlq`` once that reaches
        ``max_receive_count``. Entries in ``:processing`` without a claim time
        get one now and expire on a later sweep.
        """
        policy = policy or get_policy(queue_name)
        processing_queue = f"{queue_name}:processing"
        claims = f"{queue_name}:claims"
        now = time.time()
        counts = {"requeued": 0, "dead_lettered": 0}

        for raw in await self.client.lrange(processing_queue, 0, -1):
            await self.client.zadd(claims, {raw: now}, nx=True)

        expired = await self.client.zrangebyscore(
            claims, 0, now - policy.visibility_timeout_seconds
        )
        for raw in expired:
            try:
                record = json.loads(raw)
            except (ValueError, TypeError):
                record = None

            if isinstance(record, dict):
                attributes = dict(record.get("attributes") or {})
                attributes[RECEIVE_COUNT] = str(_receive_count(record) + 1)
                record["attributes"] = attributes
                received = _receive_count(record)
                entry = json.dumps(record)
            else:
                received = policy.max_receive_count
                entry = raw

            target = f"{queue_name}:dlq" if received >= policy.max_receive_count else queue_name
            await self.client.lpush(target, entry)
            if not await self._release_claim(queue_name, raw):
                # Settled by its consumer meanwhile; withdraw the copy.
                await self.client.lrem(target, 1, entry)
                continue

            counts["dead_lettered" if target.endswith(":dlq") else "requeued"] += 1

        if expired:
            logger.warning(f"Swept {len(expired)} expired claims on {queue_name}: {counts}")
        return counts

    async def delay_message(self, queue_name: str, record: Dict[str, Any], delay_seconds: int):
        """Park a record in ``:delayed`` until ``delay_seconds`` from now."""
        ready_at = time.time() + delay_seconds
        try:
            await self.client.zadd(f"{queue_name}:delayed", {json.dumps(record, default=str): ready_at})
        except Exception as e:
            logger.error(f"Failed to delay message {record.get('messageId')} on {queue_name}: {e}")
            raise

    async def move_ready_delayed_to_main(self, queue_name: str) -> int:
        """Requeue every delayed record whose visibility timeout has passed."""
        delayed_queue = f"{queue_name}:delayed"
        try:
            ready = await self.client.zrangebyscore(delayed_queue, 0, time.time())
            moved = 0
            for entry in ready:
                # Only the caller that removes the entry requeues it.
                if await self.client.zrem(delayed_queue, entry):
                    await self.client.lpush(queue_name, entry)
                    moved += 1
            return moved
        except Exception as e:
            logger.error(f"Failed requeueing delayed messages for {queue_name}: {e}")
            return 0

    async def queue_depths(self, queue_name: str) -> Dict[str, int]:
        """Entry counts for the ready, processing, delayed and dead-letter parts of a queue."""
        return {
            "ready": await self.client.llen(queue_name),
            "processing": await self.client.llen(f"{queue_name}:processing"),
            "delayed": await self.client.zcard(f"{queue_name}:delayed"),
            "dead_lettered": await self.client.llen(f"{queue_name}:dlq"),
        }


# Global Redis client instance
redis_client = RedisClient()
