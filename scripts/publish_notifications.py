#!/usr/bin/env python3
"""
Notification Publishing Utility

Fans test notification messages out to the notification queue so the
consumer can be exercised end to end.

Usage:
    python scripts/publish_notifications.py --help
    python scripts/publish_notifications.py --event task_created --count 5
    python scripts/publish_notifications.py --event task_created --event unknown_event
    python scripts/publish_notifications.py --missing-event --count 1
"""

import argparse
import asyncio
import json
import time
from typing import Any, Dict
from uuid import uuid4

from notification_service.core.config import settings
from notification_service.core.redis_client import RedisClient


def create_task_payload(event: str) -> Dict[str, Any]:
    """Create a task change payload for a notification message."""
    return {
        "taskId": str(uuid4()),
        "event": event,
        "occurredAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "metadata": {
            "test": True,
            "source": "notification_publisher"
        }
    }


async def publish(args) -> int:
    client = RedisClient(url=args.redis_url)
    await client.connect()

    print(f"📤 Publishing to queue: {args.queue}")
    published = 0
    try:
        events = args.event or ["task_created"]
        for event in events:
            for _ in range(args.count):
                payload = create_task_payload(event)
                attributes = {} if args.missing_event else {"event": event}
                message_id = await client.send_message(args.queue, json.dumps(payload), attributes)
                print(f"  ✅ {message_id} event={'<none>' if args.missing_event else event}")
                published += 1

        depths = await client.queue_depths(args.queue)
        print()
        print(f"📋 Published {published} message(s)")
        for part, count in depths.items():
            print(f"   {part}: {count}")
    finally:
        await client.disconnect()

    return published


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Publish test notification messages")

    parser.add_argument("--event", action="append",
                        help="Notification event attribute (repeatable, default task_created)")
    parser.add_argument("--count", type=int, default=1,
                        help="Messages to publish per event")
    parser.add_argument("--missing-event", action="store_true",
                        help="Publish without the event attribute (fails as invalid-selector)")
    parser.add_argument("--queue", default=settings.NOTIFICATION_QUEUE,
                        help="Target queue name")
    parser.add_argument("--redis-url", default=settings.REDIS_URL,
                        help="Redis connection URL")

    args = parser.parse_args()

    print("🔔 Notification Publisher")
    print("=" * 50)
    asyncio.run(publish(args))


if __name__ == "__main__":
    main()
