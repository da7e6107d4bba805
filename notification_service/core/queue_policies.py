from dataclasses import dataclass
from typing import Dict

from notification_service.core.config import settings


@dataclass(frozen=True)
class QueuePolicy:
    batch_size: int
    max_receive_count: int
    visibility_timeout_seconds: int


DEFAULT_POLICY = QueuePolicy(
    batch_size=10,
    max_receive_count=3,
    visibility_timeout_seconds=60,
)


QUEUE_POLICIES: Dict[str, QueuePolicy] = {
    settings.NOTIFICATION_QUEUE: DEFAULT_POLICY,
}


def get_policy(queue_name: str) -> QueuePolicy:
    return QUEUE_POLICIES.get(queue_name, DEFAULT_POLICY)
