from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class FailureReason(str, Enum):
    INVALID_SELECTOR = "invalid-selector"
    UNSUPPORTED_ACTION = "unsupported-action"
    EXECUTION_ERROR = "execution-error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class SelectorResult:
    """Result of reading the action selector off an item."""

    selector: Optional[str] = None
    failure_reason: Optional[FailureReason] = None

    @property
    def ok(self) -> bool:
        return self.failure_reason is None


class ProcessingOutcome(BaseModel):
    """Outcome of processing one item. Exactly one exists per item."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    succeeded: bool
    failure_reason: Optional[FailureReason] = None

    @model_validator(mode="after")
    def check_reason(self):
        if self.succeeded and self.failure_reason is not None:
            raise ValueError("a succeeded outcome cannot carry a failure reason")
        if not self.succeeded and self.failure_reason is None:
            raise ValueError("a failed outcome needs a failure reason")
        return self

    @classmethod
    def success(cls, item_id: str) -> "ProcessingOutcome":
        return cls(item_id=item_id, succeeded=True)

    @classmethod
    def failure(cls, item_id: str, reason: FailureReason) -> "ProcessingOutcome":
        return cls(item_id=item_id, succeeded=False, failure_reason=reason)


class FailureReport(BaseModel):
    """Ids the queue must redeliver. Ids not listed are acknowledged."""

    model_config = ConfigDict(frozen=True)

    failed_item_ids: FrozenSet[str] = Field(default_factory=frozenset)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed_item_ids

    def to_response(self) -> Dict[str, Any]:
        return {"failedItemIds": sorted(self.failed_item_ids)}

    def to_sqs_response(self) -> Dict[str, Any]:
        """Shape expected by an SQS event source with ReportBatchItemFailures."""
        return {
            "batchItemFailures": [
                {"itemIdentifier": item_id} for item_id in sorted(self.failed_item_ids)
            ]
        }
