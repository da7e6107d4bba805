from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class QueueRecord(BaseModel):
    """One raw record as delivered by the queue (SQS record shape)."""

    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(..., alias="messageId", description="Queue-assigned message id")
    body: str = Field(..., description="Opaque message body")
    message_attributes: Dict[str, Any] = Field(..., alias="messageAttributes")
    receipt_handle: Optional[str] = Field(None, alias="receiptHandle")
    attributes: Dict[str, Any] = Field(default_factory=dict)


class QueueBatchEvent(BaseModel):
    """Raw inbound batch: ``{"Records": [...]}``."""

    model_config = ConfigDict(populate_by_name=True)

    records: List[QueueRecord] = Field(..., alias="Records", min_length=1)


class Item(BaseModel):
    """A validated, read-only batch item."""

    model_config = ConfigDict(frozen=True)

    id: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    payload: str = ""


class BatchEnvelope(BaseModel):
    """A validated batch; always holds at least one item."""

    model_config = ConfigDict(frozen=True)

    items: Tuple[Item, ...] = Field(..., min_length=1)

    @property
    def item_ids(self) -> List[str]:
        return [item.id for item in self.items]

    def __len__(self) -> int:
        return len(self.items)
