from .queue import QueueRecord, QueueBatchEvent, Item, BatchEnvelope
from .outcome import FailureReason, SelectorResult, ProcessingOutcome, FailureReport

__all__ = [
    # Queue
    "QueueRecord", "QueueBatchEvent", "Item", "BatchEnvelope",

    # Outcomes
    "FailureReason", "SelectorResult", "ProcessingOutcome", "FailureReport",
]
