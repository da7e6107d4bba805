from collections import Counter
from typing import Any, List, Mapping
from pydantic import ValidationError

from notification_service.core.exceptions import EnvelopeValidationError
from notification_service.schemas.queue import BatchEnvelope, Item, QueueBatchEvent


def collect_record_ids(raw: Any) -> List[str]:
    """Best-effort read of every string ``messageId`` in a raw batch."""
    if not isinstance(raw, Mapping):
        return []
    records = raw.get("Records")
    if not isinstance(records, (list, tuple)):
        return []

    ids = []
    for record in records:
        if isinstance(record, Mapping) and isinstance(record.get("messageId"), str):
            ids.append(record["messageId"])
    return ids


def _format_issues(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in issue['loc'])}: {issue['msg']}"
        for issue in error.errors()
    ]


def validate_batch(raw: Any) -> BatchEnvelope:
    """
    Check that a raw batch has the minimal shape before any item is processed.

    Every record needs a string ``messageId``, a string ``body`` and a
    ``messageAttributes`` mapping, ids must be unique, and there must be at
    least one record. A record whose attributes lack the selector is still
    valid here; it fails on its own during dispatch.

    Raises:
        EnvelopeValidationError: with the issues found and every record id
            recoverable from ``raw``.
    """
    record_ids = collect_record_ids(raw)

    if not isinstance(raw, Mapping):
        raise EnvelopeValidationError(
            [f"batch must be a mapping, got {type(raw).__name__}"], record_ids
        )

    try:
        event = QueueBatchEvent.model_validate(raw)
    except ValidationError as e:
        raise EnvelopeValidationError(_format_issues(e), record_ids)

    duplicates = sorted(
        message_id
        for message_id, count in Counter(r.message_id for r in event.records).items()
        if count > 1
    )
    if duplicates:
        raise EnvelopeValidationError(
            [f"Records: duplicate messageId {message_id}" for message_id in duplicates],
            record_ids,
        )

    return BatchEnvelope(
        items=tuple(
            Item(id=r.message_id, attributes=r.message_attributes, payload=r.body)
            for r in event.records
        )
    )
