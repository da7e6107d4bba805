from typing import Iterable

from notification_service.schemas.outcome import FailureReport, ProcessingOutcome


def build_failure_report(outcomes: Iterable[ProcessingOutcome]) -> FailureReport:
    """Reduce outcomes to the ids that must be redelivered."""
    return FailureReport(
        failed_item_ids=frozenset(o.item_id for o in outcomes if not o.succeeded)
    )


def failed_report_for(item_ids: Iterable[str]) -> FailureReport:
    """Report that fails every given id, for batches that cannot be processed at all."""
    return FailureReport(failed_item_ids=frozenset(item_ids))
