from typing import List, Sequence


class NotificationServiceError(Exception):
    """Base class for errors raised by the notification service."""
    pass


class EnvelopeValidationError(NotificationServiceError):
    """Raised when an inbound batch does not have the minimal structure.

    ``record_ids`` holds every message id that could still be read from the
    raw input, so the caller can fail each of them.
    """

    def __init__(self, issues: Sequence[str], record_ids: Sequence[str] = ()):
        self.issues: List[str] = list(issues)
        self.record_ids: List[str] = list(record_ids)
        super().__init__("; ".join(self.issues) or "invalid batch envelope")


class UnsupportedActionError(NotificationServiceError):
    """Raised when a selector is well formed but has no registered action."""

    def __init__(self, selector: str):
        self.selector = selector
        super().__init__(f"Unsupported notification event: {selector}")


class ActionExecutionError(NotificationServiceError):
    """Raised when the downstream action fails."""
    pass
