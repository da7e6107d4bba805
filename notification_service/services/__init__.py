from .action_registry import ActionExecutor, ActionRegistry
from .notification_service import NotificationEvent, NotificationService, build_notification_registry

__all__ = [
    "ActionExecutor",
    "ActionRegistry",
    "NotificationEvent",
    "NotificationService",
    "build_notification_registry",
]
