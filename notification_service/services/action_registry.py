from enum import Enum
from typing import Awaitable, Callable, Dict, Generic, List, Protocol, Type, TypeVar

from notification_service.core.exceptions import UnsupportedActionError
from notification_service.core.logging import get_logger

logger = get_logger(__name__)

A = TypeVar("A", bound=Enum)

ActionHandler = Callable[[str], Awaitable[None]]


class ActionExecutor(Protocol):
    """Anything that can perform a named action on an opaque payload.

    Implementations report failure by raising from the awaited call;
    the dispatcher turns any raise into a failed outcome for that item.
    """

    async def execute(self, selector: str, payload: str) -> None:
        ...


class ActionRegistry(Generic[A]):
    """Closed dispatch table from an action enum to its async handler.

    The set of actions is the enum passed in at construction. A selector that
    is not a member, or a member without a registered handler, resolves to
    ``UnsupportedActionError``.
    """

    def __init__(self, actions: Type[A]):
        self.actions = actions
        self._handlers: Dict[A, ActionHandler] = {}

    def register(self, action: A, handler: ActionHandler) -> None:
        if not isinstance(action, self.actions):
            raise TypeError(f"{action!r} is not a {self.actions.__name__}")
        if action in self._handlers:
            raise ValueError(f"Handler already registered for {action.value}")
        self._handlers[action] = handler

    def handler(self, action: A) -> Callable[[ActionHandler], ActionHandler]:
        """Decorator form of ``register``."""
        def decorator(fn: ActionHandler) -> ActionHandler:
            self.register(action, fn)
            return fn
        return decorator

    @property
    def supported(self) -> List[str]:
        return [action.value for action in self._handlers]

    def resolve(self, selector: str) -> ActionHandler:
        try:
            action = self.actions(selector)
        except ValueError:
            raise UnsupportedActionError(selector)

        handler = self._handlers.get(action)
        if handler is None:
            raise UnsupportedActionError(selector)
        return handler

    async def execute(self, selector: str, payload: str) -> None:
        handler = self.resolve(selector)
        logger.debug("Executing action", selector=selector)
        await handler(payload)
