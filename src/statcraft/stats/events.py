"""Value-changed publish/subscribe used by numeric and text stats."""

from collections.abc import Callable
from typing import Any
from uuid import UUID, uuid4

ValueHandler = Callable[[Any], None]


class Subscriptions:
    """
    Ordered set of value-changed handlers keyed by subscription token.

    Handlers run synchronously, in subscription order, on the thread that
    performed the mutation.
    """

    def __init__(self) -> None:
        self._handlers: dict[UUID, ValueHandler] = {}

    def __len__(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: ValueHandler) -> UUID:
        """
        Register a handler.

        Args:
            handler: Callable receiving the new value

        Returns:
            Token to pass to :meth:`unsubscribe`
        """
        token = uuid4()
        self._handlers[token] = handler
        return token

    def unsubscribe(self, token: UUID) -> bool:
        """Remove a handler. Returns False if the token is unknown."""
        return self._handlers.pop(token, None) is not None

    def publish(self, value: Any) -> None:
        """Invoke every handler with ``value``."""
        # Copy so handlers may unsubscribe themselves
        for handler in list(self._handlers.values()):
            handler(value)
