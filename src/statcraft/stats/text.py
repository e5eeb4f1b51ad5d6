"""Non-numeric stats."""

from uuid import UUID

from .definition import TextStatDefinition
from .events import Subscriptions, ValueHandler


class TextStat:
    """
    Stat holding a plain text value, such as a title or class name.

    Text stats take no modifiers; effects targeting them are reported as
    not applicable.
    """

    def __init__(self, definition: TextStatDefinition) -> None:
        self.definition = definition
        self._value = definition.base_value
        self._subscriptions = Subscriptions()

    def __repr__(self) -> str:
        return f"TextStat(stat_id={self.stat_id!r}, value={self._value!r})"

    @property
    def stat_id(self) -> str:
        return self.definition.stat_id

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, new_value: str) -> None:
        if new_value != self._value:
            self._value = new_value
            self._subscriptions.publish(new_value)

    def subscribe(self, handler: ValueHandler) -> UUID:
        return self._subscriptions.subscribe(handler)

    def unsubscribe(self, token: UUID) -> bool:
        return self._subscriptions.unsubscribe(token)
