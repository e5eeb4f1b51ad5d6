"""In-memory collection of effect definitions."""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from .definition import EffectDefinition

logger = structlog.get_logger(__name__)


class EffectLibrary:
    """
    Registry of effect definitions keyed by effect id.

    Registration is partial-failure tolerant: malformed entries and
    duplicate ids are logged and skipped, everything else is kept.
    """

    def __init__(self, definitions: Iterable[EffectDefinition | Mapping[str, Any]] = ()) -> None:
        self._definitions: dict[str, EffectDefinition] = {}
        self.register_all(definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, effect_id: object) -> bool:
        return effect_id in self._definitions

    def register(self, definition: EffectDefinition | Mapping[str, Any]) -> bool:
        """
        Register one definition.

        Args:
            definition: EffectDefinition or raw mapping to validate

        Returns:
            True if registered, False if skipped as malformed or duplicate
        """
        if not isinstance(definition, EffectDefinition):
            try:
                definition = EffectDefinition.model_validate(definition)
            except ValidationError as e:
                logger.warning(
                    "effect_definition_invalid",
                    effect_id=_raw_id(definition),
                    error=str(e),
                )
                return False

        if definition.id in self._definitions:
            logger.warning("effect_definition_duplicate", effect_id=definition.id)
            return False

        self._definitions[definition.id] = definition
        return True

    def register_all(self, definitions: Iterable[EffectDefinition | Mapping[str, Any]]) -> int:
        """Register many definitions. Returns how many were accepted."""
        accepted = sum(1 for definition in definitions if self.register(definition))
        if accepted:
            logger.debug("effect_definitions_registered", count=accepted, total=len(self))
        return accepted

    def get(self, effect_id: str) -> EffectDefinition | None:
        """Get a definition by id, or None if unknown."""
        return self._definitions.get(effect_id)

    def has(self, effect_id: str) -> bool:
        return effect_id in self._definitions

    def all(self) -> tuple[EffectDefinition, ...]:
        return tuple(self._definitions.values())

    def for_stat(self, stat_id: str) -> list[EffectDefinition]:
        """All definitions affecting ``stat_id``."""
        return [d for d in self._definitions.values() if d.affected_stat_id == stat_id]


def _raw_id(raw: object) -> str:
    if isinstance(raw, Mapping):
        return str(raw.get("id", "unknown"))
    return "unknown"
