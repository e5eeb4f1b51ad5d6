"""Per-subject stat registry.

A :class:`StatSheet` holds every stat of one subject (a character, a unit,
an item) keyed by stat id, and is the entry point for applying effects by
definition or by id.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from statcraft.effects.applier import EffectApplier
from statcraft.effects.definition import EffectDefinition
from statcraft.effects.library import EffectLibrary
from statcraft.effects.policies import ApplyOutcome
from statcraft.stats.definition import StatDefinition, TextStatDefinition
from statcraft.stats.numeric import Sleep, StatValue
from statcraft.stats.text import TextStat

logger = structlog.get_logger(__name__)

Stat = StatValue | TextStat


class StatSheet:
    """
    All stats of one subject plus the applier driving effects on them.

    Example:
        sheet = StatSheet("hero", stats=[{"stat_id": "strength", "base_value": 10}])
        await sheet.apply_effect(potion)
        sheet.value("strength")
    """

    def __init__(
        self,
        name: str,
        stats: Iterable[StatDefinition | Mapping[str, Any]] = (),
        text_stats: Iterable[TextStatDefinition | Mapping[str, Any]] = (),
        *,
        applier: EffectApplier | None = None,
        library: EffectLibrary | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        """
        Initialize a sheet and register its stats.

        Args:
            name: Subject name, used in logs
            stats: Numeric stat definitions
            text_stats: Text stat definitions
            applier: Effect applier to use (a new one by default)
            library: Effect definitions available to :meth:`apply_effect` by id
            sleep: Sleep function handed to every numeric stat
        """
        self.name = name
        self.applier = applier or EffectApplier()
        self.library = library or EffectLibrary()
        self._sleep = sleep
        self._stats: dict[str, Stat] = {}

        for definition in stats:
            self.register_stat(definition)
        for text_definition in text_stats:
            self.register_text_stat(text_definition)

        logger.debug("stat_sheet_initialized", sheet=self.name, stats=len(self._stats))

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, stat_id: object) -> bool:
        return stat_id in self._stats

    @property
    def stat_ids(self) -> list[str]:
        return list(self._stats)

    # Registration

    def register_stat(self, definition: StatDefinition | Mapping[str, Any]) -> bool:
        """
        Create a numeric stat from its definition.

        Returns:
            True if created, False if the definition was malformed or its
            stat id already registered
        """
        parsed = self._validate(StatDefinition, definition)
        if parsed is None or not self._claim(parsed.stat_id):
            return False

        self._stats[parsed.stat_id] = StatValue(parsed, sleep=self._sleep)
        return True

    def register_text_stat(self, definition: TextStatDefinition | Mapping[str, Any]) -> bool:
        """Create a text stat from its definition. Same contract as :meth:`register_stat`."""
        parsed = self._validate(TextStatDefinition, definition)
        if parsed is None or not self._claim(parsed.stat_id):
            return False

        self._stats[parsed.stat_id] = TextStat(parsed)
        return True

    def _validate(self, model: Any, definition: Any) -> Any:
        if isinstance(definition, model):
            return definition
        try:
            return model.model_validate(definition)
        except ValidationError as e:
            logger.warning(
                "stat_definition_invalid",
                sheet=self.name,
                stat_id=definition.get("stat_id", "unknown")
                if isinstance(definition, Mapping)
                else "unknown",
                error=str(e),
            )
            return None

    def _claim(self, stat_id: str) -> bool:
        if stat_id in self._stats:
            logger.warning("stat_already_registered", sheet=self.name, stat_id=stat_id)
            return False
        return True

    # Lookup

    def get_stat(self, stat_id: str) -> Stat | None:
        """Get a stat by id, or None if the sheet has no such stat."""
        stat = self._stats.get(stat_id)
        if stat is None:
            logger.warning("stat_not_found", sheet=self.name, stat_id=stat_id)
        return stat

    def get_numeric(self, stat_id: str) -> StatValue | None:
        """Get a numeric stat by id, or None if missing or not numeric."""
        stat = self._stats.get(stat_id)
        return stat if isinstance(stat, StatValue) else None

    def value(self, stat_id: str) -> float | None:
        """Final value of a numeric stat, or None if not available."""
        stat = self.get_numeric(stat_id)
        return stat.value if stat is not None else None

    def int_value(self, stat_id: str) -> int | None:
        """Rounded value of a numeric stat, or None if not available."""
        stat = self.get_numeric(stat_id)
        return stat.int_value if stat is not None else None

    def values(self) -> dict[str, float | str]:
        """Current value of every stat keyed by stat id."""
        return {stat_id: stat.value for stat_id, stat in self._stats.items()}

    # Effects

    def _resolve_effect(self, effect: EffectDefinition | str | None) -> EffectDefinition | None:
        if isinstance(effect, str):
            definition = self.library.get(effect)
            if definition is None:
                logger.warning("effect_not_found", sheet=self.name, effect_id=effect)
            return definition
        return effect

    async def apply_effect(self, effect: EffectDefinition | str | None) -> ApplyOutcome:
        """
        Apply an effect to the stat it targets.

        Args:
            effect: Definition, or effect id looked up in the library

        Returns:
            Outcome of the application; NOT_APPLICABLE when the effect is
            unknown, its stat is missing, or its stat is not numeric
        """
        definition = self._resolve_effect(effect)
        if definition is None:
            return ApplyOutcome.NOT_APPLICABLE

        stat = self.get_stat(definition.affected_stat_id)
        if stat is None:
            return ApplyOutcome.NOT_APPLICABLE

        return await self.applier.apply_effect(definition, stat)

    def remove_effect(self, effect: EffectDefinition | str | None) -> None:
        """Remove an effect from the stat it targets. Safe to call repeatedly."""
        definition = self._resolve_effect(effect)
        if definition is None:
            return

        stat = self.get_numeric(definition.affected_stat_id)
        if stat is not None:
            self.applier.remove_effect(definition, stat)
