"""statcraft - stat composition and timed effect lifecycle engine."""

from .config import Settings, get_settings
from .effects import (
    ApplyOutcome,
    DuplicatePolicy,
    EffectApplier,
    EffectDefinition,
    EffectLibrary,
    EffectState,
)
from .logs import configure_logging
from .sheet import StatSheet
from .stats import (
    ModifierKind,
    ModifierRecord,
    StatDefinition,
    StatValue,
    TextStat,
    TextStatDefinition,
)

__version__ = "0.1.0"

__all__ = [
    "ApplyOutcome",
    "DuplicatePolicy",
    "EffectApplier",
    "EffectDefinition",
    "EffectLibrary",
    "EffectState",
    "ModifierKind",
    "ModifierRecord",
    "Settings",
    "StatDefinition",
    "StatSheet",
    "StatValue",
    "TextStat",
    "TextStatDefinition",
    "configure_logging",
    "get_settings",
]
