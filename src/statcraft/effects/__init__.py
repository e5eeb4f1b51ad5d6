"""Effect definitions, duplicate handling and lifecycle."""

from .applier import EffectApplier
from .definition import DuplicatePolicy, EffectDefinition
from .instance import EffectInstance, EffectState
from .library import EffectLibrary
from .policies import (
    ALLOW_TRANSITIONS,
    PREVENT_TRANSITIONS,
    REFRESH_TRANSITIONS,
    STACK_TRANSITIONS,
    TRANSITION_TABLES,
    ApplyOutcome,
)

__all__ = [
    "ALLOW_TRANSITIONS",
    "PREVENT_TRANSITIONS",
    "REFRESH_TRANSITIONS",
    "STACK_TRANSITIONS",
    "TRANSITION_TABLES",
    "ApplyOutcome",
    "DuplicatePolicy",
    "EffectApplier",
    "EffectDefinition",
    "EffectInstance",
    "EffectLibrary",
    "EffectState",
]
