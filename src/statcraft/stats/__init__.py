"""Stat values, modifiers and the composition engine."""

from .cancellation import CancellationHandle
from .definition import StatDefinition, TextStatDefinition
from .events import Subscriptions
from .modifier import ModifierKind, ModifierRecord
from .numeric import COMPOSE_PRECISION, StatValue, clamp, compose
from .text import TextStat

__all__ = [
    "COMPOSE_PRECISION",
    "CancellationHandle",
    "ModifierKind",
    "ModifierRecord",
    "StatDefinition",
    "StatValue",
    "Subscriptions",
    "TextStat",
    "TextStatDefinition",
    "clamp",
    "compose",
]
