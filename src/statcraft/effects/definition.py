"""
Effect definitions.

An effect definition describes a modifier to apply to one stat, how long
it lasts, whether it ticks, and what happens when it is applied again
while still active.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statcraft.stats.modifier import ModifierKind, ModifierRecord


class DuplicatePolicy(StrEnum):
    """How reapplying an already active effect is handled."""

    ALLOW = "allow"  # Every application is independent
    PREVENT = "prevent"  # Reapplication is suppressed while active
    STACK = "stack"  # Reapplication adds a stack, up to max_stacks
    REFRESH = "refresh"  # Reapplication tears down and restarts the effect


class EffectDefinition(BaseModel):
    """
    Effect template supplied by content.

    Attributes:
        id: Unique effect identifier, also the source of every modifier it adds
        affected_stat_id: Stat the effect modifies
        modifier_value: Flat amount or fraction (0.1 = 10%) per application
        modifier_kind: flat, percent_add or percent_mult
        order: Composition rank override (defaults to the kind's rank)
        is_permanent: Static modifier, or tick loop without a tick ceiling
        duration_seconds: Wait before a timed contribution becomes permanent
        duplicate_policy: allow, prevent, stack or refresh
        tick_interval_seconds: Seconds per tick; 0 disables ticking
        tick_count: Number of ticks for non-permanent periodic effects
        max_stacks: Stack ceiling for the stack policy
        per_stack_bonus: Extra fraction of the value granted per stack above one
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique effect identifier")
    affected_stat_id: str = Field(..., min_length=1, description="Target stat identifier")
    modifier_value: float = Field(..., description="Modifier value per application")
    modifier_kind: ModifierKind = Field(default=ModifierKind.FLAT, description="Modifier kind")
    order: int | None = Field(default=None, description="Composition rank override")
    is_permanent: bool = Field(default=False, description="Permanent modifier or endless ticks")
    duration_seconds: float = Field(default=0.0, ge=0, description="Timed duration in seconds")
    duplicate_policy: DuplicatePolicy = Field(
        default=DuplicatePolicy.ALLOW, description="Reapplication policy"
    )
    tick_interval_seconds: float = Field(default=0.0, ge=0, description="Seconds per tick")
    tick_count: int = Field(default=0, ge=0, description="Total ticks")
    max_stacks: int = Field(default=1, ge=1, description="Maximum stacks")
    per_stack_bonus: float = Field(default=0.0, description="Bonus fraction per extra stack")

    @field_validator("modifier_kind", mode="before")
    @classmethod
    def parse_kind(cls, value: Any) -> ModifierKind:
        return ModifierKind.parse(value)

    @field_validator("duplicate_policy", mode="before")
    @classmethod
    def parse_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @property
    def is_periodic(self) -> bool:
        """Whether the effect applies through a tick loop."""
        return self.tick_interval_seconds > 0

    def stack_factor(self, stacks: int) -> float:
        """Value multiplier for a given stack count: ``1 + bonus * (stacks - 1)``."""
        return 1 + self.per_stack_bonus * (max(stacks, 1) - 1)

    def create_modifier(self, stacks: int = 1) -> ModifierRecord:
        """
        Build the modifier this effect applies at ``stacks`` stacks.

        Examples:
            modifier_value=10, per_stack_bonus=0.5 gives 10, 15, 20 for
            one, two and three stacks.
        """
        return ModifierRecord(
            value=self.modifier_value * self.stack_factor(stacks),
            kind=self.modifier_kind,
            source=self.id,
            order=self.order,
        )
