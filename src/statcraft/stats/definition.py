"""
Stat definitions.

Definitions are authored outside the engine and handed over as plain
mappings or models; they are consumed once, when a stat is constructed.
"""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StatDefinition(BaseModel):
    """
    Definition of a numeric stat.

    Attributes:
        stat_id: Unique identifier for the stat (e.g., "strength", "move_speed")
        base_value: Value before any modifier is applied
        min_value: Lower clamp bound (accepts the key "min")
        max_value: Upper clamp bound (accepts the key "max")
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    stat_id: str = Field(..., min_length=1, description="Unique stat identifier")
    base_value: float = Field(default=0.0, description="Base value before modifiers")
    min_value: float = Field(default=float("-inf"), alias="min", description="Lower bound")
    max_value: float = Field(default=float("inf"), alias="max", description="Upper bound")

    @model_validator(mode="after")
    def check_bounds(self) -> Self:
        if self.min_value > self.max_value:
            raise ValueError(
                f"Stat '{self.stat_id}' has min {self.min_value} greater than max {self.max_value}"
            )
        return self


class TextStatDefinition(BaseModel):
    """Definition of a non-numeric (text) stat such as a title or class name."""

    model_config = ConfigDict(frozen=True)

    stat_id: str = Field(..., min_length=1, description="Unique stat identifier")
    base_value: str = Field(default="", description="Initial text value")
