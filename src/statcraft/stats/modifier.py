"""Stat modifiers.

A modifier is one tagged contribution to a stat's computed value. Modifiers
are grouped by ``source`` so everything contributed by one effect can be
removed in a single call.
"""

from collections.abc import Hashable
from dataclasses import dataclass
from enum import IntEnum


class ModifierKind(IntEnum):
    """Modifier kinds. The integer value is the default ordering rank."""

    FLAT = 100  # Added directly to the running total
    PERCENT_ADD = 200  # Summed with neighbouring percent-adds, applied as one lump
    PERCENT_MULT = 300  # Multiplies the running total independently

    @classmethod
    def parse(cls, raw: "ModifierKind | str | int") -> "ModifierKind":
        """
        Resolve a kind from an enum member, rank or name.

        Names are matched case-insensitively and ignore underscores, so
        ``"percent_add"``, ``"PercentAdd"`` and ``"PERCENT_ADD"`` are equal.

        Raises:
            ValueError: If the value names no kind
        """
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, int):
            return cls(raw)

        wanted = str(raw).replace("_", "").replace("-", "").lower()
        for kind in cls:
            if kind.name.replace("_", "").lower() == wanted:
                return kind
        raise ValueError(f"Unknown modifier kind: {raw!r}")


@dataclass(frozen=True)
class ModifierRecord:
    """
    Immutable description of one contribution to a stat.

    Attributes:
        value: Flat amount, or fraction for percent kinds (0.1 = 10%)
        kind: How the value is composed
        source: Opaque hashable identity used for grouping and bulk removal
        order: Composition rank; defaults to the kind's rank
    """

    value: float
    kind: ModifierKind
    source: Hashable = None
    order: int | None = None

    def __post_init__(self) -> None:
        if self.order is None:
            object.__setattr__(self, "order", int(self.kind))

    def contribution(self, baseline: float) -> float:
        """
        Numeric amount this modifier adds when applied as a timed modifier.

        Flat modifiers contribute their value; percent kinds contribute a
        fraction of ``baseline``.
        """
        if self.kind is ModifierKind.FLAT:
            return self.value
        return baseline * self.value

    def __str__(self) -> str:
        return f"{self.kind.name}({self.value:+g}, order={self.order}, source={self.source})"
