"""Per-target runtime state of an effect."""

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from uuid import UUID

from statcraft.stats.cancellation import CancellationHandle


class EffectState(StrEnum):
    """Lifecycle states of an effect on one target stat."""

    IDLE = "idle"  # Nothing applied
    ACTIVE = "active"  # Static modifier or timed wait outstanding
    TICKING = "ticking"  # Tick loop running
    STACKED = "stacked"  # At least one stack (may also be ticking)


@dataclass
class EffectInstance:
    """
    Runtime state of one effect definition on one target stat.

    Created on first application and reset by a full removal. Owned by the
    applier that created it; never shared between targets.
    """

    effect_id: str
    stat_uid: UUID
    stacks: int = 0
    completed_ticks: int = 0
    tick_cancel: CancellationHandle | None = None
    total_cancel: CancellationHandle | None = None
    tick_task: "asyncio.Task[None] | None" = None
    timed_tasks: set["asyncio.Task[bool]"] = field(default_factory=set)
    loose_loops: list[CancellationHandle] = field(default_factory=list)

    @property
    def ticking(self) -> bool:
        """Whether the instance's own tick loop is still running."""
        return self.tick_task is not None and not self.tick_task.done()

    @property
    def waiting(self) -> bool:
        """Whether a timed wait started by this instance is outstanding."""
        return any(not task.done() for task in self.timed_tasks)

    def resolve_state(self, has_static_modifier: bool) -> EffectState:
        """
        Current lifecycle state.

        Args:
            has_static_modifier: Whether the target holds a static modifier
                from this effect
        """
        if self.stacks > 0:
            return EffectState.STACKED
        if self.ticking:
            return EffectState.TICKING
        if has_static_modifier or self.waiting:
            return EffectState.ACTIVE
        return EffectState.IDLE

    def ensure_total_cancel(self) -> CancellationHandle:
        """Handle covering every timed wait of the current application."""
        if self.total_cancel is None or self.total_cancel.cancelled:
            self.total_cancel = CancellationHandle()
        return self.total_cancel

    def cancel_tick_loop(self) -> None:
        """Signal the running tick loop to stop and forget it."""
        if self.tick_cancel is not None:
            self.tick_cancel.cancel()
        self.tick_cancel = None
        self.tick_task = None

    def cancel_all(self) -> None:
        """Signal every loop and wait started through this instance."""
        self.cancel_tick_loop()

        if self.total_cancel is not None:
            self.total_cancel.cancel()
            self.total_cancel = None

        for handle in self.loose_loops:
            handle.cancel()
        self.loose_loops.clear()

    def forget_loose_loop(
        self, handle: CancellationHandle, _task: "asyncio.Task[None] | None" = None
    ) -> None:
        """Drop a finished Allow loop's handle."""
        if handle in self.loose_loops:
            self.loose_loops.remove(handle)

    def reset(self) -> None:
        """Return counters to zero and forget tracked waits."""
        self.stacks = 0
        self.completed_ticks = 0
        self.timed_tasks = set()
