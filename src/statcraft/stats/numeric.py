"""Numeric stat values.

A :class:`StatValue` composes a base value with static modifiers and two
running accumulations fed by timed modifiers:

- temporary: contributions of timed modifiers still waiting out their
  duration
- permanent: contributions of timed modifiers whose duration elapsed

Once a timed modifier's clock runs out its contribution moves from the
temporary pool to the permanent pool instead of disappearing. Potions and
ticking effects therefore leave a lasting mark on the stat.

All mutation happens on the event loop thread; the engine relies on
cooperative scheduling rather than locks.
"""

import asyncio
import functools
import itertools
from collections.abc import Awaitable, Callable, Hashable, Sequence
from dataclasses import dataclass
from uuid import UUID, uuid4

import structlog

from statcraft.config import get_settings

from .cancellation import CancellationHandle
from .definition import StatDefinition
from .events import Subscriptions, ValueHandler
from .modifier import ModifierKind, ModifierRecord

logger = structlog.get_logger(__name__)

# Decimal places kept after composing static modifiers
COMPOSE_PRECISION = 4

Sleep = Callable[[float], Awaitable[None]]


def compose(base: float, modifiers: Sequence[ModifierRecord]) -> float:
    """
    Compose static modifiers onto a base value.

    Modifiers are applied in ascending ``order``, ties keeping insertion
    order. Flat modifiers add to the running total and percent-mult
    modifiers multiply it. Percent-add modifiers collect in a bucket that is
    applied as a single ``(1 + sum)`` factor right after the next modifier
    of another kind, or at the end of the sequence.

    Args:
        base: Starting value
        modifiers: Modifiers in insertion order

    Returns:
        Composed value rounded to ``COMPOSE_PRECISION`` decimal places

    Examples:
        >>> compose(100, [ModifierRecord(20, ModifierKind.FLAT),
        ...               ModifierRecord(0.1, ModifierKind.PERCENT_ADD),
        ...               ModifierRecord(0.5, ModifierKind.PERCENT_MULT)])
        198.0
    """
    ordered = sorted(modifiers, key=lambda mod: mod.order)
    last_index = len(ordered) - 1

    total = base
    pending_percent = 0.0

    for index, mod in enumerate(ordered):
        if mod.kind is ModifierKind.FLAT:
            total += mod.value
        elif mod.kind is ModifierKind.PERCENT_ADD:
            pending_percent += mod.value
        elif mod.kind is ModifierKind.PERCENT_MULT:
            total *= 1 + mod.value

        if mod.kind is not ModifierKind.PERCENT_ADD or index == last_index:
            total *= 1 + pending_percent
            pending_percent = 0.0

    return round(total, COMPOSE_PRECISION)


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp ``value`` into ``[lower, upper]``."""
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


@dataclass
class TimedEntry:
    """Registry entry for one outstanding timed modifier."""

    key: int
    record: ModifierRecord
    contribution: float
    handle: CancellationHandle
    settled: bool = False  # Contribution already migrated or withdrawn


class StatValue:
    """
    Runtime value of one numeric stat.

    ``value = clamp(compose(base, modifiers) + temporary + permanent, min, max)``

    The composed part is cached and only recomputed after a modifier change
    or when the base value differs from the one last composed.
    """

    def __init__(
        self,
        definition: StatDefinition,
        *,
        sleep: Sleep | None = None,
        interrupt_cancelled_waits: bool | None = None,
    ) -> None:
        """
        Initialize a stat from its definition.

        Args:
            definition: Stat definition supplying base value and bounds
            sleep: Coroutine function used to wait out timed modifiers
                (defaults to ``asyncio.sleep``)
            interrupt_cancelled_waits: Override for the setting of the same
                name; see :meth:`add_timed_modifier`
        """
        if interrupt_cancelled_waits is None:
            interrupt_cancelled_waits = get_settings().interrupt_cancelled_waits

        self.uid: UUID = uuid4()
        self.definition = definition
        self.min_value = definition.min_value
        self.max_value = definition.max_value

        self._base = definition.base_value
        self._last_base = self._base
        self._composed = 0.0
        self._dirty = True

        self._modifiers: list[ModifierRecord] = []
        self._timed: dict[int, TimedEntry] = {}
        self._timed_keys = itertools.count(1)
        self._temporary = 0.0
        self._permanent = 0.0

        self._sleep: Sleep = sleep or asyncio.sleep
        self._interrupt_cancelled_waits = interrupt_cancelled_waits
        self._subscriptions = Subscriptions()

    def __repr__(self) -> str:
        return f"StatValue(stat_id={self.stat_id!r}, value={self.value})"

    @property
    def stat_id(self) -> str:
        """Identifier from the stat definition."""
        return self.definition.stat_id

    @property
    def base(self) -> float:
        """Base value before modifiers."""
        return self._base

    @base.setter
    def base(self, value: float) -> None:
        if value != self._base:
            self._base = value
            self._notify()

    @property
    def value(self) -> float:
        """Final clamped value."""
        if self._dirty or self._base != self._last_base:
            self._last_base = self._base
            self._composed = compose(self._base, self._modifiers)
            self._dirty = False

        return clamp(
            self._composed + self._temporary + self._permanent,
            self.min_value,
            self.max_value,
        )

    @property
    def int_value(self) -> int:
        """Final value rounded to the nearest integer (ties to even)."""
        return int(round(self.value))

    @property
    def modifiers(self) -> tuple[ModifierRecord, ...]:
        """Static modifiers in insertion order."""
        return tuple(self._modifiers)

    @property
    def temporary_accumulation(self) -> float:
        return self._temporary

    @property
    def permanent_accumulation(self) -> float:
        return self._permanent

    @property
    def timed_count(self) -> int:
        """Number of timed modifiers still registered."""
        return len(self._timed)

    # Subscriptions

    def subscribe(self, handler: ValueHandler) -> UUID:
        """Call ``handler(new_value)`` after every value-affecting change."""
        return self._subscriptions.subscribe(handler)

    def unsubscribe(self, token: UUID) -> bool:
        return self._subscriptions.unsubscribe(token)

    def _notify(self) -> None:
        if self._subscriptions:
            self._subscriptions.publish(self.value)

    # Static modifiers

    def add_modifier(self, record: ModifierRecord) -> None:
        """Add a static modifier. Duplicates are not checked."""
        self._modifiers.append(record)
        self._dirty = True
        self._notify()

    def has_modifier_from_source(self, source: Hashable) -> bool:
        """
        Check for a static modifier from ``source``.

        Timed modifiers are not considered: the question answered is whether
        a persistent effect is active, not whether a wait is in progress.
        """
        return any(mod.source == source for mod in self._modifiers)

    def remove_all_modifiers_from_source(self, source: Hashable) -> bool:
        """
        Remove static and timed modifiers contributed by ``source``.

        Timed modifiers lose their registry entry and have their handle
        cancelled. Whether their contribution is withdrawn depends on
        ``interrupt_cancelled_waits`` (see :meth:`add_timed_modifier`).

        Args:
            source: Source identity to match

        Returns:
            True if anything was removed, False if nothing matched
        """
        kept = [mod for mod in self._modifiers if mod.source != source]
        removed_static = len(kept) != len(self._modifiers)
        if removed_static:
            self._modifiers = kept
            self._dirty = True

        timed_keys = [key for key, entry in self._timed.items() if entry.record.source == source]
        withdrawn = False
        for key in timed_keys:
            entry = self._timed.pop(key)
            entry.handle.cancel()
            if self._interrupt_cancelled_waits:
                withdrawn = self._withdraw(entry, notify=False) or withdrawn

        if removed_static or withdrawn:
            self._notify()

        if removed_static or timed_keys:
            logger.debug(
                "modifiers_removed",
                stat_id=self.stat_id,
                source=str(source),
                static=removed_static,
                timed=len(timed_keys),
            )

        return removed_static or bool(timed_keys)

    # Timed modifiers

    def add_timed_modifier(
        self,
        record: ModifierRecord,
        duration: float,
        *,
        cancel: CancellationHandle | None = None,
    ) -> "asyncio.Task[bool]":
        """
        Apply a modifier's contribution now and make it permanent later.

        The contribution is computed immediately against
        ``base + temporary`` so stacked timed effects compound on each
        other, and is added to the temporary pool. The returned task waits
        ``duration`` seconds and then moves the contribution to the
        permanent pool.

        Cancellation (through ``cancel`` or
        :meth:`remove_all_modifiers_from_source`) always drops the registry
        entry. With ``interrupt_cancelled_waits`` disabled the wait still
        runs to completion and the contribution still becomes permanent.
        With it enabled the wait stops early and the contribution is
        withdrawn.

        Must be called from within a running event loop.

        Args:
            record: Modifier to apply
            duration: Seconds before the contribution becomes permanent
            cancel: Parent cancellation context, e.g. a tick loop's handle

        Returns:
            Task resolving to True if the wait ran to completion
        """
        loop = asyncio.get_running_loop()

        contribution = record.contribution(self._base + self._temporary)
        handle = cancel.child() if cancel is not None else CancellationHandle()
        entry = TimedEntry(
            key=next(self._timed_keys),
            record=record,
            contribution=contribution,
            handle=handle,
        )
        self._timed[entry.key] = entry
        self._temporary += contribution
        self._dirty = True
        self._notify()

        task = loop.create_task(
            self._run_timed(entry, duration),
            name=f"timed-{self.stat_id}-{entry.key}",
        )
        task.add_done_callback(functools.partial(self._on_timed_cancelled, entry))
        return task

    async def _run_timed(self, entry: TimedEntry, duration: float) -> bool:
        try:
            if self._interrupt_cancelled_waits:
                completed = await entry.handle.race(self._sleep(duration))
            else:
                await self._sleep(duration)
                completed = True
        finally:
            self._timed.pop(entry.key, None)
            entry.handle.detach()

        if completed:
            self._migrate(entry)
        else:
            self._withdraw(entry)
        return completed

    def _on_timed_cancelled(self, entry: TimedEntry, task: "asyncio.Task[bool]") -> None:
        # Task torn down from outside (shutdown): leave no temporary residue
        if task.cancelled():
            self._timed.pop(entry.key, None)
            entry.handle.detach()
            self._withdraw(entry)

    def _migrate(self, entry: TimedEntry) -> None:
        if entry.settled:
            return
        entry.settled = True
        self._temporary -= entry.contribution
        self._permanent += entry.contribution
        self._dirty = True

        logger.debug(
            "timed_modifier_expired",
            stat_id=self.stat_id,
            source=str(entry.record.source),
            contribution=entry.contribution,
        )
        if entry.contribution != 0:
            self._notify()

    def _withdraw(self, entry: TimedEntry, notify: bool = True) -> bool:
        if entry.settled:
            return False
        entry.settled = True
        self._temporary -= entry.contribution
        self._dirty = True

        logger.debug(
            "timed_modifier_withdrawn",
            stat_id=self.stat_id,
            source=str(entry.record.source),
            contribution=entry.contribution,
        )
        if notify:
            self._notify()
        return True
