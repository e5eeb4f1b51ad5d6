"""Effect application and lifecycle.

The applier owns one :class:`EffectInstance` per (effect, target stat) pair
and drives the duplicate-handling transition tables in
:mod:`statcraft.effects.policies`. It touches stats only through their
public modifier API.

Timed waits and tick loops run as asyncio tasks tracked by the applier, so
callers can ``await applier.join()`` to wait for finite effects to play out
or ``await applier.aclose()`` to tear everything down.
"""

import asyncio
import functools
from collections.abc import Coroutine
from typing import Any
from uuid import UUID

import structlog

from statcraft.config import Settings, get_settings
from statcraft.stats.cancellation import CancellationHandle
from statcraft.stats.modifier import ModifierRecord
from statcraft.stats.numeric import StatValue

from .definition import EffectDefinition
from .instance import EffectInstance, EffectState
from .policies import TRANSITION_TABLES, Application, ApplyOutcome

logger = structlog.get_logger(__name__)


class EffectApplier:
    """
    Applies and removes effects on numeric stats.

    Must be used from within a running event loop; all stat mutation stays
    on that loop.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """
        Initialize the applier.

        Args:
            settings: Settings controlling the duplicate-handling choices.
                Uses the cached settings when omitted.
        """
        self.settings = settings or get_settings()
        self._instances: dict[tuple[str, UUID], EffectInstance] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending_tasks(self) -> int:
        """Number of timed waits and tick loops still running."""
        return len(self._tasks)

    def instance_for(
        self, definition: EffectDefinition, stat: StatValue
    ) -> EffectInstance | None:
        """Get the runtime instance of ``definition`` on ``stat``, if any."""
        return self._instances.get((definition.id, stat.uid))

    def state_of(self, definition: EffectDefinition, stat: StatValue) -> EffectState:
        """Current lifecycle state of ``definition`` on ``stat``."""
        instance = self.instance_for(definition, stat)
        if instance is None:
            return EffectState.IDLE
        return instance.resolve_state(stat.has_modifier_from_source(definition.id))

    async def apply_effect(
        self, definition: EffectDefinition | None, stat: StatValue | None
    ) -> ApplyOutcome:
        """
        Apply an effect to a stat according to its duplicate policy.

        Returns once the effect's first contribution is registered. Timed
        waits and tick loops keep running in the background.

        Args:
            definition: Effect to apply
            stat: Target numeric stat

        Returns:
            ApplyOutcome describing what happened. Missing or non-numeric
            targets and missing definitions give NOT_APPLICABLE.
        """
        if definition is None:
            logger.warning("effect_not_applicable", reason="missing_definition")
            return ApplyOutcome.NOT_APPLICABLE

        if not isinstance(stat, StatValue):
            logger.warning(
                "effect_not_applicable",
                reason="missing_stat" if stat is None else "non_numeric_stat",
                effect_id=definition.id,
                stat_id=getattr(stat, "stat_id", definition.affected_stat_id),
            )
            return ApplyOutcome.NOT_APPLICABLE

        key = (definition.id, stat.uid)
        instance = self._instances.get(key)
        if instance is None:
            instance = EffectInstance(effect_id=definition.id, stat_uid=stat.uid)
            self._instances[key] = instance

        state = instance.resolve_state(stat.has_modifier_from_source(definition.id))
        transition = TRANSITION_TABLES[definition.duplicate_policy][state]
        outcome = transition(Application(self, definition, instance, stat))

        logger.debug(
            "effect_applied",
            effect_id=definition.id,
            stat_id=stat.stat_id,
            policy=str(definition.duplicate_policy),
            state=str(state),
            outcome=str(outcome),
            stacks=instance.stacks,
        )

        # Give freshly started tick loops a chance to register their first tick
        await asyncio.sleep(0)
        return outcome

    def remove_effect(self, definition: EffectDefinition | None, stat: StatValue | None) -> None:
        """
        Remove an effect from a stat, from whatever state it is in.

        Cancels the effect's tick loops and waits, removes every modifier
        the effect contributed, and discards its runtime instance. Safe to
        call repeatedly.
        """
        if definition is None or not isinstance(stat, StatValue):
            return

        instance = self._instances.pop((definition.id, stat.uid), None)
        if instance is None:
            removed = stat.remove_all_modifiers_from_source(definition.id)
        else:
            removed = self.teardown(definition, stat, instance)

        if removed:
            logger.info("effect_removed", effect_id=definition.id, stat_id=stat.stat_id)

    def teardown(
        self, definition: EffectDefinition, stat: StatValue, instance: EffectInstance
    ) -> bool:
        """
        Cancel every loop and wait of ``instance`` and strip its modifiers.

        Returns:
            True if any modifier was removed from the stat
        """
        instance.cancel_all()
        removed = stat.remove_all_modifiers_from_source(definition.id)
        instance.reset()
        return removed

    # Primitives used by the transition tables

    def apply_modifier(self, app: Application, record: ModifierRecord, shared: bool = True) -> None:
        """
        Apply one modifier: static when the effect is permanent, timed otherwise.

        Args:
            app: Current application
            record: Modifier to apply
            shared: Tie the timed wait to the instance so a teardown cancels it
        """
        if app.definition.is_permanent:
            app.stat.add_modifier(record)
            return

        parent = app.instance.ensure_total_cancel() if shared else None
        task = app.stat.add_timed_modifier(record, app.definition.duration_seconds, cancel=parent)
        if shared:
            app.instance.timed_tasks.add(task)
            task.add_done_callback(app.instance.timed_tasks.discard)
        self._track(task)

    def start_tick_loop(self, app: Application, record: ModifierRecord) -> None:
        """Start a tick loop owned by the instance, replacing its loop handle."""
        handle = CancellationHandle()
        app.instance.tick_cancel = handle
        app.instance.tick_task = self._spawn(
            self._run_tick_loop(app.definition, app.stat, record, app.instance, handle),
            name=f"ticks-{app.definition.id}-{app.stat.stat_id}",
        )

    def start_loose_loop(self, app: Application, record: ModifierRecord) -> None:
        """Start a tick loop with its own private tick counter."""
        handle = CancellationHandle()
        counter = EffectInstance(effect_id=app.definition.id, stat_uid=app.stat.uid)
        app.instance.loose_loops.append(handle)
        task = self._spawn(
            self._run_tick_loop(app.definition, app.stat, record, counter, handle),
            name=f"ticks-{app.definition.id}-{app.stat.stat_id}",
        )
        task.add_done_callback(functools.partial(app.instance.forget_loose_loop, handle))

    async def _run_tick_loop(
        self,
        definition: EffectDefinition,
        stat: StatValue,
        record: ModifierRecord,
        counter: EffectInstance,
        handle: CancellationHandle,
    ) -> None:
        """
        Apply ``record`` as a timed modifier once per tick.

        Runs until the tick ceiling is reached (never, for permanent
        effects) or the handle is cancelled. Cancellation is only observed
        between ticks unless waits are interruptible; a tick finished after
        cancellation is not counted.
        """
        while (definition.is_permanent or counter.completed_ticks < definition.tick_count) and (
            not handle.cancelled
        ):
            completed = await stat.add_timed_modifier(
                record, definition.tick_interval_seconds, cancel=handle
            )
            if handle.cancelled or not completed:
                break

            counter.completed_ticks += 1
            logger.debug(
                "effect_tick",
                effect_id=definition.id,
                stat_id=stat.stat_id,
                tick=counter.completed_ticks,
                value=stat.value,
            )

        if handle.cancelled:
            logger.debug(
                "tick_loop_cancelled",
                effect_id=definition.id,
                stat_id=stat.stat_id,
                ticks=counter.completed_ticks,
            )
        else:
            logger.debug(
                "tick_loop_finished",
                effect_id=definition.id,
                stat_id=stat.stat_id,
                ticks=counter.completed_ticks,
            )

    # Task bookkeeping

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._track(task)
        return task

    def _track(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            logger.error(
                "effect_task_failed",
                task=task.get_name(),
                error=str(error),
                exc_info=error,
            )

    async def join(self) -> None:
        """
        Wait for every outstanding wait and tick loop to finish.

        Never returns while a permanent periodic effect is running; remove
        it or use :meth:`aclose` instead.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel every instance and task and wait for them to unwind."""
        for instance in self._instances.values():
            instance.cancel_all()
        self._instances.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.debug("effect_applier_closed", cancelled_tasks=len(tasks))
