"""
Duplicate-handling transition tables.

Each duplicate policy is a table mapping the effect's current state on the
target to the transition run when the effect is applied again. Keeping the
tables separate lets every policy's teardown and rebuild rules be read and
tested on their own.

Transitions are synchronous: they register contributions immediately and
leave timed waits and tick loops running as tasks owned by the applier.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from statcraft.effects.definition import DuplicatePolicy, EffectDefinition
from statcraft.effects.instance import EffectInstance, EffectState
from statcraft.stats.numeric import StatValue

if TYPE_CHECKING:
    from statcraft.effects.applier import EffectApplier

logger = structlog.get_logger(__name__)


class ApplyOutcome(StrEnum):
    """Result of applying an effect."""

    APPLIED = "applied"
    SUPPRESSED_DUPLICATE = "suppressed_duplicate"
    STACK_CAPPED = "stack_capped"
    NOT_APPLICABLE = "not_applicable"


@dataclass
class Application:
    """Everything a transition needs to act on one apply call."""

    applier: "EffectApplier"
    definition: EffectDefinition
    instance: EffectInstance
    stat: StatValue


Transition = Callable[[Application], ApplyOutcome]


def apply_fresh(app: Application) -> ApplyOutcome:
    """Start the effect on the instance: a tick loop or a single modifier."""
    record = app.definition.create_modifier()
    if app.definition.is_periodic:
        app.applier.start_tick_loop(app, record)
    else:
        app.applier.apply_modifier(app, record)
    return ApplyOutcome.APPLIED


# Allow


def allow_independent(app: Application) -> ApplyOutcome:
    """Apply an independent copy that expires on its own."""
    record = app.definition.create_modifier()
    if app.definition.is_periodic:
        app.applier.start_loose_loop(app, record)
    else:
        app.applier.apply_modifier(app, record, shared=False)
    return ApplyOutcome.APPLIED


# Prevent


def prevent_ticking(app: Application) -> ApplyOutcome:
    """
    Start another tick loop for a periodic effect.

    Periodic effects are not checked for an existing loop. Unless
    ``prevent_replaces_tick_loops`` is set, the new loop's handle simply
    replaces the old one and the previous loop keeps running unowned.
    """
    if app.applier.settings.prevent_replaces_tick_loops:
        app.instance.cancel_tick_loop()
    elif app.instance.ticking:
        logger.debug(
            "tick_loop_orphaned",
            effect_id=app.definition.id,
            stat_id=app.stat.stat_id,
        )
    app.applier.start_tick_loop(app, app.definition.create_modifier())
    return ApplyOutcome.APPLIED


def prevent_duplicate(app: Application) -> ApplyOutcome:
    """Reject the application while a static modifier from the effect is present."""
    if app.definition.is_periodic:
        return prevent_ticking(app)

    if app.stat.has_modifier_from_source(app.definition.id):
        logger.info(
            "duplicate_effect_suppressed",
            effect_id=app.definition.id,
            stat_id=app.stat.stat_id,
        )
        return ApplyOutcome.SUPPRESSED_DUPLICATE

    return apply_fresh(app)


# Stack


def stack_push(app: Application) -> ApplyOutcome:
    """
    Add a stack and replace the current contribution with the scaled one.

    At the stack ceiling the stack count is left unchanged and the effect
    is reapplied at the same scaled value.
    """
    definition, instance = app.definition, app.instance

    capped = instance.stacks >= definition.max_stacks
    if capped:
        logger.info(
            "effect_stack_capped",
            effect_id=definition.id,
            stat_id=app.stat.stat_id,
            stacks=instance.stacks,
            max_stacks=definition.max_stacks,
        )
    else:
        instance.stacks += 1

    record = definition.create_modifier(instance.stacks)

    if definition.is_periodic:
        instance.cancel_tick_loop()
        app.applier.start_tick_loop(app, record)
    else:
        app.stat.remove_all_modifiers_from_source(definition.id)
        app.applier.apply_modifier(app, record)

    logger.debug(
        "effect_stacked",
        effect_id=definition.id,
        stat_id=app.stat.stat_id,
        stacks=instance.stacks,
        value=record.value,
    )
    return ApplyOutcome.STACK_CAPPED if capped else ApplyOutcome.APPLIED


# Refresh


def refresh_restart(app: Application) -> ApplyOutcome:
    """
    Tear the effect down completely and apply it from scratch.

    Runs from every state, Idle included: a finished tick loop leaves its
    tick count behind and only a teardown resets it.
    """
    app.applier.teardown(app.definition, app.stat, app.instance)
    logger.debug("effect_refreshed", effect_id=app.definition.id, stat_id=app.stat.stat_id)
    return apply_fresh(app)


ALLOW_TRANSITIONS: Mapping[EffectState, Transition] = {
    EffectState.IDLE: allow_independent,
    EffectState.ACTIVE: allow_independent,
    EffectState.TICKING: allow_independent,
    EffectState.STACKED: allow_independent,
}

PREVENT_TRANSITIONS: Mapping[EffectState, Transition] = {
    EffectState.IDLE: prevent_duplicate,
    EffectState.ACTIVE: prevent_duplicate,
    EffectState.TICKING: prevent_ticking,
    EffectState.STACKED: prevent_duplicate,
}

STACK_TRANSITIONS: Mapping[EffectState, Transition] = {
    EffectState.IDLE: stack_push,
    EffectState.ACTIVE: stack_push,
    EffectState.TICKING: stack_push,
    EffectState.STACKED: stack_push,
}

REFRESH_TRANSITIONS: Mapping[EffectState, Transition] = {
    EffectState.IDLE: refresh_restart,
    EffectState.ACTIVE: refresh_restart,
    EffectState.TICKING: refresh_restart,
    EffectState.STACKED: refresh_restart,
}

TRANSITION_TABLES: Mapping[DuplicatePolicy, Mapping[EffectState, Transition]] = {
    DuplicatePolicy.ALLOW: ALLOW_TRANSITIONS,
    DuplicatePolicy.PREVENT: PREVENT_TRANSITIONS,
    DuplicatePolicy.STACK: STACK_TRANSITIONS,
    DuplicatePolicy.REFRESH: REFRESH_TRANSITIONS,
}
