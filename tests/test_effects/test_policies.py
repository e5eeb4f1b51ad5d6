"""Tests for duplicate policies on non-periodic effects."""

import pytest

from statcraft.effects import (
    ALLOW_TRANSITIONS,
    PREVENT_TRANSITIONS,
    REFRESH_TRANSITIONS,
    STACK_TRANSITIONS,
    TRANSITION_TABLES,
    ApplyOutcome,
    DuplicatePolicy,
    EffectDefinition,
    EffectState,
)
from statcraft.effects import policies
from statcraft.stats import TextStat, TextStatDefinition


def effect(**overrides) -> EffectDefinition:
    data = {
        "id": "blessing",
        "affected_stat_id": "strength",
        "modifier_value": 10,
        "is_permanent": True,
    }
    data.update(overrides)
    return EffectDefinition.model_validate(data)


class TestTransitionTables:
    """Tests for the shape of the transition tables."""

    def test_every_policy_covers_every_state(self):
        assert set(TRANSITION_TABLES) == set(DuplicatePolicy)
        for table in TRANSITION_TABLES.values():
            assert set(table) == set(EffectState)

    def test_notable_transitions(self):
        assert set(ALLOW_TRANSITIONS.values()) == {policies.allow_independent}
        assert set(STACK_TRANSITIONS.values()) == {policies.stack_push}
        assert PREVENT_TRANSITIONS[EffectState.TICKING] is policies.prevent_ticking
        assert PREVENT_TRANSITIONS[EffectState.ACTIVE] is policies.prevent_duplicate
        assert set(REFRESH_TRANSITIONS.values()) == {policies.refresh_restart}


class TestAllow:
    """Tests for the allow policy."""

    @pytest.mark.asyncio
    async def test_permanent_copies_accumulate(self, applier, make_stat):
        stat = make_stat(base=100)
        blessing = effect()

        assert await applier.apply_effect(blessing, stat) is ApplyOutcome.APPLIED
        assert await applier.apply_effect(blessing, stat) is ApplyOutcome.APPLIED

        assert stat.value == 120
        assert len(stat.modifiers) == 2
        assert applier.state_of(blessing, stat) is EffectState.ACTIVE

    @pytest.mark.asyncio
    async def test_timed_copies_expire_independently(self, applier, make_stat, clock):
        stat = make_stat(base=100)
        potion = effect(id="potion", modifier_value=5, is_permanent=False, duration_seconds=10)

        await applier.apply_effect(potion, stat)
        await clock.advance(4)
        await applier.apply_effect(potion, stat)
        assert stat.temporary_accumulation == 10

        await clock.advance(6)
        assert stat.temporary_accumulation == 5
        assert stat.permanent_accumulation == 5

        await clock.advance(4)
        assert stat.permanent_accumulation == 10
        assert stat.value == 110
        assert applier.pending_tasks == 0


class TestPrevent:
    """Tests for the prevent policy."""

    @pytest.mark.asyncio
    async def test_duplicate_suppressed(self, applier, make_stat):
        stat = make_stat(base=100)
        blessing = effect(duplicate_policy="prevent")

        assert await applier.apply_effect(blessing, stat) is ApplyOutcome.APPLIED
        assert await applier.apply_effect(blessing, stat) is ApplyOutcome.SUPPRESSED_DUPLICATE
        assert stat.value == 110

    @pytest.mark.asyncio
    async def test_applies_again_after_removal(self, applier, make_stat):
        stat = make_stat(base=100)
        blessing = effect(duplicate_policy="prevent")

        await applier.apply_effect(blessing, stat)
        applier.remove_effect(blessing, stat)
        assert stat.value == 100
        assert applier.state_of(blessing, stat) is EffectState.IDLE

        assert await applier.apply_effect(blessing, stat) is ApplyOutcome.APPLIED
        assert stat.value == 110

    @pytest.mark.asyncio
    async def test_only_static_modifiers_block(self, applier, make_stat):
        """Timed applications are not found by the duplicate check."""
        stat = make_stat(base=100)
        potion = effect(
            id="potion", duplicate_policy="prevent", is_permanent=False, duration_seconds=10
        )

        assert await applier.apply_effect(potion, stat) is ApplyOutcome.APPLIED
        assert await applier.apply_effect(potion, stat) is ApplyOutcome.APPLIED
        assert stat.value == 120


class TestStack:
    """Tests for the stack policy."""

    @pytest.mark.asyncio
    async def test_stacks_scale_and_cap(self, applier, make_stat):
        stat = make_stat(base=100)
        rage = effect(id="rage", duplicate_policy="stack", max_stacks=3, per_stack_bonus=0.5)

        assert await applier.apply_effect(rage, stat) is ApplyOutcome.APPLIED
        assert stat.value == 110
        assert await applier.apply_effect(rage, stat) is ApplyOutcome.APPLIED
        assert stat.value == 115
        assert await applier.apply_effect(rage, stat) is ApplyOutcome.APPLIED
        assert stat.value == 120

        assert await applier.apply_effect(rage, stat) is ApplyOutcome.STACK_CAPPED
        assert stat.value == 120
        assert len(stat.modifiers) == 1
        assert applier.instance_for(rage, stat).stacks == 3
        assert applier.state_of(rage, stat) is EffectState.STACKED

    @pytest.mark.asyncio
    async def test_removal_resets_stacks(self, applier, make_stat):
        stat = make_stat(base=100)
        rage = effect(id="rage", duplicate_policy="stack", max_stacks=3, per_stack_bonus=0.5)

        await applier.apply_effect(rage, stat)
        await applier.apply_effect(rage, stat)
        applier.remove_effect(rage, stat)
        assert stat.value == 100

        await applier.apply_effect(rage, stat)
        assert stat.value == 110
        assert applier.instance_for(rage, stat).stacks == 1

    @pytest.mark.asyncio
    async def test_timed_cap_keeps_adding_without_interruption(self, applier, make_stat, clock):
        """Replaced timed stacks still run out, so capped reapplications add up."""
        stat = make_stat(base=100)
        rage = effect(
            id="rage",
            duplicate_policy="stack",
            is_permanent=False,
            duration_seconds=10,
            max_stacks=2,
            per_stack_bonus=0.5,
        )

        assert await applier.apply_effect(rage, stat) is ApplyOutcome.APPLIED
        assert await applier.apply_effect(rage, stat) is ApplyOutcome.APPLIED
        assert await applier.apply_effect(rage, stat) is ApplyOutcome.STACK_CAPPED
        assert stat.value == 140

        await clock.advance(10)
        assert stat.permanent_accumulation == 40
        assert stat.value == 140

    @pytest.mark.asyncio
    async def test_timed_cap_replaces_with_interruption(self, strict_applier, make_stat, clock):
        """With interrupting waits a capped reapplication leaves the value unchanged."""
        stat = make_stat(base=100, interrupt=True)
        rage = effect(
            id="rage",
            duplicate_policy="stack",
            is_permanent=False,
            duration_seconds=10,
            max_stacks=2,
            per_stack_bonus=0.5,
        )

        await strict_applier.apply_effect(rage, stat)
        await strict_applier.apply_effect(rage, stat)
        assert stat.value == 115

        assert await strict_applier.apply_effect(rage, stat) is ApplyOutcome.STACK_CAPPED
        assert stat.value == 115

        await clock.advance(10)
        assert stat.permanent_accumulation == 15
        assert stat.value == 115


class TestRefresh:
    """Tests for the refresh policy."""

    @pytest.mark.asyncio
    async def test_permanent_keeps_one_copy(self, applier, make_stat):
        stat = make_stat(base=100)
        blessing = effect(duplicate_policy="refresh")

        for _ in range(3):
            assert await applier.apply_effect(blessing, stat) is ApplyOutcome.APPLIED

        assert stat.value == 110
        assert len(stat.modifiers) == 1

    @pytest.mark.asyncio
    async def test_timed_refresh_keeps_old_wait(self, applier, make_stat, clock):
        """Without interruption the torn-down wait still becomes permanent."""
        stat = make_stat(base=100)
        potion = effect(
            id="potion", duplicate_policy="refresh", is_permanent=False, duration_seconds=10
        )

        await applier.apply_effect(potion, stat)
        await applier.apply_effect(potion, stat)
        assert stat.value == 120

        await clock.advance(10)
        assert stat.permanent_accumulation == 20

    @pytest.mark.asyncio
    async def test_timed_refresh_interrupts_old_wait(self, strict_applier, make_stat, clock):
        """With interruption the torn-down wait is withdrawn."""
        stat = make_stat(base=100, interrupt=True)
        potion = effect(
            id="potion", duplicate_policy="refresh", is_permanent=False, duration_seconds=10
        )

        await strict_applier.apply_effect(potion, stat)
        await clock.advance(5)
        await strict_applier.apply_effect(potion, stat)
        assert stat.value == 110

        await clock.advance(5)
        assert stat.permanent_accumulation == 0
        await clock.advance(5)
        assert stat.permanent_accumulation == 10
        assert stat.value == 110


class TestRemoveAndNotApplicable:
    """Tests for removal and inapplicable targets."""

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, applier, make_stat):
        stat = make_stat(base=100)
        blessing = effect()

        await applier.apply_effect(blessing, stat)
        applier.remove_effect(blessing, stat)
        applier.remove_effect(blessing, stat)

        assert stat.value == 100
        assert applier.instance_for(blessing, stat) is None

    @pytest.mark.asyncio
    async def test_remove_never_applied(self, applier, make_stat):
        stat = make_stat(base=100)
        applier.remove_effect(effect(), stat)
        assert stat.value == 100

    @pytest.mark.asyncio
    async def test_missing_definition(self, applier, make_stat):
        outcome = await applier.apply_effect(None, make_stat())
        assert outcome is ApplyOutcome.NOT_APPLICABLE

    @pytest.mark.asyncio
    async def test_missing_stat(self, applier):
        assert await applier.apply_effect(effect(), None) is ApplyOutcome.NOT_APPLICABLE

    @pytest.mark.asyncio
    async def test_text_stat(self, applier):
        title = TextStat(TextStatDefinition(stat_id="strength", base_value="Mighty"))
        assert await applier.apply_effect(effect(), title) is ApplyOutcome.NOT_APPLICABLE
        assert title.value == "Mighty"

    @pytest.mark.asyncio
    async def test_instances_are_per_stat(self, applier, make_stat):
        """The same effect on two stats keeps separate state."""
        first = make_stat(base=100)
        second = make_stat(base=100)
        blessing = effect(duplicate_policy="prevent")

        await applier.apply_effect(blessing, first)
        assert await applier.apply_effect(blessing, second) is ApplyOutcome.APPLIED
        assert first.value == second.value == 110
