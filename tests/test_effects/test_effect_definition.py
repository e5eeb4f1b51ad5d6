"""Tests for effect definitions."""

import pytest
from pydantic import ValidationError

from statcraft.effects.definition import DuplicatePolicy, EffectDefinition
from statcraft.stats.modifier import ModifierKind


class TestEffectDefinition:
    """Tests for EffectDefinition validation and helpers."""

    def test_defaults(self):
        """Only id, target stat and value are required."""
        definition = EffectDefinition(id="potion", affected_stat_id="strength", modifier_value=5)

        assert definition.modifier_kind is ModifierKind.FLAT
        assert definition.duplicate_policy is DuplicatePolicy.ALLOW
        assert definition.is_permanent is False
        assert definition.duration_seconds == 0
        assert definition.max_stacks == 1
        assert definition.is_periodic is False

    def test_from_mapping_with_names(self):
        """Kinds and policies are accepted by name in any case."""
        definition = EffectDefinition.model_validate(
            {
                "id": "rage",
                "affected_stat_id": "strength",
                "modifier_value": 0.2,
                "modifier_kind": "PercentMult",
                "duplicate_policy": "Stack",
                "max_stacks": 3,
            }
        )
        assert definition.modifier_kind is ModifierKind.PERCENT_MULT
        assert definition.duplicate_policy is DuplicatePolicy.STACK

    @pytest.mark.parametrize(
        "overrides",
        [
            {"id": ""},
            {"duration_seconds": -1},
            {"tick_interval_seconds": -0.5},
            {"tick_count": -1},
            {"max_stacks": 0},
            {"modifier_kind": "exponential"},
            {"duplicate_policy": "sometimes"},
        ],
    )
    def test_invalid_values(self, overrides):
        """Out-of-range and unknown values are rejected."""
        data = {"id": "potion", "affected_stat_id": "strength", "modifier_value": 5}
        data.update(overrides)
        with pytest.raises(ValidationError):
            EffectDefinition.model_validate(data)

    def test_frozen(self):
        definition = EffectDefinition(id="potion", affected_stat_id="strength", modifier_value=5)
        with pytest.raises(ValidationError):
            definition.modifier_value = 10

    def test_is_periodic(self):
        definition = EffectDefinition(
            id="poison", affected_stat_id="health", modifier_value=-5, tick_interval_seconds=1
        )
        assert definition.is_periodic

    def test_stack_factor(self):
        """Each stack above the first adds the per-stack bonus."""
        definition = EffectDefinition(
            id="rage", affected_stat_id="strength", modifier_value=10, per_stack_bonus=0.5
        )
        assert definition.stack_factor(0) == 1
        assert definition.stack_factor(1) == 1
        assert definition.stack_factor(2) == 1.5
        assert definition.stack_factor(3) == 2

    def test_create_modifier(self):
        """Modifiers carry the effect id as source and the scaled value."""
        definition = EffectDefinition(
            id="rage",
            affected_stat_id="strength",
            modifier_value=10,
            modifier_kind="percent_add",
            order=250,
            per_stack_bonus=0.5,
        )
        record = definition.create_modifier(3)

        assert record.value == 20
        assert record.kind is ModifierKind.PERCENT_ADD
        assert record.source == "rage"
        assert record.order == 250

    def test_create_modifier_default_order(self):
        definition = EffectDefinition(
            id="potion", affected_stat_id="strength", modifier_value=5, modifier_kind="percent_mult"
        )
        assert definition.create_modifier().order == int(ModifierKind.PERCENT_MULT)
