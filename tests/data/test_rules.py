"""Tests for the rules registry and compatible subset selection."""

from __future__ import annotations

import random

import pytest

from shiftropolis.data.rules import Rule, RuleID, RulesDatabase, create_default_rules
from shiftropolis.errors import ConfigurationError, NotFoundError
from shiftropolis.util.rng import RNGProvider


def _assert_pairwise_compatible(rules: tuple[Rule, ...]) -> None:
    for i, first in enumerate(rules):
        for second in rules[i + 1 :]:
            assert first.is_compatible_with(second), (first.id, second.id)


class TestRulesRegistry:
    def test_default_registry_has_all_rules_in_order(self) -> None:
        db = RulesDatabase()
        assert [rule.id for rule in db.all()] == list(RuleID)
        assert len(db) == 9

    def test_incompatibilities_are_symmetric(self) -> None:
        """Every listed incompatibility is also listed from the other side."""
        db = RulesDatabase()
        for rule in db.all():
            for other_id in rule.incompatible_with:
                assert rule.id in db.lookup(other_id).incompatible_with

    def test_one_sided_declaration_is_closed(self) -> None:
        """MOON_GRAVITY only lists NO_JUMP; the registry adds the reverse."""
        db = RulesDatabase()
        assert RuleID.MOON_GRAVITY in db.lookup(RuleID.NO_JUMP).incompatible_with
        assert not db.lookup(RuleID.NO_JUMP).is_compatible_with(
            db.lookup(RuleID.MOON_GRAVITY)
        )

    def test_lookup_by_string(self) -> None:
        db = RulesDatabase()
        assert db.lookup("LAVA_FLOOR").id is RuleID.LAVA_FLOOR

    def test_lookup_unknown_raises_not_found(self) -> None:
        with pytest.raises(NotFoundError):
            RulesDatabase().lookup("DOUBLE_JUMP")

    def test_not_found_is_a_key_error(self) -> None:
        with pytest.raises(KeyError):
            RulesDatabase().lookup("DOUBLE_JUMP")

    def test_duplicate_rule_rejected(self) -> None:
        rules = create_default_rules()
        with pytest.raises(ConfigurationError, match="Duplicate"):
            RulesDatabase([*rules, rules[0]])

    def test_unregistered_incompatibility_rejected(self) -> None:
        rules = [
            Rule(
                RuleID.NO_JUMP,
                "No Jump",
                incompatible_with=frozenset({RuleID.LOW_JUMP}),
            )
        ]
        with pytest.raises(ConfigurationError, match="unregistered"):
            RulesDatabase(rules)

    def test_self_incompatibility_rejected(self) -> None:
        rules = [
            Rule(
                RuleID.NO_JUMP,
                "No Jump",
                incompatible_with=frozenset({RuleID.NO_JUMP}),
            )
        ]
        with pytest.raises(ConfigurationError, match="itself"):
            RulesDatabase(rules)

    def test_rule_parameters_are_read_only(self) -> None:
        rule = RulesDatabase().lookup(RuleID.MOON_GRAVITY)
        assert rule.parameters["gravityMultiplier"] == pytest.approx(0.3)
        with pytest.raises(TypeError):
            rule.parameters["gravityMultiplier"] = 1.0  # type: ignore[index]

    def test_placement_bias_declared_on_rules(self) -> None:
        db = RulesDatabase()
        assert db.lookup(RuleID.LAVA_FLOOR).module_weight_multipliers
        assert not db.lookup(RuleID.NO_ATTACK).module_weight_multipliers


class TestCompatibleSubset:
    @pytest.mark.parametrize("seed", range(25))
    @pytest.mark.parametrize("count", [0, 1, 3, 5, 9])
    def test_subset_is_pairwise_compatible(self, seed: int, count: int) -> None:
        chosen = RulesDatabase().compatible_subset(count, random.Random(seed))
        assert len(chosen) <= count
        assert len({rule.id for rule in chosen}) == len(chosen)
        _assert_pairwise_compatible(chosen)

    def test_same_stream_same_selection(self) -> None:
        db = RulesDatabase()
        first = db.compatible_subset(4, RNGProvider(7).get("generation.rules"))
        second = db.compatible_subset(4, RNGProvider(7).get("generation.rules"))
        assert first == second

    def test_exhausted_pool_returns_fewer(self) -> None:
        """No jump rule set can hold more than one of the three jump rules."""
        db = RulesDatabase()
        for seed in range(10):
            chosen = db.compatible_subset(9, random.Random(seed))
            jump_rules = {RuleID.NO_JUMP, RuleID.LOW_JUMP, RuleID.HIGH_JUMP}
            assert len(jump_rules & {rule.id for rule in chosen}) <= 1
            assert len(chosen) < 9

    def test_zero_count_returns_empty(self) -> None:
        assert RulesDatabase().compatible_subset(0, random.Random(1)) == ()

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            RulesDatabase().compatible_subset(-1, random.Random(1))

    def test_single_rule_registry(self) -> None:
        db = RulesDatabase([Rule(RuleID.SPEED_UP, "Speed Up")])
        chosen = db.compatible_subset(3, random.Random(0))
        assert [rule.id for rule in chosen] == [RuleID.SPEED_UP]


class ScriptedStream:
    """Stand-in stream that replays fixed random() values."""

    def __init__(self, values: list[float]) -> None:
        self._values = iter(values)

    def random(self) -> float:
        return next(self._values)


class TestSelectionWeight:
    def test_difficulty_bias(self) -> None:
        db = RulesDatabase()
        easy = db.lookup(RuleID.ORB_COLLECTION)
        hard = db.lookup(RuleID.NO_ATTACK)
        medium = db.lookup(RuleID.MOON_GRAVITY)
        assert RulesDatabase.selection_weight(easy, ()) == pytest.approx(1.2)
        assert RulesDatabase.selection_weight(hard, ()) == pytest.approx(0.8)
        assert RulesDatabase.selection_weight(medium, ()) == pytest.approx(1.0)

    def test_movement_penalty_needs_two_movement_rules(self) -> None:
        db = RulesDatabase()
        high_jump = db.lookup(RuleID.HIGH_JUMP)
        one = (db.lookup(RuleID.SPEED_UP),)
        two = (db.lookup(RuleID.SPEED_UP), db.lookup(RuleID.NO_JUMP))
        assert RulesDatabase.selection_weight(high_jump, one) == pytest.approx(1.2)
        assert RulesDatabase.selection_weight(high_jump, two) == pytest.approx(0.6)

    def test_hazard_penalty(self) -> None:
        db = RulesDatabase()
        lava = db.lookup(RuleID.LAVA_FLOOR)
        rain = db.lookup(RuleID.PROJECTILE_RAIN)
        assert RulesDatabase.selection_weight(lava, (rain,)) == pytest.approx(1.0)
        assert RulesDatabase.selection_weight(lava, (rain, lava)) == pytest.approx(
            0.5
        )

    def test_penalty_ignores_other_kinds(self) -> None:
        db = RulesDatabase()
        no_attack = db.lookup(RuleID.NO_ATTACK)
        chosen = (db.lookup(RuleID.SPEED_UP), db.lookup(RuleID.LOW_JUMP))
        assert RulesDatabase.selection_weight(no_attack, chosen) == pytest.approx(0.8)


class TestWeightedDraw:
    def test_draw_walks_registration_order(self) -> None:
        """Each pick walks the remaining pool in registration order.

        0.0 lands on NO_JUMP, which also removes both jump modifiers and
        MOON_GRAVITY. The remaining pool weighs 1.2, 0.8, 1.0, 0.8, 1.2
        (total 5.0), so 0.99 lands on ORB_COLLECTION. The last pool weighs
        1.2, 0.8, 1.0, 0.8 (total 3.8), so 0.5 lands on NO_ATTACK.
        """
        chosen = RulesDatabase().compatible_subset(3, ScriptedStream([0.0, 0.99, 0.5]))
        assert [rule.id for rule in chosen] == [
            RuleID.NO_JUMP,
            RuleID.ORB_COLLECTION,
            RuleID.NO_ATTACK,
        ]

    def test_top_of_range_picks_last_rule(self) -> None:
        chosen = RulesDatabase().compatible_subset(1, ScriptedStream([0.999999]))
        assert [rule.id for rule in chosen] == [RuleID.MOON_GRAVITY]

    def test_easy_rules_drawn_more_often(self) -> None:
        """Four easy rules at 1.2 against two hard ones at 0.8 (total 9.4).

        A uniform draw would give easy rules 4/9 of first picks; the biased
        draw gives 4.8/9.4.
        """
        db = RulesDatabase()
        stream = RNGProvider(2024).get("test.rule_bias")
        draws = 4000
        easy = hard = 0
        for _ in range(draws):
            (rule,) = db.compatible_subset(1, stream)
            easy += rule.has_tag("difficulty_easy")
            hard += rule.has_tag("difficulty_hard")

        assert easy / draws > 0.47
        # Per rule, an easy rule comes up more often than a hard one
        assert easy / 4 > hard / 2 * 1.2
