"""
Unit tests for tools/dice_roller.py — Pure Python dice parser/roller.

No mocks needed. Tests use random.seed() or a seeded random.Random.
"""

import random

from tools.dice_roller import (
    format_modifier,
    format_roll_detail,
    parse_and_roll,
    parse_formula,
    roll_d20,
    roll_dice,
)


class ScriptedRng:
    """Returns the given values from randint, in order."""

    def __init__(self, values):
        self.values = list(values)

    def randint(self, low, high):
        return self.values.pop(0)


class TestRollD20:
    def test_normal_rolls_one_die(self):
        roll = roll_d20("normal", ScriptedRng([13]))
        assert roll.die1 == 13
        assert roll.die2 is None
        assert roll.kept == 13
        assert roll.total == 13

    def test_advantage_keeps_higher(self):
        roll = roll_d20("advantage", ScriptedRng([4, 17]))
        assert roll.kept == 17
        assert roll.discarded == 4

    def test_disadvantage_keeps_lower(self):
        roll = roll_d20("disadvantage", ScriptedRng([4, 17]))
        assert roll.kept == 4
        assert roll.discarded == 17

    def test_natural_flags_follow_kept_die(self):
        roll = roll_d20("advantage", ScriptedRng([1, 20]))
        assert roll.natural_crit is True
        assert roll.natural_fail is False

        roll = roll_d20("disadvantage", ScriptedRng([1, 20]))
        assert roll.natural_crit is False
        assert roll.natural_fail is True

    def test_unknown_mode_rolls_normally(self):
        roll = roll_d20("sideways", ScriptedRng([9]))
        assert roll.mode == "normal"
        assert roll.kept == 9

    def test_same_seed_same_roll(self):
        a = roll_d20("advantage", random.Random(7))
        b = roll_d20("advantage", random.Random(7))
        assert a == b


class TestRollDice:
    def test_count_and_range(self):
        rolls = roll_dice(4, 6, random.Random(3))
        assert len(rolls) == 4
        assert all(1 <= r <= 6 for r in rolls)

    def test_zero_count_is_empty(self):
        assert roll_dice(0, 6) == []

    def test_zero_sides_is_empty(self):
        assert roll_dice(2, 0) == []


class TestParseFormula:
    def test_full_formula(self):
        assert parse_formula("2d6+3") == {"count": 2, "faces": 6, "modifier": 3}

    def test_negative_modifier(self):
        assert parse_formula("1d8-2") == {"count": 1, "faces": 8, "modifier": -2}

    def test_implicit_count(self):
        assert parse_formula("d20") == {"count": 1, "faces": 20, "modifier": 0}

    def test_garbage(self):
        assert parse_formula("banana") is None


class TestParseAndRoll:
    """Test the dice formula parser and roller."""

    def test_simple_d20(self):
        result = parse_and_roll("1d20")
        assert 1 <= result["total"] <= 20
        assert result["formula"] == "1d20"
        assert len(result["rolls"]) == 1

    def test_with_positive_modifier(self):
        random.seed(42)
        result = parse_and_roll("1d20+5")
        assert result["total"] == result["rolls"][0] + 5
        assert result["modifier"] == 5

    def test_with_negative_modifier(self):
        random.seed(42)
        result = parse_and_roll("1d8-2")
        assert result["total"] == result["rolls"][0] - 2

    def test_multiple_dice(self):
        result = parse_and_roll("2d6+3")
        assert len(result["rolls"]) == 2
        assert result["total"] == sum(result["rolls"]) + 3

    def test_flat_integer(self):
        result = parse_and_roll("5")
        assert result["total"] == 5
        assert result["rolls"] == []
        assert result["isCritical"] is False
        assert result["isFumble"] is False

    def test_critical_detection(self):
        result = parse_and_roll("1d20", ScriptedRng([20]))
        assert result["isCritical"] is True
        assert result["isFumble"] is False

    def test_fumble_detection(self):
        result = parse_and_roll("1d20+3", ScriptedRng([1]))
        assert result["isFumble"] is True
        assert result["total"] == 4

    def test_no_crit_on_multi_dice(self):
        result = parse_and_roll("2d20", ScriptedRng([20, 20]))
        assert result["isCritical"] is False

    def test_no_crit_on_non_d20(self):
        result = parse_and_roll("1d6", ScriptedRng([6]))
        assert result["isCritical"] is False

    def test_invalid_formula_fallback(self):
        result = parse_and_roll("banana")
        assert result["total"] == 0
        assert result["rolls"] == []

    def test_case_insensitive(self):
        upper = parse_and_roll("1D20+5", random.Random(42))
        lower = parse_and_roll("1d20+5", random.Random(42))
        assert upper["total"] == lower["total"]


class TestFormatting:
    def test_format_modifier(self):
        assert format_modifier(3) == "+3"
        assert format_modifier(-1) == "-1"
        assert format_modifier(0) == "+0"

    def test_roll_detail(self):
        result = parse_and_roll("2d6+3", ScriptedRng([4, 2]))
        assert format_roll_detail("2d6+3", result) == "2d6+3: [4, 2]+3 = 9"

    def test_flat_detail(self):
        assert format_roll_detail("5", parse_and_roll("5")) == "5 = 5"

    def test_no_modifier_detail(self):
        result = parse_and_roll("1d20", ScriptedRng([11]))
        assert format_roll_detail("1d20", result) == "1d20: [11] = 11"


class TestRollDistribution:
    def test_kept_die_matches_mode_for_many_seeds(self):
        for seed in range(200):
            normal = roll_d20("normal", random.Random(seed))
            assert 1 <= normal.total <= 20
            adv = roll_d20("advantage", random.Random(seed))
            assert adv.total == max(adv.die1, adv.die2)
            dis = roll_d20("disadvantage", random.Random(seed))
            assert dis.total == min(dis.die1, dis.die2)

    def test_advantage_beats_normal_beats_disadvantage(self):
        rng = random.Random(2024)
        n = 10000
        normal = sum(roll_d20("normal", rng).total for _ in range(n)) / n
        advantage = sum(roll_d20("advantage", rng).total for _ in range(n)) / n
        disadvantage = sum(roll_d20("disadvantage", rng).total for _ in range(n)) / n
        assert advantage > 13.0
        assert disadvantage < 7.5
        assert 10.0 < normal < 11.0
        assert advantage > normal > disadvantage
