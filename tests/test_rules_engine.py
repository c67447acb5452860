"""
Tests for engine/rules_engine.py, engine/turn_manager.py and engine/initiative.py.
"""

import random

import pytest

from engine.errors import CombatStateError
from engine.initiative import roll_initiative
from engine.rules_engine import (
    apply_damage,
    apply_healing,
    check_end_of_combat,
    critical_damage_notation,
    get_hp_status,
    validate_and_clamp_hp,
)
from engine.turn_manager import (
    find_next_active_combatant,
    has_more_ai_turns,
    next_turn_index,
    should_skip_turn,
)
from models.characters import Character
from models.combat import Combatant
from models.enemies import Enemy


class FixedRng:
    def __init__(self, *values):
        self.values = list(values)

    def randint(self, low, high):
        return self.values.pop(0)


class TestApplyDamage:
    def test_partial_damage(self, hero):
        result = apply_damage(hero, 7, is_enemy=False)
        assert (result.previous_hp, result.new_hp) == (20, 13)
        assert hero.status == "active"

    def test_player_at_zero_is_unconscious(self, hero):
        result = apply_damage(hero, 20, is_enemy=False)
        assert result.is_unconscious is True
        assert result.is_dead is False
        assert hero.status == "unconscious"

    def test_enemy_at_zero_is_dead(self, goblin):
        result = apply_damage(goblin, 12, is_enemy=True)
        assert goblin.hp.current == 0
        assert goblin.status == "dead"
        assert result.is_dead is True

    def test_massive_damage_kills_player(self, hero):
        result = apply_damage(hero, 40, is_enemy=False)
        assert result.massive_damage is True
        assert hero.status == "dead"

    def test_negative_damage_ignored(self, hero):
        assert apply_damage(hero, -5, is_enemy=False).new_hp == 20


class TestApplyHealing:
    def test_capped_at_max(self, hero):
        hero.hp.current = 15
        result = apply_healing(hero, 10)
        assert hero.hp.current == 20
        assert result.healed == 5

    def test_revives_unconscious(self, hero):
        hero.hp.current = 0
        result = apply_healing(hero, 4)
        assert result.revived is True
        assert hero.status == "active"

    def test_dead_stay_dead(self, goblin):
        apply_damage(goblin, 10, is_enemy=True)
        assert apply_healing(goblin, 5).healed == 0
        assert goblin.status == "dead"


class TestHpHelpers:
    @pytest.mark.parametrize("current,expected", [
        (20, "Healthy"), (18, "Healthy"), (12, "Injured"), (4, "Wounded"), (3, "Badly Wounded"), (0, "Defeated"),
    ])
    def test_status_bands(self, current, expected):
        assert get_hp_status(current, 20) == expected

    def test_clamp(self, hero):
        hero.hp.current = 50
        assert validate_and_clamp_hp(hero).hp.current == 20

    def test_critical_notation(self):
        assert critical_damage_notation("1d6", 3, True) == "2d6+3"
        assert critical_damage_notation("2d8", -1, True) == "4d8-1"
        assert critical_damage_notation("1d6", 0, False) == "1d6"


class TestEndOfCombat:
    def test_all_enemies_dead(self, hero, goblin):
        apply_damage(goblin, 10, is_enemy=True)
        end = check_end_of_combat([hero], [goblin])
        assert end.combat_ended is True
        assert end.winner == "party"

    def test_all_party_unconscious(self, hero, goblin):
        apply_damage(hero, 20, is_enemy=False)
        end = check_end_of_combat([hero], [goblin])
        assert end.combat_ended is True
        assert end.winner == "enemies"
        assert end.reason == "All allies unconscious"

    def test_mixed_dead_and_unconscious_party(self, hero, companion, goblin):
        apply_damage(hero, 20, is_enemy=False)
        apply_damage(companion, 30, is_enemy=False)
        assert check_end_of_combat([hero, companion], [goblin]).winner == "enemies"

    def test_one_enemy_standing(self, hero, goblin):
        other = Enemy(id="goblin", unique_id="goblin-2", name="Goblin")
        apply_damage(goblin, 10, is_enemy=True)
        assert check_end_of_combat([hero], [goblin, other]).combat_ended is False


def order(*specs):
    return [Combatant(id=i, character_name=i, controlled_by=c, status=s) for i, c, s in specs]


class TestTurnManager:
    def test_next_index_wraps(self):
        assert next_turn_index(2, 3) == 0
        assert next_turn_index(0, 3) == 1

    def test_empty_order_raises(self):
        with pytest.raises(CombatStateError):
            next_turn_index(0, 0)

    def test_skip_rules(self):
        assert should_skip_turn(Combatant(id="a", character_name="A", status="dead")) is True
        assert should_skip_turn(Combatant(id="a", character_name="A", status="unconscious")) is True
        assert should_skip_turn(Combatant(id="a", character_name="A")) is False

    def test_find_next_active(self):
        slots = order(("a", "Player", "active"), ("b", "AI", "dead"), ("c", "AI", "active"))
        index, combatant = find_next_active_combatant(slots, 0)
        assert index == 2
        assert combatant.id == "c"

    def test_nobody_can_act(self):
        slots = order(("a", "AI", "dead"), ("b", "AI", "dead"))
        assert find_next_active_combatant(slots, 0)[1] is None

    def test_has_more_ai_turns(self):
        slots = order(("a", "Player", "active"), ("b", "AI", "active"))
        assert has_more_ai_turns(slots, 0) is True
        assert has_more_ai_turns(slots, 1) is False


class TestInitiative:
    def test_sorted_descending(self, hero, goblin):
        result = roll_initiative([hero], [goblin], FixedRng(5, 15))
        assert [c.id for c in result] == ["goblin-1", "hero"]
        assert result[0].character_name == "Goblin 1"
        assert result[1].total == 7

    def test_tie_breaks_on_dex_then_party(self, goblin):
        nimble = Character(id="n", name="Nimble", ability_scores={"dexterity": 16})
        plain = Character(id="p", name="Plain")
        result = roll_initiative([plain, nimble], [goblin], FixedRng(13, 10, 13))
        assert [c.id for c in result] == ["n", "p", "goblin-1"]

    def test_dead_excluded(self, hero, goblin):
        goblin.status = "dead"
        result = roll_initiative([hero], [goblin], random.Random(1))
        assert [c.id for c in result] == ["hero"]

    def test_sides_and_controllers(self, hero, companion, goblin):
        result = roll_initiative([hero, companion], [goblin], random.Random(3))
        by_id = {c.id: c for c in result}
        assert by_id["hero"].type == "player"
        assert by_id["hero"].controlled_by == "Player"
        assert by_id["lyra"].controlled_by == "AI"
        assert by_id["goblin-1"].type == "npc"
