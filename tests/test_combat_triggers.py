"""
Tests for engine/combat_triggers.py and engine/surprise.py.
"""

from engine.combat_triggers import (
    InteractionOutcome,
    StealthCheck,
    evaluate_exploration,
    evaluate_interaction,
    evaluate_player_action,
)
from engine.surprise import (
    clear_surprise_flag,
    determine_surprise,
    is_surprised,
    mark_combatants_surprised,
)
from models.combat import Combatant
from models.enemies import Enemy
from models.locations import Hazard, Location


def room(*hazards):
    return Location(id="room", title="Room", hazards=list(hazards))


AMBUSH = Hazard(id="ambush-1", type="ambush", trigger_description="Bandits drop from the rafters!")
MIMIC = Hazard.model_validate({"id": "mimic-1", "type": "mimic", "name": "Old chest"})


class TestEvaluateExploration:
    def test_undetected_ambush_fires(self):
        result = evaluate_exploration(room(AMBUSH), [], [])
        assert result.should_start_combat is True
        assert result.reason == "ambush"
        assert result.surprise_side == "enemy"
        assert result.triggering_entity_id == "ambush-1"
        assert result.message == "Bandits drop from the rafters!"

    def test_detected_ambush_does_not_fire(self):
        assert evaluate_exploration(room(AMBUSH), ["ambush-1"], []).should_start_combat is False

    def test_inactive_ambush_ignored(self):
        inactive = AMBUSH.model_copy(update={"active": False})
        assert evaluate_exploration(room(inactive), [], []).should_start_combat is False

    def test_ambush_beats_proximity(self, goblin):
        assert evaluate_exploration(room(AMBUSH), [], [goblin]).reason == "ambush"

    def test_proximity(self, goblin):
        result = evaluate_exploration(room(), [], [goblin])
        assert result.should_start_combat is True
        assert result.reason == "proximity"
        assert result.surprise_side == "none"

    def test_failed_stealth(self, goblin):
        result = evaluate_exploration(room(), [], [goblin], StealthCheck(success=False, roll=4))
        assert result.reason == "stealth_fail"

    def test_successful_stealth_suppresses_proximity(self, goblin):
        result = evaluate_exploration(room(), [], [goblin], StealthCheck(success=True, roll=18))
        assert result.should_start_combat is False
        assert result.reason == "none"

    def test_hidden_dead_and_friendly_do_not_trigger(self):
        entities = [
            Enemy(id="a", disposition="hidden"),
            Enemy(id="b", status="dead", hp={"current": 0, "max": 5}),
            Enemy(id="c", type="npc", disposition="friendly"),
            Enemy(id="d", type="enemy", disposition="neutral"),
        ]
        assert evaluate_exploration(room(), [], entities).should_start_combat is False

    def test_hostile_npc_triggers(self):
        thug = Enemy(id="thug", type="npc", disposition="hostile")
        assert evaluate_exploration(room(), [], [thug]).reason == "proximity"


class TestEvaluateInteraction:
    def test_mimic_by_keyword(self):
        result = evaluate_interaction("el cofre", [MIMIC])
        assert result.reason == "mimic"
        assert result.surprise_side == "enemy"
        assert result.triggering_entity_id == "mimic-1"

    def test_mimic_by_name(self):
        assert evaluate_interaction("old chest", [MIMIC]).reason == "mimic"

    def test_no_mimic_match(self):
        assert evaluate_interaction("the door", [MIMIC]).should_start_combat is False

    def test_provocation(self):
        result = evaluate_interaction("guard", [], InteractionOutcome(escalation=True))
        assert result.reason == "provocation"
        assert result.surprise_side == "none"

    def test_npc_attacks(self):
        assert evaluate_interaction("guard", [], InteractionOutcome(action="attack")).reason == "provocation"

    def test_calm_conversation(self):
        assert evaluate_interaction("guard", [], InteractionOutcome(new_attitude="friendly")).should_start_combat is False


class TestEvaluatePlayerAction:
    def test_attack(self):
        result = evaluate_player_action("attack")
        assert result.reason == "player_surprise"
        assert result.surprise_side == "player"

    def test_non_attack(self):
        assert evaluate_player_action("move").should_start_combat is False


class TestSurprise:
    def test_explicit_side_wins(self):
        assert determine_surprise("proximity", "enemy") == "enemy"

    def test_reason_table(self):
        assert determine_surprise("ambush") == "enemy"
        assert determine_surprise("mimic") == "enemy"
        assert determine_surprise("player_surprise") == "player"
        assert determine_surprise("proximity") == "none"

    def test_player_initiated_fallback(self):
        assert determine_surprise(None, None, player_initiated_attack=True) == "player"
        assert determine_surprise() == "none"

    def test_enemy_side_surprises_party(self):
        order = [
            Combatant(id="hero", character_name="Hero", type="player", controlled_by="Player"),
            Combatant(id="goblin-1", character_name="Goblin 1", type="npc"),
        ]
        tagged = mark_combatants_surprised(order, "enemy")
        assert is_surprised(tagged[0]) is True
        assert is_surprised(tagged[1]) is False
        assert order[0].is_surprised is None

    def test_player_side_surprises_npcs(self):
        order = [
            Combatant(id="hero", character_name="Hero", type="player", controlled_by="Player"),
            Combatant(id="goblin-1", character_name="Goblin 1", type="npc"),
        ]
        tagged = mark_combatants_surprised(order, "player")
        assert [is_surprised(c) for c in tagged] == [False, True]

    def test_no_side_tags_nobody(self):
        order = [Combatant(id="goblin-1", character_name="Goblin 1")]
        assert not any(is_surprised(c) for c in mark_combatants_surprised(order, "none"))

    def test_clear_flag(self):
        combatant = Combatant(id="hero", character_name="Hero", is_surprised=True)
        assert is_surprised(clear_surprise_flag(combatant)) is False
