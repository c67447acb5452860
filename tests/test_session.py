"""
Tests for models/session.py and the character model helpers it carries.
"""

import json

from models.characters import Character
from models.session import GameSession


class TestGameSession:
    def test_messages_carry_turn(self, session):
        session.turn_number = 4
        session.add_message("DM", "Rain falls.")
        assert session.messages[-1].turn == 4

    def test_recent_transcript_window(self, session):
        for i in range(12):
            session.add_message("Player", f"line {i}")
        transcript = session.recent_transcript(limit=3)
        assert transcript.splitlines() == ["Player: line 9", "Player: line 10", "Player: line 11"]

    def test_get_character(self, session):
        assert session.get_character("hero").name == "Hero"
        assert session.get_character("ghost") is None

    def test_in_combat_follows_combat_state(self, session):
        assert session.in_combat is False
        session.combat.in_combat = True
        assert session.in_combat is True


class TestSnapshot:
    def test_snapshot_is_json_with_camel_keys(self, session):
        session.open_doors["corridor:north"] = True
        session.add_message("DM", "Welcome.")
        snapshot = session.to_snapshot()

        text = json.dumps(snapshot)
        assert snapshot["currentLocationId"] == "hall"
        assert snapshot["openDoors"] == {"corridor:north": True}
        assert "worldState" in snapshot
        assert "class" in snapshot["party"][0]

        restored = GameSession.from_snapshot(json.loads(text))
        assert restored.current_location_id == "hall"
        assert restored.party[0].hp.current == 20
        assert restored.messages[0].content == "Welcome."
        assert restored.open_doors == {"corridor:north": True}

    def test_camel_and_snake_both_accepted(self):
        session = GameSession.from_snapshot({"current_location_id": "a", "turnNumber": 3})
        assert (session.current_location_id, session.turn_number) == ("a", 3)


class TestCharacter:
    def test_hp_clamped(self):
        character = Character(id="c", name="C", hp={"current": 30, "max": 12})
        assert character.hp.current == 12

    def test_status_from_hp(self, hero):
        assert hero.status == "active"
        hero.hp.current = 0
        assert hero.status == "unconscious"
        hero.is_dead = True
        assert hero.status == "dead"

    def test_class_alias(self):
        character = Character.model_validate({"id": "c", "name": "C", "class": "Wizard"})
        assert character.char_class == "Wizard"

    def test_is_ai(self, hero, companion):
        assert hero.is_ai is False
        assert companion.is_ai is True
