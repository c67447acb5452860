"""
Shared pytest fixtures for the tabletop adventure engine test suite.

Gemini mocks return canned text in call order. Domain fixtures build a
small adventure, a two-character party and a goblin instance.
"""

import json
import random

import pytest
from unittest.mock import AsyncMock, MagicMock

from models.characters import Character
from models.enemies import Enemy
from models.locations import Adventure
from models.session import GameSession


# ---------------------------------------------------------------------------
# Gemini Mock Helpers (reusable classes)
# ---------------------------------------------------------------------------

class MockGeminiResponse:
    """Simulates a Gemini response with .text property."""

    def __init__(self, text: str):
        self.text = text


class MockGeminiClient:
    """Mock Gemini client that returns canned text responses.

    Usage:
        client = MockGeminiClient(["response1", "response2"])
        resp = await client.aio.models.generate_content(model=..., contents=...)
        assert resp.text == "response1"

    An Exception instance in the list is raised instead of returned.
    """

    def __init__(self, responses=None):
        self._responses = responses or []
        self._call_count = 0
        self.calls = []

    @property
    def aio(self):
        return self

    @property
    def models(self):
        return self

    @property
    def call_count(self):
        return self._call_count

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self._call_count < len(self._responses):
            resp = self._responses[self._call_count]
        else:
            resp = '{"error": "no more canned responses"}'
        self._call_count += 1
        if isinstance(resp, Exception):
            raise resp
        if isinstance(resp, str):
            return MockGeminiResponse(resp)
        # Allow passing pre-built response objects
        return resp


# ---------------------------------------------------------------------------
# Domain data
# ---------------------------------------------------------------------------

ADVENTURE_DATA = {
    "title": "Test Dungeon",
    "startingLocationId": "hall",
    "entities": [
        {"id": "goblin", "name": "Goblin", "type": "enemy", "hp": 10, "ac": 12},
        {"id": "orc", "name": "Orc", "type": "enemy", "hp": 15, "ac": 13, "disposition": "hidden"},
    ],
    "locations": [
        {
            "id": "hall",
            "title": "Great Hall",
            "description": "A long hall with banners.",
            "regionId": "keep",
            "connections": [
                {"targetId": "kitchen", "direction": "east"},
                {"targetId": "corridor", "direction": "north", "description": "You walk into the corridor."},
            ],
        },
        {
            "id": "kitchen",
            "title": "Kitchen",
            "description": "Pots and pans everywhere.",
            "regionId": "keep",
            "connections": [{"targetId": "hall", "direction": "west"}],
        },
        {
            "id": "corridor",
            "title": "Dark Corridor",
            "description": "A cold, narrow corridor.",
            "explorationMode": "dungeon",
            "connections": [
                {"targetId": "hall", "direction": "south"},
                {"targetId": "vault", "direction": "north", "isLocked": True, "requiredKeyId": "vault-key"},
                {"targetId": "lair", "direction": "east", "travelTime": "10 minutes"},
            ],
        },
        {
            "id": "vault",
            "title": "Vault",
            "description": "Gold glitters in the dark.",
            "connections": [{"targetId": "corridor", "direction": "south"}],
        },
        {
            "id": "lair",
            "title": "Goblin Lair",
            "description": "Bones and filth.",
            "explorationMode": "dungeon",
            "entitiesPresent": ["goblin"],
            "connections": [{"targetId": "corridor", "direction": "west"}],
        },
    ],
}


@pytest.fixture
def adventure_data():
    """Fresh deep copy of the raw adventure document."""
    return json.loads(json.dumps(ADVENTURE_DATA))


@pytest.fixture
def adventure(adventure_data):
    return Adventure.model_validate(adventure_data)


@pytest.fixture
def hero():
    return Character(
        id="hero",
        name="Hero",
        ability_scores={"strength": 16, "dexterity": 14, "wisdom": 12},
        hp={"current": 20, "max": 20},
        ac=15,
        controlled_by="Player",
    )


@pytest.fixture
def companion():
    return Character(
        id="lyra",
        name="Lyra",
        ability_scores={"dexterity": 12, "wisdom": 16},
        hp={"current": 12, "max": 12},
        ac=13,
        spells=["Cure Wounds"],
        controlled_by="AI",
    )


@pytest.fixture
def goblin():
    return Enemy(id="goblin", unique_id="goblin-1", name="Goblin", hp={"current": 10, "max": 10}, ac=12)


@pytest.fixture
def session(adventure, hero):
    return GameSession(party=[hero], current_location_id=adventure.starting_location_id)


@pytest.fixture
def rng():
    return random.Random(1234)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_gemini_limiter():
    """AsyncMock for the rate limiter — patches acquire() as a no-op."""
    limiter = MagicMock()
    limiter.acquire = AsyncMock()
    return limiter
