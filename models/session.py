"""
Session snapshot schema — the persisted game session.

A pure data structure: party, message and dice history, location, combat
state, world state and fog of war. No file format is implied;
`to_snapshot()` gives a JSON-ready dict and `from_snapshot()` rebuilds the
same shape.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from models.characters import Character
from models.combat import CombatState, DiceRollRecord
from models.world_state import WorldState, ExplorationState, WorldTime

_CAMEL = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}


class ChatMessage(BaseModel):
    sender: str  # Player | DM | companion name | System
    content: str
    turn: int = 0

    model_config = _CAMEL


class GameSession(BaseModel):
    """Everything that survives between two player actions."""

    party: List[Character] = Field(default_factory=list)
    messages: List[ChatMessage] = Field(default_factory=list)
    dice_rolls: List[DiceRollRecord] = Field(default_factory=list)
    current_location_id: str = ""
    turn_number: int = 0
    combat: CombatState = Field(default_factory=CombatState)
    world_state: WorldState = Field(default_factory=WorldState)
    exploration: ExplorationState = Field(default_factory=ExplorationState)
    world_time: WorldTime = Field(default_factory=WorldTime)
    open_doors: Dict[str, bool] = Field(default_factory=dict)

    model_config = _CAMEL

    @property
    def in_combat(self) -> bool:
        return self.combat.in_combat

    def add_message(self, sender: str, content: str) -> None:
        self.messages.append(ChatMessage(sender=sender, content=content, turn=self.turn_number))

    def recent_transcript(self, limit: int = 10) -> str:
        return "\n".join(f"{m.sender}: {m.content}" for m in self.messages[-limit:])

    def get_character(self, character_id: str) -> Optional[Character]:
        for member in self.party:
            if member.id == character_id:
                return member
        return None

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "GameSession":
        return cls.model_validate(data)
