"""
Combat schemas — initiative entries, trigger decisions, dice records and
the per-turn result the orchestrator hands back to its caller.
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from models.characters import Character
from models.enemies import Enemy

_CAMEL = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}

TRIGGER_REASONS = {"ambush", "proximity", "stealth_fail", "mimic", "provocation", "player_surprise", "none"}
SURPRISE_SIDES = {"player", "enemy", "none"}


class CombatPhase(str, Enum):
    SETUP = "SETUP"
    TURN_START = "TURN_START"
    WAITING_FOR_ACTION = "WAITING_FOR_ACTION"
    PROCESSING_ACTION = "PROCESSING_ACTION"
    ACTION_RESOLVED = "ACTION_RESOLVED"
    TURN_END = "TURN_END"
    COMBAT_END = "COMBAT_END"


class Combatant(BaseModel):
    """One slot of the initiative order."""

    id: str
    character_name: str
    total: int = 0
    type: str = "npc"  # player | npc
    controlled_by: str = "AI"  # Player | AI
    status: str = "active"
    is_surprised: Optional[bool] = None
    dex_modifier: int = 0

    model_config = _CAMEL

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return "player" if str(v).lower() == "player" else "npc"


class CombatTriggerResult(BaseModel):
    """Ephemeral decision of the trigger evaluator. Never persisted."""

    should_start_combat: bool = False
    reason: str = "none"
    surprise_side: str = "none"
    triggering_entity_id: Optional[str] = None
    message: Optional[str] = None

    model_config = _CAMEL

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        return v if v in TRIGGER_REASONS else "none"

    @field_validator("surprise_side")
    @classmethod
    def validate_side(cls, v):
        return v if v in SURPRISE_SIDES else "none"


class DiceRollRecord(BaseModel):
    """A resolved roll as shown in the dice log."""

    roller: str
    roll_notation: str
    individual_rolls: List[int] = Field(default_factory=list)
    modifier: int = 0
    total_result: int = 0
    outcome: str = "neutral"  # crit | success | fail | pifia | neutral
    description: str = ""
    target_name: Optional[str] = None
    target_ac: Optional[int] = None
    attack_hit: Optional[bool] = None
    damage_dealt: Optional[int] = None
    healing_amount: Optional[int] = None
    target_killed: Optional[bool] = None

    model_config = _CAMEL


class CombatInitiationResult(BaseModel):
    """Everything needed to enter SETUP."""

    should_start_combat: bool = False
    combatant_ids: List[str] = Field(default_factory=list)
    surprise_side: str = "none"
    reason: str = "none"
    prepared_enemies: List[Enemy] = Field(default_factory=list)
    narrative_messages: List[str] = Field(default_factory=list)
    combat_location_id: Optional[str] = None
    debug_logs: List[str] = Field(default_factory=list)

    model_config = _CAMEL


class CombatState(BaseModel):
    """Live state of one encounter, owned by the orchestrator."""

    in_combat: bool = False
    phase: CombatPhase = CombatPhase.SETUP
    initiative_order: List[Combatant] = Field(default_factory=list)
    turn_index: int = 0
    round: int = 1
    party: List[Character] = Field(default_factory=list)
    enemies: List[Enemy] = Field(default_factory=list)
    location_id: Optional[str] = None
    location_description: str = ""
    transcript: List[str] = Field(default_factory=list)
    winner: Optional[str] = None
    end_reason: Optional[str] = None

    model_config = _CAMEL

    @property
    def active_combatant(self) -> Optional[Combatant]:
        if 0 <= self.turn_index < len(self.initiative_order):
            return self.initiative_order[self.turn_index]
        return None


class TurnResult(BaseModel):
    """What one orchestrator call reports back to the caller."""

    success: bool = True
    phase: CombatPhase = CombatPhase.SETUP
    active_combatant_id: Optional[str] = None
    active_combatant_name: Optional[str] = None
    awaiting_player: bool = False
    messages: List[str] = Field(default_factory=list)
    dice_rolls: List[DiceRollRecord] = Field(default_factory=list)
    has_more_ai_turns: bool = False
    combat_ended: bool = False
    winner: Optional[str] = None
    end_reason: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = _CAMEL


class PlayerCombatAction(BaseModel):
    """An interpreted player action submitted during WAITING_FOR_ACTION."""

    action_type: str = "attack"  # attack | spell | heal | other
    target_id: Optional[str] = None
    description: str = ""
    attack_notation: Optional[str] = None
    damage_notation: Optional[str] = None
    attack_result: Optional[int] = None  # physical dice
    damage_result: Optional[int] = None

    model_config = _CAMEL
