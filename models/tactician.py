"""
Tactician contracts — the validation gate between LLM decisions and combat.

Every automated decision for an AI-controlled combatant passes through
`TacticianDecision.model_validate(...)`. A response that fails validation
is replaced by a "does nothing this turn" decision; it never reaches the
dice or HP code.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_CAMEL = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}

ENEMY_ATTACK_TYPES = {"attack_roll", "saving_throw", "other"}
COMPANION_ATTACK_TYPES = ENEMY_ATTACK_TYPES | {"healing"}


class DiceRollRequest(BaseModel):
    """A roll the executor must make (or accept, if already rolled)."""

    roller: str = ""
    roll_notation: str
    description: str = ""
    attack_type: str = "other"
    result: Optional[int] = None  # pre-rolled value (physical dice)

    model_config = _CAMEL

    @field_validator("attack_type")
    @classmethod
    def validate_attack_type(cls, v):
        v = str(v).lower()
        return v if v in COMPANION_ATTACK_TYPES else "other"


class TacticianDecision(BaseModel):
    """Validated output of an enemy or companion tactician."""

    action_description: str = ""
    target_id: Optional[str] = None
    dice_rolls: List[DiceRollRequest] = Field(default_factory=list)

    model_config = _CAMEL

    @model_validator(mode="after")
    def roll_shape(self):
        """To-hit actions carry attack then damage; other actions carry one roll."""
        if not self.dice_rolls:
            return self
        kinds = [r.attack_type for r in self.dice_rolls]
        if kinds[0] == "attack_roll":
            if len(kinds) != 2:
                raise ValueError("attack_roll actions need exactly an attack roll and a damage roll")
        elif kinds[0] in ("saving_throw", "healing") and len(kinds) != 1:
            raise ValueError(f"{kinds[0]} actions need exactly one roll")
        return self

    @property
    def is_noop(self) -> bool:
        return not self.dice_rolls


class CombatantView(BaseModel):
    """What a tactician sees of one combatant."""

    id: str
    name: str
    hp: str  # status band, e.g. "Wounded"
    ac: Optional[int] = None
    status: str = "active"

    model_config = _CAMEL


class TacticianInput(BaseModel):
    active_combatant: str
    active_combatant_id: str
    party: List[CombatantView] = Field(default_factory=list)
    enemies: List[CombatantView] = Field(default_factory=list)
    location_description: str = ""
    conversation_history: str = ""
    available_spells: List[str] = Field(default_factory=list)
    inventory: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = _CAMEL
