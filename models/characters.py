"""
Character schemas — party members (players and AI companions).

Characters are created at session start and mutated every turn by damage
and healing. They are never deleted; death and unconsciousness are read
from HP state and the is_dead flag.
"""

from typing import List, Optional, Dict
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


ABILITY_NAMES = ("strength", "dexterity", "constitution", "intelligence", "wisdom", "charisma")

# Short and Spanish sheet keys map onto the canonical ability names.
ABILITY_ALIASES = {
    "str": "strength",
    "dex": "dexterity",
    "con": "constitution",
    "int": "intelligence",
    "wis": "wisdom",
    "cha": "charisma",
    "fuerza": "strength",
    "destreza": "dexterity",
    "constitucion": "constitution",
    "inteligencia": "intelligence",
    "sabiduria": "wisdom",
    "carisma": "charisma",
}


def canonical_ability(name: str) -> str:
    """Map 'dex', 'Destreza' or 'dexterity' to 'dexterity'."""
    key = (name or "").strip().lower()
    return ABILITY_ALIASES.get(key, key)


class HitPoints(BaseModel):
    """Current/max hit points. Current is clamped to [0, max]."""

    current: int = 10
    max: int = Field(default=10, ge=0)

    @model_validator(mode="after")
    def clamp_current(self):
        if self.current < 0:
            self.current = 0
        if self.current > self.max:
            self.current = self.max
        return self


class SkillEntry(BaseModel):
    """One line of the character sheet's skill list."""

    name: str
    proficient: bool = False
    modifier: Optional[int] = None

    model_config = {"extra": "allow"}


class InventoryItem(BaseModel):
    id: str
    name: str = ""
    quantity: int = Field(default=1, ge=0)

    model_config = {"extra": "allow"}


class Character(BaseModel):
    """Schema for a party member (player-controlled or AI companion)."""

    id: str
    name: str
    race: str = "Unknown"
    char_class: str = Field(alias="class", default="Unknown")
    level: int = Field(default=1, ge=1, le=20)
    ability_scores: Dict[str, int] = Field(default_factory=dict)
    ability_modifiers: Optional[Dict[str, int]] = None
    proficiency_bonus: int = 2
    hp: HitPoints = Field(default_factory=HitPoints)
    ac: int = Field(default=10, ge=0)
    skills: List[SkillEntry] = Field(default_factory=list)
    inventory: List[InventoryItem] = Field(default_factory=list)
    spells: List[str] = Field(default_factory=list)
    controlled_by: str = "Player"
    is_dead: bool = False

    model_config = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}

    @field_validator("controlled_by")
    @classmethod
    def validate_controller(cls, v):
        return "AI" if str(v).strip().lower() == "ai" else "Player"

    @field_validator("ability_scores", "ability_modifiers")
    @classmethod
    def canonical_ability_keys(cls, v):
        if v is None:
            return v
        return {canonical_ability(k): int(score) for k, score in v.items()}

    @property
    def status(self) -> str:
        if self.is_dead:
            return "dead"
        if self.hp.current <= 0:
            return "unconscious"
        return "active"

    @property
    def is_ai(self) -> bool:
        return self.controlled_by == "AI"

    def find_skill(self, skill_name: str) -> Optional[SkillEntry]:
        """Case-insensitive skill lookup ('Sleight of Hand' == 'sleight_of_hand')."""
        wanted = skill_name.strip().lower().replace(" ", "_")
        for entry in self.skills:
            if entry.name.strip().lower().replace(" ", "_") == wanted:
                return entry
        return None

    def has_item(self, item_id: str) -> bool:
        return any(item.id == item_id and item.quantity > 0 for item in self.inventory)
