"""
Enemy/NPC instance schema — a combat-capable non-player entity.

The instance id (unique_id) is distinct from the adventure template id so
that several goblins spawned from one template stay distinguishable.
Dead enemies are kept in the world state for narrative consistency.
"""

from typing import Optional, Dict
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from models.characters import HitPoints, canonical_ability


DISPOSITIONS = {"hostile", "hidden", "friendly", "neutral"}
ENEMY_STATUSES = {"active", "unconscious", "dead"}


class Enemy(BaseModel):
    """Schema for one spawned enemy/NPC instance."""

    id: str
    unique_id: str = ""
    name: str = "Unknown Enemy"
    type: str = "enemy"
    hp: HitPoints = Field(default_factory=HitPoints)
    ac: int = Field(default=10, ge=0)
    disposition: str = "hostile"
    status: str = "active"
    ability_scores: Dict[str, int] = Field(default_factory=dict)
    ability_modifiers: Optional[Dict[str, int]] = None
    proficiency_bonus: int = 2
    controlled_by: str = "AI"

    model_config = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}

    @field_validator("disposition")
    @classmethod
    def validate_disposition(cls, v):
        if str(v).lower() not in DISPOSITIONS:
            return "hostile"
        return str(v).lower()

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if str(v).lower() not in ENEMY_STATUSES:
            return "active"
        return str(v).lower()

    @field_validator("ability_scores", "ability_modifiers")
    @classmethod
    def canonical_ability_keys(cls, v):
        if v is None:
            return v
        return {canonical_ability(k): int(score) for k, score in v.items()}

    @property
    def instance_id(self) -> str:
        return self.unique_id or self.id

    @property
    def is_dead(self) -> bool:
        return self.status == "dead"
