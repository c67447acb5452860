"""
World state schemas — per-location dynamic state, fog of war and the clock.

These are the mutable, session-scoped companions to the static adventure
graph. WorldState is the single mutable authority for enemies, doors and
visitation; the adventure JSON is only consulted for first instantiation.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from models.enemies import Enemy

_CAMEL = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}

# Fog-of-war ordering. Status may only move up this ladder.
FOG_RANK = {"unknown": 0, "seen": 1, "visited": 2}


class ConnectionState(BaseModel):
    """Runtime override for one connection (door) of a location.

    A flag left at None was never overridden; the static connection value
    applies for it.
    """

    direction: str = ""
    is_open: Optional[bool] = None
    is_locked: Optional[bool] = None
    is_blocked: Optional[bool] = None

    model_config = _CAMEL


class LocationState(BaseModel):
    """Dynamic state of one location, created lazily on first access."""

    visited: bool = False
    visited_count: int = Field(default=0, ge=0)
    first_visit_turn: Optional[int] = None
    last_visit_turn: Optional[int] = None
    enemies: List[Enemy] = Field(default_factory=list)
    connections: Dict[str, ConnectionState] = Field(default_factory=dict)
    discovered_secrets: List[str] = Field(default_factory=list)
    cleared_hazards: List[str] = Field(default_factory=list)

    model_config = _CAMEL


class WorldState(BaseModel):
    locations: Dict[str, LocationState] = Field(default_factory=dict)
    global_flags: Dict[str, Any] = Field(default_factory=dict)

    model_config = _CAMEL


class ExplorationRecord(BaseModel):
    """Fog-of-war record for one location."""

    status: str = "unknown"
    first_visited: Optional[int] = None  # world minutes
    last_visited: Optional[int] = None
    visit_count: int = Field(default=0, ge=0)

    model_config = _CAMEL

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if str(v).lower() not in FOG_RANK:
            return "unknown"
        return str(v).lower()

    def promote(self, status: str) -> None:
        """Raise the fog-of-war status; never lowers it."""
        if FOG_RANK.get(status, 0) > FOG_RANK[self.status]:
            self.status = status


class ExplorationState(BaseModel):
    known_locations: Dict[str, ExplorationRecord] = Field(default_factory=dict)

    model_config = _CAMEL

    def record_for(self, location_id: str) -> ExplorationRecord:
        if location_id not in self.known_locations:
            self.known_locations[location_id] = ExplorationRecord()
        return self.known_locations[location_id]

    def status_of(self, location_id: str) -> str:
        record = self.known_locations.get(location_id)
        return record.status if record else "unknown"


class WorldTime(BaseModel):
    """The in-game clock. Defaults to day 1, 08:00."""

    day: int = Field(default=1, ge=1)
    hour: int = Field(default=8, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    def describe(self) -> str:
        return f"Day {self.day}, {self.hour:02d}:{self.minute:02d}"

    def total_minutes(self) -> int:
        return self.day * 1440 + self.hour * 60 + self.minute
