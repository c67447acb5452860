"""
Adventure graph schemas — static, read-only reference data.

A Location is immutable after load except for sanitization: connections
pointing at locations that do not exist are turned into flavour
interactables by tools/adventure_validator.sanitize_adventure().
"""

from typing import List, Optional, Union, Dict, Any
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

_CAMEL = {"extra": "allow", "populate_by_name": True, "alias_generator": to_camel}


class Connection(BaseModel):
    """An edge of the location graph."""

    target_id: str
    direction: Optional[str] = None
    type: str = "direct"
    visibility: str = "open"
    is_locked: bool = False
    is_blocked: bool = False
    is_open: Optional[bool] = None
    required_key_id: Optional[str] = None
    blocked_reason: Optional[str] = None
    travel_time: Optional[str] = None
    description: Optional[str] = None

    model_config = _CAMEL

    @field_validator("visibility")
    @classmethod
    def validate_visibility(cls, v):
        return "restricted" if str(v).lower() == "restricted" else "open"


class LegacyExit(BaseModel):
    """Old-style exit record: {toLocationId, description}."""

    to_location_id: str
    description: Optional[str] = None

    model_config = _CAMEL


class Hazard(BaseModel):
    id: str
    type: str = "trap"
    active: bool = True
    detection_dc: int = Field(default=10, alias="detectionDC")
    description: str = ""
    trigger_description: Optional[str] = None

    model_config = _CAMEL


class Interactable(BaseModel):
    name: str
    description: str = ""
    interaction_results: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = _CAMEL


class Location(BaseModel):
    """Schema for a static adventure location."""

    id: str
    title: str = ""
    description: str = ""
    region_id: Optional[str] = None
    connections: List[Connection] = Field(default_factory=list)
    exits: List[Union[str, LegacyExit]] = Field(default_factory=list)
    hazards: List[Hazard] = Field(default_factory=list)
    interactables: List[Interactable] = Field(default_factory=list)
    entities_present: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    exploration_mode: str = "safe"
    light_level: str = "bright"

    model_config = _CAMEL

    @field_validator("exploration_mode")
    @classmethod
    def validate_mode(cls, v):
        valid = {"safe", "dungeon", "wilderness"}
        if str(v).lower() not in valid:
            return "safe"
        return str(v).lower()

    def all_edges(self) -> List[Connection]:
        """Modern connections plus legacy exits, de-duplicated by target."""
        edges: List[Connection] = []
        seen = set()
        for conn in self.connections:
            if conn.target_id not in seen:
                seen.add(conn.target_id)
                edges.append(conn)
        for exit_ in self.exits:
            if isinstance(exit_, str):
                target, description = exit_, None
            else:
                target, description = exit_.to_location_id, exit_.description
            if target not in seen:
                seen.add(target)
                edges.append(Connection(target_id=target, description=description))
        return edges

    def connection_to(self, target_id: str) -> Optional[Connection]:
        for conn in self.all_edges():
            if conn.target_id == target_id:
                return conn
        return None


class AdventureEntity(BaseModel):
    """A creature template from the adventure's entity list."""

    id: str
    name: str = "Unknown"
    type: str = "enemy"
    disposition: Optional[str] = None

    model_config = _CAMEL


class Adventure(BaseModel):
    """Top-level adventure document."""

    title: str = "Untitled Adventure"
    starting_location_id: Optional[str] = None
    locations: List[Location] = Field(default_factory=list)
    entities: List[AdventureEntity] = Field(default_factory=list)

    model_config = _CAMEL

    def get_location(self, location_id: str) -> Optional[Location]:
        for loc in self.locations:
            if loc.id == location_id:
                return loc
        return None

    def get_entity(self, entity_id: str) -> Optional[AdventureEntity]:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity
        return None
