"""
Exploration — fog of war, hazard detection and the exploration context.

Fog-of-war status per location is a one-way ladder:

    unknown → seen → visited

Entering a location marks it visited; every connection out of it either
promotes the neighbour to "seen" (open visibility) or just makes sure a
record exists at "unknown". Nothing here ever lowers a status.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from models.characters import Character
from models.enemies import Enemy
from models.locations import Adventure, Hazard, Location
from models.world_state import ExplorationState
from engine.world_state import WorldStateManager
from tools.entity_status import is_entity_out_of_combat
from tools.skill_check import ability_modifier

logger = logging.getLogger("Exploration")

CONNECTION_PREVIEW_CHARS = 150


class ExplorationContext(BaseModel):
    """What the narrator is told about the room the party stands in."""

    mode: str = "safe"
    light_level: str = "bright"
    visit_state: str = "unknown"  # status BEFORE this turn's update
    detected_hazards: List[Hazard] = Field(default_factory=list)
    visible_connections: List[str] = Field(default_factory=list)
    present_entities: List[Enemy] = Field(default_factory=list)
    dead_entities: List[str] = Field(default_factory=list)


# ------------------------------------------------------------------
# Fog of war
# ------------------------------------------------------------------

def update_exploration_state(
    exploration: ExplorationState,
    location: Location,
    world_minutes: int,
) -> ExplorationState:
    """Mark `location` visited and reveal its neighbours. Mutates and returns `exploration`."""
    record = exploration.record_for(location.id)
    record.promote("visited")
    if record.first_visited is None:
        record.first_visited = world_minutes
    record.last_visited = world_minutes
    record.visit_count += 1

    for conn in location.all_edges():
        neighbour = exploration.record_for(conn.target_id)
        if conn.visibility == "open":
            neighbour.promote("seen")

    return exploration


# ------------------------------------------------------------------
# Hazards
# ------------------------------------------------------------------

def best_passive_perception(party: Sequence[Character]) -> int:
    """max(10 + WIS modifier + proficiency if proficient in Perception)."""
    best = 0
    for member in party:
        if member.status == "dead":
            continue
        score = 10 + ability_modifier(member, "wisdom")
        entry = member.find_skill("perception") or member.find_skill("percepcion")
        if entry is not None and entry.proficient:
            score += member.proficiency_bonus
        best = max(best, score)
    return best


def _undiscovered_hazards(location: Location, world: WorldStateManager) -> List[Hazard]:
    state = world.get_location_state(location.id)
    known = set(state.discovered_secrets) | set(state.cleared_hazards)
    return [h for h in location.hazards if h.active and h.id not in known]


def check_passive_perception(
    location: Location,
    party: Sequence[Character],
    world: WorldStateManager,
) -> List[Hazard]:
    """Hazards the party notices without looking. None in safe locations."""
    if not location.hazards or location.exploration_mode == "safe":
        return []
    passive = best_passive_perception(party)
    found = [h for h in _undiscovered_hazards(location, world) if h.detection_dc <= passive]
    if found:
        logger.info(f"Passive perception {passive} spotted {[h.id for h in found]} in {location.id}")
    return found


def perform_active_search(
    location: Location,
    roll_result: int,
    world: WorldStateManager,
) -> List[Hazard]:
    """Hazards revealed by an explicit search roll."""
    return [h for h in _undiscovered_hazards(location, world) if h.detection_dc <= roll_result]


def mark_hazards_as_discovered(world: WorldStateManager, location_id: str, hazards: Iterable[Hazard]) -> None:
    world.mark_secrets_discovered(location_id, [h.id for h in hazards])


# ------------------------------------------------------------------
# Narration context
# ------------------------------------------------------------------

def _dead_names(enemies: Iterable[Enemy]) -> List[str]:
    return [e.name for e in enemies if is_entity_out_of_combat(e)]


def visible_connections(
    location: Location,
    adventure: Adventure,
    world: WorldStateManager,
    exploration: ExplorationState,
    came_from_location_id: Optional[str] = None,
    open_doors: Optional[Dict[str, bool]] = None,
) -> List[str]:
    """Describe what can be seen through open ways out of `location`.

    The way the party came in is skipped. Titles of rooms never visited
    are withheld.
    """
    lines: List[str] = []
    for conn in location.connections:
        direction = conn.direction or conn.target_id
        door_open = (open_doors or {}).get(f"{location.id}:{direction}") is True
        if not (conn.visibility == "open" or door_open or conn.is_open is True):
            continue
        if came_from_location_id and conn.target_id == came_from_location_id:
            continue
        target = adventure.get_location(conn.target_id)
        if target is None:
            continue

        preview = target.description[:CONNECTION_PREVIEW_CHARS]
        if exploration.status_of(target.id) == "visited" and target.title:
            line = f"To {conn.direction or 'unknown'} ({target.title}): {preview}..."
        else:
            line = f"To {conn.direction or 'unknown'}: {preview}..."

        if door_open:
            line += " (Through OPEN door)"
        elif conn.visibility == "open":
            line += " (Through open archway/passage)"

        target_state = world.world.locations.get(target.id)
        if target_state is not None and target_state.visited:
            dead = _dead_names(target_state.enemies)
            if dead:
                line += f" [VISIBLE CORPSES: {', '.join(dead)}]"
        lines.append(line)
    return lines


def build_exploration_context(
    location: Location,
    adventure: Adventure,
    party: Sequence[Character],
    world: WorldStateManager,
    exploration: ExplorationState,
    world_minutes: int,
    came_from_location_id: Optional[str] = None,
    open_doors: Optional[Dict[str, bool]] = None,
) -> ExplorationContext:
    """Update fog of war, run passive perception and assemble the context."""
    previous = exploration.status_of(location.id)
    update_exploration_state(exploration, location, world_minutes)

    detected = check_passive_perception(location, party, world)
    if detected:
        mark_hazards_as_discovered(world, location.id, detected)

    enemies = world.get_effective_location_context(adventure, location.id).enemies
    living = [e for e in enemies if not is_entity_out_of_combat(e)]

    return ExplorationContext(
        mode=location.exploration_mode,
        light_level=location.light_level,
        visit_state=previous,
        detected_hazards=detected,
        visible_connections=visible_connections(
            location, adventure, world, exploration, came_from_location_id, open_doors
        ),
        present_entities=living,
        dead_entities=_dead_names(enemies),
    )
