"""
WorldStateManager — the mutable, session-scoped record of per-location facts.

Three sources of truth meet here: the static adventure document, the
per-location dynamic state, and legacy flat enemy maps from old saves.
The rule is a layered merge behind one accessor,
get_effective_location_context():

  * visited location  → the dynamic enemy roster is ground truth (it may
    be empty because everyone died or nobody was ever there);
  * never visited     → a fresh roster is spawned from `entitiesPresent`
    with full HP.

All writes go through this class. The adventure is only read.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.enemies import Enemy
from models.locations import Adventure, Location
from models.world_state import ConnectionState, LocationState, WorldState
from engine.enemy_state import normalize_enemy_stats
from engine.errors import AdventureDataError

logger = logging.getLogger("WorldState")


class EffectiveLocationContext(BaseModel):
    location: Location
    enemies: List[Enemy] = Field(default_factory=list)
    is_first_visit: bool = True
    connection_states: Dict[str, ConnectionState] = Field(default_factory=dict)


class WorldStateManager:
    """Owns a WorldState and every mutation applied to it."""

    def __init__(self, world: Optional[WorldState] = None):
        self.world = world if world is not None else WorldState()

    # ------------------------------------------------------------------
    # Location state
    # ------------------------------------------------------------------

    def get_location_state(self, location_id: str) -> LocationState:
        """Return the dynamic state for a location, creating it on first access."""
        state = self.world.locations.get(location_id)
        if state is None:
            state = LocationState()
            self.world.locations[location_id] = state
        return state

    def register_visit(self, location_id: str, turn_number: int) -> LocationState:
        state = self.get_location_state(location_id)
        if not state.visited:
            state.visited = True
            state.first_visit_turn = turn_number
        state.visited_count += 1
        state.last_visit_turn = turn_number
        logger.debug(f"Visit #{state.visited_count} to {location_id} on turn {turn_number}")
        return state

    def update_enemies(self, location_id: str, enemies: List[Enemy]) -> None:
        """Replace the roster wholesale. Callers read, modify, then write back."""
        state = self.get_location_state(location_id)
        state.enemies = [e.model_copy(deep=True) for e in enemies]

    def update_connection(self, location_id: str, key: str, **changes: Any) -> ConnectionState:
        """Create the connection override if needed, then merge `changes` into it."""
        state = self.get_location_state(location_id)
        conn = state.connections.get(key)
        if conn is None:
            conn = ConnectionState(direction=key)
            state.connections[key] = conn
        for field, value in changes.items():
            setattr(conn, field, value)
        return conn

    def mark_secrets_discovered(self, location_id: str, secret_ids: List[str]) -> None:
        state = self.get_location_state(location_id)
        for secret in secret_ids:
            if secret not in state.discovered_secrets:
                state.discovered_secrets.append(secret)

    def mark_hazard_cleared(self, location_id: str, hazard_id: str) -> None:
        state = self.get_location_state(location_id)
        if hazard_id not in state.cleared_hazards:
            state.cleared_hazards.append(hazard_id)

    # ------------------------------------------------------------------
    # Effective view
    # ------------------------------------------------------------------

    def spawn_enemies(self, adventure: Adventure, location: Location) -> List[Enemy]:
        """Instantiate `entitiesPresent` as fresh, full-HP enemy instances."""
        spawned: List[Enemy] = []
        counters: Dict[str, int] = {}
        for ref in location.entities_present:
            if isinstance(ref, str):
                template = adventure.get_entity(ref)
                if template is None:
                    logger.warning(f"Location {location.id} references unknown entity '{ref}'")
                    continue
                data = template.model_dump(by_alias=True)
            else:
                data = dict(ref)
                template = adventure.get_entity(data.get("id", ""))
                if template is not None:
                    data = {**template.model_dump(by_alias=True), **data}

            template_id = data.get("id") or "enemy"
            counters[template_id] = counters.get(template_id, 0) + 1
            data["uniqueId"] = f"{template_id}-{counters[template_id]}"
            if not data.get("disposition"):
                data["disposition"] = "hostile" if data.get("type", "enemy") == "enemy" else "neutral"
            data["status"] = "active"

            enemy = normalize_enemy_stats(data)
            enemy.hp.current = enemy.hp.max
            spawned.append(enemy)
        return spawned

    def get_effective_location_context(self, adventure: Adventure, location_id: str) -> EffectiveLocationContext:
        """Merged static + dynamic view of one location.

        Raises:
            AdventureDataError: the location is not in the adventure.
        """
        location = adventure.get_location(location_id)
        if location is None:
            raise AdventureDataError(f"Location {location_id} not found in adventure data")

        state = self.get_location_state(location_id)
        if state.visited:
            enemies = [e.model_copy(deep=True) for e in state.enemies]
        else:
            enemies = self.spawn_enemies(adventure, location)

        return EffectiveLocationContext(
            location=location,
            enemies=enemies,
            is_first_visit=not state.visited,
            connection_states=dict(state.connections),
        )

    def enter_location(self, adventure: Adventure, location_id: str, turn_number: int) -> EffectiveLocationContext:
        """Persist the spawned roster on first entry, then register the visit."""
        context = self.get_effective_location_context(adventure, location_id)
        if context.is_first_visit:
            self.update_enemies(location_id, context.enemies)
        self.register_visit(location_id, turn_number)
        return context

    # ------------------------------------------------------------------
    # Legacy saves
    # ------------------------------------------------------------------

    @classmethod
    def migrate_from_legacy(cls, enemies_by_location: Dict[str, List[Dict[str, Any]]]) -> "WorldStateManager":
        """Build a world state from the old flat {locationId: [enemy, ...]} map."""
        manager = cls()
        for location_id, raw_enemies in enemies_by_location.items():
            state = manager.get_location_state(location_id)
            enemies = []
            for raw in raw_enemies:
                enemy = normalize_enemy_stats(raw)
                if enemy.hp.current <= 0:
                    enemy.status = "dead"
                enemies.append(enemy)
            state.enemies = enemies
            if enemies:
                state.visited = True
        logger.info(f"Migrated legacy enemies for {len(enemies_by_location)} locations")
        return manager

    def enemies_by_location(self) -> Dict[str, List[Enemy]]:
        return {loc_id: state.enemies for loc_id, state in self.world.locations.items() if state.enemies}
