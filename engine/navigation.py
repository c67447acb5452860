"""
NavigationManager — movement between locations.

resolve_movement() works in three stages:
  1. same region → free hub movement, 5 minutes, no graph search;
  2. breadth-first search over connections + legacy exits for the
     shortest hop sequence;
  3. every hop is validated in order (blocked, locked, door closed). The
     first invalid hop stops the move and reports how far the party got.

Door state precedence: runtime open-doors map > world-state connection
override > static isOpen > (isOpen absent and visibility restricted →
closed). An override only replaces the flags it sets.

open_door() handles "open the door" actions: it finds the connection the
text names and marks it open on both sides in the runtime open-doors map.
"""

import re
import logging
from collections import deque
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from models.characters import Character
from models.locations import Adventure, Connection, Location
from models.world_state import ConnectionState, WorldTime
from engine.world_state import WorldStateManager
from tools.target_matcher import normalize_text

logger = logging.getLogger("Navigation")

HUB_TRAVEL_MINUTES = 5

DOOR_WORDS = ("door", "doors", "gate", "hatch", "trapdoor", "puerta", "porton", "trampilla", "reja")
OPEN_WORDS = ("open", "opens", "abrir", "abre", "abrimos", "abro")

DEFAULT_TRAVEL_MINUTES = {
    "urban": 15,
    "overland": 4 * 60,
    "direct": 1,
}

_TRAVEL_TIME_RE = re.compile(r"^\s*(?P<value>\d+)\s*(?P<unit>[^\d\s]+)", re.IGNORECASE)


class TimeDelta(BaseModel):
    days: int = 0
    hours: int = 0
    minutes: int = 0


class MovementResult(BaseModel):
    success: bool
    new_location_id: Optional[str] = None
    narration: Optional[str] = None
    time_passed: Optional[TimeDelta] = None
    error: Optional[str] = None
    path: List[str] = Field(default_factory=list)
    used_graph_search: bool = False


class HopCheck(BaseModel):
    allowed: bool
    reason: Optional[str] = None


class DoorOpening(BaseModel):
    success: bool
    direction: Optional[str] = None
    door_keys: List[str] = Field(default_factory=list)
    message: Optional[str] = None


def door_direction(connection: Connection) -> str:
    """Key half used in the open-doors map: direction, else the target id."""
    return connection.direction or connection.target_id


def normalize_travel_time(delta: TimeDelta) -> TimeDelta:
    """Carry minutes into hours and hours into days."""
    minutes = delta.minutes
    hours = delta.hours + minutes // 60
    days = delta.days + hours // 24
    return TimeDelta(days=days, hours=hours % 24, minutes=minutes % 60)


def parse_travel_time(connection: Connection) -> TimeDelta:
    """Read '30 minutos' / '2 hours' / '1 día', else fall back on the connection type."""
    if connection.travel_time:
        match = _TRAVEL_TIME_RE.match(connection.travel_time)
        if match:
            value = int(match.group("value"))
            unit = match.group("unit").lower()
            if unit.startswith("min"):
                return TimeDelta(minutes=value)
            if unit.startswith("h"):
                return TimeDelta(hours=value)
            if unit.startswith("d"):
                return TimeDelta(days=value)
        logger.debug(f"Unrecognised travel time '{connection.travel_time}', using type default")

    minutes = DEFAULT_TRAVEL_MINUTES.get(connection.type, DEFAULT_TRAVEL_MINUTES["direct"])
    return normalize_travel_time(TimeDelta(minutes=minutes))


def update_world_time(current: Optional[WorldTime], delta: TimeDelta) -> WorldTime:
    """Return the clock advanced by `delta`, with carrying. Does not mutate `current`."""
    base = current or WorldTime()
    total_minutes = base.minute + delta.minutes
    hour = base.hour + delta.hours + total_minutes // 60
    day = base.day + delta.days + hour // 24
    return WorldTime(day=day, hour=hour % 24, minute=total_minutes % 60)


def location_label(location: Optional[Location], fallback: str) -> str:
    if location is None:
        return fallback
    return location.title or getattr(location, "name", None) or location.id


class NavigationManager:
    """Pathfinding and hop validation over the adventure graph."""

    def __init__(self, world: Optional[WorldStateManager] = None):
        self.world = world

    def find_path(self, adventure: Adventure, start_id: str, end_id: str) -> Optional[List[Tuple[str, str, Connection]]]:
        """Shortest hop list [(from_id, to_id, connection), ...], or None."""
        if start_id == end_id:
            return []
        queue = deque([(start_id, [])])
        visited = {start_id}
        while queue:
            current_id, path = queue.popleft()
            if current_id == end_id:
                return path
            location = adventure.get_location(current_id)
            if location is None:
                continue
            for conn in location.all_edges():
                if conn.target_id in visited:
                    continue
                visited.add(conn.target_id)
                queue.append((conn.target_id, path + [(current_id, conn.target_id, conn)]))
        return None

    def _override(self, from_id: str, direction: str) -> Optional[ConnectionState]:
        if self.world is None:
            return None
        return self.world.get_location_state(from_id).connections.get(direction)

    def check_passage(self, from_id: str, connection: Connection, party: Sequence[Character]) -> HopCheck:
        """Blocked and locked checks only. Overrides win field by field."""
        override = self._override(from_id, door_direction(connection))
        is_blocked = connection.is_blocked
        is_locked = connection.is_locked
        if override is not None:
            if override.is_blocked is not None:
                is_blocked = override.is_blocked
            if override.is_locked is not None:
                is_locked = override.is_locked

        if is_blocked:
            return HopCheck(allowed=False, reason=connection.blocked_reason or "The way is blocked.")

        if is_locked:
            has_key = bool(connection.required_key_id) and any(
                member.has_item(connection.required_key_id) for member in party
            )
            if not has_key:
                return HopCheck(allowed=False, reason="The door is locked.")
        return HopCheck(allowed=True)

    def is_door_open(self, from_id: str, connection: Connection, open_doors: Optional[Dict[str, bool]] = None) -> bool:
        direction = door_direction(connection)
        runtime = (open_doors or {}).get(f"{from_id}:{direction}")
        if runtime is not None:
            return runtime
        override = self._override(from_id, direction)
        if override is not None and override.is_open is not None:
            return override.is_open
        if connection.is_open is False:
            return False
        if connection.is_open is None and connection.visibility == "restricted":
            return False
        return True

    def validate_movement(
        self,
        from_id: str,
        connection: Connection,
        party: Sequence[Character],
        open_doors: Optional[Dict[str, bool]] = None,
    ) -> HopCheck:
        """Check one hop against blocked, locked and door-open state."""
        check = self.check_passage(from_id, connection, party)
        if not check.allowed:
            return check
        if not self.is_door_open(from_id, connection, open_doors):
            return HopCheck(allowed=False, reason="The door is closed. You need to open it first.")
        return HopCheck(allowed=True)

    # ------------------------------------------------------------------
    # Doors
    # ------------------------------------------------------------------

    def find_door(
        self,
        location: Location,
        adventure: Adventure,
        target_text: Optional[str],
        open_doors: Optional[Dict[str, bool]] = None,
    ) -> Optional[Connection]:
        """The connection an "open X" action refers to, or None.

        Tried in order: an interactable named in the text whose name points
        at a direction or destination, a direction or destination named
        directly, then a bare "door" when exactly one way out is closed.
        """
        text = normalize_text(target_text or "")
        if not text:
            return None

        def points_at(conn: Connection, phrase: str) -> bool:
            words = phrase.split()
            if conn.direction and normalize_text(conn.direction) in words:
                return True
            target = adventure.get_location(conn.target_id)
            names = [normalize_text(conn.target_id)]
            if target is not None and target.title:
                names.append(normalize_text(target.title))
            return any(name and name in phrase for name in names)

        for interactable in location.interactables:
            name = normalize_text(interactable.name)
            if name and (name in text or text in name):
                for conn in location.connections:
                    if points_at(conn, name):
                        return conn

        for conn in location.connections:
            if points_at(conn, text):
                return conn

        if any(word in DOOR_WORDS for word in text.split()):
            closed = [c for c in location.connections if not self.is_door_open(location.id, c, open_doors)]
            if len(closed) == 1:
                return closed[0]
        return None

    def open_door(
        self,
        location: Location,
        adventure: Adventure,
        target_text: Optional[str],
        party: Sequence[Character],
        open_doors: Dict[str, bool],
    ) -> Optional[DoorOpening]:
        """Open the door `target_text` names, on both sides. Writes into `open_doors`.

        Returns None when the text names no door of this location.
        """
        conn = self.find_door(location, adventure, target_text, open_doors)
        if conn is None:
            return None

        direction = door_direction(conn)
        check = self.check_passage(location.id, conn, party)
        if not check.allowed:
            logger.info(f"Door {location.id}:{direction} stays shut: {check.reason}")
            return DoorOpening(success=False, direction=direction, message=check.reason)

        keys = [f"{location.id}:{direction}"]
        target = adventure.get_location(conn.target_id)
        back = target.connection_to(location.id) if target is not None else None
        if back is not None:
            keys.append(f"{target.id}:{door_direction(back)}")
        for key in keys:
            open_doors[key] = True
        logger.info(f"Door opened: {keys}")

        way = f"the way {conn.direction}" if conn.direction else "the way ahead"
        return DoorOpening(success=True, direction=direction, door_keys=keys, message=f"You open {way}.")

    def resolve_movement(
        self,
        current_location_id: str,
        target_location_id: str,
        adventure: Adventure,
        party: Sequence[Character],
        open_doors: Optional[Dict[str, bool]] = None,
    ) -> MovementResult:
        current = adventure.get_location(current_location_id)
        target = adventure.get_location(target_location_id)
        if current is None or target is None:
            return MovementResult(success=False, error="Location not found.")

        target_name = location_label(target, target_location_id)

        if current.region_id and current.region_id == target.region_id:
            return MovementResult(
                success=True,
                new_location_id=target_location_id,
                narration=f"You head toward {target_name}.",
                time_passed=TimeDelta(minutes=HUB_TRAVEL_MINUTES),
                path=[target_location_id],
            )

        path = self.find_path(adventure, current_location_id, target_location_id)
        if path is None:
            return MovementResult(success=False, error="There is no known path there.", used_graph_search=True)
        if not path:
            return MovementResult(
                success=True,
                new_location_id=target_location_id,
                narration=f"You are already in {target_name}.",
                time_passed=TimeDelta(),
            )

        logger.info(f"Path found: {[to_id for _, to_id, _ in path]}")

        total = TimeDelta()
        parts: List[str] = []
        reached = current_location_id
        visited_ids: List[str] = []

        for from_id, to_id, conn in path:
            check = self.validate_movement(from_id, conn, party, open_doors)
            if not check.allowed:
                logger.info(f"Hop {from_id} → {to_id} refused: {check.reason}")
                return MovementResult(
                    success=False,
                    new_location_id=reached if reached != current_location_id else None,
                    error=check.reason,
                    path=visited_ids,
                    used_graph_search=True,
                    time_passed=normalize_travel_time(total) if visited_ids else None,
                )

            hop_time = parse_travel_time(conn)
            total = TimeDelta(
                days=total.days + hop_time.days,
                hours=total.hours + hop_time.hours,
                minutes=total.minutes + hop_time.minutes,
            )
            if conn.description:
                parts.append(conn.description)
            else:
                parts.append(f"You head toward {location_label(adventure.get_location(to_id), to_id)}.")
            reached = to_id
            visited_ids.append(to_id)

        if len(path) == 1:
            narration = parts[0]
        else:
            narration = f"You set out for {target_name}. " + " ".join(parts)

        return MovementResult(
            success=True,
            new_location_id=target_location_id,
            narration=narration,
            time_passed=normalize_travel_time(total),
            path=visited_ids,
            used_graph_search=True,
        )
