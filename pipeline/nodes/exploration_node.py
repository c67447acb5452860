"""
Exploration Node — Fog of war, passive perception and visible exits.

Registers the visit when the party arrives somewhere (or on the very first
turn), then builds the exploration context the narrator works from.
"""

import logging
from pipeline.state import TurnState
from engine.exploration import build_exploration_context

logger = logging.getLogger("pipeline.exploration")


async def exploration_node(state: TurnState, *, adventure, world, **_kwargs) -> dict:
    session = state["session"]
    location_id = session.current_location_id
    location = adventure.get_location(location_id)
    if location is None:
        logger.error(f"Current location {location_id} is not in the adventure")
        return {"exploration": None, "error": f"Unknown location: {location_id}"}

    arrived = location_id != state.get("previous_location_id")
    if arrived or not world.get_location_state(location_id).visited:
        world.enter_location(adventure, location_id, session.turn_number)

    came_from = state.get("previous_location_id") if arrived else None
    context = build_exploration_context(
        location,
        adventure,
        session.party,
        world,
        session.exploration,
        session.world_time.total_minutes(),
        came_from_location_id=came_from,
        open_doors=session.open_doors,
    )
    if context.detected_hazards:
        logger.info(f"Detected hazards at {location_id}: {[h.id for h in context.detected_hazards]}")
    return {"exploration": context}
