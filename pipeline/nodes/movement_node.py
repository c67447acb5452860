"""
Movement Node — Resolves "move" actions through the navigation manager.

The target may be a location id or a free-text name ("the tavern"); names
are matched against location titles. Travel time is added to the world
clock, including partial progress when a later hop is refused.
"""

import logging
from pipeline.state import TurnState
from engine.navigation import update_world_time
from tools.target_matcher import Candidate, match_target

logger = logging.getLogger("pipeline.movement")


def resolve_destination(target, adventure):
    """Location id for a free-text move target, or None."""
    candidates = [Candidate(id=loc.id, name=loc.title or "", kind="location") for loc in adventure.locations]
    match = match_target(target, candidates, keywords={})
    return match.id if match else None


async def movement_node(state: TurnState, *, adventure, navigation, **_kwargs) -> dict:
    interpreted = state.get("interpreted_action") or {}
    if interpreted.get("action_type") != "move":
        return {"movement": None}

    session = state["session"]
    destination = resolve_destination(interpreted.get("target_id"), adventure)
    if destination is None:
        logger.info(f"Unknown move target '{interpreted.get('target_id')}'")
        messages = list(state.get("system_messages") or [])
        messages.append("You're not sure where that is.")
        return {"movement": None, "system_messages": messages}

    if destination == session.current_location_id:
        return {"movement": None}

    try:
        result = navigation.resolve_movement(
            session.current_location_id,
            destination,
            adventure,
            session.party,
            session.open_doors,
        )
    except Exception as e:
        logger.error(f"Movement node error: {e}", exc_info=True)
        return {"movement": None, "error": f"Navigation failed: {e}"}

    if result.time_passed is not None:
        session.world_time = update_world_time(session.world_time, result.time_passed)
    if result.new_location_id:
        session.current_location_id = result.new_location_id
        logger.info(f"Party moved to {result.new_location_id} ({session.world_time.describe()})")

    update = {"movement": result}
    if not result.success:
        messages = list(state.get("system_messages") or [])
        messages.append(result.error or "You cannot go that way.")
        update["system_messages"] = messages
    return update
