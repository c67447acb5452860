"""
Door Node — Opens doors named by "interact" actions ("open the door", "abro la puerta").

The door is opened on both sides in session.open_doors, so the party can
walk through it now and come back later. Locked or blocked ways stay shut.
"""

import logging
from pipeline.state import TurnState
from engine.navigation import OPEN_WORDS
from tools.target_matcher import normalize_text

logger = logging.getLogger("pipeline.doors")


def wants_to_open(player_action: str, target_text) -> bool:
    words = normalize_text(f"{player_action or ''} {target_text or ''}").split()
    return any(word in OPEN_WORDS for word in words)


async def door_node(state: TurnState, *, adventure, navigation, **_kwargs) -> dict:
    interpreted = state.get("interpreted_action") or {}
    if interpreted.get("action_type") != "interact":
        return {"door": None}

    player_action = state.get("player_action", "")
    target = interpreted.get("target_id") or player_action
    if not wants_to_open(player_action, target):
        return {"door": None}

    session = state["session"]
    location = adventure.get_location(session.current_location_id)
    if location is None:
        return {"door": None}

    opening = navigation.open_door(location, adventure, target, session.party, session.open_doors)
    if opening is None:
        logger.debug(f"'{target}' names no door at {location.id}")
        return {"door": None}

    messages = list(state.get("system_messages") or [])
    if opening.message:
        messages.append(opening.message)
    return {"door": opening, "system_messages": messages}
