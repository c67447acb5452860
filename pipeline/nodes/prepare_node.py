"""
Prepare Node — First stop of every exploration turn.

Normalises the interpreted action and detects the adventure-start special
case (the opening "let's begin" action gets no companion chatter).
"""

import logging
from pipeline.state import TurnState

logger = logging.getLogger("pipeline.prepare")

START_KEYWORDS = ("comenzar", "empezar", "iniciar", "begin", "start")


def is_adventure_start(player_action: str, history_length: int) -> bool:
    text = (player_action or "").lower()
    return history_length == 0 and any(word in text for word in START_KEYWORDS)


async def prepare_node(state: TurnState, **_kwargs) -> dict:
    session = state["session"]
    interpreted = dict(state.get("interpreted_action") or {})
    interpreted["action_type"] = str(interpreted.get("action_type") or "narrate").lower()
    interpreted.setdefault("target_id", None)

    start = is_adventure_start(state.get("player_action", ""), len(session.messages))
    if start:
        logger.info("Adventure start detected, companions stay quiet")

    return {
        "interpreted_action": interpreted,
        "is_adventure_start": start,
        "previous_location_id": session.current_location_id,
        "door": None,
        "system_messages": [],
        "companion_before": [],
        "companion_after": [],
        "hide_enemy_names": False,
    }
