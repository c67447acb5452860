"""
Narration Node — Calls the NarratorAgent with the assembled turn context.

The location payload is trimmed to what the party can know: hidden
hazards and secrets never reach the prompt, and while an ambush is
pending no enemy is named at all.
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from pipeline.state import TurnState
from agents.narrator import NarrationRequest
from models.characters import Character
from tools.monster_names import generate_differentiated_names

logger = logging.getLogger("pipeline.narration")


def location_payload(location) -> Dict[str, Any]:
    return {
        "id": location.id,
        "title": location.title,
        "description": location.description,
        "explorationMode": location.exploration_mode,
        "lightLevel": location.light_level,
        "interactables": [i.model_dump(by_alias=True) for i in location.interactables],
    }


def exploration_payload(exploration, hide_enemy_names: bool) -> Dict[str, Any]:
    if exploration is None:
        return {}
    payload: Dict[str, Any] = {
        "visitState": exploration.visit_state,
        "detectedHazards": [h.description or h.type for h in exploration.detected_hazards],
        "visibleConnections": exploration.visible_connections,
        "deadEntities": exploration.dead_entities,
    }
    if not hide_enemy_names:
        visible = [e for e in exploration.present_entities if e.disposition != "hidden"]
        names = generate_differentiated_names(visible)
        payload["presentEntities"] = [
            {"id": e.instance_id, "name": names.get(e.instance_id, e.name), "disposition": e.disposition}
            for e in visible
        ]
    return payload


def apply_character_updates(session, updates: Optional[Dict[str, Any]]) -> int:
    """Merge {characterId: {field: value}} updates into the party. Returns how many applied."""
    applied = 0
    for key, changes in (updates or {}).items():
        if not isinstance(changes, dict):
            continue
        for index, member in enumerate(session.party):
            if key not in (member.id, member.name):
                continue
            merged = {**member.model_dump(by_alias=True), **changes}
            try:
                session.party[index] = Character.model_validate(merged)
                applied += 1
            except ValidationError as e:
                logger.warning(f"Discarding invalid stat update for {member.name}: {e}")
    return applied


async def narration_node(state: TurnState, *, adventure, narrator, **_kwargs) -> dict:
    session = state["session"]
    location = adventure.get_location(session.current_location_id)
    movement = state.get("movement")

    movement_text = None
    if movement is not None:
        movement_text = movement.narration if movement.success else movement.error

    request = NarrationRequest(
        player_action=state.get("player_action", ""),
        interpreted_action=state.get("interpreted_action") or {},
        location_context=location_payload(location) if location is not None else {},
        exploration_context=exploration_payload(state.get("exploration"), state.get("hide_enemy_names", False)),
        conversation_history=session.recent_transcript(),
        movement_narration=movement_text,
    )

    result = await narrator.narrate(request)
    if result.error:
        logger.warning(f"Narration degraded: {result.error}")
        return {"narration": result.narration, "error": result.error, "retryable": result.retryable}

    if result.updated_character_stats:
        count = apply_character_updates(session, result.updated_character_stats)
        logger.info(f"Applied {count} character stat update(s) from narration")
    return {"narration": result.narration, "updated_character_stats": result.updated_character_stats}
