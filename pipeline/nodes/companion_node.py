"""
Companion Nodes — AI party members react before and after the DM narrates.

Before: only for significant actions (move, attack, interact), reacting
to what the player proposes. After: reacting to the DM's narration of the
result. Each living, conscious companion is asked independently; most of
the time some of them stay silent.
"""

import logging
from pipeline.state import TurnState
from tools.entity_status import can_entity_react

logger = logging.getLogger("pipeline.companions")

SIGNIFICANT_ACTIONS = ("move", "attack", "interact")


async def _collect(state: TurnState, companion_reactor, timing: str, dm_narration=None) -> list:
    session = state["session"]
    interpreted = state.get("interpreted_action") or {}
    reactions = []
    for character in session.party:
        if not can_entity_react(character):
            continue
        targeted = interpreted.get("action_type") == "interact" and interpreted.get("target_id") in (
            character.id, character.name,
        )
        reaction = await companion_reactor.react(
            character,
            session.party,
            state.get("player_action", ""),
            timing=timing,
            targeted=targeted,
            dm_narration=dm_narration,
            in_combat=session.in_combat,
        )
        if reaction is not None:
            reactions.append(reaction)
    return reactions


async def companions_before_node(state: TurnState, *, companion_reactor=None, **_kwargs) -> dict:
    interpreted = state.get("interpreted_action") or {}
    if companion_reactor is None or state.get("is_adventure_start"):
        return {"companion_before": []}
    if interpreted.get("action_type") not in SIGNIFICANT_ACTIONS:
        return {"companion_before": []}

    try:
        reactions = await _collect(state, companion_reactor, "before_dm")
        logger.info(f"{len(reactions)} companion reaction(s) before narration")
        return {"companion_before": reactions}
    except Exception as e:
        logger.error(f"Companion (before) node error: {e}", exc_info=True)
        return {"companion_before": []}


async def companions_after_node(state: TurnState, *, companion_reactor=None, **_kwargs) -> dict:
    if companion_reactor is None or state.get("is_adventure_start"):
        return {"companion_after": []}

    try:
        reactions = await _collect(state, companion_reactor, "after_dm", dm_narration=state.get("narration"))
        logger.info(f"{len(reactions)} companion reaction(s) after narration")
        return {"companion_after": reactions}
    except Exception as e:
        logger.error(f"Companion (after) node error: {e}", exc_info=True)
        return {"companion_after": []}
