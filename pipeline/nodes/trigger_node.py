"""
Trigger Node — Decides whether this exploration turn turns into combat.

  attack            → player-initiated attack (surprise for the party)
  interact          → mimic / provocation, then the usual room checks
  move, look, etc.  → ambush > failed stealth > proximity
  ooc               → never

A pending ambush sets hide_enemy_names so nothing downstream spoils it.
"""

import logging
from pipeline.state import TurnState
from engine.combat_triggers import evaluate_exploration, evaluate_interaction, evaluate_player_action
from models.combat import CombatTriggerResult

logger = logging.getLogger("pipeline.triggers")

EXPLORATION_ACTIONS = ("move", "narrate", "continue_turn", "interact")


def known_hazard_ids(world, location_id: str, exploration) -> set:
    state = world.get_location_state(location_id)
    known = set(state.discovered_secrets) | set(state.cleared_hazards)
    if exploration is not None:
        known.update(h.id for h in exploration.detected_hazards)
    return known


async def trigger_node(state: TurnState, *, adventure, world, **_kwargs) -> dict:
    session = state["session"]
    interpreted = state.get("interpreted_action") or {}
    action_type = interpreted.get("action_type")
    location = adventure.get_location(session.current_location_id)
    if location is None or state.get("error"):
        return {"trigger": CombatTriggerResult()}

    if action_type == "attack":
        trigger = evaluate_player_action(action_type, is_combat_action=True)
        logger.info(f"Player attack on '{interpreted.get('target_id')}' starts combat")
        return {"trigger": trigger}

    if action_type == "interact":
        cleared = set(world.get_location_state(location.id).cleared_hazards)
        trigger = evaluate_interaction(
            interpreted.get("target_id"),
            [h for h in location.hazards if h.id not in cleared],
            state.get("interaction_result"),
        )
        if trigger.should_start_combat:
            logger.info(f"Interaction trigger: {trigger.reason}")
            return {"trigger": trigger}

    if action_type not in EXPLORATION_ACTIONS:
        return {"trigger": CombatTriggerResult()}

    exploration = state.get("exploration")
    visible = exploration.present_entities if exploration is not None else []
    trigger = evaluate_exploration(
        location,
        known_hazard_ids(world, location.id, exploration),
        visible,
        state.get("stealth_result"),
    )
    if trigger.should_start_combat:
        logger.info(f"Exploration trigger at {location.id}: {trigger.reason}")
    return {"trigger": trigger, "hide_enemy_names": trigger.reason == "ambush"}
