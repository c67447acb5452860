"""
Combat Node — Prepares the encounter once a trigger fires.

Delegates to CombatInitiationService; the orchestrator takes over from the
returned initiation result. Ambush and mimic hazards are cleared once they
have sprung so they never fire twice.
"""

import logging
from pipeline.state import TurnState
from engine.combat_initiation import CombatInitiationRequest

logger = logging.getLogger("pipeline.combat")

ONE_SHOT_HAZARDS = ("ambush", "mimic")


async def combat_node(state: TurnState, *, initiation_service, world, **_kwargs) -> dict:
    session = state["session"]
    trigger = state.get("trigger")
    interpreted = state.get("interpreted_action") or {}
    movement = state.get("movement")

    is_attack = trigger is not None and trigger.reason == "player_surprise"
    origin = state.get("previous_location_id") or session.current_location_id
    request = CombatInitiationRequest(
        kind="player_attack" if is_attack else "dynamic_trigger",
        trigger_result=trigger,
        target_id=interpreted.get("target_id"),
        party=session.party,
        location_id=origin if movement is not None else session.current_location_id,
        new_location_id=movement.new_location_id if movement is not None else None,
    )

    try:
        result = initiation_service.initiate(request)
    except Exception as e:
        logger.error(f"Combat node error: {e}", exc_info=True)
        return {"combat_initiation": None, "error": f"Combat initiation failed: {e}"}

    if result.should_start_combat and trigger.reason in ONE_SHOT_HAZARDS and trigger.triggering_entity_id:
        world.mark_hazard_cleared(result.combat_location_id, trigger.triggering_entity_id)

    messages = list(state.get("system_messages") or [])
    messages.extend(result.narrative_messages)
    logger.info(f"Initiation: start={result.should_start_combat} combatants={result.combatant_ids}")
    return {"combat_initiation": result, "system_messages": messages}
