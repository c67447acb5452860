"""
Combat Trigger Evaluator — decides when exploration turns into combat.

Three pure entry points, one per kind of game event. Each checks its
rules in a fixed order and falls through to "no trigger":

  evaluate_exploration   undetected ambush > failed stealth > proximity
  evaluate_interaction   mimic > provocation
  evaluate_player_action explicit attack out of combat

A successful stealth check suppresses the proximity trigger for that
evaluation only; nothing is remembered for later.
"""

import logging
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

from models.combat import CombatTriggerResult
from models.enemies import Enemy
from models.locations import Hazard, Location
from tools.entity_status import is_entity_out_of_combat
from tools.target_matcher import Candidate, match_target

logger = logging.getLogger("CombatTriggers")

DEFAULT_AMBUSH_MESSAGE = "Ambush! Enemies burst out of the shadows."
DEFAULT_STEALTH_FAIL_MESSAGE = "Your attempt at stealth fails. You've been spotted!"
DEFAULT_PROXIMITY_MESSAGE = "Enemies in sight. To arms!"
DEFAULT_MIMIC_MESSAGE = "The object comes alive! It's a mimic!"
DEFAULT_PROVOCATION_MESSAGE = "Tension snaps. Combat begins!"
DEFAULT_PLAYER_SURPRISE_MESSAGE = "Surprise attack!"


class StealthCheck(BaseModel):
    success: bool
    roll: int = 0


class InteractionOutcome(BaseModel):
    escalation: bool = False
    new_attitude: Optional[str] = None
    action: Optional[str] = None


NO_TRIGGER = CombatTriggerResult()


def _is_visible_hostile(entity: Enemy) -> bool:
    if entity.disposition == "hidden":
        return False
    if is_entity_out_of_combat(entity):
        return False
    return entity.disposition == "hostile"


def evaluate_exploration(
    location: Location,
    detected_hazard_ids: Iterable[str],
    visible_entities: Sequence[Enemy],
    stealth_result: Optional[StealthCheck] = None,
) -> CombatTriggerResult:
    """Entering or looking around a location."""
    detected = set(detected_hazard_ids)

    for hazard in location.hazards:
        if hazard.type == "ambush" and hazard.active and hazard.id not in detected:
            logger.info(f"Undetected ambush '{hazard.id}' fires in {location.id}")
            return CombatTriggerResult(
                should_start_combat=True,
                reason="ambush",
                surprise_side="enemy",
                triggering_entity_id=hazard.id,
                message=hazard.trigger_description or DEFAULT_AMBUSH_MESSAGE,
            )

    hostiles = [e for e in visible_entities if _is_visible_hostile(e)]
    if hostiles:
        if stealth_result is not None and not stealth_result.success:
            return CombatTriggerResult(
                should_start_combat=True,
                reason="stealth_fail",
                message=DEFAULT_STEALTH_FAIL_MESSAGE,
            )
        if stealth_result is None:
            return CombatTriggerResult(
                should_start_combat=True,
                reason="proximity",
                message=DEFAULT_PROXIMITY_MESSAGE,
            )
        logger.debug(f"Stealth succeeded, {len(hostiles)} hostiles stay unaware")

    return NO_TRIGGER.model_copy()


def find_mimic(target_id: Optional[str], hazards: Sequence[Hazard]) -> Optional[Hazard]:
    """Match a free-text target against the location's active mimics."""
    mimics = [h for h in hazards if h.type == "mimic" and h.active]
    candidates = [
        Candidate(id=h.id, name=getattr(h, "name", None) or "", kind="mimic")
        for h in mimics
    ]
    match = match_target(target_id, candidates)
    if match is None:
        return None
    logger.info(f"Target '{target_id}' matched mimic '{match.id}' by {match.rule}")
    return next(h for h in mimics if h.id == match.id)


def evaluate_interaction(
    target_id: Optional[str],
    location_hazards: Sequence[Hazard],
    interaction_result: Optional[InteractionOutcome] = None,
) -> CombatTriggerResult:
    """Touching an object or talking to someone."""
    mimic = find_mimic(target_id, location_hazards)
    if mimic is not None:
        return CombatTriggerResult(
            should_start_combat=True,
            reason="mimic",
            surprise_side="enemy",
            triggering_entity_id=mimic.id,
            message=mimic.trigger_description or DEFAULT_MIMIC_MESSAGE,
        )

    if interaction_result is not None and (interaction_result.escalation or interaction_result.action == "attack"):
        return CombatTriggerResult(
            should_start_combat=True,
            reason="provocation",
            message=DEFAULT_PROVOCATION_MESSAGE,
        )

    return NO_TRIGGER.model_copy()


def evaluate_player_action(action_type: str, is_combat_action: bool = False) -> CombatTriggerResult:
    """The player attacks while out of combat."""
    if is_combat_action or action_type == "attack":
        return CombatTriggerResult(
            should_start_combat=True,
            reason="player_surprise",
            surprise_side="player",
            message=DEFAULT_PLAYER_SURPRISE_MESSAGE,
        )
    return NO_TRIGGER.model_copy()
