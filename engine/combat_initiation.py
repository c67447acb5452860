"""
Combat Initiation Service — turns a trigger into a ready-to-roll encounter.

Two kinds of request come in:
  player_attack    the player swung first (usually with surprise)
  dynamic_trigger  an ambush, mimic, proximity, failed stealth or provocation

Either way the service decides where the fight happens, which enemy
instances take part (revealing hidden ones where the trigger says so),
writes the revealed roster back to the world state, and reports the
surprise side plus any hook text to show before the first turn.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from models.characters import Character
from models.combat import CombatInitiationResult, CombatTriggerResult
from models.enemies import Enemy
from models.locations import Adventure
from engine.enemy_state import (
    filter_alive_enemies,
    filter_hostile_enemies,
    normalize_enemy_stats,
    reveal_hidden_enemy,
)
from engine.combat_triggers import evaluate_player_action
from engine.surprise import determine_surprise
from engine.world_state import WorldStateManager

logger = logging.getLogger("CombatInitiation")

NO_VALID_TARGET_MESSAGE = "You find no valid enemy to attack."
NO_THREAT_MESSAGE = "It seems no active threat remains here."


class CombatInitiationRequest(BaseModel):
    kind: str = "dynamic_trigger"  # player_attack | dynamic_trigger
    trigger_result: Optional[CombatTriggerResult] = None
    target_id: Optional[str] = None
    party: List[Character] = Field(default_factory=list)
    location_id: str
    new_location_id: Optional[str] = None


def _matches(enemy: Enemy, entity_id: Optional[str]) -> bool:
    return bool(entity_id) and entity_id in (enemy.id, enemy.instance_id)


class CombatInitiationService:
    """Stateless apart from the world-state manager and adventure it reads."""

    def __init__(self, world: WorldStateManager, adventure: Adventure):
        self.world = world
        self.adventure = adventure

    def initiate(self, request: CombatInitiationRequest) -> CombatInitiationResult:
        debug: List[str] = [f"Initiation type: {request.kind}"]
        if request.kind == "player_attack":
            return self._player_attack(request, debug)
        return self._dynamic_trigger(request, debug)

    # ------------------------------------------------------------------
    # Request kinds
    # ------------------------------------------------------------------

    def _player_attack(self, request: CombatInitiationRequest, debug: List[str]) -> CombatInitiationResult:
        trigger = evaluate_player_action("attack", is_combat_action=True)
        side = determine_surprise(trigger.reason, trigger.surprise_side, player_initiated_attack=True)
        reason = "player_surprise" if side == "player" else "player_attack"
        debug.append(f"Player attack on '{request.target_id}', surprise side {side}")

        enemies = self._prepare_enemies(request.location_id, debug)
        if not enemies:
            logger.info(f"Player attack at {request.location_id} found no valid enemies")
            return CombatInitiationResult(
                should_start_combat=False,
                combatant_ids=[p.id for p in request.party],
                surprise_side=side,
                reason=reason,
                narrative_messages=[NO_VALID_TARGET_MESSAGE],
                combat_location_id=request.location_id,
                debug_logs=debug,
            )

        return self._result(request.party, enemies, side, reason, [], request.location_id, debug)

    def _dynamic_trigger(self, request: CombatInitiationRequest, debug: List[str]) -> CombatInitiationResult:
        trigger = request.trigger_result
        if trigger is None or not trigger.should_start_combat:
            debug.append("Dynamic trigger requested without an active trigger result")
            logger.warning("Dynamic combat initiation requested without a trigger result")
            return CombatInitiationResult(combat_location_id=request.location_id, debug_logs=debug)

        location_id = request.new_location_id or request.location_id
        if location_id != request.location_id:
            debug.append(f"Combat moves to destination {location_id}")

        messages = [f"**{trigger.message}**"] if trigger.message else []
        side = determine_surprise(trigger.reason, trigger.surprise_side)

        enemies = self._prepare_enemies(
            location_id,
            debug,
            triggering_entity_id=trigger.triggering_entity_id,
            is_ambush=trigger.reason == "ambush",
        )
        if not enemies:
            logger.info(f"Trigger '{trigger.reason}' at {location_id} found no living enemies")
            if messages:
                messages.append(NO_THREAT_MESSAGE)
            return CombatInitiationResult(
                should_start_combat=False,
                surprise_side=side,
                reason=trigger.reason,
                narrative_messages=messages,
                combat_location_id=location_id,
                debug_logs=debug,
            )

        return self._result(request.party, enemies, side, trigger.reason, messages, location_id, debug)

    # ------------------------------------------------------------------
    # Enemy preparation
    # ------------------------------------------------------------------

    def _load_roster(self, location_id: str) -> List[Enemy]:
        state = self.world.get_location_state(location_id)
        if state.enemies:
            return [normalize_enemy_stats(e.model_copy(deep=True)) for e in state.enemies]
        location = self.adventure.get_location(location_id)
        if location is None:
            return []
        return self.world.spawn_enemies(self.adventure, location)

    def _prepare_enemies(
        self,
        location_id: str,
        debug: List[str],
        triggering_entity_id: Optional[str] = None,
        is_ambush: bool = False,
    ) -> List[Enemy]:
        roster = self._load_roster(location_id)
        debug.append(f"{len(roster)} enemies on record at {location_id}")

        if is_ambush:
            revealed = [reveal_hidden_enemy(e) if e.disposition == "hidden" else e for e in roster]
            combat = filter_hostile_enemies(revealed)
            debug.append(f"Ambush reveals {sum(1 for e in roster if e.disposition == 'hidden')} hidden enemies")
        elif triggering_entity_id:
            revealed = [reveal_hidden_enemy(e) if _matches(e, triggering_entity_id) else e for e in roster]
            trigger_enemies = [e for e in revealed if _matches(e, triggering_entity_id)]
            if not trigger_enemies:
                debug.append(f"Triggering entity {triggering_entity_id} not in roster")
                logger.warning(f"Triggering entity {triggering_entity_id} not found at {location_id}")
            others = filter_hostile_enemies(e for e in revealed if not _matches(e, triggering_entity_id))
            combat = trigger_enemies + others
        else:
            revealed = roster
            combat = filter_hostile_enemies(roster)

        # The dead stay in the roster but never fight.
        self.world.update_enemies(location_id, revealed)
        combat = filter_alive_enemies(combat)
        debug.append(f"{len(combat)} enemies join the fight")
        return combat

    @staticmethod
    def _result(
        party: List[Character],
        enemies: List[Enemy],
        side: str,
        reason: str,
        messages: List[str],
        location_id: str,
        debug: List[str],
    ) -> CombatInitiationResult:
        party_ids = [p.id for p in party if p.status != "dead"]
        enemy_ids = [e.instance_id for e in enemies]
        logger.info(
            f"Combat at {location_id}: {len(party_ids)} party vs {len(enemy_ids)} enemies "
            f"(reason={reason}, surprise={side})"
        )
        return CombatInitiationResult(
            should_start_combat=True,
            combatant_ids=party_ids + enemy_ids,
            surprise_side=side,
            reason=reason,
            prepared_enemies=enemies,
            narrative_messages=messages,
            combat_location_id=location_id,
            debug_logs=debug,
        )


def split_roster(result: CombatInitiationResult, party: List[Character]) -> Tuple[List[Character], List[Enemy]]:
    """Party members and enemies named in an initiation result."""
    ids = set(result.combatant_ids)
    return [p for p in party if p.id in ids], list(result.prepared_enemies)
