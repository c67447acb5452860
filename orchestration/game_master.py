"""
GameMaster — routes each player action to the right engine.

Out of combat, actions go through the exploration pipeline. When that
pipeline (or the player) starts a fight, the combat orchestrator takes
over: AI turns are auto-advanced one at a time until a player must act
or the encounter ends. A player's opening attack is replayed on their
first turn so it is not lost to initiative.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.combat import DiceRollRecord, PlayerCombatAction, TurnResult, CombatPhase
from models.locations import Adventure
from models.session import ChatMessage, GameSession
from engine.combat_initiation import CombatInitiationService
from engine.combat_orchestrator import CombatOrchestrator
from engine.combat_triggers import InteractionOutcome, StealthCheck
from engine.navigation import NavigationManager
from engine.world_state import WorldStateManager
from pipeline.turn_manager import NarrativeTurnManager

logger = logging.getLogger("GameMaster")

MAX_AUTO_STEPS = 100
COMBAT_ACTIONS = ("attack", "spell", "heal")


class GameMasterResponse(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    dice_rolls: List[DiceRollRecord] = Field(default_factory=list)
    in_combat: bool = False
    awaiting_player: bool = False
    combat_ended: bool = False
    winner: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False


class GameMaster:
    """One running game: adventure, session and every engine bound to them."""

    def __init__(
        self,
        adventure: Adventure,
        session: GameSession,
        narrator,
        enemy_tactician=None,
        companion_tactician=None,
        companion_reactor=None,
        rng=None,
    ):
        self.adventure = adventure
        self.session = session
        if not session.current_location_id:
            session.current_location_id = adventure.starting_location_id

        self.world = WorldStateManager(session.world_state)
        self.navigation = NavigationManager(self.world)
        self.initiation_service = CombatInitiationService(self.world, adventure)
        self.narrator = narrator
        self.turn_manager = NarrativeTurnManager({
            "adventure": adventure,
            "world": self.world,
            "navigation": self.navigation,
            "initiation_service": self.initiation_service,
            "narrator": narrator,
            "companion_reactor": companion_reactor,
        })
        self.orchestrator = CombatOrchestrator(enemy_tactician, companion_tactician, rng=rng)
        if session.combat.in_combat:
            self.orchestrator.state = session.combat
            self._bind_party()
        self._pending_attack: Optional[PlayerCombatAction] = None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process_action(
        self,
        player_action: str,
        interpreted_action: Dict[str, Any],
        stealth_result: Optional[StealthCheck] = None,
        interaction_result: Optional[InteractionOutcome] = None,
    ) -> GameMasterResponse:
        if self.session.in_combat:
            return await self._combat_action(player_action, interpreted_action)

        turn = await self.turn_manager.process_turn(
            self.session, player_action, interpreted_action, stealth_result, interaction_result,
        )
        response = GameMasterResponse(messages=list(turn.messages), error=turn.error, retryable=turn.retryable)
        if not turn.combat_started:
            return response

        initiation = turn.combat_initiation
        if initiation.reason in ("player_surprise", "player_attack"):
            self._pending_attack = self._to_combat_action(player_action, interpreted_action)

        location = self.adventure.get_location(initiation.combat_location_id)
        description = location.description if location is not None else ""
        opening = await self.narrator.narrate_combat_start(
            description,
            {
                "surpriseSide": None if initiation.surprise_side == "none" else initiation.surprise_side,
                "reason": initiation.reason,
                "enemies": [e.name for e in initiation.prepared_enemies],
            },
            self.session.recent_transcript(),
        )
        if opening:
            response.messages.append(self._record("DM", opening))

        result = await self.orchestrator.start_combat(initiation, self.session.party, description)
        return await self._run_combat(result, response)

    # ------------------------------------------------------------------
    # Combat
    # ------------------------------------------------------------------

    @staticmethod
    def _to_combat_action(player_action: str, interpreted_action: Dict[str, Any]) -> PlayerCombatAction:
        action_type = str(interpreted_action.get("action_type") or "attack").lower()
        if action_type not in COMBAT_ACTIONS:
            action_type = "other"
        return PlayerCombatAction(
            action_type=action_type,
            target_id=interpreted_action.get("target_id"),
            description=player_action,
            attack_notation=interpreted_action.get("attack_notation"),
            damage_notation=interpreted_action.get("damage_notation"),
            attack_result=interpreted_action.get("attack_result"),
            damage_result=interpreted_action.get("damage_result"),
        )

    async def _combat_action(self, player_action: str, interpreted_action: Dict[str, Any]) -> GameMasterResponse:
        response = GameMasterResponse(in_combat=True)
        response.messages.append(self._record("Player", player_action))
        result = self.orchestrator.submit_player_action(self._to_combat_action(player_action, interpreted_action))
        if not result.success:
            response.error = result.error
            response.awaiting_player = self.orchestrator.state.phase == CombatPhase.WAITING_FOR_ACTION
            response.messages.extend(self._record("System", line) for line in result.messages)
            return response
        return await self._run_combat(result, response)

    async def _run_combat(self, result: TurnResult, response: GameMasterResponse) -> GameMasterResponse:
        """Collect results and auto-advance until a player must act or combat ends."""
        for _ in range(MAX_AUTO_STEPS):
            self._collect(result, response)

            if result.awaiting_player and self._pending_attack is not None:
                pending, self._pending_attack = self._pending_attack, None
                replay = self.orchestrator.submit_player_action(pending)
                if replay.success:
                    result = replay
                    continue
                logger.info(f"Opening attack could not be replayed: {replay.error}")

            if result.combat_ended or result.awaiting_player or result.phase != CombatPhase.ACTION_RESOLVED:
                break
            result = await self.orchestrator.advance()
        else:
            logger.warning("Combat auto-advance hit the step limit")

        self._sync_session()
        response.in_combat = self.session.in_combat
        response.awaiting_player = result.awaiting_player
        response.combat_ended = result.combat_ended
        response.winner = result.winner
        return response

    def _collect(self, result: TurnResult, response: GameMasterResponse) -> None:
        for line in result.messages:
            response.messages.append(self._record("DM", line))
        response.dice_rolls.extend(result.dice_rolls)
        self.session.dice_rolls.extend(result.dice_rolls)

    def _bind_party(self) -> None:
        """Point the combat party at the session's Character objects.

        A restored snapshot carries two copies of every fighter. The combat
        copy is the current one, so its hit points and death flag win.
        """
        members = {m.id: m for m in self.session.party}
        bound = []
        for fighter in self.orchestrator.state.party:
            member = members.get(fighter.id)
            if member is None:
                bound.append(fighter)
                continue
            member.hp = fighter.hp.model_copy()
            member.is_dead = fighter.is_dead
            bound.append(member)
        self.orchestrator.state.party = bound

    def _sync_session(self) -> None:
        """Copy combat results back into the session and the world state."""
        state = self.orchestrator.state
        self.session.combat = state
        if not state.location_id:
            return
        by_id = {e.instance_id: e for e in state.enemies}
        roster = self.world.get_location_state(state.location_id).enemies
        merged = [by_id.pop(e.instance_id, e) for e in roster]
        merged.extend(by_id.values())
        self.world.update_enemies(state.location_id, merged)

    def _record(self, sender: str, content: str) -> ChatMessage:
        self.session.add_message(sender, content)
        return self.session.messages[-1]
