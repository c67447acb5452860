"""
Combat Orchestrator — the turn state machine for one encounter.

    SETUP → TURN_START → WAITING_FOR_ACTION → PROCESSING_ACTION
          → ACTION_RESOLVED → TURN_END → TURN_START ... → COMBAT_END

The orchestrator never loops on its own. Each public call runs until the
next pause point and returns a TurnResult:

  * a player-controlled combatant's turn stops in WAITING_FOR_ACTION;
    the caller answers with submit_player_action().
  * every resolved (or skipped) turn stops in ACTION_RESOLVED; the caller
    decides when to call advance(). TurnResult.has_more_ai_turns says
    whether the next turn will resolve without player input.

AI-controlled combatants (enemies and companions) get their decision from
a tactician collaborator. Any tactician failure becomes a harmless
"does nothing" turn.
"""

import random
import logging
from typing import List, Optional, Sequence

from models.characters import Character
from models.combat import (
    CombatInitiationResult,
    CombatPhase,
    CombatState,
    Combatant,
    PlayerCombatAction,
    TurnResult,
)
from models.enemies import Enemy
from models.tactician import CombatantView, DiceRollRequest, TacticianDecision, TacticianInput
from engine.action_executor import ActionExecutor, ActionOutcome
from engine.errors import CombatStateError
from engine.initiative import roll_initiative
from engine.rules_engine import check_end_of_combat, get_hp_status
from engine.surprise import clear_surprise_flag, determine_surprise, is_surprised, mark_combatants_surprised
from engine.turn_manager import has_more_ai_turns, next_turn_index, should_skip_turn
from tools.dice_roller import format_modifier
from tools.monster_names import generate_differentiated_names, resolve_enemy_id
from tools.skill_check import ability_modifier

logger = logging.getLogger("CombatOrchestrator")

TRANSCRIPT_WINDOW = 10
DEFAULT_WEAPON_DIE = "1d8"


class CombatOrchestrator:
    """Drives one combat encounter through its phases.

    Args:
        enemy_tactician: Object with `async decide(TacticianInput)` for enemies.
        companion_tactician: Same contract, for AI-controlled party members.
        rng: Optional seeded random source for initiative and dice.
    """

    def __init__(self, enemy_tactician=None, companion_tactician=None, rng: Optional[random.Random] = None):
        self.enemy_tactician = enemy_tactician
        self.companion_tactician = companion_tactician
        self.rng = rng
        self.executor = ActionExecutor(rng)
        self.state = CombatState()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start_combat(
        self,
        initiation: CombatInitiationResult,
        party: Sequence[Character],
        location_description: str = "",
    ) -> TurnResult:
        """SETUP: roll initiative, tag surprise, then run the first TURN_START."""
        if not initiation.should_start_combat:
            return self._error("COMBAT_NOT_STARTED", "Initiation did not request combat")

        ids = set(initiation.combatant_ids)
        fighters = [p for p in party if p.id in ids] or list(party)
        enemies: List[Enemy] = list(initiation.prepared_enemies)

        self.state = CombatState(
            in_combat=True,
            phase=CombatPhase.SETUP,
            party=fighters,
            enemies=enemies,
            location_id=initiation.combat_location_id,
            location_description=location_description,
            transcript=list(initiation.narrative_messages),
        )

        order = roll_initiative(fighters, enemies, self.rng)
        side = determine_surprise(initiation.reason, initiation.surprise_side)
        self.state.initiative_order = mark_combatants_surprised(order, side)
        self.state.turn_index = 0
        self.state.round = 1

        opening = list(initiation.narrative_messages)
        opening.append("Initiative: " + ", ".join(f"{c.character_name} ({c.total})" for c in order))
        logger.info(f"Combat started at {self.state.location_id} (reason={initiation.reason}, surprise={side})")

        result = await self._turn_start()
        result.messages = opening + result.messages
        return result

    def submit_player_action(self, action: PlayerCombatAction) -> TurnResult:
        """Resolve the waiting player's action. Returns a structured error on misuse."""
        if not self.state.in_combat:
            return self._error("NOT_IN_COMBAT", "There is no combat in progress.")
        if self.state.phase != CombatPhase.WAITING_FOR_ACTION:
            return self._error("NOT_WAITING_FOR_ACTION", f"Combat is in phase {self.state.phase.value}.")

        actor = self._active()
        if actor.controlled_by != "Player":
            return self._error("NOT_PLAYER_TURN", f"It is {actor.character_name}'s turn.")

        resolution = resolve_enemy_id(
            action.target_id,
            self.state.enemies,
            initiative_order=self.state.initiative_order,
            party_ids=[p.id for p in self.state.party],
        )
        if resolution.ambiguous:
            return self._error(
                "AMBIGUOUS_TARGET",
                f"Which one? {', '.join(resolution.matches)}",
                details={"matches": resolution.matches},
            )
        target = self.executor.find_target(self.state, resolution.unique_id or action.target_id)
        if target is None and action.action_type in ("attack", "spell", "heal"):
            return self._error("TARGET_NOT_FOUND", f"No target called '{action.target_id}' in this fight.")

        character = self._character(actor.id)
        decision = self._player_decision(character, actor, action, target)
        self.state.phase = CombatPhase.PROCESSING_ACTION
        return self._resolve(actor, decision)

    async def advance(self) -> TurnResult:
        """ACTION_RESOLVED → TURN_END → TURN_START of the next combatant."""
        if self.state.phase == CombatPhase.COMBAT_END or not self.state.in_combat:
            return self._error("NOT_IN_COMBAT", "There is no combat in progress.")
        if self.state.phase != CombatPhase.ACTION_RESOLVED:
            return self._error("NOT_RESOLVED", f"Cannot advance from phase {self.state.phase.value}.")

        self.state.phase = CombatPhase.TURN_END
        order = self.state.initiative_order
        new_index = next_turn_index(self.state.turn_index, len(order))
        if new_index <= self.state.turn_index:
            self.state.round += 1
            logger.info(f"Round {self.state.round} begins")
        self.state.turn_index = new_index

        if self._check_end():
            return self._result()
        return await self._turn_start()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _turn_start(self) -> TurnResult:
        self.state.phase = CombatPhase.TURN_START
        self._sync_statuses()
        if self._check_end():
            return self._result()

        actor = self._active()

        if is_surprised(actor):
            clear_surprise_flag(actor)
            self.state.phase = CombatPhase.ACTION_RESOLVED
            return self._result(messages=[self._log(f"{actor.character_name} is surprised and loses their turn.")])

        if should_skip_turn(actor):
            self.state.phase = CombatPhase.ACTION_RESOLVED
            return self._result(messages=[self._log(f"{actor.character_name} is {actor.status} and cannot act.")])

        self.state.phase = CombatPhase.WAITING_FOR_ACTION
        if actor.controlled_by == "Player":
            return self._result(awaiting_player=True, messages=[f"{actor.character_name}, it's your turn."])

        decision = await self._ai_decision(actor)
        self.state.phase = CombatPhase.PROCESSING_ACTION
        return self._resolve(actor, decision)

    def _resolve(self, actor: Combatant, decision: TacticianDecision) -> TurnResult:
        """PROCESSING_ACTION → ACTION_RESOLVED (or COMBAT_END on a decisive blow)."""
        outcome = self.executor.execute(actor, decision, self.state)
        messages = []
        if decision.action_description:
            messages.append(self._log(decision.action_description))
        if outcome.success:
            messages.extend(self._log(line) for line in self._summarize(actor, outcome))
        else:
            messages.append(self._log(f"{actor.character_name} hesitates and does nothing."))

        self._sync_statuses()
        if self._check_end():
            result = self._result(messages=messages)
            result.dice_rolls = outcome.dice_rolls
            return result

        self.state.phase = CombatPhase.ACTION_RESOLVED
        result = self._result(messages=messages)
        result.dice_rolls = outcome.dice_rolls
        result.details = outcome.model_dump(exclude={"dice_rolls"})
        return result

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def _ai_decision(self, actor: Combatant) -> TacticianDecision:
        tactician = self.enemy_tactician if actor.type == "npc" else self.companion_tactician
        if tactician is None:
            logger.warning(f"No tactician for {actor.character_name}, skipping action")
            return self._default_decision(actor)
        try:
            decision = await tactician.decide(self._tactician_input(actor))
        except Exception as e:
            logger.error(f"Tactician failed for {actor.character_name}: {e}", exc_info=True)
            return self._default_decision(actor)
        if not isinstance(decision, TacticianDecision):
            logger.warning(f"Tactician returned no usable decision for {actor.character_name}")
            return self._default_decision(actor)
        return decision

    @staticmethod
    def _default_decision(actor: Combatant) -> TacticianDecision:
        return TacticianDecision(action_description=f"{actor.character_name} does nothing this turn.")

    def _tactician_input(self, actor: Combatant) -> TacticianInput:
        names = generate_differentiated_names(self.state.enemies)
        party = [
            CombatantView(id=p.id, name=p.name, hp=get_hp_status(p.hp.current, p.hp.max), ac=p.ac, status=p.status)
            for p in self.state.party
        ]
        enemies = [
            CombatantView(
                id=e.instance_id,
                name=names.get(e.instance_id, e.name),
                hp=get_hp_status(e.hp.current, e.hp.max),
                ac=e.ac,
                status=e.status,
            )
            for e in self.state.enemies
        ]
        spells: List[str] = []
        inventory = []
        character = self._character(actor.id)
        if character is not None:
            spells = list(character.spells)
            inventory = [item.model_dump() for item in character.inventory]
        return TacticianInput(
            active_combatant=actor.character_name,
            active_combatant_id=actor.id,
            party=party,
            enemies=enemies,
            location_description=self.state.location_description,
            conversation_history="\n".join(self.state.transcript[-TRANSCRIPT_WINDOW:]),
            available_spells=spells,
            inventory=inventory,
        )

    def _player_decision(
        self,
        character: Optional[Character],
        actor: Combatant,
        action: PlayerCombatAction,
        target,
    ) -> TacticianDecision:
        target_id = None
        if target is not None:
            target_id = target.instance_id if isinstance(target, Enemy) else target.id
        description = action.description or f"{actor.character_name} acts."

        if action.action_type == "heal":
            return TacticianDecision(
                action_description=description,
                target_id=target_id,
                dice_rolls=[DiceRollRequest(
                    roller=actor.character_name,
                    roll_notation=action.damage_notation or "1d8",
                    description="Healing",
                    attack_type="healing",
                    result=action.damage_result,
                )],
            )
        if action.action_type not in ("attack", "spell"):
            return TacticianDecision(action_description=description)

        mod = 0
        proficiency = 2
        if character is not None:
            mod = max(ability_modifier(character, "strength"), ability_modifier(character, "dexterity"))
            proficiency = character.proficiency_bonus
        attack = action.attack_notation or f"1d20{format_modifier(mod + proficiency)}"
        damage = action.damage_notation or f"{DEFAULT_WEAPON_DIE}{format_modifier(mod) if mod else ''}"
        return TacticianDecision(
            action_description=description,
            target_id=target_id,
            dice_rolls=[
                DiceRollRequest(
                    roller=actor.character_name,
                    roll_notation=attack,
                    description="Attack roll",
                    attack_type="attack_roll",
                    result=action.attack_result,
                ),
                DiceRollRequest(
                    roller=actor.character_name,
                    roll_notation=damage,
                    description="Damage roll",
                    attack_type="other",
                    result=action.damage_result,
                ),
            ],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _active(self) -> Combatant:
        order = self.state.initiative_order
        if not 0 <= self.state.turn_index < len(order):
            raise CombatStateError(f"Turn index {self.state.turn_index} outside initiative order of {len(order)}")
        return order[self.state.turn_index]

    def _character(self, character_id: str) -> Optional[Character]:
        return next((p for p in self.state.party if p.id == character_id), None)

    def _sync_statuses(self) -> None:
        statuses = {p.id: p.status for p in self.state.party}
        statuses.update({e.instance_id: e.status for e in self.state.enemies})
        for combatant in self.state.initiative_order:
            if combatant.id in statuses:
                combatant.status = statuses[combatant.id]

    def _check_end(self) -> bool:
        end = check_end_of_combat(self.state.party, self.state.enemies)
        if not end.combat_ended:
            return False
        self.state.in_combat = False
        self.state.phase = CombatPhase.COMBAT_END
        self.state.winner = end.winner
        self.state.end_reason = end.reason
        self._log(f"Combat is over: {end.reason}.")
        logger.info(f"Combat ended after round {self.state.round}: winner={end.winner} ({end.reason})")
        return True

    def _log(self, line: str) -> str:
        self.state.transcript.append(line)
        return line

    @staticmethod
    def _summarize(actor: Combatant, outcome: ActionOutcome) -> List[str]:
        lines = []
        for roll in outcome.dice_rolls:
            if roll.attack_hit is not None:
                verdict = {"crit": "critical hit!", "success": "hit", "pifia": "fumble", "fail": "miss"}[roll.outcome]
                lines.append(
                    f"{actor.character_name} attacks {roll.target_name}: {roll.total_result} vs AC {roll.target_ac}, {verdict}"
                )
            elif roll.damage_dealt is not None:
                lines.append(f"{roll.target_name} takes {roll.damage_dealt} damage.")
            elif roll.healing_amount is not None:
                lines.append(f"{roll.target_name} recovers {roll.healing_amount} HP.")
            else:
                lines.append(f"{roll.roller} rolls {roll.roll_notation}: {roll.total_result}")
        if outcome.target_killed:
            lines.append(f"{outcome.target_name} falls dead.")
        elif outcome.target_knocked_out:
            lines.append(f"{outcome.target_name} falls unconscious.")
        return lines

    def _result(self, awaiting_player: bool = False, messages: Optional[List[str]] = None) -> TurnResult:
        active = self.state.active_combatant
        ended = self.state.phase == CombatPhase.COMBAT_END
        if ended:
            messages = (messages or []) + [f"Combat is over: {self.state.end_reason}."]
        more_ai = False
        if not ended and self.state.phase == CombatPhase.ACTION_RESOLVED:
            more_ai = has_more_ai_turns(self.state.initiative_order, self.state.turn_index)
        return TurnResult(
            success=True,
            phase=self.state.phase,
            active_combatant_id=active.id if active else None,
            active_combatant_name=active.character_name if active else None,
            awaiting_player=awaiting_player,
            messages=messages or [],
            has_more_ai_turns=more_ai,
            combat_ended=ended,
            winner=self.state.winner,
            end_reason=self.state.end_reason,
        )

    def _error(self, code: str, message: str, details: Optional[dict] = None) -> TurnResult:
        logger.warning(f"Rejected combat call: {code} ({message})")
        return TurnResult(
            success=False,
            phase=self.state.phase,
            messages=[message],
            error=code,
            details=details or {},
        )
