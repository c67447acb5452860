"""
Action Executor — resolves one combat action's dice against a target.

Works the same for players, companions and enemies. The roll list is read
by position according to the action's attack type:

  attack_roll   [to-hit, damage]   damage only rolls if the attack hits
  saving_throw  [damage]           no to-hit roll
  healing       [healing]
  other         rolls are recorded, nothing is applied

A roll request that already carries a `result` (physical dice) is used
verbatim instead of being rolled.
"""

import random
import logging
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from models.characters import Character
from models.combat import Combatant, CombatState, DiceRollRecord
from models.enemies import Enemy
from models.tactician import DiceRollRequest, TacticianDecision
from engine.rules_engine import apply_damage, apply_healing, critical_damage_notation, validate_and_clamp_hp
from tools.dice_roller import parse_and_roll, parse_formula
from tools.monster_names import generate_differentiated_names, resolve_enemy_id
from tools.target_matcher import normalize_text

logger = logging.getLogger("ActionExecutor")

DEFAULT_TARGET_AC = 10


class ActionOutcome(BaseModel):
    success: bool = True
    dice_rolls: List[DiceRollRecord] = Field(default_factory=list)
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    attack_hit: Optional[bool] = None
    was_critical: bool = False
    was_fumble: bool = False
    damage_dealt: Optional[int] = None
    healing_amount: Optional[int] = None
    target_killed: bool = False
    target_knocked_out: bool = False
    target_previous_hp: Optional[int] = None
    target_new_hp: Optional[int] = None
    error: Optional[str] = None


class ActionExecutor:
    """Applies dice results to the party/enemy lists held by a CombatState."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @staticmethod
    def find_target(state: CombatState, target_id: Optional[str]) -> Optional[Union[Character, Enemy]]:
        if not target_id:
            return None
        wanted = normalize_text(target_id)
        for member in state.party:
            if member.id == target_id or normalize_text(member.name) == wanted:
                return member
        resolution = resolve_enemy_id(
            target_id,
            state.enemies,
            initiative_order=state.initiative_order,
            party_ids=[p.id for p in state.party],
        )
        if resolution.unique_id:
            for member in state.party:
                if member.id == resolution.unique_id:
                    return member
            for enemy in state.enemies:
                if enemy.instance_id == resolution.unique_id:
                    return enemy
        return None

    @staticmethod
    def _display_name(state: CombatState, target: Union[Character, Enemy]) -> str:
        if isinstance(target, Enemy):
            return generate_differentiated_names(state.enemies).get(target.instance_id, target.name)
        return target.name

    # ------------------------------------------------------------------
    # Rolling
    # ------------------------------------------------------------------

    def _roll(self, request: DiceRollRequest, roller: str, notation: Optional[str] = None) -> DiceRollRecord:
        notation = notation or request.roll_notation
        if request.result is not None:
            parsed = parse_formula(notation) or {"modifier": 0}
            return DiceRollRecord(
                roller=request.roller or roller,
                roll_notation=notation,
                modifier=parsed["modifier"],
                total_result=request.result,
                description=request.description,
            )

        rolled = parse_and_roll(notation, self.rng)
        outcome = "neutral"
        if rolled["isCritical"]:
            outcome = "crit"
        elif rolled["isFumble"]:
            outcome = "pifia"
        return DiceRollRecord(
            roller=request.roller or roller,
            roll_notation=notation,
            individual_rolls=rolled["rolls"],
            modifier=rolled["modifier"],
            total_result=rolled["total"],
            outcome=outcome,
            description=request.description,
        )

    @staticmethod
    def _critical_notation(notation: str) -> str:
        parsed = parse_formula(notation)
        if parsed is None:
            return notation
        return critical_damage_notation(f"{parsed['count']}d{parsed['faces']}", parsed["modifier"], True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, actor: Combatant, decision: TacticianDecision, state: CombatState) -> ActionOutcome:
        """Resolve `decision` for `actor`, mutating the target inside `state`."""
        if decision.is_noop:
            return ActionOutcome()

        kind = decision.dice_rolls[0].attack_type
        target = self.find_target(state, decision.target_id)
        if target is None and kind in ("attack_roll", "saving_throw", "healing"):
            logger.warning(f"{actor.character_name} targeted unknown '{decision.target_id}'")
            return ActionOutcome(success=False, error="TARGET_NOT_FOUND", target_id=decision.target_id)

        outcome = ActionOutcome()
        if target is not None:
            outcome.target_id = target.instance_id if isinstance(target, Enemy) else target.id
            outcome.target_name = self._display_name(state, target)

        if kind == "attack_roll":
            self._resolve_attack(actor, decision.dice_rolls, target, outcome)
        elif kind == "saving_throw":
            record = self._roll(decision.dice_rolls[0], actor.character_name)
            self._apply_damage(record, target, outcome)
        elif kind == "healing":
            record = self._roll(decision.dice_rolls[0], actor.character_name)
            self._apply_healing(record, target, outcome)
        else:
            for request in decision.dice_rolls:
                outcome.dice_rolls.append(self._roll(request, actor.character_name))
        return outcome

    def _resolve_attack(self, actor: Combatant, rolls: List[DiceRollRequest], target, outcome: ActionOutcome) -> None:
        attack = self._roll(rolls[0], actor.character_name)
        target_ac = target.ac if isinstance(target.ac, int) else DEFAULT_TARGET_AC
        outcome.was_critical = attack.outcome == "crit"
        outcome.was_fumble = attack.outcome == "pifia"
        hit = not outcome.was_fumble and (outcome.was_critical or attack.total_result >= target_ac)

        attack.target_name = outcome.target_name
        attack.target_ac = target_ac
        attack.attack_hit = hit
        if hit:
            attack.outcome = "crit" if outcome.was_critical else "success"
        else:
            attack.outcome = "pifia" if outcome.was_fumble else "fail"
        outcome.attack_hit = hit
        outcome.dice_rolls.append(attack)

        if not hit:
            logger.info(f"{actor.character_name} misses {outcome.target_name} ({attack.total_result} vs AC {target_ac})")
            return

        damage_request = rolls[1]
        notation = damage_request.roll_notation
        if outcome.was_critical and damage_request.result is None:
            notation = self._critical_notation(notation)
        damage = self._roll(damage_request, actor.character_name, notation)
        if outcome.was_critical:
            damage.outcome = "crit"
        self._apply_damage(damage, target, outcome)

    def _apply_damage(self, record: DiceRollRecord, target, outcome: ActionOutcome) -> None:
        amount = max(0, record.total_result)
        is_enemy = isinstance(target, Enemy)
        outcome.target_previous_hp = target.hp.current
        result = apply_damage(target, amount, is_enemy=is_enemy)
        validate_and_clamp_hp(target)

        outcome.target_new_hp = target.hp.current
        outcome.damage_dealt = amount
        outcome.target_killed = result.is_dead
        outcome.target_knocked_out = result.is_unconscious and not result.is_dead

        record.target_name = outcome.target_name
        record.damage_dealt = amount
        record.target_killed = result.is_dead
        outcome.dice_rolls.append(record)
        logger.info(f"{outcome.target_name} takes {amount} damage ({result.previous_hp} -> {result.new_hp} HP)")

    def _apply_healing(self, record: DiceRollRecord, target, outcome: ActionOutcome) -> None:
        amount = max(0, record.total_result)
        result = apply_healing(target, amount)
        outcome.target_previous_hp = result.previous_hp
        outcome.target_new_hp = result.new_hp
        outcome.healing_amount = result.healed

        record.target_name = outcome.target_name
        record.healing_amount = result.healed
        outcome.dice_rolls.append(record)
        logger.info(f"{outcome.target_name} heals {result.healed} ({result.previous_hp} -> {result.new_hp} HP)")
