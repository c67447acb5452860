"""
Rules Engine — HP bookkeeping and end-of-combat detection.

The player/NPC asymmetry is deliberate: a party member dropped to 0 HP
falls unconscious (unless the overflow damage reaches their max HP, which
kills outright), while an enemy dropped to 0 HP dies.
"""

import logging
from typing import Optional, Sequence, Union

from pydantic import BaseModel

from models.characters import Character
from models.enemies import Enemy
from tools.entity_status import is_entity_out_of_combat

logger = logging.getLogger("RulesEngine")

Target = Union[Character, Enemy]


class DamageResult(BaseModel):
    previous_hp: int
    new_hp: int
    damage: int
    is_dead: bool = False
    is_unconscious: bool = False
    massive_damage: bool = False


class HealingResult(BaseModel):
    previous_hp: int
    new_hp: int
    healed: int
    revived: bool = False


class EndOfCombat(BaseModel):
    combat_ended: bool = False
    winner: Optional[str] = None  # party | enemies
    reason: Optional[str] = None


def get_hp_status(current: int, maximum: int) -> str:
    """Narrative HP band used in tactician input and narration."""
    if maximum <= 0 or current <= 0:
        return "Defeated"
    pct = current / maximum
    if pct >= 0.9:
        return "Healthy"
    if pct >= 0.6:
        return "Injured"
    if pct >= 0.2:
        return "Wounded"
    return "Badly Wounded"


def validate_and_clamp_hp(target: Target) -> Target:
    """Keep hp.current within [0, max] after any direct edit."""
    if target.hp.max < 0:
        target.hp.max = 0
    target.hp.current = max(0, min(target.hp.current, target.hp.max))
    return target


def apply_damage(target: Target, damage: int, is_enemy: bool) -> DamageResult:
    """Subtract damage (floored at 0 HP) and set the resulting status."""
    damage = max(0, damage)
    previous = target.hp.current
    overflow = damage - previous
    new_hp = max(0, previous - damage)
    target.hp.current = new_hp

    result = DamageResult(previous_hp=previous, new_hp=new_hp, damage=damage)
    if new_hp > 0:
        return result

    if is_enemy:
        target.status = "dead"
        result.is_dead = True
    else:
        result.is_unconscious = True
        if previous > 0 and overflow >= target.hp.max:
            result.massive_damage = True
            result.is_dead = True
            target.is_dead = True
            logger.info(f"{target.name} killed outright by massive damage ({damage})")
    return result


def apply_healing(target: Target, amount: int) -> HealingResult:
    """Add HP (capped at max). Healing an unconscious party member revives them."""
    amount = max(0, amount)
    previous = target.hp.current
    if isinstance(target, Enemy) and target.status == "dead":
        return HealingResult(previous_hp=previous, new_hp=previous, healed=0)
    if isinstance(target, Character) and target.is_dead:
        return HealingResult(previous_hp=previous, new_hp=previous, healed=0)

    target.hp.current = min(target.hp.max, previous + amount)
    revived = previous <= 0 and target.hp.current > 0
    if isinstance(target, Enemy) and revived:
        target.status = "active"
    return HealingResult(previous_hp=previous, new_hp=target.hp.current, healed=target.hp.current - previous, revived=revived)


def check_end_of_combat(party: Sequence[Character], enemies: Sequence[Enemy]) -> EndOfCombat:
    """Enemies all down → party wins; party all dead or unconscious → enemies win."""
    if enemies and all(e.status == "dead" or e.hp.current <= 0 for e in enemies):
        return EndOfCombat(combat_ended=True, winner="party", reason="All enemies defeated")
    if party and all(is_entity_out_of_combat(p) for p in party):
        if all(p.status == "dead" for p in party):
            reason = "All allies dead"
        else:
            reason = "All allies unconscious"
        return EndOfCombat(combat_ended=True, winner="enemies", reason=reason)
    return EndOfCombat()


def critical_damage_notation(die: str, modifier: int, is_critical: bool) -> str:
    """'1d6', 3, crit → '2d6+3'. Only the dice double, never the modifier."""
    count, _, faces = die.lower().partition("d")
    count_n = int(count or "1")
    if is_critical:
        count_n *= 2
    notation = f"{count_n}d{faces}"
    if modifier > 0:
        notation += f"+{modifier}"
    elif modifier < 0:
        notation += str(modifier)
    return notation
