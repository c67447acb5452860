"""
Surprise Manager — which side loses its first turn.

A pure tagging layer. It never advances turns; the orchestrator reads
the flags at TURN_START and clears them once a surprised combatant's
skipped turn has gone by.

surprise_side names the side that DOES the surprising:
    "enemy"  → every player-side combatant is surprised
    "player" → every npc-side combatant is surprised
"""

import logging
from typing import List, Optional, Sequence

from models.combat import Combatant

logger = logging.getLogger("Surprise")

REASON_TO_SIDE = {
    "ambush": "enemy",
    "mimic": "enemy",
    "player_surprise": "player",
    "proximity": "none",
    "stealth_fail": "none",
    "provocation": "none",
}


def determine_surprise(
    trigger_reason: Optional[str] = None,
    surprise_side: Optional[str] = None,
    player_initiated_attack: bool = False,
) -> str:
    """Explicit side > reason table > player-initiated flag > none."""
    if surprise_side in ("player", "enemy"):
        return surprise_side
    if trigger_reason and trigger_reason in REASON_TO_SIDE:
        return REASON_TO_SIDE[trigger_reason]
    if player_initiated_attack:
        return "player"
    return "none"


def mark_combatants_surprised(order: Sequence[Combatant], side: str) -> List[Combatant]:
    """Return a copy of the order with the surprised side tagged."""
    if side not in ("player", "enemy"):
        return [c.model_copy() for c in order]

    surprised_type = "player" if side == "enemy" else "npc"
    tagged = []
    for combatant in order:
        copy = combatant.model_copy()
        copy.is_surprised = True if combatant.type == surprised_type else None
        tagged.append(copy)

    names = [c.character_name for c in tagged if c.is_surprised]
    logger.info(f"Surprise ({side} side strikes first): {names}")
    return tagged


def clear_surprise_flag(combatant: Combatant) -> Combatant:
    combatant.is_surprised = False
    return combatant


def is_surprised(combatant: Combatant) -> bool:
    return combatant.is_surprised is True
