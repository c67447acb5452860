"""
Turn manager — index arithmetic over the initiative order.
"""

from typing import Optional, Sequence, Tuple

from models.combat import Combatant
from engine.errors import CombatStateError


def next_turn_index(current: int, order_length: int) -> int:
    """Advance one slot, wrapping to 0 past the last combatant."""
    if order_length <= 0:
        raise CombatStateError("Initiative order is empty")
    return (current + 1) % order_length


def should_skip_turn(combatant: Combatant) -> bool:
    return combatant.status in ("dead", "unconscious")


def find_next_active_combatant(order: Sequence[Combatant], current: int) -> Tuple[int, Optional[Combatant]]:
    """First slot after `current` whose combatant can act.

    Returns (index, None) when nobody can act after a full lap.
    """
    if not order:
        raise CombatStateError("Initiative order is empty")
    index = current
    for _ in range(len(order)):
        index = next_turn_index(index, len(order))
        if not should_skip_turn(order[index]):
            return index, order[index]
    return index, None


def has_more_ai_turns(order: Sequence[Combatant], current: int) -> bool:
    """True when the next combatant who will actually act is AI-controlled."""
    if not order:
        return False
    _, upcoming = find_next_active_combatant(order, current)
    return upcoming is not None and upcoming.controlled_by == "AI"
