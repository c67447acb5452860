"""
Initiative — builds the turn order once, at combat start.

Each combatant rolls d20 + dexterity modifier. Ties go to the higher
dexterity modifier, then party before enemies, then input order.
"""

import random
import logging
from typing import List, Optional, Sequence

from models.characters import Character
from models.combat import Combatant
from models.enemies import Enemy
from tools.dice_roller import roll_d20
from tools.monster_names import generate_differentiated_names
from tools.skill_check import ability_modifier

logger = logging.getLogger("Initiative")


def dexterity_modifier(entity) -> int:
    mods = entity.ability_modifiers or {}
    if "dexterity" in mods:
        return mods["dexterity"]
    if "dexterity" in entity.ability_scores:
        return ability_modifier(entity, "dexterity")
    # Some stat blocks only carry a flat dexterity score in `stats`.
    stats = getattr(entity, "stats", None) or {}
    if isinstance(stats, dict) and "dexterity" in stats:
        return (int(stats["dexterity"]) - 10) // 2
    return 0


def roll_initiative(
    party: Sequence[Character],
    enemies: Sequence[Enemy],
    rng: Optional[random.Random] = None,
) -> List[Combatant]:
    """Roll for every living party member and every living enemy, sorted descending."""
    display_names = generate_differentiated_names(enemies)
    entries = []

    for position, member in enumerate(party):
        if member.status == "dead":
            continue
        dex = dexterity_modifier(member)
        total = roll_d20("normal", rng).kept + dex
        entries.append((total, dex, 0, position, Combatant(
            id=member.id,
            character_name=member.name,
            total=total,
            type="player",
            controlled_by=member.controlled_by,
            status=member.status,
            dex_modifier=dex,
        )))

    for position, enemy in enumerate(enemies):
        if enemy.status == "dead":
            continue
        dex = dexterity_modifier(enemy)
        total = roll_d20("normal", rng).kept + dex
        entries.append((total, dex, 1, position, Combatant(
            id=enemy.instance_id,
            character_name=display_names.get(enemy.instance_id, enemy.name),
            total=total,
            type="npc",
            controlled_by="AI",
            status=enemy.status,
            dex_modifier=dex,
        )))

    entries.sort(key=lambda e: (-e[0], -e[1], e[2], e[3]))
    order = [entry[4] for entry in entries]
    logger.info("Initiative: " + ", ".join(f"{c.character_name} {c.total}" for c in order))
    return order
