"""
Monster Names — differentiated display names and target resolution.

Every enemy instance is numbered, even when it is alone: one goblin is
"Goblin 1", never just "Goblin". The number comes from the instance id
suffix ("goblin-2" → "Goblin 2"), so display names and ids always agree.
"""

import re
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from models.enemies import Enemy
from models.combat import Combatant
from tools.target_matcher import normalize_text

logger = logging.getLogger("MonsterNames")

_UNIQUE_ID_RE = re.compile(r"^(?P<base>.+)-(?P<num>\d+)$")


class TargetResolution(BaseModel):
    unique_id: Optional[str] = None
    ambiguous: bool = False
    matches: List[str] = Field(default_factory=list)


def instance_number(unique_id: str) -> int:
    match = _UNIQUE_ID_RE.match(unique_id or "")
    return int(match.group("num")) if match else 1


def generate_differentiated_names(enemies: Sequence[Enemy]) -> Dict[str, str]:
    """Map each enemy's instance id to its display name ("Goblin 2")."""
    names: Dict[str, str] = {}
    groups: Dict[str, List[Enemy]] = {}
    display_base: Dict[str, str] = {}
    for enemy in enemies:
        base = (enemy.name or enemy.id.split("-")[0] or "Unknown").strip()
        key = base.lower()
        groups.setdefault(key, []).append(enemy)
        display_base.setdefault(key, base)

    for key, group in groups.items():
        for enemy in sorted(group, key=lambda e: instance_number(e.instance_id)):
            names[enemy.instance_id] = f"{display_base[key]} {instance_number(enemy.instance_id)}"
    return names


def resolve_enemy_id(
    target_id: Optional[str],
    enemies: Sequence[Enemy],
    initiative_order: Sequence[Combatant] = (),
    party_ids: Sequence[str] = (),
) -> TargetResolution:
    """Resolve "Goblin 1", "goblin-1", "goblin" or an instance id.

    A bare base name that fits several enemies is reported as ambiguous
    with the candidates' display names.
    """
    if not target_id:
        return TargetResolution()

    if target_id in party_ids:
        return TargetResolution(unique_id=target_id)
    for enemy in enemies:
        if enemy.instance_id == target_id:
            return TargetResolution(unique_id=enemy.instance_id)
    for combatant in initiative_order:
        if combatant.id == target_id:
            return TargetResolution(unique_id=combatant.id)

    wanted = normalize_text(target_id)

    # "goblin-2" typed as an id but meaning the second goblin on screen.
    id_form = _UNIQUE_ID_RE.match(target_id)
    if id_form:
        wanted = normalize_text(f"{id_form.group('base')} {id_form.group('num')}")

    for combatant in initiative_order:
        if normalize_text(combatant.character_name) == wanted:
            return TargetResolution(unique_id=combatant.id)

    display = generate_differentiated_names(enemies)
    for instance_id, name in display.items():
        if normalize_text(name) == wanted:
            return TargetResolution(unique_id=instance_id)

    base = re.sub(r"\s+\d+$", "", wanted).strip()
    matching = [e for e in enemies if normalize_text(e.name or e.id.split("-")[0]) == base]
    if not matching:
        return TargetResolution()
    if len(matching) == 1:
        return TargetResolution(unique_id=matching[0].instance_id)

    names = []
    for enemy in matching:
        name = display.get(enemy.instance_id, enemy.name)
        if name not in names:
            names.append(name)
    logger.info(f"Ambiguous target '{target_id}': {names}")
    return TargetResolution(ambiguous=True, matches=names)
