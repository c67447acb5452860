"""
Entity status helpers shared by the turn managers and companion logic.
"""

from typing import Iterable, Union

from models.characters import Character
from models.enemies import Enemy

Entity = Union[Character, Enemy]


def is_entity_active(entity: Entity) -> bool:
    """Alive and conscious."""
    return entity.status == "active" and entity.hp.current > 0


def is_entity_out_of_combat(entity: Entity) -> bool:
    return entity.status in ("dead", "unconscious") or entity.hp.current <= 0


def can_entity_react(entity: Entity) -> bool:
    """AI-controlled, alive and conscious — may speak or act on its own."""
    return entity.controlled_by == "AI" and entity.hp.current > 0 and entity.status != "dead"


def are_all_entities_out_of_combat(entities: Iterable[Entity]) -> bool:
    return all(is_entity_out_of_combat(e) for e in entities)
