"""
Enemy state helpers — normalization, reveal and visibility filters.

Enemy records reach the engine in several shapes: adventure templates,
saved sessions with a legacy `stats` block, or already-validated Enemy
models. normalize_enemy_stats() turns any of them into an Enemy with the
canonical {current, max} hit points.
"""

import logging
from typing import Any, Dict, Iterable, List, Union

from models.enemies import Enemy

logger = logging.getLogger("EnemyState")

DEFAULT_ENEMY_HP = 10


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_enemy_stats(raw: Union[Enemy, Dict[str, Any]]) -> Enemy:
    """Return an Enemy with canonical hp/ac, whatever shape came in.

    Accepts `stats.hp` / `stats.ac` (numbers or numeric strings), a bare
    numeric `hp`, or a proper {current, max} block. Missing hp becomes 10/10.
    """
    if isinstance(raw, Enemy):
        return raw

    data = dict(raw)
    stats = data.get("stats") or {}
    hp = data.get("hp")

    if hp is None and "hp" in stats:
        hp = stats["hp"]
    if isinstance(hp, (int, float, str)):
        value = _coerce_int(hp, DEFAULT_ENEMY_HP)
        hp = {"current": value, "max": value}
    elif isinstance(hp, dict):
        hp_max = _coerce_int(hp.get("max", hp.get("current")), DEFAULT_ENEMY_HP)
        hp = {"current": _coerce_int(hp.get("current"), hp_max), "max": hp_max}
    else:
        hp = {"current": DEFAULT_ENEMY_HP, "max": DEFAULT_ENEMY_HP}
    data["hp"] = hp

    if "ac" not in data and "ac" in stats:
        data["ac"] = _coerce_int(stats["ac"], 10)

    if "name" not in data and "characterName" in data:
        data["name"] = data["characterName"]
    if "id" not in data:
        data["id"] = data.get("uniqueId") or "enemy"

    enemy = Enemy.model_validate(data)
    if enemy.hp.current <= 0 and enemy.status == "active":
        enemy.status = "dead"
    return enemy


def reveal_hidden_enemy(enemy: Enemy) -> Enemy:
    """Hidden → hostile and active. Dead enemies stay dead."""
    if enemy.status == "dead":
        return enemy
    return enemy.model_copy(update={"disposition": "hostile", "status": "active"})


def is_visible(enemy: Enemy) -> bool:
    return enemy.disposition != "hidden"


def is_hostile(enemy: Enemy) -> bool:
    return enemy.disposition == "hostile"


def filter_visible_enemies(enemies: Iterable[Enemy]) -> List[Enemy]:
    return [e for e in enemies if is_visible(e)]


def filter_hostile_enemies(enemies: Iterable[Enemy]) -> List[Enemy]:
    """Visible hostiles only. Friendly and neutral NPCs never join a fight."""
    return [e for e in enemies if is_hostile(e)]


def filter_alive_enemies(enemies: Iterable[Enemy]) -> List[Enemy]:
    return [e for e in enemies if e.status != "dead" and e.hp.current > 0]
