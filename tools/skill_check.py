"""
Skill Check Resolver — character sheet + d20 against a Difficulty Class.

Modifier resolution, in priority order:
  1. the sheet's precomputed modifier for the skill, used verbatim;
  2. governing ability modifier + proficiency bonus (if the sheet entry
     marks the skill proficient);
  3. the ability modifier comes from the precomputed modifier map when
     present, else floor((score - 10) / 2) with a missing score read as 10.

House rule: a natural 20 always succeeds and a natural 1 always fails,
whatever the DC.
"""

import random
import logging
from typing import Optional, Union

from pydantic import BaseModel

from models.characters import Character, canonical_ability
from models.enemies import Enemy
from tools.dice_roller import roll_d20, format_modifier

logger = logging.getLogger("SkillCheck")

SKILL_ATTRIBUTES = {
    "athletics": "strength",
    "acrobatics": "dexterity",
    "sleight_of_hand": "dexterity",
    "stealth": "dexterity",
    "arcana": "intelligence",
    "history": "intelligence",
    "investigation": "intelligence",
    "nature": "intelligence",
    "religion": "intelligence",
    "animal_handling": "wisdom",
    "insight": "wisdom",
    "medicine": "wisdom",
    "perception": "wisdom",
    "survival": "wisdom",
    "deception": "charisma",
    "intimidation": "charisma",
    "performance": "charisma",
    "persuasion": "charisma",
}

# Spanish sheet names seen in imported characters.
SKILL_TRANSLATIONS = {
    "atletismo": "athletics",
    "acrobacias": "acrobatics",
    "juego_de_manos": "sleight_of_hand",
    "sigilo": "stealth",
    "arcanos": "arcana",
    "historia": "history",
    "investigacion": "investigation",
    "naturaleza": "nature",
    "religion": "religion",
    "trato_con_animales": "animal_handling",
    "perspicacia": "insight",
    "medicina": "medicine",
    "percepcion": "perception",
    "supervivencia": "survival",
    "engano": "deception",
    "intimidacion": "intimidation",
    "interpretacion": "performance",
    "persuasion": "persuasion",
}


class SkillCheckResult(BaseModel):
    """Structured roll record for a skill check."""

    character_name: str
    skill: str
    dc: int
    modifier: int
    die1: int
    die2: Optional[int] = None
    kept: int
    total: int
    success: bool
    critical_success: bool = False
    critical_failure: bool = False
    outcome: str  # crit | success | fail | pifia
    notation: str
    mode: str = "normal"


def normalize_skill_name(skill: str) -> str:
    key = skill.strip().lower().replace(" ", "_").replace("-", "_")
    return SKILL_TRANSLATIONS.get(key, key)


def ability_modifier(character: Union[Character, Enemy], ability: str) -> int:
    """Ability modifier from the precomputed map, else derived from the score."""
    ability = canonical_ability(ability)
    modifiers = character.ability_modifiers or {}
    if ability in modifiers:
        return modifiers[ability]
    score = character.ability_scores.get(ability, 10)
    return (score - 10) // 2


def resolve_skill_modifier(character: Character, skill: str) -> int:
    """Total modifier for a skill. Never raises."""
    skill = normalize_skill_name(skill)
    entry = character.find_skill(skill)
    if entry is None:
        # Sheets may list the skill under its Spanish name.
        for spanish, english in SKILL_TRANSLATIONS.items():
            if english == skill:
                entry = character.find_skill(spanish)
                if entry is not None:
                    break

    if entry is not None and entry.modifier is not None:
        return entry.modifier

    if entry is None:
        logger.warning(f"{character.name} has no '{skill}' entry, computing modifier from abilities")

    attribute = SKILL_ATTRIBUTES.get(skill)
    if attribute is None:
        logger.warning(f"Unknown skill '{skill}', using no ability modifier")
        base = 0
    else:
        base = ability_modifier(character, attribute)

    if entry is not None and entry.proficient:
        base += character.proficiency_bonus
    return base


def resolve_skill_check(
    character: Character,
    skill: str,
    dc: int,
    mode: str = "normal",
    rng: Optional[random.Random] = None,
) -> SkillCheckResult:
    """Roll a skill check for `character` against `dc`."""
    skill_key = normalize_skill_name(skill)
    modifier = resolve_skill_modifier(character, skill_key)
    roll = roll_d20(mode, rng)
    total = roll.kept + modifier

    if roll.natural_crit:
        success, outcome = True, "crit"
    elif roll.natural_fail:
        success, outcome = False, "pifia"
    else:
        success = total >= dc
        outcome = "success" if success else "fail"

    result = SkillCheckResult(
        character_name=character.name,
        skill=skill_key,
        dc=dc,
        modifier=modifier,
        die1=roll.die1,
        die2=roll.die2,
        kept=roll.kept,
        total=total,
        success=success,
        critical_success=roll.natural_crit,
        critical_failure=roll.natural_fail,
        outcome=outcome,
        notation=f"1d20{format_modifier(modifier)}",
        mode=roll.mode,
    )
    logger.info(f"{character.name} {skill_key} check: {result.notation} = {total} vs DC {dc} ({outcome})")
    return result
