"""
Dice Roller — Pure Python dice engine.

Handles d20 rolls under normal/advantage/disadvantage, arbitrary dice
pools, and standard D&D formulas: XdY, XdY+Z, XdY-Z, plain integers.

Every function takes an optional `rng` (a random.Random instance) so
tests and replays can be deterministic. Without one the module-level
random generator is used, which random.seed() controls.
"""

import random
import re
import logging
from typing import Dict, Any, List, Optional

from pydantic import BaseModel

logger = logging.getLogger("DiceRoller")

ROLL_MODES = ("normal", "advantage", "disadvantage")

# Pattern: optional count, 'd', faces, optional modifier
_DICE_RE = re.compile(
    r"^"
    r"(?P<count>\d+)?"          # optional count (default 1)
    r"d"
    r"(?P<faces>\d+)"           # faces (required)
    r"(?P<mod_sign>[+-])?"      # optional modifier sign
    r"(?P<mod_val>\d+)?"        # optional modifier value
    r"$",
    re.IGNORECASE,
)


class D20Roll(BaseModel):
    """Result of a single d20 test.

    die2 and discarded are only set when two dice were rolled. The natural
    flags always come from the kept die.
    """

    mode: str = "normal"
    die1: int
    die2: Optional[int] = None
    kept: int
    discarded: Optional[int] = None
    natural_crit: bool = False
    natural_fail: bool = False

    @property
    def total(self) -> int:
        return self.kept


def _source(rng: Optional[random.Random]):
    return rng if rng is not None else random


def roll_d20(mode: str = "normal", rng: Optional[random.Random] = None) -> D20Roll:
    """Roll a d20. Advantage keeps the higher of two dice, disadvantage the lower."""
    source = _source(rng)
    if mode not in ROLL_MODES:
        logger.warning(f"Unknown roll mode '{mode}', rolling normally")
        mode = "normal"

    die1 = source.randint(1, 20)
    die2 = None
    kept = die1
    discarded = None

    if mode != "normal":
        die2 = source.randint(1, 20)
        if mode == "advantage":
            kept, discarded = max(die1, die2), min(die1, die2)
        else:
            kept, discarded = min(die1, die2), max(die1, die2)

    return D20Roll(
        mode=mode,
        die1=die1,
        die2=die2,
        kept=kept,
        discarded=discarded,
        natural_crit=kept == 20,
        natural_fail=kept == 1,
    )


def roll_dice(count: int, sides: int, rng: Optional[random.Random] = None) -> List[int]:
    """Roll `count` independent dice with `sides` faces, in order."""
    if count <= 0 or sides <= 0:
        return []
    source = _source(rng)
    return [source.randint(1, sides) for _ in range(count)]


def sum_rolls(rolls: List[int]) -> int:
    return sum(rolls)


def parse_formula(formula: str) -> Optional[Dict[str, int]]:
    """Split 'XdY+Z' into {count, faces, modifier}. Returns None if unparseable."""
    match = _DICE_RE.match(formula.strip().replace(" ", ""))
    if not match:
        return None
    mod_sign = match.group("mod_sign") or "+"
    mod_val = int(match.group("mod_val") or "0")
    return {
        "count": int(match.group("count") or "1"),
        "faces": int(match.group("faces")),
        "modifier": mod_val if mod_sign == "+" else -mod_val,
    }


def parse_and_roll(formula: str, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Parse a dice formula and roll it.

    Supports:
        '1d20+5'  → roll 1d20, add 5
        '2d6+3'   → roll 2d6, add 3
        '1d20-2'  → roll 1d20, subtract 2
        'd20'     → roll 1d20
        '5'       → flat modifier (total=5)

    Returns:
        {
            "total": int,
            "formula": str,
            "rolls": [int, ...],
            "modifier": int,
            "isCritical": bool,
            "isFumble": bool,
        }
    """
    formula = formula.strip()

    # Handle plain integer (flat modifier, no dice)
    try:
        flat = int(formula)
        return {
            "total": flat,
            "formula": formula,
            "rolls": [],
            "modifier": flat,
            "isCritical": False,
            "isFumble": False,
        }
    except ValueError:
        pass

    parsed = parse_formula(formula)
    if parsed is None:
        logger.warning(f"Could not parse dice formula: {formula}, returning 0")
        return {
            "total": 0,
            "formula": formula,
            "rolls": [],
            "modifier": 0,
            "isCritical": False,
            "isFumble": False,
        }

    rolls = roll_dice(parsed["count"], parsed["faces"], rng)
    total = sum_rolls(rolls) + parsed["modifier"]

    # Critical/fumble detection (only for single d20 rolls)
    single_d20 = parsed["count"] == 1 and parsed["faces"] == 20
    return {
        "total": total,
        "formula": formula,
        "rolls": rolls,
        "modifier": parsed["modifier"],
        "isCritical": single_d20 and rolls[0] == 20,
        "isFumble": single_d20 and rolls[0] == 1,
    }


def format_modifier(modifier: int) -> str:
    """+3 → '+3', -1 → '-1', 0 → '+0'."""
    return f"+{modifier}" if modifier >= 0 else str(modifier)


def format_roll_detail(formula: str, result: Dict[str, Any]) -> str:
    """Format a roll result into a human-readable detail string.

    Example: '1d20+5: [14]+5 = 19' or '2d6+3: [4, 2]+3 = 9'
    """
    rolls = result.get("rolls", [])
    total = result["total"]

    if not rolls:
        return f"{formula} = {total}"

    rolls_str = ", ".join(str(r) for r in rolls)
    modifier = result.get("modifier", 0)
    mod_str = format_modifier(modifier) if modifier else ""

    return f"{formula}: [{rolls_str}]{mod_str} = {total}"
