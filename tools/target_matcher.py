"""
Target Matcher — maps a free-text target onto a structured entity id.

Players (and the intent interpreter) name things loosely: "el cofre",
"chest", "mimic-chest-1". Matching is an ordered list of rules, first
hit wins:

    exact id → exact name → substring (either direction) → keyword table

It is approximate by nature, so it lives here and nowhere else.
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("TargetMatcher")

# Keyword → candidate kind. Used as the last resort.
DEFAULT_KEYWORDS: Dict[str, str] = {
    "cofre": "mimic",
    "chest": "mimic",
    "baul": "mimic",
    "arcon": "mimic",
    "caja": "mimic",
    "box": "mimic",
}


@dataclass
class Candidate:
    id: str
    name: str = ""
    kind: str = ""


@dataclass
class MatchResult:
    id: str
    rule: str  # exact_id | exact_name | substring | keyword


def normalize_text(text: str) -> str:
    """Lowercase, strip accents, collapse separators."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().replace("-", " ").replace("_", " ").split())


def match_target(
    target: Optional[str],
    candidates: Iterable[Candidate],
    keywords: Optional[Dict[str, str]] = None,
) -> Optional[MatchResult]:
    """Return the first candidate matched by the ordered rules, or None."""
    if not target:
        return None
    pool: List[Candidate] = list(candidates)
    if not pool:
        return None

    for cand in pool:
        if cand.id == target:
            return MatchResult(cand.id, "exact_id")

    wanted = normalize_text(target)
    if not wanted:
        return None

    for cand in pool:
        if cand.name and normalize_text(cand.name) == wanted:
            return MatchResult(cand.id, "exact_name")

    for cand in pool:
        for label in (cand.id, cand.name):
            norm = normalize_text(label)
            if norm and (norm in wanted or wanted in norm):
                logger.debug(f"Substring match '{target}' → {cand.id}")
                return MatchResult(cand.id, "substring")

    table = DEFAULT_KEYWORDS if keywords is None else keywords
    words = set(wanted.split())
    for keyword, kind in table.items():
        if keyword in words or keyword in wanted:
            for cand in pool:
                if cand.kind == kind:
                    logger.debug(f"Keyword match '{keyword}' → {cand.id}")
                    return MatchResult(cand.id, "keyword")
    return None


def candidates_from_pairs(pairs: Iterable[Tuple[str, str, str]]) -> List[Candidate]:
    return [Candidate(id=i, name=n, kind=k) for i, n, k in pairs]
