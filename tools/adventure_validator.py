"""
Adventure Validator — load-time checks and sanitization for adventure JSON.

Validation never stops at the first problem: schema errors from pydantic
and the referential checks below are all collected into one list of
{path, message, code} issues and handed back together.

Sanitization runs before validation on load: a connection or legacy exit
that points at a location that does not exist becomes a "blocked path"
interactable instead of a dangling edge.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from models.locations import Adventure

logger = logging.getLogger("AdventureValidator")

MAX_ERRORS_SHOWN = 5


class ValidationIssue(BaseModel):
    path: str
    message: str
    code: str


class ValidationReport(BaseModel):
    valid: bool = True
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class AdventureValidationError(Exception):
    """Raised by load_adventure() when the document is unusable."""

    def __init__(self, report: ValidationReport):
        super().__init__(format_validation_errors(report.errors))
        self.report = report


def _connection_target(conn: Any) -> Any:
    if isinstance(conn, str):
        return conn
    if isinstance(conn, dict):
        return conn.get("targetId") or conn.get("target_id") or conn.get("toLocationId")
    return None


def validate_adventure(data: Dict[str, Any]) -> ValidationReport:
    """Check an adventure document and aggregate every issue found."""
    report = ValidationReport()

    try:
        Adventure.model_validate(data)
    except ValidationError as e:
        for err in e.errors():
            report.errors.append(ValidationIssue(
                path=".".join(str(p) for p in err["loc"]) or "root",
                message=err["msg"],
                code=err["type"],
            ))

    # Structural failure means the referential checks cannot trust the data.
    if report.errors:
        report.valid = False
        return report

    locations = data.get("locations", [])
    location_ids = set()
    duplicates = set()
    for loc in locations:
        if loc["id"] in location_ids:
            duplicates.add(loc["id"])
        location_ids.add(loc["id"])

    if duplicates:
        report.errors.append(ValidationIssue(
            path="locations",
            message=f"Duplicate location ids: {', '.join(sorted(duplicates))}",
            code="DUPLICATE_LOCATION_IDS",
        ))

    for index, loc in enumerate(locations):
        label = loc.get("title") or loc.get("name") or loc["id"]
        for field in ("connections", "exits"):
            for conn_index, conn in enumerate(loc.get(field) or []):
                target = _connection_target(conn)
                path = f"locations.{index}.{field}.{conn_index}"
                if not target:
                    report.errors.append(ValidationIssue(
                        path=path,
                        message=f"Location '{label}' ({loc['id']}) has a connection without a target id",
                        code="INVALID_CONNECTION_FORMAT",
                    ))
                elif target not in location_ids:
                    report.errors.append(ValidationIssue(
                        path=path,
                        message=f"Location '{label}' ({loc['id']}) connects to unknown id '{target}'",
                        code="INVALID_CONNECTION_REFERENCE",
                    ))

    entity_ids = set()
    duplicate_entities = set()
    for entity in data.get("entities") or []:
        if entity["id"] in entity_ids:
            duplicate_entities.add(entity["id"])
        entity_ids.add(entity["id"])
    if duplicate_entities:
        report.errors.append(ValidationIssue(
            path="entities",
            message=f"Duplicate entity ids: {', '.join(sorted(duplicate_entities))}",
            code="DUPLICATE_ENTITY_IDS",
        ))

    start = data.get("startingLocationId")
    if start and start not in location_ids:
        report.errors.append(ValidationIssue(
            path="startingLocationId",
            message=f"startingLocationId '{start}' does not match any location",
            code="INVALID_STARTING_LOCATION",
        ))

    report.valid = not report.errors
    return report


def _blocked_path(description: str) -> Dict[str, Any]:
    return {
        "name": "Blocked Path",
        "description": f"{description} (The way seems cut off or leads nowhere known.)",
        "interactionResults": [{
            "action": "Investigate the path",
            "result": "You try to press on, but the path is blocked, collapsed or simply ends. You cannot go this way.",
        }],
    }


def sanitize_adventure(data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Return a cleaned copy of `data` plus warnings for every fix applied."""
    data = copy.deepcopy(data)
    warnings: List[str] = []
    locations = data.get("locations")
    if not isinstance(locations, list):
        return data, warnings

    location_ids = {loc.get("id") for loc in locations if isinstance(loc, dict)}

    for loc in locations:
        if not isinstance(loc, dict):
            continue
        for field in ("connections", "exits"):
            entries = loc.get(field)
            if not isinstance(entries, list):
                continue
            kept = []
            for conn in entries:
                target = _connection_target(conn)
                if target and target in location_ids:
                    kept.append(conn)
                    continue
                text = conn.get("description") if isinstance(conn, dict) else None
                loc.setdefault("interactables", []).append(
                    _blocked_path(text or "A way out with no clear destination.")
                )
            if len(kept) < len(entries):
                msg = f"Converted {len(entries) - len(kept)} broken {field} to interactables in location '{loc.get('id')}'"
                logger.warning(msg)
                warnings.append(msg)
            loc[field] = kept

    start = data.get("startingLocationId")
    if start and start not in location_ids:
        msg = f"Invalid startingLocationId '{start}' removed"
        logger.warning(msg)
        warnings.append(msg)
        del data["startingLocationId"]

    return data, warnings


def format_validation_errors(errors: List[ValidationIssue]) -> str:
    """Render up to five issues, then '...and N more'."""
    if not errors:
        return ""
    lines = [f"- {err.path}: {err.message}" for err in errors[:MAX_ERRORS_SHOWN]]
    remaining = len(errors) - MAX_ERRORS_SHOWN
    if remaining > 0:
        lines.append(f"...and {remaining} more errors.")
    return "\n".join(lines)


def load_adventure(source: Union[str, Path, Dict[str, Any]]) -> Tuple[Adventure, ValidationReport]:
    """Read (if a path), sanitize, validate and parse an adventure.

    Raises:
        AdventureValidationError: if issues remain after sanitizing.
    """
    if isinstance(source, dict):
        raw = source
    else:
        raw = json.loads(Path(source).read_text(encoding="utf-8"))

    cleaned, warnings = sanitize_adventure(raw)
    report = validate_adventure(cleaned)
    report.warnings.extend(warnings)
    if not report.valid:
        logger.error(f"Adventure failed validation:\n{format_validation_errors(report.errors)}")
        raise AdventureValidationError(report)

    adventure = Adventure.model_validate(cleaned)
    logger.info(f"Loaded adventure '{adventure.title}' with {len(adventure.locations)} locations")
    return adventure, report
