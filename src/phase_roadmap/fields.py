"""Extraction of story points, time spent and sizing from Jira fields."""

from dataclasses import dataclass
from datetime import date

from phase_roadmap.models import TShirtSize

DEFAULT_STORY_POINTS = 3

STORY_POINTS_FIELDS: tuple[str, ...] = ("customfield_10040", "customfield_10016")

_SIZE_ALIASES: dict[str, TShirtSize] = {
    "S": TShirtSize.S,
    "SMALL": TShirtSize.S,
    "M": TShirtSize.M,
    "MEDIUM": TShirtSize.M,
    "L": TShirtSize.L,
    "LARGE": TShirtSize.L,
    "XL": TShirtSize.XL,
    "EXTRA LARGE": TShirtSize.XL,
    "X-LARGE": TShirtSize.XL,
}


@dataclass(frozen=True)
class FieldMapping:
    """Which Jira custom fields carry which semantic role.

    ``story_points`` is consulted in order. ``tshirt_size`` of None means
    every ``customfield_*`` on the epic is scanned in field order.
    """

    story_points: tuple[str, ...] = STORY_POINTS_FIELDS
    tshirt_size: tuple[str, ...] | None = None

    @property
    def primary_story_points_field(self) -> str:
        return self.story_points[0]


@dataclass(frozen=True)
class Unresolved:
    """A field value whose shape could not be interpreted."""

    raw: object = None


def _unwrap(value: object) -> object:
    """Select fields come back as ``{"value": ...}``; unwrap them."""
    if isinstance(value, dict):
        return value.get("value")
    return value


def parse_number(value: object) -> float | Unresolved:
    """Parse a raw number or a ``{"value": ...}`` object into a number."""
    inner = _unwrap(value)
    if isinstance(inner, bool) or inner is None:
        return Unresolved(value)
    if isinstance(inner, (int, float)):
        return inner
    if isinstance(inner, str) and isinstance(value, dict):
        try:
            return int(float(inner.strip()))
        except ValueError:
            return Unresolved(value)
    return Unresolved(value)


def parse_tshirt_size(value: object) -> TShirtSize | Unresolved:
    """Parse a string or ``{"value": str}`` into a TShirtSize."""
    inner = _unwrap(value)
    if not isinstance(inner, str):
        return Unresolved(value)
    return _SIZE_ALIASES.get(inner.strip().upper(), Unresolved(value))


def get_story_points_from_issue(issue: dict, mapping: FieldMapping | None = None) -> float:
    """Return the story points of an issue.

    Fields are tried in mapping order and the first positive number wins.
    Missing, zero or unparsable values fall back to the default of 3.
    """
    mapping = mapping or FieldMapping()
    fields = issue.get("fields", {})
    for field_id in mapping.story_points:
        points = parse_number(fields.get(field_id))
        if isinstance(points, Unresolved) or points != points:  # NaN
            continue
        if points > 0:
            return points
    return DEFAULT_STORY_POINTS


def get_time_spent_from_issue(issue: dict) -> float:
    """Return logged time in hours."""
    tracking = issue.get("fields", {}).get("timetracking") or {}
    seconds = tracking.get("timeSpentSeconds") or 0
    return seconds / 3600


def get_tshirt_size_from_jira(epic: dict, mapping: FieldMapping | None = None) -> TShirtSize | None:
    """Return the T-shirt size recorded on an epic, or None if absent."""
    mapping = mapping or FieldMapping()
    fields = epic.get("fields", {})

    if mapping.tshirt_size is None:
        candidates = [key for key in fields if key.startswith("customfield_")]
    else:
        candidates = list(mapping.tshirt_size)

    for field_id in candidates:
        size = parse_tshirt_size(fields.get(field_id))
        if not isinstance(size, Unresolved):
            return size
    return None


def parse_jira_date(value: object) -> date | None:
    """Parse a Jira date or datetime string to a date object."""
    if not value:
        return None
    try:
        # Jira dates are "YYYY-MM-DD", timestamps start with the same
        return date.fromisoformat(str(value)[:10])
    except (ValueError, TypeError):
        return None
