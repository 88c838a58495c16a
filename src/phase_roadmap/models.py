"""Data models for the phase roadmap."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class PhaseType(str, Enum):
    """Workflow stage a story is bucketed into. Declaration order is timeline order."""

    DISCOVERY = "Discovery"
    ITERATION = "Iteration"
    TESTING = "Testing"
    IMPLEMENT = "Implement"


class StoryStatus(str, Enum):
    BACKLOG = "Backlog"
    IN_PROGRESS = "In Progress"
    BLOCKED = "Blocked"
    IN_REVIEW = "In Review"
    DONE = "Done"


class EpicStatus(str, Enum):
    COMMITTED = "committed"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    IN_REVIEW = "in-review"
    DONE = "done"


class TShirtSize(str, Enum):
    """Coarse epic size. XL only ever comes from a Jira field, never inference."""

    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


PHASE_ORDER: tuple[PhaseType, ...] = tuple(PhaseType)

PHASE_COLORS: dict[PhaseType, str] = {
    PhaseType.DISCOVERY: "#8B5CF6",
    PhaseType.ITERATION: "#3B82F6",
    PhaseType.TESTING: "#F59E0B",
    PhaseType.IMPLEMENT: "#10B981",
}

PHASE_TOOLS: dict[PhaseType, list[str]] = {
    PhaseType.DISCOVERY: ["Use Miro for brainstorming", "Link to Confluence for documentation"],
    PhaseType.ITERATION: ["Use Figma for mockups", "Use Loom for design walkthroughs"],
    PhaseType.TESTING: ["Use Cypress for E2E testing", "Use Browserstack for cross-browser testing"],
    PhaseType.IMPLEMENT: [],
}


def recommended_tools_for(phase_type: PhaseType) -> list[str] | None:
    """Return the recommended tools for a phase, or None when there are none."""
    tools = PHASE_TOOLS[phase_type]
    return list(tools) if tools else None


@dataclass(frozen=True)
class Story:
    """A leaf work item on the timeline, built from a Jira child issue."""

    id: str
    summary: str
    status: StoryStatus
    phase: PhaseType
    story_points: float = 3
    time_spent: float = 0.0  # hours


@dataclass(frozen=True)
class Phase:
    """A bucket of stories sharing one workflow stage."""

    type: PhaseType
    stories: tuple[Story, ...]
    color: str
    recommended_tools: list[str] | None = None


@dataclass(frozen=True)
class Epic:
    """An epic on the timeline with its phases in canonical order."""

    id: str
    name: str
    size: TShirtSize
    status: EpicStatus
    phases: tuple[Phase, ...]
    start_date: date
    deadline: date | None = None


@dataclass(frozen=True)
class WorkloadConfig:
    """Conversion constants used by every effort calculation."""

    story_point_to_hours: float = 8
    working_hours_per_day: float = 8
    total_available_hours: float = 480

    def validate(self) -> list[str]:
        """Validate the constants. Returns list of error messages."""
        errors: list[str] = []
        if self.story_point_to_hours < 0:
            errors.append("story_point_to_hours must not be negative")
        if self.working_hours_per_day <= 0:
            errors.append("working_hours_per_day must be greater than zero")
        if self.total_available_hours < 0:
            errors.append("total_available_hours must not be negative")
        return errors


@dataclass(frozen=True)
class TimelineData:
    """Root aggregate passed into and out of the transformer."""

    epics: tuple[Epic, ...]
    config: WorkloadConfig
    quarter_start: date
    quarter_end: date


@dataclass(frozen=True)
class TimelineProjection:
    """Projected completion of an epic against its deadline."""

    projected_end_date: date
    is_late: bool


@dataclass
class WorkloadData:
    """Raw Jira payload for a timeline: epics plus their child issues."""

    epics: list[dict]
    issues_by_epic: dict[str, list[dict]] = field(default_factory=dict)
