"""Timeline fetching, serialization and derived metrics."""

import logging
import math
from dataclasses import replace
from datetime import date

from phase_roadmap.config import JiraConnection
from phase_roadmap.exceptions import (
    InvalidConfigError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
)
from phase_roadmap.jira_client import (
    AuthenticationError,
    JiraClient,
    RateLimitError,
)
from phase_roadmap.jira_client import (
    ConnectionError as JiraClientConnectionError,
)
from phase_roadmap.models import (
    Epic,
    EpicStatus,
    Phase,
    PhaseType,
    Story,
    StoryStatus,
    TimelineData,
    TShirtSize,
    WorkloadConfig,
)
from phase_roadmap.projection import (
    calculate_capacity_percentage,
    calculate_epic_progress,
    calculate_epic_remaining_hours,
    calculate_phase_remaining_days,
    calculate_phase_remaining_hours,
    calculate_total_remaining_hours,
    display_epics,
    filter_epics_by_quarter,
    format_hours,
    get_capacity_status,
    get_phase_completed_stories,
    get_timeline_projection,
    is_phase_complete,
    is_phase_in_progress,
)
from phase_roadmap.transformer import TransformOptions, transform_jira_data_to_timeline

logger = logging.getLogger(__name__)


def fetch_timeline(
    connection: JiraConnection,
    options: TransformOptions | None = None,
    client: JiraClient | None = None,
) -> TimelineData:
    """Fetch epics and their issues from JIRA and build the timeline.

    Raises:
        InvalidConfigError: If the connection settings are invalid
        JiraAuthError: If JIRA authentication fails
        JiraRateLimitError: If rate limited
        JiraConnectionError: If cannot connect
    """
    errors = connection.validate()
    if errors:
        raise InvalidConfigError(f"Invalid connection: {'; '.join(errors)}")

    client = client or JiraClient(connection)

    try:
        if not client.test_connection():
            raise JiraAuthError(
                "Failed to connect to Jira. Please check your credentials."
            )
        workload = client.get_all_workload_data(connection.project_key, connection.assignee)
    except AuthenticationError:
        raise JiraAuthError(
            "JIRA authentication failed. Check your email and API token."
        )
    except RateLimitError:
        raise JiraRateLimitError(
            "JIRA rate limit exceeded. Please wait a moment and try again."
        )
    except JiraClientConnectionError as e:
        raise JiraConnectionError(str(e))

    timeline = transform_jira_data_to_timeline(workload.epics, workload.issues_by_epic, options)
    logger.info(
        "Loaded %d epics: %s",
        len(timeline.epics),
        ", ".join(f"{e.id} ({len(e.phases)} phases)" for e in timeline.epics),
    )
    return timeline


def _date_str(d: date | None) -> str | None:
    return d.isoformat() if d else None


def _story_dict(s: Story) -> dict:
    return {
        "id": s.id,
        "summary": s.summary,
        "storyPoints": s.story_points,
        "status": s.status.value,
        "timeSpent": s.time_spent,
        "phase": s.phase.value,
    }


def _phase_dict(p: Phase, config: WorkloadConfig) -> dict:
    remaining = calculate_phase_remaining_hours(p, config)
    d = {
        "type": p.type.value,
        "color": p.color,
        "stories": [_story_dict(s) for s in p.stories],
        "remainingHours": remaining,
        "remainingDays": calculate_phase_remaining_days(p, config),
        "remainingLabel": format_hours(remaining, config.working_hours_per_day),
        "completedStories": get_phase_completed_stories(p),
        "isComplete": is_phase_complete(p),
        "isInProgress": is_phase_in_progress(p),
    }
    if p.recommended_tools:
        d["recommendedTools"] = list(p.recommended_tools)
    return d


def _epic_dict(e: Epic, config: WorkloadConfig) -> dict:
    projection = get_timeline_projection(e, config)
    remaining = calculate_epic_remaining_hours(e, config)
    return {
        "id": e.id,
        "name": e.name,
        "size": e.size.value,
        "status": e.status.value,
        "startDate": _date_str(e.start_date),
        "deadline": _date_str(e.deadline),
        "phases": [_phase_dict(p, config) for p in e.phases],
        "remainingHours": remaining,
        "remainingLabel": format_hours(remaining, config.working_hours_per_day),
        "progress": calculate_epic_progress(e),
        "projectedEndDate": _date_str(projection.projected_end_date),
        "isLate": projection.is_late,
    }


def timeline_to_dict(timeline: TimelineData) -> dict:
    """Convert TimelineData to a JSON-serializable dict with derived metrics."""
    config = timeline.config
    capacity = calculate_capacity_percentage(timeline.epics, config)
    return {
        "epics": [_epic_dict(e, config) for e in timeline.epics],
        "config": {
            "storyPointToHours": config.story_point_to_hours,
            "workingHoursPerDay": config.working_hours_per_day,
            "totalAvailableHours": config.total_available_hours,
        },
        "quarterStart": timeline.quarter_start.isoformat(),
        "quarterEnd": timeline.quarter_end.isoformat(),
        "totalRemainingHours": calculate_total_remaining_hours(timeline.epics, config),
        "capacityPercentage": capacity,
        "capacityStatus": get_capacity_status(capacity),
    }


def visible_timeline(timeline: TimelineData, today: date | None = None) -> TimelineData:
    """The epics a dashboard shows: in-progress and done, overlapping the quarter."""
    epics = filter_epics_by_quarter(
        display_epics(timeline.epics), timeline.quarter_start, timeline.quarter_end, today
    )
    return replace(timeline, epics=epics)


def _parse_date(value: str | None, name: str) -> date:
    if not value:
        raise ValueError(f"{name} is required")
    return date.fromisoformat(value[:10])


def _number(value, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise ValueError(f"{name} must be a number, got {value!r}")
    return value


def story_from_dict(data: dict) -> Story:
    """Build a Story from its JSON form.

    Raises:
        ValueError: If an enum value, number or required key is invalid
    """
    try:
        return Story(
            id=data["id"],
            summary=data.get("summary", ""),
            story_points=_number(data.get("storyPoints", 3), "storyPoints"),
            status=StoryStatus(data.get("status", StoryStatus.BACKLOG.value)),
            time_spent=_number(data.get("timeSpent", 0.0), "timeSpent"),
            phase=PhaseType(data["phase"]),
        )
    except KeyError as e:
        raise ValueError(f"Missing story field: {e}") from e
    except (TypeError, AttributeError) as e:
        raise ValueError(f"Malformed story: {e}") from e


def _phase_from_dict(data: dict) -> Phase:
    phase_type = PhaseType(data["type"])
    stories = tuple(story_from_dict(s) for s in data.get("stories", []))
    for story in stories:
        if story.phase is not phase_type:
            raise ValueError(
                f"Story {story.id} has phase {story.phase.value} but sits in {phase_type.value}"
            )
    return Phase(
        type=phase_type,
        stories=stories,
        color=data.get("color", ""),
        recommended_tools=data.get("recommendedTools"),
    )


def _epic_from_dict(data: dict) -> Epic:
    deadline = data.get("deadline")
    return Epic(
        id=data["id"],
        name=data.get("name", ""),
        size=TShirtSize(data.get("size", TShirtSize.S.value)),
        status=EpicStatus(data.get("status", EpicStatus.COMMITTED.value)),
        phases=tuple(_phase_from_dict(p) for p in data.get("phases", [])),
        start_date=_parse_date(data.get("startDate"), f"startDate of epic {data['id']}"),
        deadline=_parse_date(deadline, "deadline") if deadline else None,
    )


def timeline_from_dict(data: dict) -> TimelineData:
    """Rebuild TimelineData from the output of timeline_to_dict.

    Derived metrics in the input are ignored.

    Raises:
        ValueError: If the payload is malformed
    """
    try:
        config_data = data.get("config") or {}
        defaults = WorkloadConfig()
        config = WorkloadConfig(
            story_point_to_hours=_number(
                config_data.get("storyPointToHours", defaults.story_point_to_hours), "storyPointToHours"
            ),
            working_hours_per_day=_number(
                config_data.get("workingHoursPerDay", defaults.working_hours_per_day), "workingHoursPerDay"
            ),
            total_available_hours=_number(
                config_data.get("totalAvailableHours", defaults.total_available_hours), "totalAvailableHours"
            ),
        )
        errors = config.validate()
        if errors:
            raise ValueError(f"Invalid config: {'; '.join(errors)}")

        return TimelineData(
            epics=tuple(_epic_from_dict(e) for e in data.get("epics", [])),
            config=config,
            quarter_start=_parse_date(data.get("quarterStart"), "quarterStart"),
            quarter_end=_parse_date(data.get("quarterEnd"), "quarterEnd"),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed timeline: {e}") from e
