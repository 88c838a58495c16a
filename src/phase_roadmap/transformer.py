"""Conversion of raw Jira epics and issues into a phase timeline."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from phase_roadmap.classifier import (
    determine_phase_from_issue,
    map_jira_status_to_epic_status,
    map_jira_status_to_story_status,
)
from phase_roadmap.fields import (
    FieldMapping,
    get_story_points_from_issue,
    get_time_spent_from_issue,
    get_tshirt_size_from_jira,
    parse_jira_date,
)
from phase_roadmap.models import (
    PHASE_COLORS,
    PHASE_ORDER,
    Epic,
    Phase,
    PhaseType,
    Story,
    TimelineData,
    TShirtSize,
    WorkloadConfig,
    recommended_tools_for,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKLOAD = WorkloadConfig()


@dataclass(frozen=True)
class SizeThresholds:
    """Upper bounds used to infer an epic's T-shirt size."""

    small_points: float = 13
    small_stories: int = 3
    medium_points: float = 34
    medium_stories: int = 8


@dataclass
class TransformOptions:
    """Caller overrides for a transform. Zero or missing values use defaults."""

    quarter_start: date | None = None
    quarter_end: date | None = None
    story_point_to_hours: float | None = None
    working_hours_per_day: float | None = None
    total_available_hours: float | None = None
    field_mapping: FieldMapping = field(default_factory=FieldMapping)
    size_thresholds: SizeThresholds = field(default_factory=SizeThresholds)

    def workload_config(self) -> WorkloadConfig:
        return WorkloadConfig(
            story_point_to_hours=self.story_point_to_hours or DEFAULT_WORKLOAD.story_point_to_hours,
            working_hours_per_day=self.working_hours_per_day or DEFAULT_WORKLOAD.working_hours_per_day,
            total_available_hours=self.total_available_hours or DEFAULT_WORKLOAD.total_available_hours,
        )


def current_quarter(today: date | None = None) -> tuple[date, date]:
    """Return the first and last day of the calendar quarter containing today."""
    today = today or date.today()
    first_month = (today.month - 1) // 3 * 3 + 1
    start = date(today.year, first_month, 1)
    if first_month == 10:
        next_start = date(today.year + 1, 1, 1)
    else:
        next_start = date(today.year, first_month + 3, 1)
    return start, next_start - timedelta(days=1)


def infer_tshirt_size(
    issue_count: int,
    total_points: float,
    thresholds: SizeThresholds | None = None,
) -> TShirtSize:
    """Infer an epic's size from its story count and point total."""
    thresholds = thresholds or SizeThresholds()
    if total_points <= thresholds.small_points or issue_count <= thresholds.small_stories:
        return TShirtSize.S
    if total_points <= thresholds.medium_points or issue_count <= thresholds.medium_stories:
        return TShirtSize.M
    return TShirtSize.L


def transform_issue_to_story(
    issue: dict,
    phase: PhaseType,
    mapping: FieldMapping | None = None,
) -> Story:
    """Convert a raw Jira issue into a Story in the given phase."""
    fields = issue.get("fields", {})
    return Story(
        id=issue.get("key", ""),
        summary=fields.get("summary", ""),
        story_points=get_story_points_from_issue(issue, mapping),
        status=map_jira_status_to_story_status((fields.get("status") or {}).get("name")),
        time_spent=get_time_spent_from_issue(issue),
        phase=phase,
    )


def group_stories_by_phase(issues: list[dict], mapping: FieldMapping | None = None) -> tuple[Phase, ...]:
    """Bucket issues into phases.

    Phases come out in canonical order, empty phases are omitted and
    each phase keeps its stories in the order they were encountered.
    """
    buckets: dict[PhaseType, list[Story]] = {}
    for issue in issues:
        phase_type = determine_phase_from_issue(issue)
        buckets.setdefault(phase_type, []).append(
            transform_issue_to_story(issue, phase_type, mapping)
        )

    return tuple(
        Phase(
            type=phase_type,
            stories=tuple(buckets[phase_type]),
            color=PHASE_COLORS[phase_type],
            recommended_tools=recommended_tools_for(phase_type),
        )
        for phase_type in PHASE_ORDER
        if buckets.get(phase_type)
    )


def transform_epic(
    jira_epic: dict,
    issues: list[dict],
    options: TransformOptions | None = None,
) -> Epic:
    """Convert one raw Jira epic and its child issues into an Epic."""
    options = options or TransformOptions()
    mapping = options.field_mapping
    key = jira_epic.get("key", "")
    fields = jira_epic.get("fields", {})

    phases = group_stories_by_phase(issues, mapping)

    size = get_tshirt_size_from_jira(jira_epic, mapping)
    if size is None:
        total_points = sum(get_story_points_from_issue(issue, mapping) for issue in issues)
        size = infer_tshirt_size(len(issues), total_points, options.size_thresholds)
        logger.debug("Epic %s has no T-shirt size in Jira, inferred %s", key, size.value)

    start_date = parse_jira_date(fields.get("created"))
    if start_date is None:
        logger.warning("Epic %s has no usable created date, starting today", key)
        start_date = date.today()

    return Epic(
        id=key,
        name=fields.get("summary", ""),
        size=size,
        status=map_jira_status_to_epic_status((fields.get("status") or {}).get("name")),
        phases=phases,
        start_date=start_date,
        deadline=parse_jira_date(fields.get("duedate")),
    )


def transform_jira_data_to_timeline(
    epics: list[dict],
    issues_by_epic: dict[str, list[dict]],
    options: TransformOptions | None = None,
) -> TimelineData:
    """Build TimelineData from raw Jira epics and their issues.

    An epic missing from ``issues_by_epic`` is treated as having no issues.
    """
    options = options or TransformOptions()
    logger.info(
        "Transforming %d epics (%d with issue lists)", len(epics), len(issues_by_epic)
    )

    transformed = tuple(
        transform_epic(jira_epic, issues_by_epic.get(jira_epic.get("key", ""), []), options)
        for jira_epic in epics
    )

    default_start, default_end = current_quarter()
    return TimelineData(
        epics=transformed,
        config=options.workload_config(),
        quarter_start=options.quarter_start or default_start,
        quarter_end=options.quarter_end or default_end,
    )
