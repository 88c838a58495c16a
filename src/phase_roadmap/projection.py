"""Remaining effort, capacity and completion projections."""

import math
from datetime import date, timedelta
from typing import Literal

from phase_roadmap.models import (
    Epic,
    EpicStatus,
    Phase,
    StoryStatus,
    TimelineProjection,
    WorkloadConfig,
)

CapacityStatus = Literal["good", "warning", "danger"]

GOOD_CAPACITY_LIMIT = 80
WARNING_CAPACITY_LIMIT = 100


def calculate_phase_remaining_hours(phase: Phase, config: WorkloadConfig) -> float:
    """Estimated hours minus logged hours, never below zero."""
    total_points = sum(story.story_points for story in phase.stories)
    spent_hours = sum(story.time_spent for story in phase.stories)
    return max(0, total_points * config.story_point_to_hours - spent_hours)


def calculate_phase_remaining_days(phase: Phase, config: WorkloadConfig) -> float:
    if not config.working_hours_per_day:
        return 0.0
    return calculate_phase_remaining_hours(phase, config) / config.working_hours_per_day


def calculate_epic_remaining_hours(epic: Epic, config: WorkloadConfig) -> float:
    return sum(calculate_phase_remaining_hours(phase, config) for phase in epic.phases)


def calculate_epic_progress(epic: Epic) -> float:
    """Percentage of the epic's story points that are done."""
    stories = [story for phase in epic.phases for story in phase.stories]
    if not stories:
        return 0

    total_points = sum(story.story_points for story in stories)
    completed_points = sum(
        story.story_points for story in stories if story.status is StoryStatus.DONE
    )
    return completed_points / total_points * 100 if total_points > 0 else 0


def calculate_total_remaining_hours(epics, config: WorkloadConfig) -> float:
    if not epics:
        return 0
    total = sum(calculate_epic_remaining_hours(epic, config) for epic in epics)
    return 0 if math.isnan(total) else total


def calculate_capacity_percentage(epics, config: WorkloadConfig | None) -> float:
    """Remaining hours as a percentage of the available hours."""
    if config is None or not config.total_available_hours:
        return 0
    percentage = calculate_total_remaining_hours(epics, config) / config.total_available_hours * 100
    return 0 if math.isnan(percentage) else percentage


def get_capacity_status(percentage: float) -> CapacityStatus:
    if percentage <= GOOD_CAPACITY_LIMIT:
        return "good"
    if percentage <= WARNING_CAPACITY_LIMIT:
        return "warning"
    return "danger"


def get_timeline_projection(epic: Epic, config: WorkloadConfig) -> TimelineProjection:
    """Project the epic's end date from its start date and remaining days.

    The epic is late only when it has a deadline and the projected end
    falls after it.
    """
    remaining_days = 0.0
    if config.working_hours_per_day:
        remaining_days = calculate_epic_remaining_hours(epic, config) / config.working_hours_per_day

    projected_end_date = epic.start_date + timedelta(days=math.ceil(remaining_days))
    is_late = epic.deadline is not None and projected_end_date > epic.deadline
    return TimelineProjection(projected_end_date=projected_end_date, is_late=is_late)


def format_hours(hours: float | None, hours_per_day: int = 8) -> str:
    """Format hours as "5.0h", "2d" or "2d 3.5h"."""
    if hours is None or math.isnan(hours):
        return "0h"
    if hours_per_day <= 0 or hours < hours_per_day:
        return f"{hours:.1f}h"
    days = math.floor(hours / hours_per_day)
    remaining_hours = hours % hours_per_day
    if remaining_hours == 0:
        return f"{days}d"
    return f"{days}d {remaining_hours:.1f}h"


def get_phase_completed_stories(phase: Phase) -> int:
    return sum(1 for story in phase.stories if story.status is StoryStatus.DONE)


def is_phase_complete(phase: Phase) -> bool:
    return all(story.status is StoryStatus.DONE for story in phase.stories)


def is_phase_in_progress(phase: Phase) -> bool:
    return any(story.status is StoryStatus.IN_PROGRESS for story in phase.stories)


def epic_overlaps_quarter(epic: Epic, quarter_start: date, quarter_end: date,
                          today: date | None = None) -> bool:
    """True when the epic starts or ends inside the quarter, or spans all of it.

    An epic without a deadline is treated as ending today.
    """
    start = epic.start_date
    end = epic.deadline or today or date.today()
    return (
        quarter_start <= start <= quarter_end
        or quarter_start <= end <= quarter_end
        or (start <= quarter_start and end >= quarter_end)
    )


def filter_epics_by_quarter(epics, quarter_start: date, quarter_end: date,
                            today: date | None = None) -> tuple[Epic, ...]:
    return tuple(
        epic for epic in epics
        if epic_overlaps_quarter(epic, quarter_start, quarter_end, today)
    )


DISPLAYED_EPIC_STATUSES = (EpicStatus.IN_PROGRESS, EpicStatus.DONE)


def display_epics(epics) -> tuple[Epic, ...]:
    """Keep in-progress and done epics, in-progress first, otherwise in input order."""
    shown = [epic for epic in epics if epic.status in DISPLAYED_EPIC_STATUSES]
    return tuple(sorted(shown, key=lambda epic: epic.status is not EpicStatus.IN_PROGRESS))
