"""Edits to a timeline, optionally mirrored to Jira.

Each edit returns a new TimelineData; nothing is modified in place.
Write-back to Jira is best effort: a failure is logged and the local
edit still goes through.
"""

import logging
import math
from dataclasses import replace

from phase_roadmap.exceptions import EpicNotFoundError, StoryNotFoundError
from phase_roadmap.fields import FieldMapping
from phase_roadmap.models import (
    PHASE_COLORS,
    PHASE_ORDER,
    Epic,
    EpicStatus,
    Phase,
    PhaseType,
    Story,
    StoryStatus,
    TimelineData,
    TShirtSize,
    recommended_tools_for,
)

logger = logging.getLogger(__name__)

# Ids minted by the dashboard itself (new stories, demo epics); Jira never sees them.
LOCAL_ID_PREFIXES = ("STORY-", "DEMO-")
PLACEHOLDER_SUFFIX = "-placeholder"

# Effort seeded into an epic that starts with no phases, split by phase.
PLACEHOLDER_POINTS: dict[TShirtSize, int] = {
    TShirtSize.S: 21,
    TShirtSize.M: 55,
    TShirtSize.L: 144,
    TShirtSize.XL: 144,
}
PLACEHOLDER_SHARES: dict[PhaseType, float] = {
    PhaseType.DISCOVERY: 0.15,
    PhaseType.ITERATION: 0.35,
    PhaseType.TESTING: 0.30,
    PhaseType.IMPLEMENT: 0.20,
}


def is_local_story(story_id: str) -> bool:
    """Stories created only on the dashboard have no Jira counterpart."""
    return story_id.startswith(LOCAL_ID_PREFIXES) or story_id.endswith(PLACEHOLDER_SUFFIX)


def is_local_epic(epic_id: str) -> bool:
    return epic_id.startswith(LOCAL_ID_PREFIXES)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _map_epic(timeline: TimelineData, epic_id: str | None, fn) -> TimelineData:
    epics = tuple(
        fn(epic) if epic_id is None or epic.id == epic_id else epic
        for epic in timeline.epics
    )
    return replace(timeline, epics=epics)


def _map_stories(timeline: TimelineData, fn) -> TimelineData:
    def update_epic(epic: Epic) -> Epic:
        phases = tuple(
            replace(phase, stories=fn(phase.stories)) for phase in epic.phases
        )
        return replace(epic, phases=phases)

    return _map_epic(timeline, None, update_epic)


def find_story(timeline: TimelineData, story_id: str) -> Story:
    for epic in timeline.epics:
        for phase in epic.phases:
            for story in phase.stories:
                if story.id == story_id:
                    return story
    raise StoryNotFoundError(f"Story {story_id} not found")


def find_epic(timeline: TimelineData, epic_id: str) -> Epic:
    for epic in timeline.epics:
        if epic.id == epic_id:
            return epic
    raise EpicNotFoundError(f"Epic {epic_id} not found")


def placeholder_phases(epic: Epic) -> tuple[Phase, ...]:
    """One backlog placeholder story per phase, sized from the epic's T-shirt size."""
    total_points = PLACEHOLDER_POINTS[epic.size]
    phases = []
    for phase_type in PHASE_ORDER:
        story = Story(
            id=f"{epic.id}-{phase_type.value.lower()}{PLACEHOLDER_SUFFIX}",
            summary=f"{phase_type.value} phase placeholder",
            story_points=_round_half_up(total_points * PLACEHOLDER_SHARES[phase_type]),
            status=StoryStatus.BACKLOG,
            time_spent=0.0,
            phase=phase_type,
        )
        phases.append(
            Phase(
                type=phase_type,
                stories=(story,),
                color=PHASE_COLORS[phase_type],
                recommended_tools=recommended_tools_for(phase_type),
            )
        )
    return tuple(phases)


def update_epic_status(timeline: TimelineData, epic_id: str, status: EpicStatus) -> TimelineData:
    """Set an epic's status.

    An epic moved to in-progress without any phases is seeded with
    placeholder phases so it has effort on the timeline.
    """

    def update_epic(epic: Epic) -> Epic:
        updated = replace(epic, status=status)
        if status is EpicStatus.IN_PROGRESS and not epic.phases:
            updated = replace(updated, phases=placeholder_phases(epic))
        return updated

    return _map_epic(timeline, epic_id, update_epic)


def add_phase(timeline: TimelineData, epic_id: str, phase_type: PhaseType) -> TimelineData:
    """Append an empty phase to an epic unless it already has one of that type."""

    def update_epic(epic: Epic) -> Epic:
        if any(phase.type is phase_type for phase in epic.phases):
            return epic
        new_phase = Phase(
            type=phase_type,
            stories=(),
            color=PHASE_COLORS[phase_type],
            recommended_tools=recommended_tools_for(phase_type),
        )
        return replace(epic, phases=epic.phases + (new_phase,))

    return _map_epic(timeline, epic_id, update_epic)


def delete_phase(timeline: TimelineData, epic_id: str, phase_type: PhaseType) -> TimelineData:
    def update_epic(epic: Epic) -> Epic:
        return replace(
            epic, phases=tuple(phase for phase in epic.phases if phase.type is not phase_type)
        )

    return _map_epic(timeline, epic_id, update_epic)


def add_story(timeline: TimelineData, epic_id: str, story: Story) -> TimelineData:
    """Append a story to the phase matching ``story.phase``, creating the phase if needed."""
    timeline = add_phase(timeline, epic_id, story.phase)

    def update_epic(epic: Epic) -> Epic:
        phases = tuple(
            replace(phase, stories=phase.stories + (story,))
            if phase.type is story.phase
            else phase
            for phase in epic.phases
        )
        return replace(epic, phases=phases)

    return _map_epic(timeline, epic_id, update_epic)


def update_story_status(timeline: TimelineData, story_id: str, status: StoryStatus) -> TimelineData:
    return _map_stories(
        timeline,
        lambda stories: tuple(
            replace(story, status=status) if story.id == story_id else story
            for story in stories
        ),
    )


def delete_story(timeline: TimelineData, story_id: str) -> TimelineData:
    return _map_stories(
        timeline,
        lambda stories: tuple(story for story in stories if story.id != story_id),
    )


def build_issue_fields(
    story: Story,
    project_key: str,
    epic_id: str,
    mapping: FieldMapping | None = None,
) -> dict:
    """Jira create-issue fields for a dashboard story.

    The phase is written as a label so the story classifies back into
    the same phase on the next fetch.
    """
    mapping = mapping or FieldMapping()
    return {
        "summary": story.summary,
        "description": {
            "type": "doc",
            "version": 1,
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": "Story created from dashboard"}],
                }
            ],
        },
        "issuetype": {"name": "Story"},
        "project": {"key": project_key},
        "parent": {"key": epic_id},
        "labels": [story.phase.value],
        mapping.primary_story_points_field: story.story_points,
    }


class TimelineEditor:
    """Applies edits to a timeline and mirrors them to Jira when connected."""

    def __init__(self, timeline: TimelineData, client=None, project_key: str | None = None,
                 mapping: FieldMapping | None = None) -> None:
        self.timeline = timeline
        self.client = client
        self.project_key = project_key
        self.mapping = mapping or FieldMapping()

    def _should_sync(self, story_id: str) -> bool:
        return self.client is not None and not is_local_story(story_id)

    def add_story(self, epic_id: str, story: Story) -> Story:
        """Add a story; when Jira accepts it the story takes the new issue key.

        Raises:
            EpicNotFoundError: If the epic is not on the timeline
        """
        find_epic(self.timeline, epic_id)
        if self.client is not None and self.project_key and not is_local_epic(epic_id):
            try:
                created = self.client.create_issue(
                    build_issue_fields(story, self.project_key, epic_id, self.mapping)
                )
                story = replace(story, id=created["key"])
            except Exception:
                logger.exception("Failed to create Jira issue for %r", story.summary)
        else:
            logger.debug("Jira sync skipped for new story %s", story.id)

        self.timeline = add_story(self.timeline, epic_id, story)
        return story

    def update_story_status(self, story_id: str, status: StoryStatus) -> None:
        find_story(self.timeline, story_id)
        if self._should_sync(story_id):
            try:
                self.client.update_issue_status(story_id, status)
            except Exception:
                logger.exception("Failed to update Jira status of %s", story_id)

        self.timeline = update_story_status(self.timeline, story_id, status)

    def delete_story(self, story_id: str) -> None:
        find_story(self.timeline, story_id)
        if self._should_sync(story_id):
            try:
                self.client.delete_issue(story_id)
            except Exception:
                logger.exception("Failed to delete Jira issue %s", story_id)

        self.timeline = delete_story(self.timeline, story_id)

    def update_epic_status(self, epic_id: str, status: EpicStatus) -> None:
        # Not mirrored to Jira
        find_epic(self.timeline, epic_id)
        self.timeline = update_epic_status(self.timeline, epic_id, status)

    def add_phase(self, epic_id: str, phase_type: PhaseType) -> None:
        find_epic(self.timeline, epic_id)
        self.timeline = add_phase(self.timeline, epic_id, phase_type)

    def delete_phase(self, epic_id: str, phase_type: PhaseType) -> None:
        find_epic(self.timeline, epic_id)
        self.timeline = delete_phase(self.timeline, epic_id, phase_type)
