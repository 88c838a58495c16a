"""Tests for the Jira-to-timeline transformer."""

from datetime import date
from unittest.mock import patch

from conftest import make_epic, make_issue
from phase_roadmap.classifier import determine_phase_from_issue
from phase_roadmap.models import (
    EpicStatus,
    PhaseType,
    StoryStatus,
    TShirtSize,
)
from phase_roadmap.transformer import (
    SizeThresholds,
    TransformOptions,
    current_quarter,
    group_stories_by_phase,
    infer_tshirt_size,
    transform_issue_to_story,
    transform_jira_data_to_timeline,
)


class TestInferTShirtSize:
    """Tests for infer_tshirt_size."""

    def test_small_by_points(self):
        assert infer_tshirt_size(10, 13) is TShirtSize.S

    def test_small_by_story_count(self):
        assert infer_tshirt_size(3, 100) is TShirtSize.S

    def test_medium(self):
        assert infer_tshirt_size(6, 30) is TShirtSize.M
        assert infer_tshirt_size(8, 100) is TShirtSize.M

    def test_large(self):
        assert infer_tshirt_size(9, 35) is TShirtSize.L

    def test_custom_thresholds(self):
        thresholds = SizeThresholds(small_points=5, small_stories=1, medium_points=10, medium_stories=2)
        assert infer_tshirt_size(3, 11, thresholds) is TShirtSize.L


class TestCurrentQuarter:
    """Tests for current_quarter."""

    def test_first_quarter(self):
        assert current_quarter(date(2026, 2, 14)) == (date(2026, 1, 1), date(2026, 3, 31))

    def test_third_quarter(self):
        assert current_quarter(date(2026, 9, 30)) == (date(2026, 7, 1), date(2026, 9, 30))

    def test_last_quarter_crosses_year(self):
        assert current_quarter(date(2026, 10, 18)) == (date(2026, 10, 1), date(2026, 12, 31))


class TestTransformIssueToStory:
    """Tests for transform_issue_to_story."""

    def test_maps_fields(self):
        issue = make_issue(
            "PROJ-7", summary="Build API", status="In Review",
            customfield_10016=5, timetracking={"timeSpentSeconds": 7200},
        )
        story = transform_issue_to_story(issue, PhaseType.IMPLEMENT)
        assert story.id == "PROJ-7"
        assert story.summary == "Build API"
        assert story.story_points == 5
        assert story.status is StoryStatus.IN_REVIEW
        assert story.time_spent == 2
        assert story.phase is PhaseType.IMPLEMENT


class TestGroupStoriesByPhase:
    """Tests for group_stories_by_phase."""

    def test_canonical_order_and_empty_phases_omitted(self):
        issues = [
            make_issue("PROJ-1", summary="Deploy to prod"),
            make_issue("PROJ-2", summary="User research"),
            make_issue("PROJ-3", summary="Release notes"),
        ]
        phases = group_stories_by_phase(issues)
        assert [p.type for p in phases] == [PhaseType.DISCOVERY, PhaseType.IMPLEMENT]
        assert [s.id for s in phases[1].stories] == ["PROJ-1", "PROJ-3"]

    def test_phase_carries_color_and_tools(self):
        phases = group_stories_by_phase([make_issue("PROJ-1", labels=["discovery"])])
        assert phases[0].color == "#8B5CF6"
        assert phases[0].recommended_tools == [
            "Use Miro for brainstorming", "Link to Confluence for documentation",
        ]

    def test_implement_has_no_tools(self):
        phases = group_stories_by_phase([make_issue("PROJ-1", labels=["deploy"])])
        assert phases[0].recommended_tools is None

    def test_stories_match_their_phase(self):
        issues = [make_issue(f"PROJ-{i}", summary=s) for i, s in enumerate(
            ["QA checklist", "Mockup", "Analysis", "Something else", "Implement flag"]
        )]
        for phase in group_stories_by_phase(issues):
            assert all(story.phase is phase.type for story in phase.stories)

    def test_no_issues(self):
        assert group_stories_by_phase([]) == ()


class TestTransformJiraDataToTimeline:
    """Tests for transform_jira_data_to_timeline."""

    def _issues(self):
        return [
            make_issue("PROJ-1", summary="Competitor research", status="Done", customfield_10040=5),
            make_issue("PROJ-2", summary="Wireframes", status="In Progress", labels=["design"]),
            make_issue("PROJ-3", summary="Regression test plan", status="Blocked"),
            make_issue("PROJ-4", summary="Ship it", labels=["Deployment"]),
            make_issue("PROJ-5", summary="Polish copy"),
        ]

    def test_builds_epic(self):
        epics = [make_epic("EPIC-1", "Portal", status="In Development",
                           created="2026-01-01T10:00:00.000+0000", duedate="2026-02-15")]
        timeline = transform_jira_data_to_timeline(epics, {"EPIC-1": self._issues()})

        epic = timeline.epics[0]
        assert epic.id == "EPIC-1"
        assert epic.name == "Portal"
        assert epic.status is EpicStatus.IN_PROGRESS
        assert epic.start_date == date(2026, 1, 1)
        assert epic.deadline == date(2026, 2, 15)
        assert [p.type for p in epic.phases] == [
            PhaseType.DISCOVERY, PhaseType.ITERATION, PhaseType.TESTING, PhaseType.IMPLEMENT,
        ]
        # 5 stories, 17 points: small by neither rule, medium by both
        assert epic.size is TShirtSize.M

    def test_phase_assignment_matches_direct_classification(self):
        issues = self._issues()
        timeline = transform_jira_data_to_timeline([make_epic("EPIC-1")], {"EPIC-1": issues})

        assigned = {
            story.id: phase.type
            for phase in timeline.epics[0].phases
            for story in phase.stories
        }
        assert assigned == {issue["key"]: determine_phase_from_issue(issue) for issue in issues}

    def test_size_from_jira_field_wins(self):
        epics = [make_epic("EPIC-1", customfield_10100={"value": "Large"})]
        timeline = transform_jira_data_to_timeline(epics, {"EPIC-1": []})
        assert timeline.epics[0].size is TShirtSize.L

    def test_epic_without_issue_list(self):
        timeline = transform_jira_data_to_timeline([make_epic("EPIC-9")], {})
        epic = timeline.epics[0]
        assert epic.phases == ()
        assert epic.size is TShirtSize.S
        assert epic.deadline is None

    def test_default_config_and_quarter(self):
        with patch("phase_roadmap.transformer.current_quarter",
                   return_value=(date(2026, 10, 1), date(2026, 12, 31))):
            timeline = transform_jira_data_to_timeline([], {})
        assert timeline.config.story_point_to_hours == 8
        assert timeline.config.working_hours_per_day == 8
        assert timeline.config.total_available_hours == 480
        assert timeline.quarter_start == date(2026, 10, 1)
        assert timeline.quarter_end == date(2026, 12, 31)

    def test_options_override_defaults(self):
        options = TransformOptions(
            quarter_start=date(2026, 1, 1),
            quarter_end=date(2026, 3, 31),
            story_point_to_hours=6,
            working_hours_per_day=0,
            total_available_hours=320,
        )
        timeline = transform_jira_data_to_timeline([], {}, options)
        assert timeline.config.story_point_to_hours == 6
        # zero falls back to the default
        assert timeline.config.working_hours_per_day == 8
        assert timeline.config.total_available_hours == 320
        assert timeline.quarter_start == date(2026, 1, 1)

    def test_missing_created_date_starts_today(self):
        epic = make_epic("EPIC-1", created=None)
        timeline = transform_jira_data_to_timeline([epic], {})
        assert timeline.epics[0].start_date == date.today()
