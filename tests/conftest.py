"""Shared fixtures for Phase Roadmap tests."""

from datetime import date

import pytest

from phase_roadmap.config import JiraConnection
from phase_roadmap.models import (
    PHASE_COLORS,
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


def make_issue(key, summary="Some work", status="To Do", labels=None,
               issue_type="Story", **extra_fields):
    """Build a raw Jira issue dict."""
    fields = {
        "summary": summary,
        "status": {"name": status},
        "issuetype": {"name": issue_type},
        "labels": labels or [],
        "created": "2026-01-05T09:00:00.000+0000",
    }
    fields.update(extra_fields)
    return {"id": key.split("-")[-1], "key": key, "fields": fields}


def make_epic(key, summary="Epic", status="In Progress", created="2026-01-01T10:00:00.000+0000",
              duedate=None, **extra_fields):
    """Build a raw Jira epic dict."""
    fields = {
        "summary": summary,
        "status": {"name": status},
        "issuetype": {"name": "Epic"},
        "created": created,
    }
    if duedate:
        fields["duedate"] = duedate
    fields.update(extra_fields)
    return {"id": key.split("-")[-1], "key": key, "fields": fields}


def make_story(story_id, points=3, spent=0.0, status=StoryStatus.BACKLOG,
               phase=PhaseType.ITERATION):
    return Story(
        id=story_id,
        summary=f"Story {story_id}",
        story_points=points,
        status=status,
        time_spent=spent,
        phase=phase,
    )


def make_phase(phase_type, stories):
    return Phase(type=phase_type, stories=tuple(stories), color=PHASE_COLORS[phase_type])


def make_timeline_epic(epic_id="EPIC-1", phases=(), start_date=date(2026, 1, 1), deadline=None):
    return Epic(
        id=epic_id,
        name=f"Epic {epic_id}",
        size=TShirtSize.M,
        status=EpicStatus.IN_PROGRESS,
        phases=tuple(phases),
        start_date=start_date,
        deadline=deadline,
    )


@pytest.fixture
def workload_config():
    return WorkloadConfig(story_point_to_hours=8, working_hours_per_day=8, total_available_hours=480)


@pytest.fixture
def connection():
    return JiraConnection(
        domain="test.atlassian.net",
        email="test@example.com",
        api_token="test-token-123",
        project_key="PROJ",
    )


@pytest.fixture(autouse=True)
def clear_cf_env(monkeypatch):
    """Keep CF Access credentials from the developer's shell out of tests."""
    for var in ("JIRA_CF_ACCESS_TOKEN", "JIRA_CF_ACCESS_CLIENT_ID", "JIRA_CF_ACCESS_CLIENT_SECRET"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Point the config directory at an empty temp dir."""
    config_dir = tmp_path / ".phase-roadmap"
    monkeypatch.setattr("phase_roadmap.config.get_config_dir", lambda: config_dir)
    return config_dir


@pytest.fixture
def sample_timeline(workload_config):
    """One epic with Discovery and Iteration phases."""
    discovery = make_phase(PhaseType.DISCOVERY, [
        make_story("PROJ-1", points=5, spent=10, status=StoryStatus.DONE, phase=PhaseType.DISCOVERY),
        make_story("PROJ-2", points=3, phase=PhaseType.DISCOVERY),
    ])
    iteration = make_phase(PhaseType.ITERATION, [
        make_story("PROJ-3", points=2, status=StoryStatus.IN_PROGRESS),
    ])
    epic = make_timeline_epic("EPIC-1", [discovery, iteration])
    return TimelineData(
        epics=(epic,),
        config=workload_config,
        quarter_start=date(2026, 1, 1),
        quarter_end=date(2026, 3, 31),
    )


@pytest.fixture
def app():
    """Create Flask test app."""
    from phase_roadmap.web.app import create_app
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
