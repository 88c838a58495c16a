"""Map Jira statuses, labels and summaries onto dashboard enums.

Every mapping is an ordered rule table of ``(keywords, result)`` pairs.
The first rule with a matching keyword wins, so a status such as
"Done - blocked earlier" resolves to Done rather than Blocked.
"""

from phase_roadmap.models import EpicStatus, PhaseType, StoryStatus

STORY_STATUS_RULES: tuple[tuple[tuple[str, ...], StoryStatus], ...] = (
    (("done", "closed", "resolved"), StoryStatus.DONE),
    (("block",), StoryStatus.BLOCKED),
    (("review",), StoryStatus.IN_REVIEW),
    (("progress", "testing"), StoryStatus.IN_PROGRESS),
)

# Review is checked before block for epics, the reverse of stories.
EPIC_STATUS_RULES: tuple[tuple[tuple[str, ...], EpicStatus], ...] = (
    (("done", "closed", "resolved"), EpicStatus.DONE),
    (("review",), EpicStatus.IN_REVIEW),
    (("block",), EpicStatus.BLOCKED),
    (("progress", "development", "testing"), EpicStatus.IN_PROGRESS),
)

# Labels must match a whole label, case-insensitively.
PHASE_LABEL_RULES: tuple[tuple[tuple[str, ...], PhaseType], ...] = (
    (("discovery",), PhaseType.DISCOVERY),
    (("iteration", "design"), PhaseType.ITERATION),
    (("test", "testing"), PhaseType.TESTING),
    (("implement", "implementation", "deploy", "deployment"), PhaseType.IMPLEMENT),
)

# Summary keywords are substring matches.
PHASE_SUMMARY_RULES: tuple[tuple[tuple[str, ...], PhaseType], ...] = (
    (("discover", "research", "analysis"), PhaseType.DISCOVERY),
    (("design", "mockup", "wireframe", "iteration"), PhaseType.ITERATION),
    (("test", "qa"), PhaseType.TESTING),
    (("deploy", "release", "implement"), PhaseType.IMPLEMENT),
)

DEFAULT_PHASE = PhaseType.ITERATION


def _first_substring_match(text: str, rules, default):
    text = text.lower()
    for keywords, result in rules:
        if any(keyword in text for keyword in keywords):
            return result
    return default


def map_jira_status_to_story_status(jira_status: str | None) -> StoryStatus:
    """Map a Jira workflow status name onto a StoryStatus."""
    return _first_substring_match(jira_status or "", STORY_STATUS_RULES, StoryStatus.BACKLOG)


def map_jira_status_to_epic_status(jira_status: str | None) -> EpicStatus:
    """Map a Jira workflow status name onto an EpicStatus."""
    return _first_substring_match(jira_status or "", EPIC_STATUS_RULES, EpicStatus.COMMITTED)


def phase_from_labels(labels: list[str] | None) -> PhaseType | None:
    """Return the phase named by an issue's labels, or None if no label matches."""
    normalized = {label.lower() for label in labels or [] if isinstance(label, str)}
    for keywords, phase in PHASE_LABEL_RULES:
        if normalized.intersection(keywords):
            return phase
    return None


def phase_from_text(summary: str | None, issue_type: str | None = None) -> PhaseType | None:
    """Return the phase suggested by an issue's summary and type name."""
    summary = (summary or "").lower()
    issue_type = (issue_type or "").lower()
    for keywords, phase in PHASE_SUMMARY_RULES:
        if any(keyword in summary for keyword in keywords):
            return phase
        if phase is PhaseType.TESTING and "test" in issue_type:
            return phase
    return None


def determine_phase_from_issue(issue: dict) -> PhaseType:
    """Classify a raw Jira issue into exactly one phase.

    Labels take precedence over the summary text. Issues that match
    nothing land in Iteration.
    """
    fields = issue.get("fields", {})

    phase = phase_from_labels(fields.get("labels"))
    if phase is not None:
        return phase

    issue_type = (fields.get("issuetype") or {}).get("name", "")
    phase = phase_from_text(fields.get("summary"), issue_type)
    if phase is not None:
        return phase

    return DEFAULT_PHASE
