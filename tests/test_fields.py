"""Tests for Jira field extraction."""

from datetime import date

from conftest import make_epic, make_issue
from phase_roadmap.fields import (
    FieldMapping,
    Unresolved,
    get_story_points_from_issue,
    get_time_spent_from_issue,
    get_tshirt_size_from_jira,
    parse_jira_date,
    parse_number,
    parse_tshirt_size,
)
from phase_roadmap.models import TShirtSize


class TestParseNumber:
    """Tests for parse_number."""

    def test_raw_number(self):
        assert parse_number(5) == 5

    def test_object_with_numeric_string(self):
        assert parse_number({"value": "5"}) == 5

    def test_object_with_number(self):
        assert parse_number({"value": 2.5}) == 2.5

    def test_decimal_string_truncates(self):
        assert parse_number({"value": "5.7"}) == 5

    def test_garbage_string_is_unresolved(self):
        assert isinstance(parse_number({"value": "lots"}), Unresolved)

    def test_bare_string_is_unresolved(self):
        assert isinstance(parse_number("5"), Unresolved)

    def test_bool_is_unresolved(self):
        assert isinstance(parse_number(True), Unresolved)

    def test_none_is_unresolved(self):
        result = parse_number(None)
        assert isinstance(result, Unresolved)
        assert result.raw is None


class TestGetStoryPointsFromIssue:
    """Tests for get_story_points_from_issue."""

    def test_reads_object_value_from_primary_field(self):
        issue = make_issue("PROJ-1", customfield_10040={"value": "5"})
        assert get_story_points_from_issue(issue) == 5

    def test_primary_field_wins(self):
        issue = make_issue("PROJ-1", customfield_10040=8, customfield_10016=2)
        assert get_story_points_from_issue(issue) == 8

    def test_falls_back_to_secondary_field(self):
        issue = make_issue("PROJ-1", customfield_10040={"value": "n/a"}, customfield_10016=2)
        assert get_story_points_from_issue(issue) == 2

    def test_defaults_to_three_when_absent(self):
        assert get_story_points_from_issue(make_issue("PROJ-1")) == 3

    def test_defaults_to_three_when_unparsable(self):
        issue = make_issue("PROJ-1", customfield_10040={"value": "x"}, customfield_10016="big")
        assert get_story_points_from_issue(issue) == 3

    def test_zero_is_treated_as_missing(self):
        issue = make_issue("PROJ-1", customfield_10040=0)
        assert get_story_points_from_issue(issue) == 3

    def test_custom_mapping(self):
        issue = make_issue("PROJ-1", customfield_10002=13, customfield_10040=1)
        mapping = FieldMapping(story_points=("customfield_10002",))
        assert get_story_points_from_issue(issue, mapping) == 13


class TestGetTimeSpentFromIssue:
    """Tests for get_time_spent_from_issue."""

    def test_converts_seconds_to_hours(self):
        issue = make_issue("PROJ-1", timetracking={"timeSpentSeconds": 5400})
        assert get_time_spent_from_issue(issue) == 1.5

    def test_defaults_to_zero(self):
        assert get_time_spent_from_issue(make_issue("PROJ-1")) == 0

    def test_empty_timetracking(self):
        assert get_time_spent_from_issue(make_issue("PROJ-1", timetracking={})) == 0


class TestTShirtSize:
    """Tests for T-shirt size parsing and lookup."""

    def test_parses_aliases(self):
        assert parse_tshirt_size(" small ") is TShirtSize.S
        assert parse_tshirt_size("Medium") is TShirtSize.M
        assert parse_tshirt_size({"value": "l"}) is TShirtSize.L
        assert parse_tshirt_size("XL") is TShirtSize.XL

    def test_unknown_is_unresolved(self):
        assert isinstance(parse_tshirt_size("huge"), Unresolved)
        assert isinstance(parse_tshirt_size(5), Unresolved)

    def test_scans_custom_fields_in_order(self):
        epic = make_epic("EPIC-1", customfield_10011="Epic name", customfield_10050={"value": "M"},
                         customfield_10060="L")
        assert get_tshirt_size_from_jira(epic) is TShirtSize.M

    def test_ignores_non_custom_fields(self):
        epic = make_epic("EPIC-1", summary="S")
        assert get_tshirt_size_from_jira(epic) is None

    def test_returns_none_when_absent(self):
        assert get_tshirt_size_from_jira(make_epic("EPIC-1")) is None

    def test_mapping_restricts_fields(self):
        epic = make_epic("EPIC-1", customfield_10050="S", customfield_10060="L")
        mapping = FieldMapping(tshirt_size=("customfield_10060",))
        assert get_tshirt_size_from_jira(epic, mapping) is TShirtSize.L


class TestParseJiraDate:
    """Tests for parse_jira_date."""

    def test_parses_iso_date(self):
        assert parse_jira_date("2026-03-15") == date(2026, 3, 15)

    def test_parses_timestamp(self):
        assert parse_jira_date("2026-01-01T10:00:00.000+0000") == date(2026, 1, 1)

    def test_returns_none_for_empty(self):
        assert parse_jira_date(None) is None
        assert parse_jira_date("") is None

    def test_returns_none_for_invalid(self):
        assert parse_jira_date("not-a-date") is None
