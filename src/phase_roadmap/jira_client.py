"""JIRA API client with retry logic."""

import logging

import requests
from jira import JIRA, JIRAError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from phase_roadmap.config import JiraConnection
from phase_roadmap.models import StoryStatus, WorkloadData

logger = logging.getLogger(__name__)

EPIC_LIMIT = 20
ISSUE_LIMIT = 50

# Jira transition names that lead to each dashboard status, matched as substrings.
STATUS_TRANSITION_NAMES: dict[StoryStatus, list[str]] = {
    StoryStatus.BACKLOG: ["To Do", "Backlog", "Open"],
    StoryStatus.IN_PROGRESS: ["In Progress", "Start Progress"],
    StoryStatus.BLOCKED: ["Blocked", "Block"],
    StoryStatus.IN_REVIEW: ["In Review", "Code Review", "Review"],
    StoryStatus.DONE: ["Done", "Close", "Closed", "Resolve", "Resolved"],
}


class RateLimitError(Exception):
    """Raised when JIRA API rate limit is hit."""

    pass


class AuthenticationError(Exception):
    """Raised when JIRA authentication fails."""

    pass


class ConnectionError(Exception):
    """Raised when JIRA server cannot be reached."""

    pass


def cf_access_headers(connection: JiraConnection) -> dict[str, str]:
    """Cloudflare Access headers: the JWT token wins over a service token."""
    if connection.cf_access_token:
        return {"CF-Access-Token": connection.cf_access_token}
    if connection.cf_access_client_id and connection.cf_access_client_secret:
        return {
            "CF-Access-Client-Id": connection.cf_access_client_id,
            "CF-Access-Client-Secret": connection.cf_access_client_secret,
        }
    return {}


def is_cloud_instance(domain: str) -> bool:
    return "atlassian.net" in domain


def _raise_for_jira_error(e: JIRAError) -> None:
    if e.status_code == 429:
        raise RateLimitError(
            "Rate limited by JIRA. Retrying with exponential backoff..."
        ) from e
    if e.status_code == 401:
        raise AuthenticationError(
            "Authentication failed. Check your email and API token."
        ) from e


class JiraClient:
    """Client for reading epics and stories from JIRA and writing changes back."""

    def __init__(self, connection: JiraConnection) -> None:
        """Initialize JIRA client with connection settings."""
        self.connection = connection.with_env_fallback()
        self.is_cloud = is_cloud_instance(self.connection.domain)
        self._client: JIRA | None = None

    def _get_client(self) -> JIRA:
        """Get or create JIRA client instance."""
        if self._client is None:
            headers = cf_access_headers(self.connection)
            options = {
                "rest_api_version": "3" if self.is_cloud else "2",
                "headers": {
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    **headers,
                },
            }
            # Basic auth is only sent when Cloudflare Access is not in front of Jira
            basic_auth = None
            if not headers:
                basic_auth = (self.connection.email, self.connection.api_token)

            try:
                self._client = JIRA(
                    server=self.connection.base_url,
                    basic_auth=basic_auth,
                    options=options,
                    timeout=15,
                )
            except JIRAError as e:
                if e.status_code == 401:
                    raise AuthenticationError(
                        "Authentication failed. Check your email and API token."
                    ) from e
                raise
            except Exception as e:
                error_msg = str(e).lower()
                if "connection" in error_msg or "resolve" in error_msg or "timeout" in error_msg:
                    raise ConnectionError(
                        f"Cannot connect to JIRA server at {self.connection.base_url}. "
                        "Check the URL and your network connection."
                    ) from e
                raise
        return self._client

    def test_connection(self) -> bool:
        """Return True when the credentials can read the current user.

        Raises:
            ConnectionError: If the server cannot be reached
            RateLimitError: If rate limited
            AuthenticationError: If the client cannot be created with these credentials
        """
        client = self._get_client()
        try:
            client.myself()
        except JIRAError as e:
            if e.status_code == 429:
                _raise_for_jira_error(e)
            logger.warning("Jira connection test failed with status %s", e.status_code)
            return False
        except requests.exceptions.RequestException as e:
            raise ConnectionError(
                f"Cannot connect to JIRA server at {self.connection.base_url}. "
                "Check the URL and your network connection."
            ) from e
        return True

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        reraise=True,
    )
    def search_issues(self, jql: str, max_results: int = ISSUE_LIMIT) -> list[dict]:
        """Search for issues with all fields.

        Raises:
            RateLimitError: If rate limited (will be retried)
            AuthenticationError: If authentication fails
            ValueError: If the JQL is rejected
        """
        client = self._get_client()
        logger.debug("Searching Jira with JQL: %s", jql)

        try:
            if self.is_cloud:
                result = client.enhanced_search_issues(jql, maxResults=max_results, fields="*all")
            else:
                result = client.search_issues(jql, maxResults=max_results, fields="*all")
        except JIRAError as e:
            _raise_for_jira_error(e)
            if e.status_code == 400:
                raise ValueError(f"Invalid JQL query: {e.text}") from e
            raise

        return [self._issue_to_dict(issue) for issue in result]

    def get_epics(self, project_key: str | None = None, assignee: str | None = None) -> list[dict]:
        """Fetch the most recent epics, optionally scoped to a project and assignee."""
        jql = "issuetype = Epic"
        if project_key:
            jql += f" AND project = {project_key}"
        if assignee:
            jql += f" AND assignee = {assignee}"
        jql += " ORDER BY created DESC"
        return self.search_issues(jql, max_results=EPIC_LIMIT)

    def get_issues_by_epic(self, epic_key: str) -> list[dict]:
        """Fetch child issues of an epic, linked either way Jira supports."""
        jql = f'"Epic Link" = "{epic_key}" OR parent = "{epic_key}" ORDER BY created ASC'
        return self.search_issues(jql)

    def get_all_workload_data(
        self, project_key: str | None = None, assignee: str | None = None
    ) -> WorkloadData:
        """Fetch epics and then each epic's issues, one epic at a time.

        A failure for one epic leaves it with no issues instead of
        aborting the whole fetch.
        """
        epics = self.get_epics(project_key, assignee)
        issues_by_epic: dict[str, list[dict]] = {}

        for epic in epics:
            epic_key = epic["key"]
            try:
                issues_by_epic[epic_key] = self.get_issues_by_epic(epic_key)
            except Exception:
                logger.exception("Failed to fetch issues for epic %s", epic_key)
                issues_by_epic[epic_key] = []

        return WorkloadData(epics=epics, issues_by_epic=issues_by_epic)

    def create_issue(self, fields: dict) -> dict:
        """Create an issue and return its key and id."""
        client = self._get_client()
        try:
            issue = client.create_issue(fields=fields)
        except JIRAError as e:
            _raise_for_jira_error(e)
            raise
        logger.info("Created Jira issue %s", issue.key)
        return {"key": issue.key, "id": issue.id}

    def update_issue(self, issue_key: str, fields: dict) -> None:
        client = self._get_client()
        try:
            client.issue(issue_key, fields="summary").update(fields=fields)
        except JIRAError as e:
            _raise_for_jira_error(e)
            raise

    def get_transitions(self, issue_key: str) -> list[dict]:
        """Return the transitions available on an issue as ``{id, name}`` dicts."""
        client = self._get_client()
        try:
            transitions = client.transitions(issue_key)
        except JIRAError as e:
            _raise_for_jira_error(e)
            raise
        return [{"id": t["id"], "name": t["name"]} for t in transitions]

    def update_issue_status(self, issue_key: str, target_status: StoryStatus) -> bool:
        """Move an issue to the dashboard status through a matching transition.

        Returns False when no available transition matches.
        """
        transitions = self.get_transitions(issue_key)
        candidates = [
            name.lower()
            for name in STATUS_TRANSITION_NAMES.get(target_status, [target_status.value])
        ]

        transition = next(
            (t for t in transitions if any(c in t["name"].lower() for c in candidates)),
            None,
        )
        if transition is None:
            logger.warning(
                "No transition found for status %r on %s. Available: %s",
                target_status.value,
                issue_key,
                [t["name"] for t in transitions],
            )
            return False

        client = self._get_client()
        try:
            client.transition_issue(issue_key, transition["id"])
        except JIRAError as e:
            _raise_for_jira_error(e)
            raise
        logger.info("Transitioned %s to %s via %r", issue_key, target_status.value, transition["name"])
        return True

    def delete_issue(self, issue_key: str) -> None:
        client = self._get_client()
        try:
            client.issue(issue_key, fields="summary").delete()
        except JIRAError as e:
            _raise_for_jira_error(e)
            raise
        logger.info("Deleted Jira issue %s", issue_key)

    def _issue_to_dict(self, issue) -> dict:
        """Convert JIRA issue object to dictionary."""
        return {
            "key": issue.key,
            "fields": issue.raw.get("fields", {}),
        }
