"""Exception hierarchy for Phase Roadmap."""


class RoadmapError(Exception):
    """Base exception for roadmap errors."""

    pass


class ConfigNotFoundError(RoadmapError):
    """Configuration file not found."""

    pass


class InvalidConfigError(RoadmapError):
    """Configuration is invalid."""

    pass


class JiraAuthError(RoadmapError):
    """JIRA authentication failed."""

    pass


class JiraConnectionError(RoadmapError):
    """Cannot connect to JIRA server."""

    pass


class JiraRateLimitError(RoadmapError):
    """JIRA rate limit exceeded."""

    pass


class ProxyError(RoadmapError):
    """Upstream request could not be relayed."""

    pass


class StoryNotFoundError(RoadmapError):
    """No story with the given id exists on the timeline."""

    pass


class EpicNotFoundError(RoadmapError):
    """No epic with the given id exists on the timeline."""

    pass
