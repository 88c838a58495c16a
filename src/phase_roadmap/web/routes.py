"""HTTP route handlers for the Phase Roadmap backend."""

from datetime import date, timedelta

from flask import Blueprint, current_app, jsonify, request

from phase_roadmap.config import (
    DEFAULT_TOOLKIT_URL,
    Config,
    JiraConnection,
    config_exists,
    load_config,
)
from phase_roadmap.edits import TimelineEditor
from phase_roadmap.exceptions import (
    ConfigNotFoundError,
    EpicNotFoundError,
    InvalidConfigError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    ProxyError,
    RoadmapError,
    StoryNotFoundError,
)
from phase_roadmap.jira_client import JiraClient
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
    recommended_tools_for,
)
from phase_roadmap.proxy import (
    ProxyRequest,
    create_issue,
    delete_issue,
    fetch_toolkit_phases,
    relay,
    update_issue,
)
from phase_roadmap.roadmap import (
    fetch_timeline,
    story_from_dict,
    timeline_from_dict,
    timeline_to_dict,
    visible_timeline,
)
from phase_roadmap.transformer import TransformOptions, current_quarter

bp = Blueprint("main", __name__)


def _proxy_error(e: Exception):
    current_app.logger.error("Proxy error: %s", e)
    return jsonify({"ok": False, "error": str(e)}), 500


def _load_saved_config() -> Config | None:
    if not config_exists():
        return None
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as e:
        raise InvalidConfigError(str(e))


def _connection_from_body(body: dict, saved: Config | None) -> JiraConnection:
    """Connection from the request body, else from the saved configuration."""
    if body.get("domain"):
        return JiraConnection(
            domain=body["domain"],
            email=body.get("email", ""),
            api_token=body.get("apiToken", ""),
            project_key=body.get("projectKey") or None,
            assignee=body.get("assignee") or None,
            cf_access_client_id=body.get("cfAccessClientId") or None,
            cf_access_client_secret=body.get("cfAccessClientSecret") or None,
            cf_access_token=body.get("cfAccessToken") or None,
        )
    if saved is None:
        raise ConfigNotFoundError(
            "No Jira connection supplied and no configuration found at "
            "~/.phase-roadmap/config.toml."
        )
    return saved.jira


def _options_from_body(body: dict, saved: Config | None) -> TransformOptions:
    workload = saved.workload if saved else WorkloadConfig()
    overrides = body.get("config") or {}
    options = TransformOptions(
        story_point_to_hours=overrides.get("storyPointToHours", workload.story_point_to_hours),
        working_hours_per_day=overrides.get("workingHoursPerDay", workload.working_hours_per_day),
        total_available_hours=overrides.get("totalAvailableHours", workload.total_available_hours),
        quarter_start=date.fromisoformat(body["quarterStart"]) if body.get("quarterStart") else None,
        quarter_end=date.fromisoformat(body["quarterEnd"]) if body.get("quarterEnd") else None,
    )
    if saved:
        options.field_mapping = saved.fields
        options.size_thresholds = saved.sizing
    return options


@bp.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok", "config_loaded": config_exists()})


@bp.route("/api/jira-proxy", methods=["POST"])
def jira_proxy():
    """Relay a JSON-described request to Jira."""
    body = request.get_json(silent=True) or {}
    try:
        proxy_request = ProxyRequest.from_dict(body)
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    try:
        result = relay(proxy_request)
    except ProxyError as e:
        return _proxy_error(e)
    return jsonify(result.to_dict())


def _write_credentials(body: dict) -> ProxyRequest:
    # Issue writes only ever authenticated with a service token or basic auth
    return ProxyRequest(
        url=body.get("baseUrl", ""),
        auth=body.get("auth"),
        cf_access_client_id=body.get("cfAccessClientId"),
        cf_access_client_secret=body.get("cfAccessClientSecret"),
    )


@bp.route("/api/jira-proxy/issue", methods=["POST"])
def jira_create_issue():
    body = request.get_json(silent=True) or {}
    if not body.get("baseUrl"):
        return jsonify({"ok": False, "error": "baseUrl is required"}), 400
    try:
        result = create_issue(body["baseUrl"], _write_credentials(body), body.get("issueData") or {})
    except ProxyError as e:
        return _proxy_error(e)
    return jsonify(result.to_dict())


@bp.route("/api/jira-proxy/issue/<issue_key>", methods=["PUT"])
def jira_update_issue(issue_key):
    body = request.get_json(silent=True) or {}
    if not body.get("baseUrl"):
        return jsonify({"ok": False, "error": "baseUrl is required"}), 400
    try:
        result = update_issue(
            body["baseUrl"], issue_key, _write_credentials(body), body.get("updateData") or {}
        )
    except ProxyError as e:
        return _proxy_error(e)
    return jsonify(result.to_dict())


@bp.route("/api/jira-proxy/issue/<issue_key>", methods=["DELETE"])
def jira_delete_issue(issue_key):
    body = request.get_json(silent=True) or {}
    if not body.get("baseUrl"):
        return jsonify({"ok": False, "error": "baseUrl is required"}), 400
    try:
        result = delete_issue(body["baseUrl"], issue_key, _write_credentials(body))
    except ProxyError as e:
        return _proxy_error(e)
    return jsonify(result.to_dict())


@bp.route("/api/toolkit-proxy/phases")
def toolkit_phases():
    """Pass through the toolkit phase catalogue."""
    try:
        saved = _load_saved_config()
    except InvalidConfigError:
        saved = None
    url = saved.toolkit_url if saved else DEFAULT_TOOLKIT_URL

    try:
        data = fetch_toolkit_phases(url)
    except ProxyError as e:
        current_app.logger.error("Toolkit proxy error: %s", e)
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify(data)


@bp.route("/api/timeline", methods=["POST"])
def timeline():
    """Fetch epics from Jira and return the phase timeline with metrics."""
    body = request.get_json(silent=True) or {}

    try:
        saved = _load_saved_config()
        connection = _connection_from_body(body, saved)
        options = _options_from_body(body, saved)
        result = fetch_timeline(connection, options)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except (ConfigNotFoundError, InvalidConfigError) as e:
        return jsonify({"error": str(e)}), 400
    except JiraAuthError as e:
        return jsonify({"error": str(e)}), 401
    except JiraRateLimitError as e:
        return jsonify({"error": str(e)}), 429
    except JiraConnectionError as e:
        return jsonify({"error": str(e)}), 503
    except RoadmapError as e:
        return jsonify({"error": str(e)}), 500

    if not body.get("showAll"):
        result = visible_timeline(result)
    return jsonify(timeline_to_dict(result))


@bp.route("/api/timeline/metrics", methods=["POST"])
def timeline_metrics():
    """Recompute derived metrics for a timeline edited on the client."""
    body = request.get_json(silent=True) or {}
    try:
        data = timeline_from_dict(body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(timeline_to_dict(data))


@bp.route("/api/timeline/edit", methods=["POST"])
def timeline_edit():
    """Apply one edit to a posted timeline, mirroring it to Jira when a connection is given.

    Body: ``{timeline, action, epicId?, phase?, story?, storyId?, status?, connection?}``.
    """
    body = request.get_json(silent=True) or {}
    action = body.get("action")

    try:
        data = timeline_from_dict(body.get("timeline") or {})
        saved = _load_saved_config()
        client = None
        project_key = None
        if body.get("connection"):
            connection = _connection_from_body(body["connection"], None)
            client = JiraClient(connection)
            project_key = connection.project_key
        editor = TimelineEditor(
            data,
            client=client,
            project_key=project_key,
            mapping=saved.fields if saved else None,
        )

        if action == "add_story":
            editor.add_story(body["epicId"], story_from_dict(body["story"]))
        elif action == "update_story_status":
            editor.update_story_status(body["storyId"], StoryStatus(body["status"]))
        elif action == "delete_story":
            editor.delete_story(body["storyId"])
        elif action == "update_epic_status":
            editor.update_epic_status(body["epicId"], EpicStatus(body["status"]))
        elif action == "add_phase":
            editor.add_phase(body["epicId"], PhaseType(body["phase"]))
        elif action == "delete_phase":
            editor.delete_phase(body["epicId"], PhaseType(body["phase"]))
        else:
            return jsonify({"error": f"Unknown action: {action!r}"}), 400
    except KeyError as e:
        return jsonify({"error": f"Missing field: {e}"}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except (StoryNotFoundError, EpicNotFoundError) as e:
        return jsonify({"error": str(e)}), 404
    except (ConfigNotFoundError, InvalidConfigError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(timeline_to_dict(editor.timeline))


def _demo_phase(phase_type: PhaseType, stories: list[tuple]) -> Phase:
    return Phase(
        type=phase_type,
        stories=tuple(
            Story(id=sid, summary=summary, story_points=points, status=status,
                  time_spent=spent, phase=phase_type)
            for sid, summary, points, status, spent in stories
        ),
        color=PHASE_COLORS[phase_type],
        recommended_tools=recommended_tools_for(phase_type),
    )


def demo_timeline(today: date | None = None) -> TimelineData:
    """Built-in demo data relative to today (no JIRA credentials needed)."""
    today = today or date.today()

    def d(offset_days):
        return today + timedelta(days=offset_days)

    done, progress, backlog, review, blocked = (
        StoryStatus.DONE, StoryStatus.IN_PROGRESS, StoryStatus.BACKLOG,
        StoryStatus.IN_REVIEW, StoryStatus.BLOCKED,
    )

    epics = (
        Epic(
            id="DEMO-1", name="Customer Portal Redesign", size=TShirtSize.L,
            status=EpicStatus.IN_PROGRESS, start_date=d(-30), deadline=d(45),
            phases=(
                _demo_phase(PhaseType.DISCOVERY, [
                    ("STORY-1", "User research interviews", 5, done, 40),
                    ("STORY-2", "Competitor analysis", 3, done, 24),
                    ("STORY-3", "Define user personas", 2, progress, 8),
                ]),
                _demo_phase(PhaseType.ITERATION, [
                    ("STORY-4", "Wireframes for dashboard", 5, progress, 16),
                    ("STORY-5", "High-fidelity mockups", 8, backlog, 0),
                ]),
                _demo_phase(PhaseType.TESTING, [
                    ("STORY-6", "Usability testing sessions", 5, backlog, 0),
                ]),
                _demo_phase(PhaseType.IMPLEMENT, [
                    ("STORY-7", "Frontend implementation", 13, backlog, 0),
                ]),
            ),
        ),
        Epic(
            id="DEMO-2", name="Mobile Onboarding Flow", size=TShirtSize.M,
            status=EpicStatus.IN_REVIEW, start_date=d(-14), deadline=d(20),
            phases=(
                _demo_phase(PhaseType.ITERATION, [
                    ("STORY-8", "Onboarding screen designs", 5, review, 30),
                ]),
                _demo_phase(PhaseType.TESTING, [
                    ("STORY-9", "QA on supported devices", 3, blocked, 4),
                ]),
            ),
        ),
        Epic(
            id="DEMO-3", name="Design System Audit", size=TShirtSize.S,
            status=EpicStatus.COMMITTED, start_date=d(7),
            phases=(
                _demo_phase(PhaseType.DISCOVERY, [
                    ("STORY-10", "Inventory existing components", 3, backlog, 0),
                ]),
            ),
        ),
    )

    quarter_start, quarter_end = current_quarter(today)
    return TimelineData(
        epics=epics,
        config=WorkloadConfig(),
        quarter_start=quarter_start,
        quarter_end=quarter_end,
    )


@bp.route("/api/timeline/demo")
def timeline_demo():
    """Return the demo timeline with metrics."""
    return jsonify(timeline_to_dict(demo_timeline()))
