"""Relay of browser-described requests to Jira.

The browser cannot call Jira directly (CORS, Cloudflare Access), so it
posts a JSON description of the request here and receives a normalized
``{ok, status, data}`` envelope back.
"""

import json
import logging
import os
import re
from dataclasses import dataclass

import requests

from phase_roadmap.config import CF_ENV_VARS
from phase_roadmap.exceptions import ProxyError

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 500
REQUEST_TIMEOUT = 30

HTML_RESPONSE_ERROR = (
    "Jira returned HTML instead of JSON. This usually means authentication "
    "failed or the endpoint is incorrect."
)


@dataclass
class ProxyRequest:
    """An outbound request as described by the browser."""

    url: str
    method: str = "GET"
    body: object = None
    auth: str | None = None
    cf_access_client_id: str | None = None
    cf_access_client_secret: str | None = None
    cf_access_token: str | None = None

    @classmethod
    def from_dict(cls, data: dict, use_env: bool = True) -> "ProxyRequest":
        """Build from the JSON body, falling back to env CF Access credentials."""
        if not data.get("url"):
            raise ValueError("url is required")

        credentials = {
            "cf_access_token": data.get("cfAccessToken"),
            "cf_access_client_id": data.get("cfAccessClientId"),
            "cf_access_client_secret": data.get("cfAccessClientSecret"),
        }
        if use_env:
            credentials = {
                attr: value or os.environ.get(CF_ENV_VARS[attr]) or None
                for attr, value in credentials.items()
            }

        return cls(
            url=data["url"],
            method=(data.get("method") or "GET").upper(),
            body=data.get("body"),
            auth=data.get("auth"),
            **credentials,
        )


@dataclass
class ProxyResult:
    ok: bool
    status: int
    data: object

    def to_dict(self) -> dict:
        return {"ok": self.ok, "status": self.status, "data": self.data}


def build_outbound_headers(request: ProxyRequest, content_type: bool = True) -> dict[str, str]:
    """Build upstream headers.

    Cloudflare Access credentials replace basic auth: a CF token is
    preferred, then a service token pair, then the Authorization header.
    """
    headers = {"Accept": "application/json"}
    if content_type:
        headers["Content-Type"] = "application/json"

    if request.cf_access_token:
        headers["CF-Access-Token"] = request.cf_access_token
    elif request.cf_access_client_id and request.cf_access_client_secret:
        headers["CF-Access-Client-Id"] = request.cf_access_client_id
        headers["CF-Access-Client-Secret"] = request.cf_access_client_secret
    elif request.auth:
        headers["Authorization"] = request.auth

    return headers


def _encode_body(request: ProxyRequest) -> str | None:
    if request.body is None or request.method == "GET":
        return None
    if isinstance(request.body, str):
        return request.body
    return json.dumps(request.body)


def parse_upstream_response(response: requests.Response) -> ProxyResult:
    """Normalize an upstream response into a ProxyResult.

    Anything that is not JSON is reported as an error payload with a
    preview of the body, since Jira answers bad credentials with an HTML
    login page rather than a 401.
    """
    content_type = response.headers.get("Content-Type", "")
    text = response.text

    if "application/json" in content_type:
        try:
            data = json.loads(text) if text else {}
        except ValueError as e:
            raise ProxyError(f"Jira returned malformed JSON: {e}") from e
    else:
        logger.warning(
            "Received non-JSON response (%s) with status %s", content_type or "no content type", response.status_code
        )
        data = {
            "error": HTML_RESPONSE_ERROR,
            "statusCode": response.status_code,
            "preview": text[:PREVIEW_LENGTH],
        }

    if not response.ok:
        logger.error("Jira API error %s: %s", response.status_code, data)

    return ProxyResult(ok=response.ok, status=response.status_code, data=data)


def relay(request: ProxyRequest, session: requests.Session | None = None) -> ProxyResult:
    """Forward a request to Jira and normalize the answer.

    Raises:
        ProxyError: If the upstream cannot be reached
    """
    session = session or requests.Session()
    logger.info("Proxy %s %s", request.method, request.url)

    try:
        response = session.request(
            request.method,
            request.url,
            headers=build_outbound_headers(request),
            data=_encode_body(request),
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        logger.error("Error relaying request to %s: %s", request.url, e)
        raise ProxyError(f"Failed to reach Jira: {e}") from e

    return parse_upstream_response(response)


def _no_content_result(response: requests.Response) -> ProxyResult:
    """Jira answers successful updates and deletes with 204 No Content."""
    if response.status_code == 204:
        return ProxyResult(ok=response.ok, status=204, data={"success": True})
    return parse_upstream_response(response)


def _issue_url(base_url: str, issue_key: str | None = None) -> str:
    url = f"{base_url.rstrip('/')}/rest/api/3/issue"
    return f"{url}/{issue_key}" if issue_key else url


def _send(session, method: str, url: str, **kwargs) -> requests.Response:
    try:
        return session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.exceptions.RequestException as e:
        logger.error("Error sending %s %s: %s", method, url, e)
        raise ProxyError(f"Failed to reach Jira: {e}") from e


def create_issue(
    base_url: str,
    credentials: ProxyRequest,
    issue_data: dict,
    session: requests.Session | None = None,
) -> ProxyResult:
    """Create an issue via ``POST {base_url}/rest/api/3/issue``."""
    session = session or requests.Session()
    url = _issue_url(base_url)
    logger.info("Creating Jira issue at %s", url)
    response = _send(
        session, "POST", url,
        headers=build_outbound_headers(credentials),
        data=json.dumps(issue_data),
    )
    return parse_upstream_response(response)


def update_issue(
    base_url: str,
    issue_key: str,
    credentials: ProxyRequest,
    update_data: dict,
    session: requests.Session | None = None,
) -> ProxyResult:
    session = session or requests.Session()
    logger.info("Updating Jira issue %s", issue_key)
    response = _send(
        session, "PUT", _issue_url(base_url, issue_key),
        headers=build_outbound_headers(credentials),
        data=json.dumps(update_data),
    )
    return _no_content_result(response)


def delete_issue(
    base_url: str,
    issue_key: str,
    credentials: ProxyRequest,
    session: requests.Session | None = None,
) -> ProxyResult:
    session = session or requests.Session()
    logger.info("Deleting Jira issue %s", issue_key)
    response = _send(
        session, "DELETE", _issue_url(base_url, issue_key),
        headers=build_outbound_headers(credentials, content_type=False),
    )
    return _no_content_result(response)


def normalize_domain(domain: str) -> str:
    """Strip scheme and trailing slash from a Jira domain."""
    return re.sub(r"^https?://", "", domain.rstrip("/"))


def api_base_url(domain: str) -> str:
    """REST base URL: API v3 on Atlassian Cloud, v2 on self-hosted Jira."""
    clean = normalize_domain(domain)
    version = "3" if "atlassian.net" in clean else "2"
    return f"https://{clean}/rest/api/{version}"


def fetch_toolkit_phases(url: str, session: requests.Session | None = None) -> object:
    """Fetch the static toolkit phase catalogue.

    Raises:
        ProxyError: If the catalogue cannot be fetched
    """
    session = session or requests.Session()
    try:
        response = session.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        raise ProxyError(f"Toolkit API request failed: {e}") from e
    except ValueError as e:
        raise ProxyError(f"Toolkit API returned invalid JSON: {e}") from e
