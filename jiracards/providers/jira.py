"""Jira REST API v2 provider."""

import logging
from types import TracebackType
from urllib.parse import quote

import httpx

from jiracards.models import (
    BackendError,
    BackendOk,
    Credentials,
    FetchOutcome,
    FetchSuccess,
    IssueComment,
    JiraIssue,
    NotFound,
    Principal,
)
from jiracards.providers.base import BackendClient
from jiracards.settings import ConnectorSettings

logger = logging.getLogger(__name__)

USER_AGENT = "jiracards/0.1"


def build_async_client(settings: ConnectorSettings) -> httpx.AsyncClient:
    """One pooled client per process; base URL and auth vary per call."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout),
        limits=httpx.Limits(max_connections=settings.max_connections),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
    )


# Raised while reading a 2xx body that is not the JSON shape Jira documents,
# e.g. an SSO login page served in place of the API.
UNREADABLE_PAYLOAD = (ValueError, KeyError, TypeError, AttributeError)


def _segment(value: str) -> str:
    """Percent-encode a caller-supplied value as exactly one path segment."""
    return quote(value, safe="")


def _json_object(response: httpx.Response) -> dict:
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _name(node: dict | None) -> str | None:
    if not node:
        return None
    return node.get("displayName") or node.get("name")


def issue_from_node(node: dict) -> JiraIssue:
    fields = node.get("fields") or {}
    raw_comments = (fields.get("comment") or {}).get("comments", [])
    comments = [
        IssueComment(author=_name(c.get("author")) or "", body=c.get("body") or "")
        for c in raw_comments
        if c.get("body")
    ]
    return JiraIssue(
        id=str(node["id"]),
        key=node["key"],
        summary=fields.get("summary") or "",
        status=(fields.get("status") or {}).get("name", ""),
        description=fields.get("description"),
        assignee=_name(fields.get("assignee")),
        reporter=_name(fields.get("reporter")),
        project=(fields.get("project") or {}).get("name"),
        components=[c["name"] for c in fields.get("components", []) if c.get("name")],
        comments=comments,
        updated=fields.get("updated"),
    )


class JiraProvider(BackendClient):
    def __init__(self, settings: ConnectorSettings, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or build_async_client(settings)

    async def __aenter__(self) -> "JiraProvider":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        credentials: Credentials,
        path: str,
        json: object = None,
        identifier: str | None = None,
    ) -> httpx.Response | BackendError:
        url = credentials.api_root + path
        try:
            return await self._client.request(
                method,
                url,
                json=json,
                headers={"Authorization": credentials.authorization_header()},
            )
        except httpx.TimeoutException:
            logger.warning("Jira %s %s timed out", method, url)
            return BackendError(status_code=504, identifier=identifier, timed_out=True)
        except httpx.TransportError as exc:
            logger.warning("Jira %s %s failed: %s", method, url, exc)
            return BackendError(status_code=502, identifier=identifier)

    async def fetch_entity(self, identifier: str, credentials: Credentials) -> FetchOutcome:
        response = await self._send("GET", credentials, f"/issue/{_segment(identifier)}", identifier=identifier)
        if isinstance(response, BackendError):
            return response
        if response.status_code == 404:
            return NotFound(identifier=identifier)
        if response.is_error:
            return BackendError(status_code=response.status_code, identifier=identifier)
        try:
            issue = issue_from_node(_json_object(response))
        except UNREADABLE_PAYLOAD as exc:
            logger.warning("Unreadable Jira issue payload for %s: %s", identifier, exc)
            return BackendError(status_code=502, identifier=identifier)
        return FetchSuccess(identifier=identifier, issue=issue)

    async def probe_auth(self, credentials: Credentials) -> BackendOk | BackendError:
        return self._result(await self._send("HEAD", credentials, "/myself"))

    async def post_comment(self, issue_id: str, credentials: Credentials, body: str) -> BackendOk | BackendError:
        response = await self._send(
            "POST", credentials, f"/issue/{_segment(issue_id)}/comment", json={"body": body}, identifier=issue_id
        )
        return self._result(response)

    async def add_watcher(self, issue_id: str, credentials: Credentials, principal: str) -> BackendOk | BackendError:
        # Jira takes the bare username as a JSON string body
        response = await self._send(
            "POST", credentials, f"/issue/{_segment(issue_id)}/watchers", json=principal, identifier=issue_id
        )
        return self._result(response)

    async def get_current_principal(self, credentials: Credentials) -> Principal | BackendError:
        response = await self._send("GET", credentials, "/myself")
        if isinstance(response, BackendError):
            return response
        if response.is_error:
            return BackendError(status_code=response.status_code)
        try:
            data = _json_object(response)
            # Jira Server exposes "name"; Cloud only has "accountId"
            return Principal(name=data.get("name") or data["accountId"])
        except UNREADABLE_PAYLOAD as exc:
            logger.warning("Unreadable Jira /myself payload: %s", exc)
            return BackendError(status_code=502)

    @staticmethod
    def _result(response: httpx.Response | BackendError) -> BackendOk | BackendError:
        if isinstance(response, BackendError):
            return response
        if response.is_error:
            return BackendError(status_code=response.status_code)
        return BackendOk(status_code=response.status_code)
