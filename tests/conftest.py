"""Shared test fixtures."""

import asyncio

import pytest

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

BASE_URL = "https://jira.acme.com"


def issue_node(key: str, issue_id: str, summary: str = "Fix the flux capacitor") -> dict:
    """A trimmed Jira REST v2 issue payload."""
    return {
        "id": issue_id,
        "key": key,
        "self": f"{BASE_URL}/rest/api/2/issue/{issue_id}",
        "fields": {
            "summary": summary,
            "description": "It leaks when it rains.",
            "status": {"name": "In Progress"},
            "assignee": {"name": "harshas", "displayName": "Harsha S"},
            "reporter": {"name": "rob", "displayName": "Rob W"},
            "project": {"key": key.split("-")[0], "name": "Apollo Flight"},
            "components": [{"name": "Engine"}, {"name": "Docs"}],
            "comment": {
                "comments": [
                    {"author": {"displayName": "Rob W"}, "body": "first"},
                    {"author": {"displayName": "Harsha S"}, "body": "second"},
                    {"author": {"displayName": "Rob W"}, "body": "third"},
                ]
            },
            "updated": "2017-01-03T10:00:00.000+0000",
        },
    }


def make_issue(key: str = "APF-27", issue_id: str = "10027", **overrides) -> JiraIssue:
    values = {
        "id": issue_id,
        "key": key,
        "summary": "Fix the flux capacitor",
        "status": "In Progress",
        "description": "It leaks when it rains.",
        "assignee": "Harsha S",
        "reporter": "Rob W",
        "project": "Apollo Flight",
        "components": ["Engine", "Docs"],
        "comments": [IssueComment(author="Rob W", body="first"), IssueComment(author="Harsha S", body="second")],
        "updated": "2017-01-03T10:00:00.000+0000",
    }
    values.update(overrides)
    return JiraIssue(**values)


class FakeBackend(BackendClient):
    """Scripted backend: per-key outcome and optional delay, with in-flight tracking."""

    def __init__(
        self,
        outcomes: dict[str, str | int] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        # outcome spec: "ok" | "missing" | HTTP status int
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.comments: list[tuple[str, str]] = []
        self.watchers: list[tuple[str, str]] = []
        self.probe_status: int | None = None
        self.principal_status: int | None = None

    async def __aenter__(self) -> "FakeBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def fetch_entity(self, identifier: str, credentials: Credentials) -> FetchOutcome:
        self.calls.append(identifier)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(identifier, 0))
        finally:
            self.in_flight -= 1
        spec = self.outcomes.get(identifier, "ok")
        if spec == "ok":
            return FetchSuccess(identifier=identifier, issue=make_issue(key=identifier))
        if spec == "missing":
            return NotFound(identifier=identifier)
        return BackendError(status_code=int(spec), identifier=identifier, timed_out=spec == 504)

    async def probe_auth(self, credentials: Credentials) -> BackendOk | BackendError:
        if self.probe_status:
            return BackendError(status_code=self.probe_status)
        return BackendOk(status_code=200)

    async def post_comment(self, issue_id: str, credentials: Credentials, body: str) -> BackendOk | BackendError:
        self.comments.append((issue_id, body))
        return BackendOk(status_code=201)

    async def add_watcher(self, issue_id: str, credentials: Credentials, principal: str) -> BackendOk | BackendError:
        self.watchers.append((issue_id, principal))
        return BackendOk(status_code=204)

    async def get_current_principal(self, credentials: Credentials) -> Principal | BackendError:
        if self.principal_status:
            return BackendError(status_code=self.principal_status)
        return Principal(name="harshas")


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(base_url=BASE_URL, authorization="Bearer abc")


@pytest.fixture
def jira_issue() -> JiraIssue:
    return make_issue()
