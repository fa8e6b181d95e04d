"""Shared pydantic models: the contract between providers, the aggregator and handlers."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, SecretStr, model_validator


class Credentials(BaseModel):
    """Per-request Jira address and bearer token. Never persisted."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    authorization: SecretStr  # "Bearer abc" or a bare token

    @property
    def api_root(self) -> str:
        return self.base_url.rstrip("/") + "/rest/api/2"

    def authorization_header(self) -> str:
        value = self.authorization.get_secret_value().strip()
        if " " not in value:
            return f"Bearer {value}"
        return value


class IssueComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    author: str
    body: str


class JiraIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # numeric Jira id, used in action URLs
    key: str  # APF-27
    summary: str
    status: str
    description: str | None = None
    assignee: str | None = None
    reporter: str | None = None
    project: str | None = None
    components: list[str] = []
    comments: list[IssueComment] = []
    updated: str | None = None


# ---------------------------------------------------------------------------
# Backend call outcomes
# ---------------------------------------------------------------------------


class FetchSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["success"] = "success"
    identifier: str
    issue: JiraIssue


class NotFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["not_found"] = "not_found"
    identifier: str


class BackendError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    status_code: int
    identifier: str | None = None
    timed_out: bool = False

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_server_error(self) -> bool:
        return self.timed_out or self.status_code >= 500

    @property
    def aborts_aggregation(self) -> bool:
        """401 and 5xx-class failures end a card request; other 4xx are dropped."""
        return self.is_unauthorized or self.is_server_error


FetchOutcome = FetchSuccess | NotFound | BackendError


class BackendOk(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ok"] = "ok"
    status_code: int


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["principal"] = "principal"
    name: str


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


class CardHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    subtitle: list[str] = []


class CardBodyField(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = "GENERAL"
    title: str
    description: str


class CardBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str | None = None
    fields: list[CardBodyField] = []


class CardUserInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    min_length: int = 1


class CardAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    action_key: str  # DIRECT | USER_INPUT | OPEN_IN
    label: str
    completed_label: str | None = None
    url: str
    type: str = "POST"
    primary: bool = False
    mutually_exclusive_set_id: str | None = None
    request: dict[str, str] = {}
    user_input: list[CardUserInput] = []


class Card(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = "Jira"
    backend_id: str  # issue key
    hash: str
    header: CardHeader
    body: CardBody
    actions: list[CardAction] = []


class AggregateResult(BaseModel):
    """Terminal state of one card request: cards, or the first aborting backend error."""

    model_config = ConfigDict(frozen=True)

    cards: list[Card] = []
    error: BackendError | None = None

    @model_validator(mode="after")
    def _cards_or_error(self) -> "AggregateResult":
        if self.error is not None and self.cards:
            raise ValueError("AggregateResult holds either cards or an error, not both")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Connector surface
# ---------------------------------------------------------------------------


class CardRequest(BaseModel):
    """Inbound card-request body: pre-extracted tokens and/or free text."""

    model_config = ConfigDict(frozen=True)

    tokens: dict[str, list[str]] | None = None
    text: str | None = None

    @model_validator(mode="after")
    def _has_content(self) -> "CardRequest":
        if self.tokens is None and self.text is None:
            raise ValueError("card request needs 'tokens' or 'text'")
        return self


class ConnectorResponse(BaseModel):
    """Framework-agnostic response handed to whatever HTTP layer hosts the connector."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: dict[str, str] = {}
    body: Any = None
