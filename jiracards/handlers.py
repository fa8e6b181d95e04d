"""Connector request handling: header parsing, auth, and the four operations.

The public ``request_cards``/``test_auth``/``add_comment``/``add_watcher`` methods
take raw headers and always return a ``ConnectorResponse``. The service methods
(``cards_for``, ``probe``, ``comment``, ``watch``) take ready ``Credentials`` and
raise ``ConnectorError``; the CLI calls those directly.
"""

import logging
import re
from collections.abc import Mapping
from functools import partial
from typing import Any

import httpx
from pydantic import ValidationError

from jiracards.aggregator import CardAggregator
from jiracards.auth import ConnectorAuthenticator
from jiracards.cards import build_card, resolve_language
from jiracards.errors import CallRole, ConnectorError, InvalidRequest, MissingBackendCredential, translate_backend_error
from jiracards.extractor import dedupe, extract_identifiers
from jiracards.models import BackendError, Card, CardRequest, ConnectorResponse, Credentials
from jiracards.providers.base import BackendClient
from jiracards.settings import ConnectorSettings

logger = logging.getLogger(__name__)

CONNECTOR_AUTH_HEADER = "authorization"
JIRA_AUTH_HEADER = "x-jira-authorization"
JIRA_BASE_URL_HEADER = "x-jira-base-url"
ROUTING_PREFIX_HEADER = "x-routing-prefix"
ACCEPT_LANGUAGE_HEADER = "accept-language"

ISSUE_TOKEN = "issue_id"

# Action targets: a numeric issue id or an issue key
ACTION_ISSUE_ID_RE = re.compile(r"[0-9]+|[A-Za-z][A-Za-z0-9_]*-[0-9]+")


def credentials_from_headers(headers: Mapping[str, str]) -> Credentials:
    """Build Credentials; a missing token header is reported before a missing base URL."""
    h = httpx.Headers(headers)
    authorization = (h.get(JIRA_AUTH_HEADER) or "").strip()
    base_url = (h.get(JIRA_BASE_URL_HEADER) or "").strip()
    if not authorization:
        raise MissingBackendCredential(JIRA_AUTH_HEADER)
    if not base_url:
        raise MissingBackendCredential(JIRA_BASE_URL_HEADER)
    return Credentials(base_url=base_url, authorization=authorization)


def _check_action_target(issue_id: str) -> None:
    if not ACTION_ISSUE_ID_RE.fullmatch(issue_id or ""):
        raise InvalidRequest(f"Invalid issue id '{issue_id}'")


class CardConnector:
    def __init__(
        self,
        settings: ConnectorSettings,
        client: BackendClient,
        authenticator: ConnectorAuthenticator | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._aggregator = CardAggregator(client, settings.concurrency_limit)
        self._auth = authenticator

    @property
    def authenticator(self) -> ConnectorAuthenticator:
        # built on first request-handler use; the service methods never need it
        if self._auth is None:
            self._auth = ConnectorAuthenticator.from_settings(self._settings)
        return self._auth

    # ------------------------------------------------------------------
    # Service operations
    # ------------------------------------------------------------------

    def identifiers_for(self, request: CardRequest) -> list[str]:
        tokens = (request.tokens or {}).get(ISSUE_TOKEN, [])
        extracted = extract_identifiers(request.text, self._settings.issue_pattern)
        return dedupe([t.strip() for t in tokens if t and t.strip()] + extracted)

    async def cards_for(
        self,
        identifiers: list[str],
        credentials: Credentials,
        *,
        language: str | None = None,
        routing_prefix: str = "",
    ) -> list[Card]:
        render = partial(
            build_card,
            base_url=credentials.base_url,
            routing_prefix=routing_prefix,
            language=resolve_language(language, self._settings.default_language),
        )
        result = await self._aggregator.aggregate(identifiers, credentials, render)
        if result.error is not None:
            raise translate_backend_error(result.error, CallRole.FETCH)
        return result.cards

    async def probe(self, credentials: Credentials) -> None:
        outcome = await self._client.probe_auth(credentials)
        if isinstance(outcome, BackendError):
            raise translate_backend_error(outcome, CallRole.AUTH_PROBE)

    async def comment(self, issue_id: str, credentials: Credentials, body: str | None) -> int:
        _check_action_target(issue_id)
        if not body or not body.strip():
            raise InvalidRequest("Comment body is required")
        outcome = await self._client.post_comment(issue_id, credentials, body)
        if isinstance(outcome, BackendError):
            raise translate_backend_error(outcome, CallRole.ACTION)
        return outcome.status_code

    async def watch(self, issue_id: str, credentials: Credentials) -> int:
        _check_action_target(issue_id)
        principal = await self._client.get_current_principal(credentials)
        if isinstance(principal, BackendError):
            raise translate_backend_error(principal, CallRole.ACTION)
        outcome = await self._client.add_watcher(issue_id, credentials, principal.name)
        if isinstance(outcome, BackendError):
            raise translate_backend_error(outcome, CallRole.ACTION)
        return outcome.status_code

    # ------------------------------------------------------------------
    # Request handlers
    # ------------------------------------------------------------------

    async def request_cards(self, headers: Mapping[str, str], body: Any) -> ConnectorResponse:
        try:
            credentials = self._authorize(headers)
            try:
                request = CardRequest.model_validate(body if body is not None else {})
            except ValidationError as exc:
                raise InvalidRequest(f"Invalid card request: {exc.errors()[0]['msg']}") from None
            h = httpx.Headers(headers)
            cards = await self.cards_for(
                self.identifiers_for(request),
                credentials,
                language=h.get(ACCEPT_LANGUAGE_HEADER),
                routing_prefix=h.get(ROUTING_PREFIX_HEADER, ""),
            )
        except ConnectorError as exc:
            return self._error_response(exc)
        return ConnectorResponse(status_code=200, body={"cards": [c.model_dump(mode="json") for c in cards]})

    async def test_auth(self, headers: Mapping[str, str]) -> ConnectorResponse:
        try:
            await self.probe(self._authorize(headers))
        except ConnectorError as exc:
            return self._error_response(exc)
        return ConnectorResponse(status_code=204)

    async def add_comment(self, headers: Mapping[str, str], issue_id: str, body: str | None) -> ConnectorResponse:
        try:
            status = await self.comment(issue_id, self._authorize(headers), body)
        except ConnectorError as exc:
            return self._error_response(exc)
        return ConnectorResponse(status_code=status)

    async def add_watcher(self, headers: Mapping[str, str], issue_id: str) -> ConnectorResponse:
        try:
            status = await self.watch(issue_id, self._authorize(headers))
        except ConnectorError as exc:
            return self._error_response(exc)
        return ConnectorResponse(status_code=status)

    def _authorize(self, headers: Mapping[str, str]) -> Credentials:
        """Connector token first, then backend headers; no backend call happens before both pass."""
        self.authenticator.verify(httpx.Headers(headers).get(CONNECTOR_AUTH_HEADER))
        return credentials_from_headers(headers)

    @staticmethod
    def _error_response(exc: ConnectorError) -> ConnectorResponse:
        if exc.status_code >= 500:
            logger.warning("%s: %s", type(exc).__name__, exc)
        return exc.to_response()
