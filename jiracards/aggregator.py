"""Fan-out of issue lookups and merge into an ordered card list.

One backend call per identifier, at most ``concurrency_limit`` in flight for a
request. Results land in a list indexed by the identifier's position, so card
order is discovery order no matter which lookup finishes first.

Outcome policy:

- ``FetchSuccess``  → card
- ``NotFound``      → dropped (missing, or caller cannot see it)
- ``BackendError``  → 401 and 5xx-class (timeouts included) fail the whole
  request with the first such error in identifier order; other 4xx are
  dropped like NotFound.

After a failing outcome, lookups still waiting for a slot skip their backend
call. Lookups already in flight are left to finish and their results ignored.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable

from jiracards.extractor import dedupe
from jiracards.models import AggregateResult, BackendError, Card, Credentials, FetchOutcome, FetchSuccess, JiraIssue
from jiracards.providers.base import BackendClient

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 8

CardRenderer = Callable[[JiraIssue], Card]


class CardAggregator:
    def __init__(self, client: BackendClient, concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self._client = client
        self._concurrency_limit = concurrency_limit

    async def aggregate(
        self,
        identifiers: Iterable[str],
        credentials: Credentials,
        render: CardRenderer,
    ) -> AggregateResult:
        keys = dedupe(identifiers)
        if not keys:
            return AggregateResult()

        outcomes = await self._fetch_all(keys, credentials)

        error = next((o for o in outcomes if isinstance(o, BackendError) and o.aborts_aggregation), None)
        if error is not None:
            logger.info("Card request failed on %s with backend status %s", error.identifier, error.status_code)
            return AggregateResult(error=error)

        cards: list[Card] = []
        for key, outcome in zip(keys, outcomes):
            match outcome:
                case FetchSuccess(issue=issue):
                    cards.append(render(issue))
                case BackendError(status_code=status):
                    logger.info("Dropping %s: backend status %s", key, status)
                case _:
                    logger.debug("Dropping %s: not found", key)
        return AggregateResult(cards=cards)

    async def _fetch_all(self, keys: list[str], credentials: Credentials) -> list[FetchOutcome | None]:
        # Per request: the shared connection pool caps the process, this caps one fan-out.
        sem = asyncio.Semaphore(self._concurrency_limit)
        failed = asyncio.Event()
        outcomes: list[FetchOutcome | None] = [None] * len(keys)

        async def fetch_one(index: int, key: str) -> None:
            async with sem:
                if failed.is_set():
                    return
                try:
                    outcome = await self._client.fetch_entity(key, credentials)
                except Exception:
                    # clients report failures as outcomes; anything raised is a client bug
                    logger.exception("Lookup of %s raised", key)
                    outcome = BackendError(status_code=502, identifier=key)
            outcomes[index] = outcome
            if isinstance(outcome, BackendError) and outcome.aborts_aggregation:
                failed.set()

        await asyncio.gather(*(fetch_one(i, key) for i, key in enumerate(keys)))
        return outcomes
