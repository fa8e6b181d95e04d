"""Abstract base class for issue-tracker backends."""

from abc import ABC, abstractmethod

from jiracards.models import BackendError, BackendOk, Credentials, FetchOutcome, Principal


class BackendClient(ABC):
    @abstractmethod
    async def fetch_entity(self, identifier: str, credentials: Credentials) -> FetchOutcome: ...

    @abstractmethod
    async def probe_auth(self, credentials: Credentials) -> BackendOk | BackendError: ...

    @abstractmethod
    async def post_comment(self, issue_id: str, credentials: Credentials, body: str) -> BackendOk | BackendError: ...

    @abstractmethod
    async def add_watcher(
        self,
        issue_id: str,
        credentials: Credentials,
        principal: str,
    ) -> BackendOk | BackendError: ...

    @abstractmethod
    async def get_current_principal(self, credentials: Credentials) -> Principal | BackendError: ...
