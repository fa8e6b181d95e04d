"""Connector-facing error taxonomy and translation of backend failures."""

import logging
from enum import Enum

from jiracards.models import BackendError, ConnectorResponse

logger = logging.getLogger(__name__)

BACKEND_STATUS_HEADER = "X-Backend-Status"


class CallRole(str, Enum):
    AUTH_PROBE = "auth_probe"
    FETCH = "fetch"
    ACTION = "action"


class ConnectorError(Exception):
    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str | None = None, backend_status: int | None = None) -> None:
        super().__init__(message or self.error)
        self.message = message
        self.backend_status = backend_status

    def body(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.message:
            body["message"] = self.message
        return body

    def to_response(self) -> ConnectorResponse:
        headers = {}
        if self.backend_status is not None:
            headers[BACKEND_STATUS_HEADER] = str(self.backend_status)
        return ConnectorResponse(status_code=self.status_code, headers=headers, body=self.body())


class MissingConnectorCredential(ConnectorError):
    status_code = 401
    error = "unauthorized"

    def body(self) -> dict[str, str]:
        return {"error": self.error}


class InvalidConnectorCredential(MissingConnectorCredential):
    pass


class InvalidRequest(ConnectorError):
    status_code = 400
    error = "bad_request"


class MissingBackendCredential(InvalidRequest):
    def __init__(self, header: str) -> None:
        super().__init__(f"Missing request header '{header}'")
        self.header = header


class BackendUnauthorized(ConnectorError):
    """The per-request Jira token was refused. The caller sent bad input, hence 400."""

    status_code = 400
    error = "invalid_connector_token"

    def body(self) -> dict[str, str]:
        return {"error": self.error}


class BackendRejected(ConnectorError):
    status_code = 400
    error = "backend_rejected"

    def __init__(self, status_code: int, backend_status: int) -> None:
        super().__init__(f"Jira responded {backend_status}", backend_status=backend_status)
        self.status_code = status_code


class BackendServerError(ConnectorError):
    status_code = 500
    error = "backend_error"


class BackendTimeout(BackendServerError):
    error = "backend_timeout"


def translate_backend_error(error: BackendError, role: CallRole) -> ConnectorError:
    """Map a failed backend call to the error the connector's caller sees.

    The backend's own status always travels in X-Backend-Status.
    """
    status = error.status_code
    if error.is_unauthorized:
        logger.info("Jira refused credentials during %s", role.value)
        return BackendUnauthorized(backend_status=status)
    if error.timed_out:
        return BackendTimeout(f"Jira did not respond during {role.value}", backend_status=status)
    if error.is_server_error:
        return BackendServerError(f"Jira responded {status} during {role.value}", backend_status=status)
    if role is CallRole.ACTION:
        # 403/404/... on a single-target action mean the same thing to our caller
        return BackendRejected(status_code=status, backend_status=status)
    return BackendRejected(status_code=400, backend_status=status)
