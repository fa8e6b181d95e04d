"""Verification of the caller → connector bearer token."""

import logging

import jwt

from jiracards.errors import InvalidConnectorCredential, MissingConnectorCredential
from jiracards.settings import ConnectorSettings

logger = logging.getLogger(__name__)


class ConnectorAuthenticator:
    """Checks the connector ``Authorization`` header.

    Fails closed: without a signing key every request is rejected, unless
    verification was switched off explicitly with ``disabled=True``.
    """

    def __init__(
        self,
        key: str | None,
        algorithm: str = "HS256",
        audience: str | None = None,
        disabled: bool = False,
    ) -> None:
        self._key = key
        self._algorithm = algorithm
        self._audience = audience
        self._disabled = disabled
        if disabled:
            logger.warning("Connector auth disabled; connector bearer tokens are not verified")
        elif not key:
            logger.warning("No connector JWT key configured; all connector requests will be rejected")

    @classmethod
    def from_settings(cls, settings: ConnectorSettings) -> "ConnectorAuthenticator":
        key = settings.connector_jwt_key.get_secret_value() if settings.connector_jwt_key else None
        return cls(
            key,
            settings.connector_jwt_algorithm,
            settings.connector_jwt_audience,
            disabled=settings.connector_auth_disabled,
        )

    @property
    def enabled(self) -> bool:
        return not self._disabled

    def verify(self, authorization: str | None) -> dict:
        """Return the token claims, or raise if the header is absent or the token is bad."""
        if self._disabled:
            return {}
        if not authorization or not authorization.strip():
            raise MissingConnectorCredential()
        if not self._key:
            raise InvalidConnectorCredential()

        scheme, _, token = authorization.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise InvalidConnectorCredential()

        try:
            return jwt.decode(
                token.strip(),
                self._key,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired connector token")
            raise InvalidConnectorCredential() from None
        except jwt.PyJWTError as exc:
            logger.info("Rejected connector token: %s", exc)
            raise InvalidConnectorCredential() from None
