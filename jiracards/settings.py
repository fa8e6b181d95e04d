"""Settings resolution with profile support.

Backend credentials are not settings: they travel per request and are
never read from or written to the config file.
"""

import os
import re
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jiracards.extractor import DEFAULT_ISSUE_PATTERN

CONFIG_PATH = Path.home() / ".config" / "jiracards" / "config.toml"


class ConfigError(RuntimeError):
    pass


class ConnectorSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="JIRACARDS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    profile: str | None = None  # resolved active profile name

    # Fan-out
    concurrency_limit: int = 8  # in-flight issue fetches per card request
    max_connections: int = 32  # shared outbound pool, across requests
    request_timeout: float = 10.0  # seconds, per backend call

    # Cards
    issue_pattern: str = DEFAULT_ISSUE_PATTERN
    default_language: str = "en"

    # Caller -> connector bearer token (JWT). Without a key every request is rejected.
    connector_jwt_key: SecretStr | None = None
    connector_jwt_algorithm: str = "HS256"
    connector_jwt_audience: str | None = None
    connector_auth_disabled: bool = False  # explicit opt-out, local use only

    @field_validator("concurrency_limit", "max_connections")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be > 0")
        return value

    @field_validator("issue_pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid issue_pattern: {exc}") from exc
        return value


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/jiracards/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    with CONFIG_PATH.open() as fh:
        return tomlkit.load(fh)


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def get_settings(profile: str | None = None) -> ConnectorSettings:
    """Resolve the active profile and return a fully populated ConnectorSettings.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. JIRACARDS_PROFILE env var
    3. default_profile key in ~/.config/jiracards/config.toml
    4. First profile defined in ~/.config/jiracards/config.toml

    With no profile at all, env vars and defaults alone apply.
    """
    toml_config = _load_toml()

    active = (
        profile
        or os.environ.get("JIRACARDS_PROFILE")
        or toml_config.get("default_profile")
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        else:
            profiles = _list_profiles(toml_config)
            raise ConfigError(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")

    return ConnectorSettings(profile=active, **profile_defaults)
