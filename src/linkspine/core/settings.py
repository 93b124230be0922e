"""Environment-driven settings for linkspine.

Manifesto:
    Connection details and traversal limits should be explicit, validated
    and environment-driven. ``LinkSpineSettings`` reads ``LINKSPINE_*``
    variables (and the bare ``MONGO_URL`` / ``MONGO_URL_LOCAL`` pair that
    existing deployments already export) from the process environment and
    an optional ``.env`` file.

Features:
    - **LinkSpineSettings:** mongo URLs, offline switch, database, logging, populate depth
    - **resolve_mongo_url():** picks the online or local URL, ConfigError when unset
    - **get_settings():** cached accessor, ``reset_settings()`` for tests

Examples:
    >>> settings = LinkSpineSettings(mongo_url="mongodb://db:27017")
    >>> settings.resolve_mongo_url()
    'mongodb://db:27017'

Tags:
    settings, configuration, pydantic, environment, linkspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from linkspine.core.errors import ConfigError


class LinkSpineSettings(BaseSettings):
    """Settings shared by the store adapters, the engines and the CLI.

    Fields
    ──────
    mongo_url          : Primary MongoDB URL (``LINKSPINE_MONGO_URL`` or ``MONGO_URL``)
    mongo_url_local    : Local MongoDB URL (``LINKSPINE_MONGO_URL_LOCAL`` or ``MONGO_URL_LOCAL``)
    offline            : Use ``mongo_url_local`` instead of ``mongo_url``
    database           : Database name
    log_level          : Structlog log level
    json_logs          : Force JSON (True) or console (False) output, None to auto-detect
    populate_max_depth : Optional bound on forward-reference resolution depth
    """

    model_config = SettingsConfigDict(
        env_prefix="LINKSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Connection ───────────────────────────────────────────────
    mongo_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("mongo_url", "LINKSPINE_MONGO_URL", "MONGO_URL"),
    )
    mongo_url_local: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "mongo_url_local", "LINKSPINE_MONGO_URL_LOCAL", "MONGO_URL_LOCAL"
        ),
    )
    offline: bool = False
    database: str = "linkspine"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Traversal ────────────────────────────────────────────────
    populate_max_depth: int | None = Field(default=None, ge=1)

    def resolve_mongo_url(self) -> str:
        """Return the URL for the current mode.

        Raises:
            ConfigError: if the variable for the selected mode is unset.
        """
        if self.offline:
            url, name = self.mongo_url_local, "MONGO_URL_LOCAL"
        else:
            url, name = self.mongo_url, "MONGO_URL"
        if not url:
            raise ConfigError(f"Failed to get {name} from the environment or .env")
        return url


_settings: LinkSpineSettings | None = None


def get_settings() -> LinkSpineSettings:
    """Return the process settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = LinkSpineSettings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (for testing)."""
    global _settings
    _settings = None


__all__ = [
    "LinkSpineSettings",
    "get_settings",
    "reset_settings",
]
