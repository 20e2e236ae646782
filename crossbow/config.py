"""Runtime configuration for the Crossbow webhook service.

Usage
-----
Build a configuration explicitly (tests, embedding):

>>> config = CrossbowConfig(webhook_secret="s3cret")
>>> config.port
8080

Or load it from environment variables:

>>> import os
>>> os.environ["CROSSBOW_WEBHOOK_SECRET"] = "s3cret"
>>> config = CrossbowConfig.from_env()

The webhook secret is excluded from ``repr`` so configuration objects can be
logged without leaking signing material.
"""

from __future__ import annotations

import dataclasses as dc
import os

_MIN_PORT = 1
_MAX_PORT = 65535
DEFAULT_MAX_PAGE_SIZE = 100


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""

    @classmethod
    def not_an_integer(cls, env_var: str, raw: str) -> ConfigError:
        """Return an error for non-numeric integer settings."""
        return cls(f"{env_var} must be an integer, got: {raw!r}")

    @classmethod
    def out_of_range(cls, env_var: str, value: int, low: int, high: int) -> ConfigError:
        """Return an error for integers outside their permitted range."""
        return cls(f"{env_var} must be between {low} and {high}, got: {value}")


def _read_str(env_var: str) -> str | None:
    raw = os.environ.get(env_var, "")
    return raw.strip() or None


def _read_int(env_var: str, default: int, *, low: int, high: int) -> int:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.not_an_integer(env_var, raw) from exc
    if not (low <= value <= high):
        raise ConfigError.out_of_range(env_var, value, low, high)
    return value


@dc.dataclass(frozen=True, slots=True)
class CrossbowConfig:
    """Settings consumed by the runtime and the webhook pipeline.

    Attributes
    ----------
    webhook_secret
        Shared signing secret configured on the GitHub webhook. ``None``
        disables the ingestion endpoint.
    database_url
        SQLAlchemy async URL, e.g. ``postgresql+asyncpg://...``.
    host
        Bind address for the ASGI server.
    port
        Listen port for the ASGI server.
    log_level
        Raw log level string; normalised by :mod:`crossbow.logging`.
    max_page_size
        Upper bound applied to listing requests.

    """

    webhook_secret: str | None = dc.field(default=None, repr=False)
    database_url: str | None = None
    host: str = "0.0.0.0"  # noqa: S104 - bind all interfaces for container
    port: int = 8080
    log_level: str = "INFO"
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE

    @property
    def ingestion_enabled(self) -> bool:
        """Return True when both storage and signing material are configured."""
        return self.database_url is not None and self.webhook_secret is not None

    @classmethod
    def from_env(cls) -> CrossbowConfig:
        """Create configuration from ``CROSSBOW_*`` environment variables.

        Reads ``CROSSBOW_WEBHOOK_SECRET``, ``CROSSBOW_DATABASE_URL``,
        ``CROSSBOW_HOST``, ``CROSSBOW_PORT``, ``CROSSBOW_LOG_LEVEL`` and
        ``CROSSBOW_MAX_PAGE_SIZE``.

        Raises
        ------
        ConfigError
            If a numeric setting is malformed or out of range.

        """
        return cls(
            webhook_secret=_read_str("CROSSBOW_WEBHOOK_SECRET"),
            database_url=_read_str("CROSSBOW_DATABASE_URL"),
            host=_read_str("CROSSBOW_HOST") or "0.0.0.0",  # noqa: S104
            port=_read_int("CROSSBOW_PORT", 8080, low=_MIN_PORT, high=_MAX_PORT),
            log_level=_read_str("CROSSBOW_LOG_LEVEL") or "INFO",
            max_page_size=_read_int(
                "CROSSBOW_MAX_PAGE_SIZE",
                DEFAULT_MAX_PAGE_SIZE,
                low=1,
                high=DEFAULT_MAX_PAGE_SIZE,
            ),
        )
