"""Crossbow runtime entrypoint.

This module provides the ASGI application factory used by Granian and the
``crossbow`` console script. It reads :class:`~crossbow.config.CrossbowConfig`
from the environment and delegates to :func:`crossbow.api.app.create_app`.

- Without ``CROSSBOW_DATABASE_URL`` the app serves health probes only.
- With a database URL it adds the JSON listing endpoints.
- With both a database URL and ``CROSSBOW_WEBHOOK_SECRET`` it also accepts
  GitHub deliveries on ``POST /webhooks/github``.

Run the service with ``python -m crossbow.runtime`` and create the schema
once with ``crossbow-init-db``.
"""

from __future__ import annotations

import asyncio
import typing as typ

from crossbow.api.health.resources import HealthResource, ReadyResource
from crossbow.config import ConfigError, CrossbowConfig
from crossbow.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi
    from sqlalchemy.ext.asyncio import AsyncEngine

__all__ = ["HealthResource", "ReadyResource", "create_app", "init_db", "main"]

logger = get_logger(__name__)


def _load_config() -> CrossbowConfig:
    """Load configuration, exiting the process on invalid values.

    Raises
    ------
    SystemExit
        If an environment variable holds an unusable value.

    """
    try:
        return CrossbowConfig.from_env()
    except ConfigError as exc:
        log_error(logger, "Invalid configuration: %s", exc)
        raise SystemExit(1) from exc


def _create_engine(database_url: str) -> AsyncEngine:
    from sqlalchemy.ext.asyncio import create_async_engine

    return create_async_engine(database_url, pool_pre_ping=True)


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from crossbow.api.app import AppDependencies
    from crossbow.api.app import create_app as _create_api_app

    config = _load_config()
    if config.database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker

    from crossbow.pipeline import WebhookPipeline

    session_factory = async_sessionmaker(
        _create_engine(config.database_url), expire_on_commit=False
    )
    pipeline = None
    if config.webhook_secret is not None:
        pipeline = WebhookPipeline(config.webhook_secret, session_factory)
    else:
        log_warning(
            logger,
            "CROSSBOW_WEBHOOK_SECRET is not set; the webhook receiver is disabled",
        )

    return _create_api_app(
        AppDependencies(
            session_factory=session_factory,
            pipeline=pipeline,
            max_page_size=config.max_page_size,
        )
    )


async def _init_storage(database_url: str) -> None:
    from crossbow.bronze.storage import init_storage

    engine = _create_engine(database_url)
    try:
        await init_storage(engine)
    finally:
        await engine.dispose()


def init_db() -> None:
    """Create any missing tables in ``CROSSBOW_DATABASE_URL``."""
    config = _load_config()
    configure_logging(config.log_level)
    if config.database_url is None:
        log_error(logger, "CROSSBOW_DATABASE_URL must be set to initialise storage")
        raise SystemExit(1)

    asyncio.run(_init_storage(config.database_url))
    log_info(logger, "Storage initialised")


def main() -> None:
    """Start the Crossbow runtime server using Granian.

    Reads ``CROSSBOW_HOST``, ``CROSSBOW_PORT`` and ``CROSSBOW_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    config = _load_config()

    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid CROSSBOW_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Crossbow runtime on %s:%d (log_level=%s, ingestion=%s)",
        config.host,
        config.port,
        normalized_level,
        "enabled" if config.ingestion_enabled else "disabled",
    )

    server = Granian(
        "crossbow.runtime:create_app",
        address=config.host,
        port=config.port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
