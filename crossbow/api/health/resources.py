"""Health probe resources for liveness and readiness checks.

Usage
-----
Register health endpoints on the Falcon app::

    from crossbow.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(session_factory))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from crossbow.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["HealthResource", "ReadyResource"]

logger = get_logger(__name__)


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``.

    Always responds with HTTP 200 to indicate the process is alive.
    """

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Without a database the process is ready as soon as it serves requests.
    With one, readiness requires a successful round trip, since a delivery
    accepted while storage is unreachable can only be answered with a
    transient failure.

    Parameters
    ----------
    session_factory
        Optional factory used to probe the database.

    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        """Store the optional session factory used for probing."""
        self._session_factory = session_factory

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._session_factory is not None and not await self._database_ready():
            resp.media = {"status": "unavailable"}
            resp.status = HTTPStatus.SERVICE_UNAVAILABLE
            return

        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK

    async def _database_ready(self) -> bool:
        factory = typ.cast("async_sessionmaker[AsyncSession]", self._session_factory)
        try:
            async with factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            log_warning(logger, "Readiness probe failed: %s", exc)
            return False
        return True
