"""Read-only SQLAlchemy session middleware for Falcon ASGI applications.

Resources that set ``uses_session = True`` receive a request-scoped
``AsyncSession`` on ``req.context.session``. The listing endpoints are the
only such resources and never write, so the session is always rolled back and
closed once the response is ready. The webhook resource manages its own
transactions through the ingestion pipeline and is left untouched.

Usage
-----
Register the middleware when creating the Falcon app::

    from crossbow.api.middleware import ReadOnlySessionManager

    app = falcon.asgi.App(middleware=[ReadOnlySessionManager(session_factory)])

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from crossbow.logging import get_logger, log_error

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["ReadOnlySessionManager"]

logger = get_logger(__name__)


class ReadOnlySessionManager:
    """Falcon middleware providing request-scoped read-only sessions.

    Parameters
    ----------
    session_factory
        Async session factory bound to the application's database engine.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Initialize the middleware with a session factory."""
        self._session_factory = session_factory

    async def process_resource(
        self,
        req: Request,
        _resp: Response,
        resource: object,
        _params: dict[str, typ.Any],
    ) -> None:
        """Attach a fresh ``AsyncSession`` when the routed resource wants one.

        The session is created via a bare ``session_factory()`` call because
        it must stay open until :meth:`process_response`.
        """
        if getattr(resource, "uses_session", False):
            req.context.session = self._session_factory()

    async def process_response(
        self,
        req: Request,
        _resp: Response,
        _resource: object,
        req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature
    ) -> None:
        """Roll back and close the request session, if one was attached."""
        session: AsyncSession | None = getattr(req.context, "session", None)
        if session is None:
            return

        try:
            if session.in_transaction():
                await session.rollback()
        except SQLAlchemyError:
            log_error(
                logger,
                "Session rollback failed during process_response "
                "(request succeeded: %s)",
                req_succeeded,
                exc_info=True,
            )
            raise
        finally:
            await session.close()
