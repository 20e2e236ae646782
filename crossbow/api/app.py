"""Application factory for the Crossbow Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with the webhook receiver and listing endpoints::

    from crossbow.api.app import AppDependencies, create_app

    deps = AppDependencies(
        session_factory=session_factory,
        pipeline=WebhookPipeline(secret, session_factory),
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from crossbow.api.errors import (
    EntityNotFoundError,
    InvalidInputError,
    UnknownCollectionError,
    handle_entity_not_found,
    handle_invalid_input,
    handle_listing_error,
    handle_unknown_collection,
)
from crossbow.api.health.resources import HealthResource, ReadyResource
from crossbow.query import MAX_PER_PAGE, ListingError

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from crossbow.pipeline import WebhookPipeline

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    session_factory
        Async session factory for listing reads and readiness probes.
    pipeline
        Webhook ingestion pipeline. ``None`` leaves the receiver unregistered.
    max_page_size
        Upper bound on listing page sizes.

    """

    session_factory: async_sessionmaker[AsyncSession] | None = None
    pipeline: WebhookPipeline | None = None
    max_page_size: int = MAX_PER_PAGE


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health`` and ``/ready`` are always registered. A session factory adds
    the read-only session middleware and ``GET /api/{collection}``; a
    pipeline adds ``POST /webhooks/github``.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None``, only health
        endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    middleware: list[object] = []

    if deps.session_factory is not None:
        from crossbow.api.middleware import ReadOnlySessionManager

        middleware.append(ReadOnlySessionManager(deps.session_factory))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(deps.session_factory))

    if deps.session_factory is not None:
        from crossbow.api.listing.resources import (
            CountsResource,
            EntityResource,
            ListingResource,
        )

        app.add_route(
            "/api/{collection}",
            ListingResource(max_page_size=deps.max_page_size),
        )
        app.add_route("/api/{collection}/counts", CountsResource())
        app.add_route("/api/{collection}/{entity_id}", EntityResource())

    if deps.pipeline is not None:
        from crossbow.api.webhooks.resources import GithubWebhookResource

        app.add_route("/webhooks/github", GithubWebhookResource(deps.pipeline))

    app.add_error_handler(UnknownCollectionError, handle_unknown_collection)
    app.add_error_handler(EntityNotFoundError, handle_entity_not_found)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(ListingError, handle_listing_error)

    return app
