"""Client-facing exceptions and the Falcon handlers that render them.

Every handler answers with a small JSON body carrying ``title`` and
``description``. Invalid query input additionally names the offending
``field`` when one is known. Anything not mapped here surfaces as a 500.
"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from crossbow.query import ListingError

__all__ = [
    "EntityNotFoundError",
    "InvalidInputError",
    "UnknownCollectionError",
    "handle_entity_not_found",
    "handle_invalid_input",
    "handle_listing_error",
    "handle_unknown_collection",
]


class UnknownCollectionError(Exception):
    """A listing path names a collection that Crossbow does not serve."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"No collection named '{collection}' exists.")


class EntityNotFoundError(Exception):
    """No row of the requested collection has the requested id."""

    def __init__(self, collection: str, entity_id: int) -> None:
        self.collection = collection
        self.entity_id = entity_id
        super().__init__(f"No {collection} entry with id {entity_id} exists.")


class InvalidInputError(Exception):
    """A query parameter could not be interpreted.

    Attributes
    ----------
    reason
        What was wrong with the value.
    field
        Query parameter the value came from, when known.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Record ``reason`` and prefix the message with ``field`` if given."""
        self.reason = reason
        self.field = field
        super().__init__(reason if field is None else f"{field}: {reason}")


def _render(resp: Response, status: str, title: str, description: str) -> None:
    resp.status = status
    resp.media = {"title": title, "description": description}


async def handle_unknown_collection(
    _req: Request,
    resp: Response,
    ex: UnknownCollectionError,
    _params: dict[str, typ.Any],
) -> None:
    """Answer 404 for an unknown collection."""
    _render(resp, falcon.HTTP_404, "Collection not found", str(ex))


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Answer 400 with the validation reason and, when set, the field."""
    _render(resp, falcon.HTTP_400, "Invalid input", ex.reason)
    if ex.field is not None:
        resp.media["field"] = ex.field


async def handle_listing_error(
    _req: Request,
    resp: Response,
    ex: ListingError,
    _params: dict[str, typ.Any],
) -> None:
    """Answer 400 for unsupported filters, bad filter values and bad pages."""
    _render(resp, falcon.HTTP_400, "Invalid listing request", str(ex))


async def handle_entity_not_found(
    _req: Request,
    resp: Response,
    ex: EntityNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Answer 404 for an id with no matching row."""
    _render(resp, falcon.HTTP_404, "Entity not found", str(ex))
