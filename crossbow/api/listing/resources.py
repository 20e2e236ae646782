"""JSON read resources over normalised entities.

Handles three routes, where ``collection`` is one of the
:class:`~crossbow.query.EntityKind` values:

- ``GET /api/{collection}``: a filtered, paginated listing. Query parameters
  map onto :class:`~crossbow.query.ListFilters` and
  :class:`~crossbow.query.PageRequest`.
- ``GET /api/{collection}/counts``: totals under the same filters, broken
  down by lifecycle state for pull requests and issues.
- ``GET /api/{collection}/{entity_id}``: one row by its id.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/api/{collection}", ListingResource(max_page_size=100))
    app.add_route("/api/{collection}/counts", CountsResource())
    app.add_route("/api/{collection}/{entity_id}", EntityResource())

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import msgspec

from crossbow.api.errors import (
    EntityNotFoundError,
    InvalidInputError,
    UnknownCollectionError,
)
from crossbow.common.time import parse_iso_datetime
from crossbow.query import (
    DEFAULT_PER_PAGE,
    MAX_PER_PAGE,
    EntityKind,
    ListFilters,
    PageRequest,
    count_entities,
    get_entity,
    list_entities,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from falcon.asgi import Request, Response

__all__ = ["CountsResource", "EntityResource", "ListingResource"]

_TRUE = frozenset({"true", "1", "yes"})
_FALSE = frozenset({"false", "0", "no"})

# Signed 64-bit, the widest integer both SQLite and PostgreSQL bind.
_MAX_SQL_INT = 2**63 - 1


def _parse_int(raw: str, name: str, *, maximum: int = _MAX_SQL_INT) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidInputError("must be an integer", field=name) from exc
    if not -maximum <= value <= maximum:
        msg = f"must be between {-maximum} and {maximum}"
        raise InvalidInputError(msg, field=name)
    return value


def _int_param(
    req: Request, name: str, *, maximum: int = _MAX_SQL_INT
) -> int | None:
    raw = req.get_param(name)
    return None if raw is None else _parse_int(raw, name, maximum=maximum)


def _datetime_param(req: Request, name: str) -> dt.datetime | None:
    raw = req.get_param(name)
    if raw is None:
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError as exc:
        raise InvalidInputError(
            "must be an ISO-8601 timestamp with a timezone offset", field=name
        ) from exc


def _bool_param(req: Request, name: str) -> bool | None:
    raw = req.get_param(name)
    if raw is None:
        return None
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidInputError("must be true or false", field=name)


def _parse_collection(collection: str) -> EntityKind:
    try:
        return EntityKind(collection)
    except ValueError as exc:
        raise UnknownCollectionError(collection) from exc


def _parse_filters(req: Request) -> ListFilters:
    return ListFilters(
        repository_id=_int_param(req, "repository_id"),
        owner=req.get_param("owner"),
        author=req.get_param("author"),
        state=req.get_param("state"),
        label=req.get_param("label"),
        since=_datetime_param(req, "since"),
        until=_datetime_param(req, "until"),
        event_type=req.get_param("event_type"),
        event_action=req.get_param("event_action"),
        processed=_bool_param(req, "processed"),
        search=req.get_param("search"),
    )


def _parse_page(req: Request) -> PageRequest:
    # (page - 1) * per_page must stay a bindable integer.
    page = _int_param(req, "page", maximum=_MAX_SQL_INT // MAX_PER_PAGE)
    per_page = _int_param(req, "per_page")
    return PageRequest(
        page=1 if page is None else page,
        per_page=DEFAULT_PER_PAGE if per_page is None else per_page,
    )


class ListingResource:
    """Serve paginated, filtered entity listings as JSON.

    Parameters
    ----------
    max_page_size
        Upper bound applied to ``per_page``.

    """

    uses_session = True

    def __init__(self, *, max_page_size: int = MAX_PER_PAGE) -> None:
        """Store the page size ceiling applied to every request."""
        self._max_page_size = max_page_size

    async def on_get(self, req: Request, resp: Response, collection: str) -> None:
        """Handle GET /api/{collection} requests.

        Raises
        ------
        UnknownCollectionError
            If ``collection`` is not a listable entity kind.
        InvalidInputError
            If a query parameter cannot be parsed.

        """
        kind = _parse_collection(collection)
        page = await list_entities(
            req.context.session,
            kind,
            _parse_filters(req),
            _parse_page(req),
            max_page_size=self._max_page_size,
        )
        resp.media = {
            "items": msgspec.to_builtins(page.items),
            "page": page.page,
            "per_page": page.per_page,
            "has_next": page.has_next,
        }
        resp.status = HTTPStatus.OK


class CountsResource:
    """Serve row totals for a collection under the listing filters."""

    uses_session = True

    async def on_get(self, req: Request, resp: Response, collection: str) -> None:
        """Handle GET /api/{collection}/counts requests."""
        counts = await count_entities(
            req.context.session, _parse_collection(collection), _parse_filters(req)
        )
        resp.media = msgspec.to_builtins(counts)
        resp.status = HTTPStatus.OK


class EntityResource:
    """Serve a single entity by id."""

    uses_session = True

    async def on_get(
        self, req: Request, resp: Response, collection: str, entity_id: str
    ) -> None:
        """Handle GET /api/{collection}/{entity_id} requests.

        Raises
        ------
        UnknownCollectionError
            If ``collection`` is not an entity kind.
        InvalidInputError
            If ``entity_id`` is not a bindable integer.
        EntityNotFoundError
            If no row has that id.

        """
        kind = _parse_collection(collection)
        ident = _parse_int(entity_id, "entity_id")
        info = await get_entity(req.context.session, kind, ident)
        if info is None:
            raise EntityNotFoundError(kind, ident)
        resp.media = msgspec.to_builtins(info)
        resp.status = HTTPStatus.OK
