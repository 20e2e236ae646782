"""Filtered, paginated reads over normalised entities.

The listing layer is strictly read-only: it never triggers extraction and
never mutates ingestion state.

Example:
-------
List the second page of open pull requests for one repository::

    page = await list_entities(
        session,
        EntityKind.PULL_REQUESTS,
        ListFilters(repository_id=3, state="open"),
        PageRequest(page=2, per_page=50),
    )
    if page.has_next:
        ...

"""

from __future__ import annotations

import dataclasses
import enum
import json
import typing as typ

from sqlalchemy import Select, Text, cast, func, select

from crossbow.bronze.storage import RawEvent
from crossbow.query.mapping import (
    to_commit_info,
    to_issue_info,
    to_pull_request_info,
    to_raw_event_info,
    to_repository_info,
)
from crossbow.silver.storage import (
    Commit,
    Issue,
    IssueState,
    PullRequest,
    PullRequestState,
    Repository,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from crossbow.query.models import EntityInfo

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


class ListingError(ValueError):
    """Base class for rejected listing requests."""


class UnsupportedFilterError(ListingError):
    """Raised when a filter does not apply to the requested entity kind."""

    def __init__(self, kind: str, name: str) -> None:
        """Name the filter and the entity kind that rejected it."""
        self.kind = kind
        self.name = name
        super().__init__(f"filter {name!r} is not supported for {kind}")


class InvalidFilterValueError(ListingError):
    """Raised when a filter value is outside its permitted set."""

    def __init__(self, name: str, value: object, allowed: typ.Iterable[str]) -> None:
        """Describe the rejected value and the accepted alternatives."""
        self.name = name
        choices = ", ".join(sorted(allowed))
        super().__init__(f"{name} must be one of {choices}, got: {value!r}")


class InvalidPageError(ListingError):
    """Raised when a page number is zero or negative."""

    def __init__(self, page: int) -> None:
        """Build a consistent error message for the invalid page."""
        self.page = page
        super().__init__(f"page must be at least 1, got: {page}")


class EntityKind(enum.StrEnum):
    """Entity collections exposed for listing."""

    REPOSITORIES = "repositories"
    COMMITS = "commits"
    PULL_REQUESTS = "pull_requests"
    ISSUES = "issues"
    EVENTS = "events"


@dataclasses.dataclass(frozen=True, slots=True)
class ListFilters:
    """Optional filters; ``None`` leaves a dimension unfiltered.

    Attributes
    ----------
    repository_id
        Restrict to one repository (all kinds except repositories).
    owner
        Repository owner login (repositories only).
    author
        Author email for commits, author login for pull requests and issues.
    state
        Lifecycle state (pull requests and issues).
    label
        Label that must be present (issues only).
    since
        Inclusive lower bound on the kind's timeline column.
    until
        Exclusive upper bound on the kind's timeline column.
    event_type
        ``X-GitHub-Event`` value (events only).
    event_action
        Payload ``action`` value (events only).
    processed
        Extraction status (events only).
    search
        Text that must appear in the stored payload (events only).

    """

    repository_id: int | None = None
    owner: str | None = None
    author: str | None = None
    state: str | None = None
    label: str | None = None
    since: dt.datetime | None = None
    until: dt.datetime | None = None
    event_type: str | None = None
    event_action: str | None = None
    processed: bool | None = None
    search: str | None = None

    def active(self) -> dict[str, typ.Any]:
        """Return the filters that carry a value, keyed by field name."""
        return {
            field.name: getattr(self, field.name)
            for field in dataclasses.fields(self)
            if getattr(self, field.name) is not None
        }


@dataclasses.dataclass(frozen=True, slots=True)
class PageRequest:
    """One-based page number and requested page size."""

    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    def limit(self, max_page_size: int = MAX_PER_PAGE) -> int:
        """Return ``per_page`` clamped to ``1..max_page_size``."""
        return max(1, min(self.per_page, max_page_size))

    def offset(self, limit: int) -> int:
        """Return the number of rows preceding this page."""
        return (self.page - 1) * limit


ItemT = typ.TypeVar("ItemT")


@dataclasses.dataclass(frozen=True, slots=True)
class Page(typ.Generic[ItemT]):
    """A page of listing results."""

    items: tuple[ItemT, ...]
    page: int
    per_page: int
    has_next: bool


@dataclasses.dataclass(frozen=True, slots=True)
class _EntityListing:
    model: type[typ.Any]
    timeline: InstrumentedAttribute[typ.Any]
    filters: frozenset[str]
    to_info: typ.Callable[[typ.Any], EntityInfo]
    states: frozenset[str] = frozenset()


_TIME_RANGE = frozenset({"since", "until"})

_LISTINGS: dict[EntityKind, _EntityListing] = {
    EntityKind.REPOSITORIES: _EntityListing(
        model=Repository,
        timeline=Repository.updated_at,
        filters=_TIME_RANGE | {"owner"},
        to_info=to_repository_info,
    ),
    EntityKind.COMMITS: _EntityListing(
        model=Commit,
        timeline=Commit.committed_at,
        filters=_TIME_RANGE | {"repository_id", "author"},
        to_info=to_commit_info,
    ),
    EntityKind.PULL_REQUESTS: _EntityListing(
        model=PullRequest,
        timeline=PullRequest.opened_at,
        filters=_TIME_RANGE | {"repository_id", "author", "state"},
        to_info=to_pull_request_info,
        states=frozenset(PullRequestState),
    ),
    EntityKind.ISSUES: _EntityListing(
        model=Issue,
        timeline=Issue.opened_at,
        filters=_TIME_RANGE | {"repository_id", "author", "state", "label"},
        to_info=to_issue_info,
        states=frozenset(IssueState),
    ),
    EntityKind.EVENTS: _EntityListing(
        model=RawEvent,
        timeline=RawEvent.received_at,
        filters=_TIME_RANGE
        | {"repository_id", "event_type", "event_action", "processed", "search"},
        to_info=to_raw_event_info,
    ),
}


def supported_filters(kind: EntityKind) -> frozenset[str]:
    """Return the filter names accepted for ``kind``."""
    return _LISTINGS[kind].filters


def _validate(kind: EntityKind, filters: ListFilters, page: PageRequest) -> None:
    """Reject filters and pages the listing cannot honour.

    Raises
    ------
    UnsupportedFilterError
        If a populated filter does not apply to ``kind``.
    InvalidFilterValueError
        If ``state`` is not a lifecycle state of ``kind``.
    InvalidPageError
        If the page number is below one.

    """
    listing = _LISTINGS[kind]
    for name in filters.active():
        if name not in listing.filters:
            raise UnsupportedFilterError(kind, name)
    if filters.state is not None and filters.state not in listing.states:
        raise InvalidFilterValueError("state", filters.state, listing.states)
    if page.page < 1:
        raise InvalidPageError(page.page)


def _apply_filter(
    query: Select, listing: _EntityListing, name: str, value: typ.Any
) -> Select:
    model = listing.model
    match name:
        case "since":
            return query.where(listing.timeline >= value)
        case "until":
            return query.where(listing.timeline < value)
        case "author" if model is Commit:
            return query.where(Commit.author_email == value)
        case "label":
            # Labels are a JSON list; match the serialised element.
            needle = json.dumps(value)
            labels = cast(Issue.labels, Text)
            return query.where(labels.contains(needle, autoescape=True))
        case "processed":
            return query.where(RawEvent.processed.is_(value))
        case "search":
            payload = cast(RawEvent.payload, Text)
            return query.where(payload.contains(value, autoescape=True))
        case _:
            return query.where(getattr(model, name) == value)


def _filtered(query: Select, listing: _EntityListing, filters: ListFilters) -> Select:
    for name, value in filters.active().items():
        query = _apply_filter(query, listing, name, value)
    return query


def _build_query(
    kind: EntityKind, filters: ListFilters, limit: int, offset: int
) -> Select:
    """Build the listing query, fetching one extra row to detect a next page."""
    listing = _LISTINGS[kind]
    query = _filtered(select(listing.model), listing, filters)
    return (
        query.order_by(listing.timeline.desc(), listing.model.id.desc())
        .offset(offset)
        .limit(limit + 1)
    )


async def list_entities(
    session: AsyncSession,
    kind: EntityKind,
    filters: ListFilters | None = None,
    page: PageRequest | None = None,
    *,
    max_page_size: int = MAX_PER_PAGE,
) -> Page[EntityInfo]:
    """List one entity kind with optional filters.

    Parameters
    ----------
    session
        Session used for the read; nothing is flushed or committed.
    kind
        Entity collection to list.
    filters
        Filters to apply; must all be supported by ``kind``.
    page
        Page to return. ``per_page`` is clamped to ``1..max_page_size``.
    max_page_size
        Upper bound on the page size.

    Returns
    -------
    Page[EntityInfo]
        Immutable DTOs in the kind's newest-first order.

    Raises
    ------
    UnsupportedFilterError
        If a filter does not apply to ``kind``.
    InvalidFilterValueError
        If a filter value is not permitted.
    InvalidPageError
        If the page number is below one.

    """
    filters = filters or ListFilters()
    page = page or PageRequest()
    _validate(kind, filters, page)

    limit = page.limit(max_page_size)
    rows = list(
        await session.scalars(
            _build_query(kind, filters, limit, page.offset(limit))
        )
    )
    to_info = _LISTINGS[kind].to_info
    return Page(
        items=tuple(to_info(row) for row in rows[:limit]),
        page=page.page,
        per_page=limit,
        has_next=len(rows) > limit,
    )


async def get_entity(
    session: AsyncSession, kind: EntityKind, entity_id: int
) -> EntityInfo | None:
    """Return the DTO for one row of ``kind``, or ``None`` if it is absent."""
    listing = _LISTINGS[kind]
    row = await session.get(listing.model, entity_id)
    return None if row is None else listing.to_info(row)


@dataclasses.dataclass(frozen=True, slots=True)
class EntityCounts:
    """Row totals for one entity kind under a set of filters.

    ``by_state`` lists every lifecycle state of pull requests and issues,
    including those with no rows, and is empty for other kinds.
    """

    total: int
    by_state: dict[str, int] = dataclasses.field(default_factory=dict)


async def count_entities(
    session: AsyncSession,
    kind: EntityKind,
    filters: ListFilters | None = None,
) -> EntityCounts:
    """Count rows of ``kind`` matching ``filters``.

    Raises
    ------
    UnsupportedFilterError
        If a filter does not apply to ``kind``.
    InvalidFilterValueError
        If a filter value is not permitted.

    """
    filters = filters or ListFilters()
    _validate(kind, filters, PageRequest())
    listing = _LISTINGS[kind]

    if not listing.states:
        query = _filtered(
            select(func.count()).select_from(listing.model), listing, filters
        )
        return EntityCounts(total=await session.scalar(query) or 0)

    state = listing.model.state
    query = _filtered(
        select(state, func.count()).select_from(listing.model), listing, filters
    ).group_by(state)
    by_state = dict.fromkeys(sorted(str(s) for s in listing.states), 0)
    for name, count in await session.execute(query):
        by_state[str(name)] = count
    return EntityCounts(total=sum(by_state.values()), by_state=by_state)
