"""Read-only listing over normalised entities and raw events."""

from __future__ import annotations

from .listing import (
    DEFAULT_PER_PAGE,
    MAX_PER_PAGE,
    EntityCounts,
    EntityKind,
    InvalidFilterValueError,
    InvalidPageError,
    ListFilters,
    ListingError,
    Page,
    PageRequest,
    UnsupportedFilterError,
    count_entities,
    get_entity,
    list_entities,
    supported_filters,
)
from .models import (
    CommitInfo,
    EntityInfo,
    IssueInfo,
    PullRequestInfo,
    RawEventInfo,
    RepositoryInfo,
)

__all__ = [
    "DEFAULT_PER_PAGE",
    "MAX_PER_PAGE",
    "CommitInfo",
    "EntityCounts",
    "EntityInfo",
    "EntityKind",
    "InvalidFilterValueError",
    "InvalidPageError",
    "IssueInfo",
    "ListFilters",
    "ListingError",
    "Page",
    "PageRequest",
    "PullRequestInfo",
    "RawEventInfo",
    "RepositoryInfo",
    "UnsupportedFilterError",
    "count_entities",
    "get_entity",
    "list_entities",
    "supported_filters",
]
