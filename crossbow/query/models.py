"""Data transfer objects returned by the listing layer."""

from __future__ import annotations

import dataclasses
import datetime as dt  # noqa: TC003
import typing as typ


@dataclasses.dataclass(slots=True, frozen=True)
class RepositoryInfo:
    """Repository identity and descriptive fields."""

    id: int
    github_id: int
    name: str
    full_name: str
    owner: str
    description: str | None
    url: str
    is_private: bool
    created_at: dt.datetime
    updated_at: dt.datetime


@dataclasses.dataclass(slots=True, frozen=True)
class CommitInfo:
    """Commit as reported by the push that introduced it."""

    id: int
    repository_id: int
    webhook_event_id: int | None
    sha: str
    message: str
    author_name: str
    author_email: str
    committer_name: str
    committer_email: str
    committed_at: dt.datetime
    url: str


@dataclasses.dataclass(slots=True, frozen=True)
class PullRequestInfo:
    """Current state of a pull request."""

    id: int
    repository_id: int
    webhook_event_id: int | None
    github_id: int
    number: int
    title: str
    state: str
    author: str
    base_branch: str
    head_branch: str
    url: str
    opened_at: dt.datetime
    closed_at: dt.datetime | None
    merged_at: dt.datetime | None
    updated_at: dt.datetime


@dataclasses.dataclass(slots=True, frozen=True)
class IssueInfo:
    """Current state of an issue."""

    id: int
    repository_id: int
    webhook_event_id: int | None
    github_id: int
    number: int
    title: str
    state: str
    author: str
    labels: tuple[str, ...]
    url: str
    opened_at: dt.datetime
    closed_at: dt.datetime | None
    updated_at: dt.datetime


@dataclasses.dataclass(slots=True, frozen=True)
class RawEventInfo:
    """Audit summary of a stored delivery.

    The payload and signature are deliberately not exposed through listings;
    operators inspect them directly in storage.
    """

    id: int
    repository_id: int | None
    delivery_id: str
    event_type: str
    event_action: str | None
    received_at: dt.datetime
    processed: bool
    processed_at: dt.datetime | None
    processing_error: str | None


EntityInfo: typ.TypeAlias = (
    RepositoryInfo | CommitInfo | PullRequestInfo | IssueInfo | RawEventInfo
)
