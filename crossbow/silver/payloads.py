"""Typed views over GitHub webhook payloads.

Only the fields the Silver layer normalises are declared; msgspec ignores the
rest of the (large) GitHub documents. Timestamps stay as strings here and are
parsed by the extractors so a bad value can name the offending field.
"""

from __future__ import annotations

import typing as typ

import msgspec

from crossbow.silver.errors import ExtractionError


class GithubAccount(msgspec.Struct, frozen=True):
    """User or organisation reference."""

    login: str


class GithubRepositoryPayload(msgspec.Struct, frozen=True):
    """``repository`` object embedded in every repository-scoped event."""

    id: int
    name: str
    full_name: str
    owner: GithubAccount
    html_url: str
    description: str | None = None
    private: bool = False


class GithubGitActor(msgspec.Struct, frozen=True):
    """Author or committer identity reported on a pushed commit."""

    name: str
    email: str


class GithubPushCommit(msgspec.Struct, frozen=True):
    """Entry of a push event's ``commits`` list."""

    id: str
    message: str
    timestamp: str
    url: str
    author: GithubGitActor
    committer: GithubGitActor


class GithubPushPayload(msgspec.Struct, frozen=True):
    """Body of a ``push`` delivery."""

    commits: list[GithubPushCommit] = msgspec.field(default_factory=list)


class GithubBranchRef(msgspec.Struct, frozen=True):
    """``base``/``head`` reference of a pull request."""

    ref: str


class GithubPullRequest(msgspec.Struct, frozen=True):
    """``pull_request`` object of a pull request delivery."""

    id: int
    number: int
    title: str
    state: str
    user: GithubAccount
    base: GithubBranchRef
    head: GithubBranchRef
    html_url: str
    created_at: str
    updated_at: str | None = None
    closed_at: str | None = None
    merged_at: str | None = None
    merged: bool | None = None


class GithubPullRequestPayload(msgspec.Struct, frozen=True):
    """Body of a ``pull_request`` delivery."""

    pull_request: GithubPullRequest
    action: str | None = None


class GithubLabel(msgspec.Struct, frozen=True):
    """Label attached to an issue."""

    name: str


class GithubIssue(msgspec.Struct, frozen=True):
    """``issue`` object of an issues delivery."""

    id: int
    number: int
    title: str
    state: str
    user: GithubAccount
    html_url: str
    created_at: str
    labels: list[GithubLabel] = msgspec.field(default_factory=list)
    updated_at: str | None = None
    closed_at: str | None = None


class GithubIssuesPayload(msgspec.Struct, frozen=True):
    """Body of an ``issues`` delivery."""

    issue: GithubIssue
    action: str | None = None


class _RepositoryEnvelope(msgspec.Struct, frozen=True):
    repository: GithubRepositoryPayload | None = None


PayloadT = typ.TypeVar("PayloadT", bound=msgspec.Struct)


def decode_payload(
    payload: dict[str, typ.Any], model: type[PayloadT]
) -> PayloadT:
    """Decode a stored payload into the provided msgspec struct.

    Raises
    ------
    ExtractionError
        If the payload does not match ``model``.

    """
    try:
        return msgspec.convert(payload, type=model)
    except msgspec.ValidationError as exc:
        raise ExtractionError.invalid_payload(str(exc)) from exc


def repository_from_payload(
    payload: dict[str, typ.Any],
) -> GithubRepositoryPayload | None:
    """Return the payload's repository object, or ``None`` when unusable.

    Organisation-level deliveries (``ping`` from an org hook, ``member``)
    carry no repository, and a malformed one is treated the same way so the
    raw event is still stored.
    """
    try:
        envelope = msgspec.convert(payload, type=_RepositoryEnvelope)
    except msgspec.ValidationError:
        return None
    return envelope.repository
