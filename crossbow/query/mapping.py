"""Mapping helpers from ORM rows to listing DTOs."""

from __future__ import annotations

import typing as typ

from crossbow.query.models import (
    CommitInfo,
    IssueInfo,
    PullRequestInfo,
    RawEventInfo,
    RepositoryInfo,
)

if typ.TYPE_CHECKING:
    from crossbow.bronze.storage import RawEvent
    from crossbow.silver.storage import Commit, Issue, PullRequest, Repository


def to_repository_info(repo: Repository) -> RepositoryInfo:
    """Convert a repository row to a :class:`RepositoryInfo` DTO."""
    return RepositoryInfo(
        id=repo.id,
        github_id=repo.github_id,
        name=repo.name,
        full_name=repo.full_name,
        owner=repo.owner,
        description=repo.description,
        url=repo.url,
        is_private=repo.is_private,
        created_at=repo.created_at,
        updated_at=repo.updated_at,
    )


def to_commit_info(commit: Commit) -> CommitInfo:
    """Convert a commit row to a :class:`CommitInfo` DTO."""
    return CommitInfo(
        id=commit.id,
        repository_id=commit.repository_id,
        webhook_event_id=commit.webhook_event_id,
        sha=commit.sha,
        message=commit.message,
        author_name=commit.author_name,
        author_email=commit.author_email,
        committer_name=commit.committer_name,
        committer_email=commit.committer_email,
        committed_at=commit.committed_at,
        url=commit.url,
    )


def to_pull_request_info(pr: PullRequest) -> PullRequestInfo:
    """Convert a pull request row to a :class:`PullRequestInfo` DTO."""
    return PullRequestInfo(
        id=pr.id,
        repository_id=pr.repository_id,
        webhook_event_id=pr.webhook_event_id,
        github_id=pr.github_id,
        number=pr.number,
        title=pr.title,
        state=pr.state,
        author=pr.author,
        base_branch=pr.base_branch,
        head_branch=pr.head_branch,
        url=pr.url,
        opened_at=pr.opened_at,
        closed_at=pr.closed_at,
        merged_at=pr.merged_at,
        updated_at=pr.updated_at,
    )


def to_issue_info(issue: Issue) -> IssueInfo:
    """Convert an issue row to an :class:`IssueInfo` DTO."""
    return IssueInfo(
        id=issue.id,
        repository_id=issue.repository_id,
        webhook_event_id=issue.webhook_event_id,
        github_id=issue.github_id,
        number=issue.number,
        title=issue.title,
        state=issue.state,
        author=issue.author,
        labels=tuple(issue.labels),
        url=issue.url,
        opened_at=issue.opened_at,
        closed_at=issue.closed_at,
        updated_at=issue.updated_at,
    )


def to_raw_event_info(raw_event: RawEvent) -> RawEventInfo:
    """Convert a raw event row to a :class:`RawEventInfo` DTO."""
    return RawEventInfo(
        id=raw_event.id,
        repository_id=raw_event.repository_id,
        delivery_id=raw_event.delivery_id,
        event_type=raw_event.event_type,
        event_action=raw_event.event_action,
        received_at=raw_event.received_at,
        processed=raw_event.processed,
        processed_at=raw_event.processed_at,
        processing_error=raw_event.processing_error,
    )
