"""Silver layer: normalised repositories, commits, pull requests and issues."""

from __future__ import annotations

from .errors import ExtractionError, ExtractionReason
from .extraction import (
    EventKind,
    ExtractionDispatcher,
    ExtractionResult,
    ExtractionStatus,
    classify_issue_state,
    classify_pull_request_state,
)
from .registry import RepositoryAttributes, RepositoryRegistry
from .reprocess import RawEventReprocessor
from .storage import (
    Commit,
    Issue,
    IssueState,
    PullRequest,
    PullRequestState,
    Repository,
)

__all__ = [
    "Commit",
    "EventKind",
    "ExtractionDispatcher",
    "ExtractionError",
    "ExtractionReason",
    "ExtractionResult",
    "ExtractionStatus",
    "Issue",
    "IssueState",
    "PullRequest",
    "PullRequestState",
    "RawEventReprocessor",
    "Repository",
    "RepositoryAttributes",
    "RepositoryRegistry",
    "classify_issue_state",
    "classify_pull_request_state",
]
