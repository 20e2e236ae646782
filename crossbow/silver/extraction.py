"""Extraction dispatcher normalising raw events into Silver entities.

Each recognised event kind maps to one extractor that issues conflict-resolving
upserts. Pull requests and issues converge regardless of delivery order:

- ``closed_at``/``merged_at`` are only filled while unset;
- a merged pull request stays merged;
- every other field follows the incoming event only when its ``updated_at``
  is not older than the stored one.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from sqlalchemy import case, func, or_
from sqlalchemy.exc import SQLAlchemyError

from crossbow.bronze.store import RawEventStore
from crossbow.common.time import parse_iso_datetime, utcnow
from crossbow.common.upsert import conflict_insert
from crossbow.observability import IngestionEventLogger
from crossbow.silver.errors import ExtractionError
from crossbow.silver.payloads import (
    GithubIssuesPayload,
    GithubPullRequestPayload,
    GithubPushPayload,
    decode_payload,
)
from crossbow.silver.storage import (
    Commit,
    Issue,
    IssueState,
    PullRequest,
    PullRequestState,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.sql.elements import ColumnElement

    from crossbow.common.upsert import ConflictInsert
    from crossbow.silver.payloads import GithubIssue, GithubPullRequest

Payload: typ.TypeAlias = dict[str, typ.Any]


class EventKind(enum.StrEnum):
    """Webhook event categories the dispatcher distinguishes."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"
    ISSUES = "issues"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_event_type(cls, event_type: str) -> EventKind:
        """Map an ``X-GitHub-Event`` value onto a kind."""
        try:
            kind = cls(event_type)
        except ValueError:
            return cls.UNRECOGNIZED
        return kind


class ExtractionStatus(enum.StrEnum):
    """Terminal state of one extraction attempt."""

    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dc.dataclass(frozen=True, slots=True)
class EntityCounts:
    """Number of entity rows upserted by one extraction."""

    commits: int = 0
    pull_requests: int = 0
    issues: int = 0


@dc.dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Outcome of :meth:`ExtractionDispatcher.extract`."""

    raw_event_id: int
    kind: EventKind
    status: ExtractionStatus
    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    error: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        """Return True when the raw event was marked processed."""
        return self.status is not ExtractionStatus.FAILED


def classify_pull_request_state(pull_request: GithubPullRequest) -> PullRequestState:
    """Collapse GitHub's ``state``/``merged`` pair into one lifecycle state."""
    if pull_request.merged or pull_request.merged_at is not None:
        return PullRequestState.MERGED
    if pull_request.state == PullRequestState.CLOSED:
        return PullRequestState.CLOSED
    return PullRequestState.OPEN


def classify_issue_state(issue: GithubIssue) -> IssueState:
    """Map GitHub's issue ``state`` onto :class:`IssueState`."""
    if issue.state == IssueState.CLOSED:
        return IssueState.CLOSED
    return IssueState.OPEN


def _timestamp(value: str, field: str) -> dt.datetime:
    try:
        return parse_iso_datetime(value)
    except ValueError as exc:
        raise ExtractionError.invalid_datetime(field) from exc


def _optional_timestamp(value: str | None, field: str) -> dt.datetime | None:
    return None if value is None else _timestamp(value, field)


def _is_current(
    stmt: ConflictInsert, model: type[PullRequest] | type[Issue]
) -> ColumnElement[bool]:
    """Return whether the incoming row is at least as recent as the stored one.

    A missing ``updated_at`` on either side cannot prove staleness, so it
    counts as current.
    """
    incoming = stmt.excluded.source_updated_at
    stored = model.source_updated_at
    return or_(stored.is_(None), incoming.is_(None), incoming >= stored)


def _when_current(
    current: ColumnElement[bool], stmt: ConflictInsert, model: type[typ.Any], name: str
) -> ColumnElement[typ.Any]:
    return case((current, stmt.excluded[name]), else_=getattr(model, name))


class ExtractionDispatcher:
    """Route stored deliveries to per-kind extractors.

    Every extraction runs in its own transaction together with
    :meth:`RawEventStore.mark_processed`. On failure that transaction rolls
    back and a second one records the error on the raw event.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: RawEventStore | None = None,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Store collaborators used by extraction runs."""
        self._session_factory = session_factory
        self._store = store or RawEventStore()
        self._event_logger = event_logger or IngestionEventLogger()

    async def extract(
        self,
        event_type: str,
        payload: Payload,
        raw_event_id: int,
        repository_id: int | None,
    ) -> ExtractionResult:
        """Normalise one raw event and mark it processed.

        Never raises for data-quality or storage problems; the returned
        result carries the failure instead.
        """
        kind = EventKind.from_event_type(event_type)
        try:
            async with self._session_factory() as session, session.begin():
                counts = await self._apply(
                    session, kind, payload, raw_event_id, repository_id
                )
                await self._store.mark_processed(session, raw_event_id)
        except ExtractionError as exc:
            return await self._fail(raw_event_id, kind, exc)
        except SQLAlchemyError as exc:
            return await self._fail(
                raw_event_id, kind, ExtractionError.entity_upsert_failed(exc)
            )

        status = (
            ExtractionStatus.SKIPPED
            if kind is EventKind.UNRECOGNIZED
            else ExtractionStatus.PROCESSED
        )
        result = ExtractionResult(
            raw_event_id=raw_event_id,
            kind=kind,
            status=status,
            commits=counts.commits,
            pull_requests=counts.pull_requests,
            issues=counts.issues,
        )
        self._event_logger.log_extraction_completed(result)
        return result

    async def _apply(
        self,
        session: AsyncSession,
        kind: EventKind,
        payload: Payload,
        raw_event_id: int,
        repository_id: int | None,
    ) -> EntityCounts:
        match kind:
            case EventKind.UNRECOGNIZED:
                return EntityCounts()
            case EventKind.PUSH:
                push = decode_payload(payload, GithubPushPayload)
                repo_id = self._require_repository(kind, repository_id)
                return EntityCounts(
                    commits=await self._upsert_commits(
                        session, push, raw_event_id, repo_id
                    )
                )
            case EventKind.PULL_REQUEST:
                pr = decode_payload(payload, GithubPullRequestPayload)
                repo_id = self._require_repository(kind, repository_id)
                await self._upsert_pull_request(
                    session, pr.pull_request, raw_event_id, repo_id
                )
                return EntityCounts(pull_requests=1)
            case EventKind.ISSUES:
                issues = decode_payload(payload, GithubIssuesPayload)
                repo_id = self._require_repository(kind, repository_id)
                await self._upsert_issue(session, issues.issue, raw_event_id, repo_id)
                return EntityCounts(issues=1)
            case _:
                typ.assert_never(kind)

    @staticmethod
    def _require_repository(kind: EventKind, repository_id: int | None) -> int:
        if repository_id is None:
            raise ExtractionError.missing_repository(kind)
        return repository_id

    async def _upsert_commits(
        self,
        session: AsyncSession,
        push: GithubPushPayload,
        raw_event_id: int,
        repository_id: int,
    ) -> int:
        """Upsert each pushed commit on ``(sha, repository_id)``."""
        for commit in push.commits:
            values = {
                "message": commit.message,
                "author_name": commit.author.name,
                "author_email": commit.author.email,
                "committer_name": commit.committer.name,
                "committer_email": commit.committer.email,
                "committed_at": _timestamp(commit.timestamp, "commits.timestamp"),
                "url": commit.url,
            }
            stmt = (
                conflict_insert(session, Commit)
                .values(
                    sha=commit.id,
                    repository_id=repository_id,
                    webhook_event_id=raw_event_id,
                    created_at=utcnow(),
                    **values,
                )
                .on_conflict_do_update(
                    index_elements=[Commit.sha, Commit.repository_id], set_=values
                )
            )
            await session.execute(stmt)
        return len(push.commits)

    async def _upsert_pull_request(
        self,
        session: AsyncSession,
        pull_request: GithubPullRequest,
        raw_event_id: int,
        repository_id: int,
    ) -> None:
        now = utcnow()
        stmt = conflict_insert(session, PullRequest).values(
            repository_id=repository_id,
            webhook_event_id=raw_event_id,
            github_id=pull_request.id,
            number=pull_request.number,
            title=pull_request.title,
            state=classify_pull_request_state(pull_request).value,
            author=pull_request.user.login,
            base_branch=pull_request.base.ref,
            head_branch=pull_request.head.ref,
            url=pull_request.html_url,
            opened_at=_timestamp(pull_request.created_at, "pull_request.created_at"),
            closed_at=_optional_timestamp(
                pull_request.closed_at, "pull_request.closed_at"
            ),
            merged_at=_optional_timestamp(
                pull_request.merged_at, "pull_request.merged_at"
            ),
            source_updated_at=_optional_timestamp(
                pull_request.updated_at, "pull_request.updated_at"
            ),
            created_at=now,
            updated_at=now,
        )
        current = _is_current(stmt, PullRequest)
        merged = PullRequestState.MERGED.value
        set_: dict[str, typ.Any] = {
            name: _when_current(current, stmt, PullRequest, name)
            for name in (
                "repository_id",
                "webhook_event_id",
                "number",
                "title",
                "author",
                "base_branch",
                "head_branch",
                "url",
                "opened_at",
            )
        }
        set_ |= {
            "state": case(
                (PullRequest.state == merged, PullRequest.state),
                (stmt.excluded.state == merged, stmt.excluded.state),
                (current, stmt.excluded.state),
                else_=PullRequest.state,
            ),
            "closed_at": func.coalesce(PullRequest.closed_at, stmt.excluded.closed_at),
            "merged_at": func.coalesce(PullRequest.merged_at, stmt.excluded.merged_at),
            "source_updated_at": case(
                (
                    current,
                    func.coalesce(
                        stmt.excluded.source_updated_at, PullRequest.source_updated_at
                    ),
                ),
                else_=PullRequest.source_updated_at,
            ),
            "updated_at": now,
        }
        await session.execute(
            stmt.on_conflict_do_update(
                index_elements=[PullRequest.github_id], set_=set_
            )
        )

    async def _upsert_issue(
        self,
        session: AsyncSession,
        issue: GithubIssue,
        raw_event_id: int,
        repository_id: int,
    ) -> None:
        now = utcnow()
        stmt = conflict_insert(session, Issue).values(
            repository_id=repository_id,
            webhook_event_id=raw_event_id,
            github_id=issue.id,
            number=issue.number,
            title=issue.title,
            state=classify_issue_state(issue).value,
            author=issue.user.login,
            labels=[label.name for label in issue.labels],
            url=issue.html_url,
            opened_at=_timestamp(issue.created_at, "issue.created_at"),
            closed_at=_optional_timestamp(issue.closed_at, "issue.closed_at"),
            source_updated_at=_optional_timestamp(
                issue.updated_at, "issue.updated_at"
            ),
            created_at=now,
            updated_at=now,
        )
        current = _is_current(stmt, Issue)
        set_: dict[str, typ.Any] = {
            name: _when_current(current, stmt, Issue, name)
            for name in (
                "repository_id",
                "webhook_event_id",
                "number",
                "title",
                "state",
                "author",
                "labels",
                "url",
                "opened_at",
            )
        }
        set_ |= {
            "closed_at": func.coalesce(Issue.closed_at, stmt.excluded.closed_at),
            "source_updated_at": case(
                (
                    current,
                    func.coalesce(
                        stmt.excluded.source_updated_at, Issue.source_updated_at
                    ),
                ),
                else_=Issue.source_updated_at,
            ),
            "updated_at": now,
        }
        await session.execute(
            stmt.on_conflict_do_update(index_elements=[Issue.github_id], set_=set_)
        )

    async def _fail(
        self, raw_event_id: int, kind: EventKind, exc: ExtractionError
    ) -> ExtractionResult:
        result = ExtractionResult(
            raw_event_id=raw_event_id,
            kind=kind,
            status=ExtractionStatus.FAILED,
            error=str(exc),
            reason=exc.reason,
        )
        self._event_logger.log_extraction_failed(result)
        try:
            async with self._session_factory() as session, session.begin():
                await self._store.mark_failed(session, raw_event_id, str(exc))
        except SQLAlchemyError as annotation_exc:
            self._event_logger.log_annotation_failed(
                raw_event_id=raw_event_id, error=annotation_exc
            )
        return result
