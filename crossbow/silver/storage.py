"""Silver entity models normalised from Bronze raw events."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crossbow.bronze.storage import Base, BigIntegerPK, UTCDateTime
from crossbow.common.time import utcnow


class PullRequestState(enum.StrEnum):
    """Normalised pull request lifecycle states."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class IssueState(enum.StrEnum):
    """Normalised issue lifecycle states."""

    OPEN = "open"
    CLOSED = "closed"


class Repository(Base):
    """GitHub repository referenced by at least one delivery."""

    __tablename__ = "repositories"
    __table_args__ = (
        UniqueConstraint("github_id", name="uq_repositories_github_id"),
        UniqueConstraint("full_name", name="uq_repositories_full_name"),
        Index("idx_repositories_owner", "owner"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    github_id: Mapped[int] = mapped_column(BigInteger)
    name: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(255))
    owner: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text(), default=None)
    url: Mapped[str] = mapped_column(String(500))
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    commits: Mapped[list[Commit]] = relationship(
        back_populates="repository", cascade="all, delete-orphan", passive_deletes=True
    )
    pull_requests: Mapped[list[PullRequest]] = relationship(
        back_populates="repository", cascade="all, delete-orphan", passive_deletes=True
    )
    issues: Mapped[list[Issue]] = relationship(
        back_populates="repository", cascade="all, delete-orphan", passive_deletes=True
    )


class Commit(Base):
    """Git commit reported by a push delivery.

    A sha may appear in several repositories (forks) but only once per
    repository, however many pushes resend it.
    """

    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("sha", "repository_id", name="uq_commits_sha_repo"),
        Index("idx_commits_repo", "repository_id"),
        Index("idx_commits_author", "author_email"),
        Index("idx_commits_date", "committed_at"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    webhook_event_id: Mapped[int | None] = mapped_column(
        ForeignKey("webhook_events.id", ondelete="SET NULL"), default=None
    )
    sha: Mapped[str] = mapped_column(String(40))
    message: Mapped[str] = mapped_column(Text())
    author_name: Mapped[str] = mapped_column(String(255))
    author_email: Mapped[str] = mapped_column(String(255))
    committer_name: Mapped[str] = mapped_column(String(255))
    committer_email: Mapped[str] = mapped_column(String(255))
    committed_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    url: Mapped[str] = mapped_column(String(500))
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    repository: Mapped[Repository] = relationship(back_populates="commits")


class PullRequest(Base):
    """Pull request state, mutated in place by later deliveries."""

    __tablename__ = "pull_requests"
    __table_args__ = (
        UniqueConstraint("github_id", name="uq_pull_requests_github_id"),
        Index("idx_pr_repo", "repository_id"),
        Index("idx_pr_state", "state"),
        Index("idx_pr_author", "author"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    webhook_event_id: Mapped[int | None] = mapped_column(
        ForeignKey("webhook_events.id", ondelete="SET NULL"), default=None
    )
    github_id: Mapped[int] = mapped_column(BigInteger)
    number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(Text())
    state: Mapped[str] = mapped_column(String(50))
    author: Mapped[str] = mapped_column(String(255))
    base_branch: Mapped[str] = mapped_column(String(255))
    head_branch: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(500))
    opened_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    closed_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    merged_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    source_updated_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    repository: Mapped[Repository] = relationship(back_populates="pull_requests")


class Issue(Base):
    """Issue state, mutated in place by later deliveries."""

    __tablename__ = "issues"
    __table_args__ = (
        UniqueConstraint("github_id", name="uq_issues_github_id"),
        Index("idx_issues_repo", "repository_id"),
        Index("idx_issues_state", "state"),
        Index("idx_issues_author", "author"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    repository_id: Mapped[int] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    webhook_event_id: Mapped[int | None] = mapped_column(
        ForeignKey("webhook_events.id", ondelete="SET NULL"), default=None
    )
    github_id: Mapped[int] = mapped_column(BigInteger)
    number: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(Text())
    state: Mapped[str] = mapped_column(String(50))
    author: Mapped[str] = mapped_column(String(255))
    labels: Mapped[list[str]] = mapped_column(JSON, default=list)
    url: Mapped[str] = mapped_column(String(500))
    opened_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    closed_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    source_updated_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    repository: Mapped[Repository] = relationship(back_populates="issues")
