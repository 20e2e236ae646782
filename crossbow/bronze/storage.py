"""Persistence models for the Bronze raw event store."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

from crossbow.bronze.errors import TimezoneAwareRequiredError
from crossbow.common.time import utcnow

# SQLite only autoincrements ``INTEGER PRIMARY KEY`` columns.
BigIntegerPK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Declarative base shared by Bronze and Silver models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class RawEvent(Base):
    """Audit record of one accepted webhook delivery.

    ``delivery_id`` is the idempotency key: its uniqueness constraint is what
    turns at-least-once delivery into at-most-once processing.
    """

    __tablename__ = "webhook_events"
    __table_args__ = (
        UniqueConstraint("delivery_id", name="uq_webhook_events_delivery_id"),
        Index("idx_webhook_events_repo", "repository_id"),
        Index("idx_webhook_events_type", "event_type"),
        Index("idx_webhook_events_received", "received_at"),
        Index("idx_webhook_events_processed", "processed"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    repository_id: Mapped[int | None] = mapped_column(
        ForeignKey("repositories.id", ondelete="SET NULL"), default=None
    )
    event_type: Mapped[str] = mapped_column(String(100))
    event_action: Mapped[str | None] = mapped_column(String(100), default=None)
    delivery_id: Mapped[str] = mapped_column(String(255))
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    signature: Mapped[str] = mapped_column(String(255))
    received_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    processed: Mapped[bool] = mapped_column(Boolean, default=False)
    processed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    processing_error: Mapped[str | None] = mapped_column(Text(), default=None)


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent.

    Silver models register on the same metadata, so importing
    :mod:`crossbow.silver.storage` before calling this creates every relation.
    """
    import crossbow.silver.storage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
