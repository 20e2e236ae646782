"""Raw event store: durable, verbatim record of accepted deliveries.

The store never decides whether an event is processed; the extraction
dispatcher calls :meth:`RawEventStore.mark_processed` or
:meth:`RawEventStore.mark_failed` once it has finished with an event.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select, update

from crossbow.bronze.storage import RawEvent
from crossbow.common.time import utcnow
from crossbow.common.upsert import conflict_insert

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

Payload: typ.TypeAlias = dict[str, typ.Any]

# Keep operator-facing annotations bounded; payload dumps belong in logs.
_MAX_ERROR_LENGTH = 2000


@dc.dataclass(frozen=True, slots=True)
class DeliveryEnvelope:
    """One verified webhook delivery, ready to be stored."""

    delivery_id: str
    event_type: str
    payload: Payload
    signature: str
    event_action: str | None = None


class RawEventStore:
    """Session-scoped operations over ``webhook_events``.

    Methods take the caller's session so acceptance (ledger claim, repository
    upsert, repository link) commits or rolls back as one unit.
    """

    async def persist(
        self,
        session: AsyncSession,
        envelope: DeliveryEnvelope,
        repository_id: int | None = None,
    ) -> int | None:
        """Insert the raw event unless its delivery id already exists.

        Returns
        -------
        int | None
            The new row id, or ``None`` when the delivery id conflicted.

        """
        stmt = (
            conflict_insert(session, RawEvent)
            .values(
                repository_id=repository_id,
                event_type=envelope.event_type,
                event_action=envelope.event_action,
                delivery_id=envelope.delivery_id,
                payload=envelope.payload,
                signature=envelope.signature,
                received_at=utcnow(),
                processed=False,
            )
            .on_conflict_do_nothing(index_elements=[RawEvent.delivery_id])
            .returning(RawEvent.id)
        )
        return await session.scalar(stmt)

    async def find_id(self, session: AsyncSession, delivery_id: str) -> int | None:
        """Return the raw event id recorded for ``delivery_id``."""
        return await session.scalar(
            select(RawEvent.id).where(RawEvent.delivery_id == delivery_id)
        )

    async def attach_repository(
        self, session: AsyncSession, raw_event_id: int, repository_id: int
    ) -> None:
        """Point a raw event at the repository its payload references."""
        await session.execute(
            update(RawEvent)
            .where(RawEvent.id == raw_event_id)
            .values(repository_id=repository_id)
        )

    async def mark_processed(self, session: AsyncSession, raw_event_id: int) -> None:
        """Flag a raw event as fully extracted and clear any prior error."""
        await session.execute(
            update(RawEvent)
            .where(RawEvent.id == raw_event_id)
            .values(processed=True, processed_at=utcnow(), processing_error=None)
        )

    async def mark_failed(
        self, session: AsyncSession, raw_event_id: int, error: str
    ) -> None:
        """Annotate a raw event with an extraction error, leaving it pending."""
        await session.execute(
            update(RawEvent)
            .where(RawEvent.id == raw_event_id)
            .values(
                processed=False,
                processed_at=None,
                processing_error=error[:_MAX_ERROR_LENGTH],
            )
        )

    async def get(self, session: AsyncSession, raw_event_id: int) -> RawEvent | None:
        """Load a raw event by primary key."""
        return await session.get(RawEvent, raw_event_id)

    async def pending_ids(
        self, session: AsyncSession, limit: int | None = None
    ) -> list[int]:
        """Return unprocessed raw event ids in arrival order."""
        stmt = (
            select(RawEvent.id)
            .where(RawEvent.processed.is_(False))
            .order_by(RawEvent.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(await session.scalars(stmt))
