"""Operator tooling for re-running extraction over stored raw events."""

from __future__ import annotations

import typing as typ

from sqlalchemy import select

from crossbow.bronze.storage import RawEvent
from crossbow.bronze.store import RawEventStore
from crossbow.silver.extraction import ExtractionDispatcher, ExtractionResult

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

ProcessedIds: typ.TypeAlias = list[int]


class RawEventReprocessor:
    """Replay extraction for raw events left unprocessed.

    Extraction upserts are idempotent, so replaying an event that was already
    (partially) applied converges on the same rows.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: ExtractionDispatcher | None = None,
        store: RawEventStore | None = None,
    ) -> None:
        """Store the session factory and extraction collaborators."""
        self._session_factory = session_factory
        self._store = store or RawEventStore()
        self._dispatcher = dispatcher or ExtractionDispatcher(
            session_factory, store=self._store
        )

    async def process_pending(self, limit: int | None = None) -> ProcessedIds:
        """Extract pending raw events in arrival order.

        Returns
        -------
        list[int]
            Ids of raw events that were marked processed during this run.

        """
        async with self._session_factory() as session:
            pending = await self._store.pending_ids(session, limit)
        return await self.process_raw_event_ids(pending)

    async def process_raw_event_ids(
        self, raw_event_ids: typ.Sequence[int]
    ) -> ProcessedIds:
        """Extract the given raw events, regardless of current state."""
        results = await self.replay(raw_event_ids)
        return [result.raw_event_id for result in results if result.succeeded]

    async def replay(
        self, raw_event_ids: typ.Sequence[int]
    ) -> list[ExtractionResult]:
        """Extract the given raw events and return every result."""
        if not raw_event_ids:
            return []

        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(
                        RawEvent.id,
                        RawEvent.event_type,
                        RawEvent.payload,
                        RawEvent.repository_id,
                    )
                    .where(RawEvent.id.in_(raw_event_ids))
                    .order_by(RawEvent.id)
                )
            ).all()

        return [
            await self._dispatcher.extract(
                row.event_type, row.payload, row.id, row.repository_id
            )
            for row in rows
        ]
