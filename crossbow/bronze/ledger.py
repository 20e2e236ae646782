"""Delivery ledger enforcing at-most-once processing per delivery id.

GitHub redelivers a webhook with the same ``X-GitHub-Delivery`` value when it
does not receive a timely 2xx. Admission is a single conflict-detecting
insert on the unique ``delivery_id`` column, so among concurrent admissions of
one id exactly one observes :attr:`AdmissionStatus.FRESH`. Under PostgreSQL
the losing inserts block on the winner's uncommitted row and resolve to
``DO NOTHING`` once it commits; if the winner rolls back, one waiter wins
instead.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from crossbow.bronze.errors import RawEventPersistError
from crossbow.bronze.store import DeliveryEnvelope, RawEventStore

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class AdmissionStatus(enum.StrEnum):
    """Outcome of claiming a delivery id."""

    FRESH = "fresh"
    DUPLICATE = "duplicate"


@dc.dataclass(frozen=True, slots=True)
class Admission:
    """Result of :meth:`DeliveryLedger.admit`.

    ``raw_event_id`` refers to the newly written row for fresh deliveries and
    to the original row for duplicates.
    """

    status: AdmissionStatus
    raw_event_id: int

    @property
    def is_fresh(self) -> bool:
        """Return True when the caller owns processing of this delivery."""
        return self.status is AdmissionStatus.FRESH


class DeliveryLedger:
    """Claim delivery ids through the raw event store's unique constraint."""

    def __init__(self, store: RawEventStore | None = None) -> None:
        """Use ``store`` for the underlying conflict-detecting insert."""
        self._store = store or RawEventStore()

    async def admit(
        self, session: AsyncSession, envelope: DeliveryEnvelope
    ) -> Admission:
        """Claim ``envelope.delivery_id`` and persist its raw event if fresh.

        A duplicate is not an error: the caller acknowledges it to the sender
        without extracting again.

        Raises
        ------
        RawEventPersistError
            If the insert conflicted but the conflicting row is not visible.

        """
        raw_event_id = await self._store.persist(session, envelope)
        if raw_event_id is not None:
            return Admission(AdmissionStatus.FRESH, raw_event_id)

        existing = await self._store.find_id(session, envelope.delivery_id)
        if existing is None:
            raise RawEventPersistError(envelope.delivery_id)
        return Admission(AdmissionStatus.DUPLICATE, existing)
