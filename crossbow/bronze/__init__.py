"""Bronze layer primitives: raw event storage and delivery admission."""

from __future__ import annotations

from .errors import RawEventPersistError, TimezoneAwareRequiredError
from .ledger import Admission, AdmissionStatus, DeliveryLedger
from .storage import Base, RawEvent, UTCDateTime, init_storage
from .store import DeliveryEnvelope, RawEventStore

__all__ = [
    "Admission",
    "AdmissionStatus",
    "Base",
    "DeliveryEnvelope",
    "DeliveryLedger",
    "RawEvent",
    "RawEventPersistError",
    "RawEventStore",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "init_storage",
]
