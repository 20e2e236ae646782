"""Webhook ingestion pipeline.

``WebhookPipeline.handle`` runs one delivery through verification, admission,
repository upsert, raw event persistence and extraction, and reports the
result as an :class:`IngestionOutcome` instead of raising. The HTTP layer maps
outcomes to status codes.

Acceptance (admission, repository upsert, repository link) commits as one
transaction before extraction starts, so an extraction failure never removes
the stored raw event.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

import msgspec
from sqlalchemy.exc import SQLAlchemyError

from crossbow.bronze.errors import RawEventPersistError
from crossbow.bronze.ledger import DeliveryLedger
from crossbow.bronze.store import DeliveryEnvelope, RawEventStore
from crossbow.observability import IngestionEventLogger
from crossbow.signature import verify
from crossbow.silver.extraction import ExtractionDispatcher
from crossbow.silver.payloads import repository_from_payload
from crossbow.silver.registry import RepositoryAttributes, RepositoryRegistry

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from crossbow.silver.extraction import ExtractionResult

MAX_DELIVERY_ID_LENGTH = 255
MAX_EVENT_TYPE_LENGTH = 100


class OutcomeKind(enum.StrEnum):
    """Sender-visible result of handling one delivery."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    STORAGE_FAILURE = "storage_failure"


class ErrorKind(enum.StrEnum):
    """Error taxonomy attached to non-accepted outcomes and failed extractions."""

    AUTHENTICATION = "authentication"
    MALFORMED_REQUEST = "malformed_request"
    DUPLICATE = "duplicate"
    STORAGE = "storage"
    EXTRACTION = "extraction"


@dc.dataclass(frozen=True, slots=True)
class WebhookRequest:
    """Transport-neutral view of an inbound delivery."""

    raw_body: bytes
    event_type: str | None
    delivery_id: str | None
    signature: str | None


@dc.dataclass(frozen=True, slots=True)
class IngestionOutcome:
    """Result of :meth:`WebhookPipeline.handle`.

    ``error_kind`` is set for every outcome other than a clean acceptance; an
    accepted delivery whose extraction failed carries
    :attr:`ErrorKind.EXTRACTION` while remaining acknowledged.
    """

    kind: OutcomeKind
    delivery_id: str | None = None
    raw_event_id: int | None = None
    repository_id: int | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    extraction: ExtractionResult | None = None

    @property
    def acknowledged(self) -> bool:
        """Return True when the sender should receive a success response."""
        return self.kind in {OutcomeKind.ACCEPTED, OutcomeKind.DUPLICATE}


class _MalformedRequestError(ValueError):
    """Raised internally when headers or body fail structural validation."""


def _require_header(name: str, value: str | None, max_length: int) -> str:
    if not value:
        msg = f"missing {name} header"
        raise _MalformedRequestError(msg)
    if len(value) > max_length:
        msg = f"{name} header exceeds {max_length} characters"
        raise _MalformedRequestError(msg)
    return value


def _decode_body(raw_body: bytes) -> dict[str, typ.Any]:
    try:
        return msgspec.json.decode(raw_body, type=dict[str, typ.Any])
    except msgspec.DecodeError as exc:
        msg = f"body is not a JSON object: {exc}"
        raise _MalformedRequestError(msg) from exc


class WebhookPipeline:
    """Orchestrate ingestion of signed GitHub deliveries.

    Parameters
    ----------
    secret
        Shared webhook signing secret. Never logged or persisted.
    session_factory
        Factory producing sessions bound to the ingestion database.

    """

    def __init__(  # noqa: PLR0913
        self,
        secret: str | bytes,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        ledger: DeliveryLedger | None = None,
        registry: RepositoryRegistry | None = None,
        store: RawEventStore | None = None,
        dispatcher: ExtractionDispatcher | None = None,
        event_logger: IngestionEventLogger | None = None,
    ) -> None:
        """Wire collaborators, defaulting to the standard implementations."""
        self._secret = secret
        self._session_factory = session_factory
        self._store = store or RawEventStore()
        self._ledger = ledger or DeliveryLedger(self._store)
        self._registry = registry or RepositoryRegistry()
        self._event_logger = event_logger or IngestionEventLogger()
        self._dispatcher = dispatcher or ExtractionDispatcher(
            session_factory, store=self._store, event_logger=self._event_logger
        )

    async def handle(self, request: WebhookRequest) -> IngestionOutcome:
        """Ingest one delivery and report what the sender should be told."""
        if not verify(self._secret, request.raw_body, request.signature):
            self._event_logger.log_delivery_rejected(
                delivery_id=request.delivery_id, reason=ErrorKind.AUTHENTICATION
            )
            return IngestionOutcome(
                OutcomeKind.UNAUTHORIZED,
                delivery_id=request.delivery_id,
                error_kind=ErrorKind.AUTHENTICATION,
                message="invalid or missing signature",
            )

        try:
            envelope = self._envelope(request)
        except _MalformedRequestError as exc:
            self._event_logger.log_delivery_rejected(
                delivery_id=request.delivery_id, reason=str(exc)
            )
            return IngestionOutcome(
                OutcomeKind.BAD_REQUEST,
                delivery_id=request.delivery_id,
                error_kind=ErrorKind.MALFORMED_REQUEST,
                message=str(exc),
            )

        try:
            accepted = await self._accept(envelope)
        except (SQLAlchemyError, RawEventPersistError) as exc:
            self._event_logger.log_delivery_storage_failed(
                delivery_id=envelope.delivery_id,
                event_type=envelope.event_type,
                error=exc,
            )
            return IngestionOutcome(
                OutcomeKind.STORAGE_FAILURE,
                delivery_id=envelope.delivery_id,
                error_kind=ErrorKind.STORAGE,
                message="raw event could not be persisted",
            )

        if accepted.kind is OutcomeKind.DUPLICATE:
            return accepted

        extraction = await self._dispatcher.extract(
            envelope.event_type,
            envelope.payload,
            typ.cast("int", accepted.raw_event_id),
            accepted.repository_id,
        )
        return dc.replace(
            accepted,
            extraction=extraction,
            error_kind=None if extraction.succeeded else ErrorKind.EXTRACTION,
            message=extraction.error,
        )

    @staticmethod
    def _envelope(request: WebhookRequest) -> DeliveryEnvelope:
        event_type = _require_header(
            "X-GitHub-Event", request.event_type, MAX_EVENT_TYPE_LENGTH
        )
        delivery_id = _require_header(
            "X-GitHub-Delivery", request.delivery_id, MAX_DELIVERY_ID_LENGTH
        )
        payload = _decode_body(request.raw_body)
        action = payload.get("action")
        return DeliveryEnvelope(
            delivery_id=delivery_id,
            event_type=event_type,
            payload=payload,
            # Verified above, so the header is present.
            signature=typ.cast("str", request.signature),
            event_action=action if isinstance(action, str) else None,
        )

    async def _accept(self, envelope: DeliveryEnvelope) -> IngestionOutcome:
        """Admit and persist a delivery in one transaction.

        Duplicates roll back without touching the registry.
        """
        repository = repository_from_payload(envelope.payload)
        async with self._session_factory() as session:
            admission = await self._ledger.admit(session, envelope)
            if not admission.is_fresh:
                await session.rollback()
                self._event_logger.log_delivery_duplicate(
                    delivery_id=envelope.delivery_id,
                    event_type=envelope.event_type,
                    raw_event_id=admission.raw_event_id,
                )
                return IngestionOutcome(
                    OutcomeKind.DUPLICATE,
                    delivery_id=envelope.delivery_id,
                    raw_event_id=admission.raw_event_id,
                    error_kind=ErrorKind.DUPLICATE,
                )

            repository_id = None
            if repository is not None:
                repository_id = await self._registry.upsert(
                    session,
                    repository.id,
                    RepositoryAttributes.from_payload(repository),
                )
                await self._store.attach_repository(
                    session, admission.raw_event_id, repository_id
                )
            await session.commit()

        self._event_logger.log_delivery_accepted(
            delivery_id=envelope.delivery_id,
            event_type=envelope.event_type,
            raw_event_id=admission.raw_event_id,
        )
        return IngestionOutcome(
            OutcomeKind.ACCEPTED,
            delivery_id=envelope.delivery_id,
            raw_event_id=admission.raw_event_id,
            repository_id=repository_id,
        )
