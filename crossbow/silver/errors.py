"""Shared Silver-layer error types."""

from __future__ import annotations

import enum


class ExtractionReason(enum.StrEnum):
    """Machine-readable reasons for extraction failures."""

    INVALID_PAYLOAD = "invalid_payload"
    MISSING_REPOSITORY = "missing_repository"
    RAW_EVENT_NOT_FOUND = "raw_event_not_found"
    ENTITY_UPSERT_FAILED = "entity_upsert_failed"


class ExtractionError(Exception):
    """Raised when a recognised event cannot be normalised.

    These are data-quality failures: the raw event stays stored and is
    annotated, and the sender still receives a success acknowledgement.
    """

    def __init__(
        self,
        message: str,
        reason: ExtractionReason | str | None = None,
    ) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def invalid_payload(cls, message: str) -> ExtractionError:
        """Create an error when a payload cannot be decoded or validated."""
        return cls(message, reason=ExtractionReason.INVALID_PAYLOAD)

    @classmethod
    def invalid_datetime(cls, field: str) -> ExtractionError:
        """Signal a timestamp that is not an aware ISO-8601 datetime."""
        return cls.invalid_payload(
            f"{field} is not a timezone-aware ISO-8601 datetime"
        )

    @classmethod
    def missing_repository(cls, event_type: str) -> ExtractionError:
        """Signal a recognised event whose repository could not be resolved."""
        return cls(
            f"{event_type} event does not reference a repository",
            reason=ExtractionReason.MISSING_REPOSITORY,
        )

    @classmethod
    def raw_event_not_found(cls, raw_event_id: int) -> ExtractionError:
        """Signal a reprocessing request for an unknown raw event."""
        return cls(
            f"raw event {raw_event_id} does not exist",
            reason=ExtractionReason.RAW_EVENT_NOT_FOUND,
        )

    @classmethod
    def entity_upsert_failed(cls, exc: Exception) -> ExtractionError:
        """Create an error when an entity upsert is rejected by the database."""
        return cls(
            f"entity upsert failed: {exc}",
            reason=ExtractionReason.ENTITY_UPSERT_FAILED,
        )
