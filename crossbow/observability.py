"""Emit structured observability events for webhook ingestion.

This module defines event identifiers and a logger wrapper used by the
webhook pipeline and the extraction dispatcher. Messages follow the
``[event.type] key=value`` convention so log processors can parse them
without a schema.

Usage
-----
>>> event_logger = IngestionEventLogger()
>>> event_logger.log_delivery_accepted(
...     delivery_id="72d3162e-cc78-11e3-81ab-4c9367dc0958",
...     event_type="push",
...     raw_event_id=7,
... )

The signing secret and request bodies are never passed to this module.
"""

from __future__ import annotations

import enum
import typing as typ

from crossbow.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    from crossbow.silver.extraction import ExtractionResult

logger = get_logger(__name__)


class IngestionEventType(enum.StrEnum):
    """Structured log event types for webhook ingestion."""

    DELIVERY_ACCEPTED = "ingestion.delivery.accepted"
    DELIVERY_DUPLICATE = "ingestion.delivery.duplicate"
    DELIVERY_REJECTED = "ingestion.delivery.rejected"
    DELIVERY_STORAGE_FAILED = "ingestion.delivery.storage_failed"
    EXTRACTION_COMPLETED = "ingestion.extraction.completed"
    EXTRACTION_FAILED = "ingestion.extraction.failed"
    ANNOTATION_FAILED = "ingestion.extraction.annotation_failed"


class IngestionEventLogger:
    """Emit structured ingestion events via femtologging."""

    def log_delivery_accepted(
        self, *, delivery_id: str, event_type: str, raw_event_id: int
    ) -> None:
        """Log a delivery that was admitted and persisted."""
        log_info(
            logger,
            "[%s] delivery_id=%s event_type=%s raw_event_id=%s",
            IngestionEventType.DELIVERY_ACCEPTED,
            delivery_id,
            event_type,
            raw_event_id,
        )

    def log_delivery_duplicate(
        self, *, delivery_id: str, event_type: str, raw_event_id: int
    ) -> None:
        """Log a redelivery acknowledged without re-extraction.

        Parameters
        ----------
        delivery_id
            The repeated ``X-GitHub-Delivery`` value.
        event_type
            The ``X-GitHub-Event`` value of the redelivery.
        raw_event_id
            Id of the raw event stored by the original delivery.

        """
        log_info(
            logger,
            "[%s] delivery_id=%s event_type=%s raw_event_id=%s",
            IngestionEventType.DELIVERY_DUPLICATE,
            delivery_id,
            event_type,
            raw_event_id,
        )

    def log_delivery_rejected(
        self, *, delivery_id: str | None, reason: str
    ) -> None:
        """Log a delivery refused before any storage access."""
        log_warning(
            logger,
            "[%s] delivery_id=%s reason=%s",
            IngestionEventType.DELIVERY_REJECTED,
            delivery_id,
            reason,
        )

    def log_delivery_storage_failed(
        self, *, delivery_id: str, event_type: str, error: BaseException
    ) -> None:
        """Log a delivery that could not be persisted.

        The sender sees a transient failure and will redeliver.
        """
        log_error(
            logger,
            "[%s] delivery_id=%s event_type=%s error_type=%s error_message=%s",
            IngestionEventType.DELIVERY_STORAGE_FAILED,
            delivery_id,
            event_type,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_extraction_completed(self, result: ExtractionResult) -> None:
        """Log a processed or skipped extraction with entity counts."""
        log_info(
            logger,
            "[%s] raw_event_id=%s kind=%s status=%s "
            "commits=%s pull_requests=%s issues=%s",
            IngestionEventType.EXTRACTION_COMPLETED,
            result.raw_event_id,
            result.kind,
            result.status,
            result.commits,
            result.pull_requests,
            result.issues,
        )

    def log_extraction_failed(self, result: ExtractionResult) -> None:
        """Log a data-quality failure recorded against a raw event."""
        log_warning(
            logger,
            "[%s] raw_event_id=%s kind=%s reason=%s error_message=%s",
            IngestionEventType.EXTRACTION_FAILED,
            result.raw_event_id,
            result.kind,
            result.reason,
            result.error,
        )

    def log_annotation_failed(
        self, *, raw_event_id: int, error: BaseException
    ) -> None:
        """Log a failure to record an extraction error on its raw event.

        The raw event stays unprocessed and is picked up by reprocessing.
        """
        log_error(
            logger,
            "[%s] raw_event_id=%s error_type=%s error_message=%s",
            IngestionEventType.ANNOTATION_FAILED,
            raw_event_id,
            type(error).__name__,
            str(error),
            exc_info=error,
        )
