"""Shared Bronze-layer error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when datetime inputs lack timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating a bound column value was naive."""
        return cls("datetime column values")


class RawEventPersistError(RuntimeError):
    """Raised when a delivery conflicts but its raw event cannot be found."""

    def __init__(self, delivery_id: str) -> None:
        """Include the delivery id for operator diagnostics."""
        self.delivery_id = delivery_id
        super().__init__(
            f"delivery {delivery_id!r} conflicted but no raw event row exists"
        )

