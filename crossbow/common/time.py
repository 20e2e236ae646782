"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def parse_iso_datetime(value: str) -> dt.datetime:
    """Parse an ISO-8601 timestamp that must carry an offset.

    GitHub renders timestamps with a trailing ``Z`` in REST payloads and with
    numeric offsets (``2024-07-02T11:30:00+02:00``) in push payloads. Both are
    normalised to UTC.

    Raises
    ------
    ValueError
        If the string is not ISO-8601 or lacks timezone information.

    """
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = f"timestamp {value!r} must include timezone information"
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)
