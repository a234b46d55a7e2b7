"""Half-open time interval helpers shared by availability and pricing."""

from datetime import datetime, timezone


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """
    True when ``[a_start, a_end)`` and ``[b_start, b_end)`` share an instant.

    Touching intervals (``a_end == b_start``) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def ensure_aware(value: datetime, field: str = "datetime") -> datetime:
    """Return ``value`` in UTC, rejecting naive datetimes."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f"{field} must be timezone-aware")
    return value.astimezone(timezone.utc)
