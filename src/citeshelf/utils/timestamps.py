"""Timestamp utilities for citeshelf."""

from datetime import UTC, datetime

__all__ = ["get_iso_timestamp", "utc_now"]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO8601 format with microseconds.

    Returns
    -------
    str
        ISO8601 timestamp with microseconds (e.g., "2026-02-03T12:34:56.123456Z").
    """
    return utc_now().isoformat().replace("+00:00", "Z")
