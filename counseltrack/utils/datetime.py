# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for CounselTrack.

All timestamps are stored and compared as timezone-aware UTC datetimes.
SQLite returns naive datetimes from DateTime columns, so every value read
back from storage goes through ensure_utc() before arithmetic.

Usage:
------
    from counseltrack.utils.datetime import utc_now

    # For SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_ago(days: int, reference: datetime | None = None) -> datetime:
    """Get a datetime N days before reference (default: now).

    Args:
        days: Number of days to go back.
        reference: Point in time to count back from.

    Returns:
        Timezone-aware UTC datetime.
    """
    return (ensure_utc(reference) or utc_now()) - timedelta(days=days)


def hours_ago(hours: float, reference: datetime | None = None) -> datetime:
    """Get a datetime N hours before reference (default: now).

    Args:
        hours: Number of hours to go back.
        reference: Point in time to count back from.

    Returns:
        Timezone-aware UTC datetime.
    """
    return (ensure_utc(reference) or utc_now()) - timedelta(hours=hours)


def time_since(start: datetime, reference: datetime | None = None) -> timedelta:
    """Calculate time elapsed since a start datetime.

    Args:
        start: The start datetime.
        reference: End of the interval (default: now).

    Returns:
        Timedelta since start (negative if start is in the future).
    """
    end = ensure_utc(reference) or utc_now()
    return end - ensure_utc(start)


def hours_since(start: datetime, reference: datetime | None = None) -> float:
    """Elapsed hours since start as a float."""
    return time_since(start, reference).total_seconds() / 3600


def minutes_since(start: datetime, reference: datetime | None = None) -> int:
    """Elapsed whole minutes since start."""
    return int(time_since(start, reference).total_seconds() // 60)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of complete days between two datetimes (floored)."""
    return (ensure_utc(end) - ensure_utc(start)).days


def to_date(dt: datetime) -> date:
    """Calendar date of a datetime in UTC."""
    return ensure_utc(dt).date()


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string or None.
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat()
