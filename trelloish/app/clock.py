"""UTC helpers shared by models and services."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Returns `value` as an aware UTC datetime.

    SQLite drops tzinfo on DateTime(timezone=True) columns; every timestamp
    this app writes is UTC, so a naive value read back is UTC too.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value is not None else None
