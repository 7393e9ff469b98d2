"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def parse_iso(value: str | datetime | None) -> datetime | None:
    """Parse an ISO8601 string stored in a JSONB document back to a datetime."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
