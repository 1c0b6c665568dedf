"""UTC helpers for timestamps stored on messages and relationships."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a timestamp read back without tzinfo.

    SQLite stores ``DateTime`` columns as naive text, so rows loaded from it
    lose the zone ``utcnow`` wrote. Aware values are converted to UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
