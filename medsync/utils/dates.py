"""Date and time utilities."""

from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    """Get the current timezone-aware UTC time."""
    return datetime.now(UTC)


def get_current_timestamp() -> str:
    """Get the current time as an ISO-8601 string."""
    return utcnow().isoformat()


def get_ttl(days: int = 30) -> int:
    """
    Get an expiry hint as unix seconds.

    Args:
        days: Days from now

    Returns:
        Unix timestamp in seconds
    """
    return int((utcnow() + timedelta(days=days)).timestamp())


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string, assuming UTC for naive values."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def to_iso(value: datetime | str | None) -> str | None:
    """Format a datetime as ISO-8601, assuming UTC for naive values."""
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def sort_score(value: str) -> float:
    """Score used to order records by creation time."""
    return parse_iso(value).timestamp()
