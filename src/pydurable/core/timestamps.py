"""UTC timestamp parsing and formatting for the host's wire format."""

import re
from datetime import UTC, datetime

__all__ = ["parse_timestamp", "format_timestamp", "ensure_utc"]

# The host writes up to 7 fractional digits (.NET ticks); datetime keeps 6.
_FRACTION = re.compile(r"\.(\d+)")


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp as written by the host.

    Example:
        ```python
        parse_timestamp("2024-05-01T10:00:00.1234567Z")
        # datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=UTC)
        ```

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        raise ValueError(f"Invalid timestamp: {value!r}") from None


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO 8601 UTC with a trailing ``Z``."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")
