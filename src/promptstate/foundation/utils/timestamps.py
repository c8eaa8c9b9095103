"""RFC 3339 timestamp helpers.

Bundles carry ``created_at`` as an RFC 3339 string in UTC with second
resolution, e.g. ``2026-01-21T15:04:05Z``. Parsing is strict: a date-only
string, a missing offset, or a space instead of ``T`` is rejected.
"""

import re
from datetime import UTC, datetime

_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,9})?(Z|[+-]\d{2}:\d{2})$"
)


def parse_rfc3339(value: str) -> datetime:
    """Parse a strict RFC 3339 timestamp into an aware datetime.

    Raises:
        ValueError: If the string is not a valid RFC 3339 timestamp
    """
    if not isinstance(value, str) or not _RFC3339_RE.match(value):
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")

    normalized = value
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    # fromisoformat accepts at most microseconds
    match = re.search(r"\.(\d+)", normalized)
    if match and len(match.group(1)) > 6:
        normalized = normalized.replace(match.group(0), "." + match.group(1)[:6], 1)
    return datetime.fromisoformat(normalized)


def is_rfc3339(value: str) -> bool:
    """True if ``value`` parses under the strict profile."""
    try:
        parse_rfc3339(value)
    except ValueError:
        return False
    return True


def format_rfc3339(dt: datetime) -> str:
    """Format as UTC RFC 3339 with second resolution (``...T15:04:05Z``)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_rfc3339_nano(dt: datetime) -> str:
    """Format as UTC RFC 3339 with fractional seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utc_now() -> datetime:
    """Current UTC time truncated to the second."""
    return datetime.now(UTC).replace(microsecond=0)


def filename_timestamp(value: str) -> str:
    """Make a timestamp safe for file names by removing ':' characters.

    Example:
        >>> filename_timestamp("2026-01-21T15:04:05Z")
        '2026-01-21T150405Z'
    """
    return value.replace(":", "")
