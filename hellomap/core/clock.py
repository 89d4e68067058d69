"""
Timestamps

Everything written to the ledger is an ISO-8601 UTC string with millisecond
precision and a Z suffix, e.g. 2024-05-01T12:30:00.000Z.

Reading is lenient: legacy data may carry numeric epochs, and anything that
cannot be parsed resolves to the epoch instead of raising.
"""

from datetime import datetime, timezone
from typing import Any, Optional


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Numeric epochs below this are seconds, at or above it milliseconds
MILLISECONDS_THRESHOLD = 10 ** 12


def format_timestamp(moment: datetime) -> str:
    """Format an aware datetime the way the ledger stores it."""
    if moment.tzinfo is None:
        raise ValueError("Ledger timestamps must be timezone-aware")
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def _from_epoch(value: float) -> datetime:
    if abs(value) >= MILLISECONDS_THRESHOLD:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EPOCH


def parse_timestamp(value: Any) -> datetime:
    """
    Resolve a stored timestamp to an aware UTC datetime.

    Accepts:
    - ISO-8601 strings (a trailing Z is understood, naive values are UTC)
    - ints/floats, and numeric strings, as epoch seconds or milliseconds

    Never raises: None, booleans and garbage resolve to EPOCH.
    """
    if value is None or isinstance(value, bool):
        return EPOCH

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return EPOCH
        return _from_epoch(float(value))

    if not isinstance(value, str):
        return EPOCH

    text = value.strip()
    if not text:
        return EPOCH

    numeric = _as_number(text)
    if numeric is not None:
        return _from_epoch(numeric)

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_number(text: str) -> Optional[float]:
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number
