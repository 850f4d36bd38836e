"""Shared parsing helpers for provider payloads: dates, ages, numbers."""

import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%Y/%m/%d")
_NUMERIC = re.compile(r"^\d+(\.\d+)?$")
# Epoch values above this are milliseconds (year 5138 in seconds)
_MILLIS_THRESHOLD = 100_000_000_000


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a provider date into an aware UTC datetime.
    Accepts epoch seconds or milliseconds (int, float or numeric string),
    ISO-8601 datetimes (with Z or offset) and plain dates.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    text = str(value).strip()
    if not text:
        return None
    if _NUMERIC.match(text):
        return _from_epoch(float(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text[:19], fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _from_epoch(number: float) -> Optional[datetime]:
    if number >= _MILLIS_THRESHOLD:
        number = number / 1000.0
    try:
        return datetime.fromtimestamp(number, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_iso(dt: datetime) -> str:
    """Single ISO-8601 representation used across standardized records."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_iso8601(value: Any) -> Optional[str]:
    """Convert any supported provider date encoding to ISO-8601, or None."""
    dt = parse_datetime(value)
    return format_iso(dt) if dt else None


def age_hours(created: Any, now: Optional[datetime] = None) -> int:
    """Whole hours elapsed since created (0 when unknown or in the future)."""
    dt = parse_datetime(created)
    if dt is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return max(0, round((now - dt).total_seconds() / 3600))


def age_days(created: Any, now: Optional[datetime] = None) -> int:
    """Whole days elapsed since created."""
    return round(age_hours(created, now) / 24)


def to_float(value: Any) -> Optional[float]:
    """Parse a numeric property (HubSpot sends numbers as strings). NaN/inf -> None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def to_int(value: Any) -> Optional[int]:
    """Parse an integer property, tolerating '3.0'."""
    number = to_float(value)
    return int(number) if number is not None else None


def clean_str(value: Any) -> Optional[str]:
    """Strip a value to a non-empty string, else None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
