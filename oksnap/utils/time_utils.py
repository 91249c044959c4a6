"""Calendar helpers for daily quota buckets. All days are UTC."""
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return utc_now()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def today_string(now: Optional[datetime] = None) -> str:
    """YYYY-MM-DD for the UTC day containing `now`."""
    return _as_utc(now).strftime("%Y-%m-%d")


def next_utc_midnight(now: Optional[datetime] = None) -> datetime:
    current = _as_utc(now)
    return (current + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


def to_iso(dt: datetime) -> str:
    """ISO 8601 with a Z suffix and millisecond precision, the format browsers parse everywhere."""
    return _as_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.") + f"{_as_utc(dt).microsecond // 1000:03d}Z"


def parse_iso(value) -> Optional[datetime]:
    """Parse an ISO timestamp (with or without Z). Returns None for anything unparseable."""
    if not value or not isinstance(value, str):
        return None
    try:
        return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None
