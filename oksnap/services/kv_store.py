"""
Key-value storage for quota and rate-limit counters.

SupabaseKeyValueStore persists to the `rate_limits` table so counters survive across serverless
invocations. InMemoryKeyValueStore is for a single local process and for tests.
Transport failures propagate as ExternalServiceError; callers decide whether to fail open.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from oksnap.core.errors import TableNotFoundError
from oksnap.db.supabase import SupabaseRestClient, eq
from oksnap.utils.time_utils import parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

RATE_LIMITS_TABLE = "rate_limits"

# How often InMemoryKeyValueStore sweeps out expired keys on write
PURGE_INTERVAL = timedelta(minutes=1)


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[dict]:
        ...

    @abstractmethod
    def set(self, key: str, value: dict, expires_at: Optional[datetime] = None) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store. Expired entries are dropped on read, and writes sweep all expired
    keys at most once per PURGE_INTERVAL so one-off keys do not accumulate.
    """

    def __init__(self, clock=utc_now):
        self._data: dict[str, tuple[dict, Optional[datetime]]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._next_purge: Optional[datetime] = None

    def _purge_expired(self, now: datetime) -> None:
        expired = [k for k, (_, expires_at) in self._data.items() if expires_at is not None and expires_at <= now]
        for key in expired:
            del self._data[key]
        self._next_purge = now + PURGE_INTERVAL

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._data[key]
                return None
            return dict(value)

    def set(self, key: str, value: dict, expires_at: Optional[datetime] = None) -> bool:
        now = self._clock()
        with self._lock:
            if self._next_purge is None or now >= self._next_purge:
                self._purge_expired(now)
            self._data[key] = (dict(value), expires_at)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class SupabaseKeyValueStore(KeyValueStore):
    """
    One row per key in `rate_limits`. The JSON value lives in `value`; the structured columns
    (count, reset_time, date, level, bonus_applied) are denormalized copies for querying in the dashboard.
    """

    def __init__(self, client: Optional[SupabaseRestClient], table: str = RATE_LIMITS_TABLE):
        self.client = client
        self.table = table

    def get(self, key: str) -> Optional[dict]:
        if self.client is None:
            logger.warning("[kv_store] Supabase not configured, falling back to empty state")
            return None
        try:
            rows = self.client.select(self.table, filters={"key": eq(key)})
        except TableNotFoundError:
            # Table not created yet; the first successful write will tell the operator
            return None
        if not rows:
            return None
        return _row_to_value(rows[0])

    def set(self, key: str, value: dict, expires_at: Optional[datetime] = None) -> bool:
        if self.client is None:
            logger.warning("[kv_store] Supabase not configured, skipping write for %s", key)
            return False
        record = {
            "key": key,
            "value": json.dumps(value),
            "updated_at": to_iso(utc_now()),
            "count": value.get("count"),
            "reset_time": _iso_or_none(value.get("resetTime")),
            "date": value.get("date"),
            "level": value.get("level"),
            "bonus_applied": bool(value.get("bonusApplied", False)),
        }
        if expires_at is not None:
            record["expires_at"] = to_iso(expires_at)
        try:
            self.client.upsert(self.table, record)
        except TableNotFoundError:
            logger.warning(
                "[kv_store] Table '%s' not found. Create it before enabling persistent quotas.", self.table
            )
            return False
        return True

    def delete(self, key: str) -> bool:
        if self.client is None:
            return False
        try:
            self.client.delete(self.table, {"key": eq(key)})
        except TableNotFoundError:
            return False
        return True


def _iso_or_none(value) -> Optional[str]:
    if value is None:
        return None
    parsed = parse_iso(value)
    return to_iso(parsed) if parsed else None


def _row_to_value(row: dict) -> Optional[dict]:
    raw = row.get("value")
    if raw:
        if isinstance(raw, dict):
            return raw
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[kv_store] Unparseable value for key %s, ignoring", row.get("key"))
            return None
        return parsed if isinstance(parsed, dict) else None
    # Legacy rows: reconstruct from columns
    return {
        "count": row.get("count") or 0,
        "resetTime": row.get("reset_time") or row.get("resetTime"),
        "date": row.get("date") or row.get("date_string"),
        "level": row.get("level"),
        "bonusApplied": bool(row.get("bonus_applied") or False),
    }
