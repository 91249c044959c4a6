"""
Per-IP request throttling: fixed 15-minute window, 20 requests, stored in the key-value store.
Fails open like the quota ledger.
"""
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from oksnap.core.plan_limits import RATE_LIMIT_MAX_REQUESTS, RATE_LIMIT_WINDOW_SECONDS
from oksnap.services.kv_store import KeyValueStore
from oksnap.utils.time_utils import Clock, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "rate_limit:"


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after: Optional[int] = None


class RateLimiter:
    def __init__(self, store: KeyValueStore, clock: Clock = utc_now,
                 window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
                 max_requests: int = RATE_LIMIT_MAX_REQUESTS):
        self.store = store
        self._clock = clock
        self.window = timedelta(seconds=window_seconds)
        self.max_requests = max_requests

    def _start_window(self, key: str, now) -> RateLimitResult:
        reset_at = now + self.window
        self._write(key, {"count": 1, "resetTime": to_iso(reset_at)}, reset_at)
        return RateLimitResult(allowed=True)

    def _write(self, key: str, value: dict, expires_at) -> None:
        try:
            self.store.set(key, value, expires_at=expires_at)
        except Exception as e:
            logger.error("[RateLimiter] Write failed for %s, continuing: %s", key, e)

    def check(self, ip_address: str) -> RateLimitResult:
        now = self._clock()
        key = RATE_LIMIT_PREFIX + ip_address
        try:
            record = self.store.get(key)
        except Exception as e:
            logger.error("[RateLimiter] Read failed for %s, allowing request: %s", key, e)
            return RateLimitResult(allowed=True)

        reset_at = parse_iso(record.get("resetTime")) if record else None
        if not record or reset_at is None or now > reset_at:
            return self._start_window(key, now)

        count = int(record.get("count") or 0)
        if count >= self.max_requests:
            retry_after = max(1, math.ceil((reset_at - now).total_seconds()))
            logger.warning("[RateLimiter] %s exceeded %s requests, retry in %ss", ip_address, self.max_requests, retry_after)
            return RateLimitResult(allowed=False, retry_after=retry_after)

        self._write(key, {"count": count + 1, "resetTime": record["resetTime"]}, reset_at)
        return RateLimitResult(allowed=True)
