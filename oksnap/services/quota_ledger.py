"""
Daily scan-quota accounting.
Handles per-tier daily limits (guest: 3, free: 5), lazy reset at UTC midnight, refunds after a
rewarded action, and the one-time login bonus that forgives guest usage when a visitor signs in.

Quota tracking is best-effort, not a security boundary: every storage failure is logged and
treated as "no record" (fail open), never raised to the caller.
"""
import logging
from typing import Optional

from oksnap.core.errors import ValidationError
from oksnap.core.plan_limits import LOGIN_BONUS_SCANS, get_scan_limit, get_user_level
from oksnap.models.quota import (
    BonusResult,
    DecrementResult,
    GuestUsageRecord,
    QuotaDecision,
    QuotaRecord,
    QuotaStatus,
)
from oksnap.services.kv_store import KeyValueStore
from oksnap.utils.time_utils import Clock, next_utc_midnight, to_iso, today_string, utc_now
from oksnap.utils.tracing import log_event

logger = logging.getLogger(__name__)

DAILY_SCAN_PREFIX = "daily_scan:"
GUEST_SCAN_PREFIX = "guest_scan:"


def guest_identity(ip_address: str) -> str:
    return f"ip_{ip_address}"


def identity_for(user_id: Optional[str], ip_address: Optional[str]) -> str:
    """Authenticated user id, or ip_<address> for anonymous callers."""
    return user_id or guest_identity(ip_address)


class QuotaLedger:
    def __init__(self, store: KeyValueStore, clock: Clock = utc_now):
        self.store = store
        self._clock = clock

    # -- storage helpers (fail open) -------------------------------------------------

    def _today(self) -> str:
        return today_string(self._clock())

    def _load(self, key: str) -> Optional[dict]:
        try:
            return self.store.get(key)
        except Exception as e:
            logger.error("[QuotaLedger] Read failed for %s, treating as no record: %s", key, e)
            return None

    def _save(self, key: str, value: dict) -> bool:
        try:
            saved = self.store.set(key, value, expires_at=next_utc_midnight(self._clock()))
        except Exception as e:
            logger.error("[QuotaLedger] Write failed for %s, continuing: %s", key, e)
            return False
        if not saved:
            logger.warning("[QuotaLedger] Write for %s was not persisted", key)
        return saved

    def _remove(self, key: str) -> None:
        try:
            self.store.delete(key)
        except Exception as e:
            logger.error("[QuotaLedger] Delete failed for %s, continuing: %s", key, e)

    def _load_today(self, identity: str) -> Optional[QuotaRecord]:
        """Today's record for `identity`; stale or unreadable records count as absent."""
        try:
            record = QuotaRecord.from_value(self._load(DAILY_SCAN_PREFIX + identity))
        except (TypeError, ValueError) as e:
            logger.warning("[QuotaLedger] Malformed quota record for %s ignored: %s", identity, e)
            return None
        if record is None or not record.is_for(self._today()):
            return None
        return record

    def _load_guest_today(self, ip_address: str) -> Optional[GuestUsageRecord]:
        try:
            record = GuestUsageRecord.from_value(self._load(GUEST_SCAN_PREFIX + guest_identity(ip_address)))
        except (TypeError, ValueError) as e:
            logger.warning("[QuotaLedger] Malformed guest record for %s ignored: %s", ip_address, e)
            return None
        if record is None or record.date != self._today():
            return None
        return record

    @staticmethod
    def _require_identity(identity: str) -> None:
        if not identity or not isinstance(identity, str):
            raise ValidationError("identity is required")

    # -- core operations ------------------------------------------------------------

    def check_and_consume(self, identity: str, tier: str) -> QuotaDecision:
        """
        Consume one scan for `identity` if today's count is below the tier limit.

        A denied call does not touch stored state and reports the next UTC midnight as reset time.
        Two concurrent calls for the same identity may both succeed at count == limit - 1;
        that overshoot by one is accepted.
        """
        self._require_identity(identity)
        limit = get_scan_limit(tier)
        record = self._load_today(identity)
        count = record.count if record else 0

        if count + 1 > limit:
            log_event(logger, "quota.denied", identity=identity, tier=tier, count=count, limit=limit)
            return QuotaDecision(
                allowed=False,
                remaining=0,
                limit=limit,
                level=tier,
                reset_time=to_iso(next_utc_midnight(self._clock())),
            )

        updated = QuotaRecord(
            count=count + 1,
            date=self._today(),
            level=tier,
            bonus_applied=record.bonus_applied if record else False,
        )
        self._save(DAILY_SCAN_PREFIX + identity, updated.to_payload())
        log_event(logger, "quota.consumed", identity=identity, tier=tier, count=updated.count, limit=limit)
        return QuotaDecision(allowed=True, remaining=limit - updated.count, limit=limit, level=tier)

    def peek_remaining(self, identity: str, tier: str) -> QuotaStatus:
        """Read-only view of today's remaining scans."""
        self._require_identity(identity)
        limit = get_scan_limit(tier)
        record = self._load_today(identity)
        if record is None:
            return QuotaStatus(remaining=limit, limit=limit, level=tier)
        return QuotaStatus(remaining=max(0, limit - record.count), limit=limit, level=tier)

    def decrement(self, identity: str, tier: str, amount: int = 1) -> DecrementResult:
        """
        Refund `amount` scans (ad reward). Count is floored at 0, so remaining never exceeds the limit.
        Without a record for today this is a no-op that reports the full limit.
        """
        self._require_identity(identity)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 1:
            raise ValidationError("decrementAmount must be a positive integer")
        limit = get_scan_limit(tier)
        record = self._load_today(identity)

        if record is None:
            return DecrementResult(
                remaining=limit,
                limit=limit,
                level=tier,
                count=0,
                message="No scan count to decrement",
            )

        record.count = max(0, record.count - amount)
        self._save(DAILY_SCAN_PREFIX + identity, record.to_payload())
        log_event(logger, "quota.decremented", identity=identity, amount=amount, count=record.count)
        return DecrementResult(
            remaining=max(0, limit - record.count),
            limit=limit,
            level=tier,
            count=record.count,
        )

    def apply_login_bonus(self, identity: str, ip_address: str) -> BonusResult:
        """
        Credit a user who signed in after scanning as a guest from the same IP today.

        The user's record for today becomes count = free_limit - min(free_limit, guest_count + bonus),
        i.e. remaining is capped at the free limit. The guest record is deleted so the bonus is
        granted at most once per day per identity. A second call the same day is a no-op.
        """
        self._require_identity(identity)
        if not ip_address:
            return BonusResult(bonus_applied=False)

        existing = self._load_today(identity)
        if existing is not None and existing.bonus_applied:
            return BonusResult(bonus_applied=False)

        guest_record = self._load_guest_today(ip_address)
        if guest_record is None or guest_record.count <= 0:
            return BonusResult(bonus_applied=False)

        free_limit = get_scan_limit("free")
        remaining_after_bonus = min(free_limit, guest_record.count + LOGIN_BONUS_SCANS)
        bonus_record = QuotaRecord(
            count=free_limit - remaining_after_bonus,
            date=self._today(),
            level="free",
            bonus_applied=True,
        )
        self._save(DAILY_SCAN_PREFIX + identity, bonus_record.to_payload())
        self._remove(GUEST_SCAN_PREFIX + guest_identity(ip_address))

        log_event(
            logger,
            "quota.login_bonus",
            identity=identity,
            guest_scans_used=guest_record.count,
            remaining=remaining_after_bonus,
        )
        return BonusResult(
            bonus_applied=True,
            guest_scans_used=guest_record.count,
            bonus_scans=LOGIN_BONUS_SCANS,
            remaining=remaining_after_bonus,
        )

    def track_guest_scan(self, ip_address: str) -> None:
        """Count an anonymous scan against the IP so a later sign-in can be credited."""
        if not ip_address:
            return
        record = self._load_guest_today(ip_address)
        updated = GuestUsageRecord(count=(record.count if record else 0) + 1, date=self._today())
        self._save(GUEST_SCAN_PREFIX + guest_identity(ip_address), updated.to_payload())

    # -- request-level flows --------------------------------------------------------

    def check_daily_scan_limit(self, user_id: Optional[str], ip_address: str) -> QuotaDecision:
        """
        Consume one scan for the caller resolved from (user_id, ip).
        Signed-in callers get their login bonus applied first; guests also bump the IP guest record.
        """
        level = get_user_level(user_id)
        identity = identity_for(user_id, ip_address)

        bonus = None
        if user_id and ip_address:
            bonus = self.apply_login_bonus(user_id, ip_address)

        decision = self.check_and_consume(identity, level)
        if decision.allowed and not user_id:
            self.track_guest_scan(ip_address)
        if bonus is not None and bonus.bonus_applied:
            decision.bonus_applied = True
        return decision

    def get_remaining_scans(self, user_id: Optional[str], ip_address: str) -> QuotaStatus:
        if user_id and ip_address:
            self.apply_login_bonus(user_id, ip_address)
        return self.peek_remaining(identity_for(user_id, ip_address), get_user_level(user_id))

    def decrement_scan_count(self, user_id: Optional[str], ip_address: str, amount: int = 1) -> DecrementResult:
        return self.decrement(identity_for(user_id, ip_address), get_user_level(user_id), amount)
