from typing import Dict

# Daily scan limits per tier. Guest = anonymous (keyed by IP), free = signed in.
SCAN_LIMITS: Dict[str, int] = {
    "guest": 3,
    "free": 5,
}

# Extra scans granted once per day when a guest who already scanned signs in.
LOGIN_BONUS_SCANS = 5

# Largest refund a single decrement request may ask for.
MAX_DECREMENT_AMOUNT = max(SCAN_LIMITS.values())

# IP request throttling, independent of the daily scan quota.
RATE_LIMIT_WINDOW_SECONDS = 15 * 60
RATE_LIMIT_MAX_REQUESTS = 20


def get_user_level(user_id) -> str:
    """Tier is guest iff no authenticated user id was supplied."""
    return "free" if user_id else "guest"


def get_scan_limit(level: str) -> int:
    """Get the daily scan limit for a tier. Unknown tiers get the guest limit."""
    return SCAN_LIMITS.get(level, SCAN_LIMITS["guest"])
