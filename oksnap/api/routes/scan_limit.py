"""
Daily scan quota endpoints: check remaining, consume one, refund after a rewarded ad.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request

from oksnap.core.errors import QuotaExceeded
from oksnap.dependencies.client import get_client_ip
from oksnap.dependencies.services import get_quota_ledger
from oksnap.models.quota import QuotaDecision
from oksnap.schemas.scan import DecrementScanRequest, ScanLimitRequest, normalize_user_id
from oksnap.services.quota_ledger import QuotaLedger

router = APIRouter()

LIMIT_REACHED_MESSAGE = "Daily scan limit reached. Please try again tomorrow."


def raise_if_exhausted(decision: QuotaDecision) -> None:
    if not decision.allowed:
        raise QuotaExceeded(
            LIMIT_REACHED_MESSAGE,
            limit=decision.limit,
            level=decision.level,
            reset_time=decision.reset_time,
        )


@router.get("/scan-limit")
def get_scan_limit(
    request: Request,
    userId: Optional[str] = None,
    ledger: QuotaLedger = Depends(get_quota_ledger),
):
    """Remaining scans for today. Signing in from an IP that scanned as a guest applies the login bonus."""
    status = ledger.get_remaining_scans(normalize_user_id(userId), get_client_ip(request))
    return status.to_payload()


@router.post("/scan-limit")
def consume_scan(
    request: Request,
    payload: Optional[ScanLimitRequest] = None,
    ledger: QuotaLedger = Depends(get_quota_ledger),
):
    payload = payload or ScanLimitRequest()
    decision = ledger.check_daily_scan_limit(payload.user_id, get_client_ip(request))
    raise_if_exhausted(decision)
    return decision.to_payload()


@router.post("/decrement-scan-count")
def decrement_scan_count(
    request: Request,
    payload: Optional[DecrementScanRequest] = None,
    ledger: QuotaLedger = Depends(get_quota_ledger),
):
    payload = payload or DecrementScanRequest()
    result = ledger.decrement_scan_count(payload.user_id, get_client_ip(request), payload.decrement_amount)
    return result.to_payload()
