"""
Dish identification: validate the photo, consume a scan, ask the vision model.
"""
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from oksnap.api.routes.scan_limit import raise_if_exhausted
from oksnap.core.errors import ConfigurationError, ValidationError
from oksnap.dependencies.client import get_client_ip
from oksnap.dependencies.services import enforce_rate_limit, get_openai_client, get_quota_ledger
from oksnap.schemas.identify import IdentifyRequest
from oksnap.services.openai_client import OpenAIClient
from oksnap.services.prompts import ALLOWED_LANGUAGES
from oksnap.services.quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMAGE_BYTES = 10 * 1024 * 1024
IMAGE_DATA_PREFIX = "data:image/"
_BASE64_BODY = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def validate_image_data(image_data: Optional[str]) -> str:
    """A base64 `data:image/...` URL of at most 10MB decoded."""
    if not image_data or not isinstance(image_data, str):
        raise ValidationError("No image data provided")
    if not image_data.startswith(IMAGE_DATA_PREFIX) or ";base64," not in image_data:
        raise ValidationError("Invalid image format. Expected a base64 data URL.")
    encoded = image_data.split(";base64,", 1)[1]
    # Decoded size estimated from the encoded length
    if len(encoded) * 3 // 4 > MAX_IMAGE_BYTES:
        raise ValidationError("Image too large. Maximum size is 10MB.")
    if not _BASE64_BODY.match(encoded):
        raise ValidationError("Invalid image format. Expected a base64 data URL.")
    return image_data


def validate_language(target_language: Optional[str]) -> Optional[str]:
    if target_language and target_language not in ALLOWED_LANGUAGES:
        raise ValidationError("Invalid language specified")
    return target_language


@router.post("/identify", dependencies=[Depends(enforce_rate_limit)])
async def identify_dish(
    payload: IdentifyRequest,
    request: Request,
    ledger: QuotaLedger = Depends(get_quota_ledger),
    openai_client: Optional[OpenAIClient] = Depends(get_openai_client),
):
    # Bad input must not cost the caller a scan
    image_data = validate_image_data(payload.image_data)
    target_language = validate_language(payload.target_language)
    if openai_client is None:
        raise ConfigurationError("Server configuration error: OPENAI_API_KEY is not set")

    ip_address = get_client_ip(request)
    decision = await run_in_threadpool(ledger.check_daily_scan_limit, payload.user_id, ip_address)
    raise_if_exhausted(decision)

    data = await openai_client.identify_dish(image_data, target_language)
    logger.info("[identify] Dish identified for %s (%s scans left)", payload.user_id or ip_address, decision.remaining)
    return {
        **data,
        "scanInfo": {"remaining": decision.remaining, "limit": decision.limit, "level": decision.level},
    }
