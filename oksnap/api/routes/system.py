from fastapi import APIRouter, Request

from oksnap.core.config import get_api_base_url, get_public_site_url

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/api/config")
def client_config(request: Request):
    """Public URLs for the web client. No secrets here."""
    return {
        "PUBLIC_SITE_URL": get_public_site_url(),
        "API_BASE_URL": get_api_base_url(str(request.base_url)),
    }
