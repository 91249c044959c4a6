"""
Standardized error payloads for API responses.
Full error details are logged server-side; clients only ever see the code and a safe message.
"""
import logging
from typing import Optional

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def create_error_response(error_code: str, message: str, **extra) -> dict:
    body = {"success": False, "error": error_code, "message": message}
    body.update(extra)
    return body


def send_error_response(
    status_code: int,
    error_code: str,
    message: str,
    error: Optional[BaseException] = None,
    headers: Optional[dict] = None,
    **extra,
) -> JSONResponse:
    """Log the failure (with traceback when an exception is given) and build the JSON response."""
    if error is not None and status_code >= 500:
        logger.error("[%s] %s (status=%s)", error_code, message, status_code, exc_info=error)
    elif error is not None:
        logger.warning("[%s] %s (status=%s): %s", error_code, message, status_code, error)
    else:
        logger.warning("[%s] %s (status=%s)", error_code, message, status_code)
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(error_code, message, **extra),
        headers=headers,
    )
