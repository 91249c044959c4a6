"""
OK-Snap API
Dish identification, daily scan quotas and auto-generated recipe blog posts.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from oksnap.api.routes import blog, identify, recipes, scan_limit, system
from oksnap.core.config import get_cors_origins, is_debug, is_production
from oksnap.core.errors import ExternalServiceError, OkSnapError
from oksnap.utils.error_response import send_error_response

# Vercel and Render both capture stdout
logging.basicConfig(
    level=logging.DEBUG if is_debug() else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="OK-Snap API")

cors_origins = get_cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Browsers reject credentialed requests against a wildcard origin
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(system.router, tags=["System"])
app.include_router(scan_limit.router, prefix="/api", tags=["Scan Limit"])
app.include_router(identify.router, prefix="/api", tags=["Identify"])
app.include_router(blog.router, prefix="/api", tags=["Blog"])
app.include_router(recipes.router, prefix="/api", tags=["Recipes"])


@app.exception_handler(OkSnapError)
async def oksnap_error_handler(request: Request, exc: OkSnapError):
    message = exc.message
    # Upstream error text can carry provider internals
    if isinstance(exc, ExternalServiceError) and is_production() and not exc.extra():
        if exc.timeout:
            message = f"The {exc.service} request timed out. Please try again."
        else:
            message = f"The {exc.service} service failed. Please try again."
    return send_error_response(
        exc.status_code,
        exc.error_code,
        message,
        error=exc,
        headers=exc.headers() or None,
        **exc.extra(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return send_error_response(400, "VALIDATION_ERROR", message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    extra = {} if is_production() else {"detail": str(exc)}
    return send_error_response(
        500,
        "INTERNAL_SERVER_ERROR",
        "An internal server error occurred",
        error=exc,
        **extra,
    )


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("oksnap.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
