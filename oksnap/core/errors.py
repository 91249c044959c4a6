"""
Exception taxonomy shared by services and routes.
Every error carries its HTTP status and a machine-readable code; main.py turns them into JSON responses.
"""
from typing import Optional


class OkSnapError(Exception):
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code

    def extra(self) -> dict:
        """Additional fields merged into the error response body."""
        return {}

    def headers(self) -> dict:
        return {}


class ValidationError(OkSnapError):
    """Malformed client input. Never retried."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(OkSnapError):
    status_code = 404
    error_code = "NOT_FOUND"


class ConfigurationError(OkSnapError):
    """Required credentials are missing or malformed. Operator problem, not transient."""
    status_code = 500
    error_code = "CONFIGURATION_ERROR"


class ExternalServiceError(OkSnapError):
    """Non-2xx response or timeout from a downstream dependency."""
    status_code = 502
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, service: str = "external", timeout: bool = False,
                 upstream_status: Optional[int] = None):
        super().__init__(message, status_code=504 if timeout else None)
        self.service = service
        self.timeout = timeout
        self.upstream_status = upstream_status


class TableNotFoundError(ExternalServiceError):
    """Supabase answered 404/406: the table has not been created yet."""


class ContentConflictError(ExternalServiceError):
    """Content store rejected a write: the file already exists or the sha is stale."""


class IndexUpdateError(ExternalServiceError):
    """
    The index document could not be written after all attempts.
    When `slug` is set the artifact itself is already published at `url`.
    """

    def __init__(self, message: str, slug: Optional[str] = None, url: Optional[str] = None, attempts: int = 1):
        super().__init__(message, service="github")
        self.slug = slug
        self.url = url
        self.attempts = attempts

    def extra(self) -> dict:
        if not self.slug:
            return {}
        return {"slug": self.slug, "url": self.url, "partial": True}


class QuotaExceeded(OkSnapError):
    """Daily scan quota is used up. Expected business condition."""
    status_code = 429
    error_code = "SCAN_LIMIT_EXCEEDED"

    def __init__(self, message: str, limit: int, level: str, reset_time: Optional[str]):
        super().__init__(message)
        self.limit = limit
        self.level = level
        self.reset_time = reset_time

    def extra(self) -> dict:
        return {
            "limitExceeded": True,
            "limit": self.limit,
            "remaining": 0,
            "level": self.level,
            "resetTime": self.reset_time,
        }


class RateLimitExceeded(OkSnapError):
    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int):
        super().__init__("Too many requests. Please try again later.")
        self.retry_after = retry_after

    def extra(self) -> dict:
        return {"retryAfter": self.retry_after}

    def headers(self) -> dict:
        return {"Retry-After": str(self.retry_after)}
