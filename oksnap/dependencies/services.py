"""
FastAPI dependency factories. Tests swap any of these out through app.dependency_overrides.
"""
import logging
import threading
from typing import Optional

from fastapi import Depends, Request

from oksnap.core.config import (
    CONTENT_STORE_TIMEOUT,
    get_github_config,
    get_openai_api_key,
    get_public_site_url,
    get_rate_limit_backend,
)
from oksnap.core.errors import ConfigurationError, RateLimitExceeded
from oksnap.db.supabase import get_supabase_client
from oksnap.dependencies.client import get_client_ip
from oksnap.services.content_publisher import ContentPublisher
from oksnap.services.github_content import GitHubContentClient
from oksnap.services.kv_store import InMemoryKeyValueStore, KeyValueStore, SupabaseKeyValueStore
from oksnap.services.openai_client import OpenAIClient
from oksnap.services.quota_ledger import QuotaLedger
from oksnap.services.rate_limiter import RateLimiter
from oksnap.services.recipe_index import RecipeIndex

logger = logging.getLogger(__name__)

# One process-wide store for RATE_LIMIT_BACKEND=memory, so counters survive between requests
_memory_store: Optional[InMemoryKeyValueStore] = None
_memory_store_lock = threading.Lock()


def get_kv_store() -> KeyValueStore:
    global _memory_store
    if get_rate_limit_backend() == "memory":
        with _memory_store_lock:
            if _memory_store is None:
                logger.info("[kv_store] Using in-memory quota store (single process only)")
                _memory_store = InMemoryKeyValueStore()
            return _memory_store
    return SupabaseKeyValueStore(get_supabase_client())


def get_quota_ledger(store: KeyValueStore = Depends(get_kv_store)) -> QuotaLedger:
    return QuotaLedger(store)


def get_rate_limiter(store: KeyValueStore = Depends(get_kv_store)) -> RateLimiter:
    return RateLimiter(store)


def enforce_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    result = limiter.check(get_client_ip(request))
    if not result.allowed:
        raise RateLimitExceeded(result.retry_after)


def get_content_publisher() -> Optional[ContentPublisher]:
    """None when GitHub is not configured. A malformed GITHUB_REPO raises ConfigurationError."""
    config = get_github_config()
    if config is None:
        return None
    return ContentPublisher(GitHubContentClient(config, timeout=CONTENT_STORE_TIMEOUT), get_public_site_url())


def find_content_publisher() -> Optional[ContentPublisher]:
    """Like get_content_publisher, but a malformed configuration reads as not configured."""
    try:
        return get_content_publisher()
    except ConfigurationError as e:
        logger.warning("[config] GitHub content store unavailable: %s", e.message)
        return None


def get_openai_client() -> Optional[OpenAIClient]:
    api_key = get_openai_api_key()
    if not api_key:
        return None
    return OpenAIClient(api_key)


def get_recipe_index() -> Optional[RecipeIndex]:
    client = get_supabase_client()
    if client is None:
        return None
    return RecipeIndex(client)
