"""
Environment-driven configuration.
Values are read at call time so a redeploy (or a test) can change them without re-importing modules.
"""
import os
from dataclasses import dataclass
from typing import Optional

from oksnap.core.errors import ConfigurationError

DEFAULT_PUBLIC_SITE_URL = "https://ok-snap.com"
DEFAULT_API_BASE_URL = "https://ok-snap-identifier.vercel.app"

# Timeouts (seconds) for every outbound call. Nothing blocks indefinitely.
QUOTA_STORE_TIMEOUT = 10
CONTENT_STORE_TIMEOUT = 30
VISION_TIMEOUT = 50
GENERATION_TIMEOUT = 60
DEPLOYMENT_API_TIMEOUT = 15


@dataclass(frozen=True)
class SupabaseConfig:
    url: str
    key: str


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    owner: str
    repo: str
    branch: str
    base_path: str


@dataclass(frozen=True)
class VercelConfig:
    token: str
    project_id: str
    team_id: Optional[str] = None


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def get_public_site_url() -> str:
    """Public blog site URL (no trailing slash)."""
    return _env("PUBLIC_SITE_URL", DEFAULT_PUBLIC_SITE_URL).rstrip("/")


def get_api_base_url(request_base_url: Optional[str] = None) -> str:
    """
    API base URL.
    Explicit API_BASE_URL wins, then the incoming request's base URL, then the Vercel deployment URL.
    """
    api_url = _env("API_BASE_URL")
    if api_url:
        return api_url.rstrip("/")
    if request_base_url:
        return request_base_url.rstrip("/")
    vercel_url = _env("VERCEL_URL")
    if vercel_url:
        return f"https://{vercel_url}".rstrip("/")
    return DEFAULT_API_BASE_URL


def get_supabase_config() -> Optional[SupabaseConfig]:
    """Supabase REST credentials, or None when not configured. Service role key is preferred."""
    url = _env("SUPABASE_URL")
    key = _env("SUPABASE_SERVICE_ROLE_KEY") or _env("SUPABASE_ANON_KEY")
    if not url or not key:
        return None
    return SupabaseConfig(url=url.rstrip("/"), key=key)


def get_github_config() -> Optional[GitHubConfig]:
    """
    GitHub content-store settings, or None when GITHUB_TOKEN / GITHUB_REPO are absent.
    GITHUB_BASE_PATH may be set to an empty string when the branch root holds the site.
    """
    token = _env("GITHUB_TOKEN")
    repo_slug = _env("GITHUB_REPO")
    if not token or not repo_slug:
        return None
    owner, _, repo = repo_slug.partition("/")
    if not owner or not repo or "/" in repo:
        raise ConfigurationError('Invalid GITHUB_REPO format. Use "owner/repo"')
    base_path = os.getenv("GITHUB_BASE_PATH")
    if base_path is None:
        base_path = "public-site"
    return GitHubConfig(
        token=token,
        owner=owner,
        repo=repo,
        branch=_env("GITHUB_BRANCH", "site"),
        base_path=base_path.strip().strip("/"),
    )


def get_vercel_config() -> Optional[VercelConfig]:
    token = _env("VERCEL_TOKEN")
    project_id = _env("VERCEL_PROJECT_ID")
    if not token or not project_id:
        return None
    return VercelConfig(token=token, project_id=project_id, team_id=_env("VERCEL_TEAM_ID") or None)


def get_openai_api_key() -> str:
    return _env("OPENAI_API_KEY")


def is_production() -> bool:
    env = _env("APP_ENV") or _env("NODE_ENV", "development")
    return env.lower() == "production"


def is_debug() -> bool:
    return _env("DEBUG").lower() in ("true", "1")


def get_rate_limit_backend() -> str:
    """'supabase' (default) or 'memory' for single-process local runs."""
    return _env("RATE_LIMIT_BACKEND", "supabase").lower()


def get_cors_origins() -> list[str]:
    raw = _env("CORS_ALLOW_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
