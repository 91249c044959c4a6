"""
GitHub Contents API client used as a versioned content store.
Reads return the decoded text plus the blob sha, which is the optimistic-concurrency token
that must accompany any overwrite.
"""
import base64
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from oksnap.core.config import CONTENT_STORE_TIMEOUT, GitHubConfig
from oksnap.core.errors import ContentConflictError, ExternalServiceError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "ok-snap-blog-generator"

# 409: sha does not match the branch head; 422: file exists and no sha was supplied (or sha is stale)
CONFLICT_STATUSES = (409, 422)


@dataclass
class ContentFile:
    path: str
    text: str
    sha: str


class GitHubContentClient:
    def __init__(self, config: GitHubConfig, session: Optional[requests.Session] = None,
                 timeout: float = CONTENT_STORE_TIMEOUT):
        self.config = config
        # requests.request opens and closes a session per call
        self.session = session or requests
        self.timeout = timeout

    @property
    def branch(self) -> str:
        return self.config.branch

    def path_for(self, *parts: str) -> str:
        """Join parts under the configured base path, e.g. public-site/blogs/kimchi-stew.html."""
        segments = [self.config.base_path] if self.config.base_path else []
        segments.extend(p.strip("/") for p in parts if p)
        return "/".join(segments)

    def _contents_url(self, path: str) -> str:
        return f"{GITHUB_API_URL}/repos/{self.config.owner}/{self.config.repo}/contents/{path}"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method,
                self._contents_url(path),
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            raise ExternalServiceError(f"GitHub {method} {path} timed out", service="github", timeout=True) from e
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError(f"GitHub {method} {path} failed: {e}", service="github") from e

    def get_file(self, path: str) -> Optional[ContentFile]:
        """Return the file at `path`, or None if it does not exist."""
        response = self._send("GET", path, params={"ref": self.branch})
        if response.status_code == 404:
            return None
        if not response.ok:
            raise ExternalServiceError(
                f"GitHub GET {path} failed: {response.status_code} - {response.text[:300]}",
                service="github",
                upstream_status=response.status_code,
            )
        data = response.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise ExternalServiceError(f"GitHub path {path} is not a file", service="github")
        raw = base64.b64decode(data.get("content") or "")
        return ContentFile(path=path, text=raw.decode("utf-8", errors="replace"), sha=data.get("sha", ""))

    def put_file(self, path: str, text: str, message: str, sha: Optional[str] = None) -> dict:
        """
        Create (sha=None) or overwrite (sha=current blob sha) a file.

        Raises:
            ContentConflictError: the file already exists (create) or the sha is stale (update)
            ExternalServiceError: any other non-2xx or transport failure
        """
        body = {
            "message": message,
            "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha
        response = self._send("PUT", path, json=body)
        if response.status_code in CONFLICT_STATUSES:
            raise ContentConflictError(
                f"GitHub PUT {path} conflict: {response.status_code}",
                service="github",
                upstream_status=response.status_code,
            )
        if not response.ok:
            raise ExternalServiceError(
                f"GitHub PUT {path} failed: {response.status_code} - {response.text[:300]}",
                service="github",
                upstream_status=response.status_code,
            )
        return response.json()

    def list_directory(self, path: str) -> list[dict]:
        """Directory listing entries ({name, path, type, sha, ...}); missing directory -> []."""
        response = self._send("GET", path, params={"ref": self.branch})
        if response.status_code == 404:
            return []
        if not response.ok:
            raise ExternalServiceError(
                f"GitHub list {path} failed: {response.status_code}",
                service="github",
                upstream_status=response.status_code,
            )
        data = response.json()
        return data if isinstance(data, list) else []
