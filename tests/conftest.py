import hashlib
import posixpath
from datetime import datetime, timedelta, timezone

import pytest

from oksnap.core.errors import ContentConflictError, ExternalServiceError
from oksnap.services.content_publisher import ContentPublisher
from oksnap.services.github_content import ContentFile
from oksnap.services.kv_store import InMemoryKeyValueStore
from oksnap.services.quota_ledger import QuotaLedger

SITE_URL = "https://ok-snap.com"


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeContentStore:
    """In-memory stand-in for GitHubContentClient with GitHub's sha semantics."""

    def __init__(self, base_path: str = "public-site", branch: str = "site"):
        self.base_path = base_path
        self.branch = branch
        self.files: dict[str, tuple[str, str]] = {}
        self.puts: list[dict] = []
        # path -> number of upcoming writes to reject as stale
        self.forced_conflicts: dict[str, int] = {}
        # path -> exception raised by the next write
        self.write_failures: dict[str, Exception] = {}
        self._commits = 0

    def path_for(self, *parts: str) -> str:
        segments = [self.base_path] if self.base_path else []
        segments.extend(p.strip("/") for p in parts if p)
        return "/".join(segments)

    def seed(self, path: str, text: str) -> str:
        sha = hashlib.sha1(text.encode("utf-8")).hexdigest()
        self.files[path] = (text, sha)
        return sha

    def get_file(self, path: str):
        if path not in self.files:
            return None
        text, sha = self.files[path]
        return ContentFile(path=path, text=text, sha=sha)

    def put_file(self, path: str, text: str, message: str, sha=None) -> dict:
        self.puts.append({"path": path, "message": message, "sha": sha})
        if path in self.write_failures:
            raise self.write_failures.pop(path)
        if self.forced_conflicts.get(path):
            self.forced_conflicts[path] -= 1
            raise ContentConflictError(f"stale sha for {path}", service="github", upstream_status=409)
        current = self.files.get(path)
        if current is None and sha is not None:
            raise ContentConflictError(f"{path} does not exist", service="github", upstream_status=422)
        if current is not None and sha != current[1]:
            raise ContentConflictError(f"{path} sha mismatch", service="github", upstream_status=422)
        new_sha = self.seed(path, text)
        self._commits += 1
        return {"content": {"sha": new_sha}, "commit": {"sha": f"commit-{self._commits}"}}

    def list_directory(self, path: str) -> list[dict]:
        return [
            {"name": posixpath.basename(p), "path": p, "type": "file", "sha": sha}
            for p, (_, sha) in sorted(self.files.items())
            if posixpath.dirname(p) == path
        ]

    def puts_to(self, path: str) -> list[dict]:
        return [p for p in self.puts if p["path"] == path]


class FailingStore(InMemoryKeyValueStore):
    def get(self, key):
        raise ExternalServiceError("supabase down", service="supabase")

    def set(self, key, value, expires_at=None):
        raise ExternalServiceError("supabase down", service="supabase")

    def delete(self, key):
        raise ExternalServiceError("supabase down", service="supabase")


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def kv_store(clock):
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def ledger(kv_store, clock):
    return QuotaLedger(kv_store, clock=clock)


@pytest.fixture
def content_store():
    return FakeContentStore()


@pytest.fixture
def publisher(content_store):
    return ContentPublisher(content_store, SITE_URL)


@pytest.fixture
def failing_store():
    return FailingStore()
