"""
Idempotent publishing of blog posts to the content store.

publish_if_absent runs three steps:
1. existence check: an existing slug is never overwritten
2. create the artifact file; a conflict on create means someone else won the race -> alreadyExists
3. upsert the slug's entry in the shared index (recipes.json) with optimistic concurrency:
   re-read, re-apply and retry on a stale sha, 3 attempts in total

A post that already exists but is missing from the index (an earlier index write failed) gets its
entry back on the next publish attempt, see ensure_indexed.

Unlike quota tracking, index consistency is critical: a post missing from the index is
undiscoverable, so exhausting the retries fails the whole call (the artifact stays published).
"""
import json
import logging
from datetime import datetime
from typing import Callable, Optional

from oksnap.core.errors import ContentConflictError, ExternalServiceError, IndexUpdateError
from oksnap.models.content import (
    PUBLISH_ALREADY_EXISTS,
    PUBLISH_CREATED,
    ContentArtifact,
    IndexEntry,
    PublishResult,
)
from oksnap.utils.slug import validate_slug
from oksnap.utils.time_utils import today_string
from oksnap.utils.tracing import log_event

logger = logging.getLogger(__name__)

INDEX_MAX_ATTEMPTS = 3
BLOGS_DIR = "blogs"
INDEX_FILE = "recipes.json"


def upsert_entry(entries: list, entry: dict) -> list:
    """Replace the entry with the same slug in place, otherwise prepend. Duplicate slugs are collapsed."""
    updated = []
    replaced = False
    for existing in entries:
        if isinstance(existing, dict) and existing.get("slug") == entry["slug"]:
            if not replaced:
                updated.append(entry)
                replaced = True
            continue
        updated.append(existing)
    if not replaced:
        updated.insert(0, entry)
    return updated


class ContentPublisher:
    def __init__(self, store, public_site_url: str):
        """
        Args:
            store: content store client (GitHubContentClient or a compatible fake) providing
                   path_for, get_file, put_file and list_directory
            public_site_url: base URL the published posts are served from
        """
        self.store = store
        self.public_site_url = public_site_url.rstrip("/")

    def artifact_path(self, slug: str) -> str:
        return self.store.path_for(BLOGS_DIR, f"{slug}.html")

    def index_path(self) -> str:
        return self.store.path_for(INDEX_FILE)

    def blogs_dir(self) -> str:
        return self.store.path_for(BLOGS_DIR)

    def public_url(self, slug: str) -> str:
        return f"{self.public_site_url}/{BLOGS_DIR}/{slug}.html"

    def find_existing(self, slug: str) -> Optional[str]:
        """Public URL of the published post for `slug`, or None. Lets callers skip generation entirely."""
        validate_slug(slug)
        existing = self.store.get_file(self.artifact_path(slug))
        return self.public_url(slug) if existing is not None else None

    def publish_if_absent(self, slug: str, body: str, title: str, image_url: Optional[str] = None,
                          published_at: Optional[datetime] = None) -> PublishResult:
        """
        Publish `body` under `slug` unless it already exists, then record it in the index.

        Returns:
            PublishResult with status "created" or "alreadyExists"

        Raises:
            ValidationError: bad slug
            ExternalServiceError: existence check or artifact write failed (nothing published)
            IndexUpdateError: artifact published but the index could not be updated
        """
        validate_slug(slug)
        artifact = ContentArtifact(slug=slug, title=title, body=body, image_url=image_url)
        if published_at is not None:
            artifact.published_at = published_at
        url = self.public_url(slug)

        if self.find_existing(slug) is not None:
            log_event(logger, "publish.skipped_existing", slug=slug)
            repaired = self.ensure_indexed(slug, title, artifact.published_at)
            return repaired or PublishResult(status=PUBLISH_ALREADY_EXISTS, slug=slug, url=url)

        try:
            created = self.store.put_file(
                self.artifact_path(slug),
                artifact.body,
                message=f"Add blog post: {artifact.title}",
            )
        except ContentConflictError:
            log_event(logger, "publish.create_conflict", slug=slug)
            return PublishResult(status=PUBLISH_ALREADY_EXISTS, slug=slug, url=url)

        commit_sha = (created.get("commit") or {}).get("sha")
        log_event(logger, "publish.created", slug=slug, commit=commit_sha)

        entry = self._entry_for(slug, artifact.title, artifact.published_at)
        index_commit_sha = self.upsert_index_entry(entry)
        return PublishResult(
            status=PUBLISH_CREATED,
            slug=slug,
            url=url,
            commit_sha=commit_sha,
            index_commit_sha=index_commit_sha,
            entry=entry,
        )

    def _entry_for(self, slug: str, title: str, published_at: Optional[datetime] = None) -> IndexEntry:
        return IndexEntry(
            slug=slug,
            title=title,
            name=title,
            url=self.public_url(slug),
            created_at=today_string(published_at),
        )

    def ensure_indexed(self, slug: str, title: str,
                       published_at: Optional[datetime] = None) -> Optional[PublishResult]:
        """
        Restore the index entry of an already published post when it is missing.

        Returns an alreadyExists PublishResult carrying the new entry and index commit, or None
        when the entry was already listed. A failed repair is logged and also returns None:
        the post exists, so the caller still reports it as skipped.
        """
        validate_slug(slug)
        try:
            if any(e.slug == slug for e in self.list_index_entries()):
                return None
            entry = self._entry_for(slug, title, published_at)
            index_commit_sha = self.upsert_index_entry(entry)
        except ExternalServiceError as e:
            logger.warning("[ContentPublisher] Could not restore index entry for %s: %s", slug, e.message)
            return None
        log_event(logger, "publish.index_repaired", slug=slug)
        return PublishResult(
            status=PUBLISH_ALREADY_EXISTS,
            slug=slug,
            url=entry.url,
            index_commit_sha=index_commit_sha,
            entry=entry,
        )

    def load_index(self) -> tuple[list, Optional[str]]:
        """
        Current index entries and the sha to write against.
        Missing index -> ([], None). Unparseable index -> ([], sha) so the next write replaces it.
        """
        index_file = self.store.get_file(self.index_path())
        if index_file is None:
            logger.info("[ContentPublisher] %s does not exist yet, starting a new index", self.index_path())
            return [], None
        try:
            data = json.loads(index_file.text) if index_file.text.strip() else []
        except ValueError as e:
            logger.warning("[ContentPublisher] %s is not valid JSON, starting fresh: %s", self.index_path(), e)
            return [], index_file.sha
        if not isinstance(data, list):
            logger.warning("[ContentPublisher] %s is not a JSON array, starting fresh", self.index_path())
            return [], index_file.sha
        return data, index_file.sha

    def list_index_entries(self) -> list[IndexEntry]:
        entries, _ = self.load_index()
        return [e for e in (IndexEntry.from_value(v) for v in entries) if e is not None]

    def _write_index(self, apply: Callable[[list], list], message: str,
                     slug: Optional[str] = None, url: Optional[str] = None) -> Optional[str]:
        """
        Read-modify-write of the index. `apply` gets the current entries on every attempt, so a
        concurrent writer's change is re-read rather than overwritten. Only stale-sha conflicts are
        retried. Returns the index commit sha.
        """
        for attempt in range(1, INDEX_MAX_ATTEMPTS + 1):
            try:
                entries, sha = self.load_index()
                updated = apply(entries)
                result = self.store.put_file(
                    self.index_path(),
                    json.dumps(updated, indent=2, ensure_ascii=False),
                    message=message,
                    sha=sha,
                )
            except ContentConflictError:
                log_event(logger, "publish.index_conflict", level=logging.WARNING,
                          slug=slug, attempt=attempt, max_attempts=INDEX_MAX_ATTEMPTS)
                continue
            except ExternalServiceError as e:
                raise IndexUpdateError(
                    f"Failed to update {INDEX_FILE}: {e.message}", slug=slug, url=url, attempts=attempt
                ) from e
            log_event(logger, "publish.index_updated", slug=slug, attempt=attempt, entries=len(updated))
            return (result.get("commit") or {}).get("sha")

        raise IndexUpdateError(
            f"Failed to update {INDEX_FILE} after {INDEX_MAX_ATTEMPTS} attempts",
            slug=slug,
            url=url,
            attempts=INDEX_MAX_ATTEMPTS,
        )

    def upsert_index_entry(self, entry: IndexEntry) -> Optional[str]:
        payload = entry.to_payload()
        return self._write_index(
            lambda entries: upsert_entry(entries, payload),
            message=f"Update recipes.json: Add {entry.title}",
            slug=entry.slug,
            url=entry.url,
        )

    def replace_index(self, entries: list[IndexEntry]) -> Optional[str]:
        """Overwrite the whole index with `entries` (a rebuild), under the same sha checks."""
        payloads = [e.to_payload() for e in entries]
        return self._write_index(
            lambda current: payloads,
            message=f"Sync recipes.json: Update with {len(payloads)} recipes from existing blogs",
        )
