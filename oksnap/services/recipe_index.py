"""
Supabase mirror of the recipe index (table `recipes`).
Reading the listing from here avoids a site redeploy every time recipes.json changes.
"""
import logging
from typing import Iterable, Optional

from oksnap.core.errors import ConfigurationError, OkSnapError, TableNotFoundError, ValidationError
from oksnap.db.supabase import SupabaseRestClient
from oksnap.models.content import IndexEntry
from oksnap.utils.slug import is_valid_slug
from oksnap.utils.time_utils import parse_iso, to_iso, today_string, utc_now

logger = logging.getLogger(__name__)

RECIPES_TABLE = "recipes"


def _row_to_entry(row: dict) -> Optional[IndexEntry]:
    if not row.get("slug"):
        return None
    created = parse_iso(row.get("created_at"))
    title = row.get("title") or row.get("name") or row["slug"]
    return IndexEntry(
        slug=row["slug"],
        title=title,
        name=row.get("name") or title,
        url=row.get("url") or "",
        created_at=today_string(created) if created else row.get("created_at"),
    )


def _entry_to_row(entry: dict) -> dict:
    created = parse_iso(entry.get("createdAt") or entry.get("created_at")) or utc_now()
    title = entry.get("title") or entry.get("name")
    return {
        "slug": entry["slug"],
        "title": title,
        "name": entry.get("name") or title,
        "url": entry.get("url"),
        "created_at": to_iso(created),
    }


class RecipeIndex:
    def __init__(self, client: SupabaseRestClient, table: str = RECIPES_TABLE):
        self.client = client
        self.table = table

    def list_recipes(self) -> list[IndexEntry]:
        """Newest first. A table that does not exist yet lists as empty."""
        try:
            rows = self.client.select(self.table, order="created_at.desc")
        except TableNotFoundError:
            logger.info("[RecipeIndex] Table '%s' not found, returning empty list", self.table)
            return []
        return [e for e in (_row_to_entry(r) for r in rows if isinstance(r, dict)) if e is not None]

    def store_recipes(self, entries: Iterable[dict]) -> int:
        """
        Upsert entries by slug. Every slug is checked before anything is written.

        Raises:
            ValidationError: an entry is not an object or has a missing or malformed slug
            ConfigurationError: the recipes table does not exist
        """
        entries = list(entries)
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("slug"):
                raise ValidationError("All recipes must have a slug field")
            if not is_valid_slug(entry["slug"]):
                raise ValidationError(
                    f'Invalid slug format: "{entry["slug"]}". Slug must contain only lowercase letters, '
                    "numbers, underscores, and hyphens (a-z0-9_-)"
                )
        if not entries:
            return 0

        rows = [_entry_to_row(e) for e in entries]
        try:
            stored = self.client.upsert(self.table, rows, return_representation=True)
        except TableNotFoundError as e:
            raise ConfigurationError(
                "Recipes table does not exist. Create the recipes table in Supabase first."
            ) from e
        logger.info("[RecipeIndex] Stored %s recipes", len(rows))
        return len(stored) or len(rows)

    def mirror(self, entries: Iterable[IndexEntry]) -> bool:
        """Copy published index entries into the table. Failures are logged, never raised."""
        try:
            self.store_recipes(e.to_payload() for e in entries)
        except OkSnapError as e:
            logger.warning("[RecipeIndex] Could not mirror recipes: %s", e.message)
            return False
        return True
