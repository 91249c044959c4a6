"""
Rebuild the recipe listing from the blog files actually present in the content store.
Repairs recipes.json (and the Supabase mirror, when configured) after manual edits or a failed
index update.
"""
import logging
import re
from html import unescape
from typing import Optional

from oksnap.core.errors import ExternalServiceError
from oksnap.models.content import IndexEntry
from oksnap.services.content_publisher import ContentPublisher
from oksnap.services.recipe_index import RecipeIndex
from oksnap.utils.slug import is_valid_slug
from oksnap.utils.time_utils import today_string

logger = logging.getLogger(__name__)

_TITLE_TAG = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_H1_TAG = re.compile(r"<h1[^>]*>([^<]+)</h1>", re.IGNORECASE)
PAGE_TITLE_SUFFIX = " Recipe - OK-Snap"


def extract_title(html_text: str, fallback: str) -> str:
    """Dish title from the page <title> (minus the site suffix) or the first plain <h1>."""
    match = _TITLE_TAG.search(html_text) or _H1_TAG.search(html_text)
    if not match:
        return fallback
    title = unescape(match.group(1)).strip()
    if title.endswith(PAGE_TITLE_SUFFIX):
        title = title[: -len(PAGE_TITLE_SUFFIX)].strip()
    return title or fallback


def collect_entries(publisher: ContentPublisher) -> list[IndexEntry]:
    store = publisher.store
    files = [
        f for f in store.list_directory(publisher.blogs_dir())
        if f.get("type") == "file" and str(f.get("name", "")).endswith(".html")
    ]
    logger.info("[sync-recipes] Found %s blog files", len(files))

    entries = []
    today = today_string()
    for blog_file in files:
        slug = blog_file["name"][: -len(".html")]
        if not is_valid_slug(slug):
            logger.warning("[sync-recipes] Skipping %s: not a valid slug", blog_file["name"])
            continue
        title = slug
        try:
            content = store.get_file(blog_file.get("path") or publisher.artifact_path(slug))
        except ExternalServiceError as e:
            # Still list the post, just without a proper title
            logger.warning("[sync-recipes] Could not read %s: %s", blog_file["name"], e)
            content = None
        if content is not None:
            title = extract_title(content.text, slug)
        entries.append(IndexEntry(slug=slug, title=title, name=title, url=publisher.public_url(slug),
                                  created_at=today))

    # Existing index dates are kept so the order survives a resync
    known_dates = {e.slug: e.created_at for e in publisher.list_index_entries()}
    for entry in entries:
        entry.created_at = known_dates.get(entry.slug) or entry.created_at
    entries.sort(key=lambda e: e.created_at or "", reverse=True)
    return entries


def sync_recipes(publisher: ContentPublisher, recipe_index: Optional[RecipeIndex] = None) -> dict:
    """
    Rewrite recipes.json from the blog files, then copy the entries to the mirror if there is one.

    Raises:
        IndexUpdateError: recipes.json could not be written
    """
    entries = collect_entries(publisher)
    if not entries:
        return {
            "success": True,
            "message": "No blog files found. The recipe list will be filled when the first blog is generated.",
            "recipesCount": 0,
            "recipes": [],
        }

    commit_sha = publisher.replace_index(entries)
    logger.info("[sync-recipes] Rewrote %s with %s recipes", publisher.index_path(), len(entries))
    mirrored = recipe_index.mirror(entries) if recipe_index is not None else False
    return {
        "success": True,
        "message": f"Successfully synced {len(entries)} recipes",
        "recipesCount": len(entries),
        "recipes": [{"slug": e.slug, "title": e.title} for e in entries],
        "commitSha": commit_sha,
        "mirrored": mirrored,
    }
