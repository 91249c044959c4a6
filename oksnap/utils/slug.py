"""
Slug helpers. A slug is the storage key and the public path segment of a blog post.
"""
import re

from oksnap.core.errors import ValidationError

_VALID_SLUG = re.compile(r"^[a-z0-9_-]+$")
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def create_slug(title: str) -> str:
    """
    Normalize a human title: lowercase, non-alphanumeric runs collapsed to one hyphen,
    leading/trailing hyphens stripped. "Kimchi Stew (김치찌개)" -> "kimchi-stew".
    """
    if not title:
        return ""
    return _NON_ALNUM_RUN.sub("-", title.lower()).strip("-")


def is_valid_slug(slug) -> bool:
    if not slug or not isinstance(slug, str):
        return False
    return bool(_VALID_SLUG.match(slug))


def validate_slug(slug, param_name: str = "slug") -> str:
    if not slug:
        raise ValidationError(f"{param_name} is required")
    if not is_valid_slug(slug):
        raise ValidationError(
            f"{param_name} must contain only lowercase letters, numbers, underscores, and hyphens (a-z0-9_-)"
        )
    return slug
