"""Text helpers for slugs and search keys."""

from __future__ import annotations

import re

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")
_EDGE_DASHES = re.compile(r"^-+|-+$")
_WHITESPACE = re.compile(r"\s+")


def generate_slug(text: str) -> str:
    """Build a URL slug from a display name.

    Example:
        >>> generate_slug("  Class 10 (Science)  ")
        'class-10-science'
    """
    slug = text.lower().strip()
    slug = _NON_WORD.sub("", slug)
    slug = _SEPARATORS.sub("-", slug)
    return _EDGE_DASHES.sub("", slug)


def slug_variants(slug: str) -> list[str]:
    """Return the slug plus its hyphen/underscore alternate.

    Subjects were seeded with both conventions ("information_technology"
    vs "information-technology"), so lookups try both.
    """
    variants = [slug]
    if "-" in slug:
        variants.append(slug.replace("-", "_"))
    elif "_" in slug:
        variants.append(slug.replace("_", "-"))
    return variants


def normalize_search(name: str) -> str:
    """Lower-case, trim and collapse whitespace for search columns."""
    return _WHITESPACE.sub(" ", name.lower().strip())
