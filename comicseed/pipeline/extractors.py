#!/usr/bin/env python3
"""
extractors.py
-------------
Ordered extraction strategies for loosely-shaped export records.

Export files produced by different scrapers spell the same logical value
in different places: a comic's author may be ``"author": "Jane Doe"``,
``"author": {"name": "Jane Doe", "slug": "jane-doe"}`` or
``"authorName": "Jane Doe"``. Each logical value is described by a tuple
of strategies evaluated in priority order; the first non-empty result
wins, otherwise the value's default applies.

Usage:
    from comicseed.pipeline.extractors import AUTHOR_NAME, extract_first

    author = extract_first(raw_comic, AUTHOR_NAME, default="Unknown Author")
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

# --- Local imports ---
from comicseed.core.exceptions import RecordValidationError

Strategy = Callable[[Dict[str, Any]], Any]

DEFAULT_AUTHOR = "Unknown Author"
DEFAULT_TYPE = "Manga"

# Largest value an integer column holds on every supported backend
INT_MAX = 2**31 - 1


# ═══════════════════════════════════════════════════════════════════════════
# STRATEGY BUILDERS
# ═══════════════════════════════════════════════════════════════════════════

def text(key: str) -> Strategy:
    """Top-level string field."""

    def strategy(raw: Dict[str, Any]) -> Optional[str]:
        value = raw.get(key)
        return value.strip() if isinstance(value, str) else None

    return strategy


def nested(key: str, attr: str) -> Strategy:
    """String attribute of a nested object (``raw[key][attr]``)."""

    def strategy(raw: Dict[str, Any]) -> Optional[str]:
        obj = raw.get(key)
        if isinstance(obj, dict):
            value = obj.get(attr)
            return value.strip() if isinstance(value, str) else None
        return None

    return strategy


def first_item(key: str, attr: Optional[str] = None) -> Strategy:
    """First element of a list field, optionally one attribute of it."""

    def strategy(raw: Dict[str, Any]) -> Optional[str]:
        items = raw.get(key)
        if not isinstance(items, list) or not items:
            return None
        item = items[0]
        if attr is not None:
            item = item.get(attr) if isinstance(item, dict) else None
        return item.strip() if isinstance(item, str) else None

    return strategy


def extract_first(
    raw: Dict[str, Any], strategies: Sequence[Strategy], default: Any = None
) -> Any:
    """
    Evaluate strategies in order and return the first non-empty value.

    Args:
        raw: Raw export record
        strategies: Ordered strategy tuple
        default: Value returned when every strategy comes up empty

    Returns:
        First non-empty extracted value, or the default
    """
    for strategy in strategies:
        value = strategy(raw)
        if value not in (None, "", [], {}):
            return value
    return default


# ═══════════════════════════════════════════════════════════════════════════
# STRATEGY TABLES
# ═══════════════════════════════════════════════════════════════════════════

AUTHOR_NAME: Tuple[Strategy, ...] = (
    text("author"),
    nested("author", "name"),
    text("authorName"),
)

ARTIST_NAME: Tuple[Strategy, ...] = (
    text("artist"),
    nested("artist", "name"),
    text("artistName"),
)

TYPE_NAME: Tuple[Strategy, ...] = (
    text("type"),
    nested("type", "name"),
    text("typeName"),
)

COVER_IMAGE: Tuple[Strategy, ...] = (
    text("coverImage"),
    text("cover"),
    first_item("images", "url"),
    first_item("images"),
)

CHAPTER_COMIC_SLUG: Tuple[Strategy, ...] = (
    text("comicslug"),
    text("comicSlug"),
    nested("comic", "slug"),
)

CHAPTER_COMIC_TITLE: Tuple[Strategy, ...] = (
    text("comictitle"),
    text("comicTitle"),
    nested("comic", "title"),
)

CHAPTER_NAME: Tuple[Strategy, ...] = (
    text("chaptername"),
    text("title"),
)

CHAPTER_SLUG: Tuple[Strategy, ...] = (
    text("chapterslug"),
    text("slug"),
)

PUBLICATION_DATE: Tuple[Strategy, ...] = (
    text("publicationDate"),
    text("updatedAt"),
    text("updated_at"),
)

RELEASE_DATE: Tuple[Strategy, ...] = (
    text("releaseDate"),
    text("updated_at"),
    text("updatedAt"),
)

BIO: Tuple[Strategy, ...] = (
    text("bio"),
    text("description"),
)

PORTRAIT_IMAGE: Tuple[Strategy, ...] = (
    text("image"),
    text("avatar"),
)


# ═══════════════════════════════════════════════════════════════════════════
# LIST AND NUMBER EXTRACTION
# ═══════════════════════════════════════════════════════════════════════════

def extract_genres(raw: Dict[str, Any]) -> List[str]:
    """
    Genre names of a comic record.

    Accepts a list of strings, ``{"name": ...}`` objects or ``{"id": ...}``
    objects (string IDs only). Empty entries are dropped, order kept,
    repeats removed.
    """
    genres = raw.get("genres")
    if not isinstance(genres, list):
        return []

    names: List[str] = []
    for genre in genres:
        name: Any = None
        if isinstance(genre, str):
            name = genre
        elif isinstance(genre, dict):
            if isinstance(genre.get("name"), str):
                name = genre["name"]
            elif isinstance(genre.get("id"), str):
                name = genre["id"]
        if isinstance(name, str) and name.strip() and name.strip() not in names:
            names.append(name.strip())
    return names


def extract_image_urls(raw: Dict[str, Any], keys: Sequence[str] = ("images", "image_urls")) -> List[str]:
    """
    Image URLs of a record: the first of ``keys`` holding a list wins.

    List items may be URL strings or ``{"url": ...}`` objects.
    """
    for key in keys:
        items = raw.get(key)
        if not isinstance(items, list):
            continue
        urls: List[str] = []
        for item in items:
            if isinstance(item, dict):
                item = item.get("url")
            if isinstance(item, str) and item.strip():
                urls.append(item.strip())
        return urls
    return []


_CHAPTER_RE = re.compile(r"chapter\s*(\d+)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"(\d+)")


def extract_chapter_number(raw: Dict[str, Any], position: int) -> int:
    """
    Chapter number of a chapter record.

    Order: explicit positive ``chapterNumber`` → "Chapter N" in the chapter
    name or title → first integer in it → 1-based position in the export.

    Raises:
        RecordValidationError: The explicit number is fractional, not
            finite or beyond the integer column range
    """
    explicit = raw.get("chapterNumber")
    if isinstance(explicit, str) and explicit.strip().isdigit():
        explicit = int(explicit.strip())
    if isinstance(explicit, (int, float)) and not isinstance(explicit, bool):
        # 10.5 is not chapter 10; infinities and NaN are never integral
        if isinstance(explicit, float) and not explicit.is_integer():
            raise RecordValidationError(
                "chapter", "chapterNumber", f"must be a whole number, got {explicit}", raw
            )
        if explicit > INT_MAX:
            raise RecordValidationError(
                "chapter", "chapterNumber", f"is out of range, got {explicit}", raw
            )
        if explicit >= 1:
            return int(explicit)

    name = extract_first(raw, CHAPTER_NAME)
    if name:
        match = _CHAPTER_RE.search(name) or _NUMBER_RE.search(name)
        if match and 1 <= int(match.group(1)) <= INT_MAX:
            return int(match.group(1))

    return position


def parse_date(value: Any, fallback: datetime) -> datetime:
    """
    Parse an ISO-8601 date string into an aware datetime.

    Missing, ``"null"`` or unparsable values yield the fallback (the run
    timestamp). Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip() and value.strip() != "null":
        candidate = value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return fallback
    else:
        return fallback

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_float(value: Any, default: float = 0.0) -> float:
    """
    Float from a number or numeric string; anything else gives the default.

    Infinities and NaN (JSON ``1e999``, ``"nan"``) give the default too.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def parse_int(value: Any, default: int = 0) -> int:
    """Int in [0, INT_MAX] from a number or numeric string, else the default."""
    number = parse_float(value, float(default))
    return int(number) if 0 <= number <= INT_MAX else default
