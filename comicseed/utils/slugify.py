#!/usr/bin/env python3
"""
slugify.py
----------
URL-safe slugs for comics, chapters, genres and stored image names.

Slugs are lowercase ASCII words joined by single hyphens: accents are
folded (Pokémon → pokemon), apostrophes dropped (Hero's → heros), "&"
spelled out, and every other separator collapsed into one hyphen.

Usage:
    from comicseed.utils.slugify import slugify, chapter_slug

    slugify("One Piece: Film Red")      # "one-piece-film-red"
    chapter_slug("one-piece", 1045)     # "one-piece-chapter-1045"
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import re
import unicodedata

# Applied in order after accent folding and lowercasing
_REWRITES = (
    (re.compile(r"'"), ""),
    (re.compile(r"&"), " and "),
    (re.compile(r"[^a-z0-9]+"), "-"),
)


def slugify(text: str, max_length: int = 200) -> str:
    """
    Convert a title or name to a slug.

    Args:
        text: Human-readable title or name
        max_length: Longest slug returned; truncation never leaves a
            trailing hyphen

    Examples:
        >>> slugify("Hero Saga")
        'hero-saga'
        >>> slugify("Spy × Family")
        'spy-family'
        >>> slugify("Hero's Journey (2023)")
        'heros-journey-2023'
        >>> slugify("Black & White")
        'black-and-white'
    """
    if not text:
        return ""

    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = folded.lower()
    for pattern, replacement in _REWRITES:
        slug = pattern.sub(replacement, slug)
    slug = slug.strip("-")

    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


def chapter_slug(comic_slug: str, chapter_number: int) -> str:
    """
    Slug of a chapter: ``<comic slug>-chapter-<number>``.

    Examples:
        >>> chapter_slug("hero-saga", 12)
        'hero-saga-chapter-12'
    """
    return f"{comic_slug}-chapter-{chapter_number}"
