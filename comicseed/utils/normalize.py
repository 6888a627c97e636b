#!/usr/bin/env python3
"""
normalize.py
------------
Natural-key normalization for deduplication and foreign-key lookups.

Different export generators spell the same natural key differently: one
file says "Hero Saga", another "hero-saga", a third "hero-saga-1a2b3c4d"
(with an opaque ID suffix appended). These functions reduce such keys to
comparable forms.

Forms:
    normalize_slug:          "  Hero-Saga! " → "hero-saga"
    normalize_name:          "Jane   Doe "   → "jane doe"
    normalize_for_matching:  "Jane-Doe"      → "jane doe"
    strip_id_suffix:         "hero-saga-1a2b3c4d" → "hero-saga"
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import re
from typing import Optional

# Trailing 8-hex-digit opaque ID appended by some export generators
_ID_SUFFIX_RE = re.compile(r"-[a-f0-9]{8}$")


def normalize_slug(value: Optional[str]) -> str:
    """
    Normalize a slug-like key: lowercase, trim, drop characters outside
    ``[a-z0-9-]``.

    Examples:
        >>> normalize_slug(" Hero-Saga ")
        'hero-saga'
        >>> normalize_slug("hero_saga!")
        'herosaga'
    """
    if not value:
        return ""
    return re.sub(r"[^a-z0-9-]", "", value.strip().lower())


def normalize_name(value: Optional[str]) -> str:
    """
    Normalize a name-like key: lowercase, trim, collapse whitespace.

    Examples:
        >>> normalize_name("  Jane   Doe ")
        'jane doe'
    """
    if not value:
        return ""
    return re.sub(r"\s+", " ", value.strip().lower())


def normalize_email(value: Optional[str]) -> str:
    """Normalize an email address for exact duplicate checks."""
    if not value:
        return ""
    return value.strip().lower()


def strip_id_suffix(slug: Optional[str]) -> str:
    """
    Remove a trailing ``-xxxxxxxx`` hex ID suffix from a slug.

    Examples:
        >>> strip_id_suffix("hero-saga-1a2b3c4d")
        'hero-saga'
        >>> strip_id_suffix("hero-saga-2")
        'hero-saga-2'
    """
    if not slug:
        return ""
    return _ID_SUFFIX_RE.sub("", slug.strip().lower())


def normalize_for_matching(value: Optional[str]) -> str:
    """
    Reduce a title, name or slug to a loose matching form.

    Every run of non-alphanumeric characters becomes a single space, so
    slug and title spellings of the same key collapse together.

    Examples:
        >>> normalize_for_matching("Jane-Doe")
        'jane doe'
        >>> normalize_for_matching("Jane  Doe")
        'jane doe'
        >>> normalize_for_matching("Hero Saga: Rebirth")
        'hero saga rebirth'
    """
    if not value:
        return ""
    return re.sub(r"[^a-z0-9]+", " ", value.lower()).strip()
