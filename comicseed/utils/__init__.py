"""
Utilities package for ComicSeed.

This package provides commonly-used string utilities:
- slugify: URL/filesystem-safe slug generation
- normalize: Natural-key normalization for deduplication and lookups
- similarity: Edit distance and percentage similarity scoring

Import commonly-used utilities directly from this package:
    from comicseed.utils import slugify, normalize_slug, similarity
"""

from .slugify import slugify
from .normalize import (
    normalize_slug,
    normalize_name,
    normalize_for_matching,
    normalize_email,
    strip_id_suffix,
)
from .similarity import levenshtein_distance, similarity

__all__ = [
    "slugify",
    "normalize_slug",
    "normalize_name",
    "normalize_for_matching",
    "normalize_email",
    "strip_id_suffix",
    "levenshtein_distance",
    "similarity",
]
