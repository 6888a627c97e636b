#!/usr/bin/env python3
"""
similarity.py
-------------
Edit-distance based string similarity.

Usage:
    from comicseed.utils.similarity import similarity

    similarity("hero saga", "hero saga 2")  # 81.81...
"""
# --- Annotations ---
from __future__ import annotations


def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def similarity(s1: str, s2: str) -> float:
    """
    Percentage similarity of two strings.

    Computed as ``(longer - distance) / longer * 100`` where ``longer`` is
    the length of the longer string. Two empty strings are identical.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Similarity in the range 0-100

    Examples:
        >>> similarity("hero saga", "hero saga")
        100.0
        >>> similarity("", "")
        100.0
        >>> round(similarity("kitten", "sitting"), 1)
        57.1
    """
    longer = max(len(s1), len(s2))
    if longer == 0:
        return 100.0
    return (longer - levenshtein_distance(s1, s2)) / longer * 100.0
