"""
Tests for edit-distance similarity.
"""
import pytest

from comicseed.utils.similarity import levenshtein_distance, similarity


class TestLevenshteinDistance:
    """Tests for levenshtein_distance."""

    @pytest.mark.parametrize(
        "s1,s2,expected",
        [
            ("kitten", "sitting", 3),
            ("", "abc", 3),
            ("abc", "", 3),
            ("same", "same", 0),
            ("flaw", "lawn", 2),
        ],
    )
    def test_distance(self, s1, s2, expected):
        """Insertions, deletions and substitutions each cost one."""
        assert levenshtein_distance(s1, s2) == expected

    def test_symmetric(self):
        """Argument order does not matter."""
        assert levenshtein_distance("hero saga", "hero sage") == levenshtein_distance(
            "hero sage", "hero saga"
        )


class TestSimilarity:
    """Tests for similarity percentages."""

    def test_identical_strings(self):
        """Identical strings are 100% similar."""
        assert similarity("hero saga", "hero saga") == 100.0

    def test_two_empty_strings(self):
        """Two empty strings count as identical."""
        assert similarity("", "") == 100.0

    def test_completely_different(self):
        """Strings with nothing in common score 0."""
        assert similarity("abc", "xyz") == 0.0

    def test_uses_longer_length(self):
        """Similarity divides by the longer string's length."""
        # Two insertions over eleven characters
        assert similarity("hero saga", "hero saga 2") == pytest.approx(9 / 11 * 100)
