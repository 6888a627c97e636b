"""
Tests for slug generation.
"""
import pytest

from comicseed.utils.slugify import chapter_slug, slugify


class TestSlugify:
    """Tests for slugify."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Hero Saga", "hero-saga"),
            ("Pokémon Adventures", "pokemon-adventures"),
            ("Hero's Journey (2023)", "heros-journey-2023"),
            ("Black & White", "black-and-white"),
            ("Spy × Family", "spy-family"),
            ("  --Edge__Case--  ", "edge-case"),
            ("One Piece: Film Red", "one-piece-film-red"),
        ],
    )
    def test_slugify(self, text, expected):
        """Titles become lowercase hyphenated ASCII slugs."""
        assert slugify(text) == expected

    def test_empty_input(self):
        """Empty text yields an empty slug."""
        assert slugify("") == ""

    def test_max_length_does_not_end_with_hyphen(self):
        """Truncation strips a trailing hyphen."""
        slug = slugify("abc def ghi", max_length=4)
        assert slug == "abc"


class TestChapterSlug:
    """Tests for chapter_slug."""

    def test_chapter_slug(self):
        """Chapter slugs append the chapter number to the comic slug."""
        assert chapter_slug("hero-saga", 12) == "hero-saga-chapter-12"
