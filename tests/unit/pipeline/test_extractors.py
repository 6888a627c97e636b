"""
Tests for the ordered extraction strategies.
"""
import pytest
from datetime import datetime, timezone

from comicseed.core.exceptions import RecordValidationError
from comicseed.pipeline import extractors as ex

FALLBACK = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestExtractFirst:
    """Tests for extract_first with the strategy tables."""

    @pytest.mark.parametrize(
        "raw",
        [
            {"author": "Jane Doe"},
            {"author": {"name": "Jane Doe", "slug": "jane-doe"}},
            {"authorName": "Jane Doe"},
            {"author": "", "authorName": "Jane Doe"},
        ],
    )
    def test_author_spellings(self, raw):
        """Every author spelling yields the same name."""
        assert ex.extract_first(raw, ex.AUTHOR_NAME) == "Jane Doe"

    def test_priority_order(self):
        """The first strategy with a value wins."""
        raw = {"author": "First", "authorName": "Second"}
        assert ex.extract_first(raw, ex.AUTHOR_NAME) == "First"

    def test_default_when_nothing_matches(self):
        """The default applies when every strategy comes up empty."""
        assert ex.extract_first({}, ex.TYPE_NAME, default=ex.DEFAULT_TYPE) == "Manga"

    def test_strings_are_trimmed(self):
        """Extracted strings are trimmed."""
        assert ex.extract_first({"coverImage": "  /c.webp "}, ex.COVER_IMAGE) == "/c.webp"

    def test_chapter_comic_nested(self):
        """Chapters may name their comic through a nested object."""
        raw = {"comic": {"slug": "hero-saga", "title": "Hero Saga"}}
        assert ex.extract_first(raw, ex.CHAPTER_COMIC_SLUG) == "hero-saga"
        assert ex.extract_first(raw, ex.CHAPTER_COMIC_TITLE) == "Hero Saga"


class TestExtractGenres:
    """Tests for extract_genres."""

    def test_mixed_shapes(self):
        """Strings, name objects and string id objects are accepted."""
        raw = {"genres": ["Action", {"name": "Fantasy"}, {"id": "romance"}, {"id": 7}, ""]}
        assert ex.extract_genres(raw) == ["Action", "Fantasy", "romance"]

    def test_repeats_removed(self):
        """Repeated genres are kept once, in order."""
        assert ex.extract_genres({"genres": ["Action", " Action ", "Drama"]}) == [
            "Action",
            "Drama",
        ]

    def test_not_a_list(self):
        """A non-list genres field yields nothing."""
        assert ex.extract_genres({"genres": "Action"}) == []


class TestExtractImageUrls:
    """Tests for extract_image_urls."""

    def test_strings_and_objects(self):
        """URL strings and url objects are both accepted."""
        raw = {"images": ["https://x.test/1.png", {"url": "https://x.test/2.png"}, {"alt": "x"}]}
        assert ex.extract_image_urls(raw) == ["https://x.test/1.png", "https://x.test/2.png"]

    def test_fallback_key(self):
        """image_urls is used when images is absent."""
        assert ex.extract_image_urls({"image_urls": ["/p1.webp"]}) == ["/p1.webp"]


class TestChapterNumber:
    """Tests for extract_chapter_number."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ({"chapterNumber": 12}, 12),
            ({"chapterNumber": "7"}, 7),
            ({"chaptername": "Chapter 45: The End"}, 45),
            ({"title": "Episode 3"}, 3),
            ({"chapterNumber": 0, "chaptername": "Chapter 5"}, 5),
            ({"chaptername": "Epilogue"}, 9),
        ],
    )
    def test_chapter_number(self, raw, expected):
        """Explicit numbers, then names, then the position."""
        assert ex.extract_chapter_number(raw, position=9) == expected

    @pytest.mark.parametrize("value", [10.5, float("inf"), float("nan"), 2**40])
    def test_unusable_explicit_number_rejected(self, value):
        """Fractional, non-finite or out-of-range numbers are record errors."""
        with pytest.raises(RecordValidationError, match="chapterNumber"):
            ex.extract_chapter_number({"chapterNumber": value}, position=1)

    def test_whole_float_accepted(self):
        """10.0 is chapter 10."""
        assert ex.extract_chapter_number({"chapterNumber": 10.0}, position=1) == 10

    def test_oversized_number_in_name_ignored(self):
        """A name number beyond the column range falls back to the position."""
        raw = {"chaptername": "Chapter 99999999999"}
        assert ex.extract_chapter_number(raw, position=3) == 3


class TestParsers:
    """Tests for parse_date, parse_float and parse_int."""

    def test_parse_date_zulu(self):
        """Z suffixes are read as UTC."""
        assert ex.parse_date("2023-05-01T10:00:00Z", FALLBACK) == datetime(
            2023, 5, 1, 10, tzinfo=timezone.utc
        )

    def test_parse_date_naive_is_utc(self):
        """Naive dates are taken as UTC."""
        assert ex.parse_date("2023-05-01", FALLBACK).tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "null", "yesterday", 123])
    def test_parse_date_fallback(self, value):
        """Missing or invalid dates use the fallback."""
        assert ex.parse_date(value, FALLBACK) == FALLBACK

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("8.5", 8.5),
            (7, 7.0),
            ("bad", 0.0),
            (True, 0.0),
            (None, 0.0),
            (float("inf"), 0.0),
            (float("-inf"), 0.0),
            ("nan", 0.0),
            ("1e999", 0.0),
        ],
    )
    def test_parse_float(self, value, expected):
        """Numbers and numeric strings parse; anything else is the default."""
        assert ex.parse_float(value) == expected

    def test_parse_int_negative_uses_default(self):
        """Negative counters fall back to the default."""
        assert ex.parse_int(-5) == 0
        assert ex.parse_int("1200") == 1200

    @pytest.mark.parametrize("value", [float("inf"), float("nan"), "1e999", 2**31, 1e20])
    def test_parse_int_unrepresentable_uses_default(self, value):
        """Values no integer column can hold fall back to the default."""
        assert ex.parse_int(value, default=7) == 7
