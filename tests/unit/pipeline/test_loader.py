"""
Tests for source file discovery and loading.
"""
from unittest.mock import MagicMock

from comicseed.core.logging_manager import SeedLogger
from comicseed.pipeline.loader import load_sources


class TestLoadSources:
    """Tests for load_sources."""

    def test_concatenates_in_path_order(self, write_source, source_dir):
        """Records from every file are merged in path order."""
        first = write_source("comics.json", [{"slug": "a"}, {"slug": "b"}])
        second = write_source("comicsdata1.json", [{"slug": "c"}])

        result = load_sources([first, second], "comics")

        assert [r["slug"] for r in result.records] == ["a", "b", "c"]
        assert result.files_loaded == [first, second]
        assert result.counts == {"comics.json": 2, "comicsdata1.json": 1}
        assert result.errors == []

    def test_missing_files_are_skipped(self, write_source, source_dir):
        """Files that do not exist are not errors."""
        present = write_source("comics.json", [{"slug": "a"}])
        missing = source_dir / "comics-merged.json"

        result = load_sources([missing, present], "comics")

        assert len(result.records) == 1
        assert result.files_missing == [missing]
        assert result.errors == []

    def test_malformed_file_is_recorded(self, write_source, source_dir):
        """Unparseable files contribute nothing and are reported."""
        broken = source_dir / "comics.json"
        broken.write_text("{not json", encoding="utf-8")
        good = write_source("comicsdata1.json", [{"slug": "a"}])
        logger = MagicMock(spec=SeedLogger)

        result = load_sources([broken, good], "comics", logger=logger, phase="comics")

        assert len(result.records) == 1
        assert len(result.errors) == 1
        assert result.errors[0].kind == "SourceLoadError"
        assert result.errors[0].phase == "comics"
        logger.log_warning.assert_called_once()

    def test_non_array_file_is_recorded(self, source_dir):
        """A JSON object instead of an array is an error."""
        path = source_dir / "users.json"
        path.write_text('{"users": []}', encoding="utf-8")

        result = load_sources([path], "users")

        assert result.records == []
        assert "expected a JSON array" in result.errors[0].message

    def test_no_files_at_all(self, source_dir):
        """An empty export set yields an empty result."""
        result = load_sources([source_dir / "chapters.json"], "chapters")
        assert result.records == []
        assert result.summary() == "chapters: 0 records from 0 files (1 missing, 0 unreadable)"
