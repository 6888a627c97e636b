"""
Tests for the pipeline error taxonomy and RecordError entries.
"""
import pytest

from comicseed.core.exceptions import (
    BatchWriteError,
    DatabaseError,
    DownloadError,
    RecordError,
    RecordValidationError,
    ResolutionError,
    SeedError,
    SeedPipelineError,
    SourceLoadError,
    ValidationError,
    error_context,
)


class TestHierarchy:
    """Tests for exception inheritance."""

    def test_batch_write_error_is_database_error(self):
        """BatchWriteError can be caught as DatabaseError."""
        assert issubclass(BatchWriteError, DatabaseError)

    def test_record_validation_error_is_validation_error(self):
        """RecordValidationError can be caught as ValidationError."""
        assert issubclass(RecordValidationError, ValidationError)

    @pytest.mark.parametrize(
        "cls", [SourceLoadError, ResolutionError, DownloadError, SeedPipelineError]
    )
    def test_pipeline_errors_are_seed_errors(self, cls):
        """Pipeline errors share the SeedError base."""
        assert issubclass(cls, SeedError)


class TestMessages:
    """Tests for exception attributes and messages."""

    def test_batch_write_error(self):
        """Batch index, size and table appear in the message."""
        error = BatchWriteError("comics", 2, 100, "UNIQUE constraint failed")
        assert error.table == "comics"
        assert error.batch_index == 2
        assert "Batch 2 (100 rows) into 'comics'" in str(error)

    def test_record_validation_error(self):
        """Entity and field are kept."""
        raw = {"slug": "x"}
        error = RecordValidationError("comic", "title", "is required", raw)
        assert error.raw is raw
        assert str(error) == "Invalid comic: 'title' is required"

    def test_resolution_error_not_found(self):
        """Without candidates the reference is reported as missing."""
        error = ResolutionError("comic", ["ghost", "ghost-comic"])
        assert "Comic not found" in str(error)
        assert error.candidates == []

    def test_resolution_error_ambiguous(self):
        """Candidates make the reference ambiguous."""
        error = ResolutionError("author", ["j doe"], candidates=[4, 2])
        assert "Ambiguous" in str(error)
        assert "[2, 4]" in str(error)

    def test_seed_pipeline_error_wraps_cause(self):
        """Phase and cause appear in the message."""
        cause = BatchWriteError("chapters", 0, 5, "boom")
        error = SeedPipelineError("chapters", cause, report="partial")
        assert error.cause is cause
        assert error.report == "partial"
        assert "Phase 'chapters' failed: BatchWriteError" in str(error)


class TestErrorContext:
    """Tests for error_context."""

    def test_download_error_context(self):
        """Download errors carry their URL."""
        assert error_context(DownloadError("http://x/a.png", "HTTP 404")) == {
            "url": "http://x/a.png"
        }

    def test_resolution_error_context_lists_candidates(self):
        """Ambiguous resolution errors list sorted candidates."""
        context = error_context(ResolutionError("author", ["a"], [3, 1]))
        assert context["candidates"] == [1, 3]

    def test_plain_exception_has_empty_context(self):
        """Unknown exceptions have no structured context."""
        assert error_context(ValueError("x")) == {}


class TestRecordError:
    """Tests for RecordError entries."""

    def test_from_exception_uses_error_raw(self):
        """The raw record defaults to the exception's raw attribute."""
        raw = {"title": ""}
        entry = RecordError.from_exception(
            "comics", RecordValidationError("comic", "title", "must not be empty", raw)
        )
        assert entry.kind == "RecordValidationError"
        assert entry.raw is raw
        assert entry.context == {"entity": "comic", "field": "title"}

    def test_to_dict_shape(self):
        """Serialized entries hold phase, timestamp, error, kind and context."""
        entry = RecordError.from_exception("chapters", ResolutionError("comic", ["x"]))
        data = entry.to_dict()
        assert set(data) == {"phase", "timestamp", "error", "kind", "context"}
        assert data["phase"] == "chapters"
