"""
Tests for the local filesystem blob storage provider.
"""
import pytest

from comicseed.pipeline.storage import LocalFileStorage, UploadResult


class TestLocalFileStorage:
    """Tests for LocalFileStorage."""

    def test_upload_writes_file(self, tmp_dir, png_bytes):
        """Uploads create parent directories and return the public URL."""
        storage = LocalFileStorage(tmp_dir)

        result = storage.upload(png_bytes, "comics/covers/hero-saga.png")

        assert result.ok
        assert result.url == "/comics/covers/hero-saga.png"
        assert (tmp_dir / "comics" / "covers" / "hero-saga.png").read_bytes() == png_bytes

    def test_upload_leaves_no_temporary_file(self, tmp_dir, png_bytes):
        """Only the final file remains after an upload."""
        storage = LocalFileStorage(tmp_dir)
        storage.upload(png_bytes, "a/b.png")
        assert [p.name for p in (tmp_dir / "a").iterdir()] == ["b.png"]

    def test_exists(self, tmp_dir, png_bytes):
        """exists reflects stored keys."""
        storage = LocalFileStorage(tmp_dir)
        assert not storage.exists("x.png")
        storage.upload(png_bytes, "x.png")
        assert storage.exists("x.png")

    def test_leading_slash_ignored(self, tmp_dir):
        """Keys may start with a slash."""
        storage = LocalFileStorage(tmp_dir)
        assert storage.local_path("/images/a.png") == (tmp_dir / "images" / "a.png").absolute()
        assert storage.url_for("/images/a.png") == "/images/a.png"

    def test_escaping_key_rejected(self, tmp_dir, png_bytes):
        """Keys may not leave the storage root."""
        storage = LocalFileStorage(tmp_dir / "public")
        result = storage.upload(png_bytes, "../outside.png")
        assert not result.ok
        assert "escapes" in result.error
        with pytest.raises(ValueError):
            storage.exists("../../etc/passwd")


class TestUploadResult:
    """Tests for UploadResult."""

    def test_ok(self):
        """A URL without error is a success."""
        assert UploadResult(url="/a.png").ok
        assert not UploadResult(error="disk full").ok
