#!/usr/bin/env python3
"""
image_deduplicator.py
---------------------
Content-addressed deduplication of downloaded image files.

Every stored image is hashed with xxHash64 (fast, non-cryptographic; a
collision only costs a wrong link, never security). The first file to
produce a hash becomes its canonical file. When a later file hashes the
same, its bytes are replaced by a relative symlink to the canonical file,
so the originally requested path still resolves to identical bytes. Where
the filesystem refuses symlinks the downloaded bytes are kept as a full
copy.

Two in-memory maps back this and live on the instance, one instance per
seeding run (or call ``reset()``):
    - path → (hash, size): avoids re-hashing a file seen this run
    - hash → canonical path

Statistics are aggregated from these maps without touching the disk.

Usage:
    from comicseed.pipeline.image_deduplicator import ImageDeduplicator

    dedup = ImageDeduplicator(logger=logger)
    outcome = dedup.process(Path("public/comics/chapters/x/page-001.webp"))
    print(dedup.stats().to_dict())
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

# --- Third party imports ---
import xxhash

# --- Local imports ---
from comicseed.core.logging_manager import SeedLogger, safe_logger

_READ_CHUNK = 1024 * 1024


@dataclass(frozen=True)
class HashedFile:
    """Content hash and size of a file seen this run."""

    digest: str
    size: int


@dataclass
class DedupOutcome:
    """
    Result of processing one file.

    Attributes:
        path: The processed path (still resolves to valid bytes)
        digest: Content hash
        is_duplicate: Content matched an earlier canonical file
        canonical: Canonical path for this content
        linked: The path is now a symlink to the canonical file
    """

    path: Path
    digest: str
    is_duplicate: bool
    canonical: Path
    linked: bool = False


@dataclass
class DedupStats:
    """Aggregated deduplication statistics."""

    total_images: int
    unique_images: int
    duplicates: int
    bytes_saved: int

    @property
    def storage_saved_mb(self) -> float:
        return round(self.bytes_saved / 1024 / 1024, 2)

    def to_dict(self) -> Dict[str, Union[int, float]]:
        return {
            "total_images": self.total_images,
            "unique_images": self.unique_images,
            "duplicates": self.duplicates,
            "bytes_saved": self.bytes_saved,
            "storage_saved_mb": self.storage_saved_mb,
        }


class ImageDeduplicator:
    """
    Per-run registry of image content hashes.

    Attributes:
        logger: Optional SeedLogger
    """

    def __init__(self, logger: Optional[SeedLogger] = None) -> None:
        self.logger = logger
        self._files: Dict[Path, HashedFile] = {}
        self._canonical: Dict[str, Path] = {}

    def reset(self) -> None:
        """Forget every hash and canonical path."""
        self._files.clear()
        self._canonical.clear()

    @staticmethod
    def _key(path: Union[str, Path]) -> Path:
        # absolute() keeps symlinks unresolved so a link keeps its own entry
        return Path(path).absolute()

    # ---- Lookup ----

    def identify(self, path: Union[str, Path]) -> str:
        """
        Content hash of a file, cached per path for this run.

        Args:
            path: Image file (symlinks are followed)

        Returns:
            16-character hexadecimal xxHash64 digest

        Raises:
            FileNotFoundError: If the file does not exist
        """
        key = self._key(path)
        cached = self._files.get(key)
        if cached is not None:
            return cached.digest

        if not key.is_file():
            raise FileNotFoundError(f"File not found or not a regular file: {key}")

        hasher = xxhash.xxh64()
        size = 0
        with open(key, "rb") as f:
            for chunk in iter(lambda: f.read(_READ_CHUNK), b""):
                hasher.update(chunk)
                size += len(chunk)

        digest = hasher.hexdigest()
        self._files[key] = HashedFile(digest, size)
        return digest

    def find_canonical(self, digest: str) -> Optional[Path]:
        """
        Canonical file for a hash, if one is registered and still on disk.

        Stale entries (canonical file removed since) are dropped.
        """
        canonical = self._canonical.get(digest)
        if canonical is None:
            return None
        if canonical.is_file():
            return canonical
        del self._canonical[digest]
        return None

    # ---- Processing ----

    def process(self, path: Union[str, Path]) -> DedupOutcome:
        """
        Register a stored file, linking it to the canonical copy if its
        content was already seen.

        Args:
            path: Newly stored image file

        Returns:
            DedupOutcome describing what happened
        """
        key = self._key(path)
        digest = self.identify(key)
        canonical = self.find_canonical(digest)

        # A link left by an earlier run: its target is the canonical file
        if key.is_symlink():
            target = key.resolve()
            if canonical is None:
                canonical = self._canonical[digest] = target
            if target == canonical.resolve():
                return DedupOutcome(
                    path=key, digest=digest, is_duplicate=True, canonical=canonical, linked=True
                )

        if canonical is None or canonical.resolve() == key.resolve():
            self._canonical[digest] = key
            return DedupOutcome(path=key, digest=digest, is_duplicate=False, canonical=key)

        linked = self._link(canonical, key)
        safe_logger(self.logger).log_debug(
            "Duplicate image content",
            {"path": str(key), "canonical": str(canonical), "linked": linked},
        )
        return DedupOutcome(
            path=key, digest=digest, is_duplicate=True, canonical=canonical, linked=linked
        )

    def _link(self, canonical: Path, path: Path) -> bool:
        """
        Replace ``path`` with a relative symlink to ``canonical``.

        The link is created beside the file and renamed over it, so the
        path never stops resolving. Returns False (bytes kept as a copy)
        when the filesystem cannot hold the link.
        """
        temp = path.with_name(f".{path.name}.link")
        target = os.path.relpath(canonical, path.parent)
        try:
            if temp.is_symlink() or temp.exists():
                temp.unlink()
            temp.symlink_to(target)
            os.replace(temp, path)
            return True
        except (OSError, NotImplementedError) as e:
            safe_logger(self.logger).log_debug(
                "Symlink unsupported, keeping copy", {"path": str(path), "error": str(e)}
            )
            if temp.is_symlink():
                temp.unlink()
            return False

    # ---- Statistics ----

    def stats(self) -> DedupStats:
        """Statistics aggregated from the in-memory maps."""
        total = len(self._files)
        unique = len({f.digest for f in self._files.values()})
        saved = sum(
            f.size
            for path, f in self._files.items()
            if self._canonical.get(f.digest) not in (None, path)
        )
        return DedupStats(
            total_images=total,
            unique_images=unique,
            duplicates=total - unique,
            bytes_saved=saved,
        )
