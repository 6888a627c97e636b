#!/usr/bin/env python3
"""
config.py
---------
Seeding run configuration.

SeedConfig collects every tunable of a seeding run: batch sizes, download
limits, placeholder assets, storage directories and the source files to
look for per entity type. Defaults mirror the values the catalog export
was originally seeded with; a YAML file can override any subset of them.

Usage:
    from comicseed.core.config import SeedConfig

    config = SeedConfig.from_yaml(Path("seed.yaml"))
    config = config.with_overrides(skip_images=True)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- Third party imports ---
import yaml

# --- Local imports ---
from comicseed.core.exceptions import ValidationError
from comicseed.core.paths import PUBLIC_DIR, REPORT_DIR, SOURCE_DIR


# ═══════════════════════════════════════════════════════════════════════════
# DEFAULTS
# ═══════════════════════════════════════════════════════════════════════════

DEFAULT_DATA_FILES: Dict[str, List[str]] = {
    "users": ["users.json"],
    "comics": [
        "comics.json",
        "comicsdata1.json",
        "comicsdata2.json",
        "comics-merged.json",
    ],
    "chapters": [
        "chapters.json",
        "chaptersdata1.json",
        "chaptersdata2.json",
        "chapters-merged.json",
    ],
    "authors": ["authors.json"],
    "artists": ["artists.json"],
    "genres": ["genres.json"],
    "types": ["types.json"],
}

DEFAULT_PLACEHOLDERS: Dict[str, str] = {
    "comic": "/images/placeholder-comic.jpg",
    "user": "/images/shadcn.jpg",
    "chapter": "/images/placeholder-chapter.png",
    "author": "/images/placeholder-author.png",
    "artist": "/images/placeholder-artist.png",
}

DEFAULT_IMAGE_DIRS: Dict[str, str] = {
    "comic": "comics/covers",
    "chapter": "comics/chapters",
    "user": "images/avatars",
    "author": "images/authors",
    "artist": "images/artists",
}

DEFAULT_IMAGE_FORMATS: List[str] = ["jpeg", "jpg", "png", "webp", "avif", "gif"]


@dataclass
class SeedConfig:
    """
    Configuration for one seeding run.

    Attributes:
        data_dir: Directory holding the JSON export files
        report_dir: Directory receiving seed reports
        storage_dir: Root of the local blob storage (public web root)
        batch_size: Default upsert batch size
        batch_sizes: Per-entity batch size overrides
        download_concurrency: Size of each concurrent download group
        max_image_size_bytes: Largest accepted image payload
        request_timeout: HTTP timeout in seconds
        title_similarity_threshold: Fuzzy title grouping threshold (percent)
        allowed_image_formats: Accepted image extensions/subtypes
        placeholders: Placeholder asset reference per asset kind
        image_dirs: Storage subdirectory per asset kind
        data_files: Candidate source file names per entity type
        skip_images: Skip all downloads and use remote/placeholder refs as-is
        verify_images: Decode downloaded bytes with Pillow before storing
    """

    data_dir: Path = SOURCE_DIR
    report_dir: Path = REPORT_DIR
    storage_dir: Path = PUBLIC_DIR
    batch_size: int = 100
    batch_sizes: Dict[str, int] = field(
        default_factory=lambda: {
            "users": 50,
            "comics": 100,
            "chapters": 200,
            "images": 500,
        }
    )
    download_concurrency: int = 10
    max_image_size_bytes: int = 5 * 1024 * 1024
    request_timeout: float = 30.0
    title_similarity_threshold: float = 90.0
    allowed_image_formats: List[str] = field(
        default_factory=lambda: list(DEFAULT_IMAGE_FORMATS)
    )
    placeholders: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PLACEHOLDERS)
    )
    image_dirs: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_IMAGE_DIRS)
    )
    data_files: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_DATA_FILES.items()}
    )
    skip_images: bool = False
    verify_images: bool = True

    def __post_init__(self) -> None:
        """Coerce paths and validate numeric settings."""
        self.data_dir = Path(self.data_dir)
        self.report_dir = Path(self.report_dir)
        self.storage_dir = Path(self.storage_dir)

        if self.batch_size <= 0:
            raise ValidationError(f"batch_size must be positive, got {self.batch_size}")
        for entity, size in self.batch_sizes.items():
            if size <= 0:
                raise ValidationError(
                    f"batch_sizes['{entity}'] must be positive, got {size}"
                )
        if self.download_concurrency <= 0:
            raise ValidationError(
                f"download_concurrency must be positive, got {self.download_concurrency}"
            )
        if not 0 <= self.title_similarity_threshold <= 100:
            raise ValidationError(
                "title_similarity_threshold must be within 0-100, "
                f"got {self.title_similarity_threshold}"
            )

    # ---- Lookups ----

    def batch_size_for(self, entity: str) -> int:
        """Return the batch size for an entity type, falling back to the default."""
        return self.batch_sizes.get(entity, self.batch_size)

    def placeholder_for(self, kind: str) -> str:
        """Return the placeholder asset reference for an asset kind."""
        return self.placeholders.get(kind, self.placeholders["comic"])

    def source_paths(self, entity: str, data_dir: Optional[Path] = None) -> List[Path]:
        """
        Build candidate source file paths for an entity type.

        Args:
            entity: Entity type key of data_files (e.g. 'comics')
            data_dir: Optional override of the configured data directory

        Returns:
            Candidate paths in configured order (existence not checked)
        """
        base = Path(data_dir) if data_dir is not None else self.data_dir
        return [base / name for name in self.data_files.get(entity, [])]

    # ---- Construction ----

    def with_overrides(self, **overrides: Any) -> "SeedConfig":
        """
        Return a copy with the given fields replaced.

        None values are ignored so CLI options left unset keep the
        configured value.

        Raises:
            ValidationError: If an override names an unknown field
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(k for k in overrides if k not in known)
        if unknown:
            raise ValidationError(f"Unknown config keys: {', '.join(unknown)}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeedConfig":
        """
        Build a configuration from a plain mapping.

        Dictionary-valued settings (batch_sizes, placeholders, image_dirs,
        data_files) are merged over the defaults rather than replacing them.

        Raises:
            ValidationError: If the mapping contains unknown keys
        """
        base = cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            raise ValidationError(f"Unknown config keys: {', '.join(unknown)}")

        merged: Dict[str, Any] = {}
        for key, value in data.items():
            current = getattr(base, key)
            if isinstance(current, dict):
                if not isinstance(value, dict):
                    raise ValidationError(f"Config key '{key}' must be a mapping")
                merged[key] = {**current, **value}
            else:
                merged[key] = value
        return base.with_overrides(**merged)

    @classmethod
    def from_yaml(cls, path: Path) -> "SeedConfig":
        """
        Load configuration overrides from a YAML file.

        Args:
            path: YAML file whose top-level mapping overrides defaults

        Returns:
            SeedConfig instance

        Raises:
            ValidationError: If the file is not a mapping or has unknown keys
        """
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValidationError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)
