#!/usr/bin/env python3
"""
context.py
----------
Explicit state shared by the phases of one seeding run.

Phases never capture state from each other; everything a later phase
needs from an earlier one (loaded sources, validated comics, entity ID
maps, download caches, the report) lives on the SeedContext passed to
every phase function. One context is built per run, so two runs in the
same process never share caches.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

# --- Third party imports ---
from sqlalchemy.orm import Session

# --- Local imports ---
from comicseed.core.config import SeedConfig
from comicseed.core.exceptions import RecordError
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.database.manager import SeedDB
from comicseed.database.upsert import BatchUpsertEngine
from comicseed.pipeline.duplicate_detector import DetectionResult
from comicseed.pipeline.entity_resolver import EntityResolver, IdMap
from comicseed.pipeline.image_deduplicator import ImageDeduplicator
from comicseed.pipeline.image_downloader import ImageDownloader, ImageRequest
from comicseed.pipeline.loader import LoadResult, load_sources
from comicseed.pipeline.report import SeedReport
from comicseed.pipeline.storage import BlobStorage, LocalFileStorage
from comicseed.validators.schema import BatchValidation, SchemaValidator


@dataclass
class PhaseCounts:
    """Counts a phase reports when it ends."""

    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    skipped_reason: Optional[str] = None

    def add(self, result: Any) -> None:
        """Fold an UpsertResult into the counts."""
        self.inserted += result.inserted
        self.updated += result.updated
        self.skipped += result.skipped

    def to_dict(self) -> Dict[str, int]:
        return {
            "processed": self.processed,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
        }


@dataclass
class SeedContext:
    """
    Pipeline state threaded through every phase.

    Attributes:
        config: Run configuration
        db: Target database (unused in dry runs)
        dry_run: Rehearse without reading or writing the store
        data_dir: Directory of the export files
        report: Execution report being accumulated
        resolver: Entity ID maps built by earlier phases
        validator: Schema validator (shares the run timestamp)
        deduplicator: Per-run image content registry
        downloader: Image downloader writing into storage
        logger: Optional SeedLogger
    """

    config: SeedConfig
    db: Optional[SeedDB]
    dry_run: bool
    data_dir: Path
    report: SeedReport
    resolver: EntityResolver
    validator: SchemaValidator
    deduplicator: ImageDeduplicator
    downloader: ImageDownloader
    logger: Optional[SeedLogger] = None
    sources: Dict[str, LoadResult] = field(default_factory=dict)
    _comic_batch: Optional[BatchValidation] = None

    @classmethod
    def create(
        cls,
        db: Optional[SeedDB],
        config: SeedConfig,
        dry_run: bool = False,
        data_dir: Optional[Path] = None,
        logger: Optional[SeedLogger] = None,
        storage: Optional[BlobStorage] = None,
    ) -> "SeedContext":
        """Build a fresh context (new caches, new report) for one run."""
        deduplicator = ImageDeduplicator(logger=logger)
        downloader = ImageDownloader(
            storage if storage is not None else LocalFileStorage(config.storage_dir),
            config,
            deduplicator=deduplicator,
            logger=logger,
            enabled=not (dry_run or config.skip_images),
        )
        return cls(
            config=config,
            db=db,
            dry_run=dry_run,
            data_dir=Path(data_dir) if data_dir is not None else config.data_dir,
            report=SeedReport(dry_run=dry_run, logger=logger),
            resolver=EntityResolver(logger=logger),
            validator=SchemaValidator(),
            deduplicator=deduplicator,
            downloader=downloader,
            logger=logger,
        )

    # ---- Sources ----

    def load(self, entity: str) -> LoadResult:
        """
        Records of an entity type, loaded once per run.

        Unreadable files are recorded as errors of the phase named after
        the entity type.
        """
        if entity not in self.sources:
            result = load_sources(
                self.config.source_paths(entity, self.data_dir),
                entity,
                logger=self.logger,
                phase=entity,
            )
            self.sources[entity] = result
            self.record_errors(result.errors)
        return self.sources[entity]

    def comic_batch(self) -> BatchValidation:
        """
        Validated comics, computed once.

        The reference phases extract names from these before the comics
        phase runs; the comics phase records the validation errors.
        """
        if self._comic_batch is None:
            self._comic_batch = self.validator.validate_batch(
                "comic", self.load("comics").records, phase="comics"
            )
        return self._comic_batch

    # ---- Store access ----

    def session(self):
        """Phase transaction; yields None in dry runs."""
        if self.dry_run or self.db is None:
            return nullcontext(None)
        return self.db.session_scope()

    def engine(self, session: Optional[Session]) -> BatchUpsertEngine:
        return BatchUpsertEngine(session, self.logger, self.config.batch_size)

    def build_map(
        self,
        session: Optional[Session],
        entity: str,
        model: Any,
        key_attrs: Sequence[str],
        key_groups: Sequence[Sequence[Optional[str]]],
    ) -> IdMap:
        """
        ID map of just-written rows: read back from the store, or simulated
        in dry runs.

        Args:
            session: Phase session (None in dry runs)
            entity: Entity type of the map
            model: ORM model read back
            key_attrs: Natural key columns registered (first one filters)
            key_groups: Per written record, its keys in ``key_attrs`` order
        """
        if session is None:
            return self.resolver.build_simulated(entity, key_groups)
        values = [group[0] for group in key_groups if group and group[0]]
        return self.resolver.build_from_store(session, entity, model, key_attrs, values)

    # ---- Images ----

    def download(self, requests: Sequence[ImageRequest], phase: str) -> List[str]:
        """Download images and move their errors into the report."""
        if not requests:
            return []
        stored = self.downloader.download_many(requests, phase=phase)
        self.record_errors(self.downloader.errors)
        self.downloader.errors.clear()
        return stored

    def finalize_images(self) -> None:
        """Copy download and deduplication statistics into the report."""
        stats = self.deduplicator.stats()
        self.report.set_image_stats(
            downloaded=self.downloader.stats.downloaded,
            failed=self.downloader.stats.failed,
            deduplicated=stats.duplicates,
            storage_saved_mb=stats.storage_saved_mb,
        )

    # ---- Errors and warnings ----

    def record_errors(self, errors: Iterable[RecordError]) -> None:
        log = safe_logger(self.logger)
        for error in errors:
            self.report.add_error(error)
            log.log_record_error(error)

    def record_error(self, phase: str, error: Exception, raw: Any = None) -> None:
        self.record_errors([RecordError.from_exception(phase, error, raw)])

    def note_duplicates(
        self, phase: str, detection: DetectionResult, counts: PhaseCounts
    ) -> None:
        """Report every duplicate conflict and count the skipped records."""
        for conflict in detection.conflicts:
            self.report.add_warning(conflict.recommendation, phase=phase)
        counts.skipped += detection.summary.duplicate_count

    def warn(self, phase: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.report.add_warning(message, phase=phase)
        safe_logger(self.logger).log_warning(message, details)
