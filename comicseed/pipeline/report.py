#!/usr/bin/env python3
"""
report.py
---------
Execution report of a seeding run.

The report is push-based: the pipeline calls ``start_phase`` and
``end_phase`` as it goes, adds warnings and record errors while they
happen, and can render or save the report at any point. A run that
crashes halfway still has every finished phase (and the failed one)
available to its failure handler.

Outputs:
    - ``to_dict()`` / ``seed-report-<timestamp>.json``: structured summary
    - ``format_text()`` / ``seed-report-<timestamp>.txt``: terminal/CI view

Usage:
    report = SeedReport(dry_run=False)
    report.start_phase("comics")
    ...
    report.end_phase("comics", PhaseStatus.SUCCESS, processed=120, inserted=118)
    json_path, text_path = report.save(config.report_dir)
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

# --- Local imports ---
from comicseed.core.exceptions import RecordError
from comicseed.core.logging_manager import SeedLogger, safe_logger

RULE_WIDTH = 70


class PhaseStatus(str, Enum):
    """Outcome of a phase."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @classmethod
    def choices(cls) -> List[str]:
        return [s.value for s in cls]

    @property
    def symbol(self) -> str:
        return {
            PhaseStatus.SUCCESS: "✓",
            PhaseStatus.FAILED: "✖",
            PhaseStatus.SKIPPED: "⊘",
            PhaseStatus.RUNNING: "…",
        }[self]


@dataclass
class PhaseReport:
    """Timing, status and counts of one phase."""

    name: str
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    status: PhaseStatus = PhaseStatus.RUNNING
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        """Seconds elapsed (up to now while still running)."""
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": round(self.duration, 3),
            "status": self.status.value,
            "processed": self.processed,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "warnings": list(self.warnings),
        }


@dataclass
class ReportSummary:
    """Totals across phases."""

    total_processed: int = 0
    total_inserted: int = 0
    total_updated: int = 0
    total_skipped: int = 0
    total_warnings: int = 0
    total_errors: int = 0
    images_downloaded: Optional[int] = None
    images_failed: Optional[int] = None
    images_deduplicated: Optional[int] = None
    storage_saved_mb: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total_processed": self.total_processed,
            "total_inserted": self.total_inserted,
            "total_updated": self.total_updated,
            "total_skipped": self.total_skipped,
            "total_warnings": self.total_warnings,
            "total_errors": self.total_errors,
        }
        if self.images_downloaded is not None:
            data["images_downloaded"] = self.images_downloaded
            data["images_failed"] = self.images_failed
            data["images_deduplicated"] = self.images_deduplicated
            data["storage_saved_mb"] = self.storage_saved_mb
        return data


class SeedReport:
    """
    Accumulates phases, warnings and errors of one seeding run.

    Attributes:
        dry_run: Whether the run is a rehearsal
        timestamp: Run start (UTC)
        phases: Phases in start order
        errors: Record-level and fatal errors
    """

    def __init__(self, dry_run: bool = False, logger: Optional[SeedLogger] = None) -> None:
        self.dry_run = dry_run
        self.logger = logger
        self.timestamp = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None
        self.phases: List[PhaseReport] = []
        self.errors: List[RecordError] = []
        self._images: Optional[Dict[str, Any]] = None

    @property
    def mode(self) -> str:
        return "dry-run" if self.dry_run else "full"

    # ---- Phase tracking ----

    def start_phase(self, name: str) -> PhaseReport:
        """Open a phase; it stays RUNNING until ``end_phase``."""
        phase = PhaseReport(name=name)
        self.phases.append(phase)
        safe_logger(self.logger).log_operation("phase_start", {"phase": name})
        return phase

    def get_phase(self, name: str) -> Optional[PhaseReport]:
        """Most recent phase of that name."""
        for phase in reversed(self.phases):
            if phase.name == name:
                return phase
        return None

    @property
    def current_phase(self) -> Optional[PhaseReport]:
        """Most recent phase still running."""
        for phase in reversed(self.phases):
            if phase.status is PhaseStatus.RUNNING:
                return phase
        return None

    def end_phase(
        self,
        name: Optional[str] = None,
        status: Union[PhaseStatus, str] = PhaseStatus.SUCCESS,
        processed: Optional[int] = None,
        inserted: Optional[int] = None,
        updated: Optional[int] = None,
        skipped: Optional[int] = None,
    ) -> PhaseReport:
        """
        Close a phase with its status and counts.

        Args:
            name: Phase to close (default: the current one)
            status: Final status
            processed, inserted, updated, skipped: Counts; None keeps
                whatever was already recorded

        Raises:
            ValueError: If no such phase was started
        """
        phase = self.get_phase(name) if name else self.current_phase
        if phase is None:
            raise ValueError(f"Phase not started: {name}")

        phase.status = PhaseStatus(status)
        phase.end_time = datetime.now(timezone.utc)
        if processed is not None:
            phase.processed = processed
        if inserted is not None:
            phase.inserted = inserted
        if updated is not None:
            phase.updated = updated
        if skipped is not None:
            phase.skipped = skipped

        safe_logger(self.logger).log_operation("phase_end", phase.to_dict())
        return phase

    def skip_phase(self, name: str, reason: str) -> PhaseReport:
        """Record a phase that did not run."""
        phase = self.start_phase(name)
        phase.warnings.append(reason)
        return self.end_phase(name, PhaseStatus.SKIPPED)

    # ---- Warnings and errors ----

    def add_warning(self, message: str, phase: Optional[str] = None) -> None:
        """Attach a warning to a phase (default: the current one)."""
        target = self.get_phase(phase) if phase else self.current_phase
        if target is None:
            safe_logger(self.logger).log_warning("Warning outside a phase", {"message": message})
            return
        target.warnings.append(message)

    def add_error(self, error: Union[RecordError, Exception], phase: Optional[str] = None) -> None:
        """Record an error; exceptions are converted to RecordError entries."""
        if not isinstance(error, RecordError):
            current = self.current_phase
            error = RecordError.from_exception(
                phase or (current.name if current else "pipeline"), error
            )
        self.errors.append(error)
        target = self.get_phase(error.phase)
        if target is not None:
            target.errors += 1

    def add_errors(self, errors: Iterable[RecordError]) -> None:
        for error in errors:
            self.add_error(error)

    def set_image_stats(
        self, downloaded: int, failed: int, deduplicated: int, storage_saved_mb: float
    ) -> None:
        self._images = {
            "downloaded": downloaded,
            "failed": failed,
            "deduplicated": deduplicated,
            "storage_saved_mb": storage_saved_mb,
        }

    def finish(self) -> None:
        """Freeze the run duration."""
        self.finished_at = datetime.now(timezone.utc)

    # ---- Aggregates ----

    @property
    def duration(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.timestamp).total_seconds()

    @property
    def summary(self) -> ReportSummary:
        """Totals computed from the phases recorded so far."""
        summary = ReportSummary(
            total_processed=sum(p.processed for p in self.phases),
            total_inserted=sum(p.inserted for p in self.phases),
            total_updated=sum(p.updated for p in self.phases),
            total_skipped=sum(p.skipped for p in self.phases),
            total_warnings=sum(len(p.warnings) for p in self.phases),
            total_errors=len(self.errors),
        )
        if self._images is not None:
            summary.images_downloaded = self._images["downloaded"]
            summary.images_failed = self._images["failed"]
            summary.images_deduplicated = self._images["deduplicated"]
            summary.storage_saved_mb = self._images["storage_saved_mb"]
        return summary

    @property
    def succeeded(self) -> bool:
        """No phase failed."""
        return all(p.status is not PhaseStatus.FAILED for p in self.phases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "duration": round(self.duration, 3),
            "mode": self.mode,
            "phases": [p.to_dict() for p in self.phases],
            "summary": self.summary.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
        }

    # ---- Rendering ----

    def format_text(self) -> str:
        """Human-readable report."""
        summary = self.summary
        heavy = "═" * RULE_WIDTH
        light = "─" * RULE_WIDTH
        lines: List[str] = [heavy, "SEED EXECUTION REPORT".center(RULE_WIDTH).rstrip(), heavy, ""]

        lines.append(f"Timestamp:  {self.timestamp.isoformat()}")
        lines.append(f"Duration:   {self.duration:.2f}s")
        lines.append(f"Mode:       {self.mode.upper()}")
        lines.append("")

        lines.extend([light, "SUMMARY", light])
        lines.append(f"Total Items:      {summary.total_processed}")
        lines.append(f"  • Inserted:     {summary.total_inserted}")
        lines.append(f"  • Updated:      {summary.total_updated}")
        lines.append(f"  • Skipped:      {summary.total_skipped}")
        lines.append(f"Errors:           {summary.total_errors}")
        lines.append(f"Warnings:         {summary.total_warnings}")
        if summary.images_downloaded is not None:
            lines.append("")
            lines.append(f"Images Downloaded:     {summary.images_downloaded}")
            lines.append(f"Images Failed:         {summary.images_failed}")
            lines.append(f"Images Deduplicated:   {summary.images_deduplicated}")
            lines.append(f"Storage Saved:         {summary.storage_saved_mb:.2f} MB")
        lines.append("")

        lines.extend([light, "PHASES", light])
        for phase in self.phases:
            lines.append(f"{phase.status.symbol} {phase.name.upper()} ({phase.duration:.2f}s)")
            lines.append(f"  Status:       {phase.status.value}")
            lines.append(f"  Processed:    {phase.processed}")
            lines.append(f"  Inserted:     {phase.inserted}")
            lines.append(f"  Updated:      {phase.updated}")
            lines.append(f"  Skipped:      {phase.skipped}")
            lines.append(f"  Errors:       {phase.errors}")
            if phase.warnings:
                lines.append(f"  Warnings ({len(phase.warnings)}):")
                lines.extend(f"    - {w}" for w in phase.warnings)
            lines.append("")

        if self.errors:
            lines.extend([light, "ERRORS", light])
            for error in self.errors:
                lines.append(f"✖ [{error.phase}] {error.timestamp.isoformat()}")
                lines.append(f"  {error.message}")
                if error.context:
                    lines.append(f"  Context: {json.dumps(error.context, default=str)}")
                lines.append("")

        lines.append(heavy)
        return "\n".join(lines)

    # ---- Persistence ----

    def _stem(self) -> str:
        return f"seed-report-{self.timestamp.strftime('%Y%m%d-%H%M%S')}"

    def save_json(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False, default=str)
        return path

    def save_text(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.format_text(), encoding="utf-8")
        return path

    def save(self, report_dir: Path) -> Tuple[Path, Path]:
        """
        Write both report files into a directory.

        Returns:
            (json_path, text_path) named ``seed-report-<timestamp>``
        """
        report_dir = Path(report_dir)
        json_path = self.save_json(report_dir / f"{self._stem()}.json")
        text_path = self.save_text(report_dir / f"{self._stem()}.txt")
        safe_logger(self.logger).log_info(
            "Seed report saved", {"json": str(json_path), "text": str(text_path)}
        )
        return json_path, text_path
