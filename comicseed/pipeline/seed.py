#!/usr/bin/env python3
"""
seed.py
-------
Top-level seeding run.

Runs every phase in dependency order against one SeedContext, closing
each phase on the report as it finishes. The report is saved whether the
run succeeds or fails; a phase-level failure is re-raised as
SeedPipelineError carrying the partial report, so callers can exit with
a failure status after the report has been written.

Usage:
    from comicseed import SeedConfig, SeedDB, run_seed

    db = SeedDB(db_path="data/comicseed.db")
    report = run_seed(db, SeedConfig(), dry_run=True)
    print(report.format_text())
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

# --- Local imports ---
from comicseed.core.config import SeedConfig
from comicseed.core.exceptions import SeedPipelineError
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.database.manager import SeedDB
from comicseed.pipeline.context import PhaseCounts, SeedContext
from comicseed.pipeline.phases import PHASES
from comicseed.pipeline.report import PhaseStatus, SeedReport
from comicseed.pipeline.storage import BlobStorage

Phase = Tuple[str, Callable[[SeedContext], PhaseCounts]]


def run_phase(ctx: SeedContext, name: str, phase: Callable[[SeedContext], PhaseCounts]) -> PhaseCounts:
    """
    Run one phase and close it on the report.

    Raises:
        Exception: Whatever aborted the phase, after marking it failed
    """
    log = safe_logger(ctx.logger)
    ctx.report.start_phase(name)
    try:
        counts = phase(ctx)
    except Exception as e:
        ctx.report.end_phase(name, PhaseStatus.FAILED)
        ctx.report.add_error(e, phase=name)
        log.log_error(e, {"phase": name})
        raise

    if counts.skipped_reason and counts.processed == 0:
        ctx.report.add_warning(counts.skipped_reason, phase=name)
        ctx.report.end_phase(name, PhaseStatus.SKIPPED, **counts.to_dict())
    else:
        ctx.report.end_phase(name, PhaseStatus.SUCCESS, **counts.to_dict())
    log.log_info(f"Phase {name} complete", counts.to_dict())
    return counts


def run_seed(
    db: Optional[SeedDB],
    config: Optional[SeedConfig] = None,
    dry_run: bool = False,
    data_dir: Optional[Path] = None,
    logger: Optional[SeedLogger] = None,
    storage: Optional[BlobStorage] = None,
    save_report: bool = True,
    phases: Optional[Sequence[Phase]] = None,
) -> SeedReport:
    """
    Seed the catalog database from the export files.

    Args:
        db: Target database (may be None for dry runs)
        config: Run configuration (default: SeedConfig())
        dry_run: Validate, deduplicate and resolve without touching the
            store or downloading images
        data_dir: Override of config.data_dir
        logger: Optional logger
        storage: Blob storage for images (default: local files under
            config.storage_dir)
        save_report: Write the JSON and text reports into config.report_dir
        phases: Phases to run (default: all, in dependency order)

    Returns:
        The SeedReport of the run

    Raises:
        SeedPipelineError: A phase failed; ``.report`` holds the partial
            report (already saved when save_report is set)
    """
    config = config or SeedConfig()
    log = safe_logger(logger)
    ctx = SeedContext.create(db, config, dry_run=dry_run, data_dir=data_dir, logger=logger, storage=storage)

    log.log_operation(
        "seed_start",
        {"mode": ctx.report.mode, "data_dir": str(ctx.data_dir), "skip_images": config.skip_images},
    )

    for name, phase in phases if phases is not None else PHASES:
        try:
            run_phase(ctx, name, phase)
        except Exception as e:
            _finish(ctx, save_report)
            raise SeedPipelineError(name, e, ctx.report) from e

    _finish(ctx, save_report)
    log.log_operation("seed_complete", ctx.report.summary.to_dict())
    return ctx.report


def _finish(ctx: SeedContext, save_report: bool) -> None:
    """Close the report and write it out."""
    ctx.finalize_images()
    ctx.report.finish()
    if not save_report:
        return
    try:
        ctx.report.save(ctx.config.report_dir)
    except OSError as e:
        # Logged only; the run outcome stands
        safe_logger(ctx.logger).log_error(e, {"operation": "save_report"})

