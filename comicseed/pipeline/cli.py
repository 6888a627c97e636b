#!/usr/bin/env python3
"""
cli.py
-------------------
Command-line interface for the catalog seeding pipeline.

Commands:
    seed              Run every seeding phase against the database
    check-duplicates  Print the duplicate report for comic export files

Usage:
    # Rehearse without touching the database or downloading images
    comicseed seed --dry-run

    # Full run against a SQLite file with a YAML config
    comicseed seed --db data/comicseed.db --config seed.yaml

    # Duplicate report only
    comicseed check-duplicates data/seed-source/comics.json
"""
from __future__ import annotations

import sys
import click
from pathlib import Path
from typing import Optional, Tuple

from comicseed.core.paths import DB_PATH, LOG_DIR
from comicseed.core.logging_manager import SeedLogger, handle_cli_error
from comicseed.core.cli import setup_logger
from comicseed.core.config import SeedConfig
from comicseed.core.exceptions import SeedPipelineError
from comicseed.database.manager import SeedDB
from comicseed.pipeline.duplicate_detector import detect_duplicates, format_duplicate_report
from comicseed.pipeline.loader import load_sources
from comicseed.pipeline.seed import run_seed
from comicseed.utils.normalize import normalize_slug
from comicseed.validators.schema import SchemaValidator

# Exit status when the run finished but some records were rejected
EXIT_RECORD_ERRORS = 2


@click.group()
@click.option(
    "--log-dir",
    type=click.Path(),
    default=str(LOG_DIR),
    help="Directory for log files",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, log_dir: str, verbose: bool) -> None:
    """Comic Catalog Seeding Pipeline"""
    ctx.ensure_object(dict)
    ctx.obj["log_dir"] = Path(log_dir)
    ctx.obj["verbose"] = verbose
    ctx.obj["logger"] = setup_logger(Path(log_dir), "seed", verbose=verbose)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Validate and resolve without writing anything")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory with the JSON export files",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False),
    default=str(DB_PATH),
    help="SQLite database file",
)
@click.option("--db-url", default=None, help="SQLAlchemy URL (overrides --db)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file overriding configuration defaults",
)
@click.option(
    "--report-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory receiving the seed reports",
)
@click.option("--skip-images", is_flag=True, help="Do not download any image")
@click.pass_context
def seed(
    ctx: click.Context,
    dry_run: bool,
    data_dir: Optional[str],
    db_path: str,
    db_url: Optional[str],
    config_path: Optional[str],
    report_dir: Optional[str],
    skip_images: bool,
) -> None:
    """
    Seed the catalog database from the JSON exports.

    Phases run in dependency order (users, authors, artists, types,
    genres, comics, chapters), each in its own transaction. Records that
    fail validation or whose references cannot be resolved are skipped
    and listed in the report; a failing batch write aborts the run.

    Exit status is 0 on success, 1 when a phase failed and 2 when the run
    completed with rejected records.
    """
    logger: SeedLogger = ctx.obj["logger"]

    try:
        config = SeedConfig.from_yaml(Path(config_path)) if config_path else SeedConfig()
        config = config.with_overrides(
            data_dir=Path(data_dir) if data_dir else None,
            report_dir=Path(report_dir) if report_dir else None,
            skip_images=True if skip_images else None,
        )
        db = None if dry_run else SeedDB(db_url=db_url, db_path=db_path, logger=logger)
    except Exception as e:
        handle_cli_error(ctx, e, "seed", {"config": config_path})
        return

    mode = "🧪 Dry run" if dry_run else "🌱 Seeding"
    click.echo(f"{mode} from {config.data_dir}...")

    try:
        report = run_seed(db, config, dry_run=dry_run, logger=logger)
    except SeedPipelineError as e:
        if e.report is not None:
            click.echo(e.report.format_text())
        handle_cli_error(ctx, e, "seed", {"phase": e.phase})
        return
    except Exception as e:
        handle_cli_error(ctx, e, "seed")
        return
    finally:
        if db is not None:
            db.dispose()

    click.echo(report.format_text())

    summary = report.summary
    click.echo(f"\n✅ Seeding complete ({report.mode}):")
    click.echo(f"  Inserted: {summary.total_inserted}")
    click.echo(f"  Updated: {summary.total_updated}")
    click.echo(f"  Skipped: {summary.total_skipped}")
    if summary.total_errors > 0:
        click.echo(f"  ⚠️  Errors: {summary.total_errors}")
        sys.exit(EXIT_RECORD_ERRORS)


@cli.command("check-duplicates")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--threshold",
    type=click.FloatRange(0, 100),
    default=90.0,
    show_default=True,
    help="Title similarity threshold (percent)",
)
@click.pass_context
def check_duplicates(ctx: click.Context, files: Tuple[str, ...], threshold: float) -> None:
    """
    Report duplicate comics across export files without touching the database.

    Exact slug duplicates are listed as CRITICAL (the first occurrence
    would be kept); similar titles as WARNING.
    """
    logger: SeedLogger = ctx.obj["logger"]

    try:
        loaded = load_sources([Path(f) for f in files], "comics", logger=logger)
        for error in loaded.errors:
            click.echo(f"⚠️  {error.message}", err=True)

        batch = SchemaValidator().validate_batch("comic", loaded.records, phase="comics")
        if batch.errors:
            click.echo(f"⚠️  {len(batch.errors)} invalid records ignored", err=True)

        result = detect_duplicates(
            batch.valid,
            key_func=lambda c: c.slug,
            key_field="slug",
            key_normalizer=normalize_slug,
            title_func=lambda c: c.title,
            threshold=threshold,
            entity="comics",
            logger=logger,
        )
        click.echo(format_duplicate_report(result, entity="Comics"))
    except Exception as e:
        handle_cli_error(ctx, e, "check-duplicates", {"files": list(files)})


if __name__ == "__main__":
    cli(obj={})
