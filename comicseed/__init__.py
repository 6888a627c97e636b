"""
ComicSeed Package
=================

Data ingestion and deduplication pipeline for a comic catalog database.

This package loads loosely-structured JSON export files (users, comics,
chapters, and the reference entities they mention), normalizes them into
a relational shape, skips duplicate records, deduplicates downloaded image
assets by content, resolves foreign keys between independently-loaded
exports, and upserts everything idempotently into a SQL database.

Main Components:
    - core: Logging, configuration, paths, exceptions
    - database: SQLAlchemy ORM models, session management, batch upserts
    - validators: Per-entity schema validation of raw export records
    - pipeline: Loader, duplicate detector, entity resolver, image
      downloader/deduplicator, report generator, seeding phases
    - utils: Slug and name normalization, string similarity

Primary Interfaces:
    - comicseed.pipeline.seed.run_seed: Run the full pipeline
    - comicseed.pipeline.cli: Command-line entry point
    - comicseed.database.manager.SeedDB: Database interface

Example Usage:
    >>> from comicseed import SeedDB, SeedConfig, run_seed
    >>> db = SeedDB(db_url="sqlite:///data/comicseed.db")
    >>> report = run_seed(db, SeedConfig(), dry_run=True)
    >>> print(report.summary.total_inserted)
"""

__version__ = "1.0.0"

from comicseed.core.config import SeedConfig
from comicseed.database.manager import SeedDB
from comicseed.pipeline.seed import run_seed

__all__ = [
    "SeedConfig",
    "SeedDB",
    "run_seed",
]
