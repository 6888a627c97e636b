#!/usr/bin/env python3
"""
paths.py
-------------------
Path constants for the ComicSeed project.

All default locations are Path objects relative to the project root so the
pipeline behaves the same regardless of the working directory it is
launched from. Every one of them can be overridden through SeedConfig or
the CLI.

The project structure:
    ROOT/
    ├── comicseed/          # Package code
    ├── data/
    │   ├── seed-source/    # JSON export files
    │   └── seed-reports/   # Execution reports
    ├── public/             # Local image storage root
    └── logs/               # Application logs
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from pathlib import Path


def _get_project_root() -> Path:
    """
    Determine project root directory.

    Assumes this file is at ROOT/comicseed/core/paths.py.

    Returns:
        Path object for project root
    """
    return Path(__file__).resolve().parent.parent.parent


# ----- Project directory -----
ROOT: Path = _get_project_root()
DATA_DIR = ROOT / "data"

# ---- Seed sources & reports ----
SOURCE_DIR = DATA_DIR / "seed-source"
REPORT_DIR = DATA_DIR / "seed-reports"

# ---- Database ----
DB_PATH = DATA_DIR / "comicseed.db"

# ---- Image storage ----
PUBLIC_DIR = ROOT / "public"

# ---- Logs ----
LOG_DIR = ROOT / "logs"
