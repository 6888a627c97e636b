#!/usr/bin/env python3
"""
cli.py
------
Logger setup shared by the comicseed commands.

Command logs go to ``<log_dir>/operations/<command>.log``; errors of every
command share ``<log_dir>/operations/errors.log``.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import logging
from pathlib import Path

# --- Local imports ---
from comicseed.core.logging_manager import SeedLogger


def setup_logger(log_dir: Path, component_name: str, verbose: bool = False) -> SeedLogger:
    """
    Create the SeedLogger of a CLI command.

    Args:
        log_dir: Base log directory (typically paths.LOG_DIR)
        component_name: Command name, used as the log file stem
        verbose: Echo INFO messages to the console, not only warnings

    Examples:
        >>> logger = setup_logger(LOG_DIR, "seed", verbose=True)
        >>> logger.log_info("Starting seed run")
    """
    return SeedLogger(
        Path(log_dir) / "operations",
        component_name=component_name,
        console_level=logging.INFO if verbose else logging.WARNING,
    )
