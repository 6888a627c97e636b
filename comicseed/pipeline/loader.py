#!/usr/bin/env python3
"""
loader.py
---------
Discovers and parses JSON export files.

Export sets vary in which files exist, so a missing file is not an error:
it is skipped and logged at debug level. A file that exists but cannot be
parsed (or is not a JSON array) contributes nothing and is recorded as a
SourceLoadError; the remaining files are still loaded. Arrays from all
files are concatenated in path order, none authoritative over another;
downstream duplicate detection handles overlap.

Usage:
    from comicseed.pipeline.loader import load_sources

    result = load_sources(config.source_paths("comics"), "comics", logger)
    print(result.summary())
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

# --- Local imports ---
from comicseed.core.exceptions import RecordError, SourceLoadError
from comicseed.core.logging_manager import SeedLogger, safe_logger


@dataclass
class LoadResult:
    """
    Records merged from every parseable source file of one entity type.

    Attributes:
        entity: Entity type tag
        records: Concatenated records in file order
        files_loaded: Files that contributed
        files_missing: Candidate files that did not exist
        errors: One entry per unparseable file
        counts: Records contributed per file
    """

    entity: str
    records: List[Any] = field(default_factory=list)
    files_loaded: List[Path] = field(default_factory=list)
    files_missing: List[Path] = field(default_factory=list)
    errors: List[RecordError] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        return (
            f"{self.entity}: {len(self.records)} records from "
            f"{len(self.files_loaded)} files "
            f"({len(self.files_missing)} missing, {len(self.errors)} unreadable)"
        )


def _read_array(path: Path) -> List[Any]:
    """
    Parse one file as a JSON array.

    Raises:
        SourceLoadError: If the file cannot be read, parsed, or is not an array
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SourceLoadError(path, str(e)) from e

    if not isinstance(data, list):
        raise SourceLoadError(path, f"expected a JSON array, got {type(data).__name__}")
    return data


def load_sources(
    paths: Sequence[Union[str, Path]],
    entity: str,
    logger: Optional[SeedLogger] = None,
    phase: Optional[str] = None,
) -> LoadResult:
    """
    Load and concatenate every parseable JSON array among the given paths.

    Args:
        paths: Candidate files in priority order
        entity: Entity type tag ('comics', 'chapters', ...)
        logger: Optional logger
        phase: Phase name recorded on errors (default: entity)

    Returns:
        LoadResult (never raises for missing or malformed files)
    """
    log = safe_logger(logger)
    result = LoadResult(entity=entity)

    for candidate in paths:
        path = Path(candidate)
        if not path.exists():
            result.files_missing.append(path)
            log.log_debug("Source file not found, skipping", {"path": str(path), "entity": entity})
            continue

        try:
            records = _read_array(path)
        except SourceLoadError as e:
            result.errors.append(RecordError.from_exception(phase or entity, e, str(path)))
            log.log_warning("Source file unreadable", {"path": str(path), "error": e.reason})
            continue

        result.records.extend(records)
        result.files_loaded.append(path)
        result.counts[path.name] = len(records)
        log.log_info(f"Loaded {len(records)} {entity} from {path.name}")

    log.log_operation(
        "sources_loaded",
        {
            "entity": entity,
            "records": len(result.records),
            "files": [p.name for p in result.files_loaded],
            "missing": len(result.files_missing),
            "errors": len(result.errors),
        },
    )
    return result
