#!/usr/bin/env python3
"""
exceptions.py
--------------------
Custom exception classes for the ComicSeed project.

Exception Hierarchy:
    Exception (built-in)
    ├── DatabaseError - Base for all database-related errors
    │   └── BatchWriteError - A batched insert/upsert statement failed
    ├── ValidationError - Data/config validation failures
    │   └── RecordValidationError - One raw export record failed its schema
    └── SeedError - Base for pipeline errors
        ├── SourceLoadError - A source file could not be parsed
        ├── ResolutionError - A foreign key could not be resolved
        ├── DownloadError - An image asset could not be fetched
        └── SeedPipelineError - Fatal error out of the top-level run

    RecordError (dataclass) - A recovered record-level error kept for the report

Propagation:
    Record-level errors (RecordValidationError, ResolutionError,
    DownloadError, SourceLoadError) are caught where they occur and
    aggregated into the pipeline context. Phase-level errors
    (BatchWriteError and anything unexpected) abort the current phase
    and propagate up to run_seed, which wraps them in SeedPipelineError.

Usage:
    from comicseed.core.exceptions import BatchWriteError, ResolutionError

    try:
        engine.upsert(...)
    except BatchWriteError as e:
        logger.log_error(e, {"phase": "comics"})
        raise
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class DatabaseError(Exception):
    """
    Base exception for database-related errors.

    Raised when database operations fail due to connection issues,
    query errors, integrity violations, or other database problems.

    Examples:
        >>> raise DatabaseError("Connection to database failed")
    """

    pass


class BatchWriteError(DatabaseError):
    """
    Exception for a failed batched write.

    Raised by the batch upsert engine when a single insert statement
    fails (constraint violation that pre-filtering did not catch,
    connectivity loss). Never recovered locally: it aborts the phase
    transaction it happened in.

    Attributes:
        table: Name of the target table
        batch_index: Zero-based index of the failing batch
        batch_size: Number of rows in the failing batch

    Examples:
        >>> raise BatchWriteError("comics", 2, 100, "UNIQUE constraint failed: comics.title")
    """

    def __init__(
        self, table: str, batch_index: int, batch_size: int, reason: str
    ) -> None:
        self.table = table
        self.batch_index = batch_index
        self.batch_size = batch_size
        self.reason = reason
        super().__init__(
            f"Batch {batch_index} ({batch_size} rows) into '{table}' failed: {reason}"
        )


class ValidationError(Exception):
    """
    Exception for data validation failures.

    Raised when input data fails validation checks:
    - Missing required fields
    - Type mismatches
    - Invalid configuration keys or values

    Examples:
        >>> raise ValidationError("Unknown config key: 'batchsize'")
    """

    pass


class RecordValidationError(ValidationError):
    """
    Exception for a single raw export record failing its entity schema.

    Attributes:
        entity: Entity type being validated (e.g. 'comic')
        field: Offending field name
        reason: Human-readable reason
        raw: The original raw record
    """

    def __init__(
        self, entity: str, field: str, reason: str, raw: Any = None
    ) -> None:
        self.entity = entity
        self.field = field
        self.reason = reason
        self.raw = raw
        super().__init__(f"Invalid {entity}: '{field}' {reason}")


class SeedError(Exception):
    """
    Base exception for seeding pipeline errors.

    Catch this to handle any pipeline-specific error; catch a subclass
    for record-level handling.
    """

    pass


class SourceLoadError(SeedError):
    """
    Exception for a source file that exists but cannot be parsed.

    Examples:
        >>> raise SourceLoadError(Path("comics.json"), "Expecting value: line 1 column 1")
    """

    def __init__(self, path: Any, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load {path}: {reason}")


class ResolutionError(SeedError):
    """
    Exception for a foreign key that matches no known ID variant.

    Attributes:
        entity: Referenced entity type (e.g. 'comic', 'author')
        attempted_keys: Every lookup key that was tried, in order
        candidates: Surrogate IDs behind an ambiguous key, if any
        raw: The dependent raw record whose reference failed
    """

    def __init__(
        self,
        entity: str,
        attempted_keys: List[str],
        candidates: Optional[List[int]] = None,
        raw: Any = None,
    ) -> None:
        self.entity = entity
        self.raw = raw
        self.attempted_keys = attempted_keys
        self.candidates = candidates or []
        if self.candidates:
            message = (
                f"Ambiguous {entity} reference {attempted_keys}: "
                f"matches ids {sorted(self.candidates)}"
            )
        else:
            message = f"{entity.capitalize()} not found: tried {attempted_keys}"
        super().__init__(message)


class DownloadError(SeedError):
    """
    Exception for an image asset that could not be downloaded.

    Raised for network failures, HTTP error statuses, disallowed content
    types or extensions, oversized payloads and undecodable image data.
    Always recovered by substituting a placeholder asset.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Download failed for {url}: {reason}")


class SeedPipelineError(SeedError):
    """
    Fatal error propagating out of the top-level seed run.

    Attributes:
        phase: Name of the phase that failed
        report: Partial SeedReport accumulated up to the failure
    """

    def __init__(self, phase: str, cause: Exception, report: Any = None) -> None:
        self.phase = phase
        self.cause = cause
        self.report = report
        super().__init__(f"Phase '{phase}' failed: {type(cause).__name__}: {cause}")


def error_context(error: Exception) -> Dict[str, Any]:
    """
    Extract the structured attributes of a pipeline error for reporting.

    Args:
        error: Any exception

    Returns:
        Dictionary of the error's public attributes (may be empty)
    """
    if isinstance(error, RecordValidationError):
        return {"entity": error.entity, "field": error.field}
    if isinstance(error, ResolutionError):
        context: Dict[str, Any] = {
            "entity": error.entity,
            "attempted_keys": error.attempted_keys,
        }
        if error.candidates:
            context["candidates"] = sorted(error.candidates)
        return context
    if isinstance(error, DownloadError):
        return {"url": error.url}
    if isinstance(error, SourceLoadError):
        return {"path": str(error.path)}
    if isinstance(error, BatchWriteError):
        return {
            "table": error.table,
            "batch_index": error.batch_index,
            "batch_size": error.batch_size,
        }
    return {}


@dataclass
class RecordError:
    """
    A recovered record-level error, kept for the execution report.

    Attributes:
        phase: Pipeline phase the record belonged to
        kind: Error class name (e.g. 'RecordValidationError')
        message: Human-readable message
        raw: The original raw record (or URL/path for assets and files)
        context: Structured attributes of the error
        timestamp: When the error was recorded (UTC)
    """

    phase: str
    kind: str
    message: str
    raw: Any = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(
        cls, phase: str, error: Exception, raw: Any = None
    ) -> "RecordError":
        """Build an entry from a caught exception."""
        if raw is None:
            raw = getattr(error, "raw", None)
        return cls(
            phase=phase,
            kind=type(error).__name__,
            message=str(error),
            raw=raw,
            context=error_context(error),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "timestamp": self.timestamp.isoformat(),
            "error": self.message,
            "kind": self.kind,
            "context": self.context,
        }
