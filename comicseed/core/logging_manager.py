#!/usr/bin/env python3
"""
logging_manager.py
------------------
Structured logging for seeding runs.

Every SeedLogger writes two rotating files in its log directory:
    <component>.log   everything from DEBUG up (phase progress, batches)
    errors.log        failures only, with context and traceback

and echoes WARNING and above to the console (INFO and above when the CLI
runs with --verbose). Detail dictionaries are appended as JSON so the
logs can be grepped by phase, table or URL.

Severity conventions used by the pipeline:
    critical  a duplicate record was skipped (first occurrence kept)
    warning   a record was rejected or an image replaced by a placeholder
    info      a file loaded, a table upserted, a phase finished
    debug     a missing optional source file, a single batch written

Components accept ``Optional[SeedLogger]`` and log through
``safe_logger(logger)``, which substitutes a NullLogger for None.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import json
import logging
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

# --- Third party imports ---
import click

if TYPE_CHECKING:
    from comicseed.core.exceptions import RecordError

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _with_details(label: str, message: str, details: Optional[Dict[str, Any]]) -> str:
    if not details:
        return f"{label} - {message}"
    return f"{label} - {message}: {json.dumps(details, default=str, ensure_ascii=False)}"


class SeedLogger:
    """
    File and console logger of one pipeline component.

    Attributes:
        log_dir: Directory receiving the log files
        component_name: Logger namespace and main log file stem
        main_logger: Logger behind ``<component>.log`` and the console
        error_logger: Logger behind ``errors.log``
    """

    def __init__(
        self,
        log_dir: Path,
        component_name: str = "comicseed",
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        console_level: int = logging.WARNING,
    ) -> None:
        """
        Args:
            log_dir: Directory for log files (created if missing)
            component_name: e.g. 'seed'
            max_bytes: Size at which a log file rotates
            backup_count: Rotated files kept per log
            console_level: Lowest level echoed to stderr
        """
        self.log_dir = Path(log_dir)
        self.component_name = component_name
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._fresh_logger("operations", logging.DEBUG)
        self.error_logger = self._fresh_logger("errors", logging.ERROR)

        for logger, path in (
            (self.main_logger, self.log_dir / f"{component_name}.log"),
            (self.error_logger, self.log_dir / "errors.log"),
        ):
            handler = RotatingFileHandler(
                path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
            handler.setLevel(logger.level)
            handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            logger.addHandler(handler)

        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        self.main_logger.addHandler(console)

    def _fresh_logger(self, suffix: str, level: int) -> logging.Logger:
        logger = logging.getLogger(f"{self.component_name}.{suffix}")
        logger.setLevel(level)
        # Loggers are process-global; a second SeedLogger must not double the handlers
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = False
        return logger

    def close(self) -> None:
        """Close and detach every handler (releases the log files)."""
        for logger in (self.main_logger, self.error_logger):
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    # ---- Levels ----

    def log_operation(self, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a pipeline step (phase start/end, upsert, map built)."""
        self.main_logger.info(_with_details("OPERATION", operation, details or {}))

    def log_debug(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.debug(_with_details("DEBUG", message, details))

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.info(_with_details("INFO", message, details))

    def log_warning(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.main_logger.warning(_with_details("WARNING", message, details))

    def log_critical(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a policy decision that dropped data, e.g. a skipped duplicate."""
        self.main_logger.critical(_with_details("CRITICAL", message, details))

    # ---- Errors ----

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Write an exception to errors.log with its context and traceback.

        Args:
            error: Exception that occurred
            context: Where it happened (phase, table, batch, ...)
        """
        self.error_logger.error(f"ERROR - {type(error).__name__}: {error}")
        if context:
            self.error_logger.error(
                "Context: " + ", ".join(f"{k}={v}" for k, v in context.items())
            )
        self.error_logger.error(f"Traceback:\n{traceback.format_exc()}")

    def log_record_error(self, error: RecordError) -> None:
        """Warn about a recovered record-level error (validation, resolution, download)."""
        self.log_warning(
            f"{error.kind} in {error.phase}", {"error": error.message, **error.context}
        )

    def log_cli_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        show_traceback: bool = False,
    ) -> str:
        """
        Log an error that ends a CLI command and return its terminal message.

        Examples:
            >>> logger.log_cli_error(DatabaseError("Connection failed"))
            '❌ DatabaseError: Connection failed'
        """
        self.log_error(error, context or {"source": "cli"})
        message = f"❌ {type(error).__name__}: {error}"
        if show_traceback:
            message += f"\n\n{traceback.format_exc()}"
        return message


def handle_cli_error(
    ctx: "click.Context",
    error: Exception,
    operation: str,
    additional_context: Optional[Dict[str, Any]] = None,
    exit_code: int = 1,
) -> None:
    """
    Log a failed CLI command, print a one-line message and exit.

    Args:
        ctx: Click context whose ``obj`` holds 'logger' and 'verbose'
        error: Exception that ended the command
        operation: Command name (e.g. 'seed')
        additional_context: Extra context for the log (config file, phase, ...)
        exit_code: Process exit status

    Note:
        Never returns.
    """
    context = {"operation": operation, **(additional_context or {})}
    message = safe_logger(ctx.obj.get("logger")).log_cli_error(
        error, context, show_traceback=ctx.obj.get("verbose", False)
    )
    click.echo(message, err=True)
    sys.exit(exit_code)


class NullLogger:
    """SeedLogger stand-in that drops everything."""

    def log_operation(self, operation: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_debug(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_warning(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_critical(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        pass

    def log_record_error(self, error: RecordError) -> None:
        pass

    def log_cli_error(
        self,
        error: Exception,
        context: Optional[Dict[str, Any]] = None,
        show_traceback: bool = False,
    ) -> str:
        return f"❌ {type(error).__name__}: {error}"


_null_logger = NullLogger()


def safe_logger(logger: Optional[SeedLogger]) -> SeedLogger:
    """
    Return the logger, or the shared NullLogger when it is None.

    Usage:
        safe_logger(self.logger).log_info("Loaded 120 comics")
    """
    return logger if logger is not None else _null_logger  # type: ignore[return-value]
