"""
Tests for logging_manager module.

Tests the SeedLogger file handlers, the safe_logger function and the
NullLogger class that provide null-safe logging throughout the codebase.
"""
import click
import logging
import pytest
from unittest.mock import MagicMock

from comicseed.core.cli import setup_logger
from comicseed.core.exceptions import RecordError
from comicseed.core.logging_manager import (
    NullLogger,
    SeedLogger,
    handle_cli_error,
    safe_logger,
)


class TestNullLogger:
    """Tests for NullLogger class."""

    def test_null_logger_methods_are_no_ops(self):
        """Every NullLogger method accepts its arguments and does nothing."""
        logger = NullLogger()
        logger.log_operation("test_op", {"key": "value"})
        logger.log_error(ValueError("test error"), {"context": "test"})
        logger.log_debug("debug message")
        logger.log_info("info message")
        logger.log_warning("warning message", {"key": "value"})
        logger.log_critical("critical message")

    def test_null_logger_log_cli_error_returns_formatted(self):
        """NullLogger.log_cli_error should return formatted error string."""
        result = NullLogger().log_cli_error(ValueError("test error"))
        assert result == "❌ ValueError: test error"


class TestSafeLogger:
    """Tests for safe_logger function."""

    def test_safe_logger_returns_logger_when_provided(self):
        """safe_logger should return the same logger when not None."""
        mock_logger = MagicMock(spec=SeedLogger)
        assert safe_logger(mock_logger) is mock_logger

    def test_safe_logger_returns_null_logger_when_none(self):
        """safe_logger should return NullLogger when logger is None."""
        assert isinstance(safe_logger(None), NullLogger)

    def test_safe_logger_null_logger_is_singleton(self):
        """safe_logger should return the same NullLogger instance."""
        assert safe_logger(None) is safe_logger(None)


class TestSeedLogger:
    """Tests for SeedLogger file output."""

    def test_creates_log_files(self, tmp_dir):
        """Operations and errors land in separate files."""
        logger = SeedLogger(tmp_dir, component_name="seedtest")
        try:
            logger.log_operation("phase_start", {"phase": "comics"})
            logger.log_error(ValueError("bad row"), {"phase": "comics"})
        finally:
            logger.close()

        main_log = (tmp_dir / "seedtest.log").read_text(encoding="utf-8")
        error_log = (tmp_dir / "errors.log").read_text(encoding="utf-8")
        assert "phase_start" in main_log
        assert "bad row" in error_log

    def test_log_cli_error_includes_type(self, tmp_dir):
        """CLI messages show the error type and message."""
        logger = SeedLogger(tmp_dir, component_name="clitest")
        try:
            message = logger.log_cli_error(RuntimeError("boom"))
        finally:
            logger.close()
        assert message == "❌ RuntimeError: boom"

    def test_log_record_error(self, tmp_dir):
        """Recovered record errors are logged as warnings with their context."""
        logger = SeedLogger(tmp_dir, component_name="recordtest")
        try:
            logger.log_record_error(
                RecordError(
                    phase="chapters",
                    kind="ResolutionError",
                    message="Comic not found",
                    context={"entity": "comic"},
                )
            )
        finally:
            logger.close()

        main_log = (tmp_dir / "recordtest.log").read_text(encoding="utf-8")
        assert "WARNING - ResolutionError in chapters" in main_log
        assert '"entity": "comic"' in main_log

    def test_second_logger_does_not_duplicate_lines(self, tmp_dir):
        """Re-creating a component logger replaces its handlers."""
        SeedLogger(tmp_dir, component_name="duptest").close()
        logger = SeedLogger(tmp_dir, component_name="duptest")
        try:
            logger.log_info("once")
        finally:
            logger.close()
        assert (tmp_dir / "duptest.log").read_text(encoding="utf-8").count("once") == 1

    def test_verbose_console_level(self, tmp_dir):
        """verbose=True lowers the console threshold to INFO."""
        logger = setup_logger(tmp_dir, "verbosetest", verbose=True)
        try:
            levels = [
                h.level for h in logger.main_logger.handlers
                if type(h) is logging.StreamHandler
            ]
        finally:
            logger.close()
        assert levels == [logging.INFO]

    def test_setup_logger_uses_operations_subdirectory(self, tmp_dir):
        """setup_logger writes under <log_dir>/operations."""
        logger = setup_logger(tmp_dir, "setuptest")
        try:
            logger.log_info("hello")
        finally:
            logger.close()
        assert (tmp_dir / "operations" / "setuptest.log").exists()


class TestHandleCliError:
    """Tests for handle_cli_error."""

    def test_exits_with_code_and_logs(self):
        """The error is logged with its context and the process exits."""
        mock_logger = MagicMock(spec=SeedLogger)
        mock_logger.log_cli_error.return_value = "❌ ValueError: nope"
        ctx = click.Context(click.Command("seed"), obj={"logger": mock_logger})

        with pytest.raises(SystemExit) as exc_info:
            handle_cli_error(ctx, ValueError("nope"), "seed", {"phase": "users"}, exit_code=3)

        assert exc_info.value.code == 3
        args, kwargs = mock_logger.log_cli_error.call_args
        assert args[1] == {"operation": "seed", "phase": "users"}
