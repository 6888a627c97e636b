#!/usr/bin/env python3
"""
decorators.py
-------------
Decorators shared by the store-facing code.

- ``log_database_operation``: times a method of an object with a
  ``logger`` attribute and logs its outcome (with the target table and,
  when the result has ``to_dict``, the result counts)
- ``handle_db_errors``: turns SQLAlchemy exceptions into DatabaseError
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

# --- Third party imports ---
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

# --- Local imports ---
from comicseed.core.exceptions import DatabaseError
from comicseed.core.logging_manager import safe_logger


def _table_name(target: Any) -> Optional[str]:
    """Table name of an ORM model or Table passed as first argument."""
    name = getattr(target, "__tablename__", None) or getattr(target, "name", None)
    return name if isinstance(name, str) else None


def log_database_operation(operation_name: str) -> Callable:
    """
    Log the duration and outcome of a store operation.

    Args:
        operation_name: Logged as ``<operation_name>_completed`` on success

    Raises:
        Whatever the wrapped method raises, after logging it
    """

    def decorator(function: Callable) -> Callable:
        @wraps(function)
        def wrapper(self, *args, **kwargs):
            log = safe_logger(getattr(self, "logger", None))
            details: Dict[str, Any] = {}
            table = _table_name(args[0]) if args else None
            if table:
                details["table"] = table

            started = time.perf_counter()
            try:
                result = function(self, *args, **kwargs)
            except Exception as e:
                details["duration_seconds"] = round(time.perf_counter() - started, 4)
                log.log_error(e, {"operation": operation_name, **details})
                raise

            details["duration_seconds"] = round(time.perf_counter() - started, 4)
            if hasattr(result, "to_dict"):
                details.update(result.to_dict())
            log.log_operation(f"{operation_name}_completed", details)
            return result

        return wrapper

    return decorator


def handle_db_errors(function: Callable) -> Callable:
    """
    Re-raise SQLAlchemy errors as DatabaseError.

    DatabaseError subclasses (BatchWriteError) and non-database exceptions
    pass through unchanged.
    """

    @wraps(function)
    def wrapper(*args, **kwargs):
        try:
            return function(*args, **kwargs)
        except IntegrityError as e:
            raise DatabaseError(
                f"Data integrity violation in {function.__name__}: {e.orig}"
            ) from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database operation failed in {function.__name__}: {e}") from e

    return wrapper
