#!/usr/bin/env python3
"""
manager.py
--------------------
Database manager for the comic catalog.

Provides the SeedDB class: engine and session factory setup plus a
transactional ``session_scope`` used by every seeding phase.

Key Features:
    - Transaction management with automatic rollback
    - SQLite file path or any SQLAlchemy URL (PostgreSQL in production)
    - Schema creation for fresh databases (migrations are external)

Notes
==============
- Each seeding phase runs inside exactly one ``session_scope``; a failure
  rolls back that phase only, earlier phases stay committed.
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

# --- Third party imports ---
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

# --- Local imports ---
from comicseed.core.exceptions import DatabaseError
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.database.models import Base


class SeedDB:
    """
    Database manager for seeding runs.

    Attributes:
        db_url: SQLAlchemy URL of the target database
        engine: SQLAlchemy engine
        SessionLocal: Session factory
        logger: Optional SeedLogger
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        db_path: Optional[Union[str, Path]] = None,
        logger: Optional[SeedLogger] = None,
        create_schema: bool = True,
    ) -> None:
        """
        Initialize database engine and session factory.

        Args:
            db_url: Full SQLAlchemy URL (takes precedence over db_path)
            db_path: Path to a SQLite file
            logger: Optional logger
            create_schema: Create missing tables on startup

        Raises:
            DatabaseError: If neither db_url nor db_path is given, or the
                engine cannot be initialized
        """
        if db_url is None and db_path is None:
            raise DatabaseError("SeedDB requires db_url or db_path")

        if db_url is None:
            path = Path(db_path).expanduser().resolve()  # type: ignore[arg-type]
            path.parent.mkdir(parents=True, exist_ok=True)
            db_url = f"sqlite:///{path}"

        self.db_url = db_url
        self.logger = logger
        self._setup_engine()
        if create_schema:
            self.create_schema()

    def _setup_engine(self) -> None:
        """Initialize database engine and session factory."""
        log = safe_logger(self.logger)
        try:
            log.log_operation("database_init_start", {"db_url": self._safe_url()})

            self.engine: Engine = create_engine(
                self.db_url,
                echo=False,
                future=True,
                pool_pre_ping=True,
            )

            if self.engine.dialect.name == "sqlite":
                event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

            self.SessionLocal: sessionmaker = sessionmaker(
                bind=self.engine,
                autoflush=True,
                expire_on_commit=False,
                future=True,
            )

            log.log_operation("database_init_complete", {"success": True})

        except Exception as e:
            log.log_error(e, {"operation": "database_init"})
            raise DatabaseError(f"Database initialization failed: {e}")

    def _safe_url(self) -> str:
        """Database URL with any password masked."""
        return make_url(self.db_url).render_as_string(hide_password=True)

    @property
    def dialect(self) -> str:
        """Name of the SQL dialect (``sqlite``, ``postgresql``)."""
        return self.engine.dialect.name

    def create_schema(self) -> None:
        """Create every missing table of the catalog schema."""
        Base.metadata.create_all(self.engine)
        safe_logger(self.logger).log_debug(
            "schema_ready", {"tables": sorted(inspect(self.engine).get_table_names())}
        )

    # ---- Session Management ----
    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around operations with logging.

        Usage:
            with db.session_scope() as session:
                engine = BatchUpsertEngine(session, logger)
                engine.upsert(Author, ["name"], rows, ["bio", "image"])
        """
        log = safe_logger(self.logger)
        session = self.SessionLocal()
        session_id = datetime.now().strftime("%Y%m%d_%H%M%S_%f")

        log.log_debug("session_start", {"session_id": session_id})

        try:
            yield session
            session.commit()
            log.log_debug("session_commit", {"session_id": session_id})

        except Exception as e:
            session.rollback()
            log.log_error(e, {"operation": "session_rollback", "session_id": session_id})
            raise
        finally:
            session.close()
            log.log_debug("session_close", {"session_id": session_id})

    def get_session(self) -> Session:
        """Create and return a new SQLAlchemy session."""
        return self.SessionLocal()

    def dispose(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """Turn on SQLite foreign key enforcement for each new connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
