#!/usr/bin/env python3
"""
upsert.py
---------
Generic chunked insert-or-update against the catalog database.

Every record batch is written as ONE multi-row ``INSERT ... ON CONFLICT
(natural key) DO UPDATE SET <mutable fields>, updated_at = excluded.updated_at``
statement, which is what makes repeated seeding runs idempotent: a record
whose natural key already exists refreshes its mutable fields instead of
producing a duplicate row.

Key Features:
    - Dialect-aware conflict clause (SQLite and PostgreSQL)
    - ``updated_at`` always refreshed on touched rows
    - Inserted vs. updated split computed from the keys already stored
    - Dry-run short-circuit returning the same result shape
    - Delete + reinsert replacement for immutable child rows (page images)

Failure policy:
    A failing batch raises BatchWriteError and is NOT retried. Earlier
    batches of the same call stay applied inside the caller's transaction;
    the caller's session_scope decides whether the phase rolls back.

Usage:
    with db.session_scope() as session:
        engine = BatchUpsertEngine(session, logger)
        result = engine.upsert(
            Comic, ["slug"], rows, ["title", "description", "cover_image"],
            batch_size=100,
        )
        print(result.summary())
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

# --- Third party imports ---
from sqlalchemy import Table, delete, insert, select, tuple_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# --- Local imports ---
from comicseed.core.exceptions import BatchWriteError, DatabaseError
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.database.decorators import log_database_operation

# Dialect-specific INSERT constructs supporting ON CONFLICT
_CONFLICT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

TIMESTAMP_COLUMN = "updated_at"


@dataclass
class UpsertResult:
    """
    Outcome of one upsert (or replace) call.

    Attributes:
        table: Target table name
        inserted: Rows whose natural key was new
        updated: Rows whose natural key existed and were refreshed
        skipped: Rows left untouched (repeated key within the call, or an
            existing key under a do-nothing conflict clause)
        deleted: Rows removed before reinsertion (replace only)
        batches: Number of batches issued
        dry_run: Whether the call was a rehearsal
    """

    table: str
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    deleted: int = 0
    batches: int = 0
    dry_run: bool = False

    @property
    def count(self) -> int:
        """Rows inserted or updated."""
        return self.inserted + self.updated

    def summary(self) -> str:
        """Human-readable one-liner."""
        prefix = "[dry-run] " if self.dry_run else ""
        return (
            f"{prefix}{self.table}: {self.inserted} inserted, {self.updated} updated, "
            f"{self.skipped} skipped in {self.batches} batches"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "batches": self.batches,
            "dry_run": self.dry_run,
        }


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    """Split a sequence into consecutive chunks of at most ``size`` items."""
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _as_table(target: Any) -> Table:
    """Accept an ORM model class or a Core Table."""
    return getattr(target, "__table__", target)


class BatchUpsertEngine:
    """
    Chunked, idempotent writer.

    Attributes:
        session: Session of the enclosing phase transaction (may be None
            for dry runs)
        logger: Optional SeedLogger
        default_batch_size: Batch size used when a call passes none
    """

    def __init__(
        self,
        session: Optional[Session],
        logger: Optional[SeedLogger] = None,
        default_batch_size: int = 100,
    ) -> None:
        self.session = session
        self.logger = logger
        self.default_batch_size = default_batch_size

    # ---- Public API ----

    @log_database_operation("batch_upsert")
    def upsert(
        self,
        target: Union[Table, Any],
        key_columns: Sequence[str],
        records: Sequence[Dict[str, Any]],
        mutable_fields: Sequence[str],
        batch_size: Optional[int] = None,
        dry_run: bool = False,
    ) -> UpsertResult:
        """
        Insert new rows and refresh mutable fields of existing ones.

        Args:
            target: ORM model class or Table
            key_columns: Natural key columns (conflict target; must be
                covered by a unique constraint)
            records: Row dictionaries keyed by column name
            mutable_fields: Columns refreshed when the key already exists.
                ``updated_at`` is added automatically when the table has it.
                When nothing is mutable the conflict clause is DO NOTHING.
            batch_size: Rows per statement (default: engine default)
            dry_run: Return the result shape without touching the store

        Returns:
            UpsertResult with inserted/updated/skipped/batches counts

        Raises:
            BatchWriteError: A batch statement failed (not retried)
            ValueError: Records reference unknown columns
        """
        table = _as_table(target)
        size = batch_size or self.default_batch_size
        log = safe_logger(self.logger)

        rows, repeated = self._prepare_rows(table, key_columns, records)
        update_columns = self._update_columns(table, mutable_fields)
        batches = chunked(rows, size)
        result = UpsertResult(
            table=table.name, skipped=repeated, batches=len(batches), dry_run=dry_run
        )

        if dry_run:
            result.inserted = len(rows)
            log.log_debug("upsert_dry_run", result.to_dict())
            return result

        if self.session is None:
            raise DatabaseError("BatchUpsertEngine needs a session outside dry-run mode")

        insert_factory = self._conflict_insert()
        for index, batch in enumerate(batches):
            try:
                existing = self._existing_keys(table, key_columns, batch)
                stmt = insert_factory(table).values(list(batch))
                if update_columns:
                    stmt = stmt.on_conflict_do_update(
                        index_elements=list(key_columns),
                        set_={col: stmt.excluded[col] for col in update_columns},
                    )
                else:
                    stmt = stmt.on_conflict_do_nothing(index_elements=list(key_columns))
                self.session.execute(stmt)
            except SQLAlchemyError as e:
                reason = str(getattr(e, "orig", None) or e)
                raise BatchWriteError(table.name, index, len(batch), reason) from e

            result.inserted += len(batch) - len(existing)
            if update_columns:
                result.updated += len(existing)
            else:
                result.skipped += len(existing)

            log.log_debug(
                "upsert_batch",
                {
                    "table": table.name,
                    "batch": index,
                    "rows": len(batch),
                    "existing": len(existing),
                },
            )

        log.log_info(f"Upserted {table.name}", result.to_dict())
        return result

    @log_database_operation("replace_children")
    def replace_children(
        self,
        target: Union[Table, Any],
        owner_column: str,
        owner_ids: Sequence[Any],
        records: Sequence[Dict[str, Any]],
        batch_size: Optional[int] = None,
        dry_run: bool = False,
    ) -> UpsertResult:
        """
        Replace every child row of the given owners (delete + reinsert).

        Used for immutable rows such as page images, which are never
        updated in place.

        Args:
            target: ORM model class or Table of the child rows
            owner_column: Foreign key column naming the owner
            owner_ids: Owners whose children are replaced
            records: New child rows
            batch_size: Rows per insert statement
            dry_run: Return the result shape without touching the store

        Returns:
            UpsertResult with inserted/deleted/batches counts

        Raises:
            BatchWriteError: A delete or insert statement failed
        """
        table = _as_table(target)
        size = batch_size or self.default_batch_size
        rows = [self._stamp(table, dict(r)) for r in records]
        batches = chunked(rows, size) if rows else []
        result = UpsertResult(table=table.name, batches=len(batches), dry_run=dry_run)

        if dry_run:
            result.inserted = len(rows)
            return result

        if self.session is None:
            raise DatabaseError("BatchUpsertEngine needs a session outside dry-run mode")

        owners = list(dict.fromkeys(owner_ids))
        for index, owner_chunk in enumerate(chunked(owners, size) if owners else []):
            try:
                deleted = self.session.execute(
                    delete(table).where(table.c[owner_column].in_(list(owner_chunk)))
                )
            except SQLAlchemyError as e:
                reason = str(getattr(e, "orig", None) or e)
                raise BatchWriteError(table.name, index, len(owner_chunk), reason) from e
            result.deleted += deleted.rowcount or 0

        for index, batch in enumerate(batches):
            try:
                self.session.execute(insert(table).values(list(batch)))
            except SQLAlchemyError as e:
                reason = str(getattr(e, "orig", None) or e)
                raise BatchWriteError(table.name, index, len(batch), reason) from e
            result.inserted += len(batch)

        safe_logger(self.logger).log_info(f"Replaced {table.name}", result.to_dict())
        return result

    # ---- Internals ----

    def _conflict_insert(self):
        """INSERT construct of the session's dialect."""
        dialect = self.session.get_bind().dialect.name  # type: ignore[union-attr]
        try:
            return _CONFLICT_INSERTS[dialect]
        except KeyError:
            raise DatabaseError(f"Upsert not supported for dialect '{dialect}'")

    def _prepare_rows(
        self,
        table: Table,
        key_columns: Sequence[str],
        records: Sequence[Dict[str, Any]],
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Validate, stamp and de-repeat records.

        Returns:
            (rows, repeated) where repeated counts records dropped because an
            earlier record of the same call carried the same key. A conflict
            target may not be hit twice by one statement.
        """
        for column in key_columns:
            if column not in table.c:
                raise ValueError(f"Unknown key column '{column}' for {table.name}")

        all_columns: List[str] = []
        for record in records:
            for column in record:
                if column not in table.c:
                    raise ValueError(f"Unknown column '{column}' for {table.name}")
                if column not in all_columns:
                    all_columns.append(column)

        seen: Set[Tuple[Any, ...]] = set()
        rows: List[Dict[str, Any]] = []
        repeated = 0
        for record in records:
            key = tuple(record.get(c) for c in key_columns)
            if key in seen:
                repeated += 1
                safe_logger(self.logger).log_warning(
                    f"Repeated {table.name} key in one upsert call, keeping first",
                    {"key": key},
                )
                continue
            seen.add(key)
            # Multi-row VALUES needs the same columns on every row
            row = {column: record.get(column) for column in all_columns}
            rows.append(self._stamp(table, row))
        return rows, repeated

    @staticmethod
    def _stamp(table: Table, row: Dict[str, Any]) -> Dict[str, Any]:
        """Set created_at / updated_at explicitly on rows of timestamped tables."""
        now = datetime.now(timezone.utc)
        if "created_at" in table.c and row.get("created_at") is None:
            row["created_at"] = now
        if TIMESTAMP_COLUMN in table.c:
            row[TIMESTAMP_COLUMN] = now
        return row

    @staticmethod
    def _update_columns(table: Table, mutable_fields: Sequence[str]) -> List[str]:
        """Mutable fields plus the run timestamp column, if the table has one."""
        columns = []
        for column in mutable_fields:
            if column not in table.c:
                raise ValueError(f"Unknown mutable column '{column}' for {table.name}")
            if column not in columns:
                columns.append(column)
        if TIMESTAMP_COLUMN in table.c and TIMESTAMP_COLUMN not in columns:
            columns.append(TIMESTAMP_COLUMN)
        return columns

    def _existing_keys(
        self, table: Table, key_columns: Sequence[str], batch: Sequence[Dict[str, Any]]
    ) -> Set[Tuple[Any, ...]]:
        """Natural keys of this batch that are already stored."""
        columns = [table.c[c] for c in key_columns]
        keys = [tuple(row[c] for c in key_columns) for row in batch]
        if len(columns) == 1:
            stmt = select(columns[0]).where(columns[0].in_([k[0] for k in keys]))
        else:
            stmt = select(*columns).where(tuple_(*columns).in_(keys))
        return {tuple(row) for row in self.session.execute(stmt)}  # type: ignore[union-attr]
