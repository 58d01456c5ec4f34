# vctransfer/transfer/reconciler.py
"""
Existence-check-then-insert reconciliation for the address names table.

Source rows are streamed through a server-side cursor (fetch_size rows per
round trip), so memory stays flat whatever the table size. For every row the
destination is probed by address_hash; missing rows are inserted verbatim,
including their id, and committed one by one. Re-running after a crash only
inserts what is still missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Tuple

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from vctransfer.database.connection import DatabaseConnection, table_identifier
from vctransfer.database.schema import JSONB_COLUMNS, NAME_COLUMNS, AddressName
from vctransfer.errors import QueryError

logger = logging.getLogger(__name__)

STREAM_CURSOR_NAME = "vctransfer_names_stream"


def _select_list() -> sql.Composed:
    # jsonb comes back as text so that a json null and SQL NULL stay distinct
    return sql.SQL(", ").join(
        sql.SQL("{}::text AS {}").format(sql.Identifier(c), sql.Identifier(c)) if c in JSONB_COLUMNS
        else sql.Identifier(c)
        for c in NAME_COLUMNS
    )


@dataclass
class ReconcileStats:
    """Statistics from a transfer-names run."""

    total_rows: int = 0
    inserted: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Duration of the run in seconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    def record_failure(self, key: str, message: str) -> None:
        self.failed += 1
        self.failures.append((key, message))


class NameReconciler:
    """
    Copies the address names that the destination does not have yet.

    Failure policy:
    - source query or existence check fails: QueryError, the run stops
    - a single insert fails: rolled back, logged, counted, next row
    """

    def __init__(
        self,
        source: DatabaseConnection,
        destination: DatabaseConnection,
        table: str = "address_names",
        fetch_size: int = 2000,
    ):
        self.source = source
        self.destination = destination
        self.table = table
        self.fetch_size = fetch_size

        columns = sql.SQL(", ").join(sql.Identifier(c) for c in NAME_COLUMNS)
        target = table_identifier(table)
        self._select_query = sql.SQL("SELECT {} FROM {}").format(_select_list(), target)
        self._exists_query = sql.SQL(
            "SELECT EXISTS(SELECT 1 FROM {} WHERE {} = %s)"
        ).format(target, sql.Identifier("address_hash"))
        self._insert_query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            target,
            columns,
            sql.SQL(", ").join(sql.Placeholder() * len(NAME_COLUMNS)),
        )

    def iter_source_rows(self) -> Iterator[AddressName]:
        """Forward-only, single-pass stream of the source table."""
        try:
            with self.source.get_cursor(cursor_factory=RealDictCursor, name=STREAM_CURSOR_NAME) as cursor:
                cursor.itersize = self.fetch_size
                cursor.execute(self._select_query)
                for row in cursor:
                    yield AddressName.from_row(row)
        except psycopg2.Error as e:
            self.source.rollback()
            raise QueryError(f"Error reading from source table {self.table}: {e}") from e
        # End the read transaction that kept the named cursor alive
        try:
            self.source.rollback()
        except psycopg2.Error as e:
            raise QueryError(f"Error closing read of source table {self.table}: {e}") from e

    def exists(self, row: AddressName) -> bool:
        """Point lookup of row.address_hash in the destination."""
        try:
            with self.destination.get_cursor(cursor_factory=None) as cursor:
                cursor.execute(self._exists_query, (row.address_hash,))
                result = cursor.fetchone()
        except psycopg2.Error as e:
            self.destination.rollback()
            raise QueryError(f"Existence check failed for {row.key_hex}: {e}") from e
        return bool(result[0]) if result else False

    def insert(self, row: AddressName) -> None:
        """Insert and commit one row; psycopg2 errors propagate to the caller."""
        with self.destination.get_cursor(cursor_factory=None) as cursor:
            cursor.execute(self._insert_query, row.to_params())
        self.destination.commit()

    def run(self, on_progress: Optional[Callable[[ReconcileStats], None]] = None) -> ReconcileStats:
        """
        Reconcile every source row against the destination.

        Args:
            on_progress: called after each row with the running statistics

        Returns:
            ReconcileStats for the run

        Raises:
            QueryError: reading the source or checking existence failed
        """
        logger.info(f"Starting transfer of {self.table} (fetch size {self.fetch_size})")
        stats = ReconcileStats(start_time=datetime.now())

        try:
            for row in self.iter_source_rows():
                stats.total_rows += 1
                self._reconcile_row(row, stats)
                if on_progress is not None:
                    on_progress(stats)
            # Nothing left to write; close the last lookup transaction
            try:
                self.destination.commit()
            except psycopg2.Error as e:
                raise QueryError(f"Error closing destination transaction: {e}") from e
        finally:
            stats.end_time = datetime.now()
            logger.info(
                f"Transfer of {self.table} finished: {stats.total_rows} read, "
                f"{stats.inserted} inserted, {stats.skipped} skipped, {stats.failed} failed"
            )

        return stats

    def _reconcile_row(self, row: AddressName, stats: ReconcileStats) -> None:
        if self.exists(row):
            logger.debug(f"Skipping {row.key_hex}: already present")
            stats.skipped += 1
            return

        logger.info(f"Inserting row with address_hash: {row.key_hex}")
        try:
            self.insert(row)
        except psycopg2.Error as e:
            try:
                self.destination.rollback()
            except psycopg2.Error as rollback_error:
                raise QueryError(f"Rollback after failed insert of {row.key_hex} failed: {rollback_error}") from e
            logger.error(f"Error writing to target table ({row.key_hex}): {e}")
            stats.record_failure(row.key_hex, str(e).strip())
            return
        stats.inserted += 1
