# vctransfer/transfer/bulk_copy.py
"""
Dump and load of a whole table through PostgreSQL's binary COPY format.

Two ways to move the bytes:
- client side (default): COPY ... TO STDOUT / FROM STDIN, streamed by
  psycopg2 copy_expert into/out of a local file
- server side: COPY ... TO/FROM '<absolute path>', read and written by the
  server process itself (needs superuser or pg_write_server_files /
  pg_read_server_files, and a path the server can see)

The file format is the same either way, so a dump made one way loads the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import psycopg2
from psycopg2 import sql

from validators.condition_checks import check_condition
from vctransfer.database.connection import DatabaseConnection, table_identifier
from vctransfer.errors import DumpFileError, QueryError

logger = logging.getLogger(__name__)


@dataclass
class CopyResult:
    """Outcome of one dump or load."""

    table: str
    path: Path
    rows: int = -1  # -1 when the server does not report a count

    @property
    def size_bytes(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0


def build_dump_query(
    table: str,
    condition: Optional[str] = None,
    server_path: Optional[Path] = None,
) -> sql.Composed:
    """
    COPY (SELECT * FROM <table> [WHERE <condition>]) TO STDOUT|'<path>' WITH (FORMAT binary)

    The condition is inserted as raw SQL; callers run it through
    check_condition() first.
    """
    select = sql.SQL("SELECT * FROM {}").format(table_identifier(table))
    if condition:
        select = sql.SQL("{} WHERE {}").format(select, sql.SQL(condition))

    target = sql.SQL("STDOUT") if server_path is None else sql.Literal(str(server_path))
    return sql.SQL("COPY ({}) TO {} WITH (FORMAT binary)").format(select, target)


def build_load_query(table: str, server_path: Optional[Path] = None) -> sql.Composed:
    """COPY <table> FROM STDIN|'<path>' WITH (FORMAT binary)"""
    source = sql.SQL("STDIN") if server_path is None else sql.Literal(str(server_path))
    return sql.SQL("COPY {} FROM {} WITH (FORMAT binary)").format(table_identifier(table), source)


def dump(
    db: DatabaseConnection,
    table: str,
    path: Path,
    condition: Optional[str] = None,
    server_side: bool = False,
) -> CopyResult:
    """
    Export every row of table (optionally filtered) into path.

    The file is created or overwritten. On failure a partial file is left
    where it is.

    Raises:
        ConditionRejectedError: condition failed the trust-boundary check.
        DumpFileError: the file could not be created or written.
        QueryError: the COPY failed on the server.
    """
    condition = check_condition(condition)
    path = Path(path).resolve()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DumpFileError(f"Cannot create dump directory {path.parent}: {e}") from e

    if condition:
        logger.info(f"Dumping {table} WHERE {condition} -> {path}")
    else:
        logger.info(f"Dumping {table} -> {path}")

    if server_side:
        query = build_dump_query(table, condition, server_path=path)
        rows = _run_server_copy(db, query, f"Dump of {table} failed")
    else:
        query = build_dump_query(table, condition)
        try:
            with path.open("wb") as f:
                with db.get_cursor(cursor_factory=None) as cursor:
                    cursor.copy_expert(query, f)
                    rows = cursor.rowcount
        except psycopg2.Error as e:
            db.rollback()
            raise QueryError(f"Dump of {table} failed: {e}") from e
        except OSError as e:
            db.rollback()
            raise DumpFileError(f"Cannot write dump file {path}: {e}") from e
        # Close the read transaction opened by COPY
        db.commit()

    result = CopyResult(table=table, path=path, rows=rows)
    logger.info(f"Dumped {result.rows} rows ({result.size_bytes} bytes) to {path}")
    return result


def load(
    db: DatabaseConnection,
    table: str,
    path: Path,
    server_side: bool = False,
) -> CopyResult:
    """
    Import a binary dump into table and commit.

    Column order and types must match the dumped table; nothing is checked
    here and a mismatch surfaces as a COPY error.

    In server-side mode the file lives on the database host, so it is not
    looked for locally; a missing file comes back from the server as a
    QueryError.

    Raises:
        DumpFileError: the file is missing or unreadable (client side).
        QueryError: the COPY failed (the statement is rolled back).
    """
    path = Path(path).resolve()
    if not server_side and not path.is_file():
        raise DumpFileError(f"Dump file not found: {path}")

    logger.info(f"Loading {path} -> {table}")

    if server_side:
        query = build_load_query(table, server_path=path)
        rows = _run_server_copy(db, query, f"Load into {table} failed")
    else:
        query = build_load_query(table)
        try:
            with path.open("rb") as f:
                with db.get_cursor(cursor_factory=None) as cursor:
                    cursor.copy_expert(query, f)
                    rows = cursor.rowcount
            db.commit()
        except psycopg2.Error as e:
            db.rollback()
            raise QueryError(f"Load into {table} failed: {e}") from e
        except OSError as e:
            db.rollback()
            raise DumpFileError(f"Cannot read dump file {path}: {e}") from e

    result = CopyResult(table=table, path=path, rows=rows)
    logger.info(f"Loaded {result.rows} rows into {table}")
    return result


def _run_server_copy(db: DatabaseConnection, query: sql.Composed, what: str) -> int:
    try:
        with db.get_cursor(cursor_factory=None) as cursor:
            cursor.execute(query)
            rows = cursor.rowcount
        db.commit()
    except psycopg2.Error as e:
        db.rollback()
        raise QueryError(f"{what}: {e}") from e
    return rows
