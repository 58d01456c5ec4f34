# vctransfer/database/connection.py
"""
Database connection management for the transfer tool.

One psycopg2 connection per database target and per invocation: no pool, no
retries. The connection is only handed out after the configured table has
been found in information_schema.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional, Tuple

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from schemas.transfer_config import DatabaseTarget
from vctransfer.config import mask_dsn
from vctransfer.errors import ConnectionFailedError, QueryError, TableNotFoundError

logger = logging.getLogger(__name__)

TABLE_EXISTS_QUERY = (
    "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = %s)"
)
QUALIFIED_TABLE_EXISTS_QUERY = (
    "SELECT EXISTS (SELECT FROM information_schema.tables "
    "WHERE table_schema = %s AND table_name = %s)"
)


def split_table_name(table: str) -> Tuple[Optional[str], str]:
    """'public.address_names' -> ('public', 'address_names'); 'x' -> (None, 'x')."""
    schema, dot, name = table.partition(".")
    if dot:
        return schema, name
    return None, table


def table_identifier(table: str) -> sql.Identifier:
    """Quoted identifier for a plain or schema-qualified table name."""
    schema, name = split_table_name(table)
    if schema:
        return sql.Identifier(schema, name)
    return sql.Identifier(name)


class DatabaseConnection:
    """
    A single PostgreSQL connection bound to one table.

    Features:
    - Table existence verified before the handle is returned (see open())
    - Cursor context manager with automatic cleanup
    - Context manager support; the connection closes on exit
    """

    def __init__(self, conn, target: DatabaseTarget):
        self.conn = conn
        self.target = target

    @property
    def table(self) -> str:
        return self.target.table

    @classmethod
    def open(cls, target: DatabaseTarget) -> "DatabaseConnection":
        """
        Connect to target.db and make sure target.table exists.

        Raises:
            ConnectionFailedError: the server could not be reached.
            TableNotFoundError: the table is absent (the connection is closed first).
            QueryError: the catalog query itself failed.
        """
        masked = mask_dsn(target.db)
        try:
            conn = psycopg2.connect(target.db)
        except psycopg2.Error as e:
            logger.error(f"Unable to connect to database {masked}: {e}")
            raise ConnectionFailedError(f"Unable to connect to database {masked}: {e}") from e

        db = cls(conn, target)
        try:
            exists = db.table_exists(target.table)
        except QueryError:
            db.close()
            raise

        if not exists:
            db.close()
            logger.error(f"Table {target.table} not found in {masked}")
            raise TableNotFoundError(target.table, masked)

        logger.info(f"Connected to {masked} (table {target.table})")
        return db

    def table_exists(self, table: str) -> bool:
        schema, name = split_table_name(table)
        if schema:
            query, params = QUALIFIED_TABLE_EXISTS_QUERY, (schema, name)
        else:
            query, params = TABLE_EXISTS_QUERY, (name,)

        try:
            with self.get_cursor(cursor_factory=None) as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
            # Leave no transaction open after the catalog probe
            self.conn.rollback()
        except psycopg2.Error as e:
            raise QueryError(f"Table existence check failed for {table}: {e}") from e
        return bool(row[0]) if row else False

    @contextmanager
    def get_cursor(self, cursor_factory=RealDictCursor, name: Optional[str] = None):
        """Get a cursor with automatic cleanup; pass name for a server-side cursor."""
        kwargs: Dict[str, Any] = {}
        if cursor_factory is not None:
            kwargs["cursor_factory"] = cursor_factory
        if name is not None:
            kwargs["name"] = name
        cursor = self.conn.cursor(**kwargs)
        try:
            yield cursor
        finally:
            cursor.close()

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def close(self) -> None:
        """Close the connection."""
        if self.conn is not None and not self.conn.closed:
            self.conn.close()
            logger.info(f"Database connection closed ({mask_dsn(self.target.db)})")

    def __enter__(self) -> "DatabaseConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
