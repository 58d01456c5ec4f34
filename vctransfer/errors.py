# vctransfer/errors.py
"""
Exceptions raised by the transfer operations.

Every fatal condition is a TransferError subclass; the CLI turns any of them
into a message on stderr and exit code 1.
"""


class TransferError(Exception):
    """Base class for fatal transfer errors."""


class ConfigError(TransferError):
    """Configuration file or environment is missing or invalid."""


class ConditionRejectedError(ConfigError):
    """The dump condition failed the trust-boundary check."""


class ConnectionFailedError(TransferError):
    """The database could not be reached."""


class TableNotFoundError(TransferError):
    """The configured table does not exist in the target database."""

    def __init__(self, table: str, database: str = ""):
        self.table = table
        self.database = database
        where = f" in {database}" if database else ""
        super().__init__(f"Table does not exist: {table}{where}")


class QueryError(TransferError):
    """A query or bulk copy failed on the server."""


class DumpFileError(TransferError):
    """The dump file could not be created, read or written."""
