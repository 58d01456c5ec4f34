# vctransfer/database/__init__.py
"""
Database module for the transfer tool.

Provides the single-connection opener and the address names row type.
"""

from .connection import DatabaseConnection, table_identifier
from .schema import AddressName, NAME_COLUMNS

__all__ = [
    "DatabaseConnection",
    "table_identifier",
    "AddressName",
    "NAME_COLUMNS",
]
