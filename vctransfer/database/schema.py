# vctransfer/database/schema.py
"""
Row definitions for the transfer-names mode.

The address names table has a fixed shape shared by both databases:

    address_hash bytea, name varchar, "primary" boolean,
    inserted_at timestamp, updated_at timestamp, metadata jsonb, id integer
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

NAME_COLUMNS: Tuple[str, ...] = (
    "address_hash",
    "name",
    "primary",
    "inserted_at",
    "updated_at",
    "metadata",
    "id",
)

# Read as text and written back as a string literal, which the server casts
# to jsonb on insert
JSONB_COLUMNS: Tuple[str, ...] = ("metadata",)


@dataclass(frozen=True)
class AddressName:
    """One row of the address names table. Identity key: address_hash."""

    address_hash: bytes
    name: str
    primary: bool
    inserted_at: datetime
    updated_at: datetime
    metadata: Optional[str]  # jsonb text; 'null' is a json null, None is SQL NULL
    id: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AddressName":
        """Create from a database row (RealDictCursor mapping)."""
        address_hash = row["address_hash"]
        # psycopg2 hands bytea back as memoryview
        if isinstance(address_hash, memoryview):
            address_hash = address_hash.tobytes()
        return cls(
            address_hash=bytes(address_hash),
            name=row["name"],
            primary=row["primary"],
            inserted_at=row["inserted_at"],
            updated_at=row["updated_at"],
            metadata=row["metadata"],
            id=row["id"],
        )

    @property
    def key_hex(self) -> str:
        """Hex form of the natural key, used in logs."""
        return "0x" + self.address_hash.hex()

    def to_params(self) -> Tuple[Any, ...]:
        """Insert parameters in NAME_COLUMNS order."""
        return (
            self.address_hash,
            self.name,
            self.primary,
            self.inserted_at,
            self.updated_at,
            self.metadata,
            self.id,
        )
