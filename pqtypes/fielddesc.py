"""Description of a result column as sent by the server."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

from .oid import Oid, type_name

HEADER_SIZE = 4
_MAX_INT64 = 2**63 - 1

_SCAN_TYPES: dict[int, type] = {
    Oid.INT8: int,
    Oid.INT4: int,
    Oid.INT2: int,
    Oid.VARCHAR: str,
    Oid.TEXT: str,
    Oid.BOOL: bool,
    Oid.DATE: datetime.datetime,
    Oid.TIME: datetime.datetime,
    Oid.TIMETZ: datetime.datetime,
    Oid.TIMESTAMP: datetime.datetime,
    Oid.TIMESTAMPTZ: datetime.datetime,
    Oid.BYTEA: bytes,
}


@dataclass(frozen=True)
class FieldDesc:
    """A column's type: its OID, storage size (``pg_type.typlen``) and modifier."""

    oid: int
    size: int = 0
    mod: int = 0

    def scan_type(self) -> type:
        """Return the Python type values of this column decode to."""
        return _SCAN_TYPES.get(self.oid, object)

    def name(self) -> str:
        """Return the database type name, or ``""`` for an unknown type."""
        return type_name(self.oid)

    def length(self) -> int | None:
        """Return the length of a variable-length type, or ``None`` otherwise."""
        if self.oid in (Oid.TEXT, Oid.BYTEA):
            return _MAX_INT64
        if self.oid in (Oid.VARCHAR, Oid.BPCHAR):
            return self.mod - HEADER_SIZE
        return None

    def precision_scale(self) -> tuple[int, int] | None:
        """Return ``(precision, scale)`` for numeric types, or ``None`` otherwise."""
        if self.oid in (Oid.NUMERIC, Oid.NUMERIC_ARRAY):
            mod = self.mod - HEADER_SIZE
            return (mod >> 16) & 0xFFFF, mod & 0xFFFF
        return None