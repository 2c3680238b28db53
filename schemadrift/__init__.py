"""
schemadrift
===========

Capture a MySQL schema into a portable snapshot and detect drift against it.

Modules:

- :mod:`schemadrift.models` (schema value types)
- :mod:`schemadrift.codec` (snapshot encode/decode)
- :mod:`schemadrift.diffing` (structural diff engine)
- :mod:`schemadrift.collectors` (live introspection via ``information_schema``)
- :mod:`schemadrift.reporting` (spreadsheet and Markdown reports)
- :mod:`schemadrift.cli` (``cache`` / ``validate`` / ``ping`` entry point)
"""

from .codec import DecodeError, SnapshotError, UnsupportedVersionError, decode, encode
from .diffing import SchemaDiff, TableDiff, TableStatus, diff
from .models import Column, Constraint, ConstraintKind, Index, Schema, Table

__version__ = "0.1.0"

__all__ = [
    "Column",
    "Constraint",
    "ConstraintKind",
    "DecodeError",
    "Index",
    "Schema",
    "SchemaDiff",
    "SnapshotError",
    "Table",
    "TableDiff",
    "TableStatus",
    "UnsupportedVersionError",
    "decode",
    "diff",
    "encode",
]
