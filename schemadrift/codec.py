"""
codec
=====

Snapshot encoding for :class:`~schemadrift.models.Schema` values.

A snapshot is UTF-8 JSON with an explicit ``format_version`` tag::

    {
      "captured_at": "2026-10-19T08:30:00+00:00",
      "database": "shop",
      "format_version": 1,
      "tables": [
        {
          "name": "orders",
          "columns": [{"name": ..., "type": ..., "nullable": ..., "default": ..., "ordinal": ...}],
          "indexes": [{"name": ..., "columns": [...], "unique": ..., "kind": ...}],
          "constraints": [{"name": ..., "kind": ..., "columns": [...], ...}]
        }
      ]
    }

Tables, indexes and constraints are written in canonical (name) order and
columns in ordinal order, with sorted keys, so encoding the same schema twice
yields identical bytes.

Errors
------
- :class:`DecodeError`: the bytes are not a well-formed snapshot.
- :class:`UnsupportedVersionError`: the snapshot was written by a format version
  this codec does not understand. Nothing is parsed past the version tag.

Primary API
-----------
- :func:`encode` / :func:`decode`
- :func:`write_snapshot` / :func:`read_snapshot`
"""

from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Column, Constraint, ConstraintKind, Index, Schema, Table
from .utils import write_bytes

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
SUPPORTED_VERSIONS = frozenset({FORMAT_VERSION})


class SnapshotError(Exception):
    """Base class for snapshot codec failures."""


class DecodeError(SnapshotError):
    """Snapshot bytes are malformed (bad encoding, bad JSON, missing or mistyped field)."""


class UnsupportedVersionError(SnapshotError):
    """Snapshot carries a format version this codec cannot read."""

    def __init__(self, version: Any) -> None:
        self.version = version
        supported = ", ".join(str(v) for v in sorted(SUPPORTED_VERSIONS))
        super().__init__(
            f"unsupported snapshot format version {version!r} (supported: {supported}); "
            "re-capture the baseline with `schemadrift cache`"
        )


# ---- encoding ----
def _column_to_dict(column: Column) -> Dict[str, Any]:
    return {
        "name": column.name,
        "type": column.data_type,
        "nullable": column.nullable,
        "default": column.default,
        "ordinal": column.ordinal,
    }


def _index_to_dict(index: Index) -> Dict[str, Any]:
    return {
        "name": index.name,
        "columns": list(index.columns),
        "unique": index.unique,
        "kind": index.kind,
    }


def _constraint_to_dict(constraint: Constraint) -> Dict[str, Any]:
    return {
        "name": constraint.name,
        "kind": constraint.kind.value,
        "columns": list(constraint.columns),
        "referenced_table": constraint.referenced_table,
        "referenced_columns": list(constraint.referenced_columns),
        "on_delete": constraint.on_delete,
        "on_update": constraint.on_update,
        "check_clause": constraint.check_clause,
    }


def _table_to_dict(table: Table) -> Dict[str, Any]:
    return {
        "name": table.name,
        "columns": [_column_to_dict(c) for c in table.columns],
        "indexes": [_index_to_dict(i) for i in table.indexes],
        "constraints": [_constraint_to_dict(c) for c in table.constraints],
    }


def encode(schema: Schema) -> bytes:
    """Serialize *schema* to snapshot bytes.

    Parameters
    ----------
    schema:
        The schema to persist.

    Returns
    -------
    bytes
        UTF-8 encoded JSON document, newline terminated.
    """
    payload = {
        "format_version": FORMAT_VERSION,
        "captured_at": schema.captured_at.isoformat() if schema.captured_at else None,
        "database": schema.database,
        "tables": [_table_to_dict(t) for t in schema.tables],
    }
    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


# ---- decoding ----
def _require(obj: Dict[str, Any], key: str, kind: type, where: str, optional: bool = False) -> Any:
    """Fetch ``obj[key]`` and check its type, raising :class:`DecodeError` otherwise."""
    if key not in obj:
        raise DecodeError(f"{where}: missing field {key!r}")
    value = obj[key]
    if value is None and optional:
        return None
    # bool is a subclass of int; an int field must not accept true/false
    if kind is int and isinstance(value, bool):
        raise DecodeError(f"{where}.{key}: expected int, got bool")
    if not isinstance(value, kind):
        raise DecodeError(f"{where}.{key}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def _require_names(obj: Dict[str, Any], key: str, where: str) -> List[str]:
    values = _require(obj, key, list, where)
    for i, v in enumerate(values):
        if not isinstance(v, str):
            raise DecodeError(f"{where}.{key}[{i}]: expected str, got {type(v).__name__}")
    return values


def _require_list_of_objects(obj: Dict[str, Any], key: str, where: str) -> List[Dict[str, Any]]:
    values = _require(obj, key, list, where)
    for i, v in enumerate(values):
        if not isinstance(v, dict):
            raise DecodeError(f"{where}.{key}[{i}]: expected object, got {type(v).__name__}")
    return values


def _column_from_dict(obj: Dict[str, Any], where: str) -> Column:
    return Column(
        name=_require(obj, "name", str, where),
        data_type=_require(obj, "type", str, where),
        nullable=_require(obj, "nullable", bool, where),
        default=_require(obj, "default", str, where, optional=True),
        ordinal=_require(obj, "ordinal", int, where),
    )


def _index_from_dict(obj: Dict[str, Any], where: str) -> Index:
    return Index(
        name=_require(obj, "name", str, where),
        columns=tuple(_require_names(obj, "columns", where)),
        unique=_require(obj, "unique", bool, where),
        kind=_require(obj, "kind", str, where),
    )


def _constraint_from_dict(obj: Dict[str, Any], where: str) -> Constraint:
    kind = _require(obj, "kind", str, where)
    try:
        kind_enum = ConstraintKind(kind)
    except ValueError:
        raise DecodeError(f"{where}.kind: unknown constraint kind {kind!r}") from None
    return Constraint(
        name=_require(obj, "name", str, where),
        kind=kind_enum,
        columns=tuple(_require_names(obj, "columns", where)),
        referenced_table=_require(obj, "referenced_table", str, where, optional=True),
        referenced_columns=tuple(_require_names(obj, "referenced_columns", where)),
        on_delete=_require(obj, "on_delete", str, where, optional=True),
        on_update=_require(obj, "on_update", str, where, optional=True),
        check_clause=_require(obj, "check_clause", str, where, optional=True),
    )


def _table_from_dict(obj: Dict[str, Any], where: str) -> Table:
    name = _require(obj, "name", str, where)
    where = f"{where}[{name}]"
    columns = [
        _column_from_dict(c, f"{where}.columns[{i}]")
        for i, c in enumerate(_require_list_of_objects(obj, "columns", where))
    ]
    indexes = [
        _index_from_dict(x, f"{where}.indexes[{i}]")
        for i, x in enumerate(_require_list_of_objects(obj, "indexes", where))
    ]
    constraints = [
        _constraint_from_dict(x, f"{where}.constraints[{i}]")
        for i, x in enumerate(_require_list_of_objects(obj, "constraints", where))
    ]
    return Table(
        name=name,
        columns=tuple(columns),
        indexes=tuple(indexes),
        constraints=tuple(constraints),
    )


def _parse_timestamp(value: Optional[str]) -> Optional[dt.datetime]:
    if value is None:
        return None
    try:
        return dt.datetime.fromisoformat(value)
    except ValueError:
        raise DecodeError(f"snapshot.captured_at: invalid timestamp {value!r}") from None


def decode(data: bytes) -> Schema:
    """Deserialize snapshot bytes produced by :func:`encode`.

    Parameters
    ----------
    data:
        Raw snapshot bytes.

    Returns
    -------
    Schema
        The decoded schema, normalized to canonical ordering.

    Raises
    ------
    DecodeError
        If the bytes are not valid UTF-8 JSON, a required field is missing,
        a field has the wrong type, or the content violates a model invariant
        (e.g. duplicate table names).
    UnsupportedVersionError
        If ``format_version`` is not one of :data:`SUPPORTED_VERSIONS`.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"snapshot is not valid UTF-8: {exc}") from exc

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"snapshot is not valid JSON: {exc}") from exc
    except (ValueError, RecursionError) as exc:
        # oversized integer literals and runaway nesting
        raise DecodeError(f"snapshot cannot be parsed: {exc}") from exc

    if not isinstance(payload, dict):
        raise DecodeError(f"snapshot: expected object, got {type(payload).__name__}")

    version = _require(payload, "format_version", int, "snapshot")
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)

    database = _require(payload, "database", str, "snapshot")
    captured_at = _parse_timestamp(_require(payload, "captured_at", str, "snapshot", optional=True))
    raw_tables = _require_list_of_objects(payload, "tables", "snapshot")

    try:
        tables = [_table_from_dict(t, f"snapshot.tables[{i}]") for i, t in enumerate(raw_tables)]
        return Schema.from_tables(tables, database=database, captured_at=captured_at)
    except ValueError as exc:
        # model invariants (duplicate names) surface as ValueError
        raise DecodeError(f"snapshot violates schema invariants: {exc}") from exc


# ---- files ----
def write_snapshot(path: Path, schema: Schema) -> Path:
    """Encode *schema* and write it to *path* (parent directories are created)."""
    data = encode(schema)
    write_bytes(path, data)
    logger.info("wrote snapshot of %d table(s) to %s", len(schema.tables), path)
    return path


def read_snapshot(path: Path) -> Schema:
    """Read and decode a snapshot file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    DecodeError, UnsupportedVersionError
        As for :func:`decode`.
    """
    data = path.read_bytes()
    schema = decode(data)
    logger.info("read snapshot of %d table(s) from %s", len(schema.tables), path)
    return schema
