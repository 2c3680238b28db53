"""
collectors
==========

Schema collection for MySQL drift detection.

This module reads ``information_schema`` for one database and assembles a
:class:`~schemadrift.models.Schema`. It is split in two layers:

- query functions (``fetch_*``) that run SQL over a SQLAlchemy connection and
  return plain row mappings
- :func:`build_schema`, a pure function turning those rows into model values
  (testable without a database)

Design choices
--------------
- Only base tables are captured (views are skipped).
- ``COLUMN_TYPE`` (e.g. ``varchar(255)``, ``int unsigned``) is the column type.
- All statements use bound parameters for the schema name.
- ``information_schema.CHECK_CONSTRAINTS`` only exists on MySQL 8.0.16+; when it
  is missing, check clauses are left empty.

Public helpers
--------------
- :func:`filter_tables` / :func:`filter_schema` (include/exclude patterns)
- :func:`collect_schema` (over an open connection)
- :func:`collect_from_target` (opens and closes its own engine)
"""

from __future__ import annotations

import datetime as dt
import fnmatch
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from .connection import MySqlTarget, create_engine_for
from .models import Column, Constraint, ConstraintKind, Index, Schema, Table

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]


@dataclass(frozen=True)
class TableFilter:
    """Include/exclude patterns for table selection."""

    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    case_sensitive: bool = False

    @property
    def active(self) -> bool:
        return bool(self.include or self.exclude)


# ---- information_schema queries ----
Q_LIST_TABLES = """
SELECT TABLE_NAME AS table_name
FROM information_schema.TABLES
WHERE TABLE_SCHEMA = :schema
  AND TABLE_TYPE = 'BASE TABLE'
ORDER BY TABLE_NAME
"""

Q_COLUMNS = """
SELECT
  TABLE_NAME AS table_name,
  COLUMN_NAME AS column_name,
  ORDINAL_POSITION AS ordinal_position,
  COLUMN_TYPE AS column_type,
  IS_NULLABLE AS is_nullable,
  COLUMN_DEFAULT AS column_default
FROM information_schema.COLUMNS
WHERE TABLE_SCHEMA = :schema
ORDER BY TABLE_NAME, ORDINAL_POSITION
"""

Q_INDEXES = """
SELECT
  TABLE_NAME AS table_name,
  INDEX_NAME AS index_name,
  SEQ_IN_INDEX AS seq_in_index,
  COLUMN_NAME AS column_name,
  NON_UNIQUE AS non_unique,
  INDEX_TYPE AS index_type
FROM information_schema.STATISTICS
WHERE TABLE_SCHEMA = :schema
ORDER BY TABLE_NAME, INDEX_NAME, SEQ_IN_INDEX
"""

Q_CONSTRAINTS = """
SELECT
  tc.TABLE_NAME AS table_name,
  tc.CONSTRAINT_NAME AS constraint_name,
  tc.CONSTRAINT_TYPE AS constraint_type,
  kcu.COLUMN_NAME AS column_name,
  kcu.ORDINAL_POSITION AS ordinal_position,
  kcu.REFERENCED_TABLE_NAME AS referenced_table_name,
  kcu.REFERENCED_COLUMN_NAME AS referenced_column_name,
  rc.UPDATE_RULE AS update_rule,
  rc.DELETE_RULE AS delete_rule
FROM information_schema.TABLE_CONSTRAINTS tc
LEFT JOIN information_schema.KEY_COLUMN_USAGE kcu
  ON kcu.CONSTRAINT_SCHEMA = tc.CONSTRAINT_SCHEMA
 AND kcu.TABLE_NAME = tc.TABLE_NAME
 AND kcu.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
LEFT JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
  ON rc.CONSTRAINT_SCHEMA = tc.CONSTRAINT_SCHEMA
 AND rc.TABLE_NAME = tc.TABLE_NAME
 AND rc.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
WHERE tc.TABLE_SCHEMA = :schema
ORDER BY tc.TABLE_NAME, tc.CONSTRAINT_NAME, kcu.ORDINAL_POSITION
"""

Q_CHECK_CLAUSES = """
SELECT
  CONSTRAINT_NAME AS constraint_name,
  CHECK_CLAUSE AS check_clause
FROM information_schema.CHECK_CONSTRAINTS
WHERE CONSTRAINT_SCHEMA = :schema
"""

# Functional key parts (MySQL 8.0.13+) have no column name.
EXPRESSION_KEY_PART = "<expression>"


# ---- table filter helpers ----
def sql_like_to_fnmatch(pattern: str) -> str:
    """Convert SQL LIKE patterns (% and _) to fnmatch syntax (* and ?)."""
    return pattern.replace("%", "*").replace("_", "?")


def matches_pattern(name: str, pattern: str, case_sensitive: bool = False) -> bool:
    """Return True if name matches pattern (LIKE by default, regex via ``re:``)."""
    if pattern.startswith("re:"):
        flags = 0 if case_sensitive else re.IGNORECASE
        return re.search(pattern[3:], name, flags) is not None
    fm = sql_like_to_fnmatch(pattern)
    if case_sensitive:
        return fnmatch.fnmatchcase(name, fm)
    return fnmatch.fnmatchcase(name.lower(), fm.lower())


def filter_tables(
    tables: Sequence[str],
    include: Sequence[str],
    exclude: Sequence[str],
    case_sensitive: bool = False,
) -> List[str]:
    """Filter tables using include/exclude patterns.

    Include patterns keep a table if it matches *any* include pattern.
    Exclude patterns drop a table if it matches *any* exclude pattern.
    """
    result = list(tables)
    if include:
        result = [t for t in result if any(matches_pattern(t, p, case_sensitive) for p in include)]
    if exclude:
        result = [t for t in result if not any(matches_pattern(t, p, case_sensitive) for p in exclude)]
    return sorted(set(result))


def filter_schema(schema: Schema, table_filter: Optional[TableFilter]) -> Schema:
    """Return *schema* restricted to the tables selected by *table_filter*.

    Applied to a loaded baseline so that tables filtered out of the live
    collection are not reported as removed.
    """
    if table_filter is None or not table_filter.active:
        return schema
    keep = set(
        filter_tables(
            schema.table_names,
            table_filter.include,
            table_filter.exclude,
            table_filter.case_sensitive,
        )
    )
    return Schema.from_tables(
        [t for t in schema.tables if t.name in keep],
        database=schema.database,
        captured_at=schema.captured_at,
    )


# ---- row assembly ----
def _as_bool_yes(value: Any) -> bool:
    return str(value).strip().upper() == "YES"


def build_columns(rows: Sequence[Row]) -> Dict[str, List[Column]]:
    """Group ``information_schema.COLUMNS`` rows into columns per table."""
    out: Dict[str, List[Column]] = defaultdict(list)
    for row in rows:
        default = row["column_default"]
        out[row["table_name"]].append(
            Column(
                name=row["column_name"],
                data_type=str(row["column_type"]),
                nullable=_as_bool_yes(row["is_nullable"]),
                default=None if default is None else str(default),
                ordinal=int(row["ordinal_position"]),
            )
        )
    return out


def build_indexes(rows: Sequence[Row]) -> Dict[str, List[Index]]:
    """Group ``information_schema.STATISTICS`` rows (one per key part) into indexes."""
    parts: Dict[Tuple[str, str], List[Row]] = defaultdict(list)
    for row in rows:
        parts[(row["table_name"], row["index_name"])].append(row)

    out: Dict[str, List[Index]] = defaultdict(list)
    for (table_name, index_name), key_parts in parts.items():
        key_parts = sorted(key_parts, key=lambda r: int(r["seq_in_index"]))
        first = key_parts[0]
        out[table_name].append(
            Index(
                name=index_name,
                columns=tuple(r["column_name"] or EXPRESSION_KEY_PART for r in key_parts),
                unique=int(first["non_unique"]) == 0,
                kind=str(first["index_type"]),
            )
        )
    return out


def build_constraints(
    rows: Sequence[Row],
    check_clauses: Optional[Mapping[str, str]] = None,
) -> Dict[str, List[Constraint]]:
    """Group constraint rows (one per key column) into constraints per table.

    Parameters
    ----------
    rows:
        Rows shaped like :data:`Q_CONSTRAINTS` output. CHECK constraints have
        no key columns, so their column fields are NULL.
    check_clauses:
        ``{constraint_name: clause}``; MySQL scopes check constraint names to
        the schema, so the name alone identifies them.

    Notes
    -----
    Foreign key names and index names live in separate namespaces, so a
    table may hold a UNIQUE key and a FOREIGN KEY with the same name. Rows
    are grouped per constraint type; key columns are told apart by whether
    they reference another table. On such a clash the foreign key keeps the
    name and the other constraint is renamed to ``"<name> (<KIND>)"``.
    """
    check_clauses = check_clauses or {}
    grouped: Dict[Tuple[str, str, ConstraintKind], List[Row]] = defaultdict(list)
    for row in rows:
        kind = ConstraintKind(str(row["constraint_type"]).upper())
        grouped[(row["table_name"], row["constraint_name"], kind)].append(row)

    kinds_per_name: Dict[Tuple[str, str], int] = defaultdict(int)
    for table_name, name, _ in grouped:
        kinds_per_name[(table_name, name)] += 1

    out: Dict[str, List[Constraint]] = defaultdict(list)
    for (table_name, name, kind), key_rows in grouped.items():
        first = key_rows[0]
        is_fk = kind is ConstraintKind.FOREIGN_KEY
        # the KEY_COLUMN_USAGE join matches by name only
        keyed = sorted(
            (
                r
                for r in key_rows
                if r["column_name"] is not None and (r["referenced_table_name"] is not None) == is_fk
            ),
            key=lambda r: int(r["ordinal_position"]),
        )
        extra: Dict[str, Any] = {"columns": tuple(r["column_name"] for r in keyed)}
        if is_fk:
            ref = keyed[0] if keyed else first
            extra.update(
                referenced_table=ref["referenced_table_name"],
                referenced_columns=tuple(r["referenced_column_name"] for r in keyed),
                on_delete=first["delete_rule"],
                on_update=first["update_rule"],
            )
        elif kind is ConstraintKind.CHECK:
            extra["check_clause"] = check_clauses.get(name)

        label = name
        if kinds_per_name[(table_name, name)] > 1 and not is_fk:
            label = f"{name} ({kind.value})"
            logger.debug("constraint name %r is shared in table %s; recorded as %r", name, table_name, label)
        out[table_name].append(Constraint(name=label, kind=kind, **extra))
    return out


def build_schema(
    database: str,
    table_names: Sequence[str],
    column_rows: Sequence[Row],
    index_rows: Sequence[Row] = (),
    constraint_rows: Sequence[Row] = (),
    check_clauses: Optional[Mapping[str, str]] = None,
    captured_at: Optional[dt.datetime] = None,
) -> Schema:
    """Assemble a :class:`Schema` from ``information_schema`` rows.

    Rows for tables not listed in *table_names* (views, filtered tables) are
    ignored.
    """
    columns = build_columns(column_rows)
    indexes = build_indexes(index_rows)
    constraints = build_constraints(constraint_rows, check_clauses)

    tables = [
        Table(
            name=name,
            columns=tuple(columns.get(name, ())),
            indexes=tuple(indexes.get(name, ())),
            constraints=tuple(constraints.get(name, ())),
        )
        for name in table_names
    ]
    return Schema.from_tables(tables, database=database, captured_at=captured_at)


# ---- queries ----
def _fetch(conn: Connection, query: str, database: str) -> List[Row]:
    return list(conn.execute(text(query), {"schema": database}).mappings().all())


def fetch_table_names(conn: Connection, database: str) -> List[str]:
    """List base tables of *database*."""
    return [row["table_name"] for row in _fetch(conn, Q_LIST_TABLES, database)]


def fetch_check_clauses(conn: Connection, database: str) -> Dict[str, str]:
    """Return ``{constraint_name: check_clause}``; empty if the server has no CHECK_CONSTRAINTS view."""
    try:
        rows = _fetch(conn, Q_CHECK_CLAUSES, database)
    except SQLAlchemyError as exc:
        logger.warning("check clauses unavailable (MySQL < 8.0.16?): %s", exc)
        return {}
    return {row["constraint_name"]: row["check_clause"] for row in rows}


def collect_schema(
    conn: Connection,
    database: str,
    table_filter: Optional[TableFilter] = None,
) -> Schema:
    """Collect the structure of *database* over an open connection.

    Parameters
    ----------
    conn:
        Open SQLAlchemy connection to the server.
    database:
        Schema name to introspect.
    table_filter:
        Optional include/exclude patterns applied to table names.

    Returns
    -------
    Schema
        The captured schema, stamped with the current UTC time.
    """
    captured_at = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)

    table_names = fetch_table_names(conn, database)
    logger.debug("found %d base table(s) in %s", len(table_names), database)
    if table_filter is not None and table_filter.active:
        table_names = filter_tables(
            table_names,
            table_filter.include,
            table_filter.exclude,
            table_filter.case_sensitive,
        )
        logger.debug("%d table(s) left after filtering", len(table_names))

    column_rows = _fetch(conn, Q_COLUMNS, database)
    index_rows = _fetch(conn, Q_INDEXES, database)
    constraint_rows = _fetch(conn, Q_CONSTRAINTS, database)
    check_clauses = fetch_check_clauses(conn, database)

    return build_schema(
        database,
        table_names,
        column_rows,
        index_rows,
        constraint_rows,
        check_clauses,
        captured_at=captured_at,
    )


def collect_from_target(target: MySqlTarget, table_filter: Optional[TableFilter] = None) -> Schema:
    """Connect to *target*, collect its schema, and release the engine."""
    engine = create_engine_for(target)
    try:
        with engine.connect() as conn:
            schema = collect_schema(conn, target.database, table_filter)
    except SQLAlchemyError as exc:
        logger.error("schema collection failed for %s: %s", target.describe(), exc)
        raise
    finally:
        engine.dispose()
    logger.info("collected %d table(s) from %s", len(schema.tables), target.describe())
    return schema
