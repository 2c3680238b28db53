"""
models
======

In-memory representation of a captured database schema.

A :class:`Schema` is a read-only value built either by the metadata collector
(:mod:`schemadrift.collectors`) or by the snapshot codec
(:mod:`schemadrift.codec`). Nothing downstream mutates it.

Canonical ordering
------------------
Entities are normalized when they are constructed, so iteration order never
depends on the order a collector happened to return rows in:

- tables are sorted by name
- columns are sorted by ordinal position (definition order)
- indexes and constraints are sorted by name

Structural equality
-------------------
The dataclass ``==`` of every entity is structural:

- :class:`Column`: name, type, nullability, default (ordinal is ignored)
- :class:`Index`: name, ordered columns, uniqueness, kind
- :class:`Constraint`: every field
- :class:`Table`: columns (in order), indexes, constraints
- :class:`Schema`: tables (database name and capture time are informational)
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple


class ConstraintKind(str, Enum):
    """Kinds of table constraints, labelled as MySQL reports them."""

    PRIMARY_KEY = "PRIMARY KEY"
    FOREIGN_KEY = "FOREIGN KEY"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"


FieldDelta = Tuple[str, Any, Any]


def _fold(value: Any) -> Any:
    """Casefold identifiers (or tuples of identifiers) for case-insensitive comparison."""
    if isinstance(value, str):
        return value.casefold()
    if isinstance(value, tuple):
        return tuple(_fold(v) for v in value)
    return value


class _Compared:
    """Mixin computing per-field differences between two entities of one type.

    Subclasses list ``(label, attribute)`` pairs in ``_compared_fields``.
    Attributes listed in ``_identifier_fields`` hold identifiers and are
    casefolded when comparing case-insensitively.
    """

    _compared_fields: ClassVar[Tuple[Tuple[str, str], ...]] = ()
    _identifier_fields: ClassVar[frozenset] = frozenset()

    def field_changes(self, other: Any, case_sensitive: bool = True) -> List[FieldDelta]:
        """Return ``(label, old, new)`` for every compared field that differs.

        The entity name is not part of the result: callers pair entities by
        name before asking what changed.
        """
        out: List[FieldDelta] = []
        for label, attr in self._compared_fields:
            old = getattr(self, attr)
            new = getattr(other, attr)
            if not case_sensitive and attr in self._identifier_fields:
                same = _fold(old) == _fold(new)
            else:
                same = old == new
            if not same:
                out.append((label, old, new))
        return out


@dataclass(frozen=True)
class Column(_Compared):
    """A table column.

    Attributes:
        name: Column name.
        data_type: Engine-native declared type, e.g. ``varchar(255)``.
        nullable: Whether NULL is allowed.
        default: Default value as a literal string, or ``None`` for no default.
        ordinal: 1-based position in the table definition. Only used for
            ordering and reorder detection, never for equality.
    """

    _compared_fields: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("type", "data_type"),
        ("nullable", "nullable"),
        ("default", "default"),
    )

    name: str
    data_type: str
    nullable: bool = True
    default: Optional[str] = None
    ordinal: int = field(default=0, compare=False)

    def same_structure(self, other: Column) -> bool:
        return self == other


@dataclass(frozen=True)
class Index(_Compared):
    """A table index. Column order is significant (compound index semantics)."""

    _compared_fields: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("columns", "columns"),
        ("unique", "unique"),
        ("kind", "kind"),
    )
    _identifier_fields: ClassVar[frozenset] = frozenset({"columns"})

    name: str
    columns: Tuple[str, ...]
    unique: bool = False
    kind: str = "BTREE"

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))

    def same_structure(self, other: Index) -> bool:
        return self == other


@dataclass(frozen=True)
class Constraint(_Compared):
    """A table constraint (primary key, foreign key, unique or check).

    Foreign keys additionally carry the referenced table and columns plus the
    referential actions. Check constraints carry their check clause.
    """

    _compared_fields: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("kind", "kind"),
        ("columns", "columns"),
        ("referenced_table", "referenced_table"),
        ("referenced_columns", "referenced_columns"),
        ("on_delete", "on_delete"),
        ("on_update", "on_update"),
        ("check_clause", "check_clause"),
    )
    _identifier_fields: ClassVar[frozenset] = frozenset(
        {"columns", "referenced_table", "referenced_columns"}
    )

    name: str
    kind: ConstraintKind
    columns: Tuple[str, ...] = ()
    referenced_table: Optional[str] = None
    referenced_columns: Tuple[str, ...] = ()
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    check_clause: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ConstraintKind(self.kind))
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "referenced_columns", tuple(self.referenced_columns))

    @property
    def is_foreign_key(self) -> bool:
        return self.kind is ConstraintKind.FOREIGN_KEY

    def same_structure(self, other: Constraint) -> bool:
        return self == other


def _unique_names(kind: str, owner: str, names: Iterable[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ValueError(f"duplicate {kind} name {name!r} in {owner}")
        seen.add(name)


@dataclass(frozen=True)
class Table:
    """A table: ordered columns plus indexes and constraints keyed by name."""

    name: str
    columns: Tuple[Column, ...] = ()
    indexes: Tuple[Index, ...] = ()
    constraints: Tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        # sorted() is stable: columns sharing an ordinal keep the given order
        columns = tuple(sorted(self.columns, key=lambda c: c.ordinal))
        indexes = tuple(sorted(self.indexes, key=lambda i: i.name))
        constraints = tuple(sorted(self.constraints, key=lambda c: c.name))

        owner = f"table {self.name!r}"
        _unique_names("column", owner, (c.name for c in columns))
        _unique_names("index", owner, (i.name for i in indexes))
        _unique_names("constraint", owner, (c.name for c in constraints))

        object.__setattr__(self, "columns", columns)
        object.__setattr__(self, "indexes", indexes)
        object.__setattr__(self, "constraints", constraints)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def column(self, name: str) -> Optional[Column]:
        return next((c for c in self.columns if c.name == name), None)

    def index(self, name: str) -> Optional[Index]:
        return next((i for i in self.indexes if i.name == name), None)

    def constraint(self, name: str) -> Optional[Constraint]:
        return next((c for c in self.constraints if c.name == name), None)

    def same_structure(self, other: Table) -> bool:
        return self == other


@dataclass(frozen=True)
class Schema:
    """One database's structure at one point in time.

    Attributes:
        tables: Tables in canonical (name) order.
        database: Name of the source database. Informational only.
        captured_at: When the schema was captured. Informational only.
    """

    tables: Tuple[Table, ...] = ()
    database: str = field(default="", compare=False)
    captured_at: Optional[dt.datetime] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        tables = tuple(sorted(self.tables, key=lambda t: t.name))
        _unique_names("table", f"schema {self.database!r}", (t.name for t in tables))
        object.__setattr__(self, "tables", tables)

    @classmethod
    def from_tables(
        cls,
        tables: Sequence[Table],
        database: str = "",
        captured_at: Optional[dt.datetime] = None,
    ) -> Schema:
        return cls(tables=tuple(tables), database=database, captured_at=captured_at)

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.tables)

    def as_mapping(self) -> Dict[str, Table]:
        """Return an ordered ``{name: table}`` mapping."""
        return {t.name: t for t in self.tables}

    def table(self, name: str) -> Optional[Table]:
        return next((t for t in self.tables if t.name == name), None)

    def __contains__(self, name: object) -> bool:
        return any(t.name == name for t in self.tables)

    def same_structure(self, other: Schema) -> bool:
        return self == other
