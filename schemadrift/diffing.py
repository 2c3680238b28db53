"""
diffing
=======

Structural diff between two :class:`~schemadrift.models.Schema` values.

:func:`diff` compares a *baseline* (usually a loaded snapshot) against a
*current* schema (usually collected from the live database) and returns an
immutable :class:`SchemaDiff`:

1. tables only in the baseline are ``REMOVED``, tables only in the current
   schema are ``ADDED``
2. tables in both are compared column by column (matched by name); a pure
   change of column order is reported as a reorder, never as remove + add
3. indexes and constraints are matched by name the same way
4. a table with any change underneath it is ``MODIFIED``, else ``UNCHANGED``

There is no rename detection: an entity that disappears under one name and
appears under another is one removal plus one unrelated addition.

Entries are ordered REMOVED, ADDED, MODIFIED, UNCHANGED, each group sorted by
table name, so repeated runs over the same inputs yield identical output.

The engine is a pure function over the model: no I/O, inputs are never
mutated, and it does not raise for any pair of well-formed schemas.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .models import Column, Constraint, Index, Schema, Table


class TableStatus(str, Enum):
    """Classification of one table in a :class:`SchemaDiff`."""

    REMOVED = "REMOVED"
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    UNCHANGED = "UNCHANGED"


_STATUS_RANK = {
    TableStatus.REMOVED: 0,
    TableStatus.ADDED: 1,
    TableStatus.MODIFIED: 2,
    TableStatus.UNCHANGED: 3,
}


@dataclass(frozen=True)
class DiffOptions:
    """Comparison switches.

    Attributes:
        case_sensitive: Match table/column/index/constraint names exactly
            (default). When False, names are matched after ``str.casefold``.
        report_reorder: Report a change of column order as a modification
            (default). When False, pure reordering is ignored.
    """

    case_sensitive: bool = True
    report_reorder: bool = True


@dataclass(frozen=True)
class FieldChange:
    """Old and new value of one differing field."""

    field: str
    old: Any
    new: Any


@dataclass(frozen=True)
class Modification:
    """An entity present on both sides whose content differs.

    ``old`` and ``new`` are the baseline and current entity (a
    :class:`~schemadrift.models.Column`, :class:`~schemadrift.models.Index` or
    :class:`~schemadrift.models.Constraint`).
    """

    name: str
    old: Any
    new: Any
    changes: Tuple[FieldChange, ...]


@dataclass(frozen=True)
class ColumnReorder:
    """Relative order of the columns common to both sides changed."""

    old_order: Tuple[str, ...]
    new_order: Tuple[str, ...]


@dataclass(frozen=True)
class TableDiff:
    """Differences for one table.

    ``baseline`` / ``current`` hold the table as it exists on each side
    (``None`` on the side where it is missing). The nested tuples are only
    populated for ``MODIFIED`` tables.
    """

    name: str
    status: TableStatus
    baseline: Optional[Table] = None
    current: Optional[Table] = None
    added_columns: Tuple[Column, ...] = ()
    removed_columns: Tuple[Column, ...] = ()
    modified_columns: Tuple[Modification, ...] = ()
    reordered_columns: Optional[ColumnReorder] = None
    added_indexes: Tuple[Index, ...] = ()
    removed_indexes: Tuple[Index, ...] = ()
    modified_indexes: Tuple[Modification, ...] = ()
    added_constraints: Tuple[Constraint, ...] = ()
    removed_constraints: Tuple[Constraint, ...] = ()
    modified_constraints: Tuple[Modification, ...] = ()

    @property
    def has_changes(self) -> bool:
        return self.status is not TableStatus.UNCHANGED


@dataclass(frozen=True)
class DiffSummary:
    """Table counts per classification."""

    removed: int
    added: int
    modified: int
    unchanged: int

    @property
    def total(self) -> int:
        return self.removed + self.added + self.modified + self.unchanged


@dataclass(frozen=True)
class SchemaDiff:
    """Ordered per-table result of :func:`diff`."""

    tables: Tuple[TableDiff, ...]

    def reportable(self) -> Tuple[TableDiff, ...]:
        """Entries to show in a report: every table that is not UNCHANGED."""
        return tuple(t for t in self.tables if t.has_changes)

    def with_status(self, status: TableStatus) -> Tuple[TableDiff, ...]:
        return tuple(t for t in self.tables if t.status is status)

    def table(self, name: str) -> Optional[TableDiff]:
        return next((t for t in self.tables if t.name == name), None)

    @property
    def has_drift(self) -> bool:
        return any(t.has_changes for t in self.tables)

    def summary(self) -> DiffSummary:
        counts = {status: 0 for status in TableStatus}
        for t in self.tables:
            counts[t.status] += 1
        return DiffSummary(
            removed=counts[TableStatus.REMOVED],
            added=counts[TableStatus.ADDED],
            modified=counts[TableStatus.MODIFIED],
            unchanged=counts[TableStatus.UNCHANGED],
        )


T = TypeVar("T", Column, Index, Constraint, Table)


def _name_key(name: str, case_sensitive: bool) -> str:
    return name if case_sensitive else name.casefold()


def _keyed(items: Iterable[T], case_sensitive: bool) -> Dict[str, T]:
    """Index *items* by (optionally casefolded) name, preserving order.

    Two names that only differ by case collide when matching
    case-insensitively; both are then keyed by their exact spelling so
    nothing is dropped.
    """
    out: Dict[str, T] = {}
    for item in items:
        key = _name_key(item.name, case_sensitive)
        if key in out:
            previous = out.pop(key)
            out[previous.name] = previous
            key = item.name
        out[key] = item
    return out


def _match(
    old_items: Sequence[T],
    new_items: Sequence[T],
    case_sensitive: bool,
) -> Tuple[List[T], List[T], List[Tuple[T, T]]]:
    """Pair entities by name.

    Returns ``(added, removed, pairs)``. ``added`` and ``pairs`` follow the
    order of *new_items*, ``removed`` the order of *old_items*.
    """
    old = _keyed(old_items, case_sensitive)
    new = _keyed(new_items, case_sensitive)
    added = [item for key, item in new.items() if key not in old]
    removed = [item for key, item in old.items() if key not in new]
    pairs = [(old[key], item) for key, item in new.items() if key in old]
    return added, removed, pairs


def _modifications(pairs: Iterable[Tuple[Any, Any]], case_sensitive: bool) -> Tuple[Modification, ...]:
    out: List[Modification] = []
    for old, new in pairs:
        deltas = old.field_changes(new, case_sensitive=case_sensitive)
        if deltas:
            out.append(
                Modification(
                    name=new.name,
                    old=old,
                    new=new,
                    changes=tuple(FieldChange(f, o, n) for f, o, n in deltas),
                )
            )
    return tuple(out)


def _reorder(
    baseline_columns: Sequence[Column],
    pairs: Sequence[Tuple[Column, Column]],
) -> Optional[ColumnReorder]:
    """Detect a change in the relative order of columns present on both sides.

    *pairs* follow the current table's column order.
    """
    rank = {c.name: i for i, c in enumerate(baseline_columns)}
    in_new_order = [old.name for old, _ in pairs]
    in_old_order = sorted(in_new_order, key=lambda name: rank[name])
    if in_old_order == in_new_order:
        return None
    return ColumnReorder(
        old_order=tuple(in_old_order),
        new_order=tuple(new.name for _, new in pairs),
    )


def diff_table(
    baseline: Table,
    current: Table,
    options: Optional[DiffOptions] = None,
) -> TableDiff:
    """Compare two versions of the same table.

    Parameters
    ----------
    baseline, current:
        The table as captured in the baseline and as it exists now.
    options:
        Comparison switches (defaults to :class:`DiffOptions`).

    Returns
    -------
    TableDiff
        ``MODIFIED`` if any column, index or constraint was added, removed,
        modified or (columns only) reordered; otherwise ``UNCHANGED``.
    """
    options = options or DiffOptions()
    cs = options.case_sensitive

    added_cols, removed_cols, col_pairs = _match(baseline.columns, current.columns, cs)
    added_idx, removed_idx, idx_pairs = _match(baseline.indexes, current.indexes, cs)
    added_con, removed_con, con_pairs = _match(baseline.constraints, current.constraints, cs)

    modified_cols = _modifications(col_pairs, cs)
    modified_idx = _modifications(idx_pairs, cs)
    modified_con = _modifications(con_pairs, cs)
    reorder = _reorder(baseline.columns, col_pairs) if options.report_reorder else None

    changed = any(
        [
            added_cols,
            removed_cols,
            modified_cols,
            reorder,
            added_idx,
            removed_idx,
            modified_idx,
            added_con,
            removed_con,
            modified_con,
        ]
    )
    if not changed:
        return TableDiff(
            name=current.name,
            status=TableStatus.UNCHANGED,
            baseline=baseline,
            current=current,
        )

    return TableDiff(
        name=current.name,
        status=TableStatus.MODIFIED,
        baseline=baseline,
        current=current,
        added_columns=tuple(added_cols),
        removed_columns=tuple(removed_cols),
        modified_columns=modified_cols,
        reordered_columns=reorder,
        added_indexes=tuple(added_idx),
        removed_indexes=tuple(removed_idx),
        modified_indexes=modified_idx,
        added_constraints=tuple(added_con),
        removed_constraints=tuple(removed_con),
        modified_constraints=modified_con,
    )


def diff(
    baseline: Schema,
    current: Schema,
    *,
    case_sensitive: bool = True,
    report_reorder: bool = True,
) -> SchemaDiff:
    """Compute the structural difference between two schemas.

    Parameters
    ----------
    baseline:
        The expected schema (typically a loaded snapshot).
    current:
        The schema to check against the baseline (typically collected live).
    case_sensitive:
        Match identifiers exactly (default). Pass False for servers whose
        identifiers are case-insensitive (``lower_case_table_names`` != 0).
    report_reorder:
        Report column reordering as a modification (default).

    Returns
    -------
    SchemaDiff
        One entry per table appearing in either schema, in report order.
    """
    options = DiffOptions(case_sensitive=case_sensitive, report_reorder=report_reorder)
    added, removed, pairs = _match(baseline.tables, current.tables, case_sensitive)

    entries: List[TableDiff] = []
    entries.extend(TableDiff(name=t.name, status=TableStatus.REMOVED, baseline=t) for t in removed)
    entries.extend(TableDiff(name=t.name, status=TableStatus.ADDED, current=t) for t in added)
    entries.extend(diff_table(old, new, options) for old, new in pairs)

    entries.sort(key=lambda e: (_STATUS_RANK[e.status], e.name))
    return SchemaDiff(tables=tuple(entries))
