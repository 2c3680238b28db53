"""
reporting
=========

Drift report generation.

A :class:`~schemadrift.diffing.SchemaDiff` is flattened into one
:class:`ReportRow` per finding and written as a spreadsheet. No comparison
logic lives here: every row is derived from what the diff already says.

Primary API
-----------
- :func:`diff_rows`
- :func:`export_report` (``.xlsx`` via openpyxl, or ``.csv``)
- :func:`format_summary` (one line for the console)
- :func:`generate_summary_md`
"""

from __future__ import annotations

import csv
import datetime as dt
import logging
from dataclasses import astuple, dataclass
from pathlib import Path
from typing import Any, Iterable, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .diffing import ColumnReorder, Modification, SchemaDiff, TableDiff, TableStatus
from .models import Column, Constraint, ConstraintKind, Index
from .utils import md_anchor, write_text

logger = logging.getLogger(__name__)

HEADER = ("Database", "Table", "Object", "Name", "Result", "Detail")

SUPPORTED_SUFFIXES = (".xlsx", ".csv")


@dataclass(frozen=True)
class ReportRow:
    """One line of the drift report."""

    database: str
    table: str
    object_type: str
    object_name: str
    result: str
    detail: str

    def as_tuple(self) -> tuple:
        return astuple(self)


# ---- value formatting ----
def format_value(field: str, value: Any) -> str:
    """Render a compared field value for humans."""
    if value is None:
        return "none"
    if field == "nullable":
        return "NULL" if value else "NOT NULL"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, tuple):
        return "(" + ", ".join(str(v) for v in value) + ")"
    if isinstance(value, ConstraintKind):
        return value.value
    return str(value)


def describe_column(column: Column) -> str:
    """E.g. ``varchar(50) NOT NULL DEFAULT 'x'``."""
    parts = [column.data_type, "NULL" if column.nullable else "NOT NULL"]
    if column.default is not None:
        parts.append(f"DEFAULT {column.default}")
    return " ".join(parts)


def describe_index(index: Index) -> str:
    prefix = "UNIQUE " if index.unique else ""
    return f"{prefix}{index.kind} {format_value('columns', index.columns)}"


def describe_constraint(constraint: Constraint) -> str:
    text = f"{constraint.kind.value} {format_value('columns', constraint.columns)}"
    if constraint.kind is ConstraintKind.FOREIGN_KEY:
        text += (
            f" REFERENCES {constraint.referenced_table}"
            f"{format_value('columns', constraint.referenced_columns)}"
            f" ON DELETE {constraint.on_delete or 'none'} ON UPDATE {constraint.on_update or 'none'}"
        )
    elif constraint.kind is ConstraintKind.CHECK:
        text = f"CHECK ({constraint.check_clause or ''})"
    return text


def describe_changes(modification: Modification) -> str:
    """E.g. ``type: varchar(50) -> varchar(100); nullable: NULL -> NOT NULL``."""
    return "; ".join(
        f"{c.field}: {format_value(c.field, c.old)} -> {format_value(c.field, c.new)}"
        for c in modification.changes
    )


def describe_reorder(reorder: ColumnReorder) -> str:
    return f"{', '.join(reorder.old_order)} -> {', '.join(reorder.new_order)}"


# ---- rows ----
def _entity_rows(
    database: str,
    table: str,
    object_type: str,
    added: Sequence[Any],
    removed: Sequence[Any],
    modified: Sequence[Modification],
    describe,
) -> List[ReportRow]:
    rows: List[ReportRow] = []
    for item in removed:
        rows.append(ReportRow(database, table, object_type, item.name, "REMOVED", describe(item)))
    for item in added:
        rows.append(ReportRow(database, table, object_type, item.name, "ADDED", describe(item)))
    for mod in modified:
        rows.append(ReportRow(database, table, object_type, mod.name, "MODIFIED", describe_changes(mod)))
    return rows


def table_rows(entry: TableDiff, database: str = "") -> List[ReportRow]:
    """Rows for one table entry."""
    if entry.status is TableStatus.REMOVED:
        return [ReportRow(database, entry.name, "table", entry.name, "REMOVED", "table missing from current database")]
    if entry.status is TableStatus.ADDED:
        return [ReportRow(database, entry.name, "table", entry.name, "ADDED", "table missing from baseline snapshot")]
    if entry.status is TableStatus.UNCHANGED:
        return [ReportRow(database, entry.name, "table", entry.name, "UNCHANGED", "")]

    rows = _entity_rows(
        database,
        entry.name,
        "column",
        entry.added_columns,
        entry.removed_columns,
        entry.modified_columns,
        describe_column,
    )
    if entry.reordered_columns is not None:
        rows.append(
            ReportRow(database, entry.name, "column", "", "REORDERED", describe_reorder(entry.reordered_columns))
        )
    rows += _entity_rows(
        database,
        entry.name,
        "index",
        entry.added_indexes,
        entry.removed_indexes,
        entry.modified_indexes,
        describe_index,
    )
    rows += _entity_rows(
        database,
        entry.name,
        "constraint",
        entry.added_constraints,
        entry.removed_constraints,
        entry.modified_constraints,
        describe_constraint,
    )
    return rows


def diff_rows(diff: SchemaDiff, database: str = "", include_unchanged: bool = False) -> List[ReportRow]:
    """Flatten *diff* into report rows, keeping the diff's table order.

    Parameters
    ----------
    diff:
        Result of :func:`schemadrift.diffing.diff`.
    database:
        Value for the "Database" column.
    include_unchanged:
        Also emit one ``UNCHANGED`` row per table without drift.
    """
    entries: Iterable[TableDiff] = diff.tables if include_unchanged else diff.reportable()
    rows: List[ReportRow] = []
    for entry in entries:
        rows.extend(table_rows(entry, database))
    return rows


# ---- writers ----
def write_xlsx(rows: Sequence[ReportRow], path: Path, diff: SchemaDiff | None = None) -> Path:
    """Write *rows* to an ``.xlsx`` workbook.

    The "Drift" sheet holds the header plus one row per finding. When *diff*
    is given, a "Summary" sheet with table counts is added.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Drift"
    ws.append(list(HEADER))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(list(row.as_tuple()))
    ws.freeze_panes = "A2"

    for idx, title in enumerate(HEADER):
        values = [title] + [str(r.as_tuple()[idx]) for r in rows]
        width = min(max(len(v) for v in values) + 2, 80)
        ws.column_dimensions[get_column_letter(idx + 1)].width = width

    if diff is not None:
        summary = diff.summary()
        ss = wb.create_sheet("Summary")
        ss.append(["Status", "Tables"])
        for cell in ss[1]:
            cell.font = Font(bold=True)
        ss.append(["REMOVED", summary.removed])
        ss.append(["ADDED", summary.added])
        ss.append(["MODIFIED", summary.modified])
        ss.append(["UNCHANGED", summary.unchanged])
        ss.append(["TOTAL", summary.total])

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def write_csv(
    rows: Sequence[ReportRow],
    path: Path,
    delimiter: str = ",",
    encoding: str = "utf-8",
) -> Path:
    """Write *rows* to CSV with a header line.

    Raises
    ------
    OSError
        If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding=encoding) as handle:
        writer = csv.writer(handle, delimiter=delimiter)
        writer.writerow(HEADER)
        for row in rows:
            writer.writerow(row.as_tuple())
    return path


def export_report(
    diff: SchemaDiff,
    path: Path,
    database: str = "",
    include_unchanged: bool = False,
) -> Path:
    """Render *diff* to *path*; the format follows the file suffix.

    Raises
    ------
    ValueError
        If the suffix is not ``.xlsx`` or ``.csv``.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"unsupported report format {path.suffix!r}; use one of {', '.join(SUPPORTED_SUFFIXES)}")

    rows = diff_rows(diff, database, include_unchanged=include_unchanged)
    if suffix == ".xlsx":
        write_xlsx(rows, path, diff)
    else:
        write_csv(rows, path)
    logger.info("wrote %d report row(s) to %s", len(rows), path)
    return path


# ---- summaries ----
def format_summary(diff: SchemaDiff) -> str:
    """One-line table counts, e.g. ``Tables: 1 removed, 0 added, 2 modified, 7 unchanged``."""
    s = diff.summary()
    return f"Tables: {s.removed} removed, {s.added} added, {s.modified} modified, {s.unchanged} unchanged"


def generate_summary_md(out_path: Path, header_lines: List[str], diff: SchemaDiff) -> Path:
    """Generate a Markdown summary of *diff*.

    Parameters
    ----------
    out_path:
        Where to write the Markdown file.
    header_lines:
        Bullet-style lines to include near the top (snapshot, target, options).
    diff:
        The diff to summarize.

    Returns
    -------
    pathlib.Path
        *out_path*.
    """
    now = dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    sections = [
        ("Removed tables", diff.with_status(TableStatus.REMOVED)),
        ("Added tables", diff.with_status(TableStatus.ADDED)),
        ("Modified tables", diff.with_status(TableStatus.MODIFIED)),
    ]

    lines: List[str] = []
    lines.append("# Schema Drift Summary\n\n")
    lines.append(f"_Generated: {now}_\n\n")

    if header_lines:
        for h in header_lines:
            lines.append(h + "\n")
        lines.append("\n")

    lines.append(f"{format_summary(diff)}\n\n")

    lines.append("## Contents\n")
    for title, _ in sections:
        lines.append(f"- [{title}](#{md_anchor(title)})\n")
    lines.append("\n")

    for title, entries in sections:
        lines.append(f"## {title}\n\n")
        if not entries:
            lines.append("- No differences\n\n")
            continue
        for entry in entries:
            lines.append(f"- `{entry.name}`\n")
            if entry.status is not TableStatus.MODIFIED:
                continue
            for row in table_rows(entry):
                name = f" `{row.object_name}`" if row.object_name else ""
                lines.append(f"  - {row.result.lower()} {row.object_type}{name}: {row.detail}\n")
        lines.append("\n")

    write_text(out_path, "".join(lines))
    return out_path
