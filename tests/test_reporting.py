"""Unit tests for drift report generation."""

import csv
from pathlib import Path

import pytest
from openpyxl import load_workbook

from schemadrift.diffing import SchemaDiff, diff
from schemadrift.models import Column, Constraint, ConstraintKind, Index, Schema, Table
from schemadrift.reporting import (
    HEADER,
    ReportRow,
    describe_column,
    describe_constraint,
    describe_index,
    diff_rows,
    export_report,
    format_summary,
    format_value,
    generate_summary_md,
)
from schemadrift.utils import md_anchor


@pytest.fixture
def drift() -> SchemaDiff:
    """Baseline vs current with one table of each status."""
    baseline = Schema.from_tables(
        [
            Table("legacy", columns=(Column("id", "int", nullable=False, ordinal=1),)),
            Table(
                "orders",
                columns=(
                    Column("id", "int", nullable=False, ordinal=1),
                    Column("note", "varchar(50)", nullable=True, ordinal=2),
                    Column("status", "varchar(20)", nullable=False, default="new", ordinal=3),
                ),
                indexes=(Index("idx_status", ("status", "id")),),
            ),
            Table("customers", columns=(Column("id", "int", nullable=False, ordinal=1),)),
        ]
    )
    current = Schema.from_tables(
        [
            Table("audit", columns=(Column("id", "int", nullable=False, ordinal=1),)),
            Table(
                "orders",
                columns=(
                    Column("id", "int", nullable=False, ordinal=1),
                    Column("status", "varchar(20)", nullable=False, default="new", ordinal=2),
                    Column("note", "varchar(100)", nullable=True, ordinal=3),
                ),
                indexes=(Index("idx_status", ("id", "status")),),
                constraints=(Constraint("PRIMARY", ConstraintKind.PRIMARY_KEY, ("id",)),),
            ),
            Table("customers", columns=(Column("id", "int", nullable=False, ordinal=1),)),
        ]
    )
    return diff(baseline, current)


class TestFormatting:
    def test_format_value(self) -> None:
        assert format_value("default", None) == "none"
        assert format_value("nullable", True) == "NULL"
        assert format_value("nullable", False) == "NOT NULL"
        assert format_value("unique", True) == "yes"
        assert format_value("columns", ("a", "b")) == "(a, b)"
        assert format_value("kind", ConstraintKind.FOREIGN_KEY) == "FOREIGN KEY"
        assert format_value("type", "int") == "int"

    def test_describe_column(self) -> None:
        column = Column("status", "varchar(20)", nullable=False, default="new")
        assert describe_column(column) == "varchar(20) NOT NULL DEFAULT new"
        assert describe_column(Column("note", "text")) == "text NULL"

    def test_describe_index(self) -> None:
        assert describe_index(Index("uq", ("a", "b"), unique=True)) == "UNIQUE BTREE (a, b)"
        assert describe_index(Index("ft", ("body",), kind="FULLTEXT")) == "FULLTEXT (body)"

    def test_describe_constraint(self) -> None:
        fk = Constraint(
            "fk",
            ConstraintKind.FOREIGN_KEY,
            ("customer_id",),
            referenced_table="customers",
            referenced_columns=("id",),
            on_delete="CASCADE",
            on_update="RESTRICT",
        )
        assert describe_constraint(fk) == "FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE CASCADE ON UPDATE RESTRICT"
        check = Constraint("chk", ConstraintKind.CHECK, check_clause="(`qty` >= 0)")
        assert describe_constraint(check) == "CHECK ((`qty` >= 0))"


class TestDiffRows:
    def test_rows_follow_diff_order(self, drift: SchemaDiff) -> None:
        rows = diff_rows(drift, database="shop")
        assert [(r.table, r.object_type, r.object_name, r.result) for r in rows] == [
            ("legacy", "table", "legacy", "REMOVED"),
            ("audit", "table", "audit", "ADDED"),
            ("orders", "column", "note", "MODIFIED"),
            ("orders", "column", "", "REORDERED"),
            ("orders", "index", "idx_status", "MODIFIED"),
            ("orders", "constraint", "PRIMARY", "ADDED"),
        ]
        assert all(r.database == "shop" for r in rows)

    def test_row_details(self, drift: SchemaDiff) -> None:
        rows = {(r.object_type, r.result): r.detail for r in diff_rows(drift)}
        assert rows[("table", "REMOVED")] == "table missing from current database"
        assert rows[("table", "ADDED")] == "table missing from baseline snapshot"
        assert rows[("column", "MODIFIED")] == "type: varchar(50) -> varchar(100)"
        assert rows[("column", "REORDERED")] == "id, note, status -> id, status, note"
        assert rows[("index", "MODIFIED")] == "columns: (status, id) -> (id, status)"
        assert rows[("constraint", "ADDED")] == "PRIMARY KEY (id)"

    def test_unchanged_rows_are_opt_in(self, drift: SchemaDiff) -> None:
        assert "customers" not in {r.table for r in diff_rows(drift)}
        rows = diff_rows(drift, include_unchanged=True)
        assert rows[-1] == ReportRow("", "customers", "table", "customers", "UNCHANGED", "")

    def test_no_drift_yields_no_rows(self) -> None:
        schema = Schema.from_tables([Table("t", columns=(Column("id", "int", ordinal=1),))])
        assert diff_rows(diff(schema, schema)) == []


class TestExport:
    def test_xlsx(self, tmp_path: Path, drift: SchemaDiff) -> None:
        path = export_report(drift, tmp_path / "out" / "validateResult.xlsx", database="shop")
        wb = load_workbook(path)
        assert wb.sheetnames == ["Drift", "Summary"]
        values = list(wb["Drift"].iter_rows(values_only=True))
        assert values[0] == HEADER
        assert values[1] == ("shop", "legacy", "table", "legacy", "REMOVED", "table missing from current database")
        assert len(values) == 7
        summary = dict(wb["Summary"].iter_rows(min_row=2, values_only=True))
        assert summary == {"REMOVED": 1, "ADDED": 1, "MODIFIED": 1, "UNCHANGED": 1, "TOTAL": 4}

    def test_csv(self, tmp_path: Path, drift: SchemaDiff) -> None:
        path = export_report(drift, tmp_path / "drift.csv")
        with path.open(newline="", encoding="utf-8") as handle:
            rows = list(csv.reader(handle))
        assert tuple(rows[0]) == HEADER
        assert rows[1] == ["", "legacy", "table", "legacy", "REMOVED", "table missing from current database"]
        assert len(rows) == 7

    def test_unsupported_suffix(self, tmp_path: Path, drift: SchemaDiff) -> None:
        with pytest.raises(ValueError, match="unsupported report format"):
            export_report(drift, tmp_path / "drift.txt")


class TestSummaries:
    def test_format_summary(self, drift: SchemaDiff) -> None:
        assert format_summary(drift) == "Tables: 1 removed, 1 added, 1 modified, 1 unchanged"

    def test_generate_summary_md(self, tmp_path: Path, drift: SchemaDiff) -> None:
        out = generate_summary_md(tmp_path / "summary.md", ["- Snapshot: `shop.json`"], drift)
        content = out.read_text(encoding="utf-8")
        assert content.startswith("# Schema Drift Summary\n")
        assert "- Snapshot: `shop.json`" in content
        assert f"- [Removed tables](#{md_anchor('Removed tables')})" in content
        assert "## Removed tables\n\n- `legacy`\n" in content
        assert "## Added tables\n\n- `audit`\n" in content
        assert "  - modified column `note`: type: varchar(50) -> varchar(100)" in content
        assert "  - reordered column: id, note, status -> id, status, note" in content

    def test_generate_summary_md_without_drift(self, tmp_path: Path) -> None:
        schema = Schema.from_tables([Table("t")])
        content = generate_summary_md(tmp_path / "s.md", [], diff(schema, schema)).read_text(encoding="utf-8")
        assert content.count("- No differences") == 3

    def test_md_anchor(self) -> None:
        assert md_anchor("Modified tables") == "modified-tables"
