"""Shared fixtures: a small two-table shop schema."""

import datetime as dt

import pytest

from schemadrift.models import Column, Constraint, ConstraintKind, Index, Schema, Table


@pytest.fixture
def customers_table() -> Table:
    return Table(
        name="customers",
        columns=(
            Column("id", "int unsigned", nullable=False, ordinal=1),
            Column("email", "varchar(255)", nullable=False, ordinal=2),
            Column("created_at", "datetime", nullable=False, default="CURRENT_TIMESTAMP", ordinal=3),
        ),
        indexes=(
            Index("PRIMARY", ("id",), unique=True, kind="BTREE"),
            Index("uq_email", ("email",), unique=True, kind="BTREE"),
        ),
        constraints=(
            Constraint("PRIMARY", ConstraintKind.PRIMARY_KEY, ("id",)),
            Constraint("uq_email", ConstraintKind.UNIQUE, ("email",)),
        ),
    )


@pytest.fixture
def orders_table() -> Table:
    return Table(
        name="orders",
        columns=(
            Column("id", "int unsigned", nullable=False, ordinal=1),
            Column("customer_id", "int unsigned", nullable=False, ordinal=2),
            Column("status", "varchar(20)", nullable=False, default="new", ordinal=3),
            Column("total", "decimal(10,2)", nullable=True, ordinal=4),
        ),
        indexes=(
            Index("PRIMARY", ("id",), unique=True, kind="BTREE"),
            Index("idx_customer_status", ("customer_id", "status"), unique=False, kind="BTREE"),
        ),
        constraints=(
            Constraint("PRIMARY", ConstraintKind.PRIMARY_KEY, ("id",)),
            Constraint(
                "fk_orders_customer",
                ConstraintKind.FOREIGN_KEY,
                ("customer_id",),
                referenced_table="customers",
                referenced_columns=("id",),
                on_delete="CASCADE",
                on_update="RESTRICT",
            ),
            Constraint("chk_total", ConstraintKind.CHECK, check_clause="(`total` >= 0)"),
        ),
    )


@pytest.fixture
def shop_schema(customers_table: Table, orders_table: Table) -> Schema:
    return Schema.from_tables(
        [orders_table, customers_table],
        database="shop",
        captured_at=dt.datetime(2026, 10, 1, 12, 0, tzinfo=dt.timezone.utc),
    )
