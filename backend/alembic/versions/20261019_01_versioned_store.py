"""Versioned responsibility store foundation."""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None

_CURRENT_ONLY = sa.text("status = 'current'")


def _versioned_columns(table: str) -> list[sa.Column]:
    return [
        sa.Column("version", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entry", sa.Integer(), sa.ForeignKey(f"{table}.version"), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="current"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _versioned_constraints(table: str) -> list:
    return [
        sa.PrimaryKeyConstraint("version"),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name=f"ck_{table}_validity_window",
        ),
        sa.CheckConstraint(
            "status IN ('current', 'deprecated', 'deleted')",
            name=f"ck_{table}_status",
        ),
    ]


def _create_versioned_table(table: str, *columns: sa.Column, references: Sequence[str] = ()) -> None:
    op.create_table(
        table,
        *_versioned_columns(table),
        *columns,
        *_versioned_constraints(table),
    )
    op.create_index(f"ix_{table}_entry_status", table, ["entry", "status"])
    op.create_index(f"ix_{table}_status_window", table, ["status", "start_date", "end_date"])
    op.create_index(
        f"uq_{table}_entry_current",
        table,
        ["entry"],
        unique=True,
        postgresql_where=_CURRENT_ONLY,
        sqlite_where=_CURRENT_ONLY,
    )
    for column in references:
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    _create_versioned_table(
        "workers",
        sa.Column("display_name", sa.String(length=120), nullable=False),
        sa.Column("first_name", sa.String(length=80), nullable=True),
        sa.Column("last_name", sa.String(length=80), nullable=True),
        sa.Column("initials", sa.String(length=8), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
    )
    _create_versioned_table(
        "activity_types",
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )
    _create_versioned_table(
        "activities",
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=10), nullable=True),
        sa.Column("activity_type", sa.Integer(), nullable=False),
        references=["activity_type"],
    )
    _create_versioned_table(
        "activity_tasks",
        sa.Column("activity", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        references=["activity"],
    )
    _create_versioned_table(
        "responsible_for",
        sa.Column("activity", sa.Integer(), nullable=False),
        sa.Column("user", sa.Integer(), nullable=False),
        references=["activity", "user"],
    )
    _create_versioned_table(
        "assigned_to",
        sa.Column("task", sa.Integer(), nullable=False),
        sa.Column("user", sa.Integer(), nullable=False),
        references=["task", "user"],
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kind", sa.String(length=64), nullable=False),
        sa.Column("entry", sa.Integer(), nullable=False),
        sa.Column("operation", sa.String(length=16), nullable=False),
        sa.Column("actor", sa.Integer(), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "operation IN ('create', 'update', 'delete')",
            name="ck_audit_log_operation",
        ),
    )
    op.create_index("ix_audit_log_kind_entry", "audit_log", ["kind", "entry"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_index("ix_audit_log_kind_entry", table_name="audit_log")
    op.drop_table("audit_log")
    for table in (
        "assigned_to",
        "responsible_for",
        "activity_tasks",
        "activities",
        "activity_types",
        "workers",
    ):
        op.drop_table(table)
