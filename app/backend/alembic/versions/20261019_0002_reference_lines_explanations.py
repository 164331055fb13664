"""gantt reference lines and matrix explanations

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def _plan_fk() -> sa.Column:
    return sa.Column(
        "plan_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("schedule_plans.id", ondelete="CASCADE"),
        nullable=False,
    )


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "schedule_reference_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        _plan_fk(),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("week", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(length=120), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=False, server_default=sa.text("'#EF4444'")),
        *_audit_columns(),
        sa.CheckConstraint("week BETWEEN 1 AND 4", name="ck_schedule_reference_lines_week"),
    )
    op.create_index(
        "ix_schedule_reference_lines_plan_position",
        "schedule_reference_lines",
        ["plan_id", "month", "week"],
    )

    op.create_table(
        "matrix_explanations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        _plan_fk(),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("order_index", sa.Integer(), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_matrix_explanations_plan_order", "matrix_explanations", ["plan_id", "order_index"])


def downgrade() -> None:
    op.drop_index("ix_matrix_explanations_plan_order", table_name="matrix_explanations")
    op.drop_table("matrix_explanations")

    op.drop_index("ix_schedule_reference_lines_plan_position", table_name="schedule_reference_lines")
    op.drop_table("schedule_reference_lines")
