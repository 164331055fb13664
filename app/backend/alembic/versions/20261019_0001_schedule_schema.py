"""schedule schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "budget_categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=64), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint("department", "code", name="uq_budget_categories_department_code"),
    )
    op.create_index("ix_budget_categories_department_active", "budget_categories", ["department", "active"])

    op.create_table(
        "clients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "client_projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("project_name", sa.String(length=255), nullable=False),
        sa.Column("project_location", sa.String(length=500), nullable=True),
        sa.Column("construction_start_date", sa.Date(), nullable=True),
    )
    op.create_index("ix_client_projects_client_id", "client_projects", ["client_id"])

    op.create_table(
        "parametric_budget_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("client_projects.id"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("budget_categories.id"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_parametric_budget_items_amount_non_negative"),
    )
    op.create_index("ix_parametric_budget_items_project", "parametric_budget_items", ["client_id", "project_id"])

    op.create_table(
        "payment_plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("client_projects.id"),
            nullable=False,
        ),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_payment_plans_project_current", "payment_plans", ["project_id", "is_current"])

    op.create_table(
        "payment_installments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "payment_plan_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("payment_plans.id"),
            nullable=False,
        ),
        sa.Column("installment_no", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_payment_installments_amount_non_negative"),
    )
    op.create_index("ix_payment_installments_plan_due", "payment_installments", ["payment_plan_id", "due_date"])

    op.create_table(
        "schedule_plans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("client_projects.id"),
            nullable=False,
        ),
        sa.Column("start_month", sa.Date(), nullable=False),
        sa.Column("months_count", sa.Integer(), nullable=False, server_default=sa.text("12")),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("months_count >= 1", name="ck_schedule_plans_months_count_positive"),
        sa.UniqueConstraint("client_id", "project_id", name="uq_schedule_plans_client_project"),
    )

    op.create_table(
        "schedule_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "plan_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("schedule_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("line_no", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("budget_categories.id"),
            nullable=False,
        ),
        sa.Column("label", sa.String(length=255), nullable=True),
        sa.Column("is_discount", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("plan_id", "line_no", name="uq_schedule_lines_plan_line_no"),
    )
    op.create_index("ix_schedule_lines_plan_order", "schedule_lines", ["plan_id", "order_index"])

    op.create_table(
        "schedule_activities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "line_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("schedule_lines.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_month", sa.Date(), nullable=False),
        sa.Column("start_week", sa.Integer(), nullable=False),
        sa.Column("end_month", sa.Date(), nullable=False),
        sa.Column("end_week", sa.Integer(), nullable=False),
        sa.Column("duration_weeks", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("start_week BETWEEN 1 AND 4", name="ck_schedule_activities_start_week"),
        sa.CheckConstraint("end_week BETWEEN 1 AND 4", name="ck_schedule_activities_end_week"),
        sa.CheckConstraint("duration_weeks >= 1", name="ck_schedule_activities_duration_positive"),
        sa.UniqueConstraint("line_id", name="uq_schedule_activities_line"),
    )

    op.create_table(
        "matrix_overrides",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("client_projects.id"),
            nullable=False,
        ),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("concept", sa.String(length=64), nullable=False),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.Column("supersedes", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "client_id",
            "project_id",
            "month",
            "concept",
            name="uq_matrix_overrides_client_project_month_concept",
        ),
    )
    op.create_index("ix_matrix_overrides_project_month", "matrix_overrides", ["client_id", "project_id", "month"])


def downgrade() -> None:
    op.drop_index("ix_matrix_overrides_project_month", table_name="matrix_overrides")
    op.drop_table("matrix_overrides")

    op.drop_table("schedule_activities")

    op.drop_index("ix_schedule_lines_plan_order", table_name="schedule_lines")
    op.drop_table("schedule_lines")

    op.drop_table("schedule_plans")

    op.drop_index("ix_payment_installments_plan_due", table_name="payment_installments")
    op.drop_table("payment_installments")

    op.drop_index("ix_payment_plans_project_current", table_name="payment_plans")
    op.drop_table("payment_plans")

    op.drop_index("ix_parametric_budget_items_project", table_name="parametric_budget_items")
    op.drop_table("parametric_budget_items")

    op.drop_index("ix_client_projects_client_id", table_name="client_projects")
    op.drop_table("client_projects")

    op.drop_table("clients")

    op.drop_index("ix_budget_categories_department_active", table_name="budget_categories")
    op.drop_table("budget_categories")
