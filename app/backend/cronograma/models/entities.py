"""ORM entities for the construction schedule schema."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from cronograma.db.base import Base


# ---------- Reference rows owned by the surrounding platform ----------
class BudgetCategory(Base):
    """Budget line-item category ("mayor") from the chart of accounts."""

    __tablename__ = "budget_categories"
    __table_args__ = (
        UniqueConstraint("department", "code", name="uq_budget_categories_department_code"),
        Index("ix_budget_categories_department_active", "department", "active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str] = mapped_column(String(64), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)


class ClientProject(Base):
    __tablename__ = "client_projects"
    __table_args__ = (Index("ix_client_projects_client_id", "client_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    construction_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class ParametricBudgetItem(Base):
    """Parametric budget row; aggregated per category by the budget reader."""

    __tablename__ = "parametric_budget_items"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_parametric_budget_items_amount_non_negative"),
        Index("ix_parametric_budget_items_project", "client_id", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("client_projects.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("budget_categories.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)


class PaymentPlan(Base):
    __tablename__ = "payment_plans"
    __table_args__ = (Index("ix_payment_plans_project_current", "project_id", "is_current"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("client_projects.id"), nullable=False
    )
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class PaymentInstallment(Base):
    __tablename__ = "payment_installments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_installments_amount_non_negative"),
        Index("ix_payment_installments_plan_due", "payment_plan_id", "due_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    payment_plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("payment_plans.id"), nullable=False
    )
    installment_no: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)


# ---------- Schedule ----------
class SchedulePlan(Base):
    __tablename__ = "schedule_plans"
    __table_args__ = (
        CheckConstraint("months_count >= 1", name="ck_schedule_plans_months_count_positive"),
        UniqueConstraint("client_id", "project_id", name="uq_schedule_plans_client_project"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("client_projects.id"), nullable=False
    )
    start_month: Mapped[date] = mapped_column(Date, nullable=False)
    months_count: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class ScheduleLine(Base):
    __tablename__ = "schedule_lines"
    __table_args__ = (
        Index("ix_schedule_lines_plan_order", "plan_id", "order_index"),
        UniqueConstraint("plan_id", "line_no", name="uq_schedule_lines_plan_line_no"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schedule_plans.id", ondelete="CASCADE"), nullable=False
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("budget_categories.id"), nullable=False
    )
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_discount: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class ScheduleActivity(Base):
    __tablename__ = "schedule_activities"
    __table_args__ = (
        CheckConstraint("start_week BETWEEN 1 AND 4", name="ck_schedule_activities_start_week"),
        CheckConstraint("end_week BETWEEN 1 AND 4", name="ck_schedule_activities_end_week"),
        CheckConstraint("duration_weeks >= 1", name="ck_schedule_activities_duration_positive"),
        UniqueConstraint("line_id", name="uq_schedule_activities_line"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    line_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schedule_lines.id", ondelete="CASCADE"), nullable=False
    )
    start_month: Mapped[date] = mapped_column(Date, nullable=False)
    start_week: Mapped[int] = mapped_column(Integer, nullable=False)
    end_month: Mapped[date] = mapped_column(Date, nullable=False)
    end_week: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_weeks: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class MatrixOverride(Base):
    __tablename__ = "matrix_overrides"
    __table_args__ = (
        Index("ix_matrix_overrides_project_month", "client_id", "project_id", "month"),
        UniqueConstraint(
            "client_id",
            "project_id",
            "month",
            "concept",
            name="uq_matrix_overrides_client_project_month_concept",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False)
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("client_projects.id"), nullable=False
    )
    month: Mapped[date] = mapped_column(Date, nullable=False)
    concept: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    supersedes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class ScheduleReferenceLine(Base):
    """Vertical Gantt marker placed at the end of a (month, week) slot."""

    __tablename__ = "schedule_reference_lines"
    __table_args__ = (
        CheckConstraint("week BETWEEN 1 AND 4", name="ck_schedule_reference_lines_week"),
        Index("ix_schedule_reference_lines_plan_position", "plan_id", "month", "week"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schedule_plans.id", ondelete="CASCADE"), nullable=False
    )
    month: Mapped[date] = mapped_column(Date, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(120), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#EF4444")
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class MatrixExplanation(Base):
    """Ordered free-text note printed under the numeric matrix."""

    __tablename__ = "matrix_explanations"
    __table_args__ = (Index("ix_matrix_explanations_plan_order", "plan_id", "order_index"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schedule_plans.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
