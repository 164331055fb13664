"""Repository helpers for the schedule, budget and override domain."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from cronograma.models.entities import (
    BudgetCategory,
    Client,
    ClientProject,
    MatrixExplanation,
    MatrixOverride,
    ParametricBudgetItem,
    PaymentInstallment,
    PaymentPlan,
    ScheduleActivity,
    ScheduleLine,
    SchedulePlan,
    ScheduleReferenceLine,
)


class ScheduleRepository:
    """Persistence operations used by schedule, matrix and export services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Clients and projects ----------
    def get_client(self, client_id: UUID) -> Client | None:
        return self.db.scalar(select(Client).where(Client.id == client_id))

    def get_project(self, client_id: UUID, project_id: UUID) -> ClientProject | None:
        return self.db.scalar(
            select(ClientProject).where(
                and_(
                    ClientProject.id == project_id,
                    ClientProject.client_id == client_id,
                )
            )
        )

    # ---------- Categories ----------
    def list_active_categories(self, department: str) -> list[BudgetCategory]:
        return self.db.scalars(
            select(BudgetCategory)
            .where(
                and_(
                    BudgetCategory.department == department,
                    BudgetCategory.active.is_(True),
                )
            )
            .order_by(BudgetCategory.code.asc())
        ).all()

    def get_category(self, category_id: UUID) -> BudgetCategory | None:
        return self.db.scalar(select(BudgetCategory).where(BudgetCategory.id == category_id))

    def get_categories_by_ids(self, category_ids: set[UUID]) -> dict[UUID, BudgetCategory]:
        if not category_ids:
            return {}
        rows = self.db.scalars(select(BudgetCategory).where(BudgetCategory.id.in_(category_ids))).all()
        return {row.id: row for row in rows}

    # ---------- Plans ----------
    def get_plan(self, client_id: UUID, project_id: UUID) -> SchedulePlan | None:
        return self.db.scalar(
            select(SchedulePlan).where(
                and_(
                    SchedulePlan.client_id == client_id,
                    SchedulePlan.project_id == project_id,
                )
            )
        )

    def add_plan(self, plan: SchedulePlan) -> SchedulePlan:
        self.db.add(plan)
        self.db.flush()
        return plan

    # ---------- Lines ----------
    def list_lines(self, plan_id: UUID) -> list[ScheduleLine]:
        return self.db.scalars(
            select(ScheduleLine)
            .where(ScheduleLine.plan_id == plan_id)
            .order_by(ScheduleLine.order_index.asc(), ScheduleLine.line_no.asc())
        ).all()

    def get_line(self, line_id: UUID) -> ScheduleLine | None:
        return self.db.scalar(select(ScheduleLine).where(ScheduleLine.id == line_id))

    def get_line_by_no(self, plan_id: UUID, line_no: int) -> ScheduleLine | None:
        return self.db.scalar(
            select(ScheduleLine).where(
                and_(
                    ScheduleLine.plan_id == plan_id,
                    ScheduleLine.line_no == line_no,
                )
            )
        )

    def max_line_no(self, plan_id: UUID) -> int:
        value = self.db.scalar(select(func.max(ScheduleLine.line_no)).where(ScheduleLine.plan_id == plan_id))
        return int(value or 0)

    def max_order_index(self, plan_id: UUID) -> int:
        value = self.db.scalar(select(func.max(ScheduleLine.order_index)).where(ScheduleLine.plan_id == plan_id))
        return int(value) if value is not None else -1

    def add_line(self, line: ScheduleLine) -> ScheduleLine:
        self.db.add(line)
        self.db.flush()
        return line

    def delete_line(self, line: ScheduleLine) -> None:
        self.db.delete(line)
        self.db.flush()

    # ---------- Activities ----------
    def list_activities(self, line_ids: list[UUID]) -> dict[UUID, ScheduleActivity]:
        if not line_ids:
            return {}
        rows = self.db.scalars(select(ScheduleActivity).where(ScheduleActivity.line_id.in_(line_ids))).all()
        return {row.line_id: row for row in rows}

    def get_activity(self, activity_id: UUID) -> ScheduleActivity | None:
        return self.db.scalar(select(ScheduleActivity).where(ScheduleActivity.id == activity_id))

    def get_activity_for_line(self, line_id: UUID) -> ScheduleActivity | None:
        return self.db.scalar(select(ScheduleActivity).where(ScheduleActivity.line_id == line_id))

    def add_activity(self, activity: ScheduleActivity) -> ScheduleActivity:
        self.db.add(activity)
        self.db.flush()
        return activity

    def delete_activity(self, activity: ScheduleActivity) -> None:
        self.db.delete(activity)
        self.db.flush()

    # ---------- Budget and payments ----------
    def aggregate_budget_by_category(self, client_id: UUID, project_id: UUID) -> dict[UUID, Decimal]:
        rows = self.db.execute(
            select(ParametricBudgetItem.category_id, func.coalesce(func.sum(ParametricBudgetItem.amount), 0))
            .where(
                and_(
                    ParametricBudgetItem.client_id == client_id,
                    ParametricBudgetItem.project_id == project_id,
                )
            )
            .group_by(ParametricBudgetItem.category_id)
        ).all()
        return {category_id: Decimal(str(total)) for category_id, total in rows}

    def list_current_installments(self, project_id: UUID) -> list[PaymentInstallment]:
        plan_id = self.db.scalar(
            select(PaymentPlan.id)
            .where(
                and_(
                    PaymentPlan.project_id == project_id,
                    PaymentPlan.is_current.is_(True),
                )
            )
            .order_by(PaymentPlan.created_at.desc())
            .limit(1)
        )
        if plan_id is None:
            return []
        return self.db.scalars(
            select(PaymentInstallment)
            .where(PaymentInstallment.payment_plan_id == plan_id)
            .order_by(PaymentInstallment.due_date.asc(), PaymentInstallment.installment_no.asc())
        ).all()

    # ---------- Matrix overrides ----------
    def list_overrides(self, client_id: UUID, project_id: UUID) -> list[MatrixOverride]:
        return self.db.scalars(
            select(MatrixOverride)
            .where(
                and_(
                    MatrixOverride.client_id == client_id,
                    MatrixOverride.project_id == project_id,
                )
            )
            .order_by(MatrixOverride.month.asc(), MatrixOverride.concept.asc())
        ).all()

    def get_override(self, client_id: UUID, project_id: UUID, month: date, concept: str) -> MatrixOverride | None:
        return self.db.scalar(
            select(MatrixOverride).where(
                and_(
                    MatrixOverride.client_id == client_id,
                    MatrixOverride.project_id == project_id,
                    MatrixOverride.month == month,
                    MatrixOverride.concept == concept,
                )
            )
        )

    def add_override(self, override: MatrixOverride) -> MatrixOverride:
        self.db.add(override)
        self.db.flush()
        return override

    def delete_override(self, override: MatrixOverride) -> None:
        self.db.delete(override)
        self.db.flush()

    # ---------- Reference lines ----------
    def list_reference_lines(self, plan_id: UUID) -> list[ScheduleReferenceLine]:
        return self.db.scalars(
            select(ScheduleReferenceLine)
            .where(ScheduleReferenceLine.plan_id == plan_id)
            .order_by(
                ScheduleReferenceLine.month.asc(),
                ScheduleReferenceLine.week.asc(),
                ScheduleReferenceLine.created_at.asc(),
            )
        ).all()

    def get_reference_line(self, reference_line_id: UUID) -> ScheduleReferenceLine | None:
        return self.db.scalar(select(ScheduleReferenceLine).where(ScheduleReferenceLine.id == reference_line_id))

    def add_reference_line(self, reference_line: ScheduleReferenceLine) -> ScheduleReferenceLine:
        self.db.add(reference_line)
        self.db.flush()
        return reference_line

    def delete_reference_line(self, reference_line: ScheduleReferenceLine) -> None:
        self.db.delete(reference_line)
        self.db.flush()

    # ---------- Matrix explanations ----------
    def list_explanations(self, plan_id: UUID) -> list[MatrixExplanation]:
        return self.db.scalars(
            select(MatrixExplanation)
            .where(MatrixExplanation.plan_id == plan_id)
            .order_by(MatrixExplanation.order_index.asc(), MatrixExplanation.created_at.asc())
        ).all()

    def get_explanation(self, explanation_id: UUID) -> MatrixExplanation | None:
        return self.db.scalar(select(MatrixExplanation).where(MatrixExplanation.id == explanation_id))

    def max_explanation_order(self, plan_id: UUID) -> int:
        value = self.db.scalar(
            select(func.max(MatrixExplanation.order_index)).where(MatrixExplanation.plan_id == plan_id)
        )
        return int(value) if value is not None else -1

    def add_explanation(self, explanation: MatrixExplanation) -> MatrixExplanation:
        self.db.add(explanation)
        self.db.flush()
        return explanation

    def delete_explanation(self, explanation: MatrixExplanation) -> None:
        self.db.delete(explanation)
        self.db.flush()
