"""Application service for schedule plans, lines, overrides and plan annotations."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cronograma.core.auth import RequestActor
from cronograma.core.config import get_settings
from cronograma.models.entities import (
    BudgetCategory,
    Client,
    ClientProject,
    MatrixExplanation,
    MatrixOverride,
    ScheduleActivity,
    ScheduleLine,
    SchedulePlan,
    ScheduleReferenceLine,
)
from cronograma.repositories.schedule_repository import ScheduleRepository
from cronograma.services.calendar import (
    WEEKS_PER_MONTH,
    MonthWeek,
    add_months,
    month_key,
    month_sequence,
    month_start,
    months_between,
    parse_month,
    validate_month_week_range,
    weeks_between,
    weeks_in_month,
)
from cronograma.services.distribution import (
    BudgetTotals,
    Installment,
    MonthlyCalculations,
    ScheduleLineInput,
    compute_monthly_calculations,
)
from cronograma.services.money import Q2, ZERO
from cronograma.services.overrides import (
    OverrideEntry,
    ResolvedMatrix,
    get_concept,
    parse_override_value,
    resolve_matrix,
)

logger = logging.getLogger(__name__)

BAR_PENDING = "pending"
BAR_IN_PROGRESS = "in_progress"
BAR_COMPLETED = "completed"

DEFAULT_REFERENCE_LABEL = "Línea de Referencia"
DEFAULT_REFERENCE_COLOR = "#EF4444"
HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


@dataclass(slots=True)
class SpanData:
    start_month: str | date
    start_week: int
    end_month: str | date
    end_week: int


@dataclass(slots=True)
class SpanUpdateData:
    start_month: str | date | None = None
    start_week: int | None = None
    end_month: str | date | None = None
    end_week: int | None = None


@dataclass(slots=True)
class PlanUpdateData:
    start_month: str | date | None = None
    months_count: int | None = None


@dataclass(slots=True)
class LineCreateData:
    category_id: UUID
    amount: Decimal
    span: SpanData
    is_discount: bool = False
    label: str | None = None


@dataclass(slots=True)
class LineUpdateData:
    category_id: UUID | None = None
    amount: Decimal | None = None
    is_discount: bool | None = None
    label: str | None = None
    order_index: int | None = None
    span: SpanUpdateData | None = None


@dataclass(slots=True)
class OverrideInput:
    month: str | date
    concept: str
    value: str
    supersedes: bool = True


@dataclass(slots=True)
class ReferenceLineData:
    month: str | date
    week: int
    label: str | None = None
    color: str | None = None


@dataclass(slots=True)
class ReferenceLineUpdateData:
    month: str | date | None = None
    week: int | None = None
    label: str | None = None
    color: str | None = None


@dataclass(slots=True)
class ExplanationData:
    title: str
    description: str = ""


@dataclass(slots=True)
class ExplanationUpdateData:
    title: str | None = None
    description: str | None = None


@dataclass(slots=True)
class ScheduleSnapshot:
    """Everything a reader or renderer needs about one project's schedule."""

    client: Client
    project: ClientProject
    plan: SchedulePlan
    lines: list[ScheduleLine]
    activities: dict[UUID, ScheduleActivity]
    categories: dict[UUID, BudgetCategory]
    months: list[date]
    calculations: MonthlyCalculations
    matrix: ResolvedMatrix
    overrides: list[MatrixOverride] = field(default_factory=list)
    reference_lines: list[ScheduleReferenceLine] = field(default_factory=list)
    explanations: list[MatrixExplanation] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return _q2(sum((line.amount for line in self.lines if not line.is_discount), ZERO))

    @property
    def discounts(self) -> Decimal:
        return _q2(sum((abs(line.amount) for line in self.lines if line.is_discount), ZERO))

    @property
    def total(self) -> Decimal:
        return _q2(self.subtotal - self.discounts)


def _unprocessable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


def _parse_month_field(value: str | date, field_name: str) -> date:
    try:
        return parse_month(value)
    except ValueError as exc:
        raise _unprocessable(f"{field_name}: {exc}") from exc


def _validated_amount(amount: Decimal, is_discount: bool) -> Decimal:
    if not amount.is_finite():
        raise _unprocessable("amount must be a finite number.")
    if amount < ZERO and not is_discount:
        raise _unprocessable("amount must be non-negative unless the line is a discount.")
    return _q2(amount)


def activity_span(activity: ScheduleActivity) -> tuple[MonthWeek, MonthWeek]:
    return (
        MonthWeek(month_start(activity.start_month), activity.start_week),
        MonthWeek(month_start(activity.end_month), activity.end_week),
    )


def _validated_week(week: int) -> int:
    if not 1 <= week <= WEEKS_PER_MONTH:
        raise _unprocessable(f"week must be between 1 and {WEEKS_PER_MONTH}.")
    return week


def _validated_color(color: str) -> str:
    value = color.strip()
    if not HEX_COLOR.match(value):
        raise _unprocessable("color must be a #RRGGBB hex value.")
    return value.upper()


def _required_text(value: str, field_name: str) -> str:
    text = value.strip()
    if not text:
        raise _unprocessable(f"{field_name} must not be blank.")
    return text


def bar_state(start: MonthWeek, end: MonthWeek, reference_month: date) -> tuple[str, float]:
    """Status and elapsed-week progress of a span as of ``reference_month``.

    Weeks of months before the reference month count as elapsed; the
    reference month itself is still in progress.
    """

    if end.month < reference_month:
        return BAR_COMPLETED, 100.0
    if start.month >= reference_month:
        return (BAR_IN_PROGRESS if start.month == reference_month else BAR_PENDING), 0.0
    elapsed = sum(
        weeks_in_month(start, end, month)
        for month in month_sequence(start.month, months_between(start.month, reference_month))
    )
    return BAR_IN_PROGRESS, round(elapsed / weeks_between(start, end) * 100, 1)


class ScheduleService:
    """Service implementing schedule store, calculation and override rules."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = ScheduleRepository(db)
        self.settings = get_settings()

    # ---------- Validation helpers ----------
    @staticmethod
    def _validated_span(data: SpanData) -> tuple[MonthWeek, MonthWeek]:
        start = MonthWeek(_parse_month_field(data.start_month, "start_month"), data.start_week)
        end = MonthWeek(_parse_month_field(data.end_month, "end_month"), data.end_week)
        result = validate_month_week_range(start, end)
        if not result.is_valid:
            raise _unprocessable(result.reason or "Invalid month/week range.")
        return start, end

    def _project_or_404(self, client_id: UUID, project_id: UUID) -> tuple[Client, ClientProject]:
        client = self.repo.get_client(client_id)
        if client is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found.")
        project = self.repo.get_project(client_id, project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client project not found.")
        return client, project

    def _active_category(self, category_id: UUID) -> BudgetCategory:
        category = self.repo.get_category(category_id)
        if category is None or not category.active:
            raise _unprocessable("category_id must reference an active budget category.")
        return category

    def _line_in_plan(self, plan: SchedulePlan, line_id: UUID) -> ScheduleLine:
        line = self.repo.get_line(line_id)
        if line is None or line.plan_id != plan.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule line not found.")
        return line

    def _activity_in_plan(self, plan: SchedulePlan, activity_id: UUID) -> ScheduleActivity:
        activity = self.repo.get_activity(activity_id)
        if activity is not None:
            line = self.repo.get_line(activity.line_id)
            if line is not None and line.plan_id == plan.id:
                return activity
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule activity not found.")

    # ---------- Serializers ----------
    @staticmethod
    def serialize_plan(plan: SchedulePlan) -> dict[str, object]:
        months = month_sequence(plan.start_month, plan.months_count)
        return {
            "id": str(plan.id),
            "client_id": str(plan.client_id),
            "project_id": str(plan.project_id),
            "start_month": month_key(plan.start_month),
            "months_count": plan.months_count,
            "months": [month_key(month) for month in months],
        }

    @staticmethod
    def serialize_category(category: BudgetCategory) -> dict[str, object]:
        return {
            "id": str(category.id),
            "code": category.code,
            "name": category.name,
            "department": category.department,
            "active": category.active,
        }

    @staticmethod
    def serialize_activity(activity: ScheduleActivity) -> dict[str, object]:
        return {
            "id": str(activity.id),
            "line_id": str(activity.line_id),
            "start_month": month_key(activity.start_month),
            "start_week": activity.start_week,
            "end_month": month_key(activity.end_month),
            "end_week": activity.end_week,
            "duration_weeks": activity.duration_weeks,
        }

    @classmethod
    def serialize_line(
        cls,
        line: ScheduleLine,
        activity: ScheduleActivity | None,
        category: BudgetCategory | None,
    ) -> dict[str, object]:
        return {
            "id": str(line.id),
            "plan_id": str(line.plan_id),
            "line_no": line.line_no,
            "order_index": line.order_index,
            "category_id": str(line.category_id),
            "category_code": category.code if category else None,
            "category_name": category.name if category else None,
            "label": line.label,
            "is_discount": line.is_discount,
            "amount": str(line.amount),
            "activity": cls.serialize_activity(activity) if activity else None,
        }

    @staticmethod
    def serialize_override(override: MatrixOverride) -> dict[str, object]:
        return {
            "id": str(override.id),
            "month": month_key(override.month),
            "concept": override.concept,
            "value": override.value,
            "supersedes": override.supersedes,
            "updated_by": override.updated_by,
        }

    @staticmethod
    def serialize_reference_line(reference_line: ScheduleReferenceLine) -> dict[str, object]:
        return {
            "id": str(reference_line.id),
            "plan_id": str(reference_line.plan_id),
            "month": month_key(reference_line.month),
            "week": reference_line.week,
            "label": reference_line.label,
            "color": reference_line.color,
            "updated_by": reference_line.updated_by,
        }

    @staticmethod
    def serialize_explanation(explanation: MatrixExplanation) -> dict[str, object]:
        return {
            "id": str(explanation.id),
            "plan_id": str(explanation.plan_id),
            "title": explanation.title,
            "description": explanation.description,
            "order_index": explanation.order_index,
        }

    @staticmethod
    def serialize_calculations(calculations: MonthlyCalculations) -> dict[str, object]:
        return {
            "months": [month_key(month) for month in calculations.months],
            "total_budget": str(calculations.total_budget),
            "series": [
                {
                    "month": month_key(month),
                    "expenditure": str(calculations.expenditure[month]),
                    "partial_progress": round(calculations.partial_progress[month], 4),
                    "cumulative_progress": round(calculations.cumulative_progress[month], 4),
                    "disbursements": str(calculations.disbursements[month]),
                    "cumulative_investment": round(calculations.cumulative_investment[month], 4),
                    "payment_dates": [value.isoformat() for value in calculations.payment_dates[month]],
                }
                for month in calculations.months
            ],
            "categories": [
                {
                    "category_id": str(category.category_id),
                    "category_code": category.category_code,
                    "category_label": category.category_label,
                    "scheduled_amount": str(category.scheduled_amount),
                    "has_budget_entry": category.has_budget_entry,
                    "by_month": {month_key(month): str(amount) for month, amount in category.by_month.items()},
                }
                for category in calculations.categories
            ],
            "warnings": [
                {
                    "code": warning.code,
                    "message": warning.message,
                    "line_id": str(warning.line_id) if warning.line_id else None,
                    "category_id": str(warning.category_id) if warning.category_id else None,
                }
                for warning in calculations.warnings
            ],
        }

    @staticmethod
    def serialize_matrix(matrix: ResolvedMatrix) -> dict[str, object]:
        return {
            "months": [month_key(month) for month in matrix.months],
            "has_overrides": matrix.has_overrides,
            "rows": [
                {
                    "concept": row.concept.key,
                    "label": row.concept.label,
                    "kind": row.concept.kind.value,
                    "total": row.total.serialize() if row.total is not None else None,
                    "total_text": row.total_text,
                    "cells": [
                        {
                            "month": month_key(cell.month),
                            "computed": cell.computed.serialize() if cell.computed is not None else None,
                            "value": cell.displayed.serialize() if cell.displayed is not None else None,
                            "text": cell.text,
                            "overridden": cell.overridden,
                        }
                        for cell in row.cells
                    ],
                }
                for row in matrix.rows
            ],
        }

    # ---------- Categories ----------
    def list_categories(self) -> list[BudgetCategory]:
        return self.repo.list_active_categories(self.settings.construction_department)

    # ---------- Plan ----------
    def get_or_create_plan(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor | None = None,
    ) -> SchedulePlan:
        self._project_or_404(client_id, project_id)
        plan = self.repo.get_plan(client_id, project_id)
        if plan is not None:
            return plan

        now = datetime.utcnow()
        try:
            plan = self.repo.add_plan(
                SchedulePlan(
                    client_id=client_id,
                    project_id=project_id,
                    start_month=month_start(reference_date),
                    months_count=self.settings.default_plan_months,
                    created_by=actor.actor_id if actor else None,
                    created_at=now,
                    updated_at=now,
                )
            )
            self.db.commit()
        except IntegrityError:
            # Lost a creation race; the other writer's plan is the plan.
            self.db.rollback()
            plan = self.repo.get_plan(client_id, project_id)
            if plan is None:
                raise
            return plan

        logger.info("Created schedule plan %s for project %s", plan.id, project_id)
        self.db.refresh(plan)
        return plan

    def update_plan(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        data: PlanUpdateData,
    ) -> SchedulePlan:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        start_month = plan.start_month
        if data.start_month is not None:
            start_month = _parse_month_field(data.start_month, "start_month")
        if data.months_count is not None and data.months_count < 1:
            raise _unprocessable("months_count must be at least 1.")

        plan.start_month = start_month
        if data.months_count is not None:
            plan.months_count = data.months_count
        plan.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(plan)
        return plan

    # ---------- Lines ----------
    def list_lines(self, plan: SchedulePlan) -> list[ScheduleLine]:
        return self.repo.list_lines(plan.id)

    def create_line(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        data: LineCreateData,
    ) -> tuple[ScheduleLine, ScheduleActivity]:
        plan = self.get_or_create_plan(
            client_id=client_id, project_id=project_id, reference_date=reference_date, actor=actor
        )
        self._active_category(data.category_id)
        start, end = self._validated_span(data.span)
        amount = _validated_amount(data.amount, data.is_discount)

        now = datetime.utcnow()
        line_no = self.repo.max_line_no(plan.id) + 1
        order_index = self.repo.max_order_index(plan.id) + 1
        try:
            line = self.repo.add_line(
                ScheduleLine(
                    plan_id=plan.id,
                    line_no=line_no,
                    category_id=data.category_id,
                    label=data.label.strip() if data.label else None,
                    is_discount=data.is_discount,
                    amount=amount,
                    order_index=order_index,
                    created_by=actor.actor_id,
                    updated_by=actor.actor_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Schedule line number already exists in this plan.",
            ) from exc

        try:
            with self.db.begin_nested():
                activity = self.repo.add_activity(
                    ScheduleActivity(
                        line_id=line.id,
                        start_month=start.month,
                        start_week=start.week,
                        end_month=end.month,
                        end_week=end.week,
                        duration_weeks=weeks_between(start, end),
                        created_at=now,
                        updated_at=now,
                    )
                )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            self._remove_orphan_line(plan.id, line_no)
            logger.error(
                "Activity insert failed for line_no=%s in plan %s; line creation rolled back.",
                line_no,
                plan.id,
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=(
                    f"Could not save the activity for line {line_no}; "
                    f"the line was removed and nothing was saved ({exc.__class__.__name__})."
                ),
            ) from exc

        self.db.refresh(line)
        self.db.refresh(activity)
        return line, activity

    def _remove_orphan_line(self, plan_id: UUID, line_no: int) -> None:
        """Compensating delete for a line whose activity could not be stored."""

        orphan = self.repo.get_line_by_no(plan_id, line_no)
        if orphan is None:
            return
        self.repo.delete_line(orphan)
        self.db.commit()
        logger.warning("Removed orphan schedule line line_no=%s from plan %s", line_no, plan_id)

    def update_line(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        line_id: UUID,
        data: LineUpdateData,
    ) -> tuple[ScheduleLine, ScheduleActivity | None]:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        line = self._line_in_plan(plan, line_id)
        activity = self.repo.get_activity_for_line(line.id)

        # Validate everything before touching the row.
        if data.category_id is not None:
            self._active_category(data.category_id)
        is_discount = data.is_discount if data.is_discount is not None else line.is_discount
        amount = _validated_amount(data.amount if data.amount is not None else line.amount, is_discount)

        new_span: tuple[MonthWeek, MonthWeek] | None = None
        if data.span is not None:
            if activity is None:
                if None in (data.span.start_month, data.span.start_week, data.span.end_month, data.span.end_week):
                    raise _unprocessable("A complete span is required when the line has no activity.")
                new_span = self._validated_span(
                    SpanData(
                        start_month=data.span.start_month,
                        start_week=data.span.start_week,
                        end_month=data.span.end_month,
                        end_week=data.span.end_week,
                    )
                )
            else:
                new_span = self._merged_span(activity, data.span)

        if data.category_id is not None:
            line.category_id = data.category_id
        line.is_discount = is_discount
        line.amount = amount
        if data.label is not None:
            line.label = data.label.strip() or None
        if data.order_index is not None:
            line.order_index = data.order_index

        now = datetime.utcnow()
        if new_span is not None:
            start, end = new_span
            if activity is None:
                activity = self.repo.add_activity(
                    ScheduleActivity(
                        line_id=line.id,
                        start_month=start.month,
                        start_week=start.week,
                        end_month=end.month,
                        end_week=end.week,
                        duration_weeks=weeks_between(start, end),
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                self._store_span(activity, start, end)

        line.updated_by = actor.actor_id
        line.updated_at = now
        self.db.commit()
        self.db.refresh(line)
        if activity is not None:
            self.db.refresh(activity)
        return line, activity

    def delete_line(self, *, client_id: UUID, project_id: UUID, reference_date: date, line_id: UUID) -> None:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        line = self._line_in_plan(plan, line_id)
        activity = self.repo.get_activity_for_line(line.id)
        if activity is not None:
            self.repo.delete_activity(activity)
        self.repo.delete_line(line)
        self.db.commit()
        logger.info("Deleted schedule line %s (line_no=%s) from plan %s", line_id, line.line_no, plan.id)

    # ---------- Activities ----------
    def _merged_span(self, activity: ScheduleActivity, data: SpanUpdateData) -> tuple[MonthWeek, MonthWeek]:
        current_start, current_end = activity_span(activity)
        return self._validated_span(
            SpanData(
                start_month=data.start_month if data.start_month is not None else current_start.month,
                start_week=data.start_week if data.start_week is not None else current_start.week,
                end_month=data.end_month if data.end_month is not None else current_end.month,
                end_week=data.end_week if data.end_week is not None else current_end.week,
            )
        )

    @staticmethod
    def _store_span(activity: ScheduleActivity, start: MonthWeek, end: MonthWeek) -> None:
        activity.start_month = start.month
        activity.start_week = start.week
        activity.end_month = end.month
        activity.end_week = end.week
        activity.duration_weeks = weeks_between(start, end)
        activity.updated_at = datetime.utcnow()

    def create_activity(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        line_id: UUID,
        data: SpanData,
    ) -> ScheduleActivity:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        line = self._line_in_plan(plan, line_id)
        if self.repo.get_activity_for_line(line.id) is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Schedule line already has an activity.",
            )
        start, end = self._validated_span(data)

        now = datetime.utcnow()
        try:
            activity = self.repo.add_activity(
                ScheduleActivity(
                    line_id=line.id,
                    start_month=start.month,
                    start_week=start.week,
                    end_month=end.month,
                    end_week=end.week,
                    duration_weeks=weeks_between(start, end),
                    created_at=now,
                    updated_at=now,
                )
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Schedule line already has an activity.",
            ) from exc

        self.db.refresh(activity)
        return activity

    def update_activity(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        activity_id: UUID,
        data: SpanUpdateData,
    ) -> ScheduleActivity:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        activity = self._activity_in_plan(plan, activity_id)
        start, end = self._merged_span(activity, data)
        self._store_span(activity, start, end)
        self.db.commit()
        self.db.refresh(activity)
        return activity

    def delete_activity(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        activity_id: UUID,
    ) -> None:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        activity = self._activity_in_plan(plan, activity_id)
        self.repo.delete_activity(activity)
        self.db.commit()

    # ---------- Reads ----------
    @staticmethod
    def build_bars(
        plan: SchedulePlan,
        lines: list[ScheduleLine],
        activities: dict[UUID, ScheduleActivity],
        categories: dict[UUID, BudgetCategory],
        reference_date: date,
    ) -> list[dict[str, object]]:
        """Positioned Gantt bars relative to the plan's first month."""

        horizon_end = add_months(plan.start_month, plan.months_count - 1)
        reference_month = month_start(reference_date)
        bars: list[dict[str, object]] = []
        for line in lines:
            activity = activities.get(line.id)
            if activity is None:
                continue
            category = categories.get(line.category_id)
            start, end = activity_span(activity)
            state, progress = bar_state(start, end, reference_month)
            bars.append(
                {
                    "line_id": str(line.id),
                    "activity_id": str(activity.id),
                    "category_id": str(line.category_id),
                    "category_code": category.code if category else None,
                    "category_name": category.name if category else None,
                    "is_discount": line.is_discount,
                    "month_index": months_between(plan.start_month, activity.start_month),
                    "start_week": activity.start_week,
                    "duration_weeks": activity.duration_weeks,
                    "status": state,
                    "progress": progress,
                    "visible": activity.start_month <= horizon_end and activity.end_month >= plan.start_month,
                }
            )
        return bars

    def read_schedule(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor | None = None,
    ) -> dict[str, object]:
        plan = self.get_or_create_plan(
            client_id=client_id, project_id=project_id, reference_date=reference_date, actor=actor
        )
        lines = self.repo.list_lines(plan.id)
        activities = self.repo.list_activities([line.id for line in lines])
        categories = self.repo.get_categories_by_ids({line.category_id for line in lines})
        return {
            "plan": self.serialize_plan(plan),
            "lines": [
                self.serialize_line(line, activities.get(line.id), categories.get(line.category_id)) for line in lines
            ],
            "bars": self.build_bars(plan, lines, activities, categories, reference_date),
            "reference_lines": [
                self.serialize_reference_line(row) for row in self.repo.list_reference_lines(plan.id)
            ],
        }

    def build_snapshot(self, *, client_id: UUID, project_id: UUID, reference_date: date) -> ScheduleSnapshot:
        client, project = self._project_or_404(client_id, project_id)
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        months = month_sequence(plan.start_month, plan.months_count)

        lines = self.repo.list_lines(plan.id)
        activities = self.repo.list_activities([line.id for line in lines])
        categories = self.repo.get_categories_by_ids({line.category_id for line in lines})

        line_inputs: list[ScheduleLineInput] = []
        for line in lines:
            activity = activities.get(line.id)
            span = activity_span(activity) if activity else (None, None)
            category = categories.get(line.category_id)
            line_inputs.append(
                ScheduleLineInput(
                    line_id=line.id,
                    category_id=line.category_id,
                    category_code=category.code if category else "",
                    category_label=category.name if category else "",
                    amount=line.amount,
                    is_discount=line.is_discount,
                    start=span[0],
                    end=span[1],
                )
            )

        by_category = self.repo.aggregate_budget_by_category(client_id, project_id)
        budget = BudgetTotals(by_category=by_category, grand_total=sum(by_category.values(), ZERO))
        installments = [
            Installment(due_date=row.due_date, amount=row.amount)
            for row in self.repo.list_current_installments(project_id)
        ]
        calculations = compute_monthly_calculations(
            lines=line_inputs,
            budget=budget,
            installments=installments,
            months=months,
        )

        overrides = self.repo.list_overrides(client_id, project_id)
        entries: list[OverrideEntry] = []
        for row in overrides:
            try:
                value = parse_override_value(row.concept, row.value)
            except ValueError:
                logger.warning(
                    "Ignoring unreadable override %s for %s/%s: %r",
                    row.id,
                    month_key(row.month),
                    row.concept,
                    row.value,
                )
                continue
            entries.append(OverrideEntry(month=row.month, concept=row.concept, value=value, supersedes=row.supersedes))

        return ScheduleSnapshot(
            client=client,
            project=project,
            plan=plan,
            lines=lines,
            activities=activities,
            categories=categories,
            months=months,
            calculations=calculations,
            matrix=resolve_matrix(calculations, entries),
            overrides=overrides,
            reference_lines=self.repo.list_reference_lines(plan.id),
            explanations=self.repo.list_explanations(plan.id),
        )

    def read_calculations(self, *, client_id: UUID, project_id: UUID, reference_date: date) -> dict[str, object]:
        snapshot = self.build_snapshot(client_id=client_id, project_id=project_id, reference_date=reference_date)
        return self.serialize_calculations(snapshot.calculations)

    def read_matrix(self, *, client_id: UUID, project_id: UUID, reference_date: date) -> dict[str, object]:
        snapshot = self.build_snapshot(client_id=client_id, project_id=project_id, reference_date=reference_date)
        return {
            **self.serialize_matrix(snapshot.matrix),
            "overrides": [self.serialize_override(row) for row in snapshot.overrides],
            "explanations": [self.serialize_explanation(row) for row in snapshot.explanations],
        }

    # ---------- Overrides ----------
    def save_overrides(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        entries: list[OverrideInput],
    ) -> list[MatrixOverride]:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        horizon = set(month_sequence(plan.start_month, plan.months_count))

        normalized: list[tuple[date, str, str, bool]] = []
        seen_keys: set[tuple[date, str]] = set()
        for payload in entries:
            month = _parse_month_field(payload.month, "month")
            if month not in horizon:
                raise _unprocessable(f"Override month {month_key(month)} is outside the plan horizon.")
            try:
                concept = get_concept(payload.concept)
                value = parse_override_value(concept.key, payload.value)
            except ValueError as exc:
                raise _unprocessable(str(exc)) from exc

            key = (month, concept.key)
            if key in seen_keys:
                raise _unprocessable("Duplicate override key in bulk payload.")
            seen_keys.add(key)
            normalized.append((month, concept.key, value.serialize(), payload.supersedes))

        saved: list[MatrixOverride] = []
        now = datetime.utcnow()
        try:
            with self.db.begin_nested():
                for month, concept_key, value, supersedes in normalized:
                    row = self.repo.get_override(client_id, project_id, month, concept_key)
                    if row is None:
                        row = self.repo.add_override(
                            MatrixOverride(
                                client_id=client_id,
                                project_id=project_id,
                                month=month,
                                concept=concept_key,
                                value=value,
                                supersedes=supersedes,
                                created_by=actor.actor_id,
                                updated_by=actor.actor_id,
                                created_at=now,
                                updated_at=now,
                            )
                        )
                    else:
                        row.value = value
                        row.supersedes = supersedes
                        row.updated_by = actor.actor_id
                        row.updated_at = now
                    saved.append(row)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Bulk override save violated override uniqueness constraints.",
            ) from exc

        logger.info("Saved %d matrix overrides for project %s by %s", len(saved), project_id, actor.actor_id)
        return saved

    def delete_override(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        month: str | date,
        concept: str,
    ) -> None:
        self._project_or_404(client_id, project_id)
        target_month = _parse_month_field(month, "month")
        row = self.repo.get_override(client_id, project_id, target_month, concept.strip())
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Matrix override not found.")
        self.repo.delete_override(row)
        self.db.commit()
        logger.info("Deleted matrix override %s/%s for project %s", month_key(target_month), concept, project_id)

    # ---------- Reference lines ----------
    def _reference_line_in_plan(self, plan: SchedulePlan, reference_line_id: UUID) -> ScheduleReferenceLine:
        row = self.repo.get_reference_line(reference_line_id)
        if row is None or row.plan_id != plan.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reference line not found.")
        return row

    def list_reference_lines(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
    ) -> list[ScheduleReferenceLine]:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        return self.repo.list_reference_lines(plan.id)

    def create_reference_line(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        data: ReferenceLineData,
    ) -> ScheduleReferenceLine:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        month = _parse_month_field(data.month, "month")
        week = _validated_week(data.week)
        label = _required_text(data.label, "label") if data.label is not None else DEFAULT_REFERENCE_LABEL
        color = _validated_color(data.color) if data.color is not None else DEFAULT_REFERENCE_COLOR

        now = datetime.utcnow()
        row = self.repo.add_reference_line(
            ScheduleReferenceLine(
                plan_id=plan.id,
                month=month,
                week=week,
                label=label,
                color=color,
                created_by=actor.actor_id,
                updated_by=actor.actor_id,
                created_at=now,
                updated_at=now,
            )
        )
        self.db.commit()
        self.db.refresh(row)
        logger.info("Added reference line %s at %s W%d to plan %s", row.id, month_key(month), week, plan.id)
        return row

    def update_reference_line(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        reference_line_id: UUID,
        data: ReferenceLineUpdateData,
    ) -> ScheduleReferenceLine:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        row = self._reference_line_in_plan(plan, reference_line_id)
        month = _parse_month_field(data.month, "month") if data.month is not None else row.month
        week = _validated_week(data.week) if data.week is not None else row.week
        label = _required_text(data.label, "label") if data.label is not None else row.label
        color = _validated_color(data.color) if data.color is not None else row.color

        row.month = month
        row.week = week
        row.label = label
        row.color = color
        row.updated_by = actor.actor_id
        row.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete_reference_line(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        reference_line_id: UUID,
    ) -> None:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        row = self._reference_line_in_plan(plan, reference_line_id)
        self.repo.delete_reference_line(row)
        self.db.commit()

    # ---------- Matrix explanations ----------
    def _explanation_in_plan(self, plan: SchedulePlan, explanation_id: UUID) -> MatrixExplanation:
        row = self.repo.get_explanation(explanation_id)
        if row is None or row.plan_id != plan.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Matrix explanation not found.")
        return row

    def list_explanations(self, *, client_id: UUID, project_id: UUID, reference_date: date) -> list[MatrixExplanation]:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        return self.repo.list_explanations(plan.id)

    def create_explanation(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        data: ExplanationData,
    ) -> MatrixExplanation:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        title = _required_text(data.title, "title")

        now = datetime.utcnow()
        row = self.repo.add_explanation(
            MatrixExplanation(
                plan_id=plan.id,
                title=title,
                description=data.description.strip(),
                order_index=self.repo.max_explanation_order(plan.id) + 1,
                created_by=actor.actor_id,
                updated_by=actor.actor_id,
                created_at=now,
                updated_at=now,
            )
        )
        self.db.commit()
        self.db.refresh(row)
        return row

    def update_explanation(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        explanation_id: UUID,
        data: ExplanationUpdateData,
    ) -> MatrixExplanation:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        row = self._explanation_in_plan(plan, explanation_id)
        title = _required_text(data.title, "title") if data.title is not None else row.title

        row.title = title
        if data.description is not None:
            row.description = data.description.strip()
        row.updated_by = actor.actor_id
        row.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(row)
        return row

    def reorder_explanations(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        actor: RequestActor,
        ordered_ids: list[UUID],
    ) -> list[MatrixExplanation]:
        """Rewrite ``order_index`` so explanations follow ``ordered_ids``."""

        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        rows = {row.id: row for row in self.repo.list_explanations(plan.id)}
        if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(rows):
            raise _unprocessable("ids must list every explanation of the plan exactly once.")

        now = datetime.utcnow()
        for position, explanation_id in enumerate(ordered_ids):
            row = rows[explanation_id]
            row.order_index = position
            row.updated_by = actor.actor_id
            row.updated_at = now
        self.db.commit()
        return self.repo.list_explanations(plan.id)

    def delete_explanation(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        explanation_id: UUID,
    ) -> None:
        plan = self.get_or_create_plan(client_id=client_id, project_id=project_id, reference_date=reference_date)
        row = self._explanation_in_plan(plan, explanation_id)
        self.repo.delete_explanation(row)
        self.db.commit()
