"""Monthly expenditure, progress and disbursement distribution.

Pure functions over a schedule snapshot; nothing here touches the database
and nothing computed here is ever persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from cronograma.services.calendar import (
    MonthWeek,
    month_key,
    month_sequence,
    month_start,
    months_between,
    weeks_between,
    weeks_in_month,
)
from cronograma.services.money import Q2, ZERO, safe_percent

logger = logging.getLogger(__name__)

PROGRESS_CAP = 100.0
PROGRESS_EPSILON = 1e-6


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2)


@dataclass(slots=True)
class ScheduleLineInput:
    line_id: UUID
    category_id: UUID
    category_code: str
    category_label: str
    amount: Decimal
    is_discount: bool
    start: MonthWeek | None
    end: MonthWeek | None

    @property
    def duration_weeks(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return weeks_between(self.start, self.end)


@dataclass(slots=True)
class BudgetTotals:
    by_category: dict[UUID, Decimal]
    grand_total: Decimal


@dataclass(slots=True)
class Installment:
    due_date: date
    amount: Decimal


@dataclass(slots=True)
class DataQualityWarning:
    code: str
    message: str
    line_id: UUID | None = None
    category_id: UUID | None = None


@dataclass(slots=True)
class CategoryDistribution:
    category_id: UUID
    category_code: str
    category_label: str
    scheduled_amount: Decimal
    has_budget_entry: bool
    by_month: dict[date, Decimal]


@dataclass(slots=True)
class MonthlyCalculations:
    months: list[date]
    expenditure: dict[date, Decimal]
    partial_progress: dict[date, float]
    cumulative_progress: dict[date, float]
    disbursements: dict[date, Decimal]
    cumulative_investment: dict[date, float]
    payment_dates: dict[date, list[date]]
    total_budget: Decimal
    categories: list[CategoryDistribution] = field(default_factory=list)
    warnings: list[DataQualityWarning] = field(default_factory=list)


def distribute_line(line: ScheduleLineInput, months: list[date]) -> dict[date, Decimal]:
    """Prorate a line amount across ``months`` by covered week slots.

    Shares are quantized over the whole span and the span's last month takes
    the rounding remainder, so a fully visible line sums to its amount.
    Shares of months outside ``months`` are dropped.
    """

    distribution = {month: ZERO for month in months}
    if line.start is None or line.end is None or line.end < line.start:
        return distribution

    amount = _q2(line.amount)
    duration = Decimal(line.duration_weeks)
    allocated = ZERO
    span = month_sequence(line.start.month, months_between(line.start.month, line.end.month) + 1)
    for month in span:
        if month == line.end.month:
            share = amount - allocated
        else:
            share = _q2(amount * Decimal(weeks_in_month(line.start, line.end, month)) / duration)
        allocated += share
        if month in distribution:
            distribution[month] = share
    return distribution


def distribute_expenditure(
    lines: list[ScheduleLineInput],
    budget: BudgetTotals,
    months: list[date],
) -> tuple[dict[date, Decimal], list[CategoryDistribution], list[DataQualityWarning]]:
    expenditure = {month: ZERO for month in months}
    categories: dict[UUID, CategoryDistribution] = {}
    warnings: list[DataQualityWarning] = []

    for line in lines:
        if line.is_discount:
            continue

        has_budget = line.category_id in budget.by_category
        category = categories.get(line.category_id)
        if category is None:
            category = CategoryDistribution(
                category_id=line.category_id,
                category_code=line.category_code,
                category_label=line.category_label,
                scheduled_amount=ZERO,
                has_budget_entry=has_budget,
                by_month={month: ZERO for month in months},
            )
            categories[line.category_id] = category
        category.scheduled_amount += line.amount

        if not has_budget:
            warning = DataQualityWarning(
                code="category_without_budget",
                message=(
                    f"Category {line.category_code} ({line.category_label}) has no parametric budget entry; "
                    "its line contributes zero to the distribution."
                ),
                line_id=line.line_id,
                category_id=line.category_id,
            )
            logger.warning("%s line_id=%s", warning.message, line.line_id)
            warnings.append(warning)
            continue

        if line.start is None or line.end is None:
            warning = DataQualityWarning(
                code="line_without_span",
                message=f"Line for category {line.category_code} has no timeline span.",
                line_id=line.line_id,
                category_id=line.category_id,
            )
            logger.warning("%s line_id=%s", warning.message, line.line_id)
            warnings.append(warning)
            continue

        for month, amount in distribute_line(line, months).items():
            if amount:
                expenditure[month] += amount
                category.by_month[month] += amount

    return expenditure, list(categories.values()), warnings


def progress_series(
    expenditure: dict[date, Decimal],
    total_budget: Decimal,
    months: list[date],
) -> tuple[dict[date, float], dict[date, float], list[DataQualityWarning]]:
    partial: dict[date, float] = {}
    cumulative: dict[date, float] = {}
    warnings: list[DataQualityWarning] = []

    spent = ZERO
    for month in months:
        amount = expenditure.get(month, ZERO)
        partial[month] = safe_percent(amount, total_budget)
        spent += amount
        running = safe_percent(spent, total_budget)
        if running > PROGRESS_CAP + PROGRESS_EPSILON and not warnings:
            warning = DataQualityWarning(
                code="progress_exceeds_budget",
                message=(
                    f"Scheduled expenditure exceeds the parametric budget by {month_key(month)}; "
                    "cumulative progress is capped at 100%."
                ),
            )
            logger.warning("%s", warning.message)
            warnings.append(warning)
        cumulative[month] = min(running, PROGRESS_CAP)
    return partial, cumulative, warnings


def bucket_installments(
    installments: list[Installment],
    months: list[date],
) -> tuple[dict[date, Decimal], dict[date, list[date]]]:
    disbursements = {month: ZERO for month in months}
    payment_dates: dict[date, list[date]] = {month: [] for month in months}
    for installment in installments:
        bucket = month_start(installment.due_date)
        if bucket not in disbursements:
            logger.debug("Installment due %s falls outside the plan horizon.", installment.due_date)
            continue
        disbursements[bucket] = _q2(disbursements[bucket] + installment.amount)
        payment_dates[bucket].append(installment.due_date)
    for dates in payment_dates.values():
        dates.sort()
    return disbursements, payment_dates


def investment_series(
    disbursements: dict[date, Decimal],
    total_budget: Decimal,
    months: list[date],
) -> dict[date, float]:
    cumulative: dict[date, float] = {}
    running = ZERO
    for month in months:
        running += disbursements.get(month, ZERO)
        cumulative[month] = safe_percent(running, total_budget)
    return cumulative


def compute_monthly_calculations(
    *,
    lines: list[ScheduleLineInput],
    budget: BudgetTotals,
    installments: list[Installment],
    months: list[date],
) -> MonthlyCalculations:
    """Derive the five monthly series for a plan horizon."""

    expenditure, categories, warnings = distribute_expenditure(lines, budget, months)
    partial, cumulative, progress_warnings = progress_series(expenditure, budget.grand_total, months)
    disbursements, payment_dates = bucket_installments(installments, months)

    return MonthlyCalculations(
        months=list(months),
        expenditure=expenditure,
        partial_progress=partial,
        cumulative_progress=cumulative,
        disbursements=disbursements,
        cumulative_investment=investment_series(disbursements, budget.grand_total, months),
        payment_dates=payment_dates,
        total_budget=_q2(budget.grand_total),
        categories=categories,
        warnings=warnings + progress_warnings,
    )
