"""ORM model package."""

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

__all__ = [
    "BudgetCategory",
    "Client",
    "ClientProject",
    "MatrixExplanation",
    "MatrixOverride",
    "ParametricBudgetItem",
    "PaymentInstallment",
    "PaymentPlan",
    "ScheduleActivity",
    "ScheduleLine",
    "SchedulePlan",
    "ScheduleReferenceLine",
]
