"""Matrix concepts, typed override values and override resolution."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from cronograma.services.distribution import MonthlyCalculations
from cronograma.services.money import ZERO, format_money, format_percent, to_number, to_percent

OVERRIDE_MARKER = "*"


class ConceptKind(str, enum.Enum):
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    DATE = "date"


class TotalRule(str, enum.Enum):
    SUM = "sum"
    LAST = "last"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class ConceptDefinition:
    key: str
    label: str
    kind: ConceptKind
    total_rule: TotalRule


CONCEPTS: tuple[ConceptDefinition, ...] = (
    ConceptDefinition("gasto_obra", "Gasto en Obra", ConceptKind.CURRENCY, TotalRule.SUM),
    ConceptDefinition("avance_parcial", "% Avance Parcial", ConceptKind.PERCENTAGE, TotalRule.SUM),
    ConceptDefinition("avance_acumulado", "% Avance Acumulado", ConceptKind.PERCENTAGE, TotalRule.LAST),
    ConceptDefinition("ministraciones", "Ministraciones", ConceptKind.CURRENCY, TotalRule.SUM),
    ConceptDefinition("inversion_acumulada", "% Inversión Acumulada", ConceptKind.PERCENTAGE, TotalRule.LAST),
    ConceptDefinition("fecha_pago", "Fecha Tentativa de Pago", ConceptKind.DATE, TotalRule.NONE),
)
CONCEPTS_BY_KEY: dict[str, ConceptDefinition] = {concept.key: concept for concept in CONCEPTS}


@dataclass(frozen=True, slots=True)
class CurrencyValue:
    amount: Decimal

    def display(self) -> str:
        return format_money(self.amount)

    def serialize(self) -> str:
        return str(self.amount)


@dataclass(frozen=True, slots=True)
class PercentageValue:
    percent: float

    def display(self) -> str:
        return format_percent(self.percent)

    def serialize(self) -> str:
        return repr(self.percent)


@dataclass(frozen=True, slots=True)
class DateValue:
    value: date

    def display(self) -> str:
        return self.value.strftime("%d/%m/%Y")

    def serialize(self) -> str:
        return self.value.isoformat()


OverrideValue = CurrencyValue | PercentageValue | DateValue


def get_concept(key: str) -> ConceptDefinition:
    concept = CONCEPTS_BY_KEY.get(key.strip())
    if concept is None:
        raise ValueError(f"Unknown matrix concept '{key}'. Expected one of: {', '.join(CONCEPTS_BY_KEY)}.")
    return concept


def _parse_date(raw: str) -> date:
    text = raw.strip()
    for pattern in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date value '{raw}'; expected YYYY-MM-DD or DD/MM/YYYY.")


def parse_override_value(concept_key: str, raw: str) -> OverrideValue:
    """Parse a stored or user-entered string into the concept's value type."""

    concept = get_concept(concept_key)
    if concept.kind is ConceptKind.CURRENCY:
        return CurrencyValue(to_number(raw))
    if concept.kind is ConceptKind.PERCENTAGE:
        return PercentageValue(to_percent(raw))
    return DateValue(_parse_date(raw))


@dataclass(slots=True)
class OverrideEntry:
    month: date
    concept: str
    value: OverrideValue
    supersedes: bool = True


@dataclass(slots=True)
class ResolvedCell:
    month: date
    computed: OverrideValue | None
    displayed: OverrideValue | None
    overridden: bool

    @property
    def text(self) -> str:
        if self.displayed is None:
            return ""
        rendered = self.displayed.display()
        return f"{rendered}{OVERRIDE_MARKER}" if self.overridden else rendered


@dataclass(slots=True)
class ResolvedRow:
    concept: ConceptDefinition
    cells: list[ResolvedCell]
    total: OverrideValue | None

    @property
    def total_text(self) -> str:
        return self.total.display() if self.total is not None else ""

    @property
    def has_overrides(self) -> bool:
        return any(cell.overridden for cell in self.cells)


@dataclass(slots=True)
class ResolvedMatrix:
    months: list[date]
    rows: list[ResolvedRow]

    @property
    def has_overrides(self) -> bool:
        return any(row.has_overrides for row in self.rows)

    def row(self, concept_key: str) -> ResolvedRow:
        for row in self.rows:
            if row.concept.key == concept_key:
                return row
        raise KeyError(concept_key)


def computed_value(calculations: MonthlyCalculations, concept: ConceptDefinition, month: date) -> OverrideValue | None:
    if concept.key == "gasto_obra":
        return CurrencyValue(calculations.expenditure.get(month, ZERO))
    if concept.key == "avance_parcial":
        return PercentageValue(calculations.partial_progress.get(month, 0.0))
    if concept.key == "avance_acumulado":
        return PercentageValue(calculations.cumulative_progress.get(month, 0.0))
    if concept.key == "ministraciones":
        return CurrencyValue(calculations.disbursements.get(month, ZERO))
    if concept.key == "inversion_acumulada":
        return PercentageValue(calculations.cumulative_investment.get(month, 0.0))
    if concept.key == "fecha_pago":
        dates = calculations.payment_dates.get(month) or []
        return DateValue(dates[0]) if dates else None
    raise ValueError(f"Unknown matrix concept '{concept.key}'.")


def _row_total(concept: ConceptDefinition, cells: list[ResolvedCell]) -> OverrideValue | None:
    if concept.total_rule is TotalRule.NONE:
        return None
    if concept.total_rule is TotalRule.LAST:
        return cells[-1].displayed if cells else None

    if concept.kind is ConceptKind.CURRENCY:
        total = ZERO
        for cell in cells:
            if isinstance(cell.displayed, CurrencyValue):
                total += cell.displayed.amount
        return CurrencyValue(total)

    percent = 0.0
    for cell in cells:
        if isinstance(cell.displayed, PercentageValue):
            percent += cell.displayed.percent
    return PercentageValue(percent)


def resolve_matrix(calculations: MonthlyCalculations, overrides: list[OverrideEntry]) -> ResolvedMatrix:
    """Overlay live overrides on computed values; computed values stay on every cell."""

    lookup: dict[tuple[date, str], OverrideEntry] = {
        (entry.month, entry.concept): entry for entry in overrides if entry.supersedes
    }

    rows: list[ResolvedRow] = []
    for concept in CONCEPTS:
        cells: list[ResolvedCell] = []
        for month in calculations.months:
            computed = computed_value(calculations, concept, month)
            entry = lookup.get((month, concept.key))
            cells.append(
                ResolvedCell(
                    month=month,
                    computed=computed,
                    displayed=entry.value if entry is not None else computed,
                    overridden=entry is not None,
                )
            )
        rows.append(ResolvedRow(concept=concept, cells=cells, total=_row_total(concept, cells)))
    return ResolvedMatrix(months=list(calculations.months), rows=rows)
