"""Currency and percentage helpers shared by the calculator and renderers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0.00")
Q2 = Decimal("0.01")


def _q2(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


def to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)  # type: ignore[arg-type]


def format_money(value: Decimal | int | float) -> str:
    """Render a non-negative amount as ``$1,234.56``."""

    amount = _q2(to_decimal(value))
    if amount < ZERO:
        raise ValueError("Currency amounts must be non-negative.")
    if amount == ZERO:
        amount = ZERO
    return f"${amount:,.2f}"


def format_money_compact(value: Decimal | int | float) -> str:
    """Narrow matrix-cell rendering: ``$40K`` above one thousand."""

    amount = to_decimal(value)
    if amount >= Decimal("1000"):
        return f"${(amount / Decimal('1000')).quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}K"
    return f"${amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP)}"


def to_number(text: str) -> Decimal:
    """Parse user or display currency text back to a 2-decimal amount."""

    cleaned = text.strip().replace("$", "").replace(",", "").replace(" ", "")
    if cleaned.upper().endswith("MXN"):
        cleaned = cleaned[:-3]
    if not cleaned:
        raise ValueError("Empty currency value.")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid currency value '{text}'.") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid currency value '{text}'.")
    if amount < ZERO:
        raise ValueError("Currency amounts must be non-negative.")
    return _q2(amount) if amount != ZERO else ZERO


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def to_percent(text: str) -> float:
    cleaned = text.strip().rstrip("%").strip()
    try:
        percent = float(cleaned)
    except ValueError as exc:
        raise ValueError(f"Invalid percentage value '{text}'.") from exc
    if percent != percent or percent in (float("inf"), float("-inf")):
        raise ValueError(f"Invalid percentage value '{text}'.")
    if percent < 0:
        raise ValueError("Percentages must be non-negative.")
    return percent


def safe_percent(numerator: Decimal, denominator: Decimal) -> float:
    if denominator <= ZERO:
        return 0.0
    return float(numerator / denominator * Decimal("100"))
