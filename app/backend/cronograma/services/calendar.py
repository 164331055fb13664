"""Month/week calendar used by the schedule engine.

Every month is treated as exactly four week slots regardless of its real
length. Durations, proration and bar geometry all depend on this, so it must
not be replaced with ISO weeks.

Months are represented as ``date`` values pinned to the first day of the
month.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

WEEKS_PER_MONTH = 4
MIN_YEAR = 1900
MAX_YEAR = 2099

_TOKEN_RE = re.compile(r"^(\d{4})-?(\d{2})(?:-(\d{2}))?$")

MONTH_NAMES: dict[str, tuple[str, ...]] = {
    "es": (
        "enero",
        "febrero",
        "marzo",
        "abril",
        "mayo",
        "junio",
        "julio",
        "agosto",
        "septiembre",
        "octubre",
        "noviembre",
        "diciembre",
    ),
    "en": (
        "January",
        "February",
        "March",
        "April",
        "May",
        "June",
        "July",
        "August",
        "September",
        "October",
        "November",
        "December",
    ),
}


@dataclass(frozen=True, order=True, slots=True)
class MonthWeek:
    """A month plus a 1-4 week slot; ordered by (year, month, week)."""

    month: date
    week: int

    @property
    def position(self) -> int:
        return (self.month.year * 12 + self.month.month - 1) * WEEKS_PER_MONTH + self.week

    def __str__(self) -> str:
        return f"{self.month.year:04d}-{self.month.month:02d}/S{self.week}"


@dataclass(frozen=True, slots=True)
class RangeValidation:
    is_valid: bool
    reason: str | None = None


def month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def is_supported_month(value: date) -> bool:
    return MIN_YEAR <= value.year <= MAX_YEAR


def parse_month(value: str | date) -> date:
    """Normalize a ``YYYYMM`` token, ``YYYY-MM`` string or first-of-month date."""

    if isinstance(value, date):
        if value.day != 1:
            raise ValueError("month must be the first day of a calendar month.")
        parsed = month_start(value)
    else:
        match = _TOKEN_RE.match(value.strip())
        if match is None:
            raise ValueError(f"Invalid month '{value}'; expected YYYYMM or YYYY-MM.")
        year, month, day = int(match.group(1)), int(match.group(2)), match.group(3)
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month '{value}'; month must be between 01 and 12.")
        if day is not None and int(day) != 1:
            raise ValueError("month must be the first day of a calendar month.")
        parsed = date(year, month, 1)

    if not is_supported_month(parsed):
        raise ValueError(f"Month year must be between {MIN_YEAR} and {MAX_YEAR}.")
    return parsed


def month_token(value: date) -> str:
    return f"{value.year:04d}{value.month:02d}"


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def add_months(value: date, offset: int) -> date:
    index = value.year * 12 + (value.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def months_between(start: date, end: date) -> int:
    """Signed number of month steps from ``start`` to ``end``."""

    return (end.year * 12 + end.month) - (start.year * 12 + start.month)


def month_sequence(start: date, count: int) -> list[date]:
    first = month_start(start)
    return [add_months(first, offset) for offset in range(max(count, 0))]


def generate_month_range(offset_months: int, count: int, *, reference: date) -> list[date]:
    """``count`` consecutive months beginning ``offset_months`` after ``reference``."""

    return month_sequence(add_months(month_start(reference), offset_months), count)


def weeks_between(start: MonthWeek, end: MonthWeek) -> int:
    """Inclusive number of week slots from ``start`` to ``end`` (at least 1)."""

    return max(1, end.position - start.position + 1)


def validate_month_week_range(start: MonthWeek, end: MonthWeek) -> RangeValidation:
    if not 1 <= start.week <= WEEKS_PER_MONTH:
        return RangeValidation(False, "start_week must be between 1 and 4.")
    if not 1 <= end.week <= WEEKS_PER_MONTH:
        return RangeValidation(False, "end_week must be between 1 and 4.")
    if start.month.day != 1 or not is_supported_month(start.month):
        return RangeValidation(False, f"start_month must be a month between {MIN_YEAR} and {MAX_YEAR}.")
    if end.month.day != 1 or not is_supported_month(end.month):
        return RangeValidation(False, f"end_month must be a month between {MIN_YEAR} and {MAX_YEAR}.")
    if end < start:
        return RangeValidation(False, "End month/week must be on or after start month/week.")
    return RangeValidation(True)


def expand_range_to_cells(start: MonthWeek, end: MonthWeek) -> list[MonthWeek]:
    """Every month/week slot covered by the inclusive span."""

    if end < start:
        return []
    cells: list[MonthWeek] = []
    current = start.month
    while current <= end.month:
        first_week = start.week if current == start.month else 1
        last_week = end.week if current == end.month else WEEKS_PER_MONTH
        cells.extend(MonthWeek(current, week) for week in range(first_week, last_week + 1))
        current = add_months(current, 1)
    return cells


def weeks_in_month(start: MonthWeek, end: MonthWeek, month: date) -> int:
    """Number of week slots of the span that fall inside ``month``."""

    if end < start or month < start.month or month > end.month:
        return 0
    first_week = start.week if month == start.month else 1
    last_week = end.week if month == end.month else WEEKS_PER_MONTH
    return max(0, last_week - first_week + 1)


def _names(locale: str) -> tuple[str, ...]:
    return MONTH_NAMES.get(locale[:2].lower(), MONTH_NAMES["es"])


def format_month_label(value: date, locale: str = "es") -> str:
    """Localized "Month Year" label; display only."""

    return f"{_names(locale)[value.month - 1]} {value.year}"


def format_month_short(value: date, locale: str = "es") -> str:
    name = _names(locale)[value.month - 1]
    return f"{name[:3]} {value.year % 100:02d}"
