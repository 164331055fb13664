"""Geometry helpers shared by the document renderer."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from cronograma.services.calendar import WEEKS_PER_MONTH

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True, slots=True)
class BarGeometry:
    x: float
    width: float


def bar_geometry(
    *,
    month_index: int,
    start_week: int,
    duration_weeks: int,
    column_width: float,
) -> BarGeometry:
    """Horizontal placement of a bar relative to the first month column."""

    week_width = column_width / WEEKS_PER_MONTH
    x = month_index * column_width + (start_week - 1) * week_width
    return BarGeometry(x=x, width=max(week_width, duration_weeks * week_width))


def clip_bar(geometry: BarGeometry, *, band_start: float, band_width: float) -> BarGeometry | None:
    """Clip a bar to a column band; ``None`` when nothing of it is visible."""

    left = max(geometry.x, band_start)
    right = min(geometry.x + geometry.width, band_start + band_width)
    if right <= left:
        return None
    return BarGeometry(x=left - band_start, width=right - left)


def column_bands(month_count: int, *, available_width: float, min_column_width: float) -> list[range]:
    """Split month columns into bands that each fit one page width."""

    if month_count <= 0:
        return [range(0)]
    per_band = max(1, int(available_width // min_column_width))
    return [range(start, min(start + per_band, month_count)) for start in range(0, month_count, per_band)]


def safe_segment(text: str) -> str:
    return _UNSAFE_CHARS.sub("_", text.strip())


def build_filename(
    report_name: str,
    client_name: str,
    project_name: str,
    generated_on: date,
    extension: str,
) -> str:
    segments = [safe_segment(report_name), safe_segment(client_name), safe_segment(project_name)]
    return f"{'_'.join(segments)}_{generated_on.isoformat()}.{extension}"
