"""Landscape schedule document drawn with the reportlab canvas."""

from __future__ import annotations

import io
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from cronograma.rendering.layout import bar_geometry, clip_bar, column_bands
from cronograma.rendering.page_cursor import PageCursor
from cronograma.services.calendar import WEEKS_PER_MONTH, format_month_label, format_month_short
from cronograma.services.money import format_money, format_money_compact, safe_percent
from cronograma.services.overrides import OVERRIDE_MARKER, CurrencyValue, OverrideValue, ResolvedMatrix

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = landscape(letter)
MARGIN = 28.0
CONTENT_W = PAGE_W - 2 * MARGIN
HEADER_H = 50.0
FOOTER_H = 16.0
CONTENT_TOP = PAGE_H - MARGIN - HEADER_H - 12.0
CONTENT_BOTTOM = MARGIN + FOOTER_H + 8.0

PRIMARY = HexColor("#1E3A8A")
ACCENT = HexColor("#0F766E")
LIGHT_GRAY = HexColor("#F3F4F6")
GRID = HexColor("#D1D5DB")
TEXT = HexColor("#1F2937")
MUTED = HexColor("#6B7280")
BAR = HexColor("#2563EB")
STATUS_BARS = {
    "completed": HexColor("#10B981"),
    "in_progress": HexColor("#3B82F6"),
    "pending": HexColor("#6B7280"),
}
DEFAULT_MARKER = HexColor("#EF4444")
DISCOUNT_BAR = HexColor("#F59E0B")
TOTAL_FILL = HexColor("#CCFBF1")

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

SECTION_TITLE_H = 20.0
TABLE_HEADER_H = 14.0
TABLE_ROW_H = 12.0
GANTT_ROW_H = 16.0
MATRIX_ROW_H = 14.0
GANTT_LABEL_W = 170.0
GANTT_MIN_COLUMN_W = 46.0
MATRIX_LABEL_W = 120.0
MATRIX_TOTAL_W = 76.0
MATRIX_MIN_COLUMN_W = 58.0
MATRIX_CELL_SIZE = 6.5
BAR_LABEL_SIZE = 6.0
NOTE_LINE_H = 10.0

LABELS: dict[str, dict[str, str]] = {
    "es": {
        "title": "CRONOGRAMA DE GANTT",
        "generated": "Generado",
        "info": "INFORMACIÓN DEL PROYECTO",
        "client": "Cliente",
        "email": "Email",
        "phone": "Teléfono",
        "project": "Proyecto",
        "location": "Ubicación",
        "start": "Inicio",
        "tbd": "Por definir",
        "na": "N/A",
        "summary": "RESUMEN FINANCIERO",
        "subtotal": "Subtotal",
        "discounts": "Descuentos",
        "total": "Total",
        "period": "Período",
        "months": "meses",
        "lines": "TABLA DE PARTIDAS",
        "col_no": "No.",
        "col_code": "Código",
        "col_category": "Mayor",
        "col_label": "Descripción",
        "col_amount": "Importe",
        "col_share": "%",
        "col_type": "Tipo",
        "type_discount": "Descuento",
        "type_line": "Mayor",
        "gantt": "CRONOGRAMA VISUAL",
        "gantt_label": "PARTIDA / MAYOR",
        "matrix": "MATRIZ NUMÉRICA MENSUAL",
        "concept": "CONCEPTO",
        "total_col": "TOTAL",
        "band": "meses {first}-{last} de {count}",
        "legend": (
            "Las barras muestran las semanas (s) de ejecución de cada partida: gris pendiente, "
            "azul en ejecución, verde concluida y ámbar descuento."
        ),
        "explanations": "EXPLICACIONES DE LA MATRIZ",
        "override_note": "* Algunos valores han sido editados manualmente por el usuario.",
        "footer": "Sistema de Gestión de Proyectos",
        "confidential": "Confidencial - Solo para uso interno",
        "page": "Página {page} de {total}",
    },
    "en": {
        "title": "GANTT SCHEDULE",
        "generated": "Generated",
        "info": "PROJECT INFORMATION",
        "client": "Client",
        "email": "Email",
        "phone": "Phone",
        "project": "Project",
        "location": "Location",
        "start": "Start",
        "tbd": "To be defined",
        "na": "N/A",
        "summary": "FINANCIAL SUMMARY",
        "subtotal": "Subtotal",
        "discounts": "Discounts",
        "total": "Total",
        "period": "Period",
        "months": "months",
        "lines": "BUDGET LINES",
        "col_no": "No.",
        "col_code": "Code",
        "col_category": "Category",
        "col_label": "Description",
        "col_amount": "Amount",
        "col_share": "%",
        "col_type": "Type",
        "type_discount": "Discount",
        "type_line": "Line",
        "gantt": "VISUAL SCHEDULE",
        "gantt_label": "LINE / CATEGORY",
        "matrix": "MONTHLY NUMERIC MATRIX",
        "concept": "CONCEPT",
        "total_col": "TOTAL",
        "band": "months {first}-{last} of {count}",
        "legend": (
            "Bars show the execution weeks (s) of each line: gray pending, "
            "blue in progress, green completed and amber discount."
        ),
        "explanations": "MATRIX NOTES",
        "override_note": "* Some values were edited manually by the user.",
        "footer": "Project Management System",
        "confidential": "Confidential - Internal use only",
        "page": "Page {page} of {total}",
    },
}


class DocumentRenderError(RuntimeError):
    """Raised when a document cannot be produced in full."""


@dataclass(slots=True)
class Branding:
    name: str
    website: str
    email: str
    phone: str
    address: str | None = None


@dataclass(slots=True)
class LineRow:
    line_no: int
    category_code: str
    category_name: str
    label: str | None
    amount: Decimal
    is_discount: bool


@dataclass(slots=True)
class BarSpec:
    month_index: int
    start_week: int
    duration_weeks: int
    is_discount: bool = False
    status: str = "pending"
    progress: float = 0.0


@dataclass(slots=True)
class GanttRow:
    category_code: str
    category_name: str
    bars: list[BarSpec] = field(default_factory=list)


@dataclass(slots=True)
class ReferenceMarker:
    """Vertical line drawn at the end of week ``week`` of month ``month_index``."""

    month_index: int
    week: int
    label: str
    color: str = "#EF4444"


@dataclass(slots=True)
class ExplanationNote:
    title: str
    description: str = ""


@dataclass(slots=True)
class ScheduleDocument:
    branding: Branding
    client_name: str
    client_email: str | None
    client_phone: str | None
    project_name: str
    project_location: str | None
    construction_start: date | None
    generated_on: date
    months: list[date]
    lines: list[LineRow]
    gantt_rows: list[GanttRow]
    matrix: ResolvedMatrix
    subtotal: Decimal
    discounts: Decimal
    total: Decimal
    reference_lines: list[ReferenceMarker] = field(default_factory=list)
    explanations: list[ExplanationNote] = field(default_factory=list)
    locale: str = "es"


@dataclass(slots=True)
class RenderStats:
    page_count: int = 0
    rows_by_section: dict[str, int] = field(default_factory=dict)
    rows_by_page: dict[int, dict[str, int]] = field(default_factory=dict)
    bands_by_section: dict[str, int] = field(default_factory=dict)
    bar_labels: int = 0
    reference_marks: int = 0


@dataclass(slots=True)
class RenderedDocument:
    content: bytes
    stats: RenderStats


def _fit_ellipsis(text: str, font_name: str, font_size: float, max_w: float) -> str:
    value = text or ""
    if stringWidth(value, font_name, font_size) <= max_w:
        return value
    ellipsis = "..."
    if stringWidth(ellipsis, font_name, font_size) > max_w:
        return ""
    lo, hi = 0, len(value)
    best = ""
    while lo <= hi:
        mid = (lo + hi) // 2
        candidate = value[:mid].rstrip() + ellipsis
        if stringWidth(candidate, font_name, font_size) <= max_w:
            best = candidate
            lo = mid + 1
        else:
            hi = mid - 1
    return best or ellipsis


def bar_label(bar: BarSpec, width: float, *, size: float = BAR_LABEL_SIZE) -> str | None:
    """Duration label for a bar of ``width`` points, with progress while in execution."""

    text = f"{bar.duration_weeks}s"
    if bar.status == "in_progress" and bar.progress > 0:
        detailed = f"{text} {bar.progress:.0f}%"
        if stringWidth(detailed, FONT_BOLD, size) + 2 < width:
            return detailed
    if stringWidth(text, FONT_BOLD, size) + 2 < width:
        return text
    return None


def fit_matrix_value(
    value: OverrideValue | None,
    max_width: float,
    *,
    overridden: bool = False,
    font: str = FONT,
    size: float = MATRIX_CELL_SIZE,
) -> str:
    """Matrix cell text; currency falls back to ``$NK`` before being truncated."""

    if value is None:
        return ""
    marker = OVERRIDE_MARKER if overridden else ""
    text = value.display() + marker
    if stringWidth(text, font, size) <= max_width:
        return text
    if isinstance(value, CurrencyValue):
        compact = format_money_compact(value.amount) + marker
        if stringWidth(compact, font, size) <= max_width:
            return compact
    return _fit_ellipsis(text, font, size, max_width)


def marker_offset(marker: ReferenceMarker, column_width: float) -> float:
    """Distance from the first month column to the end of the marker's week."""

    geometry = bar_geometry(
        month_index=marker.month_index,
        start_week=marker.week,
        duration_weeks=1,
        column_width=column_width,
    )
    return geometry.x + geometry.width


class NumberedCanvas(canvas.Canvas):
    """Canvas that defers the footer until the total page count is known."""

    def __init__(self, *args, footer_left: str = "", footer_center: str = "", page_label: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: list[dict] = []
        self.footer_left = footer_left
        self.footer_center = footer_center
        self.page_label = page_label

    def showPage(self) -> None:  # noqa: N802
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int) -> None:
        y = MARGIN
        self.saveState()
        self.setFillColor(PRIMARY)
        self.rect(MARGIN, y, CONTENT_W, FOOTER_H, fill=1, stroke=0)
        self.setFillColor(white)
        self.setFont(FONT, 7)
        self.drawString(MARGIN + 6, y + 5, self.footer_left)
        self.drawCentredString(PAGE_W / 2, y + 5, self.footer_center)
        self.drawRightString(
            PAGE_W - MARGIN - 6,
            y + 5,
            self.page_label.format(page=self.getPageNumber(), total=total),
        )
        self.restoreState()


class ScheduleDocumentRenderer:
    """Draws every section of a :class:`ScheduleDocument` onto paginated canvas pages."""

    def __init__(
        self,
        document: ScheduleDocument,
        *,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.document = document
        self.labels = LABELS.get(document.locale, LABELS["es"])
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.stats = RenderStats()
        self._deadline = 0.0
        self.canvas: NumberedCanvas | None = None
        self.cursor: PageCursor | None = None

    # ---------- Entry point ----------
    def render(self) -> RenderedDocument:
        self._deadline = self.clock() + self.timeout_seconds
        buffer = io.BytesIO()
        try:
            self.canvas = NumberedCanvas(
                buffer,
                pagesize=(PAGE_W, PAGE_H),
                footer_left=f"{self.document.branding.name} - {self.labels['footer']}",
                footer_center=self.labels["confidential"],
                page_label=self.labels["page"],
            )
            self.canvas.setTitle(f"{self.labels['title']} - {self.document.project_name}")
            self.canvas.setAuthor(self.document.branding.name)
            self.cursor = PageCursor(top=CONTENT_TOP, bottom=CONTENT_BOTTOM, on_page_break=self._start_new_page)
            self._draw_page_header()

            self._draw_info_block()
            self._draw_summary()
            self._draw_lines_table()
            self._draw_gantt()
            self._draw_matrix()
            self._draw_footnotes()
            self._draw_explanations()

            self.canvas.showPage()
            self.canvas.save()
        except DocumentRenderError:
            raise
        except Exception as exc:
            raise DocumentRenderError(f"Could not render schedule document: {exc}") from exc

        self.stats.page_count = self.cursor.page_count
        logger.info(
            "Rendered schedule document for %s: %d pages, rows=%s",
            self.document.project_name,
            self.stats.page_count,
            self.stats.rows_by_section,
        )
        return RenderedDocument(content=buffer.getvalue(), stats=self.stats)

    # ---------- Bookkeeping ----------
    def _check_deadline(self) -> None:
        if self.clock() > self._deadline:
            raise DocumentRenderError(
                f"Rendering exceeded the {self.timeout_seconds:g}s deadline on page {self.cursor.page_count}."
            )

    def _record_row(self, section: str) -> None:
        page = self.cursor.page_count
        self.stats.rows_by_section[section] = self.stats.rows_by_section.get(section, 0) + 1
        page_rows = self.stats.rows_by_page.setdefault(page, {})
        page_rows[section] = page_rows.get(section, 0) + 1

    def _start_new_page(self) -> None:
        self.canvas.showPage()
        self._draw_page_header()

    # ---------- Primitives ----------
    def _rect(self, x: float, y: float, w: float, h: float, *, fill=None, stroke=None) -> None:
        c = self.canvas
        c.saveState()
        if fill is not None:
            c.setFillColor(fill)
        if stroke is not None:
            c.setStrokeColor(stroke)
            c.setLineWidth(0.4)
        c.rect(x, y, w, h, fill=1 if fill is not None else 0, stroke=1 if stroke is not None else 0)
        c.restoreState()

    def _text(
        self,
        text: str,
        x: float,
        y: float,
        *,
        font: str = FONT,
        size: float = 8,
        color=TEXT,
        align: str = "left",
        max_width: float | None = None,
    ) -> None:
        c = self.canvas
        value = _fit_ellipsis(text, font, size, max_width) if max_width is not None else text
        c.saveState()
        c.setFont(font, size)
        c.setFillColor(color)
        if align == "right":
            c.drawRightString(x, y, value)
        elif align == "center":
            c.drawCentredString(x, y, value)
        else:
            c.drawString(x, y, value)
        c.restoreState()

    def _section_title(self, title: str) -> None:
        self.cursor.advance(SECTION_TITLE_H)
        self._text(title, MARGIN, self.cursor.cursor_y + 6, font=FONT_BOLD, size=11, color=PRIMARY)

    # ---------- Page header ----------
    def _draw_page_header(self) -> None:
        branding = self.document.branding
        top = PAGE_H - MARGIN
        self._rect(MARGIN, top - HEADER_H, CONTENT_W, HEADER_H, fill=PRIMARY)
        self._text(branding.name.upper(), MARGIN + 10, top - 20, font=FONT_BOLD, size=15, color=white)
        contact = " | ".join(part for part in (branding.website, branding.email, branding.phone) if part)
        self._text(contact, MARGIN + 10, top - 33, size=7.5, color=white)
        if branding.address:
            self._text(branding.address, MARGIN + 10, top - 44, size=7, color=white, max_width=CONTENT_W / 2)
        right = PAGE_W - MARGIN - 10
        self._text(self.labels["title"], right, top - 18, font=FONT_BOLD, size=12, color=white, align="right")
        self._text(
            f"{self.labels['generated']}: {self.document.generated_on.strftime('%d/%m/%Y')}",
            right,
            top - 31,
            size=7.5,
            color=white,
            align="right",
        )

    # ---------- Info and summary ----------
    def _draw_info_block(self) -> None:
        doc = self.document
        labels = self.labels
        height = 62.0
        self.cursor.advance(height)
        y = self.cursor.cursor_y
        self._rect(MARGIN, y, CONTENT_W, height, fill=LIGHT_GRAY)
        self._text(labels["info"], MARGIN + 8, y + height - 14, font=FONT_BOLD, size=11, color=PRIMARY)

        start = doc.construction_start.strftime("%d/%m/%Y") if doc.construction_start else labels["tbd"]
        left = [
            f"{labels['client']}: {doc.client_name}",
            f"{labels['email']}: {doc.client_email or labels['na']}",
            f"{labels['phone']}: {doc.client_phone or labels['na']}",
        ]
        right = [
            f"{labels['project']}: {doc.project_name}",
            f"{labels['location']}: {doc.project_location or labels['na']}",
            f"{labels['start']}: {start}",
        ]
        column_w = CONTENT_W / 2 - 16
        for idx, (left_text, right_text) in enumerate(zip(left, right)):
            line_y = y + height - 28 - idx * 11
            self._text(left_text, MARGIN + 8, line_y, size=8.5, max_width=column_w)
            self._text(right_text, MARGIN + CONTENT_W / 2 + 8, line_y, size=8.5, max_width=column_w)
        self._record_row("info")
        self.cursor.skip(8)

    def _draw_summary(self) -> None:
        doc = self.document
        labels = self.labels
        height = 38.0
        self.cursor.advance(height)
        y = self.cursor.cursor_y
        self._rect(MARGIN, y, CONTENT_W, height, fill=TOTAL_FILL)
        self._text(labels["summary"], MARGIN + 8, y + height - 14, font=FONT_BOLD, size=10, color=ACCENT)

        period = f"{len(doc.months)} {labels['months']}"
        if doc.months:
            period = (
                f"{period} ({format_month_label(doc.months[0], doc.locale)} - "
                f"{format_month_label(doc.months[-1], doc.locale)})"
            )
        items = [
            f"{labels['subtotal']}: {format_money(doc.subtotal)}",
            f"{labels['discounts']}: {format_money(doc.discounts)}",
            f"{labels['total']}: {format_money(max(doc.total, Decimal('0')))}",
            f"{labels['period']}: {period}",
        ]
        slot = (CONTENT_W - 16) / len(items)
        for idx, item in enumerate(items):
            self._text(item, MARGIN + 8 + idx * slot, y + 9, size=8.5, max_width=slot - 6)
        self._record_row("summary")
        self.cursor.skip(10)

    # ---------- Line table ----------
    def _line_columns(self) -> list[tuple[str, float, str]]:
        labels = self.labels
        return [
            (labels["col_no"], 34.0, "left"),
            (labels["col_code"], 64.0, "left"),
            (labels["col_category"], 190.0, "left"),
            (labels["col_label"], CONTENT_W - 34 - 64 - 190 - 110 - 60 - 80, "left"),
            (labels["col_amount"], 110.0, "right"),
            (labels["col_share"], 60.0, "right"),
            (labels["col_type"], 80.0, "left"),
        ]

    def _draw_line_header(self) -> None:
        self.cursor.advance(TABLE_HEADER_H)
        y = self.cursor.cursor_y
        x = MARGIN
        for title, width, align in self._line_columns():
            self._rect(x, y, width, TABLE_HEADER_H, fill=PRIMARY)
            text_x = x + width - 3 if align == "right" else x + 3
            self._text(title, text_x, y + 4, font=FONT_BOLD, size=7.5, color=white, align=align)
            x += width

    def _draw_lines_table(self) -> None:
        doc = self.document
        if not doc.lines:
            return
        self.cursor.ensure(SECTION_TITLE_H + TABLE_HEADER_H + TABLE_ROW_H)
        self._section_title(self.labels["lines"])
        self._draw_line_header()

        columns = self._line_columns()
        for idx, line in enumerate(doc.lines):
            self._check_deadline()
            if self.cursor.ensure(TABLE_ROW_H):
                self._draw_line_header()
            self.cursor.advance(TABLE_ROW_H)
            y = self.cursor.cursor_y
            share = 0.0 if line.is_discount else safe_percent(line.amount, doc.subtotal)
            values = [
                str(line.line_no),
                line.category_code or self.labels["na"],
                line.category_name or self.labels["na"],
                line.label or "",
                format_money(abs(line.amount)),
                f"{share:.2f}%",
                self.labels["type_discount"] if line.is_discount else self.labels["type_line"],
            ]
            fill = white if idx % 2 == 0 else LIGHT_GRAY
            x = MARGIN
            for (title, width, align), value in zip(columns, values):
                self._rect(x, y, width, TABLE_ROW_H, fill=fill)
                text_x = x + width - 3 if align == "right" else x + 3
                self._text(value, text_x, y + 3.5, size=7, align=align, max_width=width - 6)
                x += width
            self._record_row("lines")
        self.cursor.skip(10)

    # ---------- Gantt ----------
    def _band_suffix(self, band: range, count: int, band_total: int) -> str:
        if band_total <= 1:
            return ""
        return " (" + self.labels["band"].format(first=band.start + 1, last=band.stop, count=count) + ")"

    def _draw_gantt_header(self, band: range, column_w: float) -> None:
        doc = self.document
        self.cursor.advance(GANTT_ROW_H)
        y = self.cursor.cursor_y
        self._rect(MARGIN, y, GANTT_LABEL_W, GANTT_ROW_H, fill=PRIMARY)
        self._text(self.labels["gantt_label"], MARGIN + 4, y + 5, font=FONT_BOLD, size=7.5, color=white)
        x = MARGIN + GANTT_LABEL_W
        for month_idx in band:
            self._rect(x, y, column_w, GANTT_ROW_H, fill=PRIMARY, stroke=white)
            label = format_month_short(doc.months[month_idx], doc.locale)
            self._text(label, x + column_w / 2, y + 5, font=FONT_BOLD, size=7, color=white, align="center")
            x += column_w

    def _draw_gantt(self) -> None:
        doc = self.document
        if not doc.months:
            return
        available = CONTENT_W - GANTT_LABEL_W
        bands = column_bands(len(doc.months), available_width=available, min_column_width=GANTT_MIN_COLUMN_W)
        column_w = available / len(bands[0])
        week_w = column_w / WEEKS_PER_MONTH
        self.stats.bands_by_section["gantt"] = len(bands)
        origin = MARGIN + GANTT_LABEL_W

        for band in bands:
            self.cursor.ensure(SECTION_TITLE_H + GANTT_ROW_H * 2)
            self._section_title(self.labels["gantt"] + self._band_suffix(band, len(doc.months), len(bands)))
            self._draw_gantt_header(band, column_w)
            band_start = band.start * column_w
            band_width = len(band) * column_w
            markers = [
                (marker, marker_offset(marker, column_w) - band_start)
                for marker in doc.reference_lines
                if band_start < marker_offset(marker, column_w) <= band_start + band_width
            ]
            label_markers = True

            for idx, row in enumerate(doc.gantt_rows):
                self._check_deadline()
                if self.cursor.ensure(GANTT_ROW_H):
                    self._draw_gantt_header(band, column_w)
                    label_markers = True
                self.cursor.advance(GANTT_ROW_H)
                y = self.cursor.cursor_y

                fill = white if idx % 2 == 0 else LIGHT_GRAY
                self._rect(MARGIN, y, GANTT_LABEL_W, GANTT_ROW_H, fill=fill, stroke=GRID)
                self._text(row.category_code, MARGIN + 4, y + 9, font=FONT_BOLD, size=6.5)
                self._text(row.category_name, MARGIN + 4, y + 2.5, size=6, max_width=GANTT_LABEL_W - 8)

                x = origin
                for _ in band:
                    self._rect(x, y, column_w, GANTT_ROW_H, stroke=GRID)
                    x += column_w

                for bar in row.bars:
                    geometry = bar_geometry(
                        month_index=bar.month_index,
                        start_week=bar.start_week,
                        duration_weeks=bar.duration_weeks,
                        column_width=column_w,
                    )
                    visible = clip_bar(geometry, band_start=band_start, band_width=band_width)
                    if visible is None:
                        continue
                    width = max(visible.width, week_w / 2)
                    color = DISCOUNT_BAR if bar.is_discount else STATUS_BARS.get(bar.status, BAR)
                    self._rect(origin + visible.x, y + 3, width, GANTT_ROW_H - 6, fill=color)
                    label = bar_label(bar, width)
                    if label is not None:
                        self._text(label, origin + visible.x + width / 2, y + 5.5, font=FONT_BOLD,
                                   size=BAR_LABEL_SIZE, color=white, align="center")
                        self.stats.bar_labels += 1

                for marker, offset in markers:
                    self._draw_marker(marker, origin + offset, y, with_label=label_markers)
                label_markers = False
                self._record_row("gantt")
            self.cursor.skip(10)

    def _draw_marker(self, marker: ReferenceMarker, x: float, y: float, *, with_label: bool) -> None:
        c = self.canvas
        try:
            color = HexColor(marker.color)
        except ValueError:
            color = DEFAULT_MARKER
        c.saveState()
        c.setStrokeColor(color)
        c.setLineWidth(1.2)
        c.line(x, y, x, y + GANTT_ROW_H)
        c.restoreState()
        if with_label:
            self._text(marker.label, x + 2, y + GANTT_ROW_H - 5, font=FONT_BOLD, size=5.5, color=color,
                       max_width=CONTENT_W - (x - MARGIN) - 4)
        self.stats.reference_marks += 1

    # ---------- Matrix ----------
    def _draw_matrix_header(self, band: range, column_w: float, with_total: bool) -> None:
        doc = self.document
        self.cursor.advance(MATRIX_ROW_H)
        y = self.cursor.cursor_y
        self._rect(MARGIN, y, MATRIX_LABEL_W, MATRIX_ROW_H, fill=PRIMARY)
        self._text(self.labels["concept"], MARGIN + 4, y + 4, font=FONT_BOLD, size=7.5, color=white)
        x = MARGIN + MATRIX_LABEL_W
        for month_idx in band:
            self._rect(x, y, column_w, MATRIX_ROW_H, fill=PRIMARY, stroke=white)
            label = format_month_short(doc.months[month_idx], doc.locale)
            self._text(label, x + column_w / 2, y + 4, font=FONT_BOLD, size=7, color=white, align="center")
            x += column_w
        if with_total:
            self._rect(x, y, MATRIX_TOTAL_W, MATRIX_ROW_H, fill=ACCENT)
            self._text(self.labels["total_col"], x + MATRIX_TOTAL_W / 2, y + 4, font=FONT_BOLD, size=7.5,
                       color=white, align="center")

    def _draw_matrix(self) -> None:
        doc = self.document
        matrix = doc.matrix
        if not matrix.months:
            return
        available = CONTENT_W - MATRIX_LABEL_W - MATRIX_TOTAL_W
        bands = column_bands(len(matrix.months), available_width=available, min_column_width=MATRIX_MIN_COLUMN_W)
        column_w = available / len(bands[0])
        self.stats.bands_by_section["matrix"] = len(bands)

        for band_idx, band in enumerate(bands):
            with_total = band_idx == len(bands) - 1
            self.cursor.ensure(SECTION_TITLE_H + MATRIX_ROW_H * 2)
            self._section_title(self.labels["matrix"] + self._band_suffix(band, len(matrix.months), len(bands)))
            self._draw_matrix_header(band, column_w, with_total)

            for idx, row in enumerate(matrix.rows):
                self._check_deadline()
                if self.cursor.ensure(MATRIX_ROW_H):
                    self._draw_matrix_header(band, column_w, with_total)
                self.cursor.advance(MATRIX_ROW_H)
                y = self.cursor.cursor_y

                fill = white if idx % 2 == 0 else LIGHT_GRAY
                self._rect(MARGIN, y, MATRIX_LABEL_W, MATRIX_ROW_H, fill=fill, stroke=GRID)
                self._text(row.concept.label, MARGIN + 4, y + 4, font=FONT_BOLD, size=7, max_width=MATRIX_LABEL_W - 8)
                x = MARGIN + MATRIX_LABEL_W
                for month_idx in band:
                    cell = row.cells[month_idx]
                    self._rect(x, y, column_w, MATRIX_ROW_H, fill=fill, stroke=GRID)
                    self._text(
                        fit_matrix_value(cell.displayed, column_w - 5, overridden=cell.overridden),
                        x + column_w - 3,
                        y + 4,
                        size=MATRIX_CELL_SIZE,
                        color=ACCENT if cell.overridden else TEXT,
                        align="right",
                    )
                    x += column_w
                if with_total:
                    self._rect(x, y, MATRIX_TOTAL_W, MATRIX_ROW_H, fill=TOTAL_FILL, stroke=GRID)
                    total_text = fit_matrix_value(row.total, MATRIX_TOTAL_W - 5, font=FONT_BOLD)
                    self._text(total_text, x + MATRIX_TOTAL_W - 3, y + 4, font=FONT_BOLD, size=MATRIX_CELL_SIZE,
                               align="right")
                self._record_row("matrix")
            self.cursor.skip(10)

    # ---------- Footnotes ----------
    def _draw_footnotes(self) -> None:
        notes = [self.labels["legend"]]
        if self.document.matrix.has_overrides:
            notes.append(self.labels["override_note"])
        for note in notes:
            self.cursor.advance(TABLE_ROW_H)
            self._text(note, MARGIN, self.cursor.cursor_y + 3, size=7.5, color=MUTED)
            self._record_row("footnotes")

    def _draw_explanations(self) -> None:
        explanations = self.document.explanations
        if not explanations:
            return
        self.cursor.skip(6)
        self.cursor.ensure(SECTION_TITLE_H + TABLE_ROW_H + NOTE_LINE_H)
        self._section_title(self.labels["explanations"])
        width = CONTENT_W - 16
        for number, note in enumerate(explanations, start=1):
            self._check_deadline()
            lines = simpleSplit(note.description or "", FONT, 7.5, width)
            self.cursor.ensure(TABLE_ROW_H + (NOTE_LINE_H if lines else 0))
            self.cursor.advance(TABLE_ROW_H)
            self._text(f"{number}. {note.title}", MARGIN, self.cursor.cursor_y + 3, font=FONT_BOLD, size=8,
                       color=PRIMARY, max_width=CONTENT_W)
            for text in lines:
                self.cursor.advance(NOTE_LINE_H)
                self._text(text, MARGIN + 12, self.cursor.cursor_y + 2, size=7.5, color=TEXT)
            self._record_row("explanations")


def render_schedule_pdf(
    document: ScheduleDocument,
    *,
    timeout_seconds: float,
    clock: Callable[[], float] = time.monotonic,
) -> RenderedDocument:
    """Render ``document`` to PDF bytes; raises :class:`DocumentRenderError` on any failure."""

    return ScheduleDocumentRenderer(document, timeout_seconds=timeout_seconds, clock=clock).render()
