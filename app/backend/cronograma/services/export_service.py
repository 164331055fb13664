"""Schedule document and matrix exports."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import date
from io import BytesIO
from uuid import UUID

from fastapi import HTTPException, status
from openpyxl import Workbook
from sqlalchemy.orm import Session

from cronograma.core.config import get_settings
from cronograma.rendering.layout import build_filename
from cronograma.rendering.pdf_document import (
    BarSpec,
    Branding,
    DocumentRenderError,
    ExplanationNote,
    GanttRow,
    LineRow,
    ReferenceMarker,
    ScheduleDocument,
    render_schedule_pdf,
)
from cronograma.services.calendar import month_key, month_start, months_between
from cronograma.services.schedule_service import ScheduleService, ScheduleSnapshot, activity_span, bar_state

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("pdf", "xlsx", "csv")


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


class ExportService:
    """Builds downloadable schedule documents from a fresh schedule snapshot."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.schedule = ScheduleService(db)
        self.settings = get_settings()

    def _branding(self) -> Branding:
        return Branding(
            name=self.settings.company_name,
            website=self.settings.company_website,
            email=self.settings.company_email,
            phone=self.settings.company_phone,
            address=self.settings.company_address,
        )

    def build_document(self, snapshot: ScheduleSnapshot, *, generated_on: date) -> ScheduleDocument:
        reference_month = month_start(generated_on)
        lines: list[LineRow] = []
        gantt_rows: dict[UUID, GanttRow] = {}
        for line in snapshot.lines:
            category = snapshot.categories.get(line.category_id)
            code = category.code if category else ""
            name = category.name if category else ""
            lines.append(
                LineRow(
                    line_no=line.line_no,
                    category_code=code,
                    category_name=name,
                    label=line.label,
                    amount=line.amount,
                    is_discount=line.is_discount,
                )
            )

            row = gantt_rows.get(line.category_id)
            if row is None:
                row = GanttRow(category_code=code, category_name=name)
                gantt_rows[line.category_id] = row
            activity = snapshot.activities.get(line.id)
            if activity is not None:
                state, progress = bar_state(*activity_span(activity), reference_month)
                row.bars.append(
                    BarSpec(
                        month_index=months_between(snapshot.plan.start_month, activity.start_month),
                        start_week=activity.start_week,
                        duration_weeks=activity.duration_weeks,
                        is_discount=line.is_discount,
                        status=state,
                        progress=progress,
                    )
                )

        return ScheduleDocument(
            branding=self._branding(),
            client_name=snapshot.client.full_name,
            client_email=snapshot.client.email,
            client_phone=snapshot.client.phone,
            project_name=snapshot.project.project_name,
            project_location=snapshot.project.project_location,
            construction_start=snapshot.project.construction_start_date,
            generated_on=generated_on,
            months=snapshot.months,
            lines=lines,
            gantt_rows=list(gantt_rows.values()),
            matrix=snapshot.matrix,
            subtotal=snapshot.subtotal,
            discounts=snapshot.discounts,
            total=snapshot.total,
            reference_lines=[
                ReferenceMarker(
                    month_index=months_between(snapshot.plan.start_month, marker.month),
                    week=marker.week,
                    label=marker.label,
                    color=marker.color,
                )
                for marker in snapshot.reference_lines
            ],
            explanations=[
                ExplanationNote(title=note.title, description=note.description) for note in snapshot.explanations
            ],
            locale=self.settings.report_locale,
        )

    @staticmethod
    def _matrix_rows(snapshot: ScheduleSnapshot) -> tuple[list[str], list[list[str]]]:
        matrix = snapshot.matrix
        header = ["concept", "label", *[month_key(month) for month in matrix.months], "total"]
        rows = [
            [row.concept.key, row.concept.label, *[cell.text for cell in row.cells], row.total_text]
            for row in matrix.rows
        ]
        return header, rows

    def export_schedule(
        self,
        *,
        client_id: UUID,
        project_id: UUID,
        reference_date: date,
        format_name: str,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in EXPORT_FORMATS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"format must be one of: {', '.join(EXPORT_FORMATS)}.",
            )

        snapshot = self.schedule.build_snapshot(
            client_id=client_id,
            project_id=project_id,
            reference_date=reference_date,
        )
        filename = build_filename(
            self.settings.report_name,
            snapshot.client.full_name,
            snapshot.project.project_name,
            reference_date,
            normalized_format,
        )

        if normalized_format == "pdf":
            document = self.build_document(snapshot, generated_on=reference_date)
            try:
                rendered = render_schedule_pdf(document, timeout_seconds=self.settings.render_timeout_seconds)
            except DocumentRenderError as exc:
                logger.error("Schedule export failed for project %s: %s", project_id, exc)
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=f"Schedule document could not be generated: {exc}",
                ) from exc
            logger.info("Exported %s (%d pages)", filename, rendered.stats.page_count)
            return ExportFilePayload(media_type="application/pdf", filename=filename, content=rendered.content)

        header, rows = self._matrix_rows(snapshot)
        if normalized_format == "csv":
            sio = io.StringIO()
            writer = csv.writer(sio)
            writer.writerow(header)
            writer.writerows(rows)
            logger.info("Exported %s", filename)
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=filename,
                content=sio.getvalue().encode("utf-8"),
            )

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "matriz"
        sheet.append(header)
        for row in rows:
            sheet.append(row)

        lines_sheet = workbook.create_sheet("partidas")
        lines_sheet.append(["line_no", "category_code", "category_name", "label", "amount", "is_discount"])
        for line in snapshot.lines:
            category = snapshot.categories.get(line.category_id)
            lines_sheet.append(
                [
                    line.line_no,
                    category.code if category else "",
                    category.name if category else "",
                    line.label or "",
                    float(line.amount),
                    "yes" if line.is_discount else "no",
                ]
            )

        output = BytesIO()
        workbook.save(output)
        logger.info("Exported %s", filename)
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=filename,
            content=output.getvalue(),
        )
