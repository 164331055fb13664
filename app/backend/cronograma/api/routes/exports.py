"""Schedule document export endpoint."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from cronograma.api.dependencies import get_reference_date
from cronograma.db.dependencies import get_db_session
from cronograma.services.export_service import ExportService

router = APIRouter(tags=["exports"])


@router.get("/clients/{client_id}/projects/{project_id}/schedule/export")
def export_schedule(
    client_id: UUID,
    project_id: UUID,
    format: str = Query(default="pdf"),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> Response:
    service = ExportService(db)
    exported = service.export_schedule(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        format_name=format,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
