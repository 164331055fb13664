"""Resolved matrix read, override write and explanation endpoints."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from cronograma.api.dependencies import get_reference_date
from cronograma.core.auth import RequestActor, get_request_actor
from cronograma.db.dependencies import get_db_session
from cronograma.services.schedule_service import (
    ExplanationData,
    ExplanationUpdateData,
    OverrideInput,
    ScheduleService,
)

router = APIRouter(prefix="/clients/{client_id}/projects/{project_id}/schedule/matrix", tags=["matrix"])


class OverrideEntryPayload(BaseModel):
    month: str = Field(min_length=6, max_length=10)
    concept: str = Field(min_length=1, max_length=64)
    value: str = Field(min_length=1, max_length=255)
    supersedes: bool = True


class OverrideBulkPayload(BaseModel):
    entries: list[OverrideEntryPayload]


class ExplanationPayload(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=4000)


class ExplanationUpdatePayload(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=4000)


class ExplanationOrderPayload(BaseModel):
    ids: list[UUID]


def _schedule_service(db: Session) -> ScheduleService:
    return ScheduleService(db)


@router.get("")
def get_schedule_matrix(
    client_id: UUID,
    project_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    return service.read_matrix(client_id=client_id, project_id=project_id, reference_date=reference_date)


@router.put("/overrides/bulk")
def put_matrix_overrides_bulk(
    client_id: UUID,
    project_id: UUID,
    payload: OverrideBulkPayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    saved = service.save_overrides(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        entries=[
            OverrideInput(
                month=entry.month,
                concept=entry.concept,
                value=entry.value,
                supersedes=entry.supersedes,
            )
            for entry in payload.entries
        ],
    )
    return {
        "updated_entries": len(saved),
        "overrides": [service.serialize_override(row) for row in saved],
    }


@router.delete("/overrides", status_code=status.HTTP_204_NO_CONTENT)
def delete_matrix_override(
    client_id: UUID,
    project_id: UUID,
    month: str = Query(..., min_length=6, max_length=10),
    concept: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _schedule_service(db)
    service.delete_override(client_id=client_id, project_id=project_id, month=month, concept=concept)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/explanations")
def list_matrix_explanations(
    client_id: UUID,
    project_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, list[dict[str, object]]]:
    service = _schedule_service(db)
    rows = service.list_explanations(client_id=client_id, project_id=project_id, reference_date=reference_date)
    return {"items": [service.serialize_explanation(row) for row in rows]}


@router.post("/explanations", status_code=status.HTTP_201_CREATED)
def create_matrix_explanation(
    client_id: UUID,
    project_id: UUID,
    payload: ExplanationPayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    row = service.create_explanation(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        data=ExplanationData(title=payload.title, description=payload.description),
    )
    return service.serialize_explanation(row)


@router.put("/explanations/order")
def reorder_matrix_explanations(
    client_id: UUID,
    project_id: UUID,
    payload: ExplanationOrderPayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, list[dict[str, object]]]:
    service = _schedule_service(db)
    rows = service.reorder_explanations(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        ordered_ids=payload.ids,
    )
    return {"items": [service.serialize_explanation(row) for row in rows]}


@router.patch("/explanations/{explanation_id}")
def update_matrix_explanation(
    client_id: UUID,
    project_id: UUID,
    explanation_id: UUID,
    payload: ExplanationUpdatePayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    row = service.update_explanation(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        explanation_id=explanation_id,
        data=ExplanationUpdateData(title=payload.title, description=payload.description),
    )
    return service.serialize_explanation(row)


@router.delete("/explanations/{explanation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_matrix_explanation(
    client_id: UUID,
    project_id: UUID,
    explanation_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _schedule_service(db)
    service.delete_explanation(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        explanation_id=explanation_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
