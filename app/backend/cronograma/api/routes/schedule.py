"""Schedule plan, line, activity and reference line endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from cronograma.api.dependencies import get_reference_date
from cronograma.core.auth import RequestActor, get_request_actor
from cronograma.db.dependencies import get_db_session
from cronograma.services.schedule_service import (
    LineCreateData,
    LineUpdateData,
    PlanUpdateData,
    ReferenceLineData,
    ReferenceLineUpdateData,
    ScheduleService,
    SpanData,
    SpanUpdateData,
)

router = APIRouter(prefix="/clients/{client_id}/projects/{project_id}/schedule", tags=["schedule"])


class SpanPayload(BaseModel):
    start_month: str = Field(min_length=6, max_length=10)
    start_week: int
    end_month: str = Field(min_length=6, max_length=10)
    end_week: int


class SpanUpdatePayload(BaseModel):
    start_month: str | None = Field(default=None, min_length=6, max_length=10)
    start_week: int | None = None
    end_month: str | None = Field(default=None, min_length=6, max_length=10)
    end_week: int | None = None


class PlanUpdatePayload(BaseModel):
    start_month: str | None = Field(default=None, min_length=6, max_length=10)
    months_count: int | None = None


class LineCreatePayload(BaseModel):
    category_id: UUID
    amount: Decimal
    is_discount: bool = False
    label: str | None = Field(default=None, max_length=255)
    span: SpanPayload


class LineUpdatePayload(BaseModel):
    category_id: UUID | None = None
    amount: Decimal | None = None
    is_discount: bool | None = None
    label: str | None = Field(default=None, max_length=255)
    order_index: int | None = Field(default=None, ge=0)
    span: SpanUpdatePayload | None = None


class ReferenceLinePayload(BaseModel):
    month: str = Field(min_length=6, max_length=10)
    week: int
    label: str | None = Field(default=None, max_length=120)
    color: str | None = Field(default=None, max_length=7)


class ReferenceLineUpdatePayload(BaseModel):
    month: str | None = Field(default=None, min_length=6, max_length=10)
    week: int | None = None
    label: str | None = Field(default=None, max_length=120)
    color: str | None = Field(default=None, max_length=7)


def _schedule_service(db: Session) -> ScheduleService:
    return ScheduleService(db)


def _span(payload: SpanPayload) -> SpanData:
    return SpanData(
        start_month=payload.start_month,
        start_week=payload.start_week,
        end_month=payload.end_month,
        end_week=payload.end_week,
    )


def _span_update(payload: SpanUpdatePayload) -> SpanUpdateData:
    return SpanUpdateData(
        start_month=payload.start_month,
        start_week=payload.start_week,
        end_month=payload.end_month,
        end_week=payload.end_week,
    )


@router.get("")
def get_schedule(
    client_id: UUID,
    project_id: UUID,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    return service.read_schedule(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
    )


@router.patch("")
def update_schedule_plan(
    client_id: UUID,
    project_id: UUID,
    payload: PlanUpdatePayload,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    plan = service.update_plan(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        data=PlanUpdateData(start_month=payload.start_month, months_count=payload.months_count),
    )
    return service.serialize_plan(plan)


@router.post("/lines", status_code=status.HTTP_201_CREATED)
def create_schedule_line(
    client_id: UUID,
    project_id: UUID,
    payload: LineCreatePayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    line, activity = service.create_line(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        data=LineCreateData(
            category_id=payload.category_id,
            amount=payload.amount,
            is_discount=payload.is_discount,
            label=payload.label,
            span=_span(payload.span),
        ),
    )
    return service.serialize_line(line, activity, service.repo.get_category(line.category_id))


@router.patch("/lines/{line_id}")
def update_schedule_line(
    client_id: UUID,
    project_id: UUID,
    line_id: UUID,
    payload: LineUpdatePayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    line, activity = service.update_line(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        line_id=line_id,
        data=LineUpdateData(
            category_id=payload.category_id,
            amount=payload.amount,
            is_discount=payload.is_discount,
            label=payload.label,
            order_index=payload.order_index,
            span=_span_update(payload.span) if payload.span is not None else None,
        ),
    )
    return service.serialize_line(line, activity, service.repo.get_category(line.category_id))


@router.delete("/lines/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule_line(
    client_id: UUID,
    project_id: UUID,
    line_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _schedule_service(db)
    service.delete_line(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        line_id=line_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/lines/{line_id}/activity", status_code=status.HTTP_201_CREATED)
def create_schedule_activity(
    client_id: UUID,
    project_id: UUID,
    line_id: UUID,
    payload: SpanPayload,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    activity = service.create_activity(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        line_id=line_id,
        data=_span(payload),
    )
    return service.serialize_activity(activity)


@router.patch("/activities/{activity_id}")
def update_schedule_activity(
    client_id: UUID,
    project_id: UUID,
    activity_id: UUID,
    payload: SpanUpdatePayload,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    activity = service.update_activity(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        activity_id=activity_id,
        data=_span_update(payload),
    )
    return service.serialize_activity(activity)


@router.delete("/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule_activity(
    client_id: UUID,
    project_id: UUID,
    activity_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _schedule_service(db)
    service.delete_activity(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        activity_id=activity_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/calculations")
def get_schedule_calculations(
    client_id: UUID,
    project_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    return service.read_calculations(client_id=client_id, project_id=project_id, reference_date=reference_date)


@router.get("/reference-lines")
def list_reference_lines(
    client_id: UUID,
    project_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, list[dict[str, object]]]:
    service = _schedule_service(db)
    rows = service.list_reference_lines(client_id=client_id, project_id=project_id, reference_date=reference_date)
    return {"items": [service.serialize_reference_line(row) for row in rows]}


@router.post("/reference-lines", status_code=status.HTTP_201_CREATED)
def create_reference_line(
    client_id: UUID,
    project_id: UUID,
    payload: ReferenceLinePayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    row = service.create_reference_line(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        data=ReferenceLineData(month=payload.month, week=payload.week, label=payload.label, color=payload.color),
    )
    return service.serialize_reference_line(row)


@router.patch("/reference-lines/{reference_line_id}")
def update_reference_line(
    client_id: UUID,
    project_id: UUID,
    reference_line_id: UUID,
    payload: ReferenceLineUpdatePayload,
    actor: RequestActor = Depends(get_request_actor),
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _schedule_service(db)
    row = service.update_reference_line(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        actor=actor,
        reference_line_id=reference_line_id,
        data=ReferenceLineUpdateData(
            month=payload.month,
            week=payload.week,
            label=payload.label,
            color=payload.color,
        ),
    )
    return service.serialize_reference_line(row)


@router.delete("/reference-lines/{reference_line_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reference_line(
    client_id: UUID,
    project_id: UUID,
    reference_line_id: UUID,
    reference_date: date = Depends(get_reference_date),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _schedule_service(db)
    service.delete_reference_line(
        client_id=client_id,
        project_id=project_id,
        reference_date=reference_date,
        reference_line_id=reference_line_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
