"""Month picker and budget category endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from cronograma.api.dependencies import get_reference_date
from cronograma.core.config import get_settings
from cronograma.db.dependencies import get_db_session
from cronograma.services.calendar import (
    MAX_YEAR,
    MIN_YEAR,
    format_month_label,
    format_month_short,
    generate_month_range,
    is_supported_month,
    month_key,
    month_token,
)
from cronograma.services.schedule_service import ScheduleService

router = APIRouter(tags=["calendar"])


@router.get("/calendar/months")
def list_calendar_months(
    offset: int = Query(default=0),
    count: int | None = Query(default=None, ge=1),
    reference_date: date = Depends(get_reference_date),
) -> dict[str, object]:
    settings = get_settings()
    requested = count if count is not None else settings.max_picker_months
    if requested > settings.max_picker_months:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"count must be at most {settings.max_picker_months}.",
        )

    try:
        months = generate_month_range(offset, requested, reference=reference_date)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if not all(is_supported_month(month) for month in months):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Requested months fall outside {MIN_YEAR}-{MAX_YEAR}.",
        )
    return {
        "items": [
            {
                "month": month_key(month),
                "token": month_token(month),
                "label": format_month_label(month, settings.report_locale),
                "short_label": format_month_short(month, settings.report_locale),
            }
            for month in months
        ]
    }


@router.get("/categories")
def list_budget_categories(db: Session = Depends(get_db_session)) -> dict[str, list[object]]:
    service = ScheduleService(db)
    return {"items": [service.serialize_category(category) for category in service.list_categories()]}
