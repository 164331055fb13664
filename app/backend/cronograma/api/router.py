"""Top-level API router."""

from fastapi import APIRouter

from cronograma.api.routes.calendar import router as calendar_router
from cronograma.api.routes.exports import router as exports_router
from cronograma.api.routes.health import router as health_router
from cronograma.api.routes.matrix import router as matrix_router
from cronograma.api.routes.schedule import router as schedule_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(calendar_router)
api_router.include_router(schedule_router)
api_router.include_router(matrix_router)
api_router.include_router(exports_router)
