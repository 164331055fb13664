"""Health check endpoints."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Liveness check for the schedule backend."""

    return {"status": "ok", "service": "cronograma"}
