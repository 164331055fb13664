"""Request actor extraction.

Authentication is owned by the surrounding platform; this service only needs
to know who issued a write so overrides and lines stay traceable.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from cronograma.core.config import get_settings


@dataclass(frozen=True)
class RequestActor:
    """Actor resolved from trusted proxy headers."""

    actor_id: str


def _resolve_actor_id(x_actor_id: str | None) -> str:
    if x_actor_id and x_actor_id.strip():
        return x_actor_id.strip()

    settings = get_settings()
    if settings.dev_actor_id.strip():
        return settings.dev_actor_id.strip()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing X-Actor-Id header and no development actor is configured.",
    )


def get_request_actor(
    x_actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
) -> RequestActor:
    """Resolve the actor issuing the current request.

    Header strategy:
    - Trusted headers set by the platform gateway / test clients.
    - Development fallback principal from settings when headers are absent.
    """

    return RequestActor(actor_id=_resolve_actor_id(x_actor_id))
