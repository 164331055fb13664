from __future__ import annotations

from dataclasses import fields

import pytest
from fastapi import HTTPException

from cronograma.core.auth import RequestActor, get_request_actor
from cronograma.core.config import get_settings


def test_request_actor_reads_trimmed_header() -> None:
    actor = get_request_actor(x_actor_id="  planner-7 ")

    assert actor == RequestActor(actor_id="planner-7")
    assert [item.name for item in fields(RequestActor)] == ["actor_id"]


def test_request_actor_falls_back_to_development_actor() -> None:
    assert get_request_actor(x_actor_id=None).actor_id == get_settings().dev_actor_id.strip()


def test_request_actor_without_header_or_fallback_is_unauthorized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_settings(), "dev_actor_id", "")

    with pytest.raises(HTTPException) as exc_info:
        get_request_actor(x_actor_id="   ")

    assert exc_info.value.status_code == 401
