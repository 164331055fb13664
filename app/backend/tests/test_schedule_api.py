from __future__ import annotations

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cronograma.models.entities import ScheduleActivity, ScheduleLine, SchedulePlan
from cronograma.repositories.schedule_repository import ScheduleRepository
from cronograma.services.calendar import MonthWeek
from cronograma.services.schedule_service import bar_state
from tests.conftest import SeededProject, actor_headers, add_budget, add_category, add_installments


def line_payload(category_id: uuid.UUID, amount: str = "120000", **span: object) -> dict[str, object]:
    return {
        "category_id": str(category_id),
        "amount": amount,
        "span": {
            "start_month": span.get("start_month", "2026-01"),
            "start_week": span.get("start_week", 1),
            "end_month": span.get("end_month", "2026-03"),
            "end_week": span.get("end_week", 4),
        },
    }


def create_line(client: TestClient, seeded: SeededProject, payload: dict[str, object]) -> dict[str, object]:
    response = client.post(f"{seeded.base_url}/lines", json=payload, headers=actor_headers())
    assert response.status_code == 201, response.text
    return response.json()


def test_schedule_plan_is_created_lazily_once(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    first = client.get(seeded_project.base_url, headers=actor_headers())
    second = client.get(seeded_project.base_url, headers=actor_headers())

    assert first.status_code == 200
    assert second.status_code == 200
    plan = first.json()["plan"]
    assert plan["id"] == second.json()["plan"]["id"]
    assert plan["start_month"] == "2026-01"
    assert plan["months_count"] == 12
    assert plan["months"][0] == "2026-01"
    assert plan["months"][-1] == "2026-12"
    assert first.json()["lines"] == []
    assert db_session.scalar(select(func.count()).select_from(SchedulePlan)) == 1


def test_unknown_client_or_project_returns_404(client: TestClient, seeded_project: SeededProject) -> None:
    unknown_client = client.get(
        f"/api/v1/clients/{uuid.uuid4()}/projects/{seeded_project.project.id}/schedule",
        headers=actor_headers(),
    )
    unknown_project = client.get(
        f"/api/v1/clients/{seeded_project.client.id}/projects/{uuid.uuid4()}/schedule",
        headers=actor_headers(),
    )

    assert unknown_client.status_code == 404
    assert unknown_project.status_code == 404


def test_update_plan_horizon(client: TestClient, seeded_project: SeededProject) -> None:
    response = client.patch(
        seeded_project.base_url,
        json={"start_month": "202602", "months_count": 18},
        headers=actor_headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["start_month"] == "2026-02"
    assert len(body["months"]) == 18

    invalid = client.patch(seeded_project.base_url, json={"months_count": 0}, headers=actor_headers())
    assert invalid.status_code == 422


def test_create_line_numbers_lines_and_computes_duration(
    client: TestClient,
    seeded_project: SeededProject,
) -> None:
    cim, est, _ = seeded_project.categories

    first = create_line(client, seeded_project, line_payload(cim.id))
    second = create_line(
        client,
        seeded_project,
        line_payload(est.id, "50000", start_month="2026-02", start_week=3, end_month="2026-04", end_week=2),
    )

    assert first["line_no"] == 1
    assert first["category_code"] == "CIM"
    assert first["amount"] == "120000.00"
    assert first["activity"]["duration_weeks"] == 12
    assert second["line_no"] == 2
    assert second["order_index"] == 1
    assert second["activity"]["duration_weeks"] == 8

    schedule = client.get(seeded_project.base_url, headers=actor_headers()).json()
    assert [line["line_no"] for line in schedule["lines"]] == [1, 2]
    bars = {bar["category_code"]: bar for bar in schedule["bars"]}
    assert bars["CIM"]["month_index"] == 0
    assert bars["EST"]["month_index"] == 1
    assert bars["EST"]["start_week"] == 3
    assert bars["EST"]["visible"] is True
    assert bars["CIM"]["status"] == "in_progress"
    assert bars["CIM"]["progress"] == 0.0
    assert bars["EST"]["status"] == "pending"


def test_create_line_rejects_invalid_input(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    cim = seeded_project.categories[0]
    inactive = add_category(db_session, code="OLD", name="Obsoleta", active=False)

    backwards = client.post(
        f"{seeded_project.base_url}/lines",
        json=line_payload(cim.id, start_month="2026-03", end_month="2026-01"),
        headers=actor_headers(),
    )
    week_five = client.post(
        f"{seeded_project.base_url}/lines",
        json=line_payload(cim.id, end_week=5),
        headers=actor_headers(),
    )
    unknown_category = client.post(
        f"{seeded_project.base_url}/lines",
        json=line_payload(uuid.uuid4()),
        headers=actor_headers(),
    )
    inactive_category = client.post(
        f"{seeded_project.base_url}/lines",
        json=line_payload(inactive.id),
        headers=actor_headers(),
    )
    negative = client.post(
        f"{seeded_project.base_url}/lines",
        json=line_payload(cim.id, amount="-10"),
        headers=actor_headers(),
    )

    assert backwards.status_code == 422
    assert "after" in backwards.json()["detail"]
    assert week_five.status_code == 422
    assert unknown_category.status_code == 422
    assert inactive_category.status_code == 422
    assert negative.status_code == 422
    assert db_session.scalar(select(func.count()).select_from(ScheduleLine)) == 0


def test_discount_line_accepts_signed_amount(client: TestClient, seeded_project: SeededProject) -> None:
    payload = line_payload(seeded_project.categories[2].id, amount="-2500")
    payload["is_discount"] = True
    payload["label"] = "  Descuento por pronto pago "

    body = create_line(client, seeded_project, payload)

    assert body["is_discount"] is True
    assert body["amount"] == "-2500.00"
    assert body["label"] == "Descuento por pronto pago"


def test_update_activity_recomputes_duration(client: TestClient, seeded_project: SeededProject) -> None:
    line = create_line(client, seeded_project, line_payload(seeded_project.categories[0].id))
    activity_id = line["activity"]["id"]

    response = client.patch(
        f"{seeded_project.base_url}/activities/{activity_id}",
        json={"end_month": "2026-02", "end_week": 2},
        headers=actor_headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["start_month"] == "2026-01"
    assert body["end_month"] == "2026-02"
    assert body["duration_weeks"] == 6

    invalid = client.patch(
        f"{seeded_project.base_url}/activities/{activity_id}",
        json={"start_month": "2026-05"},
        headers=actor_headers(),
    )
    assert invalid.status_code == 422


def test_update_line_fields_and_span(client: TestClient, seeded_project: SeededProject) -> None:
    cim, est, _ = seeded_project.categories
    line = create_line(client, seeded_project, line_payload(cim.id))

    response = client.patch(
        f"{seeded_project.base_url}/lines/{line['id']}",
        json={"category_id": str(est.id), "amount": "90000", "span": {"start_week": 2}},
        headers=actor_headers("editor-2"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["category_code"] == "EST"
    assert body["amount"] == "90000.00"
    assert body["activity"]["start_week"] == 2
    assert body["activity"]["duration_weeks"] == 11


def test_second_activity_for_line_conflicts(client: TestClient, seeded_project: SeededProject) -> None:
    line = create_line(client, seeded_project, line_payload(seeded_project.categories[0].id))

    response = client.post(
        f"{seeded_project.base_url}/lines/{line['id']}/activity",
        json={"start_month": "2026-04", "start_week": 1, "end_month": "2026-04", "end_week": 4},
        headers=actor_headers(),
    )

    assert response.status_code == 409


def test_activity_can_be_removed_and_recreated(client: TestClient, seeded_project: SeededProject) -> None:
    line = create_line(client, seeded_project, line_payload(seeded_project.categories[0].id))

    removed = client.delete(f"{seeded_project.base_url}/activities/{line['activity']['id']}", headers=actor_headers())
    assert removed.status_code == 204

    schedule = client.get(seeded_project.base_url, headers=actor_headers()).json()
    assert schedule["lines"][0]["activity"] is None
    assert schedule["bars"] == []

    recreated = client.post(
        f"{seeded_project.base_url}/lines/{line['id']}/activity",
        json={"start_month": "2026-04", "start_week": 2, "end_month": "2026-04", "end_week": 3},
        headers=actor_headers(),
    )
    assert recreated.status_code == 201
    assert recreated.json()["duration_weeks"] == 2


def test_delete_line_cascades_to_activity_and_calculations(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    cim, est, _ = seeded_project.categories
    add_budget(db_session, seeded_project, cim, "120000")
    add_budget(db_session, seeded_project, est, "80000")
    keep = create_line(client, seeded_project, line_payload(cim.id))
    drop = create_line(client, seeded_project, line_payload(est.id, "80000"))

    before = client.get(f"{seeded_project.base_url}/calculations", headers=actor_headers()).json()
    assert {row["category_code"] for row in before["categories"]} == {"CIM", "EST"}

    response = client.delete(f"{seeded_project.base_url}/lines/{drop['id']}", headers=actor_headers())
    assert response.status_code == 204

    after = client.get(f"{seeded_project.base_url}/calculations", headers=actor_headers()).json()
    assert [row["category_code"] for row in after["categories"]] == ["CIM"]
    assert after["series"][0]["expenditure"] == "40000.00"

    schedule = client.get(seeded_project.base_url, headers=actor_headers()).json()
    assert [line["id"] for line in schedule["lines"]] == [keep["id"]]
    assert [bar["category_code"] for bar in schedule["bars"]] == ["CIM"]
    assert db_session.scalar(select(func.count()).select_from(ScheduleActivity)) == 1

    missing = client.delete(f"{seeded_project.base_url}/lines/{drop['id']}", headers=actor_headers())
    assert missing.status_code == 404


def test_failed_activity_insert_leaves_no_line_behind(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def failing_add_activity(self, activity):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(ScheduleRepository, "add_activity", failing_add_activity)

    response = client.post(
        f"{seeded_project.base_url}/lines",
        json=line_payload(seeded_project.categories[0].id),
        headers=actor_headers(),
    )

    assert response.status_code == 500
    assert "nothing was saved" in response.json()["detail"]
    assert db_session.scalar(select(func.count()).select_from(ScheduleLine)) == 0
    monkeypatch.undo()

    schedule = client.get(seeded_project.base_url, headers=actor_headers()).json()
    assert schedule["lines"] == []


def test_calculations_endpoint_reports_series(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    cim = seeded_project.categories[0]
    add_budget(db_session, seeded_project, cim, "120000")
    add_installments(
        db_session,
        seeded_project,
        [(date(2026, 1, 10), "30000"), (date(2026, 2, 10), "60000")],
    )
    create_line(client, seeded_project, line_payload(cim.id))

    response = client.get(f"{seeded_project.base_url}/calculations", headers=actor_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["total_budget"] == "120000.00"
    assert len(body["series"]) == 12
    january, february, march = body["series"][:3]
    assert january["expenditure"] == "40000.00"
    assert january["partial_progress"] == 33.3333
    assert march["cumulative_progress"] == 100.0
    assert january["disbursements"] == "30000.00"
    assert january["payment_dates"] == ["2026-01-10"]
    assert february["cumulative_investment"] == 75.0
    assert body["warnings"] == []


def test_line_without_budget_entry_emits_warning(client: TestClient, seeded_project: SeededProject) -> None:
    create_line(client, seeded_project, line_payload(seeded_project.categories[1].id))

    body = client.get(f"{seeded_project.base_url}/calculations", headers=actor_headers()).json()

    assert [warning["code"] for warning in body["warnings"]] == ["category_without_budget"]
    assert all(row["expenditure"] == "0.00" for row in body["series"])


def test_categories_endpoint_lists_active_construction_categories(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    add_category(db_session, code="ZZZ", name="Inactiva", active=False)

    response = client.get("/api/v1/categories")

    assert response.status_code == 200
    assert [item["code"] for item in response.json()["items"]] == ["ACA", "CIM", "EST"]


def test_bar_state_follows_reference_month() -> None:
    start = MonthWeek(date(2026, 1, 1), 1)
    end = MonthWeek(date(2026, 3, 1), 4)

    assert bar_state(start, end, date(2025, 12, 1)) == ("pending", 0.0)
    assert bar_state(start, end, date(2026, 1, 1)) == ("in_progress", 0.0)
    assert bar_state(start, end, date(2026, 3, 1)) == ("in_progress", 66.7)
    assert bar_state(start, end, date(2026, 4, 1)) == ("completed", 100.0)


def test_reference_lines_crud(client: TestClient, seeded_project: SeededProject) -> None:
    url = f"{seeded_project.base_url}/reference-lines"

    created = client.post(url, json={"month": "2026-03", "week": 2}, headers=actor_headers())
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["month"] == "2026-03"
    assert body["week"] == 2
    assert body["label"] == "Línea de Referencia"
    assert body["color"] == "#EF4444"
    assert body["updated_by"] == "planner-1"

    second = client.post(
        url,
        json={"month": "2026-02", "week": 4, "label": "Entrega de losa", "color": "#10b981"},
        headers=actor_headers(),
    ).json()
    assert second["color"] == "#10B981"

    listed = client.get(url, headers=actor_headers()).json()["items"]
    assert [row["label"] for row in listed] == ["Entrega de losa", "Línea de Referencia"]
    schedule = client.get(seeded_project.base_url, headers=actor_headers()).json()
    assert [row["id"] for row in schedule["reference_lines"]] == [second["id"], body["id"]]

    updated = client.patch(
        f"{url}/{body['id']}",
        json={"week": 4, "label": "Cierre de obra negra"},
        headers=actor_headers("analyst-1"),
    )
    assert updated.status_code == 200
    assert updated.json()["week"] == 4
    assert updated.json()["month"] == "2026-03"
    assert updated.json()["label"] == "Cierre de obra negra"
    assert updated.json()["updated_by"] == "analyst-1"

    deleted = client.delete(f"{url}/{body['id']}", headers=actor_headers())
    assert deleted.status_code == 204
    assert [row["id"] for row in client.get(url, headers=actor_headers()).json()["items"]] == [second["id"]]
    assert client.delete(f"{url}/{body['id']}", headers=actor_headers()).status_code == 404


def test_reference_line_validation(client: TestClient, seeded_project: SeededProject) -> None:
    url = f"{seeded_project.base_url}/reference-lines"

    assert client.post(url, json={"month": "2026-03", "week": 5}, headers=actor_headers()).status_code == 422
    assert client.post(url, json={"month": "2026-13", "week": 1}, headers=actor_headers()).status_code == 422
    assert client.post(url, json={"month": "2026-03", "week": 1, "color": "red"}, headers=actor_headers()).status_code == 422
    assert client.post(url, json={"month": "2026-03", "week": 1, "label": "  "}, headers=actor_headers()).status_code == 422

    row = client.post(url, json={"month": "2026-03", "week": 1}, headers=actor_headers()).json()
    rejected = client.patch(f"{url}/{row['id']}", json={"week": 0, "label": "Nueva"}, headers=actor_headers())
    assert rejected.status_code == 422
    unchanged = client.get(url, headers=actor_headers()).json()["items"][0]
    assert unchanged["week"] == 1
    assert unchanged["label"] == "Línea de Referencia"
