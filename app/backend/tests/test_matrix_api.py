from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cronograma.models.entities import MatrixOverride
from tests.conftest import SeededProject, actor_headers, add_budget, add_installments


def _seed_schedule(client: TestClient, db: Session, seeded: SeededProject) -> None:
    cim = seeded.categories[0]
    add_budget(db, seeded, cim, "120000")
    add_installments(db, seeded, [(date(2026, 2, 14), "60000"), (date(2026, 2, 3), "6000")])
    response = client.post(
        f"{seeded.base_url}/lines",
        json={
            "category_id": str(cim.id),
            "amount": "120000",
            "span": {"start_month": "2026-01", "start_week": 1, "end_month": "2026-03", "end_week": 4},
        },
        headers=actor_headers(),
    )
    assert response.status_code == 201


def _row(matrix: dict[str, object], concept: str) -> dict[str, object]:
    return next(row for row in matrix["rows"] if row["concept"] == concept)


def test_matrix_reports_computed_values_without_overrides(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)

    response = client.get(f"{seeded_project.base_url}/matrix", headers=actor_headers())

    assert response.status_code == 200
    matrix = response.json()
    assert len(matrix["months"]) == 12
    assert matrix["has_overrides"] is False
    assert [row["concept"] for row in matrix["rows"]] == [
        "gasto_obra",
        "avance_parcial",
        "avance_acumulado",
        "ministraciones",
        "inversion_acumulada",
        "fecha_pago",
    ]
    gasto = _row(matrix, "gasto_obra")
    assert [cell["text"] for cell in gasto["cells"][:4]] == ["$40,000.00", "$40,000.00", "$40,000.00", "$0.00"]
    assert gasto["total_text"] == "$120,000.00"
    assert _row(matrix, "ministraciones")["cells"][1]["text"] == "$66,000.00"
    assert _row(matrix, "fecha_pago")["cells"][1]["text"] == "03/02/2026"
    assert _row(matrix, "fecha_pago")["total"] is None
    assert _row(matrix, "avance_acumulado")["total_text"] == "100.0%"


def test_bulk_override_marks_cells_and_recomputes_totals(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)

    response = client.put(
        f"{seeded_project.base_url}/matrix/overrides/bulk",
        json={
            "entries": [
                {"month": "2026-02", "concept": "gasto_obra", "value": "$45,000"},
                {"month": "2026-02", "concept": "fecha_pago", "value": "20/02/2026"},
            ]
        },
        headers=actor_headers("analyst-1"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["updated_entries"] == 2
    assert {row["value"] for row in body["overrides"]} == {"45000.00", "2026-02-20"}
    assert all(row["updated_by"] == "analyst-1" for row in body["overrides"])

    matrix = client.get(f"{seeded_project.base_url}/matrix", headers=actor_headers()).json()
    assert matrix["has_overrides"] is True
    gasto = _row(matrix, "gasto_obra")
    february = gasto["cells"][1]
    assert february["overridden"] is True
    assert february["text"] == "$45,000.00*"
    assert february["computed"] == "40000.00"
    assert february["value"] == "45000.00"
    assert gasto["total_text"] == "$125,000.00"
    assert _row(matrix, "fecha_pago")["cells"][1]["text"] == "20/02/2026*"
    assert len(matrix["overrides"]) == 2

    # Calculations keep the computed series.
    calculations = client.get(f"{seeded_project.base_url}/calculations", headers=actor_headers()).json()
    assert calculations["series"][1]["expenditure"] == "40000.00"


def test_bulk_override_upserts_existing_entry(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)
    url = f"{seeded_project.base_url}/matrix/overrides/bulk"

    client.put(url, json={"entries": [{"month": "2026-03", "concept": "avance_parcial", "value": "30"}]})
    second = client.put(url, json={"entries": [{"month": "2026-03", "concept": "avance_parcial", "value": "35%"}]})

    assert second.status_code == 200
    assert db_session.scalar(select(func.count()).select_from(MatrixOverride)) == 1
    matrix = client.get(f"{seeded_project.base_url}/matrix").json()
    assert _row(matrix, "avance_parcial")["cells"][2]["text"] == "35.0%*"


def test_non_superseding_override_is_stored_but_not_shown(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)

    response = client.put(
        f"{seeded_project.base_url}/matrix/overrides/bulk",
        json={"entries": [{"month": "2026-01", "concept": "ministraciones", "value": "1", "supersedes": False}]},
    )

    assert response.status_code == 200
    matrix = client.get(f"{seeded_project.base_url}/matrix").json()
    assert matrix["has_overrides"] is False
    assert matrix["overrides"][0]["supersedes"] is False


def test_delete_override_reverts_to_computed_value(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)
    client.put(
        f"{seeded_project.base_url}/matrix/overrides/bulk",
        json={"entries": [{"month": "2026-01", "concept": "gasto_obra", "value": "1000"}]},
    )

    deleted = client.delete(
        f"{seeded_project.base_url}/matrix/overrides",
        params={"month": "2026-01", "concept": "gasto_obra"},
        headers=actor_headers(),
    )
    missing = client.delete(
        f"{seeded_project.base_url}/matrix/overrides",
        params={"month": "2026-01", "concept": "gasto_obra"},
        headers=actor_headers(),
    )

    assert deleted.status_code == 204
    assert missing.status_code == 404
    matrix = client.get(f"{seeded_project.base_url}/matrix").json()
    cell = _row(matrix, "gasto_obra")["cells"][0]
    assert cell["overridden"] is False
    assert cell["text"] == "$40,000.00"


def test_bulk_override_rejects_invalid_entries_atomically(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)
    url = f"{seeded_project.base_url}/matrix/overrides/bulk"
    valid = {"month": "2026-01", "concept": "gasto_obra", "value": "5000"}

    bad_value = client.put(url, json={"entries": [valid, {"month": "2026-02", "concept": "gasto_obra", "value": "mucho"}]})
    bad_concept = client.put(url, json={"entries": [{"month": "2026-02", "concept": "utilidad", "value": "1"}]})
    outside = client.put(url, json={"entries": [{"month": "2027-06", "concept": "gasto_obra", "value": "1"}]})
    duplicate = client.put(url, json={"entries": [valid, valid]})
    bad_month = client.put(url, json={"entries": [{"month": "2026-13", "concept": "gasto_obra", "value": "1"}]})

    assert bad_value.status_code == 422
    assert bad_concept.status_code == 422
    assert outside.status_code == 422
    assert "horizon" in outside.json()["detail"]
    assert duplicate.status_code == 422
    assert bad_month.status_code == 422
    assert db_session.scalar(select(func.count()).select_from(MatrixOverride)) == 0


def test_matrix_explanations_crud_and_order(client: TestClient, seeded_project: SeededProject) -> None:
    url = f"{seeded_project.base_url}/matrix/explanations"

    first = client.post(
        url,
        json={"title": "Anticipo", "description": "El anticipo cubre el 30% de la obra negra."},
        headers=actor_headers(),
    )
    assert first.status_code == 201, first.text
    second = client.post(url, json={"title": "Ministraciones"}, headers=actor_headers())
    third = client.post(url, json={"title": "Fechas tentativas", "description": "Sujetas a avance."}, headers=actor_headers())
    ids = [first.json()["id"], second.json()["id"], third.json()["id"]]
    assert [item.json()["order_index"] for item in (first, second, third)] == [0, 1, 2]
    assert second.json()["description"] == ""

    reordered = client.put(f"{url}/order", json={"ids": [ids[2], ids[0], ids[1]]}, headers=actor_headers())
    assert reordered.status_code == 200
    assert [row["title"] for row in reordered.json()["items"]] == ["Fechas tentativas", "Anticipo", "Ministraciones"]

    updated = client.patch(f"{url}/{ids[1]}", json={"description": "Dos pagos mensuales."}, headers=actor_headers())
    assert updated.status_code == 200
    assert updated.json()["title"] == "Ministraciones"
    assert updated.json()["description"] == "Dos pagos mensuales."

    assert client.delete(f"{url}/{ids[0]}", headers=actor_headers()).status_code == 204
    matrix = client.get(f"{seeded_project.base_url}/matrix", headers=actor_headers()).json()
    assert [row["title"] for row in matrix["explanations"]] == ["Fechas tentativas", "Ministraciones"]
    assert client.patch(f"{url}/{ids[0]}", json={"title": "X"}, headers=actor_headers()).status_code == 404


def test_matrix_explanations_reject_invalid_input(client: TestClient, seeded_project: SeededProject) -> None:
    url = f"{seeded_project.base_url}/matrix/explanations"
    row = client.post(url, json={"title": "Anticipo"}, headers=actor_headers()).json()

    assert client.post(url, json={"title": "   "}, headers=actor_headers()).status_code == 422
    assert client.post(url, json={"title": ""}, headers=actor_headers()).status_code == 422
    assert client.put(f"{url}/order", json={"ids": []}, headers=actor_headers()).status_code == 422
    assert client.put(f"{url}/order", json={"ids": [row["id"], row["id"]]}, headers=actor_headers()).status_code == 422
    assert client.patch(f"{url}/{row['id']}", json={"title": " "}, headers=actor_headers()).status_code == 422
