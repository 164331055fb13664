from __future__ import annotations

import csv
import io
from datetime import date

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import Session

from cronograma.rendering.pdf_document import DocumentRenderError, ReferenceMarker
from cronograma.services import export_service
from tests.conftest import SeededProject, actor_headers, add_budget, add_installments

FILE_STEM = "Cronograma_Gantt_Mar_a_L_pez_Casa_Jard_n_2026-01-15"


def _seed_schedule(client: TestClient, db: Session, seeded: SeededProject) -> None:
    cim, est, aca = seeded.categories
    add_budget(db, seeded, cim, "120000")
    add_budget(db, seeded, est, "80000")
    add_installments(db, seeded, [(date(2026, 1, 20), "50000")])
    for category, amount, is_discount in ((cim, "120000", False), (est, "80000", False), (aca, "5000", True)):
        response = client.post(
            f"{seeded.base_url}/lines",
            json={
                "category_id": str(category.id),
                "amount": amount,
                "is_discount": is_discount,
                "span": {"start_month": "2026-01", "start_week": 1, "end_month": "2026-03", "end_week": 4},
            },
            headers=actor_headers(),
        )
        assert response.status_code == 201
    client.put(
        f"{seeded.base_url}/matrix/overrides/bulk",
        json={"entries": [{"month": "2026-02", "concept": "gasto_obra", "value": "70000"}]},
        headers=actor_headers(),
    )


def test_export_pdf_document(client: TestClient, db_session: Session, seeded_project: SeededProject) -> None:
    _seed_schedule(client, db_session, seeded_project)

    response = client.get(f"{seeded_project.base_url}/export", headers=actor_headers())

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == f'attachment; filename="{FILE_STEM}.pdf"'
    assert response.content.startswith(b"%PDF")


def test_export_csv_matrix_uses_displayed_values(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
) -> None:
    _seed_schedule(client, db_session, seeded_project)

    response = client.get(f"{seeded_project.base_url}/export", params={"format": "csv"}, headers=actor_headers())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert FILE_STEM in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.content.decode("utf-8"))))
    assert rows[0][:3] == ["concept", "label", "2026-01"]
    assert rows[0][-1] == "total"
    gasto = rows[1]
    assert gasto[0] == "gasto_obra"
    assert gasto[2:5] == ["$66,666.67", "$70,000.00*", "$66,666.66"]
    assert len(rows) == 7


def test_export_xlsx_workbook(client: TestClient, db_session: Session, seeded_project: SeededProject) -> None:
    _seed_schedule(client, db_session, seeded_project)

    response = client.get(f"{seeded_project.base_url}/export", params={"format": "XLSX"}, headers=actor_headers())

    assert response.status_code == 200
    assert f'{FILE_STEM}.xlsx"' in response.headers["content-disposition"]
    workbook = load_workbook(io.BytesIO(response.content))
    assert workbook.sheetnames == ["matriz", "partidas"]
    lines = list(workbook["partidas"].iter_rows(values_only=True))
    assert lines[0][0] == "line_no"
    assert [row[1] for row in lines[1:]] == ["CIM", "EST", "ACA"]
    assert lines[3][5] == "yes"


def test_export_rejects_unknown_format(client: TestClient, seeded_project: SeededProject) -> None:
    response = client.get(f"{seeded_project.base_url}/export", params={"format": "docx"}, headers=actor_headers())

    assert response.status_code == 422


def test_export_render_failure_returns_500(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _seed_schedule(client, db_session, seeded_project)

    def failing_render(document, *, timeout_seconds, clock=None):
        raise DocumentRenderError("Rendering exceeded the 30s deadline on page 3.")

    monkeypatch.setattr(export_service, "render_schedule_pdf", failing_render)

    response = client.get(f"{seeded_project.base_url}/export", headers=actor_headers())

    assert response.status_code == 500
    assert "deadline" in response.json()["detail"]


def test_export_pdf_carries_reference_lines_and_explanations(
    client: TestClient,
    db_session: Session,
    seeded_project: SeededProject,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _seed_schedule(client, db_session, seeded_project)
    client.post(
        f"{seeded_project.base_url}/reference-lines",
        json={"month": "2026-02", "week": 2, "label": "Colado de losa"},
        headers=actor_headers(),
    )
    client.post(
        f"{seeded_project.base_url}/matrix/explanations",
        json={"title": "Anticipo", "description": "Cubre el 30% de la obra negra."},
        headers=actor_headers(),
    )
    captured = {}
    real_render = export_service.render_schedule_pdf

    def capturing_render(document, *, timeout_seconds, clock=None):
        captured["document"] = document
        return real_render(document, timeout_seconds=timeout_seconds)

    monkeypatch.setattr(export_service, "render_schedule_pdf", capturing_render)

    response = client.get(f"{seeded_project.base_url}/export", headers=actor_headers())

    assert response.status_code == 200
    document = captured["document"]
    assert document.reference_lines == [ReferenceMarker(month_index=1, week=2, label="Colado de losa")]
    assert [(note.title, note.description) for note in document.explanations] == [
        ("Anticipo", "Cubre el 30% de la obra negra.")
    ]
    assert [bar.status for row in document.gantt_rows for bar in row.bars] == ["in_progress"] * 3
