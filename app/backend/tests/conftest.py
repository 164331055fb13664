from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cronograma.api.dependencies import get_reference_date
from cronograma.db.base import Base
from cronograma.db.dependencies import get_db_session
import cronograma.models.entities  # noqa: F401
from cronograma.main import create_app
from cronograma.models.entities import (
    BudgetCategory,
    Client,
    ClientProject,
    MatrixExplanation,
    MatrixOverride,
    ParametricBudgetItem,
    PaymentInstallment,
    PaymentPlan,
    ScheduleActivity,
    ScheduleLine,
    SchedulePlan,
    ScheduleReferenceLine,
)

TEST_TABLES = [
    BudgetCategory.__table__,
    Client.__table__,
    ClientProject.__table__,
    ParametricBudgetItem.__table__,
    PaymentPlan.__table__,
    PaymentInstallment.__table__,
    SchedulePlan.__table__,
    ScheduleLine.__table__,
    ScheduleActivity.__table__,
    MatrixOverride.__table__,
    ScheduleReferenceLine.__table__,
    MatrixExplanation.__table__,
]

REFERENCE_DATE = date(2026, 1, 15)
CONSTRUCTION = "Construcción"


@dataclass
class SeededProject:
    client: Client
    project: ClientProject
    categories: list[BudgetCategory]

    @property
    def base_url(self) -> str:
        return f"/api/v1/clients/{self.client.id}/projects/{self.project.id}/schedule"


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=TEST_TABLES)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_reference_date] = lambda: REFERENCE_DATE
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def actor_headers(actor_id: str = "planner-1") -> dict[str, str]:
    return {"X-Actor-Id": actor_id}


def add_category(db: Session, *, code: str, name: str, active: bool = True) -> BudgetCategory:
    row = BudgetCategory(code=code, name=name, department=CONSTRUCTION, active=active)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def add_budget(db: Session, seeded: SeededProject, category: BudgetCategory, amount: str) -> None:
    db.add(
        ParametricBudgetItem(
            client_id=seeded.client.id,
            project_id=seeded.project.id,
            category_id=category.id,
            amount=Decimal(amount),
        )
    )
    db.commit()


def add_installments(db: Session, seeded: SeededProject, installments: list[tuple[date, str]]) -> None:
    plan = PaymentPlan(project_id=seeded.project.id, is_current=True, created_at=datetime.utcnow())
    db.add(plan)
    db.flush()
    for number, (due_date, amount) in enumerate(installments, start=1):
        db.add(
            PaymentInstallment(
                payment_plan_id=plan.id,
                installment_no=number,
                due_date=due_date,
                amount=Decimal(amount),
            )
        )
    db.commit()


@pytest.fixture()
def seeded_project(db_session: Session) -> SeededProject:
    owner = Client(full_name="María López", email="maria@example.com", phone="555-0100")
    db_session.add(owner)
    db_session.flush()
    project = ClientProject(
        client_id=owner.id,
        project_name="Casa Jardín",
        project_location="Querétaro",
        construction_start_date=date(2026, 1, 5),
    )
    db_session.add(project)
    db_session.commit()
    db_session.refresh(owner)
    db_session.refresh(project)

    categories = [
        add_category(db_session, code="CIM", name="Cimentación"),
        add_category(db_session, code="EST", name="Estructura"),
        add_category(db_session, code="ACA", name="Acabados"),
    ]
    return SeededProject(client=owner, project=project, categories=categories)
