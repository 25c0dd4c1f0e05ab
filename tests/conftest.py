import itertools
import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from kpi_backend.database import Base, get_db
from kpi_backend.main import app
from kpi_backend.models.employee import Employee, EmployeeRole
from kpi_backend.models.kpi_template import KPIItem, KPITemplate
from kpi_backend.models.performance_rule import PerformanceRule
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Session for one test. Services commit for real, so the tables are
    emptied afterwards instead of rolling back an outer transaction.
    """
    session = TestingSessionLocal()

    yield session

    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def as_user(employee):
    """Request headers identifying the acting employee."""
    return {"X-User-ID": str(employee.id)}


@pytest.fixture
def auth():
    return as_user


@pytest.fixture
def make_employee(db_session):
    counter = itertools.count(1)

    def _make(name=None, role=EmployeeRole.EMPLOYEE, manager=None, is_active=True):
        n = next(counter)
        employee = Employee(
            name=name or f"Employee {n}",
            email=f"employee{n}@example.com",
            role=role.value,
            manager_id=manager.id if manager else None,
            is_active=is_active,
        )
        db_session.add(employee)
        db_session.commit()
        db_session.refresh(employee)
        return employee
    return _make


@pytest.fixture
def hr_user(make_employee):
    return make_employee(name="Helen HR", role=EmployeeRole.HR)


@pytest.fixture
def manager_user(make_employee):
    return make_employee(name="Mark Manager", role=EmployeeRole.MANAGER)


@pytest.fixture
def employee_user(make_employee, manager_user):
    return make_employee(name="Eve Employee", manager=manager_user)


@pytest.fixture
def peer_user(make_employee, manager_user):
    return make_employee(name="Peter Peer", manager=manager_user)


@pytest.fixture
def template(db_session):
    template = KPITemplate(name="Engineering KPI", period="yearly")
    template.items = [
        KPIItem(name="Delivery", max_score=100, sort_order=1),
        KPIItem(name="Quality", max_score=100, sort_order=2),
    ]
    db_session.add(template)
    db_session.commit()
    db_session.refresh(template)
    return template


@pytest.fixture
def set_rule(db_session):
    """Store the rule row directly; keyword arguments override the defaults."""
    def _set(**overrides):
        rule = db_session.query(PerformanceRule).first()
        if rule is None:
            rule = PerformanceRule.default()
            db_session.add(rule)
        for key, value in overrides.items():
            setattr(rule, key, value)
        db_session.commit()
        db_session.refresh(rule)
        return rule
    return _set


@pytest.fixture
def create_evaluation(client, hr_user, template):
    def _create(employee, **overrides):
        payload = {
            "employee_id": employee.id,
            "template_id": template.id,
            "period": "yearly",
            "year": datetime.now().year,
        }
        payload.update(overrides)
        response = client.post("/api/evaluations/", json=payload, headers=as_user(hr_user))
        assert response.status_code == 201, response.text
        return response.json()
    return _create


def score_ids(evaluation):
    return [score["id"] for score in evaluation["scores"]]


@pytest.fixture
def submit_self(client):
    """Enter one self score per item and submit the self review."""
    def _submit(evaluation, employee, values):
        for score_id, value in zip(score_ids(evaluation), values):
            response = client.put(
                f"/api/scores/{score_id}/self",
                json={"self_score": value, "self_comment": "self"},
                headers=as_user(employee),
            )
            assert response.status_code == 200, response.text
        response = client.put(
            f"/api/evaluations/{evaluation['id']}/status",
            json={"status": "self_evaluated"},
            headers=as_user(employee),
        )
        assert response.status_code == 200, response.text
        return response.json()
    return _submit


@pytest.fixture
def submit_manager(client):
    """Enter one manager score per item and submit the manager review."""
    def _submit(evaluation, manager, values):
        for score_id, value in zip(score_ids(evaluation), values):
            response = client.put(
                f"/api/scores/{score_id}/manager",
                json={"manager_score": value, "manager_comment": "manager"},
                headers=as_user(manager),
            )
            assert response.status_code == 200, response.text
        response = client.put(
            f"/api/evaluations/{evaluation['id']}/status",
            json={"status": "manager_evaluated"},
            headers=as_user(manager),
        )
        assert response.status_code == 200, response.text
        return response.json()
    return _submit


@pytest.fixture
def invite(client, hr_user):
    def _invite(evaluation, *invitees):
        response = client.post(
            f"/api/evaluations/{evaluation['id']}/invitations",
            json={"invitee_ids": [invitee.id for invitee in invitees], "message": "Please score"},
            headers=as_user(hr_user),
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _invite


@pytest.fixture
def score_invitation(client):
    """Accept an invitation and score every item, without completing it."""
    def _score(invitation_id, invitee, values):
        response = client.post(f"/api/invitations/{invitation_id}/accept", headers=as_user(invitee))
        assert response.status_code == 200, response.text
        detail = client.get(f"/api/invitations/{invitation_id}", headers=as_user(invitee)).json()
        for invited_score, value in zip(detail["scores"], values):
            response = client.put(
                f"/api/invitations/scores/{invited_score['id']}",
                json={"score": value, "comment": "peer"},
                headers=as_user(invitee),
            )
            assert response.status_code == 200, response.text
        return detail
    return _score
