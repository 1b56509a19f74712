import os
import tempfile
from datetime import date, datetime
from decimal import Decimal

# Settings are read at import time, so the environment must be ready first
_TMP_DIR = tempfile.mkdtemp(prefix="labourhub-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP_DIR, "test.db")
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TZ_DEFAULT"] = "Africa/Johannesburg"
os.environ["ALLOWED_EMAIL_DOMAINS"] = "example.com,corp.example.com"
os.environ["ADMIN_EMAIL_DOMAINS"] = "corp.example.com"
os.environ["SUPER_ADMIN_EMAIL"] = "owner@example.com"

import pytest
from fastapi.testclient import TestClient

from labourhub.auth.security import create_access_token, create_labourer_token
from labourhub.db import Base, SessionLocal, engine, get_db
from labourhub.main import app
from labourhub.models.models import EmployeeType, Project, User, WorkLog
from labourhub.services.labourers import create_labourer


VALID_ID = "8001015009087"
VALID_ID_FEMALE = "8001014999080"
VALID_ID_BOUNDARY = "8001015000086"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="admin", email=None, first_name="Test", last_name=None):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name or role.replace("_", " ").title(),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), roles=[user.role])}"}


def labourer_headers(labourer) -> dict:
    return {"Authorization": f"Bearer {create_labourer_token(str(labourer.id))}"}


@pytest.fixture
def admin(make_user):
    return make_user("admin", first_name="Alice", last_name="Admin")


@pytest.fixture
def employee_type(db):
    employee_type = EmployeeType(name="General Worker", is_active=True)
    db.add(employee_type)
    db.commit()
    db.refresh(employee_type)
    return employee_type


@pytest.fixture
def project(db, admin):
    project = Project(
        name="Soweto Fibre Phase 1",
        location="Soweto",
        status="active",
        payment_period="fortnightly",
        default_open_rate=Decimal("10.00"),
        default_close_rate=Decimal("5.00"),
        created_by=admin.id,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def labourer_data(employee_type, project=None, **overrides) -> dict:
    data = {
        "first_name": "Sipho",
        "surname": "Ndlovu",
        "id_number": VALID_ID,
        "contact_number": "0821234567",
        "employee_type_id": employee_type.id,
        "bank_name": "Capitec",
        "account_number": "1234567890",
        "account_type": "savings",
        "branch_code": "470010",
    }
    if project is not None:
        data["project_id"] = project.id
    data.update(overrides)
    return data


@pytest.fixture
def make_labourer(db, admin, employee_type):
    def _make(project=None, **overrides):
        return create_labourer(db, labourer_data(employee_type, project, **overrides), admin.id)

    return _make


@pytest.fixture
def two_labourers(make_labourer, project):
    first = make_labourer(project, first_name="Sipho", surname="Ndlovu", id_number=VALID_ID, contact_number="0821234567")
    second = make_labourer(project, first_name="Thandi", surname="Mokoena", id_number=VALID_ID_FEMALE, contact_number="0832345678")
    return first, second


def add_work_log(db, project, labourer, recorder, work_date: date, open_m="10", close_m="0", earnings="100.00"):
    """Insert a historical work log directly; the API only accepts today's date."""
    work_log = WorkLog(
        project_id=project.id,
        labourer_id=labourer.id,
        work_date=work_date,
        open_trenching_meters=Decimal(open_m),
        close_trenching_meters=Decimal(close_m),
        total_earnings=Decimal(earnings),
        recorded_by=recorder.id,
        recorded_at=datetime.utcnow(),
    )
    db.add(work_log)
    db.commit()
    return work_log


AUGUST_DAYS = [date(2025, 8, d) for d in (1, 4, 6, 11, 14)]


@pytest.fixture
def august_logs(db, project, two_labourers, admin):
    """Two labourers, five 100.00 logs each in 2025-08-01..2025-08-14."""
    for labourer in two_labourers:
        for day in AUGUST_DAYS:
            add_work_log(db, project, labourer, admin, day)
    return two_labourers
