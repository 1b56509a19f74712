from decimal import Decimal

from labourhub.models.models import AuditLog, EmployeeType, PayRate
from labourhub.services.projects import create_project
from labourhub.services.time_rules import local_today

from conftest import auth_headers


def test_list_shows_active_types_only(client, db, admin, employee_type):
    db.add(EmployeeType(name="Retired Role", is_active=False))
    db.commit()
    names = [t["name"] for t in client.get("/employee-types", headers=auth_headers(admin)).json()]
    assert names == ["General Worker"]


def test_create_and_rename(client, admin):
    headers = auth_headers(admin)
    created = client.post("/employee-types", json={"name": "Team Leader"}, headers=headers)
    assert created.status_code == 201
    type_id = created.json()["id"]

    renamed = client.put(f"/employee-types/{type_id}", json={"name": "Foreman"}, headers=headers)
    assert renamed.json()["name"] == "Foreman"
    assert client.put(f"/employee-types/{type_id}", json={"name": " "}, headers=headers).status_code == 400


def test_delete_is_idempotent(client, db, admin, employee_type):
    headers = auth_headers(admin)
    first = client.delete(f"/employee-types/{employee_type.id}", headers=headers)
    assert first.status_code == 200
    assert first.json()["already_deactivated"] is False

    second = client.delete(f"/employee-types/{employee_type.id}", headers=headers)
    assert second.status_code == 200
    assert second.json()["already_deactivated"] is True

    assert db.query(AuditLog).filter(AuditLog.action == "DELETE").count() == 1
    assert client.get("/employee-types", headers=headers).json() == []


def test_writes_need_admin_tier(client, make_user):
    supervisor = make_user("supervisor")
    response = client.post("/employee-types", json={"name": "Digger"}, headers=auth_headers(supervisor))
    assert response.status_code == 403


def test_project_default_rates_per_active_type(db, admin, employee_type):
    db.add(EmployeeType(name="Team Leader", is_active=True))
    db.add(EmployeeType(name="Retired Role", is_active=False))
    db.commit()

    project = create_project(db, {
        "name": "Alex Fibre",
        "default_open_rate": Decimal("11.00"),
        "default_close_rate": Decimal("6.00"),
    }, admin.id)

    rates = db.query(PayRate).filter(PayRate.project_id == project.id).all()
    assert len(rates) == 4
    assert {r.effective_date for r in rates} == {local_today()}
    assert sorted(r.amount for r in rates) == [Decimal("6.00"), Decimal("6.00"), Decimal("11.00"), Decimal("11.00")]


def test_project_without_defaults_gets_no_rates(db, admin, employee_type):
    project = create_project(db, {"name": "Bare"}, admin.id)
    assert db.query(PayRate).filter(PayRate.project_id == project.id).count() == 0
