from datetime import date, timedelta
from decimal import Decimal

import pytest

from labourhub.errors import ValidationError
from labourhub.models.models import PayRate
from labourhub.services.time_rules import local_today
from labourhub.services.work_logs import create_work_log, update_work_log

from conftest import add_work_log, auth_headers


def _body(project, labourer, work_date=None, open_m="10", close_m="4"):
    return {
        "project_id": str(project.id),
        "labourer_id": str(labourer.id),
        "work_date": (work_date or local_today()).isoformat(),
        "open_trenching_meters": open_m,
        "close_trenching_meters": close_m,
    }


def test_earnings_from_project_defaults(db, admin, project, make_labourer):
    labourer = make_labourer(project)
    work_log = create_work_log(db, _body(project, labourer), admin.id)
    # 10 x 10.00 + 4 x 5.00
    assert work_log.total_earnings == Decimal("120.00")
    assert work_log.work_date == local_today()


def test_earnings_use_rate_effective_today(db, admin, project, make_labourer, employee_type):
    labourer = make_labourer(project)
    today = local_today()
    for amount, effective in (("12.50", today - timedelta(days=30)), ("99.00", today + timedelta(days=1))):
        db.add(PayRate(
            project_id=project.id,
            employee_type_id=employee_type.id,
            category="open_trenching",
            amount=Decimal(amount),
            unit="per_meter",
            effective_date=effective,
            created_by=admin.id,
        ))
    db.commit()

    work_log = create_work_log(db, _body(project, labourer), admin.id)
    # Open at 12.50 from the rate table, close falls back to the 5.00 default
    assert work_log.total_earnings == Decimal("145.00")


def test_zero_when_no_rate_and_no_default(db, admin, project, make_labourer):
    project.default_open_rate = None
    project.default_close_rate = None
    db.commit()
    labourer = make_labourer(project)
    assert create_work_log(db, _body(project, labourer), admin.id).total_earnings == Decimal("0.00")


@pytest.mark.parametrize("offset", [-1, 1])
def test_only_today_can_be_logged(db, admin, project, make_labourer, offset):
    labourer = make_labourer(project)
    with pytest.raises(ValidationError):
        create_work_log(db, _body(project, labourer, local_today() + timedelta(days=offset)), admin.id)


def test_update_recomputes_earnings(db, admin, project, make_labourer):
    labourer = make_labourer(project)
    work_log = create_work_log(db, _body(project, labourer), admin.id)
    updated = update_work_log(db, work_log.id, {"open_trenching_meters": Decimal("20")}, admin.id)
    assert updated.total_earnings == Decimal("220.00")


def test_past_logs_cannot_be_edited(db, admin, project, make_labourer):
    labourer = make_labourer(project)
    old = add_work_log(db, project, labourer, admin, date(2025, 8, 4))
    with pytest.raises(ValidationError):
        update_work_log(db, old.id, {"open_trenching_meters": Decimal("1")}, admin.id)


def test_update_cannot_move_date(db, admin, project, make_labourer):
    labourer = make_labourer(project)
    work_log = create_work_log(db, _body(project, labourer), admin.id)
    with pytest.raises(ValidationError):
        update_work_log(db, work_log.id, {"work_date": (local_today() - timedelta(days=1)).isoformat()}, admin.id)


def test_work_log_api(client, admin, project, make_labourer, make_user):
    labourer = make_labourer(project)
    supervisor = make_user("supervisor")

    created = client.post("/work-logs", json=_body(project, labourer), headers=auth_headers(supervisor))
    assert created.status_code == 201
    assert created.json()["total_earnings"] == "120.00"
    work_log_id = created.json()["id"]

    # Supervisors record but cannot edit
    response = client.put(f"/work-logs/{work_log_id}", json={"close_trenching_meters": "0"}, headers=auth_headers(supervisor))
    assert response.status_code == 403

    response = client.put(f"/work-logs/{work_log_id}", json={"close_trenching_meters": "0"}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["total_earnings"] == "100.00"

    yesterday = _body(project, labourer, local_today() - timedelta(days=1))
    response = client.post("/work-logs", json=yesterday, headers=auth_headers(supervisor))
    assert response.status_code == 400

    listed = client.get(f"/projects/{project.id}/work-logs", headers=auth_headers(supervisor)).json()
    assert len(listed) == 1
    by_labourer = client.get(f"/labourers/{labourer.id}/work-logs", headers=auth_headers(supervisor)).json()
    assert by_labourer[0]["id"] == work_log_id


def test_negative_metres_rejected(client, admin, project, make_labourer):
    labourer = make_labourer(project)
    response = client.post("/work-logs", json=_body(project, labourer, open_m="-1"), headers=auth_headers(admin))
    assert response.status_code == 422
