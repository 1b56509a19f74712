from datetime import date
from decimal import Decimal

import pytest

from labourhub.db import SessionLocal
from labourhub.errors import ConflictError, NotFoundError, ValidationError
from labourhub.models.models import AuditLog, PaymentPeriodEntry
from labourhub.services import payment_periods
from labourhub.services.payment_periods import (
    can_transition,
    create_payment_period,
    submit_payment_period,
    update_payment_period,
)

from conftest import add_work_log, auth_headers


def entry_count(db, period):
    return db.query(PaymentPeriodEntry).filter(PaymentPeriodEntry.period_id == period.id).count()


def test_open_period_previews_total(db, project, august_logs, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)
    assert period.status == "open"
    assert period.total_amount == Decimal("1000.00")
    assert entry_count(db, period) == 0


def test_submission_materializes_once(db, project, august_logs, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)

    period, result = submit_payment_period(db, period.id, admin.id)
    assert result == {"materialized": True, "entry_count": 2}
    assert period.status == "submitted"
    assert period.total_amount == Decimal("1000.00")
    assert period.submitted_by == admin.id
    assert period.submitted_at is not None
    assert entry_count(db, period) == 2

    entries = db.query(PaymentPeriodEntry).filter(PaymentPeriodEntry.period_id == period.id).all()
    assert {e.days_worked for e in entries} == {5}
    assert {e.total_earnings for e in entries} == {Decimal("500.00")}
    assert {e.total_meters for e in entries} == {Decimal("50.00")}

    period, result = submit_payment_period(db, period.id, admin.id)
    assert result == {"materialized": False, "entry_count": 2}
    assert period.total_amount == Decimal("1000.00")
    assert entry_count(db, period) == 2


def test_resubmission_ignores_new_work_logs(db, project, august_logs, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)
    submit_payment_period(db, period.id, admin.id)
    add_work_log(db, project, august_logs[0], admin, date(2025, 8, 12), earnings="70.00")

    period, _ = submit_payment_period(db, period.id, admin.id)
    assert period.total_amount == Decimal("1000.00")


def test_concurrent_materialization_keeps_the_winner(db, project, august_logs, admin, monkeypatch):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)

    # Another request materializes the same period first
    other = SessionLocal()
    try:
        for labourer in august_logs:
            other.add(PaymentPeriodEntry(
                period_id=period.id,
                labourer_id=labourer.id,
                days_worked=5,
                open_meters=Decimal("50.00"),
                close_meters=Decimal("0.00"),
                total_meters=Decimal("50.00"),
                total_earnings=Decimal("500.00"),
            ))
        other.commit()
    finally:
        other.close()

    real_entries = payment_periods.get_payment_period_entries
    calls = {"n": 0}

    def stale_then_real(session, period_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return []
        return real_entries(session, period_id)

    monkeypatch.setattr(payment_periods, "get_payment_period_entries", stale_then_real)
    period, result = submit_payment_period(db, period.id, admin.id)

    assert calls["n"] == 2
    assert result == {"materialized": False, "entry_count": 2}
    assert period.status == "submitted"
    assert period.total_amount == Decimal("1000.00")
    assert entry_count(db, period) == 2


def test_submission_with_no_work(db, project, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)
    period, result = submit_payment_period(db, period.id, admin.id)
    assert result["entry_count"] == 0
    assert period.total_amount == Decimal("0.00")


def test_full_lifecycle(db, project, august_logs, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)
    submit_payment_period(db, period.id, admin.id)
    period, _ = update_payment_period(db, period.id, {"status": "approved"}, admin.id)
    assert period.approved_by == admin.id
    assert period.approved_at is not None
    period, _ = update_payment_period(db, period.id, {"status": "paid"}, admin.id)
    assert period.status == "paid"

    actions = [a for (a,) in db.query(AuditLog.action).filter(AuditLog.entity_type == "payment_period").all()]
    assert sorted(actions) == ["APPROVE", "CREATE", "SUBMIT", "UPDATE"]


@pytest.mark.parametrize("current,target,allowed", [
    ("open", "open", True),
    ("open", "submitted", True),
    ("open", "approved", False),
    ("open", "paid", False),
    ("submitted", "approved", True),
    ("submitted", "rejected", True),
    ("submitted", "open", False),
    ("rejected", "submitted", True),
    ("approved", "paid", True),
    ("approved", "submitted", False),
    ("paid", "open", False),
    ("paid", "paid", True),
])
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_illegal_transition_is_a_conflict(db, project, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)
    with pytest.raises(ConflictError):
        update_payment_period(db, period.id, {"status": "paid"}, admin.id)


def test_unknown_status(db, project, admin):
    period = create_payment_period(db, project.id, date(2025, 8, 1), date(2025, 8, 14), admin.id)
    with pytest.raises(ValidationError):
        update_payment_period(db, period.id, {"status": "archived"}, admin.id)


def test_unknown_period(db, admin):
    with pytest.raises(NotFoundError):
        submit_payment_period(db, "00000000-0000-0000-0000-000000000000", admin.id)


def test_start_after_end(db, project, admin):
    with pytest.raises(ValidationError):
        create_payment_period(db, project.id, date(2025, 8, 14), date(2025, 8, 1), admin.id)


def test_period_api_resubmission(client, admin, project, august_logs):
    headers = auth_headers(admin)
    created = client.post("/payment-periods", json={
        "project_id": str(project.id),
        "start_date": "2025-08-01",
        "end_date": "2025-08-14",
    }, headers=headers)
    assert created.status_code == 201
    period_id = created.json()["id"]
    assert created.json()["total_amount"] == "1000.00"

    first = client.put(f"/payment-periods/{period_id}", json={"status": "submitted"}, headers=headers)
    assert first.status_code == 200
    assert first.json()["total_amount"] == "1000.00"
    assert first.json()["materialized"] is True

    second = client.put(f"/payment-periods/{period_id}", json={"status": "submitted"}, headers=headers)
    assert second.status_code == 200
    assert second.json()["total_amount"] == "1000.00"
    assert second.json()["materialized"] is False

    entries = client.get(f"/payment-periods/{period_id}/entries", headers=headers).json()
    assert len(entries) == 2
    assert [e["total_earnings"] for e in entries] == ["500.00", "500.00"]
    assert entries[0]["labourer_name"] == "Sipho Ndlovu"

    listed = client.get(f"/projects/{project.id}/payment-periods", headers=headers).json()
    assert [p["status"] for p in listed] == ["submitted"]


def test_period_api_conflict_and_roles(client, admin, make_user, project):
    headers = auth_headers(admin)
    period_id = client.post("/payment-periods", json={
        "project_id": str(project.id),
        "start_date": "2025-08-01",
        "end_date": "2025-08-14",
    }, headers=headers).json()["id"]

    response = client.put(f"/payment-periods/{period_id}", json={"status": "paid"}, headers=headers)
    assert response.status_code == 409

    supervisor = make_user("supervisor")
    response = client.put(f"/payment-periods/{period_id}", json={"status": "submitted"}, headers=auth_headers(supervisor))
    assert response.status_code == 403

    assert client.get("/payment-periods/not-a-uuid", headers=headers).status_code == 404
