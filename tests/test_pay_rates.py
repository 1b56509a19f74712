import uuid
from datetime import date, datetime
from decimal import Decimal

from labourhub.models.models import PayRate
from labourhub.services.pay_rates import (
    compute_earnings,
    create_pay_rate,
    resolve_rate,
    select_effective_rate,
    to_money,
)

from conftest import auth_headers


TYPE_A = uuid.uuid4()
TYPE_B = uuid.uuid4()


def rate(amount, effective, employee_type_id=TYPE_A, category="open_trenching", created=None):
    return PayRate(
        employee_type_id=employee_type_id,
        category=category,
        amount=Decimal(amount),
        unit="per_meter",
        effective_date=effective,
        created_at=created or datetime(2025, 1, 1),
    )


RATES = [
    rate("10.00", date(2025, 1, 1)),
    rate("12.00", date(2025, 6, 1)),
    rate("15.00", date(2025, 9, 1)),
    rate("99.00", date(2025, 1, 1), employee_type_id=TYPE_B),
    rate("4.00", date(2025, 1, 1), category="close_trenching"),
]


def test_latest_rate_not_after_as_of():
    assert select_effective_rate(RATES, TYPE_A, "open_trenching", date(2025, 8, 1)).amount == Decimal("12.00")
    assert select_effective_rate(RATES, TYPE_A, "open_trenching", date(2025, 6, 1)).amount == Decimal("12.00")
    assert select_effective_rate(RATES, TYPE_A, "open_trenching", date(2025, 5, 31)).amount == Decimal("10.00")


def test_nothing_effective_yet():
    assert select_effective_rate(RATES, TYPE_A, "open_trenching", date(2024, 12, 31)) is None


def test_filters_by_type_and_category():
    assert select_effective_rate(RATES, TYPE_B, "open_trenching", date(2025, 8, 1)).amount == Decimal("99.00")
    assert select_effective_rate(RATES, TYPE_A, "close_trenching", date(2025, 8, 1)).amount == Decimal("4.00")
    assert select_effective_rate(RATES, TYPE_B, "custom", date(2025, 8, 1)) is None


def test_same_day_tie_goes_to_newest_row():
    rates = [
        rate("10.00", date(2025, 1, 1), created=datetime(2025, 1, 1, 8)),
        rate("11.00", date(2025, 1, 1), created=datetime(2025, 1, 1, 9)),
    ]
    assert select_effective_rate(rates, TYPE_A, "open_trenching", date(2025, 2, 1)).amount == Decimal("11.00")


def test_compute_earnings_rounds_half_up():
    assert compute_earnings(Decimal("10"), Decimal("4"), Decimal("12.50"), Decimal("8.00")) == Decimal("157.00")
    assert compute_earnings("0.05", "0", "0.50", "0") == Decimal("0.03")
    assert to_money(None) == Decimal("0.00")


def test_resolve_rate_from_store(db, admin, project, employee_type):
    create_pay_rate(db, {
        "project_id": project.id,
        "employee_type_id": employee_type.id,
        "category": "open_trenching",
        "amount": Decimal("11.00"),
        "effective_date": date(2025, 3, 1),
    }, admin.id)
    create_pay_rate(db, {
        "project_id": project.id,
        "employee_type_id": employee_type.id,
        "category": "open_trenching",
        "amount": Decimal("13.00"),
        "effective_date": date(2025, 7, 1),
    }, admin.id)

    assert resolve_rate(db, project.id, employee_type.id, "open_trenching", date(2025, 6, 30)).amount == Decimal("11.00")
    assert resolve_rate(db, project.id, employee_type.id, "open_trenching", date(2025, 7, 1)).amount == Decimal("13.00")
    assert resolve_rate(db, project.id, employee_type.id, "close_trenching", date(2025, 7, 1)) is None


def test_pay_rate_api(client, admin, project, employee_type, make_user):
    body = {
        "project_id": str(project.id),
        "employee_type_id": str(employee_type.id),
        "category": "close_trenching",
        "amount": "6.50",
        "effective_date": "2025-08-01",
    }
    response = client.post("/pay-rates", json=body, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.json()["amount"] == "6.50"

    supervisor = make_user("supervisor")
    assert client.post("/pay-rates", json=body, headers=auth_headers(supervisor)).status_code == 403

    listed = client.get(f"/projects/{project.id}/pay-rates", headers=auth_headers(supervisor)).json()
    assert [r["amount"] for r in listed] == ["6.50"]

    resolved = client.get(
        "/pay-rates/resolve",
        params={
            "project_id": str(project.id),
            "employee_type_id": str(employee_type.id),
            "category": "close_trenching",
            "as_of": "2025-08-02",
        },
        headers=auth_headers(admin),
    ).json()
    assert resolved["rate"]["amount"] == "6.50"


def test_custom_rate_needs_a_name(client, admin, project, employee_type):
    body = {
        "project_id": str(project.id),
        "employee_type_id": str(employee_type.id),
        "category": "custom",
        "amount": "100",
        "unit": "fixed",
        "effective_date": "2025-08-01",
    }
    response = client.post("/pay-rates", json=body, headers=auth_headers(admin))
    assert response.status_code == 400
    assert "category_name" in response.json()["detail"]
