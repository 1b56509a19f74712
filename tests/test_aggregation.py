import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from labourhub.errors import ValidationError
from labourhub.services.aggregation import GroupBy, aggregate, aggregate_by_labourer


@dataclass
class Log:
    labourer_id: uuid.UUID
    work_date: date
    open_trenching_meters: Decimal
    close_trenching_meters: Decimal
    total_earnings: Decimal


@dataclass
class Person:
    id: uuid.UUID
    full_name: str
    id_number: str


SIPHO = Person(uuid.uuid4(), "Sipho Ndlovu", "8001015009087")
THANDI = Person(uuid.uuid4(), "Thandi Mokoena", "8001014999080")


def log(person, day, open_m="10", close_m="5", earnings="125.00"):
    return Log(person.id, day, Decimal(open_m), Decimal(close_m), Decimal(earnings))


@pytest.mark.parametrize("group_by", ["none", "daily", "weekly", "monthly"])
def test_empty_input_gives_zero_totals(group_by):
    result = aggregate([], group_by)
    assert result.rows == []
    assert result.totals.earnings == 0
    assert result.totals.open_meters == 0
    assert result.as_dict()["data"] == []


def test_daily_rows_per_labourer_and_date():
    logs = [log(SIPHO, date(2025, 8, 4)), log(SIPHO, date(2025, 8, 5)), log(THANDI, date(2025, 8, 4))]
    result = aggregate(logs, "daily", [SIPHO, THANDI])
    assert len(result.rows) == 3
    assert all(r.days_worked is None for r in result.rows)
    assert "days_worked" not in result.as_dict()["data"][0]
    assert result.totals.earnings == Decimal("375.00")


def test_same_week_collapses_into_one_row():
    # Monday and Wednesday of the week starting Sunday 2025-08-03
    logs = [
        log(SIPHO, date(2025, 8, 4), "10", "5", "125.00"),
        log(SIPHO, date(2025, 8, 6), "4", "2", "50.00"),
    ]
    result = aggregate(logs, GroupBy.WEEKLY, [SIPHO])
    assert len(result.rows) == 1
    row = result.rows[0]
    assert row.period == date(2025, 8, 3)
    assert row.days_worked == 2
    assert row.open_meters == Decimal("14.00")
    assert row.close_meters == Decimal("7.00")
    assert row.total_meters == Decimal("21.00")
    assert row.earnings == Decimal("175.00")
    assert row.labourer_name == "Sipho Ndlovu"
    assert row.id_number == "8001015009087"


def test_saturday_and_sunday_fall_in_different_weeks():
    logs = [log(SIPHO, date(2025, 8, 9)), log(SIPHO, date(2025, 8, 10))]
    result = aggregate(logs, "weekly", [SIPHO])
    assert [r.period for r in result.rows] == [date(2025, 8, 3), date(2025, 8, 10)]


def test_monthly_counts_distinct_dates():
    logs = [
        log(SIPHO, date(2025, 8, 1)),
        log(SIPHO, date(2025, 8, 1)),
        log(SIPHO, date(2025, 8, 20)),
        log(SIPHO, date(2025, 9, 2)),
    ]
    result = aggregate(logs, "monthly", [SIPHO])
    assert [(r.period, r.days_worked) for r in result.rows] == [(date(2025, 8, 1), 2), (date(2025, 9, 1), 1)]
    assert result.totals.days_worked == 3
    assert result.as_dict()["totals"]["days_worked"] == 3


def test_unknown_labourer_is_still_counted():
    result = aggregate([log(SIPHO, date(2025, 8, 1))], "none")
    assert result.rows[0].labourer_name == "Unknown"
    assert result.totals.earnings == Decimal("125.00")


def test_aggregate_by_labourer():
    logs = [
        log(SIPHO, date(2025, 8, 1), earnings="100.00"),
        log(SIPHO, date(2025, 8, 2), earnings="100.00"),
        log(THANDI, date(2025, 8, 1), earnings="80.00"),
    ]
    accs = {a.labourer_id: a for a in aggregate_by_labourer(logs, [SIPHO, THANDI])}
    assert accs[str(SIPHO.id)].earnings == Decimal("200.00")
    assert accs[str(SIPHO.id)].days_worked == 2
    assert accs[str(THANDI.id)].days_worked == 1


def test_bad_group_by():
    with pytest.raises(ValidationError):
        aggregate([], "yearly")
