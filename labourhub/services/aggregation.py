"""
Work log aggregation.

Rows are accumulated in a plain dict keyed by (labourer id, bucket start);
row order in the output follows labourer name and then bucket.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..errors import ValidationError
from .pay_rates import to_money
from .time_rules import month_start, to_calendar_date, week_start


class GroupBy(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value) -> "GroupBy":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "none").lower())
        except ValueError:
            raise ValidationError(f"group_by must be one of {', '.join(g.value for g in cls)}")

    @property
    def counts_days(self) -> bool:
        return self in (GroupBy.WEEKLY, GroupBy.MONTHLY)


@dataclass
class Accumulator:
    labourer_id: str
    labourer_name: str
    id_number: str
    bucket: Optional[date] = None
    open_meters: Decimal = Decimal("0")
    close_meters: Decimal = Decimal("0")
    earnings: Decimal = Decimal("0")
    dates: Set[date] = field(default_factory=set)

    @property
    def total_meters(self) -> Decimal:
        return self.open_meters + self.close_meters

    @property
    def days_worked(self) -> int:
        return len(self.dates)

    def add(self, work_log) -> None:
        self.open_meters += to_money(work_log.open_trenching_meters)
        self.close_meters += to_money(work_log.close_trenching_meters)
        self.earnings += to_money(work_log.total_earnings)
        self.dates.add(to_calendar_date(work_log.work_date))


@dataclass
class AggregateRow:
    labourer_id: str
    labourer_name: str
    id_number: str
    period: Optional[date]
    open_meters: Decimal
    close_meters: Decimal
    total_meters: Decimal
    earnings: Decimal
    days_worked: Optional[int] = None

    def as_dict(self) -> dict:
        out = {
            "labourer_id": self.labourer_id,
            "labourer_name": self.labourer_name,
            "id_number": self.id_number,
            "period": self.period.isoformat() if self.period else None,
            "open_meters": float(self.open_meters),
            "close_meters": float(self.close_meters),
            "total_meters": float(self.total_meters),
            "earnings": float(self.earnings),
        }
        if self.days_worked is not None:
            out["days_worked"] = self.days_worked
        return out


@dataclass
class AggregateTotals:
    open_meters: Decimal = Decimal("0.00")
    close_meters: Decimal = Decimal("0.00")
    total_meters: Decimal = Decimal("0.00")
    earnings: Decimal = Decimal("0.00")
    days_worked: int = 0

    def as_dict(self, include_days: bool = True) -> dict:
        out = {
            "open_meters": float(self.open_meters),
            "close_meters": float(self.close_meters),
            "total_meters": float(self.total_meters),
            "earnings": float(self.earnings),
        }
        if include_days:
            out["days_worked"] = self.days_worked
        return out


@dataclass
class AggregateResult:
    group_by: GroupBy
    rows: List[AggregateRow]
    totals: AggregateTotals

    def as_dict(self) -> dict:
        return {
            "group_by": self.group_by.value,
            "data": [r.as_dict() for r in self.rows],
            "totals": self.totals.as_dict(include_days=self.group_by.counts_days),
        }


def _bucket(work_date: date, group_by: GroupBy) -> date:
    if group_by == GroupBy.WEEKLY:
        return week_start(work_date)
    if group_by == GroupBy.MONTHLY:
        return month_start(work_date)
    return work_date


def _identity(labourer_id: str, labourers: Dict[str, object]) -> Tuple[str, str]:
    labourer = labourers.get(labourer_id)
    if labourer is None:
        return "Unknown", ""
    return labourer.full_name, labourer.id_number or ""


def _index_labourers(labourers) -> Dict[str, object]:
    if labourers is None:
        return {}
    if isinstance(labourers, dict):
        return {str(k): v for k, v in labourers.items()}
    return {str(l.id): l for l in labourers}


def _accumulate(work_logs, labourers, key_fn) -> Dict[tuple, Accumulator]:
    index = _index_labourers(labourers)
    buckets: Dict[tuple, Accumulator] = {}
    for work_log in work_logs:
        labourer_id = str(work_log.labourer_id)
        bucket = key_fn(to_calendar_date(work_log.work_date))
        key = (labourer_id, bucket)
        acc = buckets.get(key)
        if acc is None:
            name, id_number = _identity(labourer_id, index)
            acc = Accumulator(labourer_id, name, id_number, bucket)
            buckets[key] = acc
        acc.add(work_log)
    return buckets


def _sorted(accumulators: Iterable[Accumulator]) -> List[Accumulator]:
    return sorted(
        accumulators,
        key=lambda a: (a.labourer_name.lower(), a.labourer_id, a.bucket or date.min),
    )


def aggregate(work_logs: Iterable, group_by="none", labourers=None) -> AggregateResult:
    """
    Group work logs by labourer and day, week or month.

    Args:
        work_logs: WorkLog rows (or anything with the same attributes)
        group_by: none|daily|weekly|monthly
        labourers: Labourer rows or a dict keyed by labourer id, used to
            denormalize names and ID numbers onto each row

    Returns:
        AggregateResult. Empty input gives no rows and zero totals.
    """
    group_by = GroupBy.parse(group_by)
    buckets = _accumulate(work_logs, labourers, lambda d: _bucket(d, group_by))

    rows: List[AggregateRow] = []
    totals = AggregateTotals()
    for acc in _sorted(buckets.values()):
        row = AggregateRow(
            labourer_id=acc.labourer_id,
            labourer_name=acc.labourer_name,
            id_number=acc.id_number,
            period=acc.bucket,
            open_meters=to_money(acc.open_meters),
            close_meters=to_money(acc.close_meters),
            total_meters=to_money(acc.total_meters),
            earnings=to_money(acc.earnings),
            days_worked=acc.days_worked if group_by.counts_days else None,
        )
        rows.append(row)
        totals.open_meters += row.open_meters
        totals.close_meters += row.close_meters
        totals.total_meters += row.total_meters
        totals.earnings += row.earnings
        totals.days_worked += acc.days_worked
    return AggregateResult(group_by=group_by, rows=rows, totals=totals)


def aggregate_by_labourer(work_logs: Iterable, labourers=None) -> List[Accumulator]:
    """One accumulator per labourer, with distinct work dates as days worked."""
    buckets = _accumulate(work_logs, labourers, lambda d: None)
    return _sorted(buckets.values())
