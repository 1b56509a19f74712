"""
Payroll and worker activity reports, with CSV export.
"""
import csv
import io
from decimal import Decimal
from typing import Optional, List

from slugify import slugify
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models.models import Project
from .aggregation import GroupBy, aggregate, aggregate_by_labourer
from .pay_rates import CLOSE_TRENCHING, OPEN_TRENCHING, rate_amount, select_effective_rate, to_money
from .store import get_labourers, get_labourers_by_ids, get_or_404, get_pay_rates, get_work_logs_by_date_range
from .time_rules import to_calendar_date


PAYROLL_CSV_HEADER = ["Worker Name", "ID Number", "Openings", "Closings", "Amount"]

_PERIOD_HEADERS = {
    GroupBy.NONE: "Date",
    GroupBy.DAILY: "Date",
    GroupBy.WEEKLY: "Week Starting",
    GroupBy.MONTHLY: "Month",
}


def _require_range(project_id, start_date, end_date):
    if not project_id:
        raise ValidationError("project_id is required")
    if not start_date or not end_date:
        raise ValidationError("start_date and end_date are required")
    start = to_calendar_date(start_date)
    end = to_calendar_date(end_date)
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    return start, end


def _enrichment(db: Session, project_id, work_logs) -> dict:
    # Labourers who logged work here may since have moved projects
    labourers = {str(l.id): l for l in get_labourers(db, project_id)}
    missing = {str(w.labourer_id) for w in work_logs} - set(labourers)
    if missing:
        labourers.update({str(l.id): l for l in get_labourers_by_ids(db, missing)})
    return labourers


def build_payroll_report(db: Session, project_id, start_date, end_date) -> dict:
    """
    Payroll summary for a project over an inclusive date range.

    The rates in the header are informational; ``grand_total`` is the sum
    of the stored work log earnings, never rate x metres.
    """
    start, end = _require_range(project_id, start_date, end_date)
    project = get_or_404(db, Project, project_id, "Project")

    work_logs = get_work_logs_by_date_range(db, project.id, start, end)
    labourers = _enrichment(db, project.id, work_logs)

    entries = []
    grand_total = Decimal("0.00")
    for acc in aggregate_by_labourer(work_logs, labourers):
        earnings = to_money(acc.earnings)
        grand_total += earnings
        entries.append({
            "labourer_id": acc.labourer_id,
            "labourer_name": acc.labourer_name,
            "id_number": acc.id_number,
            "days_worked": acc.days_worked,
            "total_open_meters": float(to_money(acc.open_meters)),
            "total_close_meters": float(to_money(acc.close_meters)),
            "total_earnings": float(earnings),
        })

    rates = get_pay_rates(db, project.id)
    open_rate = rate_amount(select_effective_rate(rates, None, OPEN_TRENCHING, end), project.default_open_rate)
    close_rate = rate_amount(select_effective_rate(rates, None, CLOSE_TRENCHING, end), project.default_close_rate)

    return {
        "project_id": str(project.id),
        "project_name": project.name,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "payment_period": project.payment_period,
        "open_rate": float(open_rate),
        "close_rate": float(close_rate),
        "entries": entries,
        "grand_total": float(grand_total),
    }


def build_activity_report(db: Session, project_id, start_date, end_date, group_by="none", labourer_id: Optional[str] = None) -> dict:
    start, end = _require_range(project_id, start_date, end_date)
    group = GroupBy.parse(group_by)
    project = get_or_404(db, Project, project_id, "Project")

    work_logs = get_work_logs_by_date_range(db, project.id, start, end, labourer_id=labourer_id)
    result = aggregate(work_logs, group, _enrichment(db, project.id, work_logs))

    out = {
        "project_id": str(project.id),
        "project_name": project.name,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
    }
    out.update(result.as_dict())
    return out


# CSV

def _fmt(value) -> str:
    return format(to_money(value), "f")


def _write_csv(header: List[str], rows: List[list]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue()


def payroll_report_csv(report: dict) -> str:
    rows = [
        [
            e["labourer_name"],
            e["id_number"],
            _fmt(e["total_open_meters"]),
            _fmt(e["total_close_meters"]),
            _fmt(e["total_earnings"]),
        ]
        for e in report["entries"]
    ]
    open_total = sum((to_money(e["total_open_meters"]) for e in report["entries"]), Decimal("0"))
    close_total = sum((to_money(e["total_close_meters"]) for e in report["entries"]), Decimal("0"))
    rows.append(["TOTAL", "", _fmt(open_total), _fmt(close_total), _fmt(report["grand_total"])])
    return _write_csv(PAYROLL_CSV_HEADER, rows)


def activity_csv_header(group_by) -> List[str]:
    group = GroupBy.parse(group_by)
    header = ["Worker Name", "ID Number", _PERIOD_HEADERS[group]]
    if group.counts_days:
        header.append("Days Worked")
    header += ["Open Meters", "Close Meters", "Total Meters", "Earnings"]
    return header


def _period_label(value: Optional[str], group: GroupBy) -> str:
    if not value:
        return ""
    if group == GroupBy.MONTHLY:
        return value[:7]
    return value


def activity_report_csv(report: dict) -> str:
    group = GroupBy.parse(report["group_by"])
    rows = []
    for r in report["data"]:
        row = [r["labourer_name"], r["id_number"], _period_label(r["period"], group)]
        if group.counts_days:
            row.append(r["days_worked"])
        row += [_fmt(r["open_meters"]), _fmt(r["close_meters"]), _fmt(r["total_meters"]), _fmt(r["earnings"])]
        rows.append(row)

    totals = report["totals"]
    total_row = ["TOTAL", "", ""]
    if group.counts_days:
        total_row.append(totals["days_worked"])
    total_row += [_fmt(totals["open_meters"]), _fmt(totals["close_meters"]), _fmt(totals["total_meters"]), _fmt(totals["earnings"])]
    rows.append(total_row)
    return _write_csv(activity_csv_header(group), rows)


def csv_filename(kind: str, report: dict) -> str:
    name = slugify(report.get("project_name") or "project") or "project"
    return f"{kind}-{name}-{report['start_date']}-to-{report['end_date']}.csv"

