from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..auth.security import get_current_user
from ..services.reports import (
    activity_report_csv,
    build_activity_report,
    build_payroll_report,
    csv_filename,
    payroll_report_csv,
)


router = APIRouter(prefix="/reports", tags=["reports"])

FORMATS = ("json", "csv")


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _check_format(fmt: str) -> str:
    fmt = (fmt or "json").lower()
    if fmt not in FORMATS:
        raise ValidationError("format must be json or csv")
    return fmt


@router.get("/payroll")
def payroll_report(
    project_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    format: str = "json",
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    fmt = _check_format(format)
    report = build_payroll_report(db, project_id, start_date, end_date)
    if fmt == "csv":
        return _csv_response(payroll_report_csv(report), csv_filename("payroll", report))
    return report


@router.get("/activity")
def activity_report(
    project_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    group_by: str = "none",
    labourer_id: Optional[str] = None,
    format: str = "json",
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    fmt = _check_format(format)
    report = build_activity_report(db, project_id, start_date, end_date, group_by, labourer_id)
    if fmt == "csv":
        return _csv_response(activity_report_csv(report), csv_filename("activity", report))
    return report
