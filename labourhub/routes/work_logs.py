from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Project, User
from ..auth.security import ADMIN_TIER, FIELD_STAFF, get_current_user, require_roles
from ..schemas.payroll import WorkLogCreate, WorkLogUpdate
from ..services.store import get_or_404, get_work_logs
from ..services.work_logs import create_work_log, serialize_work_log, update_work_log


router = APIRouter(tags=["work-logs"])


@router.get("/projects/{project_id}/work-logs")
def list_work_logs(
    project_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    get_or_404(db, Project, project_id, "Project")
    return [serialize_work_log(w) for w in get_work_logs(db, project_id, start_date, end_date)]


@router.post("/work-logs", status_code=201)
def post_work_log(payload: WorkLogCreate, db: Session = Depends(get_db), user: User = Depends(require_roles(*FIELD_STAFF))):
    return serialize_work_log(create_work_log(db, payload.model_dump(), user.id))


@router.put("/work-logs/{work_log_id}")
def put_work_log(
    work_log_id: str,
    payload: WorkLogUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER, "project_manager")),
):
    return serialize_work_log(update_work_log(db, work_log_id, payload.model_dump(exclude_unset=True), user.id))
