from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Labourer, User
from ..auth.security import FIELD_STAFF, get_current_user, require_roles
from ..schemas.labourers import LabourerBulkCreate, LabourerCreate, LabourerUpdate
from ..services.labourers import (
    bulk_create_labourers,
    create_labourer,
    serialize_labourer,
    update_labourer,
)
from ..services.sa_id import validate_id_number
from ..services.store import get_available_labourers, get_or_404, get_work_logs_by_labourer
from ..services.work_logs import serialize_work_log


router = APIRouter(prefix="/labourers", tags=["labourers"])


@router.get("/available")
def available_labourers(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return [serialize_labourer(l) for l in get_available_labourers(db)]


@router.get("/validate-id")
def validate_id(id_number: str, _=Depends(get_current_user)):
    return validate_id_number(id_number).as_dict()


@router.post("", status_code=201)
def post_labourer(payload: LabourerCreate, db: Session = Depends(get_db), user: User = Depends(require_roles(*FIELD_STAFF))):
    return serialize_labourer(create_labourer(db, payload.model_dump(exclude_unset=True), user.id))


@router.post("/bulk", status_code=201)
def post_labourers_bulk(payload: LabourerBulkCreate, db: Session = Depends(get_db), user: User = Depends(require_roles(*FIELD_STAFF))):
    rows = [row.model_dump(exclude_unset=True) for row in payload.labourers]
    created = bulk_create_labourers(db, rows, user.id)
    return {
        "message": f"Successfully created {len(created)} labourers",
        "labourers": [serialize_labourer(l) for l in created],
    }


@router.get("/{labourer_id}")
def get_labourer(labourer_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return serialize_labourer(get_or_404(db, Labourer, labourer_id, "Labourer"))


@router.put("/{labourer_id}")
def put_labourer(labourer_id: str, payload: LabourerUpdate, db: Session = Depends(get_db), user: User = Depends(require_roles(*FIELD_STAFF))):
    return serialize_labourer(update_labourer(db, labourer_id, payload.model_dump(exclude_unset=True), user.id))


@router.get("/{labourer_id}/work-logs")
def labourer_work_logs(labourer_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    get_or_404(db, Labourer, labourer_id, "Labourer")
    return [serialize_work_log(w) for w in get_work_logs_by_labourer(db, labourer_id)]
