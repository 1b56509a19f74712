from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import NotFoundError
from ..models.models import CorrectionRequest, User
from ..auth.security import ADMIN_TIER, get_current_user, require_roles
from ..schemas.payroll import CorrectionRequestCreate, CorrectionReview
from ..services.corrections import file_correction_request, list_correction_requests, review_correction_request
from ..services.store import get_correction_request


router = APIRouter(prefix="/correction-requests", tags=["correction-requests"])


def _serialize(r: CorrectionRequest) -> dict:
    return {
        "id": str(r.id),
        "entity_type": r.entity_type,
        "entity_id": r.entity_id,
        "field_name": r.field_name,
        "old_value": r.old_value,
        "new_value": r.new_value,
        "reason": r.reason,
        "status": r.status,
        "requested_by": str(r.requested_by),
        "requested_at": r.requested_at.isoformat() if r.requested_at else None,
        "reviewed_by": str(r.reviewed_by) if r.reviewed_by else None,
        "reviewed_at": r.reviewed_at.isoformat() if r.reviewed_at else None,
        "review_notes": r.review_notes,
    }


@router.get("")
def get_correction_requests(status: Optional[str] = None, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return [_serialize(r) for r in list_correction_requests(db, status)]


@router.get("/{request_id}")
def get_one(request_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    request = get_correction_request(db, request_id)
    if request is None:
        raise NotFoundError("Correction request", request_id)
    return _serialize(request)


@router.post("", status_code=201)
def post_correction_request(payload: CorrectionRequestCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _serialize(file_correction_request(db, payload.model_dump(), user.id))


@router.put("/{request_id}")
def review(
    request_id: str,
    payload: CorrectionReview,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER, "project_manager")),
):
    return _serialize(review_correction_request(db, request_id, payload.status, user.id, payload.review_notes))
