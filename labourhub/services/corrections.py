"""
Correction requests: proposed edits to historical records.

Reviewing only records the decision. Approving a request does not change
the referenced work log, labourer, project or period; whoever approves it
applies the change through the normal update endpoints.
"""
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.models import CorrectionRequest, CORRECTION_ENTITY_TYPES, CORRECTION_STATUSES
from . import audit
from .store import (
    as_uuid,
    create_correction_request,
    get_correction_request,
    get_correction_requests,
    update_correction_request,
)


logger = structlog.get_logger(__name__)

REVIEW_DECISIONS = ("approved", "rejected")


def list_correction_requests(db: Session, status: Optional[str] = None) -> List[CorrectionRequest]:
    if status and status not in CORRECTION_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(CORRECTION_STATUSES)}")
    return get_correction_requests(db, status)


def file_correction_request(db: Session, data: dict, user_id) -> CorrectionRequest:
    entity_type = data.get("entity_type")
    if entity_type not in CORRECTION_ENTITY_TYPES:
        raise ValidationError(f"entity_type must be one of {', '.join(CORRECTION_ENTITY_TYPES)}")
    for key in ("entity_id", "field_name", "new_value", "reason"):
        if not str(data.get(key) or "").strip():
            raise ValidationError(f"{key} is required")

    request = create_correction_request(
        db,
        entity_type=entity_type,
        entity_id=str(data["entity_id"]),
        field_name=data["field_name"].strip(),
        old_value=data.get("old_value"),
        new_value=str(data["new_value"]),
        reason=data["reason"].strip(),
        status="pending",
        requested_by=as_uuid(user_id),
    )
    logger.info("correction_request_filed", request_id=str(request.id), entity_type=entity_type)
    return request


def review_correction_request(db: Session, request_id, status: str, user_id, review_notes: Optional[str] = None) -> CorrectionRequest:
    """
    Move a pending request to approved or rejected.

    A request that was already reviewed cannot be reviewed again.
    """
    if status not in REVIEW_DECISIONS:
        raise ValidationError("status must be approved or rejected")
    request = get_correction_request(db, request_id)
    if request is None:
        raise NotFoundError("Correction request", request_id)
    if request.status != "pending":
        raise ConflictError(f"Correction request was already {request.status}")

    request = update_correction_request(
        db,
        request,
        status=status,
        reviewed_by=as_uuid(user_id),
        reviewed_at=datetime.utcnow(),
        review_notes=review_notes,
    )
    audit.log_action(
        db,
        "APPROVE" if status == "approved" else "REJECT",
        "correction_request",
        request.id,
        user_id,
        {"entity_type": request.entity_type, "entity_id": request.entity_id, "field_name": request.field_name},
    )
    logger.info("correction_request_reviewed", request_id=str(request.id), status=status)
    return request
