"""
Labourer records, project assignment and labourer sign-in.

ID numbers are validated on every write; the date of birth and gender
encoded in an SA ID fill in whatever the caller left out. The labourer's
sign-in secret is a hash of the normalized ID number.
"""
import re
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash, verify_password
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.models import EmployeeType, Labourer, Project, ACCOUNT_TYPES
from . import audit
from .sa_id import normalize_id_number, validate_id_number
from .store import as_uuid, get_labourer_by_phone_or_email, get_or_404
from .time_rules import to_calendar_date


logger = structlog.get_logger(__name__)

CONTACT_NUMBER_RE = re.compile(r"^(\+27|0)[0-9]{9}$")

REQUIRED_FIELDS = (
    "first_name",
    "surname",
    "id_number",
    "contact_number",
    "employee_type_id",
    "bank_name",
    "account_number",
    "account_type",
    "branch_code",
)
OPTIONAL_FIELDS = (
    "project_id",
    "user_id",
    "date_of_birth",
    "gender",
    "email",
    "physical_address",
    "profile_photo_path",
    "id_document_path",
    "banking_proof_path",
)


def _prepare(db: Session, data: dict, existing: Optional[Labourer] = None) -> dict:
    """Validate and normalize labourer fields. Raises before any write."""
    partial = existing is not None
    values = {k: data[k] for k in REQUIRED_FIELDS + OPTIONAL_FIELDS if k in data}

    for key in REQUIRED_FIELDS:
        if partial and key not in values:
            continue
        value = values.get(key)
        if value is None or not str(value).strip():
            raise ValidationError(f"{key} is required")
        if isinstance(value, str):
            values[key] = value.strip()

    if "id_number" in values:
        info = validate_id_number(values["id_number"])
        if not info.is_valid:
            raise ValidationError(info.error)
        values["id_number"] = normalize_id_number(values["id_number"])
        if info.date_of_birth and not values.get("date_of_birth"):
            values["date_of_birth"] = info.date_of_birth
        if info.gender and not values.get("gender"):
            values["gender"] = info.gender

    if values.get("date_of_birth") is not None:
        values["date_of_birth"] = to_calendar_date(values["date_of_birth"])

    if "contact_number" in values and not CONTACT_NUMBER_RE.match(values["contact_number"].replace(" ", "")):
        raise ValidationError("contact_number must be a valid South African number")
    if "contact_number" in values:
        values["contact_number"] = values["contact_number"].replace(" ", "")

    if "account_type" in values and values["account_type"] not in ACCOUNT_TYPES:
        raise ValidationError(f"account_type must be one of {', '.join(ACCOUNT_TYPES)}")

    if "email" in values:
        values["email"] = (values["email"] or "").strip().lower() or None

    if "employee_type_id" in values:
        employee_type = get_or_404(db, EmployeeType, values["employee_type_id"], "Employee type")
        values["employee_type_id"] = employee_type.id
    if values.get("project_id"):
        project = get_or_404(db, Project, values["project_id"], "Project")
        values["project_id"] = project.id
    elif "project_id" in values:
        values["project_id"] = None
    if values.get("user_id"):
        values["user_id"] = as_uuid(values["user_id"], "User")
    return values


def _ensure_unique_id_number(db: Session, id_number: str, exclude_id=None):
    query = db.query(Labourer).filter(Labourer.id_number == id_number)
    if exclude_id is not None:
        query = query.filter(Labourer.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("A labourer with this ID number already exists")


def _build(values: dict, user_id) -> Labourer:
    now = datetime.utcnow()
    labourer = Labourer(created_by=as_uuid(user_id), created_at=now, updated_at=now, **values)
    labourer.password_hash = get_password_hash(values["id_number"])
    return labourer


def create_labourer(db: Session, data: dict, user_id) -> Labourer:
    values = _prepare(db, data)
    _ensure_unique_id_number(db, values["id_number"])
    labourer = _build(values, user_id)
    db.add(labourer)
    db.commit()
    db.refresh(labourer)
    audit.log_create(db, "labourer", labourer.id, user_id, audit.snapshot(labourer))
    logger.info("labourer_created", labourer_id=str(labourer.id))
    return labourer


def bulk_create_labourers(db: Session, rows: List[dict], user_id) -> List[Labourer]:
    """
    All-or-nothing import. Every row is validated before anything is
    inserted; the error names the first failing row (1-based).
    """
    if not rows:
        raise ValidationError("labourers array is required and must not be empty")

    prepared = []
    seen = set()
    for index, row in enumerate(rows, start=1):
        try:
            values = _prepare(db, row)
            if values["id_number"] in seen:
                raise ValidationError("duplicate ID number in upload")
            _ensure_unique_id_number(db, values["id_number"])
        except (ValidationError, ConflictError, NotFoundError) as e:
            raise ValidationError(f"Row {index}: {e.message}")
        seen.add(values["id_number"])
        prepared.append(values)

    labourers = [_build(values, user_id) for values in prepared]
    db.add_all(labourers)
    db.commit()
    for labourer in labourers:
        db.refresh(labourer)
        audit.log_create(db, "labourer", labourer.id, user_id, audit.snapshot(labourer), {"bulk": True})
    logger.info("labourers_bulk_created", count=len(labourers))
    return labourers


def update_labourer(db: Session, labourer_id, data: dict, user_id) -> Labourer:
    labourer = get_or_404(db, Labourer, labourer_id, "Labourer")
    values = _prepare(db, data, existing=labourer)
    if "id_number" in values:
        _ensure_unique_id_number(db, values["id_number"], exclude_id=labourer.id)

    before = audit.snapshot(labourer)
    for key, value in values.items():
        setattr(labourer, key, value)
    if "id_number" in values:
        labourer.password_hash = get_password_hash(values["id_number"])
    labourer.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(labourer)
    audit.log_update(db, "labourer", labourer.id, user_id, before, audit.snapshot(labourer))
    return labourer


def assign_labourers_to_project(db: Session, project_id, labourer_ids: List, user_id) -> List[Labourer]:
    if not labourer_ids:
        raise ValidationError("labourer_ids array is required")
    project = get_or_404(db, Project, project_id, "Project")
    labourers = [get_or_404(db, Labourer, lid, "Labourer") for lid in labourer_ids]

    for labourer in labourers:
        labourer.project_id = project.id
        labourer.updated_at = datetime.utcnow()
    db.commit()

    for labourer in labourers:
        audit.log_action(db, "ASSIGN", "labourer", labourer.id, user_id, {"project_id": str(project.id)})
    logger.info("labourers_assigned", project_id=str(project.id), count=len(labourers))
    return labourers


def authenticate_labourer(db: Session, identifier: str, password: str) -> Optional[Labourer]:
    """Contact number or email plus the labourer's ID/passport number."""
    labourer = get_labourer_by_phone_or_email(db, (identifier or "").replace(" ", ""))
    if labourer is None and identifier:
        labourer = get_labourer_by_phone_or_email(db, identifier.strip().lower())
    if labourer is None:
        return None
    if not verify_password(normalize_id_number(password), labourer.password_hash):
        return None
    return labourer


def serialize_labourer(labourer: Labourer) -> dict:
    return {
        "id": str(labourer.id),
        "user_id": str(labourer.user_id) if labourer.user_id else None,
        "project_id": str(labourer.project_id) if labourer.project_id else None,
        "employee_type_id": str(labourer.employee_type_id),
        "first_name": labourer.first_name,
        "surname": labourer.surname,
        "full_name": labourer.full_name,
        "id_number": labourer.id_number,
        "date_of_birth": labourer.date_of_birth.isoformat() if labourer.date_of_birth else None,
        "gender": labourer.gender,
        "contact_number": labourer.contact_number,
        "email": labourer.email,
        "physical_address": labourer.physical_address,
        "profile_photo_path": labourer.profile_photo_path,
        "id_document_path": labourer.id_document_path,
        "bank_name": labourer.bank_name,
        "account_number": labourer.account_number,
        "account_type": labourer.account_type,
        "branch_code": labourer.branch_code,
        "banking_proof_path": labourer.banking_proof_path,
        "created_at": labourer.created_at.isoformat() if labourer.created_at else None,
        "updated_at": labourer.updated_at.isoformat() if labourer.updated_at else None,
    }
