from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..models.models import Labourer, User
from ..schemas.auth import LabourerLoginRequest, LabourerTokenResponse, MeResponse
from ..services.labourers import authenticate_labourer, serialize_labourer
from ..services.store import get_work_logs_by_labourer
from ..services.work_logs import serialize_work_log
from .security import create_labourer_token, get_current_labourer, get_current_user


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
labourer_router = APIRouter(prefix="/labourer", tags=["labourer"])


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(
        id=str(user.id),
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        profile_image_url=user.profile_image_url,
        role=user.role,
        roles=[user.role],
    )


@router.post("/labourer/login", response_model=LabourerTokenResponse)
def labourer_login(payload: LabourerLoginRequest, db: Session = Depends(get_db)):
    labourer = authenticate_labourer(db, payload.identifier, payload.password)
    if labourer is None:
        logger.warning("labourer_login_failed")
        raise HTTPException(status_code=401, detail="Invalid phone number/email or ID number")
    logger.info("labourer_login", labourer_id=str(labourer.id))
    return LabourerTokenResponse(
        access_token=create_labourer_token(str(labourer.id)),
        labourer_id=str(labourer.id),
    )


@labourer_router.get("/me")
def labourer_me(labourer: Labourer = Depends(get_current_labourer)):
    out = serialize_labourer(labourer)
    out["project_name"] = labourer.project.name if labourer.project else None
    out["employee_type_name"] = labourer.employee_type.name if labourer.employee_type else None
    return out


@labourer_router.get("/me/work-logs")
def labourer_work_logs(labourer: Labourer = Depends(get_current_labourer), db: Session = Depends(get_db)):
    return [serialize_work_log(w) for w in get_work_logs_by_labourer(db, labourer.id)]
