from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import User
from ..auth.security import ADMIN_TIER, require_roles
from ..schemas.auth import UserRoleUpdate
from ..services.users import list_users, serialize_user, update_user_role


router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def get_users(db: Session = Depends(get_db), _=Depends(require_roles(*ADMIN_TIER))):
    return [serialize_user(u) for u in list_users(db)]


@router.put("/{user_id}")
def put_user_role(user_id: str, payload: UserRoleUpdate, db: Session = Depends(get_db), user: User = Depends(require_roles(*ADMIN_TIER))):
    return serialize_user(update_user_role(db, user_id, payload.role, user))
