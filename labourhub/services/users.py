"""
Staff users.

Identity comes from an external OpenID provider; this module only decides
who may sign in and which role a user gets.
"""
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import PermissionDeniedError, ValidationError, NotFoundError
from ..models.models import User, USER_ROLES
from . import audit
from .store import as_uuid


logger = structlog.get_logger(__name__)


def email_domain(email: str) -> str:
    return (email or "").rsplit("@", 1)[-1].strip().lower()


def is_allowed_email(email: str) -> bool:
    if not email or "@" not in email:
        return False
    if settings.super_admin_email and email.lower() == settings.super_admin_email.lower():
        return True
    return email_domain(email) in settings.allowed_domains


def default_role_for(email: str) -> str:
    if settings.super_admin_email and email.lower() == settings.super_admin_email.lower():
        return "super_admin"
    if email_domain(email) in settings.admin_domains:
        return "admin"
    return "supervisor"


def upsert_staff_user(db: Session, profile: dict) -> User:
    """
    Create or refresh a staff user from an identity provider profile.

    Users are matched on email. The configured super admin is always
    ``super_admin``; anyone else keeps an existing role, and new users get
    ``admin`` for admin domains or ``supervisor`` otherwise.
    """
    email = (profile.get("email") or "").strip().lower()
    if not is_allowed_email(email):
        logger.warning("staff_login_rejected", email=email)
        raise PermissionDeniedError("Access restricted to approved company email domains")

    user = db.query(User).filter(User.email == email).first()
    now = datetime.utcnow()
    if user is None:
        user = User(
            email=email,
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            profile_image_url=profile.get("profile_image_url"),
            role=default_role_for(email),
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        created = True
    else:
        for key in ("first_name", "last_name", "profile_image_url"):
            if profile.get(key) is not None:
                setattr(user, key, profile[key])
        if default_role_for(email) == "super_admin":
            user.role = "super_admin"
        user.updated_at = now
        created = False
    db.commit()
    db.refresh(user)
    logger.info("staff_user_upserted", user_id=str(user.id), role=user.role, created=created)
    return user


def list_users(db: Session):
    return db.query(User).order_by(User.first_name, User.last_name).all()


def update_user_role(db: Session, user_id, role: str, acting_user: User) -> User:
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}")
    if role == "super_admin" and acting_user.role != "super_admin":
        raise PermissionDeniedError("Only a super admin can grant super admin")

    user = db.get(User, as_uuid(user_id, "User"))
    if user is None:
        raise NotFoundError("User", user_id)
    if user.role == "super_admin" and acting_user.role != "super_admin":
        raise PermissionDeniedError("Only a super admin can change a super admin")

    before = audit.snapshot(user)
    user.role = role
    user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    audit.log_update(db, "user", user.id, acting_user.id, before, audit.snapshot(user))
    return user


def serialize_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "profile_image_url": user.profile_image_url,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
