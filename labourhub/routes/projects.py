from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.models import Project, User
from ..auth.security import ADMIN_TIER, FIELD_STAFF, get_current_user, require_roles
from ..schemas.projects import AssignLabourersRequest, AssignUserRequest, ProjectCreate, ProjectUpdate
from ..services.labourers import assign_labourers_to_project, serialize_labourer
from ..services.projects import (
    assign_user,
    create_project,
    list_projects_for,
    serialize_project,
    update_project,
)
from ..services.store import get_assigned_users, get_labourers, get_or_404
from ..services.users import serialize_user


router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return [serialize_project(p) for p in list_projects_for(db, user)]


@router.get("/{project_id}")
def get_project(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    return serialize_project(get_or_404(db, Project, project_id, "Project"))


@router.post("", status_code=201)
def post_project(payload: ProjectCreate, db: Session = Depends(get_db), user: User = Depends(require_roles(*ADMIN_TIER))):
    return serialize_project(create_project(db, payload.model_dump(exclude_unset=True), user.id))


@router.put("/{project_id}")
def put_project(
    project_id: str,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER, "project_manager")),
):
    return serialize_project(update_project(db, project_id, payload.model_dump(exclude_unset=True), user.id))


# Managers / supervisors

def _assignment_response(response: Response, kind: str, created: bool) -> dict:
    label = kind.capitalize()
    if created:
        response.status_code = 201
        return {"message": f"{label} assigned successfully", "already_assigned": False}
    response.status_code = 200
    return {"message": f"{label} already assigned", "already_assigned": True}


@router.get("/{project_id}/managers")
def list_managers(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    get_or_404(db, Project, project_id, "Project")
    return [serialize_user(u) for u in get_assigned_users(db, "manager", project_id)]


@router.post("/{project_id}/managers")
def post_manager(
    project_id: str,
    payload: AssignUserRequest,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER)),
):
    result = assign_user(db, "manager", project_id, payload.user_id, user.id)
    return _assignment_response(response, "manager", result.created)


@router.get("/{project_id}/supervisors")
def list_supervisors(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    get_or_404(db, Project, project_id, "Project")
    return [serialize_user(u) for u in get_assigned_users(db, "supervisor", project_id)]


@router.post("/{project_id}/supervisors")
def post_supervisor(
    project_id: str,
    payload: AssignUserRequest,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*ADMIN_TIER, "project_manager")),
):
    result = assign_user(db, "supervisor", project_id, payload.user_id, user.id)
    return _assignment_response(response, "supervisor", result.created)


# Labourers

@router.get("/{project_id}/labourers")
def list_project_labourers(project_id: str, db: Session = Depends(get_db), _=Depends(get_current_user)):
    get_or_404(db, Project, project_id, "Project")
    return [serialize_labourer(l) for l in get_labourers(db, project_id)]


@router.post("/{project_id}/labourers")
def post_project_labourers(
    project_id: str,
    payload: AssignLabourersRequest,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*FIELD_STAFF)),
):
    labourers = assign_labourers_to_project(db, project_id, payload.labourer_ids, user.id)
    return {"message": "Labourers assigned successfully", "assigned": len(labourers)}
