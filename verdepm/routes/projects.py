import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..errors import safe_operation
from ..models.models import User
from ..schemas.construction import TargetsInput, TargetSectionInput
from ..schemas.projects import AddProjectInput, ProjectSetupUpdate, ProjectView
from ..services import analytics, projects as project_service, targets as target_service


router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return safe_operation(lambda: project_service.get_projects(db, user))


@router.post("")
def create_project(payload: AddProjectInput, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return safe_operation(lambda: project_service.add_project(db, user, payload))


@router.get("/by-slug/{slug}", response_model=ProjectView)
def get_project_by_slug(slug: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    project = project_service.get_project_by_slug(db, slug)
    # Slugs are global; reading one still requires organization access
    project_service.require_project_access(db, user, uuid.UUID(project.id))
    return project


@router.delete("/{project_id}")
def delete_project(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    result = project_service.delete_project(db, user, project_id)
    return JSONResponse(result, status_code=200 if result["success"] else 404)


@router.patch("/{project_id}/setup")
def save_setup(
    project_id: uuid.UUID,
    payload: ProjectSetupUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    membership = project_service.resolve_membership(db, user)
    org_id = membership.organization_id if membership else uuid.UUID(int=0)
    return project_service.save_project_setup(db, project_id, payload, org_id)


@router.post("/{project_id}/submit")
def submit_for_approval(
    project_id: uuid.UUID,
    payload: ProjectSetupUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    membership = project_service.resolve_membership(db, user)
    org_id = membership.organization_id if membership else uuid.UUID(int=0)
    return project_service.submit_for_approval(db, project_id, payload, org_id)


@router.put("/{project_id}/targets")
def save_targets(
    project_id: uuid.UUID,
    payload: TargetsInput,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project_service.require_project_access(db, user, project_id)
    target_id = target_service.save_simplified_targets(
        db, project_id, payload.scopeOne, payload.scopeTwo, payload.scopeThree, payload.trir
    )
    return {"success": True, "targetId": str(target_id)}


@router.put("/{project_id}/targets/{section}")
def save_target_section(
    project_id: uuid.UUID,
    section: str,
    payload: TargetSectionInput,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project_service.require_project_access(db, user, project_id)
    target_id = target_service.save_project_target(db, project_id, section, payload.values)
    return {"success": True, "targetId": str(target_id)}


@router.get("/{project_id}/post-construction")
def post_construction(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    project_service.require_project_access(db, user, project_id)
    return analytics.get_post_construction_data(db, project_id)
