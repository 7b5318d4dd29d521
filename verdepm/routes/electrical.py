import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..errors import Forbidden
from ..models.models import User
from ..schemas.construction import ElectricalEmissionInput, ElectricalEmissionUpdate
from ..services import electrical as electrical_service
from ..services.projects import require_project_access, resolve_membership


router = APIRouter(tags=["electrical-emissions"])


def _organization_id(db: Session, user: User) -> uuid.UUID:
    membership = resolve_membership(db, user)
    if membership is None:
        raise Forbidden("No organization membership found for this account.")
    return membership.organization_id


@router.post("/projects/{project_id}/electrical-emissions")
def add_for_project(
    project_id: uuid.UUID,
    payload: ElectricalEmissionInput,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    project = require_project_access(db, user, project_id)
    return electrical_service.add_electrical_emission(db, project.organization_id, payload, project_id=project_id)


@router.get("/projects/{project_id}/electrical-emissions")
def list_for_project(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    require_project_access(db, user, project_id)
    return electrical_service.get_electrical_emissions_by_project(db, project_id)


@router.post("/electrical-emissions")
def add_for_organization(
    payload: ElectricalEmissionInput,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return electrical_service.add_electrical_emission(db, _organization_id(db, user), payload)


@router.get("/electrical-emissions")
def list_for_organization(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return electrical_service.get_electrical_emissions_by_organization(db, _organization_id(db, user))


@router.get("/electrical-emissions/summary")
def organization_summary(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return electrical_service.get_electrical_emissions_summary(db, _organization_id(db, user))


@router.patch("/electrical-emissions/{emission_id}")
def update_record(
    emission_id: uuid.UUID,
    payload: ElectricalEmissionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return electrical_service.update_electrical_emission(db, _organization_id(db, user), emission_id, payload)


@router.delete("/electrical-emissions/{emission_id}")
def delete_record(emission_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return electrical_service.delete_electrical_emission(db, _organization_id(db, user), emission_id)
