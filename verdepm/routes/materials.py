import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..errors import NotFoundOrDenied
from ..models.models import Material, User
from ..schemas.construction import (
    MaterialDeliveryUpdate,
    MaterialFuelRequest,
    MaterialInput,
    MaterialUpdate,
)
from ..services import materials as material_service
from ..services.projects import require_project_access


router = APIRouter(tags=["materials"])


def _material_for_user(db: Session, user: User, material_id: uuid.UUID) -> Material:
    material = db.query(Material).filter(Material.id == material_id).first()
    if material is None:
        raise NotFoundOrDenied("Material not found or access denied.")
    require_project_access(db, user, material.project_id)
    return material


@router.get("/projects/{project_id}/materials")
def list_materials(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    require_project_access(db, user, project_id)
    return material_service.get_sourcing_materials(db, project_id)


@router.post("/projects/{project_id}/materials")
def add_material(
    project_id: uuid.UUID,
    payload: MaterialInput,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    return material_service.add_material_sourcing(db, project_id, payload, submitted_by=user.user_id)


@router.patch("/projects/{project_id}/materials/{material_id}")
def update_material(
    project_id: uuid.UUID,
    material_id: uuid.UUID,
    payload: MaterialUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    return material_service.update_material_sourcing(db, material_id, project_id, payload)


@router.delete("/projects/{project_id}/materials/{material_id}")
def delete_material(
    project_id: uuid.UUID,
    material_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    return material_service.delete_material_sourcing(db, material_id, project_id)


@router.post("/materials/{material_id}/fuel")
def add_fuel(
    material_id: uuid.UUID,
    payload: MaterialFuelRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _material_for_user(db, user, material_id)
    return material_service.add_material_fuel(db, material_id, payload.fuel)


@router.patch("/materials/{material_id}/delivery")
def update_delivery(
    material_id: uuid.UUID,
    payload: MaterialDeliveryUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _material_for_user(db, user, material_id)
    result = material_service.update_material_delivery(db, material_id, payload)
    return JSONResponse(result, status_code=200 if result["success"] else 400)


@router.post("/setups/{setup_id}/materials")
def add_planned_material(
    setup_id: uuid.UUID,
    payload: MaterialInput,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, setup_id)
    return material_service.add_material(db, setup_id, payload)


@router.delete("/setups/{setup_id}/materials/{material_id}")
def delete_planned_material(
    setup_id: uuid.UUID,
    material_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, setup_id)
    return material_service.delete_material(db, material_id, setup_id)
