import uuid

from fastapi import APIRouter, Body, Depends, File, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_org_roles
from ..db import get_db
from ..errors import NotFoundOrDenied
from ..models.models import OrganizationMember, User
from ..schemas.auth import InviteMemberInput, MemberUpdateInput, field_errors
from ..services import members as member_service
from ..services import uploads
from ..services.projects import resolve_membership
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/members", tags=["members"])


def _same_organization(db: Session, actor: User, user_id: uuid.UUID) -> User:
    target = db.query(User).filter(User.user_id == user_id).first()
    if target is not None and target.user_id == actor.user_id:
        return target
    membership = resolve_membership(db, actor)
    in_org = None
    if membership is not None and target is not None:
        in_org = (
            db.query(OrganizationMember.id)
            .filter(
                OrganizationMember.organization_id == membership.organization_id,
                OrganizationMember.user_id == user_id,
            )
            .first()
        )
    if in_org is None:
        raise NotFoundOrDenied("Member not found or access denied.")
    return target


@router.get("")
def list_members(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return member_service.fetch_members(db, user)


@router.get("/roles")
def list_roles(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return member_service.fetch_roles(db)


@router.post("")
def invite_member(
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_org_roles("owner")),
):
    try:
        data = InviteMemberInput.model_validate(payload)
    except ValidationError as e:
        return JSONResponse({"error": "Validation failed", "fieldErrors": field_errors(e)}, status_code=400)
    return member_service.invite_member(db, user, data)


@router.put("/{user_id}")
def update_member(
    user_id: uuid.UUID,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_org_roles("owner", "manager")),
):
    payload = {**payload, "userId": str(user_id)}
    try:
        data = MemberUpdateInput.model_validate(payload)
    except ValidationError as e:
        return JSONResponse({"error": "Validation failed", "fieldErrors": field_errors(e)}, status_code=400)
    return member_service.update_member(db, user, data)


@router.delete("/avatar")
def remove_avatar(
    path: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    owner_segment = path.lstrip("/").split("/", 1)[0]
    try:
        owner_id = uuid.UUID(owner_segment)
    except ValueError:
        raise NotFoundOrDenied("Member not found or access denied.")
    target = _same_organization(db, user, owner_id)
    uploads.remove_member_avatar(storage, path)
    if target.avatar_storage_path == path:
        target.avatar_storage_path = None
        target.avatar_url = None
        db.commit()
    return {"success": True}


@router.delete("/{user_id}")
def delete_member(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_org_roles("owner")),
):
    return {"message": member_service.delete_member(db, user_id, actor=user)}


@router.post("/{user_id}/avatar")
async def upload_avatar(
    user_id: uuid.UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    target = _same_organization(db, user, user_id)
    data = await file.read()
    result = uploads.upload_member_avatar(
        storage,
        target.user_id,
        file.filename,
        data,
        file.content_type,
        previous_path=target.avatar_storage_path,
    )
    target.avatar_url = result["public_url"]
    target.avatar_storage_path = result["file_path"]
    db.commit()
    return result
