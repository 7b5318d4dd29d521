import uuid

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_org_roles
from ..db import get_db
from ..errors import NotFoundOrDenied
from ..models.models import Organization, User
from ..services import uploads
from ..services.projects import resolve_membership
from ..storage.factory import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/organizations", tags=["organizations"])


def _own_organization(db: Session, user: User, organization_id: uuid.UUID) -> None:
    membership = resolve_membership(db, user)
    if membership is None or membership.organization_id != organization_id:
        raise NotFoundOrDenied("Organization not found or access denied.")


@router.get("/{organization_id}/documents")
def get_documents(
    organization_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _own_organization(db, user, organization_id)
    return uploads.get_organization_documents(db, organization_id)


@router.post("/{organization_id}/documents/{document_type}")
async def upload_document(
    organization_id: uuid.UUID,
    document_type: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_org_roles("owner", "manager")),
    storage: StorageProvider = Depends(get_storage),
):
    _own_organization(db, user, organization_id)
    org = db.query(Organization).filter(Organization.organization_id == organization_id).first()
    previous = None
    if org is not None and document_type in uploads.ORGANIZATION_DOCUMENT_TYPES:
        previous = getattr(org, f"{document_type.replace('-', '_')}_storage_path")
    data = await file.read()
    return uploads.upload_organization_document(
        db, storage, organization_id, document_type, file.filename, data, file.content_type, previous
    )


@router.delete("/{organization_id}/documents/{document_type}")
def remove_document(
    organization_id: uuid.UUID,
    document_type: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_org_roles("owner", "manager")),
    storage: StorageProvider = Depends(get_storage),
):
    _own_organization(db, user, organization_id)
    uploads.remove_organization_document(db, storage, organization_id, document_type)
    return {"success": True}
