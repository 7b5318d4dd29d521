import mimetypes
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..errors import NotFoundOrDenied, StorageError
from ..models.models import User
from ..services import uploads
from ..services.projects import require_project_access
from ..storage.factory import get_storage
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/files", tags=["files"])


def _authorize_key(db: Session, user: User, bucket: str, key: Optional[str]) -> None:
    """The bucket must be a project bucket and the key must sit under a project of the caller."""
    uploads.check_project_bucket(bucket)
    project_id = uploads.project_id_from_key(key)
    if project_id is None:
        raise NotFoundOrDenied("Project not found or access denied.")
    require_project_access(db, user, project_id)


@router.post("/upload")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    path: Optional[str] = Form(None),
    bucket: str = Form("projects"),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    if file is None or not path:
        return JSONResponse({"error": "Missing file or path", "path": ""}, status_code=400)
    _authorize_key(db, user, bucket, path)
    data = await file.read()
    result = uploads.upload_project_file(storage, path, data, file.content_type, bucket)
    if result.get("error"):
        return JSONResponse(result, status_code=400)
    return result


@router.get("/verify")
def verify_file(
    path: str = "",
    bucket: str = "projects",
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    _authorize_key(db, user, bucket, path)
    return uploads.verify_project_file(storage, path, bucket)


@router.get("/list")
def list_files(
    bucket: str = "projects",
    prefix: str = "",
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    _authorize_key(db, user, bucket, prefix)
    try:
        return {"files": uploads.list_files(storage, bucket, prefix), "error": None}
    except StorageError as e:
        return JSONResponse({"files": [], "error": e.message}, status_code=500)


@router.get("/project-documents")
def project_documents(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    grouped = uploads.get_project_files(storage, str(project_id))
    for files in grouped.values():
        for f in files:
            f["size_label"] = uploads.format_file_size(f["size"]) if f.get("size") is not None else None
    return grouped


@router.get("/local/{bucket}/{key:path}")
def serve_local(bucket: str, key: str, storage: StorageProvider = Depends(get_storage)):
    if not isinstance(storage, LocalStorageProvider):
        raise HTTPException(status_code=404, detail="Not found")
    try:
        path = storage._get_path(bucket, key)
    except StorageError:
        raise HTTPException(status_code=404, detail="Not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type)
