"""
Avatar, organization document and project file storage.

Replacing a file uploads the new object first and then removes the old one.
That removal is best-effort: a failure is logged as a warning and the upload
still succeeds.
"""
import math
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFound, ObjectNotFound, StorageError, ValidationFailed
from ..models.models import Organization
from ..storage.provider import StorageProvider


log = structlog.get_logger(__name__)

ORGANIZATION_DOCUMENT_TYPES = ("sec-dti", "mayors-permit", "bir")
PROJECT_DOC_BUCKETS = {
    "preconstructionDocs": "preconstruction-docs",
    "constructionDocs": "construction-docs",
    "esgReports": "esg-reports",
}
PROJECT_BUCKETS = ("projects", *PROJECT_DOC_BUCKETS.values())


def _extension(filename: Optional[str], default: str) -> str:
    ext = os.path.splitext(filename or "")[1].lstrip(".")
    return ext or default


def _remove_previous(
    storage: StorageProvider, bucket: str, previous_path: Optional[str], new_path: str, event: str
) -> None:
    if not previous_path or previous_path == new_path:
        return
    try:
        storage.delete(bucket, previous_path)
    except ObjectNotFound:
        pass
    except StorageError as e:
        log.warning(event, bucket=bucket, path=previous_path, error=e.message)


def upload_member_avatar(
    storage: StorageProvider,
    user_id: uuid.UUID,
    filename: Optional[str],
    data: bytes,
    content_type: Optional[str] = None,
    previous_path: Optional[str] = None,
) -> Dict[str, str]:
    bucket = settings.avatars_bucket
    file_path = f"{user_id}/{uuid.uuid4()}.{_extension(filename, 'png')}"
    try:
        storage.upload(bucket, file_path, data, content_type or "application/octet-stream", upsert=True)
    except StorageError as e:
        raise StorageError(e.message or "Unable to upload avatar.")

    _remove_previous(storage, bucket, previous_path, file_path, "avatar_cleanup_failed")

    public_url = storage.get_public_url(bucket, file_path)
    if not public_url:
        raise StorageError("Unable to resolve uploaded avatar URL.")
    log.info("avatar_uploaded", user_id=str(user_id), path=file_path)
    return {"public_url": public_url, "file_path": file_path}


def remove_member_avatar(storage: StorageProvider, path: str) -> None:
    """Remove an avatar object; an object that is already gone counts as removed."""
    try:
        storage.delete(settings.avatars_bucket, path)
    except ObjectNotFound:
        log.info("avatar_already_absent", path=path)
    except StorageError as e:
        raise StorageError(e.message or "Unable to remove avatar.")


def _document_columns(document_type: str) -> Dict[str, str]:
    if document_type not in ORGANIZATION_DOCUMENT_TYPES:
        raise ValidationFailed(f"Unknown document type '{document_type}'.")
    prefix = document_type.replace("-", "_")
    return {
        "storage_path": f"{prefix}_storage_path",
        "file_url": f"{prefix}_file_url",
        "uploaded_at": f"{prefix}_uploaded_at",
    }


def upload_organization_document(
    db: Session,
    storage: StorageProvider,
    organization_id: uuid.UUID,
    document_type: str,
    filename: Optional[str],
    data: bytes,
    content_type: Optional[str] = None,
    previous_path: Optional[str] = None,
) -> Dict[str, str]:
    columns = _document_columns(document_type)
    bucket = settings.docs_bucket
    file_path = f"{organization_id}/{document_type}/{uuid.uuid4()}.{_extension(filename, 'pdf')}"

    try:
        storage.upload(bucket, file_path, data, content_type or "application/octet-stream", upsert=True)
    except StorageError as e:
        raise StorageError(e.message or "Unable to upload document.")

    _remove_previous(storage, bucket, previous_path, file_path, "document_cleanup_failed")

    public_url = storage.get_public_url(bucket, file_path)
    if not public_url:
        raise StorageError("Unable to resolve uploaded document URL.")

    try:
        updated = (
            db.query(Organization)
            .filter(Organization.organization_id == organization_id)
            .update(
                {
                    columns["storage_path"]: file_path,
                    columns["file_url"]: public_url,
                    columns["uploaded_at"]: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        if not updated:
            raise NotFound("Organization not found.")
        db.commit()
    except (SQLAlchemyError, NotFound) as e:
        db.rollback()
        # Keep storage in step with the record
        try:
            storage.delete(bucket, file_path)
        except StorageError as cleanup:
            log.warning("document_cleanup_failed", path=file_path, error=cleanup.message)
        if isinstance(e, NotFound):
            raise
        raise StorageError("Unable to save document record.")

    return {"public_url": public_url, "file_path": file_path}


def remove_organization_document(
    db: Session,
    storage: StorageProvider,
    organization_id: uuid.UUID,
    document_type: str,
) -> None:
    columns = _document_columns(document_type)
    org = db.query(Organization).filter(Organization.organization_id == organization_id).first()
    if org is None:
        raise NotFound("Organization not found.")

    storage_path = getattr(org, columns["storage_path"])
    if storage_path:
        try:
            storage.delete(settings.docs_bucket, storage_path)
        except ObjectNotFound:
            pass
        except StorageError as e:
            log.warning("document_storage_remove_failed", path=storage_path, error=e.message)

    for col in columns.values():
        setattr(org, col, None)
    db.commit()


def get_organization_documents(db: Session, organization_id: uuid.UUID) -> Dict[str, Any]:
    org = db.query(Organization).filter(Organization.organization_id == organization_id).first()
    out: Dict[str, Any] = {"organization_id": str(organization_id)}
    for doc in ORGANIZATION_DOCUMENT_TYPES:
        for key, col in _document_columns(doc).items():
            value = getattr(org, col) if org is not None else None
            out[col] = value.isoformat() if isinstance(value, datetime) else value
    return out


def upload_project_file(
    storage: StorageProvider,
    path: Optional[str],
    data: Optional[bytes],
    content_type: Optional[str] = None,
    bucket: Optional[str] = None,
) -> Dict[str, Any]:
    if not data or not path:
        return {"error": "Missing file or path", "path": ""}
    try:
        storage.upload(bucket or "projects", path, data, content_type or "application/pdf", upsert=True)
    except StorageError as e:
        log.error("project_file_upload_failed", bucket=bucket, path=path, error=e.message)
        return {"error": e.message, "path": ""}
    return {"path": path}


def verify_project_file(storage: StorageProvider, path: str, bucket: str = "projects") -> Dict[str, Any]:
    file_name = path.split("/")[-1] if path else ""
    if not file_name:
        return {"exists": False, "error": "Invalid file path"}
    try:
        exists = storage.exists(bucket, path)
    except StorageError as e:
        log.error("project_file_check_failed", bucket=bucket, path=path, error=e.message)
        return {"exists": False, "error": e.message}
    if exists:
        return {"exists": True, "url": storage.get_public_url(bucket, path)}
    return {"exists": False, "error": "File not found in storage"}


def check_project_bucket(bucket: str) -> str:
    if bucket not in PROJECT_BUCKETS:
        raise ValidationFailed("Unknown storage bucket.")
    return bucket


def project_id_from_key(key: Optional[str]) -> Optional[uuid.UUID]:
    """
    Project a storage key belongs to.

    Keys start with the project id, either as a folder (``<id>/permit.pdf``)
    or as a file name prefix (``<id>-report.pdf``).
    """
    segment = (key or "").lstrip("/").split("/", 1)[0]
    try:
        return uuid.UUID(segment[:36])
    except ValueError:
        return None


def list_files(storage: StorageProvider, bucket: str, prefix: str = "") -> List[dict]:
    return storage.list(bucket, prefix)


def get_project_files(storage: StorageProvider, project_id: str) -> Dict[str, List[dict]]:
    """Files of one project in the three document buckets; a bucket that fails to list is logged and left empty."""
    out: Dict[str, List[dict]] = {}
    for label, bucket in PROJECT_DOC_BUCKETS.items():
        try:
            files = storage.list(bucket)
        except StorageError as e:
            log.warning("bucket_list_failed", bucket=bucket, error=e.message)
            files = []
        out[label] = [f for f in files if project_id in f["name"]]
    return out


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    return f"{round(size / 1024 ** i, 2):g} {units[i]}"
