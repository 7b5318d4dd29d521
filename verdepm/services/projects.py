"""
Project CRUD scoped to the caller's organization.

Functions raise ``VerdeError`` subclasses with user-facing messages; routes
wrap them in ``safe_operation`` where the client expects ``{data, error}``.
"""
import uuid
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Dict, Any

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import VerdeError, ValidationFailed, NotFound, NotFoundOrDenied, Forbidden
from ..models.models import Organization, OrganizationMember, Project, User, row_dict
from ..schemas.projects import AddProjectInput, ProjectSetupUpdate, ProjectView, map_project_from_row
from .slugs import ensure_unique_project_slug, generate_slug


log = structlog.get_logger(__name__)

SLUG_ATTEMPTS = 5


class Membership(NamedTuple):
    organization_id: uuid.UUID
    role: str


def resolve_membership(db: Session, user: User) -> Optional[Membership]:
    """Owner membership first, then any membership, then the user's own organization (as owner)."""
    rows = (
        db.query(OrganizationMember)
        .filter(OrganizationMember.user_id == user.user_id)
        .all()
    )
    owner = next((m for m in rows if (m.role or "").lower() == "owner"), None)
    chosen = owner or (rows[0] if rows else None)
    if chosen is not None:
        return Membership(chosen.organization_id, (chosen.role or "member").lower())
    if user.organization_id:
        return Membership(user.organization_id, "owner")
    return None


def _parse_budget(raw) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValidationFailed("Budget must be a valid number.")


def _clean(value: Optional[str]) -> Optional[str]:
    return (value or "").strip() or None


def _is_slug_conflict(exc: IntegrityError) -> bool:
    return "slug" in str(exc.orig).lower()


def add_project(db: Session, user: User, data: AddProjectInput) -> ProjectView:
    membership = resolve_membership(db, user)
    if membership is None:
        raise VerdeError("Unable to determine an organization for this account.")

    org = db.query(Organization).filter(Organization.organization_id == membership.organization_id).first()
    if org is None:
        raise NotFound("Organization not found for this account.")

    if membership.role not in ("owner", "manager"):
        raise Forbidden("Only organization owners or managers can create new projects.")

    if not generate_slug(data.name):
        raise ValidationFailed("Project name must contain at least one alphanumeric character.")

    budget = _parse_budget(data.budget)

    for attempt in range(SLUG_ATTEMPTS):
        slug = ensure_unique_project_slug(db, data.name, None)
        if slug is None:
            raise VerdeError("Unable to verify project slug uniqueness.")
        project = Project(
            project_name=data.name.strip(),
            slug=slug,
            description=_clean(data.description),
            status=data.status,
            priority=data.priority,
            client_name=_clean(data.client_name),
            category=data.category or None,
            budget=budget,
            location=_clean(data.location),
            organization_id=membership.organization_id,
            owner_id=user.user_id,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        db.add(project)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if not _is_slug_conflict(e):
                raise
            log.info("project_slug_conflict", slug=slug, attempt=attempt + 1)
            continue
        db.refresh(project)
        log.info("project_created", project_id=str(project.project_id), slug=project.slug)
        return map_project_from_row(row_dict(project))

    raise VerdeError("Unable to allocate a unique project slug. Please try again.")


def get_projects(db: Session, user: User) -> List[ProjectView]:
    membership = resolve_membership(db, user)
    if membership is None:
        return []
    org = db.query(Organization).filter(Organization.organization_id == membership.organization_id).first()
    if org is None:
        return []
    rows = (
        db.query(Project)
        .filter(Project.organization_id == membership.organization_id)
        .order_by(Project.created_at.desc())
        .all()
    )
    return [map_project_from_row(row_dict(p)) for p in rows]


def get_project_by_slug(db: Session, slug: str) -> ProjectView:
    project = db.query(Project).filter(Project.slug == slug).first()
    if project is None:
        raise NotFound(f"No project with slug '{slug}' was found.")
    return map_project_from_row(row_dict(project))


def delete_project(db: Session, user: User, project_id: uuid.UUID) -> Dict[str, Any]:
    try:
        membership = resolve_membership(db, user)
        if membership is None:
            return {"success": False, "error": "Unauthorized"}
        deleted = (
            db.query(Project)
            .filter(Project.project_id == project_id, Project.organization_id == membership.organization_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("project_delete_failed", project_id=str(project_id), error=str(e))
        return {"success": False, "error": str(e.orig) if getattr(e, "orig", None) else str(e)}
    if not deleted:
        return {"success": False, "error": "Project not found or access denied."}
    log.info("project_deleted", project_id=str(project_id))
    return {"success": True, "error": None}


def _apply_project_updates(
    db: Session,
    project_id: uuid.UUID,
    values: Dict[str, Any],
    organization_id: Optional[uuid.UUID] = None,
) -> None:
    if "project_name" in values and values["project_name"]:
        current = db.query(Project.slug).filter(Project.project_id == project_id).scalar()
        slug = ensure_unique_project_slug(db, values["project_name"], project_id, current)
        if slug:
            values["slug"] = slug
    values["updated_at"] = datetime.now(timezone.utc)

    q = db.query(Project).filter(Project.project_id == project_id)
    if organization_id is not None:
        q = q.filter(Project.organization_id == organization_id)
    try:
        updated = q.update(values, synchronize_session=False)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("Another project already uses this name. Please choose a different one.")
    if not updated:
        raise NotFoundOrDenied("Project not found or access denied.")


def save_project_setup(
    db: Session,
    project_id: uuid.UUID,
    updates: ProjectSetupUpdate,
    organization_id: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    values = updates.model_dump(exclude_unset=True)
    if values:
        _apply_project_updates(db, project_id, values, organization_id)
    return {"success": True, "setupId": str(project_id)}


def submit_for_approval(
    db: Session,
    project_id: uuid.UUID,
    updates: ProjectSetupUpdate,
    organization_id: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    values = updates.model_dump(exclude_unset=True)
    values.setdefault("approval_status", "pending")
    _apply_project_updates(db, project_id, values, organization_id)
    return {"success": True}


def require_project_access(db: Session, user: User, project_id: uuid.UUID) -> Project:
    """Project of the caller's organization; a foreign or missing one reads the same."""
    membership = resolve_membership(db, user)
    project = None
    if membership is not None:
        project = (
            db.query(Project)
            .filter(Project.project_id == project_id, Project.organization_id == membership.organization_id)
            .first()
        )
    if project is None:
        raise NotFoundOrDenied("Project not found or access denied.")
    return project
