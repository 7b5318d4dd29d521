"""Organization members: listing, invitation, profile/role updates, removal."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash
from ..errors import Forbidden, NotFoundOrDenied, ValidationFailed, VerdeError
from ..models.models import Organization, OrganizationMember, Project, Role, User
from ..schemas.auth import InviteMemberInput, MemberUpdateInput, MEMBER_ROLES


log = structlog.get_logger(__name__)


def user_view(u: User, role: Optional[str] = None) -> Dict[str, Any]:
    return {
        "user_id": str(u.user_id),
        "email": u.email,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "phone": u.phone,
        "avatar_url": u.avatar_url,
        "avatar_storage_path": u.avatar_storage_path,
        "organization_id": str(u.organization_id) if u.organization_id else None,
        "is_active": u.is_active,
        "created_at": u.created_at.isoformat() if u.created_at else None,
        "modified_at": u.modified_at.isoformat() if u.modified_at else None,
        "role": role,
    }


def _requester_organization(db: Session, user: User) -> uuid.UUID:
    row = (
        db.query(OrganizationMember.organization_id)
        .filter(OrganizationMember.user_id == user.user_id)
        .first()
    )
    if row is None:
        raise Forbidden("No organization membership found for this account.")
    return row[0]


def fetch_members(db: Session, user: User) -> List[Dict[str, Any]]:
    organization_id = _requester_organization(db, user)
    memberships = (
        db.query(OrganizationMember)
        .filter(OrganizationMember.organization_id == organization_id)
        .all()
    )
    role_by_user = {m.user_id: m.role for m in memberships}
    if not role_by_user:
        return []
    users = db.query(User).filter(User.user_id.in_(list(role_by_user))).all()
    return [user_view(u, role_by_user.get(u.user_id) or "member") for u in users]


def fetch_roles(db: Session) -> List[str]:
    try:
        return [name for (name,) in db.query(Role.name).order_by(Role.name).all()]
    except SQLAlchemyError as e:
        log.error("fetch_roles_failed", error=str(e))
        return []


def invite_member(db: Session, inviter: User, payload: InviteMemberInput) -> Dict[str, Any]:
    """Create a user and its membership in the inviter's (owned) organization."""
    owner = (
        db.query(OrganizationMember)
        .filter(OrganizationMember.user_id == inviter.user_id, OrganizationMember.role == "owner")
        .first()
    )
    if owner is None:
        raise Forbidden("Only organization owners can invite members. No owner organization found for this account.")

    email = payload.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationFailed("A user with this email address has already been registered.")

    now = datetime.now(timezone.utc)
    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        first_name=payload.firstname,
        last_name=payload.lastname,
        phone=payload.phone or None,
        organization_id=owner.organization_id,
        created_by=inviter.user_id,
        modified_by=inviter.user_id,
        created_at=now,
        modified_at=now,
    )
    try:
        db.add(user)
        db.flush()
        db.add(OrganizationMember(organization_id=owner.organization_id, user_id=user.user_id, role=payload.role))
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log.error("invite_member_failed", email=email, error=str(e))
        raise ValidationFailed("User could not be created.")
    db.refresh(user)
    log.info("member_invited", user_id=str(user.user_id), organization_id=str(owner.organization_id), role=payload.role)
    return {"message": "User created successfully.", "user": user_view(user, payload.role)}


def update_member(db: Session, actor: User, payload: MemberUpdateInput) -> Dict[str, Any]:
    if not payload.userId:
        raise ValidationFailed("Missing user identifier.")
    try:
        target_id = uuid.UUID(payload.userId)
    except ValueError:
        raise ValidationFailed("Missing user identifier.")

    organization_id = _requester_organization(db, actor)
    membership = (
        db.query(OrganizationMember)
        .filter(OrganizationMember.organization_id == organization_id, OrganizationMember.user_id == target_id)
        .first()
    )
    target = db.query(User).filter(User.user_id == target_id).first()
    if membership is None or target is None:
        raise NotFoundOrDenied("Member not found or access denied.")

    if payload.role:
        if payload.role not in MEMBER_ROLES:
            raise ValidationFailed("Please select a valid role")
        membership.role = payload.role

    if payload.email is not None:
        target.email = payload.email.strip().lower()
    if payload.firstname is not None:
        target.first_name = payload.firstname
    if payload.lastname is not None:
        target.last_name = payload.lastname
    if payload.phone is not None:
        target.phone = payload.phone
    # Avatar fields may be cleared with an explicit null, so presence matters
    if "avatarUrl" in payload.model_fields_set:
        target.avatar_url = payload.avatarUrl
    if "avatarStoragePath" in payload.model_fields_set:
        target.avatar_storage_path = payload.avatarStoragePath

    target.modified_by = actor.user_id
    target.modified_at = datetime.now(timezone.utc)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("A user with this email address has already been registered.")
    db.refresh(target)
    return {"message": "User updated successfully.", "user": user_view(target, membership.role)}


def delete_member(db: Session, user_id: uuid.UUID, actor: Optional[User] = None) -> str:
    """
    Delete a member.

    An owner takes their organization(s) down with them: every member,
    project and the organization row itself are removed.
    """
    if actor is not None and actor.user_id != user_id:
        organization_id = _requester_organization(db, actor)
        in_org = (
            db.query(OrganizationMember.id)
            .filter(OrganizationMember.organization_id == organization_id, OrganizationMember.user_id == user_id)
            .first()
        )
        if in_org is None:
            raise NotFoundOrDenied("Member not found or access denied.")

    memberships = db.query(OrganizationMember).filter(OrganizationMember.user_id == user_id).all()
    owned = sorted({m.organization_id for m in memberships if (m.role or "").lower() == "owner"})

    try:
        if owned:
            member_ids = {
                uid for (uid,) in db.query(OrganizationMember.user_id)
                .filter(OrganizationMember.organization_id.in_(owned))
                .all()
            }
            member_ids.add(user_id)
            db.query(OrganizationMember).filter(OrganizationMember.organization_id.in_(owned)).delete(synchronize_session=False)
            db.query(User).filter(User.user_id.in_(list(member_ids))).delete(synchronize_session=False)
            db.query(Project).filter(Project.organization_id.in_(owned)).delete(synchronize_session=False)
            db.query(Organization).filter(Organization.organization_id.in_(owned)).delete(synchronize_session=False)
            db.commit()
            log.info("organization_deleted_with_owner", user_id=str(user_id), organizations=[str(o) for o in owned])
            return "Organization and related members deleted successfully"

        db.query(OrganizationMember).filter(OrganizationMember.user_id == user_id).delete(synchronize_session=False)
        db.query(User).filter(User.user_id == user_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("delete_member_failed", user_id=str(user_id), error=str(e))
        raise VerdeError(f"Error deleting user: {e}")
    log.info("member_deleted", user_id=str(user_id))
    return "User deleted successfully"


DEFAULT_ROLES = {
    "owner": "Organization owner",
    "manager": "Project manager",
    "member": "Team member",
    "supplier": "External supplier",
}


def seed_default_roles(db: Session) -> int:
    """Insert any missing default roles; returns how many were added."""
    existing = {name for (name,) in db.query(Role.name).all()}
    added = 0
    for name, description in DEFAULT_ROLES.items():
        if name not in existing:
            db.add(Role(name=name, description=description))
            added += 1
    if added:
        db.commit()
    return added
