"""
Per-user notifications.
Listing is newest first; a type outside the known set is shown as ``info``.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..errors import NotFoundOrDenied, ValidationFailed
from ..models.models import Notification


log = structlog.get_logger(__name__)

NOTIFICATION_TYPES = ("info", "success", "warning", "error")


def normalize_type(value: Optional[str]) -> str:
    return value if value in NOTIFICATION_TYPES else "info"


def notification_view(n: Notification) -> Dict[str, Any]:
    return {
        "id": str(n.id),
        "title": n.title,
        "message": n.message or "",
        "type": normalize_type(n.type),
        "read": bool(n.read),
        "timestamp": n.timestamp.isoformat() if n.timestamp else None,
    }


def list_user_notifications(
    db: Session, user_id: uuid.UUID, limit: Optional[int] = None, unread_only: bool = False
) -> List[Dict[str, Any]]:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    q = q.order_by(Notification.timestamp.desc())
    if limit:
        q = q.limit(limit)
    return [notification_view(n) for n in q.all()]


def create_notification(
    db: Session,
    user_id: uuid.UUID,
    title: str,
    message: Optional[str] = None,
    type: Optional[str] = "info",
) -> Dict[str, Any]:
    if not (title or "").strip():
        raise ValidationFailed("Notification title is required.")
    n = Notification(
        user_id=user_id,
        title=title.strip(),
        message=message,
        type=normalize_type(type),
        read=False,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(n)
    db.commit()
    db.refresh(n)
    log.info("notification_created", user_id=str(user_id), notification_id=str(n.id))
    return notification_view(n)


def mark_read(db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> Dict[str, Any]:
    n = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if n is None:
        raise NotFoundOrDenied("Notification not found.")
    n.read = True
    db.commit()
    return notification_view(n)


def mark_all_read(db: Session, user_id: uuid.UUID) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({"read": True}, synchronize_session=False)
    )
    db.commit()
    return updated
