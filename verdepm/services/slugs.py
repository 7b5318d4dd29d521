import re
import uuid
from typing import Iterable, Optional

import structlog
from slugify import slugify
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.models import Project


log = structlog.get_logger(__name__)


def generate_slug(text: Optional[str]) -> str:
    if not text:
        return ""
    return slugify(text.strip(), lowercase=True, separator="-", regex_pattern=r"[^a-z0-9]+")


def build_slug_fallback(identifier: Optional[str]) -> str:
    sanitized = re.sub(r"[^a-z0-9]", "", str(identifier or "").lower())[:12]
    return f"project-{sanitized or uuid.uuid4().hex[:12]}"


def next_available_slug(base: str, taken: Iterable[str]) -> str:
    """Return ``base`` or the first free ``base-N`` (N >= 2)."""
    taken = set(taken)
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


def ensure_unique_project_slug(
    db: Session,
    project_name: str,
    project_id: Optional[uuid.UUID],
    current_slug: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve a slug for ``project_name`` that no other project uses.

    Args:
        project_name: Desired display name.
        project_id: The project being named; its own row never counts as a conflict.
        current_slug: Used as the base when the name has no slug-able characters.

    Returns:
        The slug, or None when the lookup itself failed.
    """
    base = generate_slug(project_name) or current_slug or build_slug_fallback(str(project_id or ""))
    try:
        q = db.query(Project.project_id, Project.slug).filter(func.lower(Project.slug).like(f"{base.lower()}%"))
        if project_id is not None:
            q = q.filter(Project.project_id != project_id)
        taken = [slug for _, slug in q.all() if slug]
    except SQLAlchemyError as e:
        log.error("slug_lookup_failed", base=base, error=str(e))
        return None
    return next_available_slug(base, taken)
