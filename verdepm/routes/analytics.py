from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import Project, User
from ..services import analytics
from ..services.projects import resolve_membership


router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard")
def dashboard(
    year: Optional[str] = None,
    project_id: Optional[str] = None,
    summary: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    membership = resolve_membership(db, user)
    project_ids = []
    if membership is not None:
        project_ids = [
            pid for (pid,) in db.query(Project.project_id)
            .filter(Project.organization_id == membership.organization_id)
            .all()
        ]
    rows = analytics.get_dashboard_data(db, year=year, project_id=project_id, project_ids=project_ids)
    if summary:
        return {"rows": rows, "summary": analytics.summarize_dashboard(rows)}
    return rows
