import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.models import User
from ..schemas.construction import DailyLogUpsert, SubmitDailyLogRequest, SubmitMonthlyLogRequest
from ..services import logs as log_service
from ..services.projects import require_project_access


router = APIRouter(prefix="/projects/{project_id}", tags=["logs"])


def _result(result: dict) -> JSONResponse:
    return JSONResponse(result, status_code=200 if result.get("success") else 500)


@router.post("/daily-logs")
def upsert_daily_log(
    project_id: uuid.UUID,
    payload: DailyLogUpsert,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    return _result(log_service.upsert_daily_log(
        db,
        project_id,
        payload.date,
        payload.equipment_details,
        payload.equipment_fuel_consumed,
        payload.scope_one,
        payload.incident_count,
        payload.hours_worked,
    ))


@router.post("/logs/daily")
def submit_daily_log(
    project_id: uuid.UUID,
    payload: SubmitDailyLogRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    return _result(log_service.submit_daily_log(db, project_id, payload.date, payload.dailyData))


@router.post("/logs/monthly")
def submit_monthly_log(
    project_id: uuid.UUID,
    payload: SubmitMonthlyLogRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    require_project_access(db, user, project_id)
    return _result(log_service.submit_monthly_log(db, project_id, payload.date, payload.monthlyData))


@router.get("/logs")
def metrics_history(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    require_project_access(db, user, project_id)
    return log_service.get_construction_metrics_history(db, project_id)
