"""
Analytics over the construction log tables.

The helpers at the top are pure; the ``get_*`` functions read logs and
targets and fold them into per-month series.
"""
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ExternalServiceError
from ..models.models import DailyLog, MonthlyLog, ProjectTarget, row_dict
from .emissions import TRIR_STANDARD_HOURS, kg_to_tonnes


log = structlog.get_logger(__name__)


class Trend(NamedTuple):
    slope: float
    intercept: float


def calculate_trend(data: Sequence[float]) -> Trend:
    """Least-squares line through ``data`` using the sample index as x."""
    n = len(data)
    if n < 2:
        return Trend(0.0, 0.0)
    sum_x = sum_y = sum_xy = sum_xx = 0.0
    for i, y in enumerate(data):
        sum_x += i
        sum_y += y
        sum_xy += i * y
        sum_xx += i * i
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return Trend(slope, intercept)


def calculate_mom(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def calculate_intensity(emissions: float, man_hours: float) -> float:
    if man_hours == 0:
        return 0.0
    return emissions / man_hours


def month_key(ts) -> str:
    return f"{ts.year:04d}-{ts.month:02d}"


def _safe_all(query, what: str, project_id) -> list:
    try:
        return query.all()
    except SQLAlchemyError as e:
        log.error("post_construction_query_failed", what=what, project_id=str(project_id), error=str(e))
        return []


def get_post_construction_data(db: Session, project_id: uuid.UUID) -> Dict[str, Any]:
    try:
        target_row = db.query(ProjectTarget).filter(ProjectTarget.project_id == project_id).first()
    except SQLAlchemyError as e:
        log.error("post_construction_query_failed", what="targets", project_id=str(project_id), error=str(e))
        target_row = None
    targets = None
    if target_row is not None:
        targets = row_dict(target_row)
        targets["id"] = str(target_row.id)
        targets["project_id"] = str(target_row.project_id)

    daily = _safe_all(
        db.query(DailyLog).filter(DailyLog.project_id == project_id).order_by(DailyLog.timestamp.asc()),
        "daily_logs",
        project_id,
    )
    monthly = _safe_all(
        db.query(MonthlyLog).filter(MonthlyLog.project_id == project_id).order_by(MonthlyLog.timestamp.asc()),
        "monthly_logs",
        project_id,
    )

    total_one = total_two = total_three = 0.0
    total_incidents = 0
    total_hours = 0.0
    trends: Dict[str, Dict[str, float]] = {}

    def _bucket(ts) -> Dict[str, float]:
        return trends.setdefault(month_key(ts), {"scope_one": 0.0, "scope_two": 0.0, "scope_three": 0.0})

    for d in daily:
        total_one += d.equipment_emissions or 0
        total_incidents += d.number_of_incidents or 0
        total_hours += d.total_employee_hours or 0
        _bucket(d.timestamp)["scope_one"] += d.equipment_emissions or 0

    for m in monthly:
        total_two += m.scope_two or 0
        total_three += m.scope_three or 0
        bucket = _bucket(m.timestamp)
        bucket["scope_two"] += m.scope_two or 0
        bucket["scope_three"] += m.scope_three or 0

    trir = total_incidents * TRIR_STANDARD_HOURS / total_hours if total_hours > 0 else 0

    target_one = (targets or {}).get("scope_one") or None
    target_two = (targets or {}).get("scope_two") or None
    target_three = (targets or {}).get("scope_three") or None
    trend_rows = [
        {
            "date": key,
            **values,
            "target_scope_one": target_one,
            "target_scope_two": target_two,
            "target_scope_three": target_three,
        }
        for key, values in sorted(trends.items())
    ]

    return {
        "targets": targets,
        "actuals": {
            "scope_one": total_one,
            "scope_two": total_two,
            "scope_three": total_three,
            "trir": trir,
            "total_incidents": total_incidents,
            "total_hours": total_hours,
        },
        "trends": trend_rows,
    }


def _empty_dashboard_row(month: str, project_id: str) -> Dict[str, Any]:
    return {
        "month_year": month,
        "project_id": project_id,
        "total_scope_1": 0.0,
        "equipment_emissions": 0.0,
        "electricity_kwh": 0.0,
        "water_m3": 0.0,
        "waste_kg": 0.0,
        "total_scope_2": 0.0,
        "total_scope_3": 0.0,
        "total_emissions_tco2e": 0.0,
        "total_man_hours": 0.0,
        "safety_incidents": 0,
    }


def get_dashboard_data(
    db: Session,
    year: Optional[str] = None,
    project_id: Optional[str] = None,
    project_ids: Optional[Sequence[uuid.UUID]] = None,
) -> List[Dict[str, Any]]:
    """
    Monthly emission rows per project, ascending by month.

    Args:
        year: ``"YYYY"`` to keep one year; ``None`` or ``"all"`` keeps every month.
        project_id: Single project filter; ``None`` or ``"all"`` keeps every project.
        project_ids: Restricts rows to these projects (the caller's organization).
    """
    try:
        daily_q = db.query(DailyLog)
        monthly_q = db.query(MonthlyLog)
        if project_id and project_id != "all":
            pid = uuid.UUID(str(project_id))
            daily_q = daily_q.filter(DailyLog.project_id == pid)
            monthly_q = monthly_q.filter(MonthlyLog.project_id == pid)
        if project_ids is not None:
            daily_q = daily_q.filter(DailyLog.project_id.in_(list(project_ids)))
            monthly_q = monthly_q.filter(MonthlyLog.project_id.in_(list(project_ids)))
        daily = daily_q.all()
        monthly = monthly_q.all()
    except (SQLAlchemyError, ValueError) as e:
        log.error("dashboard_query_failed", error=str(e))
        raise ExternalServiceError("Failed to fetch dashboard data")

    rows: Dict[tuple, Dict[str, Any]] = {}

    def _row(ts, pid) -> Dict[str, Any]:
        key = (month_key(ts), str(pid))
        if key not in rows:
            rows[key] = _empty_dashboard_row(*key)
        return rows[key]

    for d in daily:
        r = _row(d.timestamp, d.project_id)
        r["total_scope_1"] += d.equipment_emissions or 0
        r["equipment_emissions"] += d.equipment_emissions or 0
        r["total_man_hours"] += d.total_employee_hours or 0
        r["safety_incidents"] += d.number_of_incidents or 0
    for m in monthly:
        r = _row(m.timestamp, m.project_id)
        r["electricity_kwh"] += m.electricity_consumption or 0
        r["water_m3"] += m.water_consumption or 0
        r["waste_kg"] += m.total_waste_mass or 0
        r["total_scope_2"] += m.scope_two or 0
        r["total_scope_3"] += m.scope_three or 0

    out = []
    for (month, _pid), r in sorted(rows.items()):
        if year and year != "all" and not month.startswith(f"{year}-"):
            continue
        r["total_emissions_tco2e"] = kg_to_tonnes(r["total_scope_1"] + r["total_scope_2"] + r["total_scope_3"])
        out.append(r)
    return out


def summarize_dashboard(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Month series with trend line and intensity, plus headline KPIs and scope mix."""
    months: "OrderedDict[str, Dict[str, float]]" = OrderedDict()
    for r in sorted(rows, key=lambda x: x["month_year"]):
        m = months.setdefault(r["month_year"], {
            "totalEmissions": 0.0, "manHours": 0.0, "scope1": 0.0, "scope2": 0.0, "scope3": 0.0,
            "electricity": 0.0, "water": 0.0, "incidents": 0,
        })
        m["totalEmissions"] += r["total_emissions_tco2e"]
        m["manHours"] += r["total_man_hours"]
        m["scope1"] += r["total_scope_1"]
        m["scope2"] += r["total_scope_2"]
        m["scope3"] += r["total_scope_3"]
        m["electricity"] += r["electricity_kwh"]
        m["water"] += r["water_m3"]
        m["incidents"] += r["safety_incidents"]

    series = list(months.values())
    emissions = [m["totalEmissions"] for m in series]
    slope, intercept = calculate_trend(emissions)
    monthly = [
        {
            "month": key,
            **m,
            # trend line anchored at zero for the first month
            "trend": slope * i,
            "intensity": calculate_intensity(m["totalEmissions"], m["manHours"]),
        }
        for i, (key, m) in enumerate(months.items())
    ]

    total_emissions = sum(emissions)
    total_hours = sum(m["manHours"] for m in series)
    mom = calculate_mom(emissions[-1], emissions[-2]) if len(emissions) >= 2 else 0.0
    return {
        "monthly": monthly,
        "kpis": {
            "totalEmissions": total_emissions,
            "momChange": mom,
            "intensity": calculate_intensity(total_emissions, total_hours),
            "resourceConsumption": sum(m["electricity"] + m["water"] for m in series),
            "safetyIndex": sum(m["incidents"] for m in series),
        },
        "scopeMix": {
            "scope1": sum(m["scope1"] for m in series),
            "scope2": sum(m["scope2"] for m in series),
            "scope3": sum(m["scope3"] for m in series),
        },
    }
