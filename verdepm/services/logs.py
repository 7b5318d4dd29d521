"""
Daily and monthly construction log ingestion.

Logs are append-only: every submission inserts a new row, even for a date
that already has one. Aggregation happens in ``services.analytics``.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import describe_db_error
from ..models.models import DailyLog, MonthlyLog
from ..schemas.construction import DailyLogData, MonthlyLogData, EquipmentEntry
from .emissions import (
    EQUIPMENT_EMISSION_FACTOR_KG_PER_LITER,
    parse_float,
    trir,
    waste_emission_factor,
)


log = structlog.get_logger(__name__)


def _dump_entries(entries) -> List[Dict[str, Any]]:
    return [e.model_dump() if hasattr(e, "model_dump") else dict(e) for e in entries or []]


def upsert_daily_log(
    db: Session,
    project_id: uuid.UUID,
    date: datetime,
    equipment_details: List[EquipmentEntry],
    equipment_fuel_consumed: float,
    scope_one: float,
    incident_count: Optional[int] = None,
    hours_worked: Optional[float] = None,
) -> Dict[str, Any]:
    """Insert a daily log row; the name is kept for callers, it never updates in place."""
    try:
        db.add(DailyLog(
            project_id=project_id,
            timestamp=date,
            equipment_details=_dump_entries(equipment_details),
            # equipment_emissions is kg CO2e, same meaning as scope_one here
            equipment_emissions=scope_one,
            scope_one=scope_one,
            equipment_fuel_consumed=equipment_fuel_consumed,
            number_of_incidents=incident_count,
            total_employee_hours=hours_worked,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("daily_log_insert_failed", project_id=str(project_id), error=str(e))
        return {"success": False, "error": describe_db_error(e, "Failed to upsert daily log")}
    return {"success": True, "error": None}


def equipment_fuel_liters(entries: List[EquipmentEntry]) -> float:
    """Total fuel (L) = sum of hours x fuel rate; unparseable values count as 0."""
    return sum(parse_float(e.hours) * parse_float(e.fuelRate) for e in entries)


def submit_daily_log(db: Session, project_id: uuid.UUID, date: datetime, daily_data: DailyLogData) -> Dict[str, Any]:
    warnings: List[str] = []
    total_fuel = equipment_fuel_liters(daily_data.equipmentList)
    total_emissions = total_fuel * EQUIPMENT_EMISSION_FACTOR_KG_PER_LITER
    try:
        db.add(DailyLog(
            project_id=project_id,
            timestamp=date,
            number_of_incidents=daily_data.incidentCount,
            total_employee_hours=daily_data.hoursWorked,
            equipment_emissions=total_emissions,
            equipment_fuel_consumed=total_fuel,
            scope_one=total_emissions,
            equipment_details=_dump_entries(daily_data.equipmentList),
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("daily_log_submit_failed", project_id=str(project_id), error=str(e))
        return {"success": False, "error": describe_db_error(e, "Unable to submit report.")}
    log.info("daily_log_submitted", project_id=str(project_id), fuel_l=total_fuel, emissions_kg=total_emissions)
    return {"success": True, "warnings": warnings}


def weighted_waste_averages(entries) -> Dict[str, float]:
    """Mass-weighted emission factor and treatment percentage over waste entries (mass in kg)."""
    total_mass = 0.0
    factor_sum = 0.0
    percentage_sum = 0.0
    for entry in entries:
        mass = parse_float(entry.mass)
        mass_kg = mass * 1000 if entry.unit == "ton" else mass
        factor = waste_emission_factor(entry.wasteType, entry.treatmentMethod)
        total_mass += mass_kg
        factor_sum += factor * mass_kg
        percentage_sum += parse_float(entry.treatmentPercentage) * mass_kg
    if total_mass <= 0:
        return {"emission_factor": 0.0, "treatment_percentage": 0.0, "total_mass_kg": 0.0}
    return {
        "emission_factor": factor_sum / total_mass,
        "treatment_percentage": percentage_sum / total_mass,
        "total_mass_kg": total_mass,
    }


def submit_monthly_log(db: Session, project_id: uuid.UUID, date: datetime, monthly_data: MonthlyLogData) -> Dict[str, Any]:
    warnings: List[str] = []
    water_emissions = monthly_data.waterEmissionsKg or 0
    waste_emissions = monthly_data.wasteEmissionsKg or 0
    scope3 = water_emissions + waste_emissions
    averages = weighted_waste_averages(monthly_data.wasteEntries)
    try:
        db.add(MonthlyLog(
            project_id=project_id,
            timestamp=date,
            electricity_consumption=monthly_data.rawElectricityKwh,
            water_consumption=monthly_data.rawWaterCubicM,
            total_waste_mass=monthly_data.rawWasteKg,
            treatment_percentage=averages["treatment_percentage"],
            waste_emission_factor=averages["emission_factor"],
            waste_details=_dump_entries(monthly_data.wasteEntries),
            scope_two=monthly_data.electricityEmissionsKg or 0,
            water_emission=water_emissions,
            waste_emission=waste_emissions,
            scope_three=scope3,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("monthly_log_submit_failed", project_id=str(project_id), error=str(e))
        return {"success": False, "error": describe_db_error(e, "Unable to submit report.")}
    return {
        "success": True,
        "warnings": warnings,
        "sumElec": monthly_data.rawElectricityKwh,
        "sumWater": monthly_data.rawWaterCubicM,
        "sumWaste": monthly_data.rawWasteKg,
    }


def _map_daily(row: DailyLog) -> Dict[str, Any]:
    fuel: Optional[float] = None
    equipment_usage: Optional[float] = None
    scope1: Optional[float] = None

    if row.equipment_emissions is not None:
        equipment_usage = row.equipment_emissions
        fuel = equipment_usage / EQUIPMENT_EMISSION_FACTOR_KG_PER_LITER
        scope1 = equipment_usage
    if fuel is None and row.equipment_fuel_consumed:
        fuel = float(row.equipment_fuel_consumed)
    if scope1 is None and row.scope_one is not None:
        scope1 = row.scope_one
        if equipment_usage is None:
            equipment_usage = scope1
    if equipment_usage is None and fuel is not None:
        equipment_usage = fuel * EQUIPMENT_EMISSION_FACTOR_KG_PER_LITER
        scope1 = equipment_usage

    safety_trir = None
    if row.number_of_incidents is not None and row.total_employee_hours:
        safety_trir = trir(row.number_of_incidents, row.total_employee_hours)

    return {
        "id": str(row.id),
        "log_date": row.timestamp.isoformat() if row.timestamp else None,
        "fuel_consumption_liters": fuel,
        "equipment_usage_tco2e": equipment_usage,
        "safety_incidents": safety_trir,
        "scope1": scope1,
        "incident_count": row.number_of_incidents,
        "hours_worked": row.total_employee_hours,
    }


def _map_monthly(row: MonthlyLog) -> Dict[str, Any]:
    ts = row.timestamp.isoformat() if row.timestamp else None
    return {
        "id": str(row.id),
        "log_month": ts,
        "submitted_on": ts,
        "electricity_usage_kwh": row.electricity_consumption,
        "water_consumption_cubic_m": row.water_consumption,
        "waste_generated_kg": row.total_waste_mass,
        "scope3": row.scope_three,
        "waste_details": row.waste_details,
    }


def get_construction_metrics_history(db: Session, project_id: uuid.UUID) -> Dict[str, Any]:
    try:
        daily = (
            db.query(DailyLog)
            .filter(DailyLog.project_id == project_id)
            .order_by(DailyLog.timestamp.desc())
            .all()
        )
        monthly = (
            db.query(MonthlyLog)
            .filter(MonthlyLog.project_id == project_id)
            .order_by(MonthlyLog.timestamp.desc())
            .all()
        )
    except SQLAlchemyError as e:
        log.error("metrics_history_failed", project_id=str(project_id), error=str(e))
        return {"daily": [], "monthly": [], "error": "Failed to fetch metrics history"}
    return {
        "daily": [_map_daily(r) for r in daily],
        "monthly": [_map_monthly(r) for r in monthly],
        "error": None,
    }
