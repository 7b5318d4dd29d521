"""
Electrical emission records: metered grid electricity and its kg CO2e.

The total is always recomputed as kWh x factor when either input changes.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFoundOrDenied, ValidationFailed
from ..models.models import ElectricalEmission
from ..schemas.construction import ElectricalEmissionInput, ElectricalEmissionUpdate
from .emissions import calculate_electrical_emissions, format_emissions


log = structlog.get_logger(__name__)

_UPDATE_COLUMNS = {
    "electricityConsumedKwh": "electricity_consumed_kwh",
    "emissionFactorKgPerKwh": "emission_factor_kg_per_kwh",
    "measurementPeriodStart": "measurement_period_start",
    "measurementPeriodEnd": "measurement_period_end",
    "notes": "notes",
}


def electrical_emission_view(row: ElectricalEmission) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "projectId": str(row.project_id) if row.project_id else None,
        "organizationId": str(row.organization_id),
        "electricityConsumedKwh": row.electricity_consumed_kwh,
        "emissionFactorKgPerKwh": row.emission_factor_kg_per_kwh,
        "totalCo2eKg": row.total_co2e_kg,
        "totalLabel": format_emissions(row.total_co2e_kg or 0),
        "measurementPeriodStart": row.measurement_period_start.isoformat() if row.measurement_period_start else None,
        "measurementPeriodEnd": row.measurement_period_end.isoformat() if row.measurement_period_end else None,
        "notes": row.notes,
        "createdAt": row.created_at.isoformat() if row.created_at else None,
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }


def _total(kwh: float, factor: float) -> float:
    try:
        return calculate_electrical_emissions(kwh, factor)
    except ValueError as e:
        raise ValidationFailed(str(e))


def _check_period(row: ElectricalEmission) -> None:
    start, end = row.measurement_period_start, row.measurement_period_end
    if start and end and end < start:
        raise ValidationFailed("Measurement period end must not be before its start.")


def add_electrical_emission(
    db: Session,
    organization_id: uuid.UUID,
    payload: ElectricalEmissionInput,
    project_id: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    factor = payload.emissionFactorKgPerKwh
    if factor is None:
        factor = settings.grid_emission_factor
    now = datetime.now(timezone.utc)
    row = ElectricalEmission(
        project_id=project_id,
        organization_id=organization_id,
        electricity_consumed_kwh=payload.electricityConsumedKwh,
        emission_factor_kg_per_kwh=factor,
        total_co2e_kg=_total(payload.electricityConsumedKwh, factor),
        measurement_period_start=payload.measurementPeriodStart,
        measurement_period_end=payload.measurementPeriodEnd,
        notes=(payload.notes or "").strip() or None,
        created_at=now,
        updated_at=now,
    )
    _check_period(row)
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("electrical_emission_added", emission_id=str(row.id), project_id=str(project_id) if project_id else None)
    return electrical_emission_view(row)


def _list(db: Session, *criteria) -> List[Dict[str, Any]]:
    rows = (
        db.query(ElectricalEmission)
        .filter(*criteria)
        .order_by(ElectricalEmission.measurement_period_start.desc().nullslast(), ElectricalEmission.created_at.desc())
        .all()
    )
    return [electrical_emission_view(r) for r in rows]


def get_electrical_emissions_by_project(db: Session, project_id: uuid.UUID) -> List[Dict[str, Any]]:
    return _list(db, ElectricalEmission.project_id == project_id)


def get_electrical_emissions_by_organization(db: Session, organization_id: uuid.UUID) -> List[Dict[str, Any]]:
    return _list(db, ElectricalEmission.organization_id == organization_id)


def get_electrical_emissions_summary(db: Session, organization_id: uuid.UUID) -> Dict[str, Any]:
    kwh, co2e, count = (
        db.query(
            func.coalesce(func.sum(ElectricalEmission.electricity_consumed_kwh), 0),
            func.coalesce(func.sum(ElectricalEmission.total_co2e_kg), 0),
            func.count(ElectricalEmission.id),
        )
        .filter(ElectricalEmission.organization_id == organization_id)
        .one()
    )
    return {"totalElectricityKwh": float(kwh), "totalCo2eKg": float(co2e), "recordCount": int(count)}


def _scoped(db: Session, organization_id: uuid.UUID, emission_id: uuid.UUID) -> ElectricalEmission:
    row = (
        db.query(ElectricalEmission)
        .filter(ElectricalEmission.id == emission_id, ElectricalEmission.organization_id == organization_id)
        .first()
    )
    if row is None:
        raise NotFoundOrDenied("Electrical emission record not found or access denied.")
    return row


def update_electrical_emission(
    db: Session,
    organization_id: uuid.UUID,
    emission_id: uuid.UUID,
    update: ElectricalEmissionUpdate,
) -> Dict[str, Any]:
    row = _scoped(db, organization_id, emission_id)
    for field in update.model_fields_set:
        value = getattr(update, field)
        if field in ("electricityConsumedKwh", "emissionFactorKgPerKwh") and value is None:
            continue
        setattr(row, _UPDATE_COLUMNS[field], value)
    row.total_co2e_kg = _total(row.electricity_consumed_kwh, row.emission_factor_kg_per_kwh)
    _check_period(row)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return electrical_emission_view(row)


def delete_electrical_emission(db: Session, organization_id: uuid.UUID, emission_id: uuid.UUID) -> Dict[str, Any]:
    deleted = (
        db.query(ElectricalEmission)
        .filter(ElectricalEmission.id == emission_id, ElectricalEmission.organization_id == organization_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise NotFoundOrDenied("Electrical emission record not found or access denied.")
    log.info("electrical_emission_deleted", emission_id=str(emission_id))
    return {"success": True}
