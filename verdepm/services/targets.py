import uuid
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ..errors import ValidationFailed
from ..models.models import ProjectTarget


log = structlog.get_logger(__name__)

# section -> {target column: key in the submitted values}
TARGET_SECTIONS: Dict[str, Dict[str, str]] = {
    "electricityUsage": {"electricity_consumption": "totalElectricityConsumed"},
    "equipmentUsage": {"equipment_usage": "totalFuel"},
    "fuelConsumption": {"logistics_fuel_consumption": "totalFuel"},
    "wasteGenerated": {
        "total_waste_mass": "totalWasteMass",
        "percentage_by_treatment": "percentByTreatment",
        "waste_emission_factor": "emissionFactor",
    },
    "waterSupply": {
        "total_water_consumed": "totalWaterConsumed",
        "water_emission_factor": "waterSupplyEmissionFactor",
    },
    "safetyIncident": {
        "number_of_incidents": "numberOfIncidents",
        "total_employee_hours": "totalEmployeeHours",
    },
}


def parse_number(value: Any, field: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be a valid number.", {field: "Invalid number"})


def _upsert(db: Session, project_id: uuid.UUID, values: Dict[str, Any]) -> uuid.UUID:
    """Single-statement insert-or-update keyed on project_id."""
    dialect = db.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    stmt = insert(ProjectTarget).values(id=uuid.uuid4(), project_id=project_id, **values)
    stmt = stmt.on_conflict_do_update(index_elements=[ProjectTarget.project_id], set_=values)
    db.execute(stmt)
    db.commit()
    return db.query(ProjectTarget.id).filter(ProjectTarget.project_id == project_id).scalar()


def save_simplified_targets(
    db: Session,
    project_id: uuid.UUID,
    scope_one: Any,
    scope_two: Any,
    scope_three: Any,
    trir: Any,
) -> uuid.UUID:
    values = {
        "scope_one": parse_number(scope_one, "scopeOne"),
        "scope_two": parse_number(scope_two, "scopeTwo"),
        "scope_three": parse_number(scope_three, "scopeThree"),
        "trir": parse_number(trir, "trir"),
    }
    target_id = _upsert(db, project_id, values)
    log.info("targets_saved", project_id=str(project_id))
    return target_id


def save_project_target(db: Session, project_id: uuid.UUID, section: str, values: Dict[str, Any]) -> uuid.UUID:
    mapping = TARGET_SECTIONS.get(section)
    if mapping is None:
        raise ValidationFailed(f"Unknown target section '{section}'.")
    updates: Dict[str, Any] = {}
    for column, key in mapping.items():
        number = parse_number(values.get(key), key)
        if column == "number_of_incidents" and number is not None:
            number = int(number)
        updates[column] = number
    target_id = _upsert(db, project_id, updates)
    log.info("target_section_saved", project_id=str(project_id), section=section)
    return target_id
