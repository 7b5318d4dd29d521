"""
Material sourcing (construction) and planned materials (pre-construction).

Writes are scoped by project/setup id; a write that touches no row raises
``NotFoundOrDenied`` so callers cannot tell a missing row from a foreign one.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import NotFound, NotFoundOrDenied
from ..models.models import Material, PreconstructionMaterial, row_dict
from ..schemas.construction import (
    MaterialInput,
    MaterialUpdate,
    MaterialDeliveryUpdate,
    SourcedMaterialView,
)


log = structlog.get_logger(__name__)


def _material_row(m: Material) -> Dict[str, Any]:
    d = row_dict(m)
    d["id"] = str(m.id)
    d["project_id"] = str(m.project_id)
    d["submitted_by"] = str(m.submitted_by) if m.submitted_by else None
    return d


def add_material_sourcing(
    db: Session,
    project_id: uuid.UUID,
    material: MaterialInput,
    submitted_by: Optional[uuid.UUID] = None,
) -> Dict[str, Any]:
    row = Material(
        project_id=project_id,
        material_category=material.category,
        supplier=material.supplier,
        material_name=material.name,
        warehouse=material.warehouse,
        estimated_cost=material.cost,
        unit=material.unit,
        sustainability_credentials=material.credentials,
        supplier_vetting_notes=material.notes,
        spec_sheet_path=material.specSheetPath,
        spec_sheet_url=material.specSheetUrl,
        vetting=material.status,
        delivery_status="Not Delivered",
        submitted_by=submitted_by,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("material_added", material_id=str(row.id), project_id=str(project_id))
    return _material_row(row)


def update_material_sourcing(
    db: Session,
    material_id: uuid.UUID,
    project_id: uuid.UUID,
    update: MaterialUpdate,
) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        "material_category": update.category,
        "supplier": update.supplier,
        "material_name": update.name,
        "warehouse": update.warehouse,
        "estimated_cost": update.cost,
        "unit": update.unit,
        "sustainability_credentials": update.credentials,
        "supplier_vetting_notes": update.notes,
        "vetting": update.status,
    }
    optional = {
        "spec_sheet_path": update.specSheetPath,
        "spec_sheet_url": update.specSheetUrl,
        "approval_status": update.approvalStatus,
        "receipt_url": update.receiptUrl,
        "receipt_path": update.receiptPath,
        "delivery_date": update.deliveryDate,
    }
    values.update({k: v for k, v in optional.items() if v})

    updated = (
        db.query(Material)
        .filter(Material.id == material_id, Material.project_id == project_id)
        .update(values, synchronize_session=False)
    )
    db.commit()
    if not updated:
        raise NotFoundOrDenied("Material not found or access denied.")
    row = db.query(Material).filter(Material.id == material_id).first()
    return _material_row(row)


def delete_material_sourcing(db: Session, material_id: uuid.UUID, project_id: uuid.UUID) -> Dict[str, Any]:
    deleted = (
        db.query(Material)
        .filter(Material.id == material_id, Material.project_id == project_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise NotFoundOrDenied("Material not found or access denied.")
    return {"success": True}


def add_material_fuel(db: Session, material_id: uuid.UUID, fuel_to_add: float) -> Dict[str, Any]:
    row = db.query(Material).filter(Material.id == material_id).first()
    if row is None:
        raise NotFound("Material not found.")
    # Increment in SQL so concurrent additions are not lost
    db.query(Material).filter(Material.id == material_id).update(
        {Material.fuel_summary: func.coalesce(Material.fuel_summary, 0) + fuel_to_add},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(row)
    return _material_row(row)


def _parse_delivery_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def update_material_delivery(db: Session, material_id: uuid.UUID, update: MaterialDeliveryUpdate) -> Dict[str, Any]:
    provided = update.model_dump(exclude_unset=True)
    values: Dict[str, Any] = {}
    for key in ("delivery_distance", "vehicle_fuel_efficiency", "combustion_emission_factor", "delivery_status"):
        if key in provided:
            values[key] = provided[key]
    if "delivery_date" in provided:
        raw = provided["delivery_date"]
        if raw is None:
            values["delivery_date"] = None
        else:
            try:
                values["delivery_date"] = _parse_delivery_date(raw)
            except (TypeError, ValueError, OverflowError, OSError):
                return {"success": False, "error": "Invalid delivery date"}

    if not values:
        return {"success": False, "error": "No delivery fields provided"}

    try:
        db.query(Material).filter(Material.id == material_id).update(values, synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.error("material_delivery_update_failed", material_id=str(material_id), error=str(e))
        return {"success": False, "error": "Failed to update material delivery"}
    return {"success": True, "error": None}


def get_sourcing_materials(db: Session, project_id: uuid.UUID) -> List[SourcedMaterialView]:
    rows = (
        db.query(Material)
        .filter(Material.project_id == project_id)
        .order_by(Material.created_at.asc())
        .all()
    )
    return [
        SourcedMaterialView(
            id=str(m.id),
            category=m.material_category or "",
            name=m.material_name or "",
            supplier=m.supplier or "",
            warehouse=m.warehouse,
            cost=str(m.estimated_cost) if m.estimated_cost is not None else "",
            unit=m.unit,
            credentials=m.sustainability_credentials,
            notes=m.supplier_vetting_notes or "",
            status=m.vetting or "Identified",
            specSheetPath=m.spec_sheet_path,
            approvalStatus=m.approval_status,
            specSheetUrl=m.spec_sheet_url,
            fuelSummary=m.fuel_summary or 0,
            deliveryStatus=m.delivery_status or "Not Delivered",
            receiptUrl=m.receipt_url,
            receiptPath=m.receipt_path,
            deliveryDistance=m.delivery_distance,
            vehicleFuelEfficiency=m.vehicle_fuel_efficiency,
            combustionEmissionFactor=m.combustion_emission_factor,
            deliveryDate=m.delivery_date,
        )
        for m in rows
    ]


def add_material(db: Session, setup_id: uuid.UUID, material: MaterialInput) -> Dict[str, Any]:
    """Add a planned material to a pre-construction setup."""
    warehouse = material.warehouse if material.warehouse and material.warehouse.strip() else None
    row = PreconstructionMaterial(
        project_setup_id=setup_id,
        material_category=material.category,
        planned_supplier=material.supplier,
        material_name=material.name,
        warehouse_of_the_supplier=warehouse,
        budgeted_cost=material.cost,
        unit=material.unit,
        sustainability_credentials=material.credentials,
        supplier_vetting_notes=material.notes,
        spec_sheet_path=material.specSheetPath,
        vetting_status=material.status,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    d = row_dict(row)
    d["id"] = str(row.id)
    d["project_setup_id"] = str(row.project_setup_id)
    return d


def delete_material(db: Session, material_id: uuid.UUID, setup_id: uuid.UUID) -> Dict[str, Any]:
    deleted = (
        db.query(PreconstructionMaterial)
        .filter(PreconstructionMaterial.id == material_id, PreconstructionMaterial.project_setup_id == setup_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise NotFoundOrDenied("Material not found or access denied.")
    return {"success": True}
