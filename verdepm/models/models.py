import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    JSON,
    UniqueConstraint,
    Text,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class Organization(Base):
    __tablename__ = "organizations"

    organization_id: Mapped[uuid.UUID] = uuid_pk()
    organization_name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    # Compliance documents: <doc>_storage_path / <doc>_file_url / <doc>_uploaded_at
    sec_dti_storage_path: Mapped[Optional[str]] = mapped_column(String(1024))
    sec_dti_file_url: Mapped[Optional[str]] = mapped_column(String(2048))
    sec_dti_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    mayors_permit_storage_path: Mapped[Optional[str]] = mapped_column(String(1024))
    mayors_permit_file_url: Mapped[Optional[str]] = mapped_column(String(2048))
    mayors_permit_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    bir_storage_path: Mapped[Optional[str]] = mapped_column(String(1024))
    bir_file_url: Mapped[Optional[str]] = mapped_column(String(2048))
    bir_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = uuid_pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(2048))
    avatar_storage_path: Mapped[Optional[str]] = mapped_column(String(1024))
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.organization_id", ondelete="SET NULL")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    modified_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))


class OrganizationMember(Base):
    __tablename__ = "organization_member"

    id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.organization_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="member")  # owner|manager|member|supplier

    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_org_member"),)


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"))
    code: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Project(Base):
    __tablename__ = "projects"

    project_id: Mapped[uuid.UUID] = uuid_pk()
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.organization_id", ondelete="CASCADE"), index=True
    )
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Unique so concurrent creations cannot persist the same slug
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(2000))
    status: Mapped[str] = mapped_column(String(50), default="planning")  # planning|in-progress|on-hold|completed
    priority: Mapped[str] = mapped_column(String(20), default="medium")  # low|medium|high
    category: Mapped[Optional[str]] = mapped_column(String(100))
    project_manager: Mapped[Optional[str]] = mapped_column(String(255))
    client_name: Mapped[Optional[str]] = mapped_column(String(255))
    location: Mapped[Optional[str]] = mapped_column(String(500))
    budget: Mapped[Optional[float]] = mapped_column(Float)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    building_permit_url: Mapped[Optional[str]] = mapped_column(String(2048))
    building_permit_storage_path: Mapped[Optional[str]] = mapped_column(String(1024))
    approval_status: Mapped[Optional[str]] = mapped_column(String(20))  # pending|approved|rejected
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)


class Material(Base):
    """Sourced material for a project in construction."""
    __tablename__ = "material"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_category: Mapped[Optional[str]] = mapped_column(String(100))
    supplier: Mapped[Optional[str]] = mapped_column(String(255))
    material_name: Mapped[Optional[str]] = mapped_column(String(255))
    warehouse: Mapped[Optional[str]] = mapped_column(String(255))
    estimated_cost: Mapped[Optional[float]] = mapped_column(Float)
    unit: Mapped[Optional[str]] = mapped_column(String(50))
    sustainability_credentials: Mapped[Optional[str]] = mapped_column(Text)
    supplier_vetting_notes: Mapped[Optional[str]] = mapped_column(Text)
    vetting: Mapped[Optional[str]] = mapped_column(String(50), default="Identified")  # Identified|Vetted|Denied|Not Delivered
    approval_status: Mapped[Optional[str]] = mapped_column(String(20))  # pending|approved|rejected
    spec_sheet_path: Mapped[Optional[str]] = mapped_column(String(1024))
    spec_sheet_url: Mapped[Optional[str]] = mapped_column(String(2048))
    receipt_path: Mapped[Optional[str]] = mapped_column(String(1024))
    receipt_url: Mapped[Optional[str]] = mapped_column(String(2048))
    fuel_summary: Mapped[Optional[float]] = mapped_column(Float, default=0)
    delivery_distance: Mapped[Optional[float]] = mapped_column(Float)  # km
    vehicle_fuel_efficiency: Mapped[Optional[float]] = mapped_column(Float)  # km/L
    combustion_emission_factor: Mapped[Optional[float]] = mapped_column(Float)  # kg CO2e/L
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivery_status: Mapped[Optional[str]] = mapped_column(String(50), default="Not Delivered")
    submitted_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class ElectricalEmission(Base):
    """Metered grid electricity for an organization, optionally tied to a project."""
    __tablename__ = "electrical_emission"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.project_id", ondelete="CASCADE"), index=True
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.organization_id", ondelete="CASCADE"), nullable=False, index=True
    )
    electricity_consumed_kwh: Mapped[float] = mapped_column(Float, nullable=False)
    emission_factor_kg_per_kwh: Mapped[float] = mapped_column(Float, nullable=False)
    total_co2e_kg: Mapped[float] = mapped_column(Float, nullable=False)  # kwh x factor
    measurement_period_start: Mapped[Optional[date]] = mapped_column(Date)
    measurement_period_end: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class PreconstructionMaterial(Base):
    __tablename__ = "preconstruction_material"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_setup_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    material_category: Mapped[Optional[str]] = mapped_column(String(100))
    planned_supplier: Mapped[Optional[str]] = mapped_column(String(255))
    material_name: Mapped[Optional[str]] = mapped_column(String(255))
    warehouse_of_the_supplier: Mapped[Optional[str]] = mapped_column(String(255))
    budgeted_cost: Mapped[Optional[float]] = mapped_column(Float)
    unit: Mapped[Optional[str]] = mapped_column(String(50))
    sustainability_credentials: Mapped[Optional[str]] = mapped_column(Text)
    supplier_vetting_notes: Mapped[Optional[str]] = mapped_column(Text)
    spec_sheet_path: Mapped[Optional[str]] = mapped_column(String(1024))
    vetting_status: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class ProjectTarget(Base):
    __tablename__ = "project_targets"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False, unique=True
    )
    scope_one: Mapped[Optional[float]] = mapped_column(Float)
    scope_two: Mapped[Optional[float]] = mapped_column(Float)
    scope_three: Mapped[Optional[float]] = mapped_column(Float)
    trir: Mapped[Optional[float]] = mapped_column(Float)
    electricity_consumption: Mapped[Optional[float]] = mapped_column(Float)
    equipment_usage: Mapped[Optional[float]] = mapped_column(Float)
    logistics_fuel_consumption: Mapped[Optional[float]] = mapped_column(Float)
    total_waste_mass: Mapped[Optional[float]] = mapped_column(Float)
    percentage_by_treatment: Mapped[Optional[float]] = mapped_column(Float)
    waste_emission_factor: Mapped[Optional[float]] = mapped_column(Float)
    total_water_consumed: Mapped[Optional[float]] = mapped_column(Float)
    water_emission_factor: Mapped[Optional[float]] = mapped_column(Float)
    number_of_incidents: Mapped[Optional[int]] = mapped_column(Integer)
    total_employee_hours: Mapped[Optional[float]] = mapped_column(Float)


class DailyLog(Base):
    """Append-only daily operations log (scope 1, safety)"""
    __tablename__ = "daily_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    equipment_details: Mapped[Optional[list]] = mapped_column(JSON)  # [{id, name, hours, fuelRate}]
    equipment_emissions: Mapped[Optional[float]] = mapped_column(Float)  # kg CO2e
    scope_one: Mapped[Optional[float]] = mapped_column(Float)
    equipment_fuel_consumed: Mapped[Optional[float]] = mapped_column(Float)  # liters
    number_of_incidents: Mapped[Optional[int]] = mapped_column(Integer)
    total_employee_hours: Mapped[Optional[float]] = mapped_column(Float)

    __table_args__ = (Index("idx_daily_logs_project_ts", "project_id", "timestamp"),)


class MonthlyLog(Base):
    """Append-only monthly operations log (scope 2 and 3)"""
    __tablename__ = "monthly_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    electricity_consumption: Mapped[Optional[float]] = mapped_column(Float)  # kWh
    water_consumption: Mapped[Optional[float]] = mapped_column(Float)  # m3
    total_waste_mass: Mapped[Optional[float]] = mapped_column(Float)  # kg
    treatment_percentage: Mapped[Optional[float]] = mapped_column(Float)
    waste_emission_factor: Mapped[Optional[float]] = mapped_column(Float)
    waste_details: Mapped[Optional[list]] = mapped_column(JSON)
    scope_two: Mapped[Optional[float]] = mapped_column(Float)
    water_emission: Mapped[Optional[float]] = mapped_column(Float)
    waste_emission: Mapped[Optional[float]] = mapped_column(Float)
    scope_three: Mapped[Optional[float]] = mapped_column(Float)

    __table_args__ = (Index("idx_monthly_logs_project_ts", "project_id", "timestamp"),)


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[Optional[str]] = mapped_column(String(20), default="info")  # info|success|warning|error
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)


def row_dict(obj) -> dict:
    """Column name -> value for an ORM row."""
    return {c.name: getattr(obj, c.key) for c in obj.__table__.columns}
