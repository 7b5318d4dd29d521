from datetime import date, datetime
from typing import Optional, List, Literal, Union, Any

from pydantic import BaseModel, Field, ConfigDict


class EquipmentEntry(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    hours: Optional[Union[str, float]] = None
    fuelRate: Optional[Union[str, float]] = None


class WasteEntry(BaseModel):
    id: Optional[str] = None
    mass: Optional[Union[str, float]] = None
    unit: Literal["kg", "ton"] = "kg"
    wasteType: Optional[str] = None
    treatmentMethod: Optional[str] = None
    treatmentPercentage: Optional[Union[str, float]] = None


class DailyLogUpsert(BaseModel):
    date: datetime
    equipment_details: List[EquipmentEntry] = []
    equipment_fuel_consumed: float = 0
    scope_one: float = 0
    incident_count: Optional[int] = None
    hours_worked: Optional[float] = None


class DailyLogData(BaseModel):
    fuelConsumptionLiters: Optional[float] = None
    equipmentEmissionsKg: Optional[float] = None
    safetyTrirRounded: Optional[float] = None
    scope1: float = 0
    incidentCount: Optional[int] = None
    hoursWorked: Optional[float] = None
    equipmentList: List[EquipmentEntry] = []


class MonthlyLogData(BaseModel):
    rawElectricityKwh: float = 0
    rawWaterCubicM: float = 0
    rawWasteKg: float = 0
    electricityEmissionsKg: Optional[float] = None
    waterEmissionsKg: Optional[float] = None
    wasteEmissionsKg: Optional[float] = None
    scope2: Optional[float] = None
    scope3: float = 0
    wasteEntries: List[WasteEntry] = []


class SubmitDailyLogRequest(BaseModel):
    date: datetime
    dailyData: DailyLogData


class SubmitMonthlyLogRequest(BaseModel):
    date: datetime
    monthlyData: MonthlyLogData


class MaterialInput(BaseModel):
    category: Optional[str] = None
    supplier: Optional[str] = None
    name: Optional[str] = None
    warehouse: Optional[str] = None
    cost: Optional[float] = None
    unit: Optional[str] = None
    credentials: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    specSheetPath: Optional[str] = None
    specSheetUrl: Optional[str] = None


class MaterialUpdate(MaterialInput):
    """Core fields are always written; the optional document/approval fields only when non-empty."""
    approvalStatus: Optional[Literal["pending", "approved", "rejected"]] = None
    receiptUrl: Optional[str] = None
    receiptPath: Optional[str] = None
    deliveryDate: Optional[datetime] = None


class MaterialDeliveryUpdate(BaseModel):
    delivery_distance: Optional[float] = None
    vehicle_fuel_efficiency: Optional[float] = None
    combustion_emission_factor: Optional[float] = None
    # Accepts anything; parsed by the service so a bad date yields a result, not a 422
    delivery_date: Optional[Any] = None
    delivery_status: Optional[str] = None


class MaterialFuelRequest(BaseModel):
    fuel: float


class SourcedMaterialView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    category: str = ""
    name: str = ""
    supplier: str = ""
    warehouse: Optional[str] = None
    cost: str = ""
    unit: Optional[str] = None
    credentials: Optional[str] = None
    notes: str = ""
    status: str = "Identified"
    specSheetPath: Optional[str] = None
    approvalStatus: Optional[str] = None
    specSheetUrl: Optional[str] = None
    fuelSummary: float = 0
    deliveryStatus: str = "Not Delivered"
    receiptUrl: Optional[str] = None
    receiptPath: Optional[str] = None
    deliveryDistance: Optional[float] = None
    vehicleFuelEfficiency: Optional[float] = None
    combustionEmissionFactor: Optional[float] = None
    deliveryDate: Optional[datetime] = None


class TargetsInput(BaseModel):
    scopeOne: Optional[Union[str, float]] = None
    scopeTwo: Optional[Union[str, float]] = None
    scopeThree: Optional[Union[str, float]] = None
    trir: Optional[Union[str, float]] = None


class TargetSectionInput(BaseModel):
    values: dict = Field(default_factory=dict)


class ElectricalEmissionInput(BaseModel):
    electricityConsumedKwh: float = Field(ge=0)
    # 0 or missing falls back to the configured grid factor
    emissionFactorKgPerKwh: Optional[float] = Field(default=None, ge=0)
    measurementPeriodStart: Optional[date] = None
    measurementPeriodEnd: Optional[date] = None
    notes: Optional[str] = None


class ElectricalEmissionUpdate(BaseModel):
    """Only the fields the client sent are written."""
    electricityConsumedKwh: Optional[float] = Field(default=None, ge=0)
    emissionFactorKgPerKwh: Optional[float] = Field(default=None, ge=0)
    measurementPeriodStart: Optional[date] = None
    measurementPeriodEnd: Optional[date] = None
    notes: Optional[str] = None
