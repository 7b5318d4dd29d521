"""Emission factors and unit helpers for construction-phase reporting."""
from typing import Optional

from ..config import settings


# kg CO2e per litre of diesel burned by equipment
EQUIPMENT_EMISSION_FACTOR_KG_PER_LITER = 2.68
TRIR_STANDARD_HOURS = 200_000

# kg CO2e per kg of waste, by treatment method
WASTE_EMISSION_FACTORS_KG_PER_KG = {
    "landfill": 1.8,
    "incineration": 2.8,
    "recycling": 0.12,
    "compost": 0.1,
}

# UK Gov GHG conversion factors 2023; types not listed use the generic table
WASTE_TYPE_SPECIFIC_EMISSION_FACTORS = {
    "Plastic": {"landfill": 0.029, "incineration": 2.53, "recycling": 0.021, "compost": 0},
    "Food": {"landfill": 0.626, "incineration": 0.02, "recycling": 0, "compost": 0.01},
    "Paper": {"landfill": 1.04, "incineration": 0.021, "recycling": 0.021, "compost": 0.01},
    "Metal": {"landfill": 0.022, "incineration": 0.021, "recycling": 0.021, "compost": 0},
    "Glass": {"landfill": 0.022, "incineration": 0.021, "recycling": 0.021, "compost": 0},
}


def waste_emission_factor(waste_type: Optional[str], treatment_method: Optional[str]) -> float:
    type_factors = WASTE_TYPE_SPECIFIC_EMISSION_FACTORS.get(waste_type or "")
    if type_factors and type_factors.get(treatment_method or "") is not None:
        return float(type_factors[treatment_method])
    return float(WASTE_EMISSION_FACTORS_KG_PER_KG.get(treatment_method or "", 0))


def calculate_electrical_emissions(electricity_kwh: float, emission_factor: Optional[float] = None) -> float:
    """
    kg CO2e for ``electricity_kwh`` of grid electricity.

    Args:
        electricity_kwh: Consumption in kWh.
        emission_factor: kg CO2e per kWh; defaults to the configured grid factor.

    Returns:
        Emissions in kg CO2e, e.g. 2000 kWh x 0.76 = 1520.
    """
    factor = settings.grid_emission_factor if emission_factor is None else emission_factor
    if electricity_kwh < 0:
        raise ValueError("Electricity consumption cannot be negative")
    if factor < 0:
        raise ValueError("Emission factor cannot be negative")
    return electricity_kwh * factor


def kg_to_tonnes(kg_co2e: float) -> float:
    return kg_co2e / 1000


def format_emissions(kg_co2e: float) -> str:
    if kg_co2e >= 1_000_000:
        return f"{kg_co2e / 1_000_000:.2f} Mt CO₂e"
    if kg_co2e >= 1_000:
        return f"{kg_co2e / 1_000:.2f} t CO₂e"
    return f"{kg_co2e:.2f} kg CO₂e"


def trir(incidents: Optional[float], hours: Optional[float]) -> float:
    if not incidents or not hours or hours <= 0:
        return 0.0
    return incidents * TRIR_STANDARD_HOURS / hours


def parse_float(value, default: float = 0.0) -> float:
    """Lenient numeric parse for form values; blanks and junk become ``default``."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
