from datetime import datetime

import pytest

from verdepm.models.models import DailyLog, MonthlyLog
from verdepm.schemas.construction import DailyLogData, EquipmentEntry, MonthlyLogData, WasteEntry
from verdepm.services import logs as log_service


def test_equipment_fuel_ignores_unparseable_values():
    entries = [
        EquipmentEntry(name="Excavator", hours="8", fuelRate="12.5"),
        EquipmentEntry(name="Generator", hours="n/a", fuelRate=4),
    ]
    assert log_service.equipment_fuel_liters(entries) == pytest.approx(100.0)


def test_daily_submission_computes_scope_one(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)
    data = DailyLogData(
        incidentCount=0,
        hoursWorked=96,
        equipmentList=[EquipmentEntry(id="1", name="Excavator", hours=8, fuelRate=12.5)],
    )

    result = log_service.submit_daily_log(db, project.project_id, datetime(2024, 6, 3), data)

    assert result == {"success": True, "warnings": []}
    row = db.query(DailyLog).one()
    assert row.equipment_fuel_consumed == pytest.approx(100.0)
    assert row.scope_one == pytest.approx(268.0)
    assert row.equipment_details[0]["name"] == "Excavator"


def test_daily_logs_are_append_only(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)
    day = datetime(2024, 6, 3)
    for _ in range(2):
        result = log_service.upsert_daily_log(db, project.project_id, day, [], 10.0, 26.8)
        assert result["success"]
    assert db.query(DailyLog).count() == 2


def test_weighted_waste_averages_by_mass():
    entries = [
        WasteEntry(mass=1, unit="ton", wasteType="Plastic", treatmentMethod="recycling", treatmentPercentage=80),
        WasteEntry(mass=1000, unit="kg", wasteType="Concrete", treatmentMethod="landfill", treatmentPercentage=20),
    ]
    averages = log_service.weighted_waste_averages(entries)
    assert averages["total_mass_kg"] == pytest.approx(2000)
    assert averages["emission_factor"] == pytest.approx((0.021 + 1.8) / 2)
    assert averages["treatment_percentage"] == pytest.approx(50)
    assert log_service.weighted_waste_averages([])["emission_factor"] == 0.0


def test_monthly_submission_sums_scope_three(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)
    data = MonthlyLogData(
        rawElectricityKwh=2000,
        rawWaterCubicM=50,
        rawWasteKg=300,
        electricityEmissionsKg=1520,
        waterEmissionsKg=13.2,
        wasteEmissionsKg=540,
    )

    result = log_service.submit_monthly_log(db, project.project_id, datetime(2024, 6, 30), data)

    assert result["success"]
    assert (result["sumElec"], result["sumWater"], result["sumWaste"]) == (2000, 50, 300)
    row = db.query(MonthlyLog).one()
    assert row.scope_two == pytest.approx(1520)
    assert row.scope_three == pytest.approx(553.2)


def test_history_maps_rows(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)
    db.add(DailyLog(
        project_id=project.project_id,
        timestamp=datetime(2024, 6, 3),
        equipment_emissions=26.8,
        number_of_incidents=1,
        total_employee_hours=200_000,
    ))
    db.add(MonthlyLog(project_id=project.project_id, timestamp=datetime(2024, 6, 30), scope_three=12))
    db.commit()

    history = log_service.get_construction_metrics_history(db, project.project_id)

    assert history["error"] is None
    daily = history["daily"][0]
    assert daily["fuel_consumption_liters"] == pytest.approx(10.0)
    assert daily["scope1"] == pytest.approx(26.8)
    assert daily["safety_incidents"] == pytest.approx(1.0)
    assert history["monthly"][0]["scope3"] == 12


def test_log_routes(client, make_member, make_project, headers):
    user, org = make_member()
    project = make_project(org)
    base = f"/projects/{project.project_id}"

    daily = client.post(
        f"{base}/logs/daily",
        json={"date": "2024-06-03T00:00:00", "dailyData": {"equipmentList": [{"hours": 2, "fuelRate": 5}]}},
        headers=headers(user),
    )
    assert daily.status_code == 200

    monthly = client.post(
        f"{base}/logs/monthly",
        json={"date": "2024-06-30T00:00:00", "monthlyData": {"rawElectricityKwh": 10}},
        headers=headers(user),
    )
    assert monthly.json()["sumElec"] == 10

    history = client.get(f"{base}/logs", headers=headers(user)).json()
    assert len(history["daily"]) == 1
    assert len(history["monthly"]) == 1
