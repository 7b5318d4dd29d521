import pytest

from verdepm.errors import ValidationFailed
from verdepm.models.models import ProjectTarget
from verdepm.services.targets import parse_number, save_project_target, save_simplified_targets


def test_parse_number():
    assert parse_number("12.5", "scopeOne") == 12.5
    assert parse_number("", "scopeOne") is None
    assert parse_number(None, "scopeOne") is None
    with pytest.raises(ValidationFailed) as exc:
        parse_number("twelve", "scopeOne")
    assert exc.value.field_errors == {"scopeOne": "Invalid number"}


def test_simplified_targets_upsert_keeps_one_row(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)

    first_id = save_simplified_targets(db, project.project_id, "100", "200", "300", "1.5")
    second_id = save_simplified_targets(db, project.project_id, "150", None, "", "2")

    assert first_id == second_id
    db.expire_all()
    rows = db.query(ProjectTarget).filter(ProjectTarget.project_id == project.project_id).all()
    assert len(rows) == 1
    assert rows[0].scope_one == 150
    assert rows[0].scope_two is None
    assert rows[0].trir == 2


def test_section_target_only_touches_its_columns(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)
    save_simplified_targets(db, project.project_id, "100", "200", "300", "1")

    save_project_target(db, project.project_id, "safetyIncident", {"numberOfIncidents": "3", "totalEmployeeHours": "5000"})

    db.expire_all()
    row = db.query(ProjectTarget).filter(ProjectTarget.project_id == project.project_id).one()
    assert row.number_of_incidents == 3
    assert row.total_employee_hours == 5000
    assert row.scope_one == 100


def test_unknown_section_rejected(db, make_member, make_project):
    _, org = make_member()
    project = make_project(org)
    with pytest.raises(ValidationFailed):
        save_project_target(db, project.project_id, "noise", {})


def test_targets_routes(client, make_member, make_project, headers):
    user, org = make_member()
    project = make_project(org)

    ok = client.put(
        f"/projects/{project.project_id}/targets",
        json={"scopeOne": "10", "scopeTwo": 20, "scopeThree": None, "trir": "0.5"},
        headers=headers(user),
    )
    assert ok.status_code == 200
    assert ok.json()["success"] is True

    bad = client.put(
        f"/projects/{project.project_id}/targets/waterSupply",
        json={"values": {"totalWaterConsumed": "lots"}},
        headers=headers(user),
    )
    assert bad.status_code == 400
    assert bad.json()["fieldErrors"] == {"totalWaterConsumed": "Invalid number"}

    post = client.get(f"/projects/{project.project_id}/post-construction", headers=headers(user)).json()
    assert post["targets"]["scope_one"] == 10
