import uuid

import pytest

from verdepm.errors import NotFoundOrDenied
from verdepm.models.models import Project
from verdepm.schemas.projects import ProjectSetupUpdate, map_project_from_row
from verdepm.services import projects as project_service


def test_map_project_from_row_defaults():
    view = map_project_from_row({"project_id": "abc", "budget": "1500.50", "start_date": "2024-01-01"})
    assert view.id == "abc"
    assert view.slug == "abc"
    assert view.name == "Untitled Project"
    assert view.budget == pytest.approx(1500.5)
    assert view.startDate == "2024-01-01"


def test_map_project_from_row_bad_budget_and_missing_id():
    assert map_project_from_row({"id": "x", "budget": "lots"}).budget is None
    with pytest.raises(ValueError, match="Project record is missing an id field"):
        map_project_from_row({"name": "No id"})


def test_create_project_assigns_unique_slugs(client, make_member, headers):
    user, _ = make_member()
    payload = {"name": "Riverside Tower", "clientName": "Ayala Land", "budget": "2500000", "startDate": "2024-02-01"}

    first = client.post("/projects", json=payload, headers=headers(user)).json()
    second = client.post("/projects", json=payload, headers=headers(user)).json()

    assert first["error"] is None
    assert first["data"]["slug"] == "riverside-tower"
    assert first["data"]["clientName"] == "Ayala Land"
    assert first["data"]["budget"] == pytest.approx(2500000)
    assert second["data"]["slug"] == "riverside-tower-2"


def test_create_project_validation_messages(client, make_member, headers):
    user, _ = make_member()

    no_slug = client.post("/projects", json={"name": "!!!"}, headers=headers(user)).json()
    assert no_slug == {"data": None, "error": "Project name must contain at least one alphanumeric character."}

    bad_budget = client.post("/projects", json={"name": "Depot", "budget": "a lot"}, headers=headers(user)).json()
    assert bad_budget["error"] == "Budget must be a valid number."


def test_members_cannot_create_projects(client, make_member, headers):
    _, org = make_member()
    member, _ = make_member(email="crew@verdepm.io", role="member", organization=org)

    body = client.post("/projects", json={"name": "Depot"}, headers=headers(member)).json()
    assert body["error"] == "Only organization owners or managers can create new projects."


def test_list_projects_newest_first_and_by_slug(client, make_member, make_project, headers):
    user, org = make_member()
    client.post("/projects", json={"name": "First"}, headers=headers(user))
    client.post("/projects", json={"name": "Second"}, headers=headers(user))

    listed = client.get("/projects", headers=headers(user)).json()["data"]
    assert [p["name"] for p in listed] == ["Second", "First"]

    found = client.get("/projects/by-slug/first", headers=headers(user))
    assert found.status_code == 200
    assert found.json()["name"] == "First"

    missing = client.get("/projects/by-slug/nope", headers=headers(user))
    assert missing.status_code == 404
    assert missing.json() == {"error": "No project with slug 'nope' was found."}


def test_project_from_another_organization_is_hidden(client, make_member, make_project, headers):
    user, _ = make_member()
    _, other_org = make_member(email="rival@buildright.ph")
    foreign = make_project(other_org, "Foreign Site", slug="foreign-site")

    r = client.get("/projects/by-slug/foreign-site", headers=headers(user))
    assert r.status_code == 404

    d = client.delete(f"/projects/{foreign.project_id}", headers=headers(user))
    assert d.status_code == 404
    assert d.json() == {"success": False, "error": "Project not found or access denied."}


def test_delete_project(client, db, make_member, make_project, headers):
    user, org = make_member()
    project = make_project(org)

    r = client.delete(f"/projects/{project.project_id}", headers=headers(user))
    assert r.json() == {"success": True, "error": None}
    db.expire_all()
    assert db.query(Project).count() == 0


def test_setup_update_renames_and_reslugs(client, db, make_member, make_project, headers):
    user, org = make_member()
    make_project(org, "Harbor View", slug="harbor-view")
    project = make_project(org, "Old Name", slug="old-name")

    r = client.patch(
        f"/projects/{project.project_id}/setup",
        json={"project_name": "Harbor View", "location": "Pasig City"},
        headers=headers(user),
    )
    assert r.json() == {"success": True, "setupId": str(project.project_id)}
    db.expire_all()
    row = db.query(Project).filter(Project.project_id == project.project_id).one()
    assert row.slug == "harbor-view-2"
    assert row.location == "Pasig City"


def test_submit_for_approval_defaults_to_pending(client, db, make_member, make_project, headers):
    user, org = make_member()
    project = make_project(org)

    r = client.post(f"/projects/{project.project_id}/submit", json={}, headers=headers(user))
    assert r.json() == {"success": True}
    db.expire_all()
    assert db.get(Project, project.project_id).approval_status == "pending"


def test_update_of_missing_project_reports_not_found(db, make_member):
    _, org = make_member()
    with pytest.raises(NotFoundOrDenied):
        project_service.save_project_setup(
            db, uuid.uuid4(), ProjectSetupUpdate(description="x"), org.organization_id
        )
