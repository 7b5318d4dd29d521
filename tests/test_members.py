import uuid

import pytest

from verdepm.errors import Forbidden, NotFoundOrDenied, ValidationFailed
from verdepm.models.models import Organization, OrganizationMember, Project, Role, User
from verdepm.schemas.auth import InviteMemberInput, MemberUpdateInput
from verdepm.services import members as member_service


INVITE = {
    "email": "Engineer@GreenBuild.ph",
    "password": "Sitework9",
    "firstname": "Jose",
    "lastname": "Reyes",
    "phone": "+639175550101",
    "role": "manager",
}


def test_fetch_members_lists_organization_only(db, make_member):
    owner, org = make_member()
    make_member(email="crew@verdepm.io", role="member", organization=org)
    make_member(email="rival@buildright.ph")

    members = member_service.fetch_members(db, owner)

    assert sorted(m["email"] for m in members) == ["crew@verdepm.io", "owner@verdepm.io"]
    roles = {m["email"]: m["role"] for m in members}
    assert roles["owner@verdepm.io"] == "owner"


def test_fetch_members_without_membership(db):
    stray = User(email="stray@verdepm.io", password_hash="x")
    db.add(stray)
    db.commit()
    with pytest.raises(Forbidden):
        member_service.fetch_members(db, stray)


def test_roles_are_seeded_once(db):
    assert member_service.fetch_roles(db) == []
    assert member_service.seed_default_roles(db) == 4
    assert member_service.seed_default_roles(db) == 0
    assert member_service.fetch_roles(db) == ["manager", "member", "owner", "supplier"]
    assert db.query(Role).count() == 4


def test_invite_creates_user_in_owner_organization(db, make_member):
    owner, org = make_member()

    result = member_service.invite_member(db, owner, InviteMemberInput(**INVITE))

    assert result["message"] == "User created successfully."
    assert result["user"]["email"] == "engineer@greenbuild.ph"
    assert result["user"]["role"] == "manager"
    created = db.query(User).filter(User.email == "engineer@greenbuild.ph").one()
    assert created.organization_id == org.organization_id
    assert created.password_hash != INVITE["password"]


def test_invite_requires_owner(db, make_member):
    _, org = make_member()
    manager, _ = make_member(email="pm@verdepm.io", role="manager", organization=org)
    with pytest.raises(Forbidden):
        member_service.invite_member(db, manager, InviteMemberInput(**INVITE))


def test_invite_rejects_duplicate_email(db, make_member):
    owner, _ = make_member()
    with pytest.raises(ValidationFailed, match="already been registered"):
        member_service.invite_member(db, owner, InviteMemberInput(**{**INVITE, "email": "owner@verdepm.io"}))


def test_update_avatar_fields_only_when_sent(db, make_member):
    owner, org = make_member()
    crew, _ = make_member(email="crew@verdepm.io", role="member", organization=org)
    crew.avatar_url = "http://testserver/files/local/avatars/a.png"
    crew.avatar_storage_path = "a.png"
    db.commit()

    member_service.update_member(db, owner, MemberUpdateInput(userId=str(crew.user_id), firstname="Ana"))
    db.expire_all()
    assert db.get(User, crew.user_id).avatar_storage_path == "a.png"

    result = member_service.update_member(
        db, owner, MemberUpdateInput(userId=str(crew.user_id), avatarUrl=None, avatarStoragePath=None, role="manager")
    )
    assert result["message"] == "User updated successfully."
    assert result["user"]["first_name"] == "Ana"
    assert result["user"]["avatar_storage_path"] is None
    assert result["user"]["role"] == "manager"


def test_update_rejects_foreign_member(db, make_member):
    owner, _ = make_member()
    rival, _ = make_member(email="rival@buildright.ph")
    with pytest.raises(NotFoundOrDenied):
        member_service.update_member(db, owner, MemberUpdateInput(userId=str(rival.user_id), firstname="X"))


def test_update_rejects_unknown_role(db, make_member):
    owner, org = make_member()
    crew, _ = make_member(email="crew@verdepm.io", role="member", organization=org)
    with pytest.raises(ValidationFailed, match="valid role"):
        member_service.update_member(db, owner, MemberUpdateInput(userId=str(crew.user_id), role="admin"))


def test_delete_plain_member(db, make_member):
    owner, org = make_member()
    crew, _ = make_member(email="crew@verdepm.io", role="member", organization=org)

    assert member_service.delete_member(db, crew.user_id, actor=owner) == "User deleted successfully"
    assert db.query(User).filter(User.user_id == crew.user_id).first() is None
    assert db.query(Organization).count() == 1


def test_deleting_owner_removes_organization(db, make_member, make_project):
    owner, org = make_member()
    make_member(email="crew@verdepm.io", role="member", organization=org)
    make_project(org)
    rival, rival_org = make_member(email="rival@buildright.ph")

    message = member_service.delete_member(db, owner.user_id, actor=owner)

    assert message == "Organization and related members deleted successfully"
    db.expire_all()
    assert [u.email for u in db.query(User).all()] == ["rival@buildright.ph"]
    assert db.query(Project).count() == 0
    assert [o.organization_id for o in db.query(Organization).all()] == [rival_org.organization_id]
    assert db.query(OrganizationMember).count() == 1


def test_delete_foreign_member_denied(db, make_member):
    owner, _ = make_member()
    rival, _ = make_member(email="rival@buildright.ph")
    with pytest.raises(NotFoundOrDenied):
        member_service.delete_member(db, rival.user_id, actor=owner)


def test_invite_route_reports_field_errors(client, make_member, headers):
    owner, _ = make_member()

    r = client.post("/members", json={**INVITE, "password": "short", "email": "nope"}, headers=headers(owner))

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    assert body["fieldErrors"]["email"] == "Invalid email address"
    assert body["fieldErrors"]["password"] == "Password must be at least 8 characters long"


def test_member_routes_enforce_roles(client, make_member, headers):
    owner, org = make_member()
    crew, _ = make_member(email="crew@verdepm.io", role="member", organization=org)

    assert client.post("/members", json=INVITE, headers=headers(crew)).status_code == 403
    assert client.delete(f"/members/{owner.user_id}", headers=headers(crew)).status_code == 403
    assert client.put(f"/members/{owner.user_id}", json={"firstname": "X"}, headers=headers(crew)).status_code == 403

    created = client.post("/members", json=INVITE, headers=headers(owner))
    assert created.status_code == 200
    new_id = created.json()["user"]["user_id"]

    listed = client.get("/members", headers=headers(crew)).json()
    assert len(listed) == 3

    updated = client.put(f"/members/{new_id}", json={"lastname": "Cruz"}, headers=headers(owner))
    assert updated.json()["user"]["last_name"] == "Cruz"

    removed = client.delete(f"/members/{new_id}", headers=headers(owner))
    assert removed.json() == {"message": "User deleted successfully"}

    missing = client.delete(f"/members/{uuid.uuid4()}", headers=headers(owner))
    assert missing.status_code == 404
