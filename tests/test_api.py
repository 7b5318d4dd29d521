from verdepm.models.models import Organization, OrganizationMember


def test_profile_requires_session(client):
    r = client.get("/api/profile")
    assert r.status_code == 401
    assert r.json() == {"error": "You must be signed in."}


def test_profile_prefers_owner_role(client, db, make_member, headers):
    user, _ = make_member(role="member")
    own = Organization(organization_name="Santos Builders")
    db.add(own)
    db.flush()
    db.add(OrganizationMember(organization_id=own.organization_id, user_id=user.user_id, role="owner"))
    db.commit()

    body = client.get("/api/profile", headers=headers(user)).json()

    assert body["user"] == {"id": str(user.user_id), "email": "owner@verdepm.io"}
    assert body["profile"]["first_name"] == "Maria"
    assert "role" not in body["profile"]
    assert body["membershipRole"] == "owner"


def test_profile_reads_session_cookie(client, make_member):
    from verdepm.auth.security import create_access_token

    user, _ = make_member(role="manager")
    client.cookies.set("session", create_access_token(str(user.user_id)))

    body = client.get("/api/profile").json()

    assert body["membershipRole"] == "manager"


def test_storage_policies(client):
    body = client.get("/api/storage/policies").json()
    assert len(body["policies"]) == 6
    assert "bucket_id = 'esg-reports'" in body["policies"][2]["sql"]
    assert "auth.role() = 'authenticated'" in body["policies"][3]["sql"]

    guide = client.post("/api/storage/policies").json()
    assert guide["message"] == "Storage policies setup guide"


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
