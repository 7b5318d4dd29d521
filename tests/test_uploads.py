import uuid

import pytest

from verdepm.errors import NotFound, StorageError
from verdepm.models.models import Organization, User
from verdepm.services import uploads
from verdepm.storage.provider import StorageProvider


class FlakyDeleteStorage(StorageProvider):
    """Wraps a real provider but fails every delete."""

    def __init__(self, inner):
        self.inner = inner

    def upload(self, bucket, key, data, content_type="application/octet-stream", upsert=False):
        return self.inner.upload(bucket, key, data, content_type, upsert)

    def get_public_url(self, bucket, key):
        return self.inner.get_public_url(bucket, key)

    def get_download_url(self, bucket, key, expires_s):
        return self.inner.get_download_url(bucket, key, expires_s)

    def exists(self, bucket, key):
        return self.inner.exists(bucket, key)

    def list(self, bucket, prefix=""):
        return self.inner.list(bucket, prefix)

    def delete(self, bucket, key):
        raise StorageError("permission denied")


def test_local_provider_rejects_traversal(storage):
    with pytest.raises(StorageError):
        storage.upload("avatars", "../../etc/passwd", b"x")


def test_local_provider_rejects_bucket_outside_root(storage, tmp_path):
    with pytest.raises(StorageError):
        storage.upload("../escaped", "note.txt", b"x")
    with pytest.raises(StorageError):
        storage.list("../..")
    assert not (tmp_path / "escaped").exists()


def test_local_provider_refuses_overwrite_without_upsert(storage):
    storage.upload("projects", "a/b.pdf", b"1")
    with pytest.raises(StorageError, match="already exists"):
        storage.upload("projects", "a/b.pdf", b"2")
    storage.upload("projects", "a/b.pdf", b"2", upsert=True)


def test_avatar_upload_replaces_previous(storage):
    user_id = uuid.uuid4()
    first = uploads.upload_member_avatar(storage, user_id, "me.jpg", b"one", "image/jpeg")
    assert first["file_path"].startswith(f"{user_id}/")
    assert first["file_path"].endswith(".jpg")
    assert first["public_url"].endswith(first["file_path"])

    second = uploads.upload_member_avatar(storage, user_id, None, b"two", "image/png", previous_path=first["file_path"])

    assert second["file_path"].endswith(".png")
    assert not storage.exists("avatars", first["file_path"])
    assert storage.exists("avatars", second["file_path"])


def test_avatar_cleanup_failure_does_not_fail_upload(storage):
    flaky = FlakyDeleteStorage(storage)
    user_id = uuid.uuid4()
    first = uploads.upload_member_avatar(flaky, user_id, "a.png", b"one")

    second = uploads.upload_member_avatar(flaky, user_id, "b.png", b"two", previous_path=first["file_path"])

    assert storage.exists("avatars", second["file_path"])
    assert storage.exists("avatars", first["file_path"])


def test_remove_avatar_is_idempotent(storage):
    result = uploads.upload_member_avatar(storage, uuid.uuid4(), "a.png", b"one")
    uploads.remove_member_avatar(storage, result["file_path"])
    uploads.remove_member_avatar(storage, result["file_path"])
    assert not storage.exists("avatars", result["file_path"])


def test_remove_avatar_surfaces_other_failures(storage):
    with pytest.raises(StorageError):
        uploads.remove_member_avatar(FlakyDeleteStorage(storage), "x/y.png")


def test_organization_document_lifecycle(db, storage, make_member):
    _, org = make_member()

    saved = uploads.upload_organization_document(db, storage, org.organization_id, "bir", "bir.pdf", b"%PDF")
    docs = uploads.get_organization_documents(db, org.organization_id)
    assert docs["bir_storage_path"] == saved["file_path"]
    assert docs["bir_file_url"] == saved["public_url"]
    assert docs["sec_dti_storage_path"] is None

    uploads.remove_organization_document(db, storage, org.organization_id, "bir")
    db.expire_all()
    assert db.get(Organization, org.organization_id).bir_storage_path is None
    assert not storage.exists("organization-docs", saved["file_path"])


def test_document_for_missing_organization_leaves_no_file(db, storage):
    org_id = uuid.uuid4()
    with pytest.raises(NotFound):
        uploads.upload_organization_document(db, storage, org_id, "bir", "bir.pdf", b"%PDF")
    assert storage.list("organization-docs", f"{org_id}/bir") == []


def test_project_file_upload_and_verify(storage):
    assert uploads.upload_project_file(storage, "", b"x") == {"error": "Missing file or path", "path": ""}
    assert uploads.upload_project_file(storage, "p1/permit.pdf", b"%PDF") == {"path": "p1/permit.pdf"}

    found = uploads.verify_project_file(storage, "p1/permit.pdf")
    assert found["exists"] is True
    assert found["url"].endswith("/files/local/projects/p1/permit.pdf")

    assert uploads.verify_project_file(storage, "p1/missing.pdf") == {
        "exists": False,
        "error": "File not found in storage",
    }
    assert uploads.verify_project_file(storage, "p1/") == {"exists": False, "error": "Invalid file path"}


def test_project_files_grouped_by_bucket(storage):
    storage.upload("construction-docs", "abc-report.pdf", b"12345")
    storage.upload("esg-reports", "other.pdf", b"1")

    grouped = uploads.get_project_files(storage, "abc")

    assert grouped["preconstructionDocs"] == []
    assert [f["name"] for f in grouped["constructionDocs"]] == ["abc-report.pdf"]
    assert grouped["esgReports"] == []


def test_format_file_size():
    assert uploads.format_file_size(0) == "0 Bytes"
    assert uploads.format_file_size(512) == "512 Bytes"
    assert uploads.format_file_size(1536) == "1.5 KB"
    assert uploads.format_file_size(5 * 1024 * 1024) == "5 MB"


def test_avatar_route_updates_member(client, db, make_member, headers):
    user, _ = make_member()

    r = client.post(
        f"/members/{user.user_id}/avatar",
        files={"file": ("me.png", b"\x89PNG", "image/png")},
        headers=headers(user),
    )
    assert r.status_code == 200
    path = r.json()["file_path"]

    served = client.get(f"/files/local/avatars/{path}")
    assert served.status_code == 200
    assert served.content == b"\x89PNG"

    removed = client.delete("/members/avatar", params={"path": path}, headers=headers(user))
    assert removed.json() == {"success": True}
    db.expire_all()
    assert db.get(User, user.user_id).avatar_storage_path is None


def test_project_id_from_key():
    pid = uuid.uuid4()
    assert uploads.project_id_from_key(f"{pid}/permit.pdf") == pid
    assert uploads.project_id_from_key(f"{pid}-report.pdf") == pid
    assert uploads.project_id_from_key("p1/permit.pdf") is None
    assert uploads.project_id_from_key("") is None


def test_file_routes(client, make_member, make_project, headers):
    user, org = make_member()
    project = make_project(org)
    key = f"{project.project_id}/a.pdf"

    missing = client.post("/files/upload", data={"path": key}, headers=headers(user))
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing file or path"

    ok = client.post(
        "/files/upload",
        data={"path": key, "bucket": "construction-docs"},
        files={"file": ("a.pdf", b"%PDF-1.7", "application/pdf")},
        headers=headers(user),
    )
    assert ok.json() == {"path": key}

    listed = client.get(
        "/files/list",
        params={"bucket": "construction-docs", "prefix": str(project.project_id)},
        headers=headers(user),
    )
    assert listed.json()["files"][0]["name"] == "a.pdf"

    verified = client.get("/files/verify", params={"bucket": "construction-docs", "path": key}, headers=headers(user))
    assert verified.json()["exists"] is True

    docs = client.get(
        "/files/project-documents", params={"project_id": str(project.project_id)}, headers=headers(user)
    ).json()
    assert [(f["name"], f["is_folder"], f["size_label"]) for f in docs["constructionDocs"]] == [
        (str(project.project_id), True, None)
    ]


def test_file_routes_reject_unknown_buckets(client, make_member, make_project, headers, tmp_path):
    user, org = make_member()
    project = make_project(org)

    r = client.post(
        "/files/upload",
        data={"path": f"{project.project_id}/x.txt", "bucket": "../../outside"},
        files={"file": ("x.txt", b"x", "text/plain")},
        headers=headers(user),
    )

    assert r.status_code == 400
    assert r.json() == {"error": "Unknown storage bucket."}
    assert not (tmp_path / "outside").exists()
    assert client.get("/files/list", params={"bucket": "avatars", "prefix": str(project.project_id)},
                      headers=headers(user)).status_code == 400


def test_file_routes_hide_other_organizations(client, storage, make_member, make_project, headers):
    _, org = make_member()
    project = make_project(org)
    storage.upload("esg-reports", f"{project.project_id}-report.pdf", b"%PDF")
    rival, _ = make_member(email="rival@buildright.ph")

    docs = client.get("/files/project-documents", params={"project_id": str(project.project_id)}, headers=headers(rival))
    assert docs.status_code == 404
    assert docs.json() == {"error": "Project not found or access denied."}

    assert client.get("/files/list", params={"bucket": "esg-reports"}, headers=headers(rival)).status_code == 404
    assert client.get(
        "/files/verify",
        params={"bucket": "esg-reports", "path": f"{project.project_id}-report.pdf"},
        headers=headers(rival),
    ).status_code == 404
    assert client.get("/files/project-documents", headers=headers(rival)).status_code == 422
