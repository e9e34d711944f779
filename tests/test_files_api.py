from __future__ import annotations

from pathlib import Path

from sqlalchemy.exc import OperationalError

from fileshare.repos import file_repo


def _upload(client, headers, name="notes.txt", data=b"hello world", ctype="text/plain"):
    return client.post("/api/files/upload", files={"file": (name, data, ctype)}, headers=headers)


def test_upload_requires_auth(client):
    r = _upload(client, {})
    assert r.status_code == 401
    assert r.json()["detail"] == "auth_required"


def test_bad_token_rejected(client):
    r = client.get("/api/files", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid_token"


def test_upload_and_get(client, auth, alice, blob_store):
    r = _upload(client, auth(alice))
    assert r.status_code == 201, r.text
    f = r.json()["file"]
    assert f["filename"] == "notes.txt"
    assert f["size"] == len(b"hello world")
    assert f["is_owner"] is True and f["role"] == "owner"
    assert f["owner"]["email"] == "alice@example.com"
    assert len(list(Path(blob_store.root).iterdir())) == 1

    r = client.get(f"/api/files/{f['id']}", headers=auth(alice))
    assert r.status_code == 200
    assert r.json()["file"]["id"] == f["id"]


def test_upload_rejects_empty_and_unsupported(client, auth, alice):
    assert _upload(client, auth(alice), data=b"").json()["detail"] == "invalid_upload"
    r = _upload(client, auth(alice), name="x.exe", ctype="application/x-msdownload")
    assert r.status_code == 400


def test_upload_rejects_oversize(client, auth, alice, monkeypatch):
    from fileshare.config import settings

    monkeypatch.setattr(settings, "max_upload_bytes", 4)
    r = _upload(client, auth(alice), data=b"12345")
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_upload"


def test_bulk_upload_partial_success(client, auth, alice):
    files = [
        ("files", ("a.txt", b"aaa", "text/plain")),
        ("files", ("b.exe", b"bbb", "application/x-msdownload")),
        ("files", ("c.csv", b"x,y", "text/csv")),
    ]
    r = client.post("/api/files/upload-bulk", files=files, headers=auth(alice))
    assert r.status_code == 201, r.text
    body = r.json()
    assert [f["filename"] for f in body["files"]] == ["a.txt", "c.csv"]
    assert body["errors"] == [{"filename": "b.exe", "error": "unsupported_content_type"}]


def test_list_owned_and_shared(client, auth, alice, bob):
    fid = _upload(client, auth(alice)).json()["file"]["id"]
    r = client.post(f"/api/share/{fid}/user", json={"user_email": "bob@example.com"}, headers=auth(alice))
    assert r.status_code == 201

    mine = client.get("/api/files", headers=auth(alice)).json()
    assert [f["id"] for f in mine["owned_files"]] == [fid]
    assert mine["shared_files"] == []

    theirs = client.get("/api/files", headers=auth(bob)).json()
    assert theirs["owned_files"] == []
    [shared] = theirs["shared_files"]
    assert (shared["id"], shared["role"], shared["is_owner"]) == (fid, "viewer", False)
    assert shared["shared_by"]["email"] == "alice@example.com"


def test_stranger_gets_403_then_404_when_masked(client, auth, alice, carol, monkeypatch):
    from fileshare.config import settings

    fid = _upload(client, auth(alice)).json()["file"]["id"]
    r = client.get(f"/api/files/{fid}", headers=auth(carol))
    assert r.status_code == 403
    assert r.json()["detail"] == "access_denied"

    monkeypatch.setattr(settings, "mask_forbidden_as_not_found", True)
    assert client.get(f"/api/files/{fid}", headers=auth(carol)).status_code == 404
    assert client.get(f"/api/files/{fid}/download", headers=auth(carol)).status_code == 404


def test_missing_file_404(client, auth, alice):
    r = client.get("/api/files/does-not-exist", headers=auth(alice))
    assert r.status_code == 404
    assert r.json()["detail"] == "not_found"


def test_download_returns_url(client, auth, alice):
    f = _upload(client, auth(alice)).json()["file"]
    r = client.get(f"/api/files/{f['id']}/download", headers=auth(alice))
    assert r.status_code == 200
    body = r.json()
    assert body["filename"] == "notes.txt"
    assert body["download_url"].startswith("http://blobs.test/")


def test_delete_is_owner_only_and_cascades(client, auth, alice, bob, blob_store):
    fid = _upload(client, auth(alice)).json()["file"]["id"]
    client.post(f"/api/share/{fid}/user", json={"user_email": "bob@example.com"}, headers=auth(alice))
    token = client.post(f"/api/share/{fid}/link", json={}, headers=auth(alice)).json()["share"]["token"]

    r = client.delete(f"/api/files/{fid}", headers=auth(bob))
    assert r.status_code == 403
    assert r.json()["detail"] == "not_owner"

    r = client.delete(f"/api/files/{fid}", headers=auth(alice))
    assert r.status_code == 200
    assert r.json()["success"] is True

    assert client.get(f"/api/files/{fid}", headers=auth(bob)).status_code == 404
    assert client.get(f"/api/share/link/{token}", headers=auth(bob)).status_code == 404
    assert client.get(f"/api/activity/files/{fid}", headers=auth(alice)).status_code == 404
    assert client.get("/api/files", headers=auth(bob)).json()["shared_files"] == []
    assert list(Path(blob_store.root).iterdir()) == []


def test_read_path_storage_error_is_503(client, auth, alice, monkeypatch):
    def db_down(*args, **kwargs):
        raise OperationalError("SELECT owner_id FROM files", {}, Exception("connection refused"))

    monkeypatch.setattr(file_repo, "get_owner", db_down)
    r = client.get("/api/files/abc", headers=auth(alice))
    assert r.status_code == 503
    assert r.json() == {"detail": "storage_unavailable"}
