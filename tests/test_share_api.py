from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import OperationalError

from fileshare.db.base import utcnow
from fileshare.repos import grant_repo

from .factories import add_link_grant


def _upload(client, headers, name="plan.pdf"):
    r = client.post(
        "/api/files/upload", files={"file": (name, b"%PDF-1.4 plan", "application/pdf")}, headers=headers
    )
    assert r.status_code == 201, r.text
    return r.json()["file"]["id"]


def _share(client, headers, fid, email, **extra):
    return client.post(f"/api/share/{fid}/user", json={"user_email": email, **extra}, headers=headers)


def _actions(client, headers, fid):
    r = client.get(f"/api/activity/files/{fid}", headers=headers)
    assert r.status_code == 200, r.text
    return [a["activity_type"] for a in r.json()["activities"]]


def test_share_then_revoke_is_audited_in_order(client, auth, alice, bob):
    fid = _upload(client, auth(alice))
    r = _share(client, auth(alice), fid, "Bob@Example.com", role="editor")
    assert r.status_code == 201, r.text
    share = r.json()["share"]
    assert share["share_type"] == "user"
    assert share["role"] == "editor"
    assert share["shared_with"]["id"] == bob.id

    assert client.get(f"/api/files/{fid}", headers=auth(bob)).json()["file"]["role"] == "editor"

    r = client.delete(f"/api/share/{share['id']}", headers=auth(alice))
    assert r.status_code == 200
    assert client.get(f"/api/files/{fid}", headers=auth(bob)).status_code == 403

    # newest first
    assert _actions(client, auth(alice), fid) == ["unshare", "share", "upload"]


def test_share_errors(client, auth, alice, bob):
    fid = _upload(client, auth(alice))
    assert _share(client, auth(alice), fid, "nobody@example.com").status_code == 404
    assert _share(client, auth(alice), fid, "alice@example.com").json()["detail"] == "self_grant"
    assert _share(client, auth(alice), fid, "not-an-email").status_code == 400
    assert _share(client, auth(alice), fid, "bob@example.com", role="owner").status_code == 400

    past = (utcnow() - timedelta(hours=1)).isoformat()
    r = _share(client, auth(alice), fid, "bob@example.com", expires_at=past)
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_expiry"

    assert _share(client, auth(alice), fid, "bob@example.com").status_code == 201
    r = _share(client, auth(alice), fid, "bob@example.com", role="editor")
    assert r.status_code == 409
    assert r.json()["detail"] == "duplicate_grant"


def test_only_owner_shares_and_lists(client, auth, alice, bob, carol):
    fid = _upload(client, auth(alice))
    _share(client, auth(alice), fid, "bob@example.com", role="editor")

    # editors read, they do not administer grants
    r = _share(client, auth(bob), fid, "carol@example.com")
    assert r.status_code == 403
    assert r.json()["detail"] == "not_owner"
    assert client.post(f"/api/share/{fid}/link", json={}, headers=auth(bob)).status_code == 403
    assert client.get(f"/api/share/{fid}/shares", headers=auth(bob)).status_code == 403

    r = client.get(f"/api/share/{fid}/shares", headers=auth(alice))
    assert r.status_code == 200
    assert [s["shared_with"]["email"] for s in r.json()["shares"]] == ["bob@example.com"]


def test_link_share_and_redeem(client, auth, alice, carol):
    fid = _upload(client, auth(alice))
    r = client.post(f"/api/share/{fid}/link", json={}, headers=auth(alice))
    assert r.status_code == 201, r.text
    body = r.json()
    token = body["share"]["token"]
    assert body["share"]["role"] == "viewer"
    assert body["share_link"] == f"http://front.test/shared/{token}"

    r = client.get(f"/api/share/link/{token}", headers=auth(carol))
    assert r.status_code == 200, r.text
    f = r.json()["file"]
    assert (f["id"], f["role"], f["is_owner"]) == (fid, "viewer", False)
    assert f["download_url"].startswith("http://blobs.test/")

    # the redemption is attributed to the redeemer, not the owner
    mine = client.get("/api/activity/user", headers=auth(carol)).json()["activities"]
    assert [(a["activity_type"], a["metadata"]) for a in mine] == [("download", "via share link")]
    assert _actions(client, auth(alice), fid) == ["download", "share", "upload"]


def test_link_without_body_never_expires(client, auth, alice):
    fid = _upload(client, auth(alice))
    r = client.post(f"/api/share/{fid}/link", headers=auth(alice))
    assert r.status_code == 201, r.text
    assert r.json()["share"]["expires_at"] is None


def test_redeem_requires_auth(client, auth, alice):
    fid = _upload(client, auth(alice))
    token = client.post(f"/api/share/{fid}/link", json={}, headers=auth(alice)).json()["share"]["token"]
    assert client.get(f"/api/share/link/{token}").status_code == 401


def test_expired_link_is_gone(client, db, auth, alice, carol):
    fid = _upload(client, auth(alice))
    from fileshare.repos import file_repo

    add_link_grant(db, file_repo.get(db, fid), alice, "stale-link-000000000000000", utcnow() - timedelta(minutes=1))
    r = client.get("/api/share/link/stale-link-000000000000000", headers=auth(carol))
    assert r.status_code == 410
    assert r.json()["detail"] == "link_expired"

    r = client.get(f"/api/share/{fid}/shares", headers=auth(alice))
    assert [s["expired"] for s in r.json()["shares"]] == [True]


def test_unknown_link_404(client, auth, carol):
    assert client.get("/api/share/link/no-such-token", headers=auth(carol)).status_code == 404


def test_revoked_link_stops_working(client, auth, alice, carol):
    fid = _upload(client, auth(alice))
    share = client.post(f"/api/share/{fid}/link", json={}, headers=auth(alice)).json()["share"]
    assert client.delete(f"/api/share/{share['id']}", headers=auth(carol)).status_code == 403
    assert client.delete(f"/api/share/{share['id']}", headers=auth(alice)).status_code == 200
    assert client.get(f"/api/share/link/{share['token']}", headers=auth(carol)).status_code == 404
    assert client.delete(f"/api/share/{share['id']}", headers=auth(alice)).status_code == 404


def test_link_redemption_is_rate_limited(client, auth, alice, carol, fake_redis, monkeypatch):
    fid = _upload(client, auth(alice))
    token = client.post(f"/api/share/{fid}/link", json={}, headers=auth(alice)).json()["share"]["token"]
    monkeypatch.setattr(fake_redis, "incr", lambda key: 10_000)
    r = client.get(f"/api/share/link/{token}", headers=auth(carol))
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "42"


def test_share_listing_storage_error_is_503(client, auth, alice, monkeypatch):
    fid = _upload(client, auth(alice))

    def db_down(*args, **kwargs):
        raise OperationalError("SELECT * FROM grants", {}, Exception("connection refused"))

    monkeypatch.setattr(grant_repo, "list_for_file", db_down)
    r = client.get(f"/api/share/{fid}/shares", headers=auth(alice))
    assert r.status_code == 503
    assert r.json()["detail"] == "storage_unavailable"
