import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import PASSWORD, csrf, login, otp_code, personal_space_id, signup, signup_and_login
from vault_api.api.export import EXPORT_RATE_LIMIT
from vault_api.models.activity import ActivityLog
from vault_api.models.enums import AuditAction
from vault_api.services.rate_limit import RateLimiter

JPEG_BYTES = bytes.fromhex("FFD8FFE000104A464946") + b"\x00" * 64


def _error(resp) -> dict:
    body = resp.json()
    assert body["success"] is False
    return body["error"]


def _approve(admin: TestClient, user_id: str) -> None:
    resp = admin.post("/api/admin/users/approve", json={"userId": user_id}, headers=csrf(admin))
    assert resp.status_code == 200, resp.text


def _create_item(client: TestClient, space_id: str, title: str, **fields) -> dict:
    payload = {"title": title, "space_id": space_id, **fields}
    resp = client.post("/api/items", json=payload, headers=csrf(client))
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def vault(client_factory) -> SimpleNamespace:
    """管理员、已审核成员与一个公开公共空间。"""
    admin = client_factory("10.0.0.1")
    admin_user = signup_and_login(admin, "admin@example.com", "Ada Admin")

    member = client_factory("10.0.0.2")
    member_user = signup_and_login(member, "member@example.com", "Max Member")
    _approve(admin, member_user["id"])

    resp = admin.post(
        "/api/spaces",
        json={"name": "Team Library", "type": "common", "is_public": True},
        headers=csrf(admin),
    )
    assert resp.status_code == 200, resp.text

    return SimpleNamespace(
        admin=admin,
        admin_user=admin_user,
        member=member,
        member_user=member_user,
        common_id=resp.json()["data"]["id"],
        member_space_id=personal_space_id(member, member_user["id"]),
    )


def test_health_reports_healthy_with_security_headers(api_client: TestClient):
    resp = api_client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"
    assert set(body["data"]["checks"]) == {"database", "cache"}
    assert body["request_id"] == resp.headers["X-Request-Id"]
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert "frame-ancestors 'none'" in resp.headers["Content-Security-Policy"]
    assert resp.headers["X-Response-Time"].endswith("ms")


def test_unexpected_errors_keep_envelope_and_headers(app):
    def explode():
        raise RuntimeError("boom")

    app.add_api_route("/api/explode", explode, methods=["GET"])
    with TestClient(app) as client:
        resp = client.get("/api/explode")

    assert resp.status_code == 500
    error = _error(resp)
    assert error["code"] == "INTERNAL_SERVER_ERROR"
    assert "boom" not in error["message"]
    assert resp.headers["X-Error-Code"] == "INTERNAL_SERVER_ERROR"
    assert resp.json()["request_id"] == resp.headers["X-Request-Id"]
    assert resp.headers["X-Response-Time"].endswith("ms")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_first_user_is_admin_and_later_signups_wait_for_approval(client_factory):
    admin = client_factory("10.0.0.1")
    first = signup(admin, "owner@example.com", "Olivia Owner")
    assert first["requires_approval"] is False
    assert first["user"]["role"] == "admin"
    assert first["user"]["status"] == "approved"
    login(admin, "owner@example.com")

    member = client_factory("10.0.0.2")
    second = signup(member, "pending@example.com", "Pat Pending")
    assert second["requires_approval"] is True
    assert second["user"]["status"] == "pending"
    login(member, "pending@example.com")

    me = member.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["status"] == "pending"

    blocked = member.get("/api/spaces")
    assert blocked.status_code == 403
    assert _error(blocked)["message"] == "Account pending approval"

    pending = admin.get("/api/admin/users", params={"status": "pending"})
    assert pending.status_code == 200
    assert [user["email"] for user in pending.json()["data"]] == ["pending@example.com"]
    assert pending.json()["meta"]["total"] == 1

    _approve(admin, second["user"]["id"])
    spaces = member.get("/api/spaces")
    assert spaces.status_code == 200
    assert [space["name"] for space in spaces.json()["data"]] == ["Pat Pending's Vault"]

    again = admin.post("/api/admin/users/approve", json={"userId": second["user"]["id"]}, headers=csrf(admin))
    assert again.status_code == 400
    assert _error(again)["message"] == "User is already approved"


def test_duplicate_email_and_wrong_password(client_factory):
    client = client_factory()
    signup(client, "dup@example.com", "Dana Dup")
    resp = client.post(
        "/api/auth/signup",
        json={
            "email": "DUP@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "display_name": "Dana Again",
        },
        headers=csrf(client),
    )
    assert resp.status_code == 400

    bad = client.post(
        "/api/auth/login",
        json={"email": "dup@example.com", "password": "WrongPassw0rd!"},
        headers=csrf(client),
    )
    assert bad.status_code == 401
    assert _error(bad)["code"] == "AUTHENTICATION_ERROR"


def test_request_validation_errors_use_error_envelope(client_factory):
    client = client_factory()
    resp = client.post(
        "/api/auth/signup",
        json={"email": "not-an-email", "password": "weak", "confirm_password": "weak", "display_name": "X"},
        headers=csrf(client),
    )
    assert resp.status_code == 400
    error = _error(resp)
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["errors"]
    assert resp.headers["X-Error-Code"] == "VALIDATION_ERROR"


def test_unauthenticated_and_missing_csrf(vault, client_factory):
    anonymous = client_factory("10.0.0.9")
    resp = anonymous.get("/api/spaces")
    assert resp.status_code == 401
    assert _error(resp)["code"] == "AUTHENTICATION_ERROR"

    no_csrf = vault.member.post("/api/items", json={"title": "x", "space_id": vault.member_space_id})
    assert no_csrf.status_code == 403
    assert _error(no_csrf)["message"] == "Invalid CSRF token"

    mismatched = vault.member.post(
        "/api/items",
        json={"title": "x", "space_id": vault.member_space_id},
        headers={"X-CSRF-Token": "forged"},
    )
    assert mismatched.status_code == 403


def test_personal_item_lifecycle_with_revisions_and_revert(vault):
    member = vault.member
    created = _create_item(member, vault.member_space_id, "Reading list", content="first", tags=["Books"])
    assert created["meta"]["message"] == "Item created successfully"
    data = created["data"]
    assert data["mode"] == "direct"
    assert data["item"]["tags"] == ["books"]
    assert data["revision"]["version"] == 1
    item_id = data["item"]["id"]

    listing = member.get("/api/items", params={"space_id": vault.member_space_id, "limit": 10})
    assert listing.status_code == 200
    assert listing.json()["meta"]["total"] == 1
    assert listing.json()["meta"]["hasMore"] is False

    updated = member.patch(f"/api/items/{item_id}", json={"content": "second"}, headers=csrf(member))
    assert updated.status_code == 200, updated.text
    assert updated.json()["data"]["revision"]["version"] == 2

    unchanged = member.patch(f"/api/items/{item_id}", json={"content": "second"}, headers=csrf(member))
    assert unchanged.json()["meta"]["message"] == "No changes detected"

    revisions = member.get(f"/api/items/{item_id}/revisions").json()["data"]
    assert [revision["version"] for revision in revisions] == [2, 1]

    reverted = member.post(
        f"/api/items/{item_id}/revert",
        json={"revisionId": revisions[-1]["id"]},
        headers=csrf(member),
    )
    assert reverted.status_code == 200, reverted.text
    assert reverted.json()["data"]["item"]["content"] == "first"
    assert reverted.json()["data"]["revision"]["version"] == 3

    # 列表缓存在写入后失效。
    fetched = member.get("/api/items", params={"space_id": vault.member_space_id, "limit": 10})
    assert fetched.json()["data"][0]["content"] == "first"

    deleted = member.delete(f"/api/items/{item_id}", headers=csrf(member))
    assert deleted.status_code == 200
    assert member.get(f"/api/items/{item_id}").status_code == 404
    after = member.get("/api/items", params={"space_id": vault.member_space_id})
    assert after.json()["meta"]["total"] == 0


def test_other_users_personal_space_is_forbidden(vault, client_factory):
    outsider = client_factory("10.0.0.3")
    outsider_user = signup_and_login(outsider, "outsider@example.com", "Otto Outsider")
    _approve(vault.admin, outsider_user["id"])

    item_id = _create_item(vault.member, vault.member_space_id, "Private")["data"]["item"]["id"]
    assert outsider.get(f"/api/items/{item_id}").status_code == 403

    resp = outsider.post(
        "/api/items",
        json={"title": "Intrusion", "space_id": vault.member_space_id},
        headers=csrf(outsider),
    )
    assert resp.status_code == 403


def test_member_writes_to_common_space_go_through_moderation(vault):
    admin, member = vault.admin, vault.member
    proposed = _create_item(member, vault.common_id, "Shared paper", content="abstract", reason="Useful")
    assert proposed["meta"]["message"] == "Edit request created for admin approval"
    edit_request = proposed["data"]["edit_request"]
    assert proposed["data"]["mode"] == "moderated"
    assert proposed["data"]["item"] is None
    assert edit_request["status"] == "pending"

    listing = member.get("/api/items", params={"space_id": vault.common_id})
    assert listing.json()["meta"]["total"] == 0

    own = member.get("/api/edit-requests", params={"status": "pending"})
    assert own.status_code == 200
    assert [row["id"] for row in own.json()["data"]] == [edit_request["id"]]

    forbidden = member.post(f"/api/edit-requests/{edit_request['id']}/approve", headers=csrf(member))
    assert forbidden.status_code == 403
    assert _error(forbidden)["message"] == "Admin access required"

    approved = admin.post(
        f"/api/edit-requests/{edit_request['id']}/approve",
        json={"note": "Thanks"},
        headers=csrf(admin),
    )
    assert approved.status_code == 200, approved.text
    result = approved.json()["data"]
    assert result["edit_request"]["status"] == "approved"
    assert result["item"]["title"] == "Shared paper"
    assert result["revision"]["version"] == 1

    twice = admin.post(f"/api/edit-requests/{edit_request['id']}/approve", headers=csrf(admin))
    assert twice.status_code == 400
    assert _error(twice)["message"] == "Edit request has already been reviewed"

    listing = member.get("/api/items", params={"space_id": vault.common_id})
    assert listing.json()["meta"]["total"] == 1

    item_id = result["item"]["id"]
    proposal = member.patch(f"/api/items/{item_id}", json={"title": "Renamed"}, headers=csrf(member))
    assert proposal.json()["data"]["mode"] == "moderated"
    rejected = admin.post(
        f"/api/edit-requests/{proposal.json()['data']['edit_request']['id']}/reject",
        json={"note": "Keep the original"},
        headers=csrf(admin),
    )
    assert rejected.status_code == 200
    assert rejected.json()["data"]["edit_request"]["status"] == "rejected"
    assert member.get(f"/api/items/{item_id}").json()["data"]["title"] == "Shared paper"

    not_allowed = member.delete(f"/api/items/{item_id}", headers=csrf(member))
    assert not_allowed.status_code == 403

    missing = admin.post("/api/edit-requests/00000000-0000-0000-0000-000000000000/reject", headers=csrf(admin))
    assert missing.status_code == 404


def test_admin_writes_to_common_space_directly(vault):
    created = _create_item(vault.admin, vault.common_id, "Handbook")
    assert created["data"]["mode"] == "direct"
    assert created["data"]["edit_request"] is None
    assert vault.member.get("/api/items", params={"space_id": vault.common_id}).json()["meta"]["total"] == 1


def test_only_admins_create_common_spaces(vault):
    resp = vault.member.post("/api/spaces", json={"name": "Rogue", "type": "common"}, headers=csrf(vault.member))
    assert resp.status_code == 403

    private = vault.admin.post(
        "/api/spaces",
        json={"name": "Staff Only", "type": "common", "is_public": False},
        headers=csrf(vault.admin),
    )
    assert private.status_code == 200
    names = [space["name"] for space in vault.member.get("/api/spaces").json()["data"]]
    assert "Staff Only" not in names
    assert "Team Library" in names


def test_snapshot_sanitizes_html_and_extracts_metadata(vault):
    html = (
        "<html><head><title>Fallback</title><meta property=\"og:title\" content=\"Deep Dive\">"
        "<meta name=\"description\" content=\"Long read\"></head>"
        "<body><p onclick=\"x()\">Text</p><script>evil()</script></body></html>"
    )
    resp = vault.member.post(
        "/api/items/snapshot",
        json={"url": "https://example.com/post", "html": html, "space_id": vault.member_space_id},
        headers=csrf(vault.member),
    )
    assert resp.status_code == 200, resp.text
    item = resp.json()["data"]["item"]
    assert item["title"] == "Deep Dive"
    assert item["excerpt"] == "Long read"
    assert item["type"] == "bookmark"
    assert "evil()" not in item["html_snapshot"]
    assert "onclick" not in item["html_snapshot"]


def test_search_filters_and_scopes_results(vault):
    member = vault.member
    _create_item(member, vault.member_space_id, "Quantum notes", content="entanglement basics", tags=["physics"])
    _create_item(member, vault.member_space_id, "Recipes", content="bread", tags=["food"])
    _create_item(vault.admin, vault.common_id, "Quantum handbook", tags=["physics"])
    admin_space = personal_space_id(vault.admin, vault.admin_user["id"])
    _create_item(vault.admin, admin_space, "Quantum secrets")

    resp = member.get("/api/search", params={"q": "quantum"})
    assert resp.status_code == 200
    titles = {item["title"] for item in resp.json()["data"]}
    assert titles == {"Quantum notes", "Quantum handbook"}
    assert resp.json()["meta"]["query"] == "quantum"

    tagged = member.get("/api/search", params={"tags": "food, cooking"})
    assert [item["title"] for item in tagged.json()["data"]] == ["Recipes"]

    scoped = member.get("/api/search", params={"q": "quantum", "space_id": vault.member_space_id})
    assert [item["title"] for item in scoped.json()["data"]] == ["Quantum notes"]

    bad_range = member.get(
        "/api/search",
        params={"date_from": "2024-02-01T00:00:00Z", "date_to": "2024-01-01T00:00:00Z"},
    )
    assert bad_range.status_code == 400


def test_file_upload_listing_and_bulk_delete(vault):
    member = vault.member
    uploaded = member.post(
        "/api/upload",
        files={"file": ("holiday photo.jpg", JPEG_BYTES, "image/jpeg")},
        data={"space_id": vault.member_space_id},
        headers=csrf(member),
    )
    assert uploaded.status_code == 200, uploaded.text
    attachment = uploaded.json()["data"]["attachment"]
    assert attachment["original_filename"] == "holiday_photo.jpg"
    assert attachment["filename"].endswith(".jpg")
    assert attachment["file_size"] == len(JPEG_BYTES)

    disguised = member.post(
        "/api/upload",
        files={"file": ("notes.txt", b"MZ\x90\x00 this is not text", "text/plain")},
        headers=csrf(member),
    )
    assert disguised.status_code == 400
    assert _error(disguised)["message"] == "File content doesn't match declared type"

    mismatched = member.post(
        "/api/upload",
        files={"file": ("fake.png", JPEG_BYTES, "image/png")},
        headers=csrf(member),
    )
    assert mismatched.status_code == 400
    assert _error(mismatched)["message"] == "File content doesn't match declared type"

    listing = member.get("/api/files", params={"type": "image"})
    assert [row["id"] for row in listing.json()["data"]] == [attachment["id"]]
    assert member.get("/api/files", params={"type": "document"}).json()["data"] == []

    deleted = member.post("/api/files/bulk-delete", json={"file_ids": [attachment["id"]]}, headers=csrf(member))
    assert deleted.status_code == 200, deleted.text
    assert deleted.json()["data"]["deleted_count"] == 1
    assert member.get("/api/files").json()["data"] == []


def test_upload_removes_stored_object_when_commit_fails(vault, monkeypatch, tmp_path):
    original_commit = Session.commit

    def failing_commit(session: Session) -> None:
        if any(
            isinstance(obj, ActivityLog) and obj.action == AuditAction.FILE_UPLOADED for obj in session.new
        ):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        original_commit(session)

    monkeypatch.setattr(Session, "commit", failing_commit)

    member = vault.member
    resp = member.post(
        "/api/upload",
        files={"file": ("photo.jpg", JPEG_BYTES, "image/jpeg")},
        data={"space_id": vault.member_space_id},
        headers=csrf(member),
    )
    assert resp.status_code == 500
    assert _error(resp)["code"] == "DATABASE_ERROR"
    assert [path for path in (tmp_path / "storage").rglob("*") if path.is_file()] == []

    monkeypatch.setattr(Session, "commit", original_commit)
    assert member.get("/api/files").json()["data"] == []


def test_export_formats(vault):
    member = vault.member
    _create_item(member, vault.member_space_id, "Exported note", content="body", tags=["a", "b"])

    resp = member.post("/api/export", json={"format": "json"}, headers=csrf(member))
    assert resp.status_code == 200, resp.text
    assert resp.headers["content-type"].startswith("application/json")
    disposition = resp.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="vault-export-')
    assert disposition.endswith('.json"')
    exported = json.loads(resp.content)
    assert exported["export_info"]["total_items"] == 1
    assert exported["export_info"]["user_id"] == vault.member_user["id"]
    assert exported["items"][0]["title"] == "Exported note"

    csv_resp = member.post("/api/export", json={"format": "csv"}, headers=csrf(member))
    assert csv_resp.headers["content-type"].startswith("text/csv")
    assert "Exported note" in csv_resp.text

    md_resp = member.post("/api/export", json={"format": "markdown"}, headers=csrf(member))
    assert md_resp.text.startswith("# Vault Export")

    invalid = member.post("/api/export", json={"format": "xml"}, headers=csrf(member))
    assert invalid.status_code == 400


def test_invite_codes(vault, client_factory):
    admin = vault.admin
    created = admin.post("/api/admin/invites", json={"max_uses": 1}, headers=csrf(admin))
    assert created.status_code == 200, created.text
    code = created.json()["data"]["code"]
    assert len(code) == 8

    listing = admin.get("/api/admin/invites")
    assert [invite["code"] for invite in listing.json()["data"]] == [code]

    guest = client_factory("10.0.0.4")
    resp = guest.post(
        "/api/auth/invite-signup",
        json={
            "email": "guest@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "display_name": "Gina Guest",
            "invite_code": code.lower(),
        },
        headers=csrf(guest),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["requires_approval"] is False
    assert resp.json()["data"]["user"]["status"] == "approved"

    login(guest, "guest@example.com")
    assert guest.get("/api/spaces").status_code == 200

    late = client_factory("10.0.0.5")
    reused = late.post(
        "/api/auth/invite-signup",
        json={
            "email": "late@example.com",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "display_name": "Larry Late",
            "invite_code": code,
        },
        headers=csrf(late),
    )
    assert reused.status_code == 400
    assert _error(reused)["message"] == "Invite code has reached maximum uses"

    assert vault.member.post("/api/admin/invites", headers=csrf(vault.member)).status_code == 403


def test_admin_user_management(vault, client_factory):
    admin, member = vault.admin, vault.member

    first = client_factory("10.0.0.6")
    first_user = signup(first, "first@example.com", "Fay First")["user"]
    second = client_factory("10.0.0.7")
    second_user = signup(second, "second@example.com", "Sam Second")["user"]

    bulk = admin.post(
        "/api/admin/users/bulk-approve",
        json={"userIds": [first_user["id"], second_user["id"]]},
        headers=csrf(admin),
    )
    assert bulk.status_code == 200, bulk.text
    assert bulk.json()["data"]["approved_count"] == 2
    assert bulk.json()["meta"]["message"] == "2 users approved successfully"

    promoted = admin.post(
        "/api/admin/users/role",
        json={"userId": vault.member_user["id"], "role": "admin"},
        headers=csrf(admin),
    )
    assert promoted.json()["data"]["role"] == "admin"
    assert member.get("/api/admin/users").status_code == 200

    demoted = admin.post(
        "/api/admin/users/role",
        json={"userId": vault.member_user["id"], "role": "member"},
        headers=csrf(admin),
    )
    assert demoted.json()["data"]["role"] == "member"

    suspended = admin.post("/api/admin/users/suspend", json={"userId": vault.member_user["id"]}, headers=csrf(admin))
    assert suspended.json()["data"]["status"] == "suspended"
    blocked = member.get("/api/spaces")
    assert blocked.status_code == 403
    assert _error(blocked)["message"] == "Account suspended"

    self_suspend = admin.post(
        "/api/admin/users/suspend",
        json={"userId": vault.admin_user["id"]},
        headers=csrf(admin),
    )
    assert self_suspend.status_code == 400

    self_demote = admin.post(
        "/api/admin/users/role",
        json={"userId": vault.admin_user["id"], "role": "member"},
        headers=csrf(admin),
    )
    assert self_demote.status_code == 403


def test_otp_sign_in_and_logout(vault, app, client_factory, db_session):
    client = client_factory("10.0.0.8")
    sent = client.post("/api/auth/magic-link", json={"email": "member@example.com"}, headers=csrf(client))
    assert sent.status_code == 200, sent.text
    assert sent.json()["data"]["channel"] == "email"

    unknown = client.post("/api/auth/magic-link", json={"email": "nobody@example.com"}, headers=csrf(client))
    assert unknown.status_code == 200

    code = otp_code(app, "member@example.com")
    wrong = client.post(
        "/api/auth/otp/verify",
        json={"identifier": "member@example.com", "token": "111111" if code == "000000" else "000000"},
        headers=csrf(client),
    )
    assert wrong.status_code == 401

    verified = client.post(
        "/api/auth/otp/verify",
        json={"identifier": "member@example.com", "token": code},
        headers=csrf(client),
    )
    assert verified.status_code == 200, verified.text
    assert verified.json()["data"]["user"]["email"] == "member@example.com"
    assert client.get("/api/spaces").status_code == 200

    identity = app.state.services.identity
    token = client.cookies.get("vault_session")
    assert identity.get_user(db_session, token).email == "member@example.com"
    assert identity.get_user(db_session, "not-a-token") is None

    replay = client.post(
        "/api/auth/otp/verify",
        json={"identifier": "member@example.com", "token": code},
        headers=csrf(client),
    )
    assert replay.status_code == 401

    logout = client.post("/api/auth/logout", headers=csrf(client))
    assert logout.status_code == 200
    assert logout.json()["data"]["revoked"] is True
    assert client.get("/api/auth/me").status_code == 401


def test_rate_limit_is_isolated_per_ip(vault, app, client_factory):
    services = app.state.services
    services.rate_limiter = RateLimiter(services.store, limit=2, window_seconds=60, clock=lambda: 1_000.0)

    assert vault.member.get("/api/spaces").status_code == 200
    assert vault.member.get("/api/spaces").status_code == 200
    limited = vault.member.get("/api/spaces")
    assert limited.status_code == 429
    assert _error(limited)["code"] == "RATE_LIMIT_ERROR"
    assert int(limited.headers["Retry-After"]) >= 1
    assert limited.headers["X-RateLimit-Limit"] == "2"
    assert limited.headers["X-RateLimit-Remaining"] == "0"

    # 其他 IP 的计数互不影响。
    assert vault.admin.get("/api/spaces").status_code == 200
    assert client_factory("10.0.0.99").get("/api/spaces").status_code == 401


def test_export_route_limit_is_separate_from_ip_limit(vault, app):
    services = app.state.services
    window = services.settings.route_rate_limit_window_seconds
    services.route_limiters[f"{EXPORT_RATE_LIMIT}:{window}"] = RateLimiter(
        services.store,
        limit=EXPORT_RATE_LIMIT,
        window_seconds=window,
        prefix="ratelimit:route",
        clock=lambda: 1_000.0,
    )

    for _ in range(EXPORT_RATE_LIMIT):
        resp = vault.member.post("/api/export", json={"format": "json"}, headers=csrf(vault.member))
        assert resp.status_code == 200, resp.text
        assert resp.headers["X-RateLimit-Limit"] == str(EXPORT_RATE_LIMIT)

    limited = vault.member.post("/api/export", json={"format": "json"}, headers=csrf(vault.member))
    assert limited.status_code == 429
    assert limited.headers["X-RateLimit-Remaining"] == "0"

    # 其他接口与其他 IP 不受影响。
    assert vault.member.get("/api/spaces").status_code == 200
    assert vault.admin.post("/api/export", json={"format": "csv"}, headers=csrf(vault.admin)).status_code == 200


def test_metrics_are_admin_only(vault):
    vault.member.get("/api/spaces")
    resp = vault.admin.get("/api/metrics", params={"level": "info", "limit": 50})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert "query:spaces" in data["performance"]
    assert len(data["logs"]) <= 50
    assert data["system"]["pid"] > 0

    denied = vault.member.get("/api/metrics")
    assert denied.status_code == 403


def test_bookmarklet(api_client: TestClient):
    resp = api_client.get("/api/bookmarklet", params={"base_url": "https://vault.example.com/"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["bookmarklet"].startswith("javascript:")
    assert data["endpoint"] == "https://vault.example.com/api/items/snapshot"
    assert len(data["instructions"]) == 3
