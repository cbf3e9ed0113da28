from __future__ import annotations

import datetime as dt

import httpx
import pytest

from core.auth import SESSION_COOKIE_NAME
from core.models import Invite, PasswordResetToken, Profile
from core.services import accounts
from core.services.auth import context_for
from core.settings import reset_settings_cache

PASSWORD = "pass-word!1"


def _login(client, login_id, password=PASSWORD):
    return client.post("/api/auth/login", json={"login_id": login_id, "password": password})


def test_login_sets_cookie_and_me_reads_it(client, world):
    r = _login(client, "owner-a")
    assert r.status_code == 200
    assert r.json()["user"]["role"] == "tenant_admin"
    set_cookie = r.headers["set-cookie"].lower()
    assert SESSION_COOKIE_NAME in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json() == {
        "id": world.owner_a.id,
        "role": "tenant_admin",
        "shop_id": world.a.id,
        "store_group_id": None,
        "name": "점장A",
    }


def test_logout_clears_cookie(client, world):
    _login(client, "staff-a")
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert client.get("/api/auth/me").status_code == 401


@pytest.mark.parametrize("login_id, password", [("owner-a", "wrong!pass"), ("nobody", PASSWORD), ("", "")])
def test_bad_credentials_are_indistinguishable(client, world, login_id, password):
    r = _login(client, login_id, password)
    assert r.status_code == 401
    assert r.json()["code"] == "invalid_credentials"
    assert r.json()["error"] == "Invalid credentials"


def test_login_is_rate_limited_per_client(client, world, monkeypatch):
    monkeypatch.setenv("LOGIN_RATE_LIMIT_MAX", "3")
    reset_settings_cache()
    for _ in range(3):
        assert _login(client, "owner-a", "wrong!pass").status_code == 401
    r = _login(client, "owner-a")
    assert r.status_code == 429
    assert r.json()["code"] == "too_many_requests"


def test_successful_login_clears_failures(client, world, monkeypatch):
    monkeypatch.setenv("LOGIN_RATE_LIMIT_MAX", "3")
    reset_settings_cache()
    for _ in range(2):
        _login(client, "owner-a", "wrong!pass")
    assert _login(client, "owner-a").status_code == 200
    for _ in range(2):
        _login(client, "owner-a", "wrong!pass")
    assert _login(client, "owner-a").status_code == 200


def test_identity_headers_are_ignored(client, world):
    r = client.get(
        "/api/auth/me",
        headers={"x-user-role": "super_admin", "x-user-id": world.admin.id, "x-shop-id": world.c.id},
    )
    assert r.status_code == 401


def test_forged_cookie_is_rejected(client, world):
    client.cookies.set(SESSION_COOKIE_NAME, "eyJzdWIiOiJhZG1pbiJ9.bm90LWEtc2ln")
    assert client.get("/api/reports").status_code == 401


def test_cookie_for_deleted_profile_is_rejected(client_for, session, world):
    client = client_for(world.staff_a)
    session.delete(session.get(Profile, world.staff_a.id))
    session.commit()
    assert client.get("/api/auth/me").status_code == 401


# --- signup -----------------------------------------------------------------


def test_tenant_admin_signup_creates_shop(client, session):
    r = client.post(
        "/api/auth/signup",
        json={"login_id": "new-owner", "password": "longpass!", "name": "새점장", "role": "tenant_admin", "shop_name": "새매장"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["role"] == "tenant_admin"
    assert body["shop_id"]
    assert _login(client, "new-owner", "longpass!").status_code == 200
    shops = client.get("/api/shops").json()
    assert [s["name"] for s in shops] == ["새매장"]


@pytest.mark.parametrize("password", ["short!", "longpassword", "", None])
def test_signup_rejects_weak_passwords(client, password):
    r = client.post(
        "/api/auth/signup",
        json={"login_id": "weak", "password": password, "name": "x", "role": "tenant_admin", "shop_name": "s"},
    )
    assert r.status_code == 400


def test_weak_password_code(client):
    r = client.post(
        "/api/auth/signup",
        json={"login_id": "weak", "password": "short!", "name": "x", "role": "tenant_admin", "shop_name": "s"},
    )
    assert r.json()["code"] == "weak_password"


def test_duplicate_login_id_conflicts(client, world):
    r = client.post(
        "/api/auth/signup",
        json={"login_id": "owner-a", "password": "longpass!", "name": "x", "role": "tenant_admin", "shop_name": "s"},
    )
    assert r.status_code == 409
    assert r.json()["code"] == "login_id_taken"


def test_unknown_role_rejected(client):
    r = client.post("/api/auth/signup", json={"login_id": "x", "password": "longpass!", "name": "x", "role": "root"})
    assert r.status_code == 400


def test_super_admin_signup_requires_configured_secret(client, monkeypatch):
    body = {"login_id": "boss", "password": "longpass!", "name": "x", "role": "super_admin"}
    monkeypatch.setenv("SUPER_ADMIN_SIGNUP_PASSWORD", "")
    reset_settings_cache()
    r = client.post("/api/auth/signup", json={**body, "super_admin_signup_password": "anything"})
    assert r.status_code == 503

    monkeypatch.setenv("SUPER_ADMIN_SIGNUP_PASSWORD", "open-sesame")
    reset_settings_cache()
    assert client.post("/api/auth/signup", json={**body, "super_admin_signup_password": "nope"}).status_code == 403
    assert client.post("/api/auth/signup", json={**body, "super_admin_signup_password": "open-sesame"}).status_code == 201


def test_region_manager_signup_creates_group(client, session, monkeypatch):
    monkeypatch.setenv("REGION_MANAGER_SIGNUP_PASSWORD", "region-key")
    reset_settings_cache()
    r = client.post(
        "/api/auth/signup",
        json={
            "login_id": "rm",
            "password": "longpass!",
            "name": "권역",
            "role": "region_manager",
            "region_manager_signup_password": "region-key",
            "store_group_name": "대구권역",
        },
    )
    assert r.status_code == 201
    assert r.json()["store_group_id"]
    assert r.json()["shop_id"] is None


def test_region_manager_signup_checks_group_exists(client, session, world, monkeypatch):
    monkeypatch.setenv("REGION_MANAGER_SIGNUP_PASSWORD", "region-key")
    reset_settings_cache()
    body = {
        "login_id": "rm2",
        "password": "longpass!",
        "name": "권역",
        "role": "region_manager",
        "region_manager_signup_password": "region-key",
        "managed_store_group_id": "no-such-group",
    }
    r = client.post("/api/auth/signup", json=body)
    assert r.status_code == 400
    assert r.json()["code"] == "unknown_store_group"
    assert session.query(Profile).filter_by(login_id="rm2").first() is None

    r = client.post("/api/auth/signup", json={**body, "managed_store_group_id": world.g2.id})
    assert r.status_code == 201
    assert r.json()["store_group_id"] == world.g2.id


# --- invites ----------------------------------------------------------------


def _staff_signup(client, code, login_id="new-staff"):
    return client.post(
        "/api/auth/signup",
        json={"login_id": login_id, "password": "longpass!", "name": "신입", "role": "staff", "shop_code": code},
    )


def test_invite_is_single_use(client, client_for, world):
    owner = client_for(world.owner_a)
    r = owner.post("/api/invites", json={})
    assert r.status_code == 201
    code = r.json()["code"]
    assert len(code) == 6 and code == code.upper()
    assert [i["code"] for i in owner.get("/api/invites").json()] == [code]

    r = _staff_signup(client, code.lower())
    assert r.status_code == 201
    assert r.json()["shop_id"] == world.a.id

    r = _staff_signup(client, code, login_id="second-staff")
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_invite"


def test_expired_invite_is_rejected(client, client_for, session, world):
    code = client_for(world.owner_a).post("/api/invites", json={}).json()["code"]
    invite = session.get(Invite, code)
    invite.expires_at = dt.datetime.now(dt.UTC) - dt.timedelta(minutes=1)
    session.commit()
    r = _staff_signup(client, code)
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_invite"


def test_staff_signup_without_code(client):
    assert _staff_signup(client, "").status_code == 400


def test_invite_permissions(client_for, world):
    assert client_for(world.staff_a).post("/api/invites", json={}).status_code == 403
    assert client_for(world.owner_a).post("/api/invites", json={"shop_id": world.c.id}).status_code == 403
    assert client_for(world.admin).post("/api/invites", json={"shop_id": world.c.id}).status_code == 201
    r = client_for(world.admin).post("/api/invites", json={})
    assert r.status_code == 403
    assert r.json()["code"] == "shop_required"


# --- passwords --------------------------------------------------------------


def test_change_password(client, client_for, world):
    me = client_for(world.staff_a)
    r = me.patch("/api/auth/password", json={"current_password": "wrong", "new_password": "another!1"})
    assert r.status_code == 401
    r = me.patch("/api/auth/password", json={"current_password": PASSWORD, "new_password": "weak"})
    assert r.status_code == 400
    r = me.patch("/api/auth/password", json={"current_password": PASSWORD, "new_password": "another!1"})
    assert r.status_code == 200
    assert _login(client, "staff-a").status_code == 401
    assert _login(client, "staff-a", "another!1").status_code == 200


@pytest.fixture()
def delivered(monkeypatch):
    """Capture links handed to the out-of-band delivery hook."""
    links = []

    def fake_deliver(profile, link):
        links.append((profile.login_id, link))
        return True

    monkeypatch.setattr(accounts, "deliver_reset_link", fake_deliver)
    return links


def _token(link):
    return link.rsplit("=", 1)[1]


def test_forgot_password_never_returns_a_token(client, session, world, delivered):
    known = client.post("/api/auth/forgot-password", json={"loginId": "admin"})
    unknown = client.post("/api/auth/forgot-password", json={"login_id": "ghost"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert "token" not in known.text
    assert "reset_link" not in known.json()

    # the only link went out-of-band, for the known account
    assert [login for login, _ in delivered] == ["admin"]
    token = _token(delivered[0][1])
    assert token not in known.text
    assert session.get(PasswordResetToken, token) is not None


def test_forgot_password_requires_login_id(client, world):
    assert client.post("/api/auth/forgot-password", json={}).status_code == 400


def test_forgot_password_is_rate_limited(client, world, delivered, monkeypatch):
    monkeypatch.setenv("LOGIN_RATE_LIMIT_MAX", "2")
    reset_settings_cache()
    for _ in range(2):
        assert client.post("/api/auth/forgot-password", json={"login_id": "staff-a"}).status_code == 200
    r = client.post("/api/auth/forgot-password", json={"login_id": "staff-a"})
    assert r.status_code == 429
    assert len(delivered) == 2


def test_delivery_without_webhook_is_skipped(session, world, caplog):
    with caplog.at_level("WARNING", logger="shopdesk.accounts"):
        assert accounts.deliver_reset_link(world.staff_a, "http://x/login?token=abc") is False
    assert "abc" not in caplog.text


def test_delivery_posts_to_webhook(world, monkeypatch):
    monkeypatch.setenv("PASSWORD_RESET_WEBHOOK_URL", "https://hooks.example.com/reset")
    reset_settings_cache()
    sent = []

    def fake_post(url, json=None, timeout=None):
        sent.append((url, json))
        return httpx.Response(200, request=httpx.Request("POST", url))

    monkeypatch.setattr(accounts.httpx, "post", fake_post)
    assert accounts.deliver_reset_link(world.staff_a, "http://x/login?token=abc") is True
    url, body = sent[0]
    assert url == "https://hooks.example.com/reset"
    assert body["login_id"] == "staff-a"
    assert body["reset_link"] == "http://x/login?token=abc"


def test_reset_with_delivered_link(client, world, delivered):
    client.post("/api/auth/forgot-password", json={"login_id": "staff-a"})
    token = _token(delivered[0][1])

    r = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "fresh-pass!"})
    assert r.status_code == 200
    assert _login(client, "staff-a", "fresh-pass!").status_code == 200
    # tokens are single-use
    r = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "again-pass!"})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_token"


def test_admin_issues_reset_link_in_scope(client, client_for, world):
    r = client_for(world.owner_a).post("/api/auth/reset-links", json={"login_id": "staff-a"})
    assert r.status_code == 201
    body = r.json()
    assert body["login_id"] == "staff-a"
    assert body["expires_in_hours"] == 1
    assert body["reset_link"].startswith("http://localhost:8000/login?tab=reset_password&token=")

    r = client.post("/api/auth/reset-password", json={"token": _token(body["reset_link"]), "newPassword": "fresh-pass!"})
    assert r.status_code == 200
    assert _login(client, "staff-a", "fresh-pass!").status_code == 200


def test_reset_links_stay_in_scope_and_below_rank(client, client_for, world):
    assert client.post("/api/auth/reset-links", json={"login_id": "staff-a"}).status_code == 401
    assert client_for(world.staff_a).post("/api/auth/reset-links", json={"login_id": "staff-a"}).status_code == 403
    owner_c = client_for(world.owner_c)
    assert owner_c.post("/api/auth/reset-links", json={"login_id": "staff-a"}).status_code == 404
    owner_a = client_for(world.owner_a)
    assert owner_a.post("/api/auth/reset-links", json={"login_id": "owner-a"}).status_code == 404
    assert owner_a.post("/api/auth/reset-links", json={"login_id": "admin"}).status_code == 404
    assert owner_a.post("/api/auth/reset-links", json={"login_id": "ghost"}).status_code == 404
    assert owner_a.post("/api/auth/reset-links", json={}).status_code == 400

    region = client_for(world.region)
    assert region.post("/api/auth/reset-links", json={"login_id": "owner-a"}).status_code == 201
    assert region.post("/api/auth/reset-links", json={"login_id": "owner-c"}).status_code == 404
    assert region.post("/api/auth/reset-links", json={"login_id": "admin"}).status_code == 404
    assert client_for(world.admin).post("/api/auth/reset-links", json={"login_id": "region"}).status_code == 201


def test_expired_reset_token(client, session, world):
    _, link = accounts.issue_reset_link(session, context_for(world.admin), "staff-a")
    token = _token(link)
    row = session.get(PasswordResetToken, token)
    row.expires_at = dt.datetime.now(dt.UTC) - dt.timedelta(seconds=1)
    session.commit()
    r = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "fresh-pass!"})
    assert r.status_code == 400
    assert r.json()["code"] == "expired_token"
    session.expire_all()
    assert session.get(PasswordResetToken, token) is None
