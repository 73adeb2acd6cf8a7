"""
tests/test_api_routes.py -- Integration tests for the auth and admin API routes.

These tests exercise the full stack: FastAPI routing -> auth dependency injection
-> UserStore / ResetCodeFlow -> response model serialization. Unit testing
individual route functions would miss middleware, dependency injection, and
the error envelope -- integration tests are the right tool here.

Coverage:
  - Register: 201 + cookie + token; duplicate email (any case) 409; 400 on bad input
  - Login: cookie session and Bearer session; unknown email and wrong password look the same
  - Logout: cookie cleared with Max-Age=0
  - /auth/me and PATCH /auth/profile (partial update of name and profile links)
  - Passwords over 72 UTF-8 bytes: 400, never a 500
  - A stale cookie does not mask a valid Bearer header
  - Admin: 401 anonymous, 403 non-admin, 200 allowlisted admin, 404 unknown id
  - Forgot password: request / verify / reset over HTTP, uniform answers
  - Unexpected store failures: generic 500 body, no internals leaked

Fixtures used (from conftest.py):
  - client: TestClient against the full ASGI app, cookie jar emptied per test
  - api_client: (client, store, mailer) for direct store / mailbox access
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from asgi import app

ADMIN_EMAIL = "admin@x.com"  # matches the allowlist wired in conftest._patch_lifespan
PASSWORD = "secret123"


def _register(client: TestClient, email: str, user_type: str = "founder", password: str = PASSWORD):
    return client.post(
        "/api/v1/auth/register",
        json={"email": email, "full_name": "Test User", "password": password, "user_type": user_type},
    )


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def _as_admin(client: TestClient) -> None:
    if _login(client, ADMIN_EMAIL).status_code != 200:
        assert _register(client, ADMIN_EMAIL).status_code == 201


def _error_code(resp) -> str:
    return resp.json()["error"]["code"]


class TestRegister:
    def test_register_creates_session(self, client: TestClient) -> None:
        resp = _register(client, "reg@x.com")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["user"]["email"] == "reg@x.com"
        assert data["user"]["role"] == "founder"
        assert data["token"]
        assert data["expires_in"] == 7 * 24 * 60 * 60
        assert "password_hash" not in data["user"]
        assert resp.headers["cache-control"] == "no-store"
        assert "token=" in resp.headers["set-cookie"]

        me = client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "reg@x.com"

    def test_investor_role(self, client: TestClient) -> None:
        resp = _register(client, "investor@x.com", user_type="investor")
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "investor"

    def test_email_is_normalized(self, client: TestClient) -> None:
        resp = _register(client, "  Mixed@Case.com ")
        assert resp.status_code == 201
        assert resp.json()["user"]["email"] == "mixed@case.com"

    def test_duplicate_email_any_case(self, client: TestClient) -> None:
        assert _register(client, "dup@x.com").status_code == 201
        resp = _register(client, "DUP@x.com")
        assert resp.status_code == 409
        assert _error_code(resp) == "conflict"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"email": "a@x.com", "password": PASSWORD, "user_type": "founder"},
            {"email": "not-an-email", "full_name": "A", "password": PASSWORD, "user_type": "founder"},
            {"email": "a@x.com", "full_name": "A", "password": PASSWORD, "user_type": "admin"},
            {"email": "a@x.com", "full_name": "A", "password": "", "user_type": "founder"},
            {"email": "a@x.com", "full_name": "A", "password": "x" * 73, "user_type": "founder"},
        ],
    )
    def test_invalid_input(self, client: TestClient, body: dict) -> None:
        resp = client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 400
        assert _error_code(resp) == "invalid_input"

    def test_multibyte_password_over_72_bytes_is_400(self, client: TestClient) -> None:
        resp = _register(client, "multibyte@x.com", password="é" * 40)
        assert resp.status_code == 400
        assert _error_code(resp) == "invalid_input"
        assert _login(client, "multibyte@x.com", "é" * 40).status_code == 401

    def test_multibyte_password_at_72_bytes_is_accepted(self, client: TestClient) -> None:
        assert _register(client, "multibyte72@x.com", password="é" * 36).status_code == 201
        client.cookies.clear()
        assert _login(client, "multibyte72@x.com", "é" * 36).status_code == 200


class TestLogin:
    def test_founder_scenario(self, client: TestClient) -> None:
        assert _register(client, "founder@x.com").status_code == 201
        client.cookies.clear()

        resp = _login(client, "founder@x.com", "secret123")
        assert resp.status_code == 200
        assert client.cookies.get("token")

        me = client.get("/api/v1/auth/me").json()
        assert me["user"]["role"] == "founder"
        assert me["is_administrator"] is False

    def test_cookie_session(self, client: TestClient) -> None:
        _register(client, "login@x.com")
        client.cookies.clear()

        resp = _login(client, "LOGIN@x.com")
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "login@x.com"
        assert client.get("/api/v1/auth/me").status_code == 200

    def test_bearer_session(self, client: TestClient) -> None:
        _register(client, "bearer@x.com")
        client.cookies.clear()

        token = _login(client, "bearer@x.com").json()["token"]
        client.cookies.clear()
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "bearer@x.com"

    def test_stale_cookie_does_not_hide_valid_bearer(self, client: TestClient) -> None:
        _register(client, "stale@x.com")
        token = client.cookies.get("token")
        client.cookies.clear()
        client.cookies.set("token", "stale-or-garbage")

        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "stale@x.com"

    def test_stale_cookie_and_bad_bearer_is_401(self, client: TestClient) -> None:
        client.cookies.set("token", "stale-or-garbage")
        resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer also-garbage"})
        assert resp.status_code == 401

    def test_wrong_password_and_unknown_email_look_the_same(self, client: TestClient) -> None:
        _register(client, "victim@x.com")
        client.cookies.clear()

        wrong = _login(client, "victim@x.com", "nope")
        unknown = _login(client, "ghost@x.com", "nope")
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert _error_code(wrong) == "bad_credentials"
        assert "set-cookie" not in wrong.headers

    def test_missing_fields(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/login", json={"email": "a@x.com"})
        assert resp.status_code == 400


class TestSession:
    def test_me_requires_auth(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert _error_code(resp) == "unauthorized"

    def test_garbage_token(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401

    def test_logout_clears_cookie(self, client: TestClient) -> None:
        _register(client, "logout@x.com")
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("token=")
        assert "Max-Age=0" in cookie

    def test_logout_without_session(self, client: TestClient) -> None:
        assert client.post("/api/v1/auth/logout").status_code == 200

    def test_update_profile(self, client: TestClient) -> None:
        _register(client, "profile@x.com")
        resp = client.patch("/api/v1/auth/profile", json={"full_name": "  Renamed  "})
        assert resp.status_code == 200
        assert resp.json()["full_name"] == "Renamed"
        assert client.get("/api/v1/auth/me").json()["user"]["full_name"] == "Renamed"

    def test_update_profile_links(self, client: TestClient) -> None:
        _register(client, "links@x.com")
        resp = client.patch(
            "/api/v1/auth/profile",
            json={"linkedin_url": "https://linkedin.com/in/links", "profile_image_url": "https://img.example/l.png"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["full_name"] == "Test User"
        assert data["linkedin_url"] == "https://linkedin.com/in/links"
        assert data["profile_image_url"] == "https://img.example/l.png"

        cleared = client.patch("/api/v1/auth/profile", json={"linkedin_url": None}).json()
        assert cleared["linkedin_url"] is None
        assert cleared["profile_image_url"] == "https://img.example/l.png"

    @pytest.mark.parametrize(
        "body",
        [{"linkedin_url": "javascript:alert(1)"}, {"profile_image_url": "not a url"}, {"full_name": None}],
    )
    def test_update_profile_rejects_bad_values(self, client: TestClient, body: dict) -> None:
        if _login(client, "badlinks@x.com").status_code != 200:
            _register(client, "badlinks@x.com")
        assert client.patch("/api/v1/auth/profile", json=body).status_code == 400

    def test_update_profile_requires_auth(self, client: TestClient) -> None:
        assert client.patch("/api/v1/auth/profile", json={"full_name": "X"}).status_code == 401

    def test_update_profile_rejects_blank_name(self, client: TestClient) -> None:
        _register(client, "blank@x.com")
        assert client.patch("/api/v1/auth/profile", json={"full_name": "   "}).status_code == 400


class TestAdmin:
    def test_anonymous_is_401(self, client: TestClient) -> None:
        assert client.get("/api/v1/admin/users").status_code == 401

    def test_non_admin_is_403(self, client: TestClient) -> None:
        _register(client, "plain@x.com")
        me = client.get("/api/v1/auth/me").json()
        assert me["is_administrator"] is False
        resp = client.get("/api/v1/admin/users")
        assert resp.status_code == 403
        assert _error_code(resp) == "forbidden"

    def test_admin_lists_users(self, client: TestClient) -> None:
        _as_admin(client)
        assert client.get("/api/v1/auth/me").json()["is_administrator"] is True

        resp = client.get("/api/v1/admin/users")
        assert resp.status_code == 200
        emails = [u["email"] for u in resp.json()]
        assert ADMIN_EMAIL in emails
        assert emails == sorted(emails)

    def test_admin_get_user(self, client: TestClient) -> None:
        _as_admin(client)
        users = client.get("/api/v1/admin/users").json()
        target = users[0]
        resp = client.get(f"/api/v1/admin/users/{target['id']}")
        assert resp.status_code == 200
        assert resp.json() == target

    def test_admin_unknown_user_is_404(self, client: TestClient) -> None:
        _as_admin(client)
        resp = client.get(f"/api/v1/admin/users/{'0' * 32}")
        assert resp.status_code == 404
        assert _error_code(resp) == "not_found"


class TestForgotPassword:
    def _request_code(self, client: TestClient, api_client, email: str) -> str:
        _c, store, _mailer = api_client
        resp = client.post("/api/v1/auth/forgot-password/request", json={"email": email})
        assert resp.status_code == 200
        user = store.get_by_email(email)
        assert user is not None and user.reset_code
        return user.reset_code

    def test_full_reset_flow(self, client: TestClient, api_client) -> None:
        _c, _store, mailer = api_client
        _register(client, "forgot@x.com")
        client.cookies.clear()

        before = len(mailer.sent)
        code = self._request_code(client, api_client, "forgot@x.com")
        assert len(mailer.sent) == before + 1
        to, _subject, body = mailer.sent[-1]
        assert to == "forgot@x.com"
        assert code in body

        verify = client.post("/api/v1/auth/forgot-password/verify", json={"email": "forgot@x.com", "code": code})
        assert verify.status_code == 200
        assert verify.json()["success"] is True

        reset = client.post(
            "/api/v1/auth/forgot-password/reset",
            json={"email": "forgot@x.com", "code": code, "newPassword": "newpass456"},
        )
        assert reset.status_code == 200

        assert _login(client, "forgot@x.com").status_code == 401
        assert _login(client, "forgot@x.com", "newpass456").status_code == 200

        again = client.post(
            "/api/v1/auth/forgot-password/reset",
            json={"email": "forgot@x.com", "code": code, "newPassword": "third789"},
        )
        assert again.status_code == 400
        assert _error_code(again) == "invalid_code"

    def test_wrong_code(self, client: TestClient, api_client) -> None:
        _register(client, "wrongcode@x.com")
        client.cookies.clear()
        self._request_code(client, api_client, "wrongcode@x.com")
        resp = client.post(
            "/api/v1/auth/forgot-password/verify", json={"email": "wrongcode@x.com", "code": "NOTRIGHT"}
        )
        assert resp.status_code == 400
        assert _error_code(resp) == "invalid_code"

    def test_expired_code(self, client: TestClient, api_client) -> None:
        _c, store, _mailer = api_client
        _register(client, "expired@x.com")
        client.cookies.clear()
        store.set_reset_code("expired@x.com", "OLDCODE1", datetime.now(timezone.utc) - timedelta(seconds=1))

        resp = client.post("/api/v1/auth/forgot-password/verify", json={"email": "expired@x.com", "code": "OLDCODE1"})
        assert resp.status_code == 400
        assert _error_code(resp) == "code_expired"

        reset = client.post(
            "/api/v1/auth/forgot-password/reset",
            json={"email": "expired@x.com", "code": "OLDCODE1", "newPassword": "newpass456"},
        )
        assert _error_code(reset) == "code_expired"
        assert _login(client, "expired@x.com").status_code == 200

    def test_unknown_email_gets_the_same_answer(self, client: TestClient, api_client) -> None:
        _c, _store, mailer = api_client
        _register(client, "known@x.com")
        client.cookies.clear()

        known = client.post("/api/v1/auth/forgot-password/request", json={"email": "known@x.com"})
        before = len(mailer.sent)
        unknown = client.post("/api/v1/auth/forgot-password/request", json={"email": "nobody@x.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert len(mailer.sent) == before

    def test_delivery_failure_still_succeeds(self, client: TestClient, api_client) -> None:
        _c, store, mailer = api_client
        _register(client, "maildown@x.com")
        client.cookies.clear()
        mailer.fail = True
        try:
            resp = client.post("/api/v1/auth/forgot-password/request", json={"email": "maildown@x.com"})
        finally:
            mailer.fail = False
        assert resp.status_code == 200
        assert store.get_by_email("maildown@x.com").reset_code is not None

    def test_multibyte_new_password_over_72_bytes_is_400(self, client: TestClient, api_client) -> None:
        _register(client, "resetbytes@x.com")
        client.cookies.clear()
        code = self._request_code(client, api_client, "resetbytes@x.com")

        resp = client.post(
            "/api/v1/auth/forgot-password/reset",
            json={"email": "resetbytes@x.com", "code": code, "newPassword": "é" * 40},
        )
        assert resp.status_code == 400
        assert _error_code(resp) == "invalid_input"
        verify = client.post(
            "/api/v1/auth/forgot-password/verify", json={"email": "resetbytes@x.com", "code": code}
        )
        assert verify.status_code == 200
        assert _login(client, "resetbytes@x.com").status_code == 200

    def test_missing_code_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/forgot-password/verify", json={"email": "a@x.com"})
        assert resp.status_code == 400
        assert _error_code(resp) == "invalid_input"


class TestUnexpectedFailure:
    def test_store_failure_returns_generic_500(self, api_client, monkeypatch) -> None:
        _c, store, _mailer = api_client

        def boom(*args, **kwargs):
            raise OperationalError("SELECT * FROM users", {}, Exception("disk I/O error at /var/db/users.db"))

        monkeypatch.setattr(store, "get_by_email", boom)
        # No context manager: reuse the app.state the module client already set up.
        client = TestClient(app, raise_server_exceptions=False)
        resp = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": PASSWORD})

        assert resp.status_code == 500
        assert _error_code(resp) == "internal_error"
        assert "disk" not in resp.text
        assert "users" not in resp.text
