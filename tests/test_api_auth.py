"""
tests/test_api_auth.py -- HTTP tests for /api/register, /api/login, /api/logout,
/api/me and /api/health through the full ASGI stack.

Coverage:
  - register: 201 + cookie + no-store; itemized 400; duplicate email any case
  - login: 200 + cookie; identical 401 bodies for unknown email / wrong password
  - me: requires the cookie; profile never includes the password hash
  - logout: always 200, clears the cookie, revokes the token it was given
  - error envelope for 422 / 404 / unexpected 500
  - secure cookie when ENVIRONMENT=production
  - health reports database reachability
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from auth.revocation import RevocationStore
from auth.service import AuthService
from core.config import Settings, get_settings

TEST_SECRET = get_settings().jwt_secret

PASSWORD = "password1"


def _register(client: TestClient, email="alice@example.com", username="alice", password=PASSWORD, confirm=None):
    return client.post(
        "/api/register",
        json={
            "email": email,
            "username": username,
            "password": password,
            "confirmPassword": password if confirm is None else confirm,
        },
    )


def _login(client: TestClient, email="alice@example.com", password=PASSWORD):
    return client.post("/api/login", json={"email": email, "password": password})


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_success(self, api_client: TestClient) -> None:
        resp = _register(api_client, email="Alice@Example.com")
        assert resp.status_code == 201
        body = resp.json()
        assert body["user"]["email"] == "alice@example.com"
        assert body["user"]["username"] == "alice"
        assert isinstance(body["user"]["id"], int)
        assert body["token"]
        assert "hashed_password" not in body["user"]
        assert resp.headers["Cache-Control"] == "no-store"

        cookie = resp.headers["set-cookie"].lower()
        assert cookie.startswith(f"{get_settings().cookie_name}=")
        assert "httponly" in cookie
        assert "samesite=lax" in cookie
        assert "secure" not in cookie

    def test_itemized_validation_errors(self, api_client: TestClient) -> None:
        resp = _register(api_client, email="bad", username="", password="short", confirm="other")
        assert resp.status_code == 400
        assert resp.json() == {
            "status": 400,
            "message": "Validation failed",
            "errors": [
                {"field": "email", "message": "Invalid email format"},
                {"field": "username", "message": "Username is required"},
                {"field": "password", "message": "Password must be at least 8 characters long"},
                {"field": "confirmPassword", "message": "Passwords do not match"},
            ],
        }
        assert "set-cookie" not in resp.headers

    def test_empty_body_reports_required_fields(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/register", json={})
        assert resp.status_code == 400
        fields = [e["field"] for e in resp.json()["errors"]]
        assert fields == ["email", "username", "password"]

    def test_duplicate_email_any_case(self, api_client: TestClient) -> None:
        assert _register(api_client, email="dup@example.com", username="one").status_code == 201
        resp = _register(api_client, email="DUP@EXAMPLE.COM", username="two")
        assert resp.status_code == 400
        assert resp.json()["errors"] == [{"field": "email", "message": "Email already in use"}]

    def test_duplicate_username(self, api_client: TestClient) -> None:
        assert _register(api_client, email="a@example.com", username="taken").status_code == 201
        resp = _register(api_client, email="b@example.com", username="taken")
        assert resp.status_code == 400
        assert resp.json()["errors"] == [{"field": "username", "message": "Username already in use"}]

    def test_long_password_registers_and_logs_in(self, api_client: TestClient) -> None:
        long_password = "correct-horse-battery-staple-" * 3
        resp = _register(api_client, password=long_password)
        assert resp.status_code == 201

        api_client.cookies.clear()
        assert _login(api_client, password=long_password).status_code == 200

    def test_wrong_type_is_422(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/register", json={"email": 123})
        assert resp.status_code == 422
        body = resp.json()
        assert body["message"] == "Request validation failed"
        assert body["errors"][0]["field"] == "email"

    def test_unexpected_failure_is_generic_500(self, api_client: TestClient) -> None:
        with patch.object(AuthService, "register", side_effect=RuntimeError("secret internals")):
            resp = _register(api_client)
        assert resp.status_code == 500
        body = resp.json()
        assert body["message"] == "Server error"
        assert "secret internals" not in resp.text


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_success_sets_cookie(self, api_client: TestClient) -> None:
        _register(api_client)
        api_client.cookies.clear()

        resp = _login(api_client, email="ALICE@example.com")
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "alice@example.com"
        assert resp.headers["Cache-Control"] == "no-store"
        assert get_settings().cookie_name in resp.cookies

    def test_unknown_email_and_wrong_password_are_identical(self, api_client: TestClient) -> None:
        _register(api_client)
        api_client.cookies.clear()

        wrong_password = _login(api_client, password="wrong-pass1")
        unknown_email = _login(api_client, email="ghost@example.com")
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {
            "status": 401,
            "message": "Authentication failed",
            "errors": [{"field": "general", "message": "Invalid email or password"}],
        }
        assert "set-cookie" not in wrong_password.headers

    def test_missing_password(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/login", json={"email": "alice@example.com"})
        assert resp.status_code == 400
        assert resp.json()["errors"] == [{"field": "password", "message": "Password is required"}]


# ---------------------------------------------------------------------------
# Me / gate
# ---------------------------------------------------------------------------


class TestMe:
    def test_profile_after_register(self, api_client: TestClient) -> None:
        _register(api_client)
        resp = api_client.get("/api/me")
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert set(user) == {"id", "username", "email", "createdAt", "updatedAt"}
        assert user["email"] == "alice@example.com"
        assert user["username"] == "alice"
        assert user["createdAt"]
        assert user["updatedAt"] == user["createdAt"]

    def test_no_cookie(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/me")
        assert resp.status_code == 401
        assert resp.json()["errors"] == [{"field": "auth", "message": "Authentication token missing"}]

    def test_bearer_header_alone_is_not_enough(self, api_client: TestClient) -> None:
        token = _register(api_client).json()["token"]
        api_client.cookies.clear()
        resp = api_client.get("/api/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_expired_cookie(self, api_client: TestClient, use_token) -> None:
        user_id = _register(api_client).json()["user"]["id"]
        use_token(api_client, api_client.app.state.tokens.issue(user_id, ttl="-1s"))
        resp = api_client.get("/api/me")
        assert resp.status_code == 401
        assert resp.json()["errors"] == [{"field": "auth", "message": "Invalid authentication token"}]

    def test_garbage_cookie(self, api_client: TestClient, use_token) -> None:
        use_token(api_client, "definitely.not.valid")
        resp = api_client.get("/api/me")
        assert resp.status_code == 401
        assert resp.json()["errors"] == [{"field": "auth", "message": "Invalid authentication token"}]


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


class TestLogout:
    def test_logout_revokes_and_clears(self, api_client: TestClient, use_token) -> None:
        token = _register(api_client).json()["token"]

        resp = api_client.post("/api/logout")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Successfully logged out"}
        assert "max-age=0" in resp.headers["set-cookie"].lower()

        # Replaying the old token must fail even though it has not expired.
        use_token(api_client, token)
        resp = api_client.get("/api/me")
        assert resp.status_code == 401
        assert resp.json()["errors"] == [{"field": "auth", "message": "Invalid authentication token"}]

    def test_logout_with_bearer_header(self, api_client: TestClient, use_token) -> None:
        token = _register(api_client).json()["token"]
        api_client.cookies.clear()

        resp = api_client.post("/api/logout", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert api_client.app.state.revocations.is_revoked(token) is True

    @pytest.mark.parametrize("scheme", ["bearer", "BEARER", "BeArEr"])
    def test_logout_bearer_scheme_any_case(self, api_client: TestClient, scheme: str) -> None:
        token = _register(api_client).json()["token"]
        api_client.cookies.clear()

        resp = api_client.post("/api/logout", headers={"Authorization": f"{scheme} {token}"})
        assert resp.status_code == 200
        assert api_client.app.state.revocations.is_revoked(token) is True

    def test_logout_without_token_skips_revocation(self, api_client: TestClient) -> None:
        with patch.object(RevocationStore, "revoke") as revoke:
            resp = api_client.post("/api/logout")
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        revoke.assert_not_called()

    def test_logout_with_garbage_token_still_succeeds(self, api_client: TestClient, use_token) -> None:
        use_token(api_client, "garbage")
        resp = api_client.post("/api/logout")
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_other_sessions_survive(self, api_client: TestClient, use_token) -> None:
        _register(api_client)
        first = _login(api_client).json()["token"]
        second = _login(api_client).json()["token"]

        use_token(api_client, first)
        api_client.post("/api/logout")

        use_token(api_client, second)
        assert api_client.get("/api/me").status_code == 200


# ---------------------------------------------------------------------------
# Cookie security / envelope / health
# ---------------------------------------------------------------------------


def test_production_cookie_is_secure(api_client: TestClient) -> None:
    api_client.app.state.settings = Settings(jwt_secret=TEST_SECRET, environment="production")
    resp = _register(api_client)
    assert resp.status_code == 201
    assert "secure" in resp.headers["set-cookie"].lower()


def test_unknown_route_uses_envelope(api_client: TestClient) -> None:
    resp = api_client.get("/api/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert body["status"] == 404
    assert body["errors"] == []


def test_health(api_client: TestClient) -> None:
    resp = api_client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["components"] == {"app": "ok", "database": "ok"}


def test_health_degraded_when_database_fails(api_client: TestClient) -> None:
    with patch.object(api_client.app.state.user_store, "ping", side_effect=RuntimeError("down")):
        resp = api_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["components"]["database"] == "error"


@pytest.mark.parametrize("path", ["/api/register", "/api/login"])
def test_token_responses_are_not_cached(api_client: TestClient, path: str) -> None:
    _register(api_client)
    resp = _login(api_client) if path == "/api/login" else _register(api_client, email="z@example.com", username="z")
    assert resp.headers["Cache-Control"] == "no-store"
