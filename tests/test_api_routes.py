"""
tests/test_api_routes.py -- Integration tests for the JSON auth API.

These tests exercise the full stack: FastAPI routing -> request model
validation -> AuthService -> UserStore (in-memory SQLite) -> cookie emission.

Coverage:
  - Register: 201 + session cookie, duplicate -> 409, short password -> 422
  - Login: valid -> 200 + cookie, wrong password / unknown user -> identical 401
  - /me: 401 without cookie, 200 with cookie, 401 with tampered or foreign cookie
  - Logout: expired empty cookie; sending it back is unauthenticated
  - The token never appears in a response body; no-store on credential responses

Fixtures used (from conftest.py):
  - api_client: TestClient over an isolated in-memory user DB
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.keys import SigningKey
from auth.models import User
from auth.session import SessionToken
from conftest import session_cookie, set_cookie_header


def _register(client: TestClient, username: str, password: str = "correct-horse"):
    return client.post("/api/v1/auth/register", json={"username": username, "password": password})


def _me(client: TestClient, cookie_value: str | None):
    headers = {"Cookie": f"session={cookie_value}"} if cookie_value is not None else {}
    return client.get("/api/v1/auth/me", headers=headers)


class TestRegister:
    def test_register_sets_cookie(self, api_client: TestClient) -> None:
        resp = _register(api_client, "reg-alice")
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["username"] == "reg-alice"
        assert isinstance(data["user_id"], int)
        header = set_cookie_header(resp)
        assert header is not None
        lowered = header.lower()
        for attr in ("httponly", "secure", "samesite=strict", "path=/", "max-age=3600"):
            assert attr in lowered
        assert resp.headers["cache-control"] == "no-store"

    def test_token_not_in_body(self, api_client: TestClient) -> None:
        resp = _register(api_client, "reg-body")
        assert session_cookie(resp) not in resp.text
        assert "password" not in resp.text

    def test_duplicate_is_409(self, api_client: TestClient) -> None:
        assert _register(api_client, "reg-dup").status_code == 201
        resp = _register(api_client, "reg-dup", "anything-else")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "username_taken"
        assert set_cookie_header(resp) is None

    def test_short_password_is_422(self, api_client: TestClient) -> None:
        resp = _register(api_client, "reg-short", "short")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_blank_username_is_422(self, api_client: TestClient) -> None:
        resp = _register(api_client, "   ")
        assert resp.status_code == 422


class TestLogin:
    def test_login_ok(self, api_client: TestClient) -> None:
        uid = _register(api_client, "login-ok").json()["user_id"]
        resp = api_client.post("/api/v1/auth/login", json={"username": "login-ok", "password": "correct-horse"})
        assert resp.status_code == 200
        assert resp.json() == {"user_id": uid, "username": "login-ok"}
        assert session_cookie(resp)
        assert resp.headers["cache-control"] == "no-store"

    def test_wrong_password_and_unknown_user_look_the_same(self, api_client: TestClient) -> None:
        _register(api_client, "login-real")
        wrong = api_client.post("/api/v1/auth/login", json={"username": "login-real", "password": "wrong_password"})
        unknown = api_client.post("/api/v1/auth/login", json={"username": "login-ghost", "password": "anything"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"
        assert set_cookie_header(wrong) is None


class TestMe:
    def test_me_unauthenticated(self, api_client: TestClient) -> None:
        resp = _me(api_client, None)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_me_with_session(self, api_client: TestClient) -> None:
        reg = _register(api_client, "me-alice")
        resp = _me(api_client, session_cookie(reg))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": reg.json()["user_id"], "username": "me-alice"}

    def test_me_with_tampered_cookie(self, api_client: TestClient) -> None:
        value = session_cookie(_register(api_client, "me-tamper"))
        payload, tag = value.split(".")
        flipped = ("A" if payload[0] != "A" else "B") + payload[1:]
        assert _me(api_client, f"{flipped}.{tag}").status_code == 401

    def test_me_with_foreign_key(self, api_client: TestClient) -> None:
        uid = _register(api_client, "me-foreign").json()["user_id"]
        forged = SessionToken.create(User(id=uid, username="me-foreign", password_hash="h"), ttl=60)
        assert _me(api_client, forged.serialize(SigningKey.generate())).status_code == 401

    def test_me_with_garbage(self, api_client: TestClient) -> None:
        assert _me(api_client, "not-a-token").status_code == 401


class TestLogout:
    def test_logout_expires_cookie(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        header = set_cookie_header(resp)
        assert header is not None
        assert "max-age=0" in header.lower()
        assert "expires=thu, 01 jan 1970" in header.lower()
        assert session_cookie(resp) == ""

    def test_logout_cookie_sent_back_is_anonymous(self, api_client: TestClient) -> None:
        value = session_cookie(api_client.post("/api/v1/auth/logout"))
        assert _me(api_client, f'"{value}"').status_code == 401
