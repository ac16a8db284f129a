"""
tests/test_api_auth.py -- Integration tests for the rider/driver auth routes.

These tests exercise the full stack: FastAPI routing -> request validation ->
PrincipalGate -> PrincipalStore / SqlRevocationLedger -> response envelope.

Coverage:
  - Registration: 201 with token, driver starts inactive, duplicates, validation
  - Login: same 400 for unknown email and wrong password, httpOnly cookie
  - Gate: no token, revoked, invalid, expired, principal missing, cookie precedence
  - Logout: revokes, clears cookie, 400 without a token, ignores junk tokens

Fixtures used (from conftest.py):
  - client: module-scoped TestClient with an empty cookie jar per test
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import driver_body, rider_body
from fastapi.testclient import TestClient

from auth.models import PrincipalKind


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestDriverScenario:
    """Register, fail login, log in, read profile, log out, be refused."""

    def test_full_session_lifecycle(self, client: TestClient) -> None:
        resp = client.post("/api/v1/drivers/register", json=driver_body())
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["token"]
        assert data["principal"]["availability"] == "inactive"
        assert data["principal"]["vehicle"] == {"color": "red", "plate": "MH02CB4763", "capacity": 5, "type": "car"}
        assert "password" not in data["principal"]
        assert "set-cookie" not in resp.headers

        resp = client.post("/api/v1/drivers/login", json={"email": "a@x.com", "password": "wrongpass"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid email or password"

        resp = client.post("/api/v1/drivers/login", json={"email": "a@x.com", "password": "abcdef12"})
        assert resp.status_code == 200
        token = resp.json()["token"]
        assert resp.headers["cache-control"] == "no-store"

        resp = client.get("/api/v1/drivers/profile", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["email"] == "a@x.com"

        resp = client.get("/api/v1/drivers/logout", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json() == {"message": "Driver logged out successfully"}

        client.cookies.clear()
        resp = client.get("/api/v1/drivers/profile", headers=_bearer(token))
        assert resp.status_code == 401
        assert resp.json()["code"] == "token_revoked"


class TestRegister:
    def test_rider_register(self, client: TestClient) -> None:
        resp = client.post("/api/v1/riders/register", json=rider_body(email="r1@example.com"))
        assert resp.status_code == 201, resp.text
        principal = resp.json()["principal"]
        assert principal["kind"] == "rider"
        assert principal["fullname"] == {"firstname": "Asha", "lastname": "Verma"}
        # Driver-only fields are not part of a rider payload.
        assert "vehicle" not in principal
        assert "availability" not in principal

    def test_email_is_normalized(self, client: TestClient) -> None:
        resp = client.post("/api/v1/riders/register", json=rider_body(email="  Mixed.Case@Example.com "))
        assert resp.status_code == 201, resp.text
        assert resp.json()["principal"]["email"] == "mixed.case@example.com"

    def test_duplicate_address(self, client: TestClient) -> None:
        client.post("/api/v1/riders/register", json=rider_body(email="dup@example.com"))
        resp = client.post("/api/v1/riders/register", json=rider_body(email="dup@example.com"))
        assert resp.status_code == 400
        assert resp.json() == {"code": "duplicate_address", "message": "Rider with this email already exists"}

    def test_duplicate_plate(self, client: TestClient) -> None:
        client.post("/api/v1/drivers/register", json=driver_body(email="p1@x.com", plate="KA01AB1111"))
        resp = client.post("/api/v1/drivers/register", json=driver_body(email="p2@x.com", plate="ka01ab1111"))
        assert resp.status_code == 400
        assert resp.json()["code"] == "duplicate_plate"

    def test_confirmation_mismatch(self, client: TestClient) -> None:
        body = rider_body(email="mismatch@example.com", confirmPassword="different1")
        resp = client.post("/api/v1/riders/register", json=body)
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_field_errors_are_listed(self, client: TestClient) -> None:
        body = driver_body(email="not-an-email", password="123")
        body["fullname"]["firstname"] = "Al"
        body["vehicle"]["type"] = "bus"
        resp = client.post("/api/v1/drivers/register", json=body)
        assert resp.status_code == 400
        data = resp.json()
        assert data["code"] == "validation_error"
        fields = {e["field"] for e in data["errors"]}
        assert {"email", "password", "fullname.firstname", "vehicle.type"} <= fields

    def test_validation_runs_before_any_write(self, client: TestClient) -> None:
        body = rider_body(email="nowrite@example.com")
        del body["confirmPassword"]
        assert client.post("/api/v1/riders/register", json=body).status_code == 400
        store = client.app.state.principal_store
        assert store.find_by_address(PrincipalKind.RIDER, "nowrite@example.com") is None


class TestLogin:
    def test_unknown_address_matches_wrong_password(self, client: TestClient) -> None:
        client.post("/api/v1/riders/register", json=rider_body(email="known@example.com"))
        unknown = client.post("/api/v1/riders/login", json={"email": "ghost@example.com", "password": "secret123"})
        wrong = client.post("/api/v1/riders/login", json={"email": "known@example.com", "password": "nope12345"})
        assert unknown.status_code == wrong.status_code == 400
        assert unknown.json() == wrong.json()

    def test_login_sets_http_only_cookie(self, client: TestClient) -> None:
        client.post("/api/v1/riders/register", json=rider_body(email="cookie@example.com"))
        resp = client.post("/api/v1/riders/login", json={"email": "cookie@example.com", "password": "secret123"})
        assert resp.status_code == 200
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith("token=")
        assert "HttpOnly" in cookie
        assert "Max-Age=86400" in cookie
        assert resp.cookies["token"] == resp.json()["token"]

    def test_kinds_are_separate(self, client: TestClient) -> None:
        client.post("/api/v1/riders/register", json=rider_body(email="onlyrider@example.com"))
        resp = client.post("/api/v1/drivers/login", json={"email": "onlyrider@example.com", "password": "secret123"})
        assert resp.status_code == 400


class TestGate:
    def _rider_token(self, client: TestClient, email: str) -> str:
        resp = client.post("/api/v1/riders/register", json=rider_body(email=email))
        assert resp.status_code == 201, resp.text
        return resp.json()["token"]

    def test_no_token(self, client: TestClient) -> None:
        resp = client.get("/api/v1/riders/profile")
        assert resp.status_code == 401
        assert resp.json() == {"code": "unauthenticated", "message": "No token found. Authentication required."}

    def test_invalid_token(self, client: TestClient) -> None:
        resp = client.get("/api/v1/riders/profile", headers=_bearer("garbage"))
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"

    def test_expired_token(self, client: TestClient) -> None:
        token = self._rider_token(client, "expired@example.com")
        issuer = client.app.state.token_issuer
        sub = issuer.decode(token)["sub"]
        stale = issuer.issue(sub, now=datetime.now(timezone.utc) - timedelta(days=2))
        resp = client.get("/api/v1/riders/profile", headers=_bearer(stale))
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"

    def test_revocation_is_checked_before_expiry(self, client: TestClient) -> None:
        token = self._rider_token(client, "order@example.com")
        issuer = client.app.state.token_issuer
        stale = issuer.issue(issuer.decode(token)["sub"], now=datetime.now(timezone.utc) - timedelta(days=2))
        client.app.state.revocation_ledger.revoke(stale)
        resp = client.get("/api/v1/riders/profile", headers=_bearer(stale))
        assert resp.status_code == 401
        assert resp.json()["code"] == "token_revoked"

    def test_token_of_other_kind_is_not_found(self, client: TestClient) -> None:
        token = self._rider_token(client, "wrongkind@example.com")
        resp = client.get("/api/v1/drivers/profile", headers=_bearer(token))
        assert resp.status_code == 404
        assert resp.json() == {"code": "driver_not_found", "message": "Driver not found."}

    def test_cookie_takes_precedence_over_header(self, client: TestClient) -> None:
        cookie_token = self._rider_token(client, "fromcookie@example.com")
        header_token = self._rider_token(client, "fromheader@example.com")
        resp = client.get(
            "/api/v1/riders/profile",
            headers={"Cookie": f"token={cookie_token}", "Authorization": f"Bearer {header_token}"},
        )
        assert resp.status_code == 200
        assert resp.json()["email"] == "fromcookie@example.com"

    def test_login_cookie_alone_admits(self, client: TestClient) -> None:
        self._rider_token(client, "cookieonly@example.com")
        client.post("/api/v1/riders/login", json={"email": "cookieonly@example.com", "password": "secret123"})
        resp = client.get("/api/v1/riders/profile")
        assert resp.status_code == 200
        assert resp.json()["email"] == "cookieonly@example.com"


class TestLogout:
    def test_without_token(self, client: TestClient) -> None:
        resp = client.get("/api/v1/riders/logout")
        assert resp.status_code == 400
        assert resp.json() == {"code": "no_token", "message": "No token found"}

    def test_clears_cookie(self, client: TestClient) -> None:
        client.post("/api/v1/riders/register", json=rider_body(email="bye@example.com"))
        client.post("/api/v1/riders/login", json={"email": "bye@example.com", "password": "secret123"})
        resp = client.get("/api/v1/riders/logout")
        assert resp.status_code == 200
        assert 'token=""' in resp.headers["set-cookie"] or "token=;" in resp.headers["set-cookie"]
        assert client.get("/api/v1/riders/profile").status_code == 401

    def test_twice_is_harmless(self, client: TestClient) -> None:
        token = client.post("/api/v1/riders/register", json=rider_body(email="twice@example.com")).json()["token"]
        ledger = client.app.state.revocation_ledger
        assert client.get("/api/v1/riders/logout", headers=_bearer(token)).status_code == 200
        before = ledger.count()
        assert client.get("/api/v1/riders/logout", headers=_bearer(token)).status_code == 200
        assert ledger.count() == before

    def test_junk_token_is_not_recorded(self, client: TestClient) -> None:
        ledger = client.app.state.revocation_ledger
        before = ledger.count()
        resp = client.get("/api/v1/riders/logout", headers=_bearer("not-a-jwt"))
        assert resp.status_code == 200
        assert ledger.count() == before


class TestErrorEnvelope:
    def test_unknown_route(self, client: TestClient) -> None:
        resp = client.get("/api/v1/nowhere")
        assert resp.status_code == 404
        assert resp.json()["code"] == "http_404"


class TestTokenSubject:
    """The token minted at login names the principal created at registration."""

    def _assert_login_subject(self, client: TestClient, kind: str, body: dict) -> None:
        created = client.post(f"/api/v1/{kind}s/register", json=body)
        assert created.status_code == 201, created.text
        principal_id = created.json()["principal"]["id"]

        resp = client.post(f"/api/v1/{kind}s/login", json={"email": body["email"], "password": body["password"]})
        assert resp.status_code == 200, resp.text
        issuer = client.app.state.token_issuer
        assert issuer.decode(resp.json()["token"])["sub"] == principal_id
        assert issuer.decode(created.json()["token"])["sub"] == principal_id

    def test_rider_subject(self, client: TestClient) -> None:
        self._assert_login_subject(client, "rider", rider_body(email="subject@example.com"))

    def test_driver_subject(self, client: TestClient) -> None:
        self._assert_login_subject(client, "driver", driver_body(email="subject@x.com", plate="GJ05SU0001"))


class TestPasswordLength:
    def test_password_over_72_bytes_is_refused(self, client: TestClient) -> None:
        long_password = "p" * 73
        body = rider_body(email="longpw@example.com", password=long_password)
        resp = client.post("/api/v1/riders/register", json=body)
        assert resp.status_code == 400
        assert "password" in {e["field"] for e in resp.json()["errors"]}

    def test_multibyte_password_is_measured_in_bytes(self, client: TestClient) -> None:
        # 37 characters, 74 bytes
        body = driver_body(email="multibyte@x.com", password="é" * 37, plate="TN09MB0001")
        resp = client.post("/api/v1/drivers/register", json=body)
        assert resp.status_code == 400
        assert "password" in {e["field"] for e in resp.json()["errors"]}

    def test_shared_prefix_does_not_log_in(self, client: TestClient) -> None:
        password = "q" * 72
        client.post("/api/v1/riders/register", json=rider_body(email="prefix@example.com", password=password))
        resp = client.post("/api/v1/riders/login", json={"email": "prefix@example.com", "password": password + "x"})
        assert resp.status_code == 400
        ok = client.post("/api/v1/riders/login", json={"email": "prefix@example.com", "password": password})
        assert ok.status_code == 200
