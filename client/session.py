"""
client/session.py -- Client-side session object and the Session Guard.

ClientSession is the one place the held token lives. Commands and views get
it injected instead of reading storage themselves, and ClientSession.end()
is the single rule for forgetting it (logout, or any refusal by the server).

SessionGuard mirrors the server's gate:
  activate():  no token held       -> Redirect(login view), no request sent
               profile fetch OK    -> Admitted(principal)
               any failure         -> session ended, Redirect(login view)
  logout():    best-effort server revocation, then always end the session
               and Redirect(login view), whatever the server said.

The guard never tells the user *why* a token was refused; revoked, expired,
invalid and missing principal all end the session the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import requests

from auth.models import PrincipalKind
from client.storage import TokenStorage

logger = logging.getLogger("musafir.client")

DEFAULT_BASE_URL = "http://localhost:8000"
API_PREFIX = "/api/v1"

LOGIN_VIEWS: dict[PrincipalKind, str] = {
    PrincipalKind.RIDER: "/login",
    PrincipalKind.DRIVER: "/captain-login",
}


@dataclass
class Admitted:
    principal: dict[str, Any]


@dataclass
class Redirect:
    view: str


@dataclass
class Denied:
    """Register or login refused. errors carries field messages on a 400."""

    message: str
    status_code: Optional[int] = None
    errors: list[dict[str, str]] = field(default_factory=list)


GuardResult = Union[Admitted, Redirect, Denied]


class ClientSession:
    """Token and principal held by one client for one principal kind.

    With a storage attached, the session is restored on construction and
    every change is written through, so it survives restarts.
    """

    def __init__(self, kind: PrincipalKind, storage: Optional[TokenStorage] = None) -> None:
        self.kind = kind
        self.storage = storage
        self.token: Optional[str] = None
        self.principal: Optional[dict[str, Any]] = None
        if storage is not None:
            data = storage.load()
            # A stored session for the other kind is not ours to use.
            if data and data.get("kind") == kind.value:
                self.token = data["token"]
                self.principal = data.get("principal")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def start(self, token: str, principal: Optional[dict[str, Any]] = None) -> None:
        self.token = token
        self.principal = principal
        self._persist()

    def update_principal(self, principal: dict[str, Any]) -> None:
        self.principal = principal
        self._persist()

    def end(self) -> None:
        """Forget the token and principal, in memory and on disk."""
        self.token = None
        self.principal = None
        if self.storage is not None:
            stored = self.storage.load()
            # Another kind's session in the same file is not ours to delete.
            if stored is None or stored.get("kind") == self.kind.value:
                self.storage.clear()

    def _persist(self) -> None:
        if self.storage is not None and self.token:
            self.storage.save(self.kind.value, self.token, self.principal)


class SessionGuard:
    """Drives register/login/profile/logout for one ClientSession.

    http is any requests.Session-compatible object; tests pass FastAPI's
    TestClient with base_url="http://testserver".
    """

    def __init__(
        self,
        session: ClientSession,
        http: Optional[requests.Session] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self.session = session
        self.http = http or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def login_view(self) -> str:
        return LOGIN_VIEWS[self.session.kind]

    def register(self, payload: dict[str, Any]) -> GuardResult:
        """POST the registration body; on 201 the session starts with the new token."""
        return self._credential_request("register", payload, expected=201)

    def login(self, email: str, password: str) -> GuardResult:
        return self._credential_request("login", {"email": email, "password": password}, expected=200)

    def activate(self) -> GuardResult:
        """Check the held token before showing a protected view."""
        if not self.session.is_authenticated:
            return Redirect(self.login_view)
        try:
            resp = self.http.get(self._url("profile"), headers=self._auth_headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Profile fetch failed: %s", e)
            return self._reject()
        if resp.status_code != 200:
            logger.info("Profile fetch refused with %d; ending session", resp.status_code)
            return self._reject()
        principal = _json_or_empty(resp)
        if not principal:
            logger.warning("Profile fetch returned an unreadable body; ending session")
            return self._reject()
        self.session.update_principal(principal)
        return Admitted(principal)

    def logout(self) -> Redirect:
        """Ask the server to revoke the token, then end the session regardless."""
        if self.session.is_authenticated:
            try:
                resp = self.http.get(self._url("logout"), headers=self._auth_headers(), timeout=self.timeout)
                if resp.status_code != 200:
                    logger.info("Server logout returned %d; clearing local session anyway", resp.status_code)
            except requests.RequestException as e:
                logger.warning("Server logout failed: %s", e)
        return self._reject()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _credential_request(self, action: str, body: dict[str, Any], expected: int) -> GuardResult:
        try:
            resp = self.http.post(self._url(action), json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("%s request failed: %s", action.capitalize(), e)
            return Denied("Could not reach the server.")
        data = _json_or_empty(resp)
        if resp.status_code != expected:
            return Denied(
                message=data.get("message", f"Request failed with status {resp.status_code}"),
                status_code=resp.status_code,
                errors=data.get("errors") or [],
            )
        if not data.get("token"):
            return Denied("Unexpected response from the server.", status_code=resp.status_code)
        self.session.start(data["token"], data.get("principal"))
        return Admitted(data.get("principal") or {})

    def _reject(self) -> Redirect:
        self.session.end()
        # The login response also set the token as a cookie on this transport.
        self.http.cookies.clear()
        return Redirect(self.login_view)

    def _url(self, action: str) -> str:
        return f"{self.base_url}{API_PREFIX}/{self.session.kind.value}s/{action}"

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.session.token}"}


def _json_or_empty(resp) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
