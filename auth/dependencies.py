"""
auth/dependencies.py -- FastAPI Depends() gate for protected routes.

One PrincipalGate class, instantiated once per principal kind:
    require_rider  = PrincipalGate(PrincipalKind.RIDER)
    require_driver = PrincipalGate(PrincipalKind.DRIVER)

Token extraction priority:
  1. Cookie ("token") -- set by the login response.
  2. Authorization: Bearer <token> header -- API clients.

Per-request state machine (each rejection short-circuits):
  no token                      -> 401 unauthenticated
  token in revocation ledger    -> 401 token_revoked
  bad signature / expired       -> 401 invalid_token
  subject id not in this kind   -> 404 <kind>_not_found
  otherwise                     -> admitted; Principal attached to request.state

The revocation check runs BEFORE signature validation. A revoked token that
has not yet expired must be refused with the same 401 as an expired one.

The gate reads the store, the ledger and the issuer from app.state (wired in
the API lifespan) and never writes to any of them.

Layer rule: no imports from api/ or client/. The ledger is referenced only
for typing.

No `from __future__ import annotations` here: FastAPI inspects
PrincipalGate.__call__ through the instance, without the module globals
needed to resolve string annotations.
"""

import logging
from typing import TYPE_CHECKING

from fastapi import HTTPException, Request

from auth.models import Principal, PrincipalKind
from auth.store import PrincipalStore
from auth.tokens import AUTH_COOKIE, TokenIssuer

if TYPE_CHECKING:
    from ledger.base import RevocationLedger

logger = logging.getLogger("musafir.auth")


def extract_token(request: Request) -> str | None:
    """Return the bearer token from the cookie, else the Authorization header."""
    token: str | None = request.cookies.get(AUTH_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def _reject(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


class PrincipalGate:
    """Dependency that admits a request only for a live principal of one kind.

    Use as a FastAPI dependency:
        @router.get("/riders/profile")
        def profile(rider: Principal = Depends(require_rider)): ...
    """

    def __init__(self, kind: PrincipalKind) -> None:
        self.kind = kind

    def __call__(self, request: Request) -> Principal:
        state = request.app.state
        principal = self.authenticate(
            extract_token(request),
            store=state.principal_store,
            ledger=state.revocation_ledger,
            issuer=state.token_issuer,
        )
        # request.state.rider / request.state.driver for downstream handlers
        setattr(request.state, self.kind.value, principal)
        return principal

    def authenticate(
        self,
        token: str | None,
        *,
        store: PrincipalStore,
        ledger: "RevocationLedger",
        issuer: TokenIssuer,
    ) -> Principal:
        """Run the gate's checks in order. Raises HTTPException on rejection."""
        if not token:
            logger.info("%s gate: no token", self.kind.value)
            raise _reject(401, "unauthenticated", "No token found. Authentication required.")

        if ledger.is_revoked(token):
            logger.info("%s gate: revoked token", self.kind.value)
            raise _reject(401, "token_revoked", "Token has been revoked. Please log in again.")

        claims = issuer.decode(token)
        if claims is None:
            logger.info("%s gate: invalid or expired token", self.kind.value)
            raise _reject(401, "invalid_token", "Invalid or expired token. Please log in again.")

        principal = store.find_by_id(self.kind, str(claims["sub"]))
        if principal is None:
            logger.info("%s gate: subject %s not found", self.kind.value, claims["sub"])
            raise _reject(404, f"{self.kind.value}_not_found", f"{self.kind.label} not found.")
        return principal


require_rider = PrincipalGate(PrincipalKind.RIDER)
require_driver = PrincipalGate(PrincipalKind.DRIVER)
