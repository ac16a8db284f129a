"""
auth/tokens.py -- Bearer token issuance, decoding, and the auth cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the subject principal id,
       issued-at and expiry. Decoding returns None on any failure (bad
       signature, expired, malformed, missing claims) -- the gate turns that
       into a 401.

  Expiry: a fixed window (one day by default) for both principal kinds. The
       revocation ledger evicts entries after the same window, so an evicted
       entry can only belong to a token the decoder already rejects.

  Secret: the issuer is built once at startup from Settings.secret_key. An
       empty secret raises ConfigurationMissing immediately rather than on the
       first request.

Layer rule: no imports from api/, client/, or ledger/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import DEFAULT_TOKEN_WINDOW, ConfigurationMissing

ALGORITHM = "HS256"

# Cookie written on login and read first by the gate.
AUTH_COOKIE = "token"


class TokenIssuer:
    """Mints and verifies signed, time-bounded bearer tokens.

    issue() is a pure function of (principal_id, now, secret): the only
    state is the secret and the window, both fixed at construction.
    """

    def __init__(self, secret_key: str, expire_seconds: int = DEFAULT_TOKEN_WINDOW) -> None:
        if not secret_key:
            raise ConfigurationMissing("Token signing secret is not configured.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, principal_id: str, now: datetime | None = None) -> str:
        """Encode a signed JWT for principal_id, valid for expire_seconds from now."""
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": principal_id,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expire_seconds),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def decode(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the claims dict or None on any failure."""
        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None
        if not claims.get("sub") or "exp" not in claims:
            return None
        return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the bearer token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST.
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(AUTH_COOKIE)
