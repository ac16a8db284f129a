"""
auth/service.py -- Registration and credential checks shared by both kinds.

register_principal() and authenticate_principal() are kind-agnostic: the
Principal (or the kind argument) selects the table, so rider and driver
routes call the same two functions.

Both functions run bcrypt and block for tens of milliseconds. Route handlers
calling them are plain `def` functions, which FastAPI runs on its worker
thread pool rather than on the event loop.

Layer rule: no imports from api/, client/, or ledger/.
"""

from __future__ import annotations

import logging

from auth.models import Principal, PrincipalKind
from auth.passwords import DUMMY_HASH, hash_secret, verify_secret
from auth.store import DuplicateAddressError, PrincipalStore, normalize_email

logger = logging.getLogger("musafir.auth")


def register_principal(store: PrincipalStore, principal: Principal, secret: str) -> Principal:
    """Hash secret, persist principal, and return the stored record.

    The duplicate-address check runs before hashing so a rejected
    registration costs neither a bcrypt round nor a write.
    Raises DuplicateAddressError / DuplicatePlateError from the store.
    """
    principal.email = normalize_email(principal.email)
    if store.find_by_address(principal.kind, principal.email) is not None:
        raise DuplicateAddressError(principal.kind, principal.email)
    principal.secret_hash = hash_secret(secret)
    created = store.create(principal)
    logger.info("Registered %s id=%s", principal.kind.value, created.id)
    return created


def authenticate_principal(
    store: PrincipalStore,
    kind: PrincipalKind,
    email: str,
    secret: str,
) -> Principal | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the address exists:
    - Unknown address: bcrypt runs against DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the Principal (without its hash) on success, None on any failure.
    """
    principal = store.find_by_address(kind, email, include_secret=True)
    if principal is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_secret(secret, DUMMY_HASH)
        return None
    if not verify_secret(secret, principal.secret_hash):
        return None
    principal.secret_hash = None
    return principal
