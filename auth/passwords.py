"""
auth/passwords.py -- Credential hashing (bcrypt, direct usage).

Bcrypt is the right choice for low-entropy secrets (passwords) because its
cost factor makes brute-force expensive. Every hash carries its own random
salt and cost, so hashing the same password twice yields two different
strings; only verify_secret() needs to reproduce equality.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug probe
sends a password longer than 72 bytes, which bcrypt 4.x rejects. Secrets
longer than bcrypt's 72-byte limit are refused rather than cut: a cut secret
would verify against any other string sharing its first 72 bytes.

Layer rule: no imports from api/, client/, core/, or ledger/.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger("musafir.auth")

# Work factor 2**10. Around 50-100ms per hash on commodity hardware.
BCRYPT_ROUNDS = 10

_BCRYPT_MAX_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")


def hash_secret(secret: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext secret.

    Raises ValueError for secrets over 72 UTF-8 bytes.
    """
    encoded = _encode(secret)
    if len(encoded) > _BCRYPT_MAX_BYTES:
        raise ValueError(f"Secret exceeds {_BCRYPT_MAX_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_secret(secret: str, hashed: str | None) -> bool:
    """Return True if the plaintext secret matches the bcrypt hash.

    Any mismatch returns False, including an empty or malformed stored hash
    and a secret too long to have been hashed.
    bcrypt raises ValueError for hashes it cannot parse; that is a mismatch,
    not an error, from the caller's point of view.
    """
    encoded = _encode(secret)
    if not hashed or len(encoded) > _BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored credential hash could not be parsed")
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Login always runs verify_secret() even when the
# address does not exist, so response time does not reveal which addresses
# are registered.
DUMMY_HASH: str = hash_secret("musafir_timing_dummy")
