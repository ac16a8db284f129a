"""
ledger/base.py -- The revocation ledger interface.

Callers (the logout route, the gate, the sweep task) only ever see revoke(),
is_revoked() and purge_expired(). A backend with a native expiring index can
make purge_expired() a no-op; one without it relies on the periodic sweep
started in the API lifespan.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class RevocationLedger(ABC):
    """Set of invalidated token values with time-to-live eviction.

    ttl must equal the token validity window: once an entry is old enough to
    be evicted, the token it names has expired and is rejected anyway.
    """

    ttl: int

    @abstractmethod
    def revoke(self, token: str) -> None:
        """Record token as revoked. Revoking an already-revoked token is a no-op."""

    @abstractmethod
    def is_revoked(self, token: str) -> bool:
        """Return True if token was revoked and its entry has not yet expired."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete entries older than ttl. Returns the number removed."""

    def close(self) -> None:
        """Release backend resources."""
