"""
ledger/store.py -- SQL-backed revocation ledger with TTL eviction.

Stores each revoked bearer token with the time it was revoked. Entries live
for ttl seconds (the token window, one day by default) and are then removed
by purge_expired(), which the API lifespan calls on a fixed interval.

SQLite has no expiring index, so eviction is two-layered:
  - is_revoked() ignores entries older than ttl, so a read never depends on
    the sweep having run.
  - purge_expired() deletes those rows so the table does not grow without
    bound.

The clock is injectable (a zero-arg callable returning epoch seconds) so
tests can step time forward instead of sleeping.

Usage:
    ledger = SqlRevocationLedger("sqlite:///./musafir_auth.db", ttl=86400)
    ledger.revoke(token)
    ledger.is_revoked(token)   # True
    ledger.purge_expired()     # call periodically
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlalchemy import Column, Float, Integer, MetaData, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import make_engine
from ledger.base import RevocationLedger

logger = logging.getLogger("musafir.ledger")

_DEFAULT_TTL = 60 * 60 * 24  # 24 hours in seconds

_metadata = MetaData()

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("created_at", Float, nullable=False, index=True),
)


class SqlRevocationLedger(RevocationLedger):
    def __init__(
        self,
        db_url: str,
        ttl: int = _DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def revoke(self, token: str) -> None:
        """Insert token. A duplicate insert hits the UNIQUE index and is ignored."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_revoked_tokens.insert().values(token=token, created_at=self._clock()))
                conn.commit()
        except IntegrityError:
            logger.debug("Token already revoked; ignoring duplicate entry")

    def is_revoked(self, token: str) -> bool:
        cutoff = self._clock() - self.ttl
        with self.engine.connect() as conn:
            row = conn.execute(
                _revoked_tokens.select().where(
                    (_revoked_tokens.c.token == token) & (_revoked_tokens.c.created_at >= cutoff)
                )
            ).fetchone()
        return row is not None

    def purge_expired(self) -> int:
        cutoff = self._clock() - self.ttl
        with self.engine.connect() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.created_at < cutoff))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired revocation entries", result.rowcount)
        return result.rowcount

    def count(self) -> int:
        """Return the number of rows currently stored, expired or not."""
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_revoked_tokens)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()
