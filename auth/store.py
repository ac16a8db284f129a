"""
auth/store.py -- SQLAlchemy Core persistence layer for principals.

Pattern: Repository + Data Mapper. PrincipalStore is the repository;
_row_to_principal is the mapper. Route and gate code never touches SQL
directly.

One store serves both principal kinds. Each kind owns its own table
(riders, drivers) so an email may be registered once as a rider and once as
a driver; every method takes the kind and resolves the table from _TABLES.

Security:
  All queries use bound parameters. No f-strings in SQL.
  password_hash is only mapped onto the returned Principal when the caller
  passes include_secret=True (the login path).

Uniqueness:
  create() checks the email before writing and raises DuplicateAddressError.
  The UNIQUE indexes on email (and vehicle_plate for drivers) still back that
  check: a concurrent insert that slips past it surfaces as IntegrityError
  and is translated to the same domain error.

Layer rule: no imports from api/, client/, or ledger/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError

from auth.models import Availability, FullName, Position, Principal, PrincipalKind, Vehicle, VehicleType
from core.database import make_engine

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class DuplicateAddressError(Exception):
    """A principal of the same kind is already registered with this email."""

    def __init__(self, kind: PrincipalKind, email: str) -> None:
        super().__init__(f"{kind.label} with email {email!r} already exists")
        self.kind = kind
        self.email = email


class DuplicatePlateError(Exception):
    """A driver is already registered with this vehicle plate."""

    def __init__(self, plate: str) -> None:
        super().__init__(f"Vehicle plate {plate!r} is already registered")
        self.plate = plate


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()


def _principal_columns() -> list[Column]:
    return [
        Column("id", String(32), primary_key=True),
        Column("firstname", String(20), nullable=False),
        Column("lastname", String(20)),
        Column("email", String(255), nullable=False, unique=True),
        Column("password_hash", Text, nullable=False),
        Column("socket_id", String(255)),
        Column("created_at", String(32), nullable=False),
    ]


_riders = Table("riders", _metadata, *_principal_columns())

_drivers = Table(
    "drivers",
    _metadata,
    *_principal_columns(),
    Column("status", String(10), nullable=False, server_default=Availability.INACTIVE.value),
    Column("vehicle_color", String(50), nullable=False),
    Column("vehicle_plate", String(20), nullable=False, unique=True),
    Column("vehicle_capacity", Integer, nullable=False),
    Column("vehicle_type", String(20), nullable=False),
    Column("location_lat", Float),
    Column("location_lng", Float),
)

_TABLES: dict[PrincipalKind, Table] = {
    PrincipalKind.RIDER: _riders,
    PrincipalKind.DRIVER: _drivers,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrincipalStore:
    """Repository for rider and driver records.

    Usage:
        store = PrincipalStore("sqlite:///./musafir_auth.db")
        created = store.create(Principal(kind=PrincipalKind.RIDER, name=..., email=..., secret_hash=...))
        rider = store.find_by_id(PrincipalKind.RIDER, created.id)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, principal: Principal) -> Principal:
        """Insert a new principal and return it with id and created_at assigned.

        The caller supplies secret_hash; plaintext never reaches the store.
        Raises DuplicateAddressError before writing if the email is taken
        within the principal's kind, and DuplicatePlateError if a driver's
        vehicle plate is already registered.
        """
        if not principal.secret_hash:
            raise ValueError("A principal cannot be stored without a secret hash")
        kind = principal.kind
        email = normalize_email(principal.email)
        if self.find_by_address(kind, email) is not None:
            raise DuplicateAddressError(kind, email)

        table = _TABLES[kind]
        principal_id = uuid.uuid4().hex
        created_at = _now_iso()
        values = {
            "id": principal_id,
            "firstname": principal.name.firstname,
            "lastname": principal.name.lastname,
            "email": email,
            "password_hash": principal.secret_hash,
            "socket_id": principal.socket_id,
            "created_at": created_at,
        }
        if kind is PrincipalKind.DRIVER:
            if principal.vehicle is None:
                raise ValueError("A driver cannot be stored without a vehicle")
            values.update(
                status=(principal.availability or Availability.INACTIVE).value,
                vehicle_color=principal.vehicle.color,
                vehicle_plate=principal.vehicle.plate,
                vehicle_capacity=principal.vehicle.capacity,
                vehicle_type=principal.vehicle.vehicle_type.value,
                location_lat=principal.position.lat if principal.position else None,
                location_lng=principal.position.lng if principal.position else None,
            )

        try:
            with self.engine.connect() as conn:
                conn.execute(table.insert().values(**values))
                conn.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration, or the plate is taken.
            if kind is PrincipalKind.DRIVER and "vehicle_plate" in str(exc.orig):
                raise DuplicatePlateError(principal.vehicle.plate) from exc
            raise DuplicateAddressError(kind, email) from exc

        created = self.find_by_id(kind, principal_id)
        if created is None:  # pragma: no cover - row was just committed
            raise RuntimeError("Principal not found after write")
        return created

    def set_availability(self, kind: PrincipalKind, principal_id: str, availability: Availability) -> bool:
        """Update a driver's availability. Returns False if no row matched."""
        return self._update(kind, principal_id, status=availability.value, driver_only=True)

    def set_position(self, kind: PrincipalKind, principal_id: str, position: Position) -> bool:
        """Update a driver's last known position. Returns False if no row matched."""
        return self._update(
            kind,
            principal_id,
            location_lat=position.lat,
            location_lng=position.lng,
            driver_only=True,
        )

    def set_socket_id(self, kind: PrincipalKind, principal_id: str, socket_id: str | None) -> bool:
        """Store the realtime channel reference for either kind."""
        return self._update(kind, principal_id, socket_id=socket_id)

    def _update(self, kind: PrincipalKind, principal_id: str, driver_only: bool = False, **fields) -> bool:
        if driver_only and kind is not PrincipalKind.DRIVER:
            raise ValueError(f"{', '.join(fields)} only applies to drivers")
        table = _TABLES[kind]
        with self.engine.connect() as conn:
            result = conn.execute(table.update().where(table.c.id == principal_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_address(self, kind: PrincipalKind, email: str, include_secret: bool = False) -> Principal | None:
        """Look up a principal by email (case-insensitive). Returns None if not found.

        include_secret=True is reserved for the login path, which needs the
        hash to verify the submitted password.
        """
        table = _TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.email == normalize_email(email))).fetchone()
        return _row_to_principal(kind, row, include_secret) if row is not None else None

    def find_by_id(self, kind: PrincipalKind, principal_id: str) -> Principal | None:
        """Look up a principal by id. The secret hash is never included."""
        table = _TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.id == principal_id)).fetchone()
        return _row_to_principal(kind, row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_principal(kind: PrincipalKind, row: Row, include_secret: bool = False) -> Principal:
    m = row._mapping
    principal = Principal(
        kind=kind,
        id=m["id"],
        name=FullName(firstname=m["firstname"], lastname=m["lastname"]),
        email=m["email"],
        secret_hash=m["password_hash"] if include_secret else None,
        socket_id=m["socket_id"],
        created_at=m["created_at"],
    )
    if kind is PrincipalKind.DRIVER:
        principal.availability = Availability(m["status"])
        principal.vehicle = Vehicle(
            color=m["vehicle_color"],
            plate=m["vehicle_plate"],
            capacity=m["vehicle_capacity"],
            vehicle_type=VehicleType(m["vehicle_type"]),
        )
        if m["location_lat"] is not None and m["location_lng"] is not None:
            principal.position = Position(lat=m["location_lat"], lng=m["location_lng"])
    return principal
