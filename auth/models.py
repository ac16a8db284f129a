"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these types own the domain shape.

Principal is a single type tagged by PrincipalKind. Rider and driver records
share id, name, email, secret hash and socket reference; the driver-only
fields (availability, vehicle, position) stay None for riders.

Layer rule: no imports from api/, client/, core/, or ledger/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PrincipalKind(str, Enum):
    RIDER = "rider"
    DRIVER = "driver"

    @property
    def label(self) -> str:
        """Human-facing name used in response messages ("Rider", "Driver")."""
        return self.value.capitalize()


class Availability(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class VehicleType(str, Enum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    AUTO = "auto"


@dataclass
class FullName:
    firstname: str
    lastname: str | None = None


@dataclass
class Vehicle:
    color: str
    plate: str
    capacity: int
    vehicle_type: VehicleType


@dataclass
class Position:
    lat: float
    lng: float


@dataclass
class Principal:
    """An authenticated actor, either a rider or a driver.

    secret_hash is populated only when a caller explicitly asks the store for
    it (login). Every other read path leaves it None, so a Principal taken from
    the gate can be serialized without leaking the hash.

    socket_id is an opaque reference to a realtime channel. It is written by
    out-of-band code and only stored here.
    """

    kind: PrincipalKind
    name: FullName
    email: str
    id: str | None = None
    secret_hash: str | None = None
    socket_id: str | None = None
    created_at: str | None = None
    # Driver-only
    availability: Availability | None = None
    vehicle: Vehicle | None = None
    position: Position | None = None
