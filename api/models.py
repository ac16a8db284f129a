"""
API request and response models for the rider/driver auth endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Validation rules live here so every malformed body is rejected (HTTP 400)
before any store lookup or write.
"""

from __future__ import annotations

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from auth.models import Availability, PrincipalKind, VehicleType

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}$"


def _normalize_email(value: object) -> object:
    """Trim and lowercase before the pattern check runs."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


_Email = Annotated[str, BeforeValidator(_normalize_email), Field(pattern=EMAIL_PATTERN, max_length=255)]
# bcrypt only reads the first 72 bytes. Anything longer would verify on its
# prefix alone, so longer passwords are refused rather than cut.
PASSWORD_MAX_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


_Password = Annotated[str, Field(min_length=6, max_length=PASSWORD_MAX_BYTES), AfterValidator(_check_password_bytes)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RiderName(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    firstname: str = Field(min_length=3, max_length=15)
    lastname: Optional[str] = Field(default=None, min_length=3, max_length=15)


class DriverName(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    firstname: str = Field(min_length=3, max_length=20)
    lastname: Optional[str] = Field(default=None, min_length=3, max_length=20)


class VehicleIn(BaseModel):
    """Vehicle block of POST /drivers/register. Accepts "type" or "vehicle_type"."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    color: str = Field(min_length=3, max_length=50)
    plate: str = Field(min_length=3, max_length=20)
    capacity: int = Field(ge=1, le=50)
    vehicle_type: VehicleType = Field(alias="type")

    @field_validator("plate")
    @classmethod
    def normalize_plate(cls, value: str) -> str:
        """Plates compare case-insensitively; store them upper-cased."""
        return value.upper()


class RiderRegisterRequest(BaseModel):
    """Request body for POST /api/v1/riders/register."""

    model_config = ConfigDict(populate_by_name=True)

    fullname: RiderName
    email: _Email
    password: _Password
    confirm_password: str = Field(alias="confirmPassword", min_length=1)

    @model_validator(mode="after")
    def passwords_match(self) -> "RiderRegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Password confirmation does not match")
        return self


class DriverRegisterRequest(BaseModel):
    """Request body for POST /api/v1/drivers/register."""

    fullname: DriverName
    email: _Email
    password: _Password
    vehicle: VehicleIn


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/{riders,drivers}/login."""

    email: _Email
    password: _Password


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class FullNameOut(BaseModel):
    firstname: str
    lastname: Optional[str] = None


class VehicleOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    color: str
    plate: str
    capacity: int
    vehicle_type: VehicleType = Field(serialization_alias="type")


class PositionOut(BaseModel):
    lat: float
    lng: float


class PrincipalOut(BaseModel):
    """Public view of a rider or driver. Never carries the password hash.

    Dump with by_alias=True so the vehicle type serializes as "type".
    Driver-only fields are dropped from rider payloads by the route helper.
    """

    id: str
    kind: PrincipalKind
    fullname: FullNameOut
    email: str
    socket_id: Optional[str] = None
    created_at: Optional[str] = None
    availability: Optional[Availability] = None
    vehicle: Optional[VehicleOut] = None
    position: Optional[PositionOut] = None


class AuthResponse(BaseModel):
    """Response for register (201) and login (200)."""

    message: str
    token: str
    principal: dict


class MessageResponse(BaseModel):
    message: str


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response.

    code is stable and machine-readable; message is stable human text.
    errors is present only for request validation failures.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    errors: Optional[list[FieldError]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
