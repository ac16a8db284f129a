"""
api/routes/v1/auth.py -- Rider and driver authentication endpoints.

Routes (each exists once per kind, under /riders and /drivers):
  POST /api/v1/riders/register    -- create rider; 201 {message, token, principal}
  POST /api/v1/drivers/register   -- create driver with vehicle; 201
  POST /api/v1/{kind}s/login      -- password login; 200 + token cookie
  GET  /api/v1/{kind}s/profile    -- current principal (gate-protected)
  GET  /api/v1/{kind}s/logout     -- revoke token, clear cookie

Handlers are thin: the per-kind functions only choose the kind, the body
model and the gate, then call the shared helpers below. Handlers that hash
or verify passwords are plain `def` so FastAPI runs them on its thread pool.

Security:
  Login is rate-limited per client IP (Settings.login_rate_limit).
  authenticate_principal() provides timing equalization -- use it, never inline.
  Unknown email and wrong password return the same 400 body.
  Cache-Control: no-store on responses that carry a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AuthResponse,
    DriverRegisterRequest,
    FullNameOut,
    LoginRequest,
    MessageResponse,
    PositionOut,
    PrincipalOut,
    RiderRegisterRequest,
    VehicleOut,
)
from auth.dependencies import extract_token, require_driver, require_rider
from auth.models import Availability, FullName, Principal, PrincipalKind, Vehicle
from auth.service import authenticate_principal, register_principal
from auth.store import DuplicateAddressError, DuplicatePlateError, PrincipalStore
from auth.tokens import TokenIssuer, clear_auth_cookie, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("musafir.api")

# Auth policy:
# - POST /{kind}s/register:  public
# - POST /{kind}s/login:     public, rate-limited
# - GET  /{kind}s/profile:   requires the kind's gate
# - GET  /{kind}s/logout:    requires a token (cookie or Bearer), not a live principal
router = APIRouter()

INVALID_CREDENTIALS = "Invalid email or password"


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


# ---------------------------------------------------------------------------
# Riders
# ---------------------------------------------------------------------------


@router.post("/riders/register", response_model=AuthResponse, status_code=201)
def register_rider(request: Request, body: RiderRegisterRequest) -> JSONResponse:
    """Register a rider and return a token so the client is logged in at once."""
    rider = Principal(
        kind=PrincipalKind.RIDER,
        name=FullName(firstname=body.fullname.firstname, lastname=body.fullname.lastname),
        email=body.email,
    )
    return _register(request, rider, body.password)


@limiter.limit(_login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/riders/login", response_model=AuthResponse)
def login_rider(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate a rider; the token is returned in the body and set as a cookie."""
    return _login(request, PrincipalKind.RIDER, body)


@router.get("/riders/profile", response_model=PrincipalOut)
def rider_profile(rider: Principal = Depends(require_rider)) -> JSONResponse:
    return JSONResponse(content=_principal_to_response(rider))


@router.get("/riders/logout", response_model=MessageResponse)
def logout_rider(request: Request) -> JSONResponse:
    return _logout(request, PrincipalKind.RIDER)


# ---------------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------------


@router.post("/drivers/register", response_model=AuthResponse, status_code=201)
def register_driver(request: Request, body: DriverRegisterRequest) -> JSONResponse:
    """Register a driver with their vehicle. New drivers start inactive."""
    driver = Principal(
        kind=PrincipalKind.DRIVER,
        name=FullName(firstname=body.fullname.firstname, lastname=body.fullname.lastname),
        email=body.email,
        availability=Availability.INACTIVE,
        vehicle=Vehicle(
            color=body.vehicle.color,
            plate=body.vehicle.plate,
            capacity=body.vehicle.capacity,
            vehicle_type=body.vehicle.vehicle_type,
        ),
    )
    return _register(request, driver, body.password)


@limiter.limit(_login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/drivers/login", response_model=AuthResponse)
def login_driver(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate a driver; the token is returned in the body and set as a cookie."""
    return _login(request, PrincipalKind.DRIVER, body)


@router.get("/drivers/profile", response_model=PrincipalOut)
def driver_profile(driver: Principal = Depends(require_driver)) -> JSONResponse:
    return JSONResponse(content=_principal_to_response(driver))


@router.get("/drivers/logout", response_model=MessageResponse)
def logout_driver(request: Request) -> JSONResponse:
    return _logout(request, PrincipalKind.DRIVER)


# ---------------------------------------------------------------------------
# Shared handlers
# ---------------------------------------------------------------------------


def _register(request: Request, principal: Principal, password: str) -> JSONResponse:
    store: PrincipalStore = request.app.state.principal_store
    issuer: TokenIssuer = request.app.state.token_issuer
    kind = principal.kind
    try:
        created = register_principal(store, principal, password)
    except DuplicateAddressError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "duplicate_address", "message": f"{kind.label} with this email already exists"},
        ) from exc
    except DuplicatePlateError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "duplicate_plate", "message": "A driver with this vehicle plate already exists"},
        ) from exc

    token = issuer.issue(created.id)
    resp = JSONResponse(
        status_code=201,
        content=AuthResponse(
            message=f"{kind.label} registered successfully",
            token=token,
            principal=_principal_to_response(created),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _login(request: Request, kind: PrincipalKind, body: LoginRequest) -> JSONResponse:
    store: PrincipalStore = request.app.state.principal_store
    issuer: TokenIssuer = request.app.state.token_issuer

    principal = authenticate_principal(store, kind, body.email, body.password)
    if principal is None:
        logger.info("Failed %s login", kind.value)
        resp = JSONResponse(
            status_code=400,
            content={"code": "invalid_credentials", "message": INVALID_CREDENTIALS},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = issuer.issue(principal.id)
    resp = JSONResponse(
        status_code=200,
        content=AuthResponse(
            message=f"{kind.label} logged in successfully",
            token=token,
            principal=_principal_to_response(principal),
        ).model_dump(),
    )
    set_auth_cookie(resp, token, max_age=issuer.expire_seconds, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _logout(request: Request, kind: PrincipalKind) -> JSONResponse:
    """Revoke the presented token and clear the cookie.

    Only tokens with a valid signature are written to the ledger: an expired
    or forged token is already refused by the gate, and recording it would
    let anyone fill the ledger with junk. The cookie is cleared either way.
    """
    token = extract_token(request)
    if not token:
        raise HTTPException(status_code=400, detail={"code": "no_token", "message": "No token found"})

    issuer: TokenIssuer = request.app.state.token_issuer
    if issuer.decode(token) is not None:
        request.app.state.revocation_ledger.revoke(token)
        logger.info("Revoked %s token", kind.value)

    resp = JSONResponse(content=MessageResponse(message=f"{kind.label} logged out successfully").model_dump())
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _principal_to_response(principal: Principal) -> dict:
    out = PrincipalOut(
        id=principal.id,
        kind=principal.kind,
        fullname=FullNameOut(firstname=principal.name.firstname, lastname=principal.name.lastname),
        email=principal.email,
        socket_id=principal.socket_id,
        created_at=principal.created_at,
        availability=principal.availability,
        vehicle=(
            VehicleOut(
                color=principal.vehicle.color,
                plate=principal.vehicle.plate,
                capacity=principal.vehicle.capacity,
                vehicle_type=principal.vehicle.vehicle_type,
            )
            if principal.vehicle
            else None
        ),
        position=PositionOut(lat=principal.position.lat, lng=principal.position.lng) if principal.position else None,
    )
    data = out.model_dump(mode="json", by_alias=True)
    if principal.kind is PrincipalKind.RIDER:
        for key in ("availability", "vehicle", "position"):
            data.pop(key, None)
    return data
