"""
Ride endpoints
==============

POST  /api/v1/rides                      -- book a ride or delivery
GET   /api/v1/rides?role=&user_id=       -- rides visible to a dashboard
GET   /api/v1/rides/offerable?driver_id= -- PENDING rides a driver may take
GET   /api/v1/rides/{ride_id}            -- ride detail incl. rejections
POST  /api/v1/rides/{ride_id}/accept     -- driver accepts (first wins)
POST  /api/v1/rides/{ride_id}/reject     -- driver declines (idempotent)
PATCH /api/v1/rides/{ride_id}/status     -- start / complete / cancel
GET   /api/v1/fares/quote                -- price preview
GET   /api/v1/drivers/online             -- online, active drivers
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from naijamove.api.dependencies import get_engine
from naijamove.api.middleware import limiter
from naijamove.api.schemas import (
    DriverActionRequest,
    FareQuoteResponse,
    RideCreateRequest,
    RideResponse,
    RideStatusUpdateRequest,
    UserResponse,
)
from naijamove.config import settings
from naijamove.domain.enums import UserRole, VehicleType
from naijamove.services.dispatch import DispatchEngine

router = APIRouter(tags=["rides"])


@router.post(
    "/rides",
    status_code=201,
    response_model=RideResponse,
    summary="Book a ride or a delivery",
    responses={403: {"description": "Account blocked or auto-suspended."}},
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.create_ride(
        body.passenger_id,
        type=body.type,
        vehicle_type=body.vehicle_type,
        pickup_address=body.pickup_address,
        dropoff_address=body.dropoff_address,
        distance_km=body.distance_km,
        parcel_description=body.parcel_description,
        parcel_weight=body.parcel_weight,
        receiver_phone=body.receiver_phone,
        ip=request.client.host if request.client else None,
    )


@router.get(
    "/rides",
    response_model=list[RideResponse],
    summary="List the rides a dashboard should show",
)
@limiter.limit(settings.rate_limit)
async def list_active_rides(
    request: Request,
    role: UserRole,
    user_id: int,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.list_active_rides(role, user_id)


@router.get(
    "/rides/offerable",
    response_model=list[RideResponse],
    summary="PENDING rides the driver has not rejected",
)
@limiter.limit(settings.rate_limit)
async def list_offerable_rides(
    request: Request,
    driver_id: int,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.list_offerable_rides(driver_id)


@router.get("/rides/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    engine: DispatchEngine = Depends(get_engine),
):
    ride = await engine.get_ride(ride_id)
    return RideResponse.model_validate(ride).model_copy(
        update={"rejected_by": await engine.rejected_by(ride_id)}
    )


@router.post(
    "/rides/{ride_id}/accept",
    response_model=RideResponse,
    summary="Accept a PENDING ride",
    responses={409: {"description": "Another driver accepted first."}},
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    body: DriverActionRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.accept_ride(ride_id, body.driver_id)


@router.post(
    "/rides/{ride_id}/reject",
    response_model=RideResponse,
    summary="Decline a ride; it is never offered to this driver again",
)
@limiter.limit(settings.rate_limit)
async def reject_ride(
    request: Request,
    ride_id: int,
    body: DriverActionRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    ride = await engine.reject_ride(ride_id, body.driver_id)
    return RideResponse.model_validate(ride).model_copy(
        update={"rejected_by": await engine.rejected_by(ride_id)}
    )


@router.patch(
    "/rides/{ride_id}/status",
    response_model=RideResponse,
    summary="Advance a ride through its lifecycle",
    description=(
        "ACCEPTED -> IN_PROGRESS, IN_PROGRESS -> COMPLETED (settles wallets), "
        "or any non-terminal status -> CANCELLED (releases driver load)."
    ),
)
@limiter.limit(settings.rate_limit)
async def advance_ride_status(
    request: Request,
    ride_id: int,
    body: RideStatusUpdateRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.advance_status(ride_id, body.status, body.driver_id)


@router.get("/fares/quote", response_model=FareQuoteResponse, summary="Price preview")
@limiter.limit(settings.rate_limit)
async def quote_fare(
    request: Request,
    vehicle_type: VehicleType,
    distance_km: float = Query(..., ge=0),
    weight_kg: Optional[float] = Query(None, ge=0),
    interstate: bool = False,
    engine: DispatchEngine = Depends(get_engine),
):
    quote = engine.quote(vehicle_type, distance_km, weight_kg, interstate)
    return FareQuoteResponse(
        vehicle_type=vehicle_type, distance_km=distance_km, **quote
    )


@router.get(
    "/drivers/online",
    response_model=list[UserResponse],
    summary="Online, active drivers",
)
@limiter.limit(settings.rate_limit)
async def list_online_drivers(
    request: Request,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.list_online_drivers()
