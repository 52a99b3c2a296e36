"""
User endpoints
==============

POST  /api/v1/users                        -- self sign-up (passenger / driver)
PATCH /api/v1/users/{user_id}/online       -- driver availability toggle
GET   /api/v1/users/{user_id}/activity     -- audit trail, newest first
GET   /api/v1/users/{user_id}/transactions -- wallet history, newest first
"""

from fastapi import APIRouter, Depends, Request

from naijamove.api.dependencies import get_engine, get_registry
from naijamove.api.middleware import limiter
from naijamove.api.schemas import (
    ActivityResponse,
    OnlineToggleRequest,
    SignupRequest,
    TransactionResponse,
    UserResponse,
)
from naijamove.config import settings
from naijamove.services.dispatch import DispatchEngine
from naijamove.services.registry import UserRegistry

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    summary="Sign up",
    responses={409: {"description": "Email or NIN already registered."}},
)
@limiter.limit(settings.rate_limit)
async def signup(
    request: Request,
    body: SignupRequest,
    registry: UserRegistry = Depends(get_registry),
):
    return await registry.signup(
        name=body.name,
        email=body.email,
        role=body.role,
        phone=body.phone,
        nin=body.nin,
        vehicle_type=body.vehicle_type,
        license_plate=body.license_plate,
        ip=request.client.host if request.client else None,
    )


@router.patch(
    "/{user_id}/online",
    response_model=UserResponse,
    summary="Go online / offline (drivers)",
)
@limiter.limit(settings.rate_limit)
async def set_online(
    request: Request,
    user_id: int,
    body: OnlineToggleRequest,
    registry: UserRegistry = Depends(get_registry),
):
    return await registry.set_driver_online(user_id, body.is_online)


@router.get(
    "/{user_id}/activity",
    response_model=list[ActivityResponse],
    summary="User activity log",
)
@limiter.limit(settings.rate_limit)
async def get_user_activity(
    request: Request,
    user_id: int,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.get_user_activity(user_id)


@router.get(
    "/{user_id}/transactions",
    response_model=list[TransactionResponse],
    summary="Wallet transactions",
)
@limiter.limit(settings.rate_limit)
async def get_user_transactions(
    request: Request,
    user_id: int,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.list_user_transactions(user_id)
