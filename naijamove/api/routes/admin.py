"""
Admin / observability endpoints
===============================

POST  /api/v1/admin/rides/{ride_id}/assign         -- manual driver assignment
POST  /api/v1/admin/drivers                        -- recruit a driver
GET   /api/v1/admin/users                          -- every account
PATCH /api/v1/admin/users/{user_id}/status         -- ban / suspend / restore
POST  /api/v1/admin/transactions/{txn_id}/review   -- approve / reject payout
GET   /api/v1/admin/stats                          -- dashboard statistics
GET   /api/v1/admin/health                         -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from naijamove.api.dependencies import get_engine, get_registry
from naijamove.api.middleware import limiter
from naijamove.api.schemas import (
    DashboardStatsResponse,
    HealthResponse,
    ManualAssignRequest,
    RecruitDriverRequest,
    RideResponse,
    TransactionResponse,
    TransactionReviewRequest,
    UserResponse,
    UserStatusUpdateRequest,
)
from naijamove.config import settings
from naijamove.services.dispatch import DispatchEngine
from naijamove.services.registry import UserRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/rides/{ride_id}/assign",
    response_model=RideResponse,
    summary="Assign an online driver to a PENDING ride",
)
@limiter.limit(settings.rate_limit)
async def manual_assign_driver(
    request: Request,
    ride_id: int,
    body: ManualAssignRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.manual_assign_driver(ride_id, body.driver_id, body.admin_id)


@router.post(
    "/drivers",
    status_code=201,
    response_model=UserResponse,
    summary="Recruit a driver",
)
@limiter.limit(settings.rate_limit)
async def recruit_driver(
    request: Request,
    body: RecruitDriverRequest,
    registry: UserRegistry = Depends(get_registry),
):
    return await registry.recruit_driver(
        body.admin_id,
        name=body.name,
        email=body.email,
        vehicle_type=body.vehicle_type,
        license_plate=body.license_plate,
        phone=body.phone,
        nin=body.nin,
    )


@router.get("/users", response_model=list[UserResponse], summary="List all users")
@limiter.limit(settings.rate_limit)
async def list_users(
    request: Request,
    registry: UserRegistry = Depends(get_registry),
):
    return await registry.list_users()


@router.patch(
    "/users/{user_id}/status",
    response_model=UserResponse,
    summary="Change an account's status",
)
@limiter.limit(settings.rate_limit)
async def update_user_status(
    request: Request,
    user_id: int,
    body: UserStatusUpdateRequest,
    registry: UserRegistry = Depends(get_registry),
):
    return await registry.update_user_status(
        user_id, body.status, body.actor_id, body.reason
    )


@router.post(
    "/transactions/{txn_id}/review",
    response_model=TransactionResponse,
    summary="Approve or reject a pending withdrawal",
)
@limiter.limit(settings.rate_limit)
async def review_transaction(
    request: Request,
    txn_id: int,
    body: TransactionReviewRequest,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.approve_transaction(txn_id, body.admin_id, body.approved)


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    summary="Dashboard statistics",
)
@limiter.limit(settings.rate_limit)
async def get_dashboard_stats(
    request: Request,
    engine: DispatchEngine = Depends(get_engine),
):
    return await engine.get_dashboard_stats()


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
