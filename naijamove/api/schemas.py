"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from naijamove.domain.enums import (
    AccountStatus,
    LoadStatus,
    RideStatus,
    RideType,
    TransactionStatus,
    TransactionType,
    UserRole,
    VehicleType,
)


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    passenger_id: int
    type: RideType = RideType.RIDE
    vehicle_type: VehicleType
    pickup_address: str
    dropoff_address: str
    distance_km: float = Field(..., ge=0)
    parcel_description: Optional[str] = None
    parcel_weight: Optional[str] = Field(
        None, max_length=32, description="Free text such as '12kg'; defaults to 10 kg."
    )
    receiver_phone: Optional[str] = None


class DriverActionRequest(BaseModel):
    driver_id: int


class RideStatusUpdateRequest(BaseModel):
    status: RideStatus
    driver_id: Optional[int] = None


class ManualAssignRequest(BaseModel):
    driver_id: int
    admin_id: int


class WithdrawalRequest(BaseModel):
    user_id: int
    amount: Decimal


class TransactionReviewRequest(BaseModel):
    admin_id: int
    approved: bool


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    role: UserRole = UserRole.PASSENGER
    phone: Optional[str] = None
    nin: Optional[str] = Field(None, min_length=11, max_length=11)
    vehicle_type: Optional[VehicleType] = None
    license_plate: Optional[str] = None


class RecruitDriverRequest(BaseModel):
    admin_id: int
    name: str = Field(..., min_length=1, max_length=120)
    email: str = Field(..., min_length=3, max_length=255)
    vehicle_type: VehicleType
    license_plate: str
    phone: Optional[str] = None
    nin: Optional[str] = Field(None, min_length=11, max_length=11)


class UserStatusUpdateRequest(BaseModel):
    status: AccountStatus
    actor_id: int
    reason: Optional[str] = None


class OnlineToggleRequest(BaseModel):
    is_online: bool


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    passenger_id: int
    driver_id: Optional[int] = None
    type: RideType
    vehicle_type: VehicleType
    pickup_address: str
    dropoff_address: str
    distance_km: float
    price: float
    estimated_weight_kg: float
    status: RideStatus
    parcel_description: Optional[str] = None
    parcel_weight: Optional[str] = None
    receiver_phone: Optional[str] = None
    created_at: Optional[datetime] = None
    end_time: Optional[datetime] = None
    rejected_by: list[int] = []

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    wallet_balance: float
    status: AccountStatus
    suspension_reason: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None
    license_plate: Optional[str] = None
    is_online: bool = False
    rating: Optional[float] = None
    total_trips: int = 0
    vehicle_capacity_kg: Optional[float] = None
    current_load_kg: float = 0.0
    load_status: LoadStatus = LoadStatus.EMPTY

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: int
    type: TransactionType
    user_id: int
    ride_id: Optional[int] = None
    amount: float
    status: TransactionStatus
    reference: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ActivityResponse(BaseModel):
    id: int
    user_id: int
    action: str
    details: str
    ip: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class DashboardStatsResponse(BaseModel):
    total_revenue: float
    platform_commission: float
    total_users: int
    active_users: int
    total_trips: int
    live_trips: int
    total_drivers: int
    total_staff: int
    total_regions: int

    model_config = {"from_attributes": True}


class FareQuoteResponse(BaseModel):
    vehicle_type: VehicleType
    distance_km: float
    fare: float
    logistics_fare: Optional[float] = None


class HealthResponse(BaseModel):
    status: str = "ok"
