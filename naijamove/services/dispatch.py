"""
Dispatch Engine
===============

Orchestrates the ride lifecycle::

    PENDING -> ACCEPTED -> IN_PROGRESS -> COMPLETED
       |           |            |
       +-----------+------------+--> CANCELLED

Concurrency safety
------------------
* Every status change is a compare-and-set ``UPDATE ... WHERE status = ?``.
  Two drivers racing for one PENDING ride both issue the CAS; the database
  lets exactly one row update through and the loser gets
  ``RideAlreadyTaken``.
* Completion settles both wallets, writes the PAYMENT / EARNING rows and
  flips the status inside one transaction.  A lost CAS raises before any
  money moves.
* Booking locks the passenger row ``FOR UPDATE`` while the Fraud Guard
  counts recent cancellations, so simultaneous bookings cannot both slip
  past the trip-wire.

Each public command is its own unit of work: it commits on success and
rolls back on any error.  The single exception is a fraud trip, where the
suspension is committed before ``FraudSuspension`` propagates.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from naijamove.config import Settings, settings as default_settings
from naijamove.domain.entities import Settlement, check_transition, estimate_weight_kg
from naijamove.domain.enums import (
    AccountStatus,
    RideStatus,
    RideType,
    TransactionStatus,
    TransactionType,
    UserRole,
    VehicleType,
)
from naijamove.domain.errors import (
    AccountBlocked,
    FraudSuspension,
    InsufficientFunds,
    InvalidTransition,
    MaintenanceMode,
    NotFound,
    RideAlreadyTaken,
    ValidationError,
)
from naijamove.domain.pricing import FareCalculator
from naijamove.infrastructure.database import unit_of_work
from naijamove.infrastructure.events import RIDE_CREATED, RIDE_UPDATED, ride_payload
from naijamove.infrastructure.models import (
    ActivityModel,
    RideModel,
    TransactionModel,
    UserModel,
    utcnow,
)
from naijamove.infrastructure.repositories import (
    RideRepository,
    TransactionRepository,
)
from naijamove.services.activity import ActivityLog
from naijamove.services.fraud import FraudGuard
from naijamove.services.registry import UserRegistry, ensure_active

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardStats:
    total_revenue: Decimal
    platform_commission: Decimal
    total_users: int
    active_users: int
    total_trips: int
    live_trips: int
    total_drivers: int
    total_staff: int
    total_regions: int


def _reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"


def _required(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", field=field)
    return str(value).strip()


class DispatchEngine:
    def __init__(
        self,
        session: AsyncSession,
        settings: Settings = default_settings,
        publisher=None,
        clock: Optional[Callable] = None,
    ):
        self.session = session
        self.settings = settings
        self.publisher = publisher
        self.activity = ActivityLog(session, settings.activity_retention)
        self.registry = UserRegistry(session, self.activity)
        self.rides = RideRepository(session)
        self.transactions = TransactionRepository(session)
        self.fares = FareCalculator.from_settings(settings)
        self.fraud = FraudGuard(
            self.rides,
            self.registry,
            window_minutes=settings.fraud_window_minutes,
            threshold=settings.fraud_cancellation_threshold,
            clock=clock,
        )

    # ── Helpers ───────────────────────────────────────────────────────

    async def _emit(self, event: str, ride: RideModel) -> None:
        if self.publisher is not None:
            await self.publisher.publish(event, ride_payload(ride))

    async def get_ride(self, ride_id: int) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride", ride_id)
        return ride

    def _check_gates(self, ip: Optional[str]) -> None:
        if self.settings.maintenance_mode:
            raise MaintenanceMode("System maintenance. Bookings are paused.")
        if ip and ip in self.settings.blocked_ips:
            raise AccountBlocked(f"Requests from {ip} are blocked", ip=ip)

    async def _available_driver(self, driver_id: int) -> UserModel:
        driver = await self.registry.get_driver(driver_id)
        ensure_active(driver)
        if not driver.is_online:
            raise ValidationError(
                f"Driver {driver_id} is not available", driver_id=driver_id
            )
        return driver

    @staticmethod
    def _accept_conflict(ride: RideModel) -> Exception:
        # only an ACCEPTED ride was lost to another driver
        if ride.status == RideStatus.ACCEPTED and ride.driver_id is not None:
            return RideAlreadyTaken(ride.id)
        return InvalidTransition(ride.status, RideStatus.ACCEPTED)

    # ── Booking ───────────────────────────────────────────────────────

    async def create_ride(
        self,
        passenger_id: int,
        *,
        type: RideType,
        vehicle_type: VehicleType,
        pickup_address: str,
        dropoff_address: str,
        distance_km: float,
        parcel_description: Optional[str] = None,
        parcel_weight: Optional[str] = None,
        receiver_phone: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> RideModel:
        try:
            ride_type = RideType(type)
            vehicle_type = VehicleType(vehicle_type)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None
        pickup_address = _required(pickup_address, "pickup_address")
        dropoff_address = _required(dropoff_address, "dropoff_address")
        if distance_km is None or distance_km < 0:
            raise ValidationError("distance_km must be >= 0", distance_km=distance_km)
        if ride_type == RideType.LOGISTICS:
            parcel_description = _required(parcel_description, "parcel_description")
            receiver_phone = _required(receiver_phone, "receiver_phone")
        self._check_gates(ip)

        async with unit_of_work(self.session):
            passenger = await self.registry.users.get_for_update(passenger_id)
            if passenger is None:
                raise NotFound("User", passenger_id)
            ensure_active(passenger)
            try:
                await self.fraud.check(passenger)
            except FraudSuspension:
                await self.session.commit()
                raise

            ride = RideModel(
                passenger_id=passenger_id,
                type=ride_type,
                vehicle_type=vehicle_type,
                pickup_address=pickup_address,
                dropoff_address=dropoff_address,
                distance_km=distance_km,
                price=self.fares.calculate_fare(vehicle_type, distance_km),
                estimated_weight_kg=estimate_weight_kg(ride_type, parcel_weight),
                status=RideStatus.PENDING,
                parcel_description=parcel_description if ride_type == RideType.LOGISTICS else None,
                parcel_weight=parcel_weight if ride_type == RideType.LOGISTICS else None,
                receiver_phone=receiver_phone if ride_type == RideType.LOGISTICS else None,
                created_at=utcnow(),
            )
            await self.rides.create(ride)
            await self.activity.record(
                passenger_id, "BOOK_RIDE", f"Booked {vehicle_type.value}", ip=ip
            )

        logger.info(
            "Ride %s booked by %s: %s %s, price %s",
            ride.id, passenger_id, ride_type.value, vehicle_type.value, ride.price,
        )
        await self._emit(RIDE_CREATED, ride)
        return ride

    # ── Matching ──────────────────────────────────────────────────────

    async def list_offerable_rides(self, driver_id: int) -> list[RideModel]:
        await self.registry.get_driver(driver_id)
        return await self.rides.list_offerable(driver_id)

    async def accept_ride(
        self,
        ride_id: int,
        driver_id: int,
        *,
        actor_id: Optional[int] = None,
    ) -> RideModel:
        """PENDING -> ACCEPTED.  *actor_id* marks an admin manual assignment."""
        async with unit_of_work(self.session):
            ride = await self.get_ride(ride_id)
            driver = await self._available_driver(driver_id)
            if ride.status != RideStatus.PENDING:
                raise self._accept_conflict(ride)

            won = await self.rides.compare_and_set_status(
                ride_id, RideStatus.PENDING, RideStatus.ACCEPTED, driver_id=driver_id
            )
            await self.rides.refresh(ride)
            if not won:
                raise self._accept_conflict(ride)

            await self.registry.apply_load(driver, ride.estimated_weight_kg)
            if actor_id is None:
                await self.activity.record(
                    driver_id, "RIDE_ACCEPT", f"Accepted ride {ride_id}"
                )
            else:
                await self.activity.record(
                    actor_id,
                    "MANUAL_ASSIGN",
                    f"Assigned driver {driver.name} to ride {ride_id}",
                )

        logger.info(
            "Ride %s accepted by driver %s (load %.1f/%.1f kg, %s)",
            ride_id, driver_id, driver.current_load_kg,
            driver.vehicle_capacity_kg or 0.0, driver.load_status.value,
        )
        await self._emit(RIDE_UPDATED, ride)
        return ride

    async def manual_assign_driver(
        self, ride_id: int, driver_id: int, admin_id: int
    ) -> RideModel:
        """Admin path: ignores the driver's rejection history."""
        return await self.accept_ride(ride_id, driver_id, actor_id=admin_id)

    async def reject_ride(self, ride_id: int, driver_id: int) -> RideModel:
        try:
            async with unit_of_work(self.session):
                ride = await self.get_ride(ride_id)
                await self.registry.get_driver(driver_id)
                if not await self.rides.has_rejection(ride_id, driver_id):
                    await self.rides.add_rejection(ride_id, driver_id)
                    await self.activity.record(
                        driver_id, "RIDE_REJECT", f"Rejected ride {ride_id}"
                    )
        except IntegrityError:
            # the same rejection landed concurrently
            logger.debug("Duplicate rejection of ride %s by %s", ride_id, driver_id)
            ride = await self.get_ride(ride_id)
        return ride

    async def rejected_by(self, ride_id: int) -> list[int]:
        return await self.rides.rejected_by(ride_id)

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def advance_status(
        self,
        ride_id: int,
        new_status: RideStatus,
        driver_id: Optional[int] = None,
    ) -> RideModel:
        new_status = RideStatus(new_status)
        if new_status == RideStatus.ACCEPTED:
            if driver_id is None:
                raise ValidationError("driver_id is required to accept a ride")
            return await self.accept_ride(ride_id, driver_id)

        async with unit_of_work(self.session):
            ride = await self.get_ride(ride_id)
            current = RideStatus(ride.status)
            check_transition(current, new_status)
            if driver_id is not None and ride.driver_id != driver_id:
                raise ValidationError(
                    f"Driver {driver_id} is not assigned to ride {ride_id}",
                    ride_id=ride_id,
                    driver_id=driver_id,
                )

            if new_status == RideStatus.COMPLETED:
                await self._complete(ride)
            else:
                won = await self.rides.compare_and_set_status(
                    ride_id, current, new_status
                )
                await self.rides.refresh(ride)
                if not won:
                    raise InvalidTransition(ride.status, new_status)
                if new_status == RideStatus.CANCELLED and ride.driver_id is not None:
                    driver = await self.registry.get(ride.driver_id)
                    await self.registry.release_load(driver, ride.estimated_weight_kg)

            await self.activity.record(
                driver_id or ride.passenger_id,
                "RIDE_UPDATE",
                f"Updated ride {ride_id} to {new_status.value}",
            )

        logger.info("Ride %s: %s -> %s", ride_id, current.value, new_status.value)
        await self._emit(RIDE_UPDATED, ride)
        return ride

    async def _complete(self, ride: RideModel) -> None:
        """IN_PROGRESS -> COMPLETED with wallet settlement, in the caller's unit."""
        passenger = await self.registry.get(ride.passenger_id)
        driver = await self.registry.get(ride.driver_id)

        won = await self.rides.compare_and_set_status(
            ride.id,
            RideStatus.IN_PROGRESS,
            RideStatus.COMPLETED,
            end_time=utcnow(),
        )
        await self.rides.refresh(ride)
        if not won:
            raise InvalidTransition(ride.status, RideStatus.COMPLETED)

        settlement = Settlement.for_price(ride.price, self.settings.commission_rate)
        await self.registry.settle(passenger, driver, settlement)
        await self.transactions.create(
            TransactionModel(
                type=TransactionType.PAYMENT,
                user_id=passenger.id,
                ride_id=ride.id,
                amount=settlement.price,
                status=TransactionStatus.SUCCESS,
                reference=_reference("PAY"),
            )
        )
        await self.transactions.create(
            TransactionModel(
                type=TransactionType.EARNING,
                user_id=driver.id,
                ride_id=ride.id,
                amount=settlement.driver_share,
                status=TransactionStatus.SUCCESS,
                reference=_reference("ERN"),
            )
        )
        await self.registry.release_load(driver, ride.estimated_weight_kg)
        logger.info(
            "Ride %s settled: passenger %s -%s, driver %s +%s, commission %s",
            ride.id, passenger.id, settlement.price,
            driver.id, settlement.driver_share, settlement.commission,
        )

    # ── Wallet ────────────────────────────────────────────────────────

    async def withdraw_funds(self, user_id: int, amount) -> TransactionModel:
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise ValidationError("amount must be a number", amount=str(amount)) from None
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("amount must be greater than 0", amount=amount)

        async with unit_of_work(self.session):
            user = await self.registry.get(user_id)
            if not await self.registry.debit(user, amount):
                raise InsufficientFunds(Decimal(user.wallet_balance), amount)
            txn = await self.transactions.create(
                TransactionModel(
                    type=TransactionType.WITHDRAWAL,
                    user_id=user_id,
                    amount=amount,
                    status=TransactionStatus.PENDING,
                    reference=_reference("WD"),
                )
            )
            await self.activity.record(
                user_id,
                "WITHDRAWAL_REQ",
                f"Requested withdrawal of {amount}. Pending Approval.",
            )
        logger.info("User %s requested withdrawal %s (txn %s)", user_id, amount, txn.id)
        return txn

    async def approve_transaction(
        self, txn_id: int, admin_id: int, approved: bool
    ) -> TransactionModel:
        new_status = TransactionStatus.SUCCESS if approved else TransactionStatus.FAILED
        async with unit_of_work(self.session):
            txn = await self.transactions.get_by_id(txn_id)
            if txn is None:
                raise NotFound("Transaction", txn_id)
            if txn.type != TransactionType.WITHDRAWAL:
                raise InvalidTransition(
                    txn.status, new_status, detail="Only withdrawals require review"
                )
            won = await self.transactions.compare_and_set_status(
                txn_id, TransactionStatus.PENDING, new_status
            )
            await self.session.refresh(txn)
            if not won:
                raise InvalidTransition(txn.status, new_status)
            if not approved:
                user = await self.registry.get(txn.user_id)
                await self.registry.credit(user, txn.amount)
            await self.activity.record(
                admin_id,
                "PAYMENT_APPROVE" if approved else "PAYMENT_REJECT",
                f"{'Approved' if approved else 'Rejected'} transaction {txn_id}",
            )
        return txn

    async def list_user_transactions(self, user_id: int) -> list[TransactionModel]:
        await self.registry.get(user_id)
        return await self.transactions.list_for_user(user_id)

    # ── Queries ───────────────────────────────────────────────────────

    async def list_active_rides(self, role: UserRole, user_id: int) -> list[RideModel]:
        role = UserRole(role)
        if role in (UserRole.ADMIN, UserRole.STAFF):
            return await self.rides.list_all()
        if role == UserRole.DRIVER:
            return await self.rides.list_for_driver_dashboard(user_id)
        return await self.rides.list_for_passenger(user_id)

    async def list_online_drivers(self) -> list[UserModel]:
        return await self.registry.list_online_drivers()

    async def get_user_activity(self, user_id: int) -> list[ActivityModel]:
        return await self.activity.for_user(user_id)

    async def get_dashboard_stats(self) -> DashboardStats:
        users = self.registry.users
        revenue = await self.rides.total_completed_revenue()
        return DashboardStats(
            total_revenue=revenue,
            platform_commission=revenue * self.settings.commission_rate,
            total_users=await users.count_by(),
            active_users=await users.count_by(UserModel.status == AccountStatus.ACTIVE),
            total_trips=await self.rides.count_by(),
            live_trips=await self.rides.count_by(
                RideModel.status == RideStatus.IN_PROGRESS
            ),
            total_drivers=await users.count_by(UserModel.role == UserRole.DRIVER),
            total_staff=await users.count_by(UserModel.role == UserRole.STAFF),
            total_regions=len(self.settings.cities),
        )

    def quote(
        self,
        vehicle_type: VehicleType,
        distance_km: float,
        weight_kg: Optional[float] = None,
        interstate: bool = False,
    ) -> dict[str, Decimal]:
        quote = {"fare": self.fares.calculate_fare(vehicle_type, distance_km)}
        if weight_kg is not None:
            quote["logistics_fare"] = self.fares.calculate_logistics_fare(
                distance_km, weight_kg, interstate
            )
        return quote
