"""
User Registry
=============

Owns every mutation of a user record: registration, account status,
availability, wallet balances and driver load.  Public commands
(``signup``, ``recruit_driver``, ``update_user_status``,
``set_driver_online``) run in their own unit of work; the wallet and load
helpers only stage changes inside the dispatch engine's transaction.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from naijamove.domain.entities import Settlement, load_status_for
from naijamove.domain.enums import (
    VEHICLE_CAPACITY_KG,
    AccountStatus,
    LoadStatus,
    UserRole,
    VehicleType,
)
from naijamove.domain.errors import (
    AccountBlocked,
    DuplicateUser,
    NotFound,
    ValidationError,
)
from naijamove.infrastructure.database import unit_of_work
from naijamove.infrastructure.models import UserModel
from naijamove.infrastructure.repositories import RideRepository, UserRepository
from naijamove.services.activity import ActivityLog

logger = logging.getLogger(__name__)


def ensure_active(user: UserModel) -> None:
    """Raise ``AccountBlocked`` for BANNED / SUSPENDED accounts."""
    if user.status != AccountStatus.ACTIVE:
        status = getattr(user.status, "value", user.status)
        reason = user.suspension_reason or f"Account is {status}"
        raise AccountBlocked(
            f"Account {user.id} is {status}: {reason}",
            user_id=user.id,
            status=status,
            reason=reason,
        )


class UserRegistry:
    def __init__(self, session: AsyncSession, activity: ActivityLog):
        self.session = session
        self.activity = activity
        self.users = UserRepository(session)
        self.rides = RideRepository(session)

    # ── Queries ───────────────────────────────────────────────────────

    async def get(self, user_id: int) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    async def get_driver(self, driver_id: int) -> UserModel:
        driver = await self.get(driver_id)
        if driver.role != UserRole.DRIVER:
            raise ValidationError(
                f"User {driver_id} is not a driver", user_id=driver_id
            )
        return driver

    async def list_users(self) -> list[UserModel]:
        return await self.users.list_all()

    async def list_online_drivers(self) -> list[UserModel]:
        return await self.users.list_online_drivers()

    # ── Registration ──────────────────────────────────────────────────

    async def _ensure_unique(self, email: str, nin: Optional[str]) -> None:
        existing = await self.users.find_duplicate(email, nin)
        if existing is not None:
            raise DuplicateUser(
                "User with this Email or NIN already exists.",
                email=email,
            )

    @staticmethod
    def _driver_defaults(vehicle_type: VehicleType, license_plate: str) -> dict:
        vehicle_type = VehicleType(vehicle_type)
        return dict(
            vehicle_type=vehicle_type,
            license_plate=license_plate,
            rating=5.0,
            total_trips=0,
            vehicle_capacity_kg=VEHICLE_CAPACITY_KG[vehicle_type],
            current_load_kg=0.0,
            load_status=LoadStatus.EMPTY,
        )

    async def signup(
        self,
        *,
        name: str,
        email: str,
        role: UserRole,
        phone: Optional[str] = None,
        nin: Optional[str] = None,
        vehicle_type: Optional[VehicleType] = None,
        license_plate: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> UserModel:
        role = UserRole(role)
        async with unit_of_work(self.session):
            await self._ensure_unique(email, nin)
            user = UserModel(
                name=name,
                email=email,
                phone=phone,
                nin=nin,
                role=role,
                wallet_balance=Decimal("0"),
                status=AccountStatus.ACTIVE,
                ip=ip,
                is_online=False,
            )
            if role == UserRole.DRIVER:
                for key, value in self._driver_defaults(
                    vehicle_type or VehicleType.OKADA, license_plate or "PENDING"
                ).items():
                    setattr(user, key, value)
                user.is_online = True
            await self.users.add(user)
            await self.activity.record(
                user.id, "SIGNUP", f"New {role.value} registration via Web", ip=ip
            )
        logger.info("Signed up %s user %s", role.value, user.id)
        return user

    async def recruit_driver(
        self,
        admin_id: int,
        *,
        name: str,
        email: str,
        vehicle_type: VehicleType,
        license_plate: str,
        phone: Optional[str] = None,
        nin: Optional[str] = None,
    ) -> UserModel:
        vehicle_type = VehicleType(vehicle_type)
        async with unit_of_work(self.session):
            await self._ensure_unique(email, nin)
            driver = UserModel(
                name=name,
                email=email,
                phone=phone,
                nin=nin,
                role=UserRole.DRIVER,
                wallet_balance=Decimal("0"),
                status=AccountStatus.ACTIVE,
                is_online=False,
                **self._driver_defaults(vehicle_type, license_plate),
            )
            await self.users.add(driver)
            await self.activity.record(
                admin_id,
                "RECRUIT_DRIVER",
                f"Recruited driver {name} ({vehicle_type.value})",
            )
        logger.info("Admin %s recruited driver %s", admin_id, driver.id)
        return driver

    # ── Status & availability ─────────────────────────────────────────

    async def update_user_status(
        self,
        user_id: int,
        status: AccountStatus,
        actor_id: int,
        reason: Optional[str] = None,
    ) -> UserModel:
        status = AccountStatus(status)
        async with unit_of_work(self.session):
            user = await self.get(user_id)
            user.status = status
            user.suspension_reason = None if status == AccountStatus.ACTIVE else reason
            await self.activity.record(
                actor_id, "USER_MOD", f"Changed status of {user_id} to {status.value}"
            )
        return user

    async def suspend(self, user: UserModel, reason: str) -> None:
        """Stage a suspension; the calling command decides when to commit."""
        user.status = AccountStatus.SUSPENDED
        user.suspension_reason = reason
        await self.activity.record(user.id, "FRAUD_SUSPEND", reason)
        logger.warning("User %s suspended: %s", user.id, reason)

    async def set_driver_online(self, driver_id: int, is_online: bool) -> UserModel:
        async with unit_of_work(self.session):
            driver = await self.get_driver(driver_id)
            if is_online:
                ensure_active(driver)
            driver.is_online = is_online
            await self.activity.record(
                driver_id,
                "DRIVER_ONLINE" if is_online else "DRIVER_OFFLINE",
                "Driver went online" if is_online else "Driver went offline",
            )
        return driver

    # ── Wallet (dispatch engine only) ─────────────────────────────────

    async def settle(
        self, passenger: UserModel, driver: UserModel, settlement: Settlement
    ) -> None:
        """Stage both sides of a completed ride's settlement together."""
        await self.users.adjust_balance(passenger.id, -settlement.price)
        await self.users.adjust_balance(driver.id, settlement.driver_share, trips=1)
        await self.users.refresh(passenger, driver)

    async def debit(self, user: UserModel, amount: Decimal) -> bool:
        """Debit only if the balance covers *amount*; False leaves it untouched."""
        debited = await self.users.debit_if_sufficient(user.id, amount)
        await self.users.refresh(user)
        return debited

    async def credit(self, user: UserModel, amount: Decimal) -> None:
        await self.users.adjust_balance(user.id, Decimal(amount))
        await self.users.refresh(user)

    # ── Load (dispatch engine only) ───────────────────────────────────

    async def apply_load(self, driver: UserModel, weight_kg: float) -> None:
        await self.users.adjust_load(driver.id, weight_kg)
        await self._sync_load_status(driver)

    async def release_load(self, driver: UserModel, weight_kg: float) -> None:
        """Free *weight_kg*; a driver with no active ride always ends EMPTY.

        Must run after the releasing ride has left ACCEPTED / IN_PROGRESS.
        """
        if await self.rides.count_active_for_driver(driver.id) == 0:
            await self.users.clear_load(driver.id)
        else:
            await self.users.adjust_load(driver.id, -weight_kg)
        await self._sync_load_status(driver)

    async def _sync_load_status(self, driver: UserModel) -> None:
        """Re-read the stored load and derive the status from it."""
        await self.users.refresh(driver)
        driver.load_status = load_status_for(
            driver.current_load_kg or 0.0, driver.vehicle_capacity_kg or 0.0
        )
