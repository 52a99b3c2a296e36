"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Writes that must be race-free are expressed
as single conditional ``UPDATE`` statements (compare-and-set) whose row
count tells the caller whether it won.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ActivityModel,
    RideModel,
    RideRejectionModel,
    TransactionModel,
    UserModel,
)
from naijamove.domain.enums import (
    ACTIVE_RIDE_STATUSES,
    AccountStatus,
    RideStatus,
    TransactionStatus,
    UserRole,
)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_for_update(self, user_id: int) -> Optional[UserModel]:
        """SELECT ... FOR UPDATE so concurrent bookings serialise per user."""
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_duplicate(
        self, email: str, nin: Optional[str] = None
    ) -> Optional[UserModel]:
        clauses = [func.lower(UserModel.email) == email.lower()]
        if nin:
            clauses.append(UserModel.nin == nin)
        result = await self.session.execute(
            select(UserModel).where(or_(*clauses)).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[UserModel]:
        result = await self.session.execute(select(UserModel).order_by(UserModel.id))
        return list(result.scalars().all())

    async def list_online_drivers(self) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel)
            .where(
                UserModel.role == UserRole.DRIVER,
                UserModel.is_online.is_(True),
                UserModel.status == AccountStatus.ACTIVE,
            )
            .order_by(UserModel.id)
        )
        return list(result.scalars().all())

    async def debit_if_sufficient(self, user_id: int, amount: Decimal) -> bool:
        """Atomically debit *amount* only if the balance covers it."""
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id, UserModel.wallet_balance >= amount)
            .values(wallet_balance=UserModel.wallet_balance - amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def adjust_balance(
        self, user_id: int, delta: Decimal, trips: int = 0
    ) -> None:
        """Apply *delta* in SQL so concurrent settlements never lose updates."""
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(
                wallet_balance=UserModel.wallet_balance + delta,
                total_trips=UserModel.total_trips + trips,
            )
            .execution_options(synchronize_session=False)
        )

    async def adjust_load(self, user_id: int, delta_kg: float) -> None:
        """Apply *delta_kg* in SQL, floored at zero, so concurrent accepts stack."""
        new_load = func.coalesce(UserModel.current_load_kg, 0.0) + delta_kg
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(current_load_kg=case((new_load > 0, new_load), else_=0.0))
            .execution_options(synchronize_session=False)
        )

    async def clear_load(self, user_id: int) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(current_load_kg=0.0)
            .execution_options(synchronize_session=False)
        )

    async def refresh(self, *users: UserModel) -> None:
        for user in users:
            await self.session.refresh(user)

    async def count_by(self, *criteria) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(UserModel).where(*criteria)
        )
        return result.scalar() or 0


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def compare_and_set_status(
        self,
        ride_id: int,
        expected: RideStatus,
        new_status: RideStatus,
        **values,
    ) -> bool:
        """Move *ride_id* from *expected* to *new_status*; False if it lost."""
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == expected)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def refresh(self, ride: RideModel) -> RideModel:
        await self.session.refresh(ride)
        return ride

    async def list_all(self) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel).order_by(RideModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_passenger(self, passenger_id: int) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.passenger_id == passenger_id)
            .order_by(RideModel.id.desc())
        )
        return list(result.scalars().all())

    def _not_rejected_by(self, driver_id: int):
        return ~exists().where(
            RideRejectionModel.ride_id == RideModel.id,
            RideRejectionModel.driver_id == driver_id,
        )

    async def list_offerable(self, driver_id: int) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.status == RideStatus.PENDING,
                self._not_rejected_by(driver_id),
            )
            .order_by(RideModel.id)
        )
        return list(result.scalars().all())

    async def list_for_driver_dashboard(self, driver_id: int) -> list[RideModel]:
        """Offerable PENDING rides plus every ride assigned to the driver."""
        result = await self.session.execute(
            select(RideModel)
            .where(
                or_(
                    (RideModel.status == RideStatus.PENDING)
                    & self._not_rejected_by(driver_id),
                    RideModel.driver_id == driver_id,
                )
            )
            .order_by(RideModel.id.desc())
        )
        return list(result.scalars().all())

    async def get_stale_pending(self, created_before: datetime) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.status == RideStatus.PENDING,
                RideModel.created_at < created_before,
            )
            .order_by(RideModel.id)
        )
        return list(result.scalars().all())

    async def count_cancelled_since(self, passenger_id: int, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RideModel)
            .where(
                RideModel.passenger_id == passenger_id,
                RideModel.status == RideStatus.CANCELLED,
                RideModel.created_at >= since,
            )
        )
        return result.scalar() or 0

    async def count_active_for_driver(self, driver_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(RideModel)
            .where(
                RideModel.driver_id == driver_id,
                RideModel.status.in_(ACTIVE_RIDE_STATUSES),
            )
        )
        return result.scalar() or 0

    async def count_by(self, *criteria) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(RideModel).where(*criteria)
        )
        return result.scalar() or 0

    async def total_completed_revenue(self) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(RideModel.price), 0)).where(
                RideModel.status == RideStatus.COMPLETED
            )
        )
        return Decimal(str(result.scalar() or 0))

    # ── Rejections ────────────────────────────────────────────────────

    async def has_rejection(self, ride_id: int, driver_id: int) -> bool:
        return (
            await self.session.get(RideRejectionModel, (ride_id, driver_id))
        ) is not None

    async def add_rejection(self, ride_id: int, driver_id: int) -> None:
        self.session.add(RideRejectionModel(ride_id=ride_id, driver_id=driver_id))
        await self.session.flush()

    async def rejected_by(self, ride_id: int) -> list[int]:
        result = await self.session.execute(
            select(RideRejectionModel.driver_id)
            .where(RideRejectionModel.ride_id == ride_id)
            .order_by(RideRejectionModel.created_at)
        )
        return list(result.scalars().all())


class TransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, txn: TransactionModel) -> TransactionModel:
        self.session.add(txn)
        await self.session.flush()
        return txn

    async def get_by_id(self, txn_id: int) -> Optional[TransactionModel]:
        return await self.session.get(TransactionModel, txn_id)

    async def compare_and_set_status(
        self, txn_id: int, expected: TransactionStatus, new_status: TransactionStatus
    ) -> bool:
        result = await self.session.execute(
            update(TransactionModel)
            .where(TransactionModel.id == txn_id, TransactionModel.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_for_user(self, user_id: int) -> list[TransactionModel]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.user_id == user_id)
            .order_by(TransactionModel.id.desc())
        )
        return list(result.scalars().all())


class ActivityLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, record: ActivityModel, retention: int) -> ActivityModel:
        """Insert *record* and evict everything older than the newest *retention*."""
        self.session.add(record)
        await self.session.flush()
        cutoff = (
            select(ActivityModel.id)
            .order_by(ActivityModel.id.desc())
            .offset(retention)
            .limit(1)
            .scalar_subquery()
        )
        await self.session.execute(
            delete(ActivityModel)
            .where(ActivityModel.id <= cutoff)
            .execution_options(synchronize_session=False)
        )
        return record

    async def list_for_user(self, user_id: int) -> list[ActivityModel]:
        result = await self.session.execute(
            select(ActivityModel)
            .where(ActivityModel.user_id == user_id)
            .order_by(ActivityModel.id.desc())
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(ActivityModel)
        )
        return result.scalar() or 0
