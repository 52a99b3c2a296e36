"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``            -- passengers, drivers, staff and admins with wallets
* ``rides``            -- ride / delivery requests and their lifecycle state
* ``ride_rejections``  -- (ride, driver) pairs for drivers who declined a ride
* ``transactions``     -- withdrawals and settlement movements
* ``activity_log``     -- bounded, append-only audit trail

Indexes
-------
* **B-Tree** on ``rides.status``, ``rides.passenger_id``, ``rides.driver_id``
  for the offer listing, fraud window and load-release look-ups.
* ``activity_log.user_id`` and ``transactions.user_id`` for per-user history.

Timestamps are written by the application (``utcnow``) rather than the
server so that sliding-window queries compare like with like on every
backend.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from .database import Base
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

Money = Numeric(12, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=True)
    nin = Column(String(11), unique=True, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.PASSENGER)
    wallet_balance = Column(Money, nullable=False, default=Decimal("0"))
    status = Column(Enum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE)
    suspension_reason = Column(String(255), nullable=True)
    ip = Column(String(64), nullable=True)
    device = Column(String(120), nullable=True)

    # Driver-only
    vehicle_type = Column(Enum(VehicleType), nullable=True)
    license_plate = Column(String(32), nullable=True)
    is_online = Column(Boolean, default=False, nullable=False)
    rating = Column(Float, nullable=True)
    total_trips = Column(Integer, default=0, nullable=False)
    vehicle_capacity_kg = Column(Float, nullable=True)
    current_load_kg = Column(Float, default=0.0, nullable=False)
    load_status = Column(Enum(LoadStatus), default=LoadStatus.EMPTY, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_users_role_online", "role", "is_online"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    type = Column(Enum(RideType), default=RideType.RIDE, nullable=False)
    vehicle_type = Column(Enum(VehicleType), nullable=False)

    pickup_address = Column(String(255), nullable=False)
    dropoff_address = Column(String(255), nullable=False)
    distance_km = Column(Float, nullable=False, default=0.0)

    price = Column(Money, nullable=False)
    estimated_weight_kg = Column(Float, nullable=False)
    status = Column(Enum(RideStatus), default=RideStatus.PENDING, nullable=False)

    # Logistics only
    parcel_description = Column(Text, nullable=True)
    parcel_weight = Column(String(32), nullable=True)
    receiver_phone = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_passenger", "passenger_id", "created_at"),
        Index("idx_rides_driver", "driver_id"),
    )


class RideRejectionModel(Base):
    __tablename__ = "ride_rejections"

    ride_id = Column(Integer, ForeignKey("rides.id"), primary_key=True)
    driver_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(Enum(TransactionType), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    amount = Column(Money, nullable=False)
    status = Column(Enum(TransactionStatus), nullable=False)
    reference = Column(String(32), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_transactions_user", "user_id"),
    )


class ActivityModel(Base):
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False)
    action = Column(String(40), nullable=False)
    details = Column(Text, nullable=False, default="")
    ip = Column(String(64), nullable=False, default="Unknown")
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_user", "user_id"),
    )
