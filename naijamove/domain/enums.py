"""Domain enumerations and state-transition rules."""

import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"
    PASSENGER = "PASSENGER"
    STAFF = "STAFF"


class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    BANNED = "BANNED"
    SUSPENDED = "SUSPENDED"


class VehicleType(str, enum.Enum):
    OKADA = "OKADA"  # motorbike
    KEKE = "KEKE"  # tricycle
    MINIBUS = "MINIBUS"
    TRUCK = "TRUCK"


class RideType(str, enum.Enum):
    RIDE = "RIDE"
    LOGISTICS = "LOGISTICS"


class RideStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class LoadStatus(str, enum.Enum):
    EMPTY = "EMPTY"
    HALF_LOAD = "HALF_LOAD"
    FULL_LOAD = "FULL_LOAD"
    OVERLOAD = "OVERLOAD"


class TransactionType(str, enum.Enum):
    WITHDRAWAL = "WITHDRAWAL"
    PAYMENT = "PAYMENT"  # passenger debit on completion
    EARNING = "EARNING"  # driver credit on completion


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

# Statuses in which a ride holds capacity on its driver's vehicle
ACTIVE_RIDE_STATUSES = (RideStatus.ACCEPTED, RideStatus.IN_PROGRESS)

# Payload capacity per vehicle, in kg
VEHICLE_CAPACITY_KG: dict[VehicleType, float] = {
    VehicleType.OKADA: 150.0,
    VehicleType.KEKE: 400.0,
    VehicleType.MINIBUS: 1000.0,
    VehicleType.TRUCK: 3000.0,
}
