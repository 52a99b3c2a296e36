"""
Domain rules that do not need storage.

Patterns used
-------------
- **State Pattern** on rides: ``check_transition`` enforces the lifecycle
  PENDING -> ACCEPTED -> IN_PROGRESS -> COMPLETED, with CANCELLED reachable
  from every non-terminal state.
- ``Settlement`` is the value object describing the wallet movements of a
  completed ride.
- ``load_status_for`` / ``estimate_weight_kg`` encode driver load accounting.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .enums import RIDE_TRANSITIONS, LoadStatus, RideStatus, RideType
from .errors import InvalidTransition

PASSENGER_WEIGHT_KG = 75.0
DEFAULT_PARCEL_WEIGHT_KG = 10.0

_CENT = Decimal("0.01")
_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def check_transition(current: RideStatus, new_status: RideStatus) -> None:
    """Raise ``InvalidTransition`` unless *current* -> *new_status* is legal."""
    allowed = RIDE_TRANSITIONS.get(RideStatus(current), set())
    if RideStatus(new_status) not in allowed:
        raise InvalidTransition(current, new_status)


def load_status_for(current_load_kg: float, capacity_kg: float) -> LoadStatus:
    if current_load_kg <= 0:
        return LoadStatus.EMPTY
    if current_load_kg > capacity_kg:
        return LoadStatus.OVERLOAD
    if current_load_kg > capacity_kg / 2:
        return LoadStatus.FULL_LOAD
    return LoadStatus.HALF_LOAD


def estimate_weight_kg(ride_type: RideType, parcel_weight: Optional[str]) -> float:
    """75 kg per passenger; parcels use the leading number of *parcel_weight*.

    Unparseable or zero weights fall back to the default parcel weight.
    """
    if RideType(ride_type) == RideType.RIDE:
        return PASSENGER_WEIGHT_KG
    match = _LEADING_NUMBER.match(parcel_weight or "")
    if not match:
        return DEFAULT_PARCEL_WEIGHT_KG
    weight = float(match.group(1))
    return weight if weight > 0 else DEFAULT_PARCEL_WEIGHT_KG


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Settlement:
    """Wallet movements for one completed ride. Money is never created."""

    price: Decimal
    driver_share: Decimal
    commission: Decimal

    @classmethod
    def for_price(cls, price: Decimal, commission_rate: Decimal) -> "Settlement":
        price = Decimal(price)
        driver_share = (price * (1 - Decimal(commission_rate))).quantize(
            _CENT, rounding=ROUND_HALF_UP
        )
        return cls(price=price, driver_share=driver_share, commission=price - driver_share)
