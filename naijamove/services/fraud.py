"""
Fraud Guard
===========

Rule
----
Before every booking, count the passenger's CANCELLED rides created within
the trailing window (default 60 minutes, inclusive of the evaluation
instant).  At or above the threshold (default 3) the passenger is suspended
with a fixed reason and the booking fails with ``FraudSuspension``.

The rule re-evaluates on every attempt and applies to every account alike.
The caller must hold the passenger row ``FOR UPDATE`` so two simultaneous
bookings cannot both pass the check.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from naijamove.domain.errors import FraudSuspension
from naijamove.infrastructure.models import UserModel
from naijamove.infrastructure.repositories import RideRepository
from naijamove.services.registry import UserRegistry

SUSPENSION_REASON = "Automated fraud detection: excessive cancellations in the last hour"


class FraudGuard:
    def __init__(
        self,
        rides: RideRepository,
        registry: UserRegistry,
        window_minutes: int = 60,
        threshold: int = 3,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.rides = rides
        self.registry = registry
        self.window = timedelta(minutes=window_minutes)
        self.threshold = threshold
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def recent_cancellations(self, passenger_id: int) -> int:
        since = self.clock() - self.window
        return await self.rides.count_cancelled_since(passenger_id, since)

    async def check(self, passenger: UserModel) -> None:
        """Stage a suspension and raise if *passenger* trips the rule.

        The caller commits the suspension before propagating the error.
        """
        cancelled = await self.recent_cancellations(passenger.id)
        if cancelled >= self.threshold:
            await self.registry.suspend(passenger, SUSPENSION_REASON)
            raise FraudSuspension(passenger.id, SUSPENSION_REASON)
