"""
Ride event publishing over Redis pub/sub.

The dispatch engine emits ``RIDE_CREATED`` / ``RIDE_UPDATED`` after each
committed change so dashboards can subscribe instead of polling.  Delivery
is fire-and-forget: a subscriber that is offline simply misses the event,
and a publish failure never undoes a committed ride change.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

RIDE_CREATED = "RIDE_CREATED"
RIDE_UPDATED = "RIDE_UPDATED"


def ride_payload(ride) -> dict[str, Any]:
    return {
        "ride_id": ride.id,
        "status": getattr(ride.status, "value", ride.status),
        "passenger_id": ride.passenger_id,
        "driver_id": ride.driver_id,
        "vehicle_type": getattr(ride.vehicle_type, "value", ride.vehicle_type),
    }


class RideEventPublisher:
    def __init__(self, client: aioredis.Redis, channel: str):
        self.redis = client
        self.channel = channel

    async def publish(self, event: str, payload: dict[str, Any]) -> None:
        message = json.dumps(
            {
                "event": event,
                "at": datetime.now(timezone.utc).isoformat(),
                **payload,
            }
        )
        try:
            await self.redis.publish(self.channel, message)
        except RedisError:
            logger.warning("Could not publish %s to %s", event, self.channel, exc_info=True)
