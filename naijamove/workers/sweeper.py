"""
Stale Ride Sweeper
==================

Runs every ``SWEEP_INTERVAL_SECONDS`` (default 300 s) when
``STALE_RIDE_SWEEP_ENABLED`` is set.  Disabled by default: the core state
machine never times a ride out on its own.

Each cycle cancels PENDING rides older than ``STALE_RIDE_MINUTES`` through
the dispatch engine's ordinary ``advance_status(..., CANCELLED)`` path, so
the same compare-and-set rules apply as for a passenger cancellation.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance runs the sweep
  cycle at a time across multiple API processes.
* A ride accepted between the scan and the cancel loses nothing: its CAS
  from PENDING fails and the sweeper skips it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from naijamove.config import settings
from naijamove.domain.enums import RideStatus
from naijamove.domain.errors import DispatchError
from naijamove.infrastructure.database import async_session_factory
from naijamove.infrastructure.locks import DistributedLock
from naijamove.infrastructure.models import utcnow
from naijamove.infrastructure.redis_client import get_redis
from naijamove.services.dispatch import DispatchEngine

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_sweep_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Stale ride sweeper started (interval=%ds, max_age=%dmin)",
        settings.sweep_interval_seconds,
        settings.stale_ride_minutes,
    )


async def stop_sweep_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
        logger.info("Stale ride sweeper stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a sweep cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_sweep_cycle()
        except Exception:
            logger.exception("Unhandled error in sweep cycle")
        # Wait for the interval or until stop is signalled
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.sweep_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def sweep_stale_rides(engine: DispatchEngine, max_age_minutes: int) -> int:
    """Cancel PENDING rides created more than *max_age_minutes* ago."""
    cutoff = utcnow() - timedelta(minutes=max_age_minutes)
    stale = await engine.rides.get_stale_pending(cutoff)
    cancelled = 0
    for ride in stale:
        try:
            await engine.advance_status(ride.id, RideStatus.CANCELLED)
        except DispatchError as exc:
            logger.info("Skipping ride %s: %s", ride.id, exc.detail)
            continue
        cancelled += 1
    return cancelled


async def run_sweep_cycle() -> int:
    """Execute one sweep cycle.  Returns the number of rides cancelled."""
    redis = await get_redis()
    lock = DistributedLock(redis, "stale_ride_sweeper", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    try:
        async with async_session_factory() as session:
            engine = DispatchEngine(session, settings)
            cancelled = await sweep_stale_rides(engine, settings.stale_ride_minutes)
        if cancelled:
            logger.info("Sweep cycle: %d stale rides cancelled", cancelled)
        return cancelled
    finally:
        await lock.release()
