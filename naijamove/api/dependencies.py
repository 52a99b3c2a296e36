"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from naijamove.config import settings
from naijamove.infrastructure.database import async_session_factory
from naijamove.infrastructure.events import RideEventPublisher
from naijamove.infrastructure.redis_client import get_redis
from naijamove.services.dispatch import DispatchEngine
from naijamove.services.registry import UserRegistry


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_publisher() -> Optional[RideEventPublisher]:
    if not settings.events_enabled:
        return None
    return RideEventPublisher(await get_redis(), settings.events_channel)


async def get_engine(
    db: AsyncSession = Depends(get_db),
    publisher: Optional[RideEventPublisher] = Depends(get_publisher),
) -> DispatchEngine:
    return DispatchEngine(db, settings, publisher)


async def get_registry(engine: DispatchEngine = Depends(get_engine)) -> UserRegistry:
    return engine.registry
