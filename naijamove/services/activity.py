"""Append-only audit trail of user actions with bounded retention."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from naijamove.infrastructure.models import ActivityModel, UserModel
from naijamove.infrastructure.repositories import ActivityLogRepository

UNKNOWN_IP = "Unknown"


class ActivityLog:
    def __init__(self, session: AsyncSession, retention: int = 1000):
        self.session = session
        self.retention = retention
        self.repo = ActivityLogRepository(session)

    async def record(
        self,
        user_id: int,
        action: str,
        details: str,
        ip: Optional[str] = None,
    ) -> ActivityModel:
        """Stage an entry in the caller's transaction; the caller commits."""
        if ip is None:
            user = await self.session.get(UserModel, user_id)
            ip = (user.ip if user else None) or UNKNOWN_IP
        return await self.repo.append(
            ActivityModel(user_id=user_id, action=action, details=details, ip=ip),
            self.retention,
        )

    async def for_user(self, user_id: int) -> list[ActivityModel]:
        return await self.repo.list_for_user(user_id)
