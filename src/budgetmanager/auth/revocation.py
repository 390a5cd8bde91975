"""Token revocation registry.

A persisted deny-list of exact bearer-token strings. The access
decision point checks membership on every authenticated request; the
cleanup loop purges rows whose expiry has passed.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.db.models import RevokedToken

logger = structlog.get_logger()


class RevocationRegistry:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def revoke(self, token: str, expires_at: datetime) -> None:
        if await self.is_revoked(token):
            return
        self.db.add(RevokedToken(token=token, expiry_date=expires_at))
        await self.db.flush()

    async def is_revoked(self, token: str) -> bool:
        result = await self.db.execute(
            select(RevokedToken.id).where(RevokedToken.token == token).limit(1)
        )
        return result.first() is not None

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every entry whose expiry is in the past, in one batch."""
        cutoff = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            delete(RevokedToken).where(RevokedToken.expiry_date < cutoff)
        )
        purged = result.rowcount or 0
        if purged:
            logger.info("revocation.purged", count=purged)
        return purged
