"""Alert service: user notifications raised by budget and goal events."""

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.db.models import Alert
from budgetmanager.errors import NotFound, ValidationError

logger = structlog.get_logger()


class AlertService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_alert(self, user_id: int, message: str) -> Alert:
        alert = Alert(user_id=user_id, message=message)
        self.db.add(alert)
        await self.db.flush()
        logger.info("alert.created", user_id=user_id, alert_id=alert.id)
        return alert

    async def list_alerts(self, user_id: int, unread_only: bool = False) -> list[Alert]:
        q = select(Alert).where(Alert.user_id == user_id)
        if unread_only:
            q = q.where(Alert.is_read.is_(False))
        q = q.order_by(Alert.created_at.desc(), Alert.id.desc())
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def mark_as_read(self, user_id: int, alert_ids: list[int]) -> int:
        """Mark the caller's alerts read. Ids of other users are ignored."""
        if not alert_ids:
            raise ValidationError(
                "No alert IDs provided.", errors={"alert_ids": ["At least one ID is required."]}
            )

        result = await self.db.execute(
            update(Alert)
            .where(Alert.user_id == user_id, Alert.id.in_(alert_ids))
            .values(is_read=True),
            execution_options={"synchronize_session": False},
        )
        marked = result.rowcount or 0
        if not marked:
            raise NotFound("No alerts found for the provided IDs.")
        return marked
