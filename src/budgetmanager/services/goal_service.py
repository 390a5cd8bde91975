"""Goal service: savings goals, owner-scoped, plus admin oversight."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.db.models import Goal, Transaction
from budgetmanager.errors import Conflict, Forbidden, NotFound
from budgetmanager.services.category_service import check_version

logger = structlog.get_logger()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class GoalService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_goals(self, user_id: int) -> list[Goal]:
        result = await self.db.execute(
            select(Goal).where(Goal.user_id == user_id).order_by(Goal.id)
        )
        return list(result.scalars().all())

    async def get_goal(self, user_id: int, goal_id: int) -> Goal:
        goal = await self.db.get(Goal, goal_id)
        if not goal:
            raise NotFound(f"Goal with ID {goal_id} not found.")
        if goal.user_id != user_id:
            raise Forbidden("You are not authorized to access this goal.")
        return goal

    async def create_goal(
        self,
        user_id: int,
        name: str,
        target_amount: Decimal,
        current_progress: Decimal = Decimal("0"),
        due_date: Optional[datetime] = None,
    ) -> Goal:
        goal = Goal(
            user_id=user_id,
            name=name.strip(),
            target_amount=target_amount,
            current_progress=min(current_progress, target_amount),
            due_date=_as_utc(due_date),
        )
        self.db.add(goal)
        await self.db.flush()
        logger.info("goal.created", goal_id=goal.id, user_id=user_id)
        return goal

    async def update_goal(
        self,
        user_id: int,
        goal_id: int,
        name: str,
        target_amount: Decimal,
        current_progress: Decimal,
        due_date: Optional[datetime] = None,
        version: Optional[int] = None,
    ) -> Goal:
        goal = await self.get_goal(user_id, goal_id)
        check_version(goal, version, "Goal")

        goal.name = name.strip()
        goal.target_amount = target_amount
        goal.current_progress = min(current_progress, target_amount)
        goal.due_date = _as_utc(due_date)
        await self.db.flush()
        return goal

    async def delete_goal(self, user_id: int, goal_id: int) -> None:
        """Owner delete; refused while transactions still point at the goal."""
        goal = await self.get_goal(user_id, goal_id)
        linked = await self.db.scalar(
            select(func.count()).select_from(Transaction).where(Transaction.goal_id == goal_id)
        )
        if linked:
            raise Conflict(
                "Can't delete a goal with linked transactions. "
                "Delete or unlink those transactions first."
            )
        await self.db.delete(goal)
        await self.db.flush()
        logger.info("goal.deleted", goal_id=goal_id)

    # ─── Admin ──────────────────────────────────────────

    async def list_all_goals(self) -> list[Goal]:
        result = await self.db.execute(select(Goal).order_by(Goal.user_id, Goal.id))
        return list(result.scalars().all())

    async def admin_delete_goal(self, goal_id: int) -> None:
        """Admin delete; linked transactions are detached, not removed."""
        goal = await self.db.get(Goal, goal_id)
        if not goal:
            raise NotFound(f"Goal with ID {goal_id} not found.")
        await self.db.execute(
            update(Transaction)
            .where(Transaction.goal_id == goal_id)
            .values(goal_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(goal)
        await self.db.flush()
        logger.info("admin.goal_deleted", goal_id=goal_id)
