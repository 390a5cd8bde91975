"""Monthly budget service.

Budgets are always set for the current calendar month (UTC); there is
at most one per (user, category, month).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity
from budgetmanager.db.models import Category, MonthlyBudget, Transaction, TransactionType
from budgetmanager.errors import Conflict, ValidationError
from budgetmanager.services.category_service import CategoryService
from budgetmanager.services.transaction_service import (
    day_start,
    month_start,
    next_month_start,
)

logger = structlog.get_logger()


class BudgetService:
    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def current_month(self) -> date:
        return month_start(self._clock())

    async def create_budget(
        self, identity: CurrentIdentity, category_id: int, amount: Decimal
    ) -> MonthlyBudget:
        category = await self.db.get(Category, category_id)
        if not category or not CategoryService.can_use(identity, category):
            raise ValidationError(
                "Invalid request data.",
                errors={"category_id": ["Category does not exist."]},
            )

        month = self.current_month()
        existing = await self.db.scalar(
            select(MonthlyBudget.id).where(
                MonthlyBudget.user_id == identity.user_id,
                MonthlyBudget.category_id == category_id,
                MonthlyBudget.month == month,
            )
        )
        if existing:
            raise Conflict("Budget for this category already exists.")

        budget = MonthlyBudget(
            user_id=identity.user_id,
            category_id=category_id,
            amount=amount,
            month=month,
        )
        self.db.add(budget)
        await self.db.flush()
        logger.info("budget.created", budget_id=budget.id, category_id=category_id)
        return budget

    async def budget_status(self, user_id: int) -> list[dict]:
        """Budget vs. expenses so far, per category, for the current month."""
        month = self.current_month()
        spent = (
            select(
                Transaction.category_id.label("category_id"),
                func.sum(Transaction.amount).label("spent"),
            )
            .where(
                Transaction.user_id == user_id,
                Transaction.type == TransactionType.EXPENSE,
                Transaction.date >= day_start(month),
                Transaction.date < day_start(next_month_start(month)),
            )
            .group_by(Transaction.category_id)
            .subquery()
        )
        q = (
            select(MonthlyBudget, Category.name, spent.c.spent)
            .join(Category, Category.id == MonthlyBudget.category_id)
            .outerjoin(spent, spent.c.category_id == MonthlyBudget.category_id)
            .where(MonthlyBudget.user_id == user_id, MonthlyBudget.month == month)
            .order_by(Category.name)
        )
        result = await self.db.execute(q)
        return [
            {
                "id": budget.id,
                "category_id": budget.category_id,
                "category_name": name,
                "month": budget.month,
                "budget_amount": budget.amount,
                "spent_amount": Decimal(amount_spent or 0),
            }
            for budget, name, amount_spent in result.all()
        ]
