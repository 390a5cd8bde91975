"""Dashboard service: read-only aggregates over one user's data."""

import calendar
import math
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.db.models import Category, Goal, Transaction, TransactionType

RECENT_TRANSACTIONS = 5
BALANCE_MONTHS = 12
_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def add_months(value: datetime, months: int) -> datetime:
    """Same day-of-month `months` later, clamped to the month's last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def recurring_amount(amount: Decimal, cadence: str, start: datetime, end: datetime) -> Decimal:
    """Projected total of one recurring transaction over [start, end).

    The cadence is read from the category name: "daily" repeats every
    day, "weekly" every started week, anything else once.
    """
    days = (end - start).days
    cadence = cadence.strip().lower()
    if cadence == "daily":
        return amount * days
    if cadence == "weekly":
        return amount * math.ceil(days / 7)
    return amount


def _round(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


class DashboardService:
    def __init__(
        self,
        db: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _totals(self, user_id: int) -> tuple[Decimal, Decimal]:
        result = await self.db.execute(
            select(Transaction.type, func.sum(Transaction.amount))
            .where(Transaction.user_id == user_id)
            .group_by(Transaction.type)
        )
        sums = {tx_type: Decimal(total or 0) for tx_type, total in result.all()}
        return (
            sums.get(TransactionType.INCOME, _ZERO),
            sums.get(TransactionType.EXPENSE, _ZERO),
        )

    async def summary(self, user_id: int) -> dict:
        income, expenses = await self._totals(user_id)

        recent = await self.db.execute(
            select(Transaction, Category.name)
            .join(Category, Category.id == Transaction.category_id)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(RECENT_TRANSACTIONS)
        )
        recent_transactions = [
            {
                "id": tx.id,
                "date": tx.date,
                "amount": tx.amount,
                "category_name": name,
                "description": tx.description,
                "type": tx.type,
            }
            for tx, name in recent.all()
        ]

        goals = list(
            (await self.db.execute(select(Goal).where(Goal.user_id == user_id))).scalars()
        )
        # Goals with a due date first (soonest first), then least complete.
        goals.sort(
            key=lambda g: (
                g.due_date is None,
                g.due_date or datetime.max.replace(tzinfo=timezone.utc),
                g.current_progress / g.target_amount if g.target_amount else _ZERO,
            )
        )
        saving_goals = []
        for goal in goals:
            pct = (
                _round(goal.current_progress / goal.target_amount * 100)
                if goal.target_amount
                else _ZERO
            )
            saving_goals.append(
                {
                    "id": goal.id,
                    "name": goal.name,
                    "target_amount": goal.target_amount,
                    "current_progress": goal.current_progress,
                    "progress_percentage": pct,
                    "due_date": goal.due_date,
                    "is_close_to_completion": pct >= 80,
                }
            )

        return {
            "total_income": income,
            "total_expenses": expenses,
            "balance": income - expenses,
            "recent_transactions": recent_transactions,
            "saving_goals": saving_goals,
        }

    async def expenses_by_category(self, user_id: int) -> list[dict]:
        result = await self.db.execute(
            select(Category.name, func.sum(Transaction.amount))
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.user_id == user_id,
                Transaction.type == TransactionType.EXPENSE,
            )
            .group_by(Category.name)
            .order_by(Category.name)
        )
        return [
            {"category": name, "total_amount": Decimal(total or 0)}
            for name, total in result.all()
        ]

    async def balance_per_month(self, user_id: int) -> list[dict]:
        """Income and expenses per calendar month, latest 12 months with data."""
        result = await self.db.execute(
            select(Transaction.date, Transaction.type, Transaction.amount).where(
                Transaction.user_id == user_id
            )
        )
        months: dict[date, dict[TransactionType, Decimal]] = {}
        for when, tx_type, amount in result.all():
            key = date(when.year, when.month, 1)
            bucket = months.setdefault(key, {})
            bucket[tx_type] = bucket.get(tx_type, _ZERO) + amount

        latest = sorted(months)[-BALANCE_MONTHS:]
        return [
            {
                "year_month": month.strftime("%B %Y"),
                "income": months[month].get(TransactionType.INCOME, _ZERO),
                "expenses": months[month].get(TransactionType.EXPENSE, _ZERO),
            }
            for month in latest
        ]

    async def budget_forecast(self, user_id: int) -> dict:
        """Projected income/expenses of recurring transactions for the next month."""
        start = self._clock()
        end = add_months(start, 1)
        result = await self.db.execute(
            select(Transaction.type, Transaction.amount, Category.name)
            .join(Category, Category.id == Transaction.category_id)
            .where(Transaction.user_id == user_id, Transaction.is_recurring.is_(True))
        )
        income = expenses = _ZERO
        for tx_type, amount, cadence in result.all():
            projected = recurring_amount(amount, cadence, start, end)
            if tx_type == TransactionType.INCOME:
                income += projected
            else:
                expenses += projected
        return {
            "predicted_income": income,
            "predicted_expenses": expenses,
            "predicted_balance": income - expenses,
        }

    async def financial_indicators(self, user_id: int) -> dict:
        first = await self.db.scalar(
            select(func.min(Transaction.date)).where(Transaction.user_id == user_id)
        )
        if first is None:
            return {
                "savings_percentage": _ZERO,
                "expenses_to_income_ratio": _ZERO,
                "average_monthly_expenses": _ZERO,
                "average_monthly_income": _ZERO,
            }
        if first.tzinfo is None:
            first = first.replace(tzinfo=timezone.utc)

        income, expenses = await self._totals(user_id)
        months_active = max(1, (self._clock() - first) // timedelta(days=30))
        return {
            "savings_percentage": (
                _round((income - expenses) / income * 100) if income > 0 else _ZERO
            ),
            "expenses_to_income_ratio": (
                _round(expenses / income * 100) if income > 0 else _ZERO
            ),
            "average_monthly_expenses": _round(expenses / months_active),
            "average_monthly_income": _round(income / months_active),
        }
