"""Transaction service.

Besides CRUD, creating an expense feeds two side effects:

- a linked goal gains the amount as progress, capped at the target;
  reaching the target raises a "goal completed" alert
- a monthly budget for the same category and month is compared with
  the month's spending; overspend or <10% headroom raises an alert
"""

import enum
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Union

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity
from budgetmanager.db.models import (
    Category,
    Goal,
    MonthlyBudget,
    Transaction,
    TransactionType,
    User,
)
from budgetmanager.errors import Forbidden, NotFound, ValidationError
from budgetmanager.services.alert_service import AlertService
from budgetmanager.services.category_service import CategoryService, check_version

logger = structlog.get_logger()

_BUDGET_WARNING_SHARE = Decimal("0.1")


class TransactionSortKey(str, enum.Enum):
    DATE = "date"
    AMOUNT = "amount"
    CATEGORY = "category"
    DESCRIPTION = "description"
    TYPE = "type"


def month_start(value: Union[datetime, date]) -> date:
    return date(value.year, value.month, 1)


def next_month_start(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def format_amount(value: Decimal) -> str:
    return f"{value.quantize(Decimal('0.01')):,}"


def like_pattern(text: str) -> str:
    """Substring LIKE pattern matching ``text`` literally, with ``\\`` as escape."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class TransactionService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.alerts = AlertService(db)

    async def list_transactions(
        self,
        identity: CurrentIdentity,
        *,
        type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        sort_by: TransactionSortKey = TransactionSortKey.DATE,
        descending: bool = True,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[tuple[Transaction, str]], int]:
        """Filtered, sorted, paged listing. Admins see every user's rows.

        Returns (transaction, category name) pairs and the total count.
        """
        q = select(Transaction, Category.name).join(
            Category, Category.id == Transaction.category_id
        )
        if not identity.is_admin:
            q = q.where(Transaction.user_id == identity.user_id)
        if type is not None:
            q = q.where(Transaction.type == type)
        if category_id is not None:
            q = q.where(Transaction.category_id == category_id)
        if start_date is not None:
            q = q.where(Transaction.date >= day_start(start_date))
        if end_date is not None:
            # inclusive of the whole end day
            q = q.where(Transaction.date < day_start(end_date + timedelta(days=1)))
        if search:
            q = q.where(Transaction.description.ilike(like_pattern(search), escape="\\"))

        total = await self.db.scalar(select(func.count()).select_from(q.subquery()))

        column = {
            TransactionSortKey.DATE: Transaction.date,
            TransactionSortKey.AMOUNT: Transaction.amount,
            TransactionSortKey.CATEGORY: Category.name,
            TransactionSortKey.DESCRIPTION: Transaction.description,
            TransactionSortKey.TYPE: Transaction.type,
        }[sort_by]
        tiebreak = Transaction.id.desc() if descending else Transaction.id.asc()
        q = q.order_by(column.desc() if descending else column.asc(), tiebreak)
        q = q.offset((page - 1) * page_size).limit(page_size)

        result = await self.db.execute(q)
        return [(row[0], row[1]) for row in result.all()], total or 0

    async def get_transaction(
        self, identity: CurrentIdentity, transaction_id: int
    ) -> Transaction:
        transaction = await self.db.get(Transaction, transaction_id)
        if not transaction:
            raise NotFound(f"Transaction with ID {transaction_id} not found.")
        if not identity.is_admin and transaction.user_id != identity.user_id:
            raise Forbidden("You do not have permission to access this transaction.")
        return transaction

    async def create_transaction(
        self,
        identity: CurrentIdentity,
        *,
        category_id: int,
        amount: Decimal,
        type: TransactionType,
        date: datetime,
        description: Optional[str] = None,
        is_recurring: bool = False,
        goal_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Transaction:
        owner_id = user_id if user_id is not None else identity.user_id
        if owner_id != identity.user_id and not identity.is_admin:
            raise Forbidden(
                "You do not have permission to add a transaction for another user."
            )
        if owner_id != identity.user_id and not await self.db.get(User, owner_id):
            raise ValidationError(
                "Invalid request data.", errors={"user_id": ["User does not exist."]}
            )

        category = await self._usable_category(identity, category_id)
        goal = await self._linkable_goal(owner_id, type, goal_id)

        transaction = Transaction(
            user_id=owner_id,
            category_id=category.id,
            goal_id=goal.id if goal else None,
            amount=amount,
            type=type,
            date=_as_utc(date),
            description=description,
            is_recurring=is_recurring,
        )
        self.db.add(transaction)
        await self.db.flush()

        if goal is not None:
            await self._apply_goal_progress(goal, amount)
        if type == TransactionType.EXPENSE:
            await self._check_budget(transaction, category)

        logger.info(
            "transaction.created",
            transaction_id=transaction.id,
            user_id=owner_id,
            type=type.value,
        )
        return transaction

    async def update_transaction(
        self,
        identity: CurrentIdentity,
        transaction_id: int,
        *,
        category_id: int,
        amount: Decimal,
        type: TransactionType,
        date: datetime,
        description: Optional[str] = None,
        is_recurring: bool = False,
        goal_id: Optional[int] = None,
        user_id: Optional[int] = None,
        version: Optional[int] = None,
    ) -> Transaction:
        """Replace a transaction's fields. Goal progress is not recomputed."""
        transaction = await self.get_transaction(identity, transaction_id)
        check_version(transaction, version, "Transaction")

        owner_id = user_id if user_id is not None else transaction.user_id
        if owner_id != transaction.user_id:
            if not identity.is_admin:
                raise Forbidden(
                    "You do not have permission to change the owner of this transaction."
                )
            if not await self.db.get(User, owner_id):
                raise ValidationError(
                    "Invalid request data.", errors={"user_id": ["User does not exist."]}
                )

        category = await self._usable_category(identity, category_id)
        goal = await self._linkable_goal(owner_id, type, goal_id)

        transaction.user_id = owner_id
        transaction.category_id = category.id
        transaction.goal_id = goal.id if goal else None
        transaction.amount = amount
        transaction.type = type
        transaction.date = _as_utc(date)
        transaction.description = description
        transaction.is_recurring = is_recurring
        await self.db.flush()
        logger.info("transaction.updated", transaction_id=transaction.id)
        return transaction

    async def delete_transaction(
        self, identity: CurrentIdentity, transaction_id: int
    ) -> None:
        transaction = await self.get_transaction(identity, transaction_id)
        await self.db.delete(transaction)
        await self.db.flush()
        logger.info("transaction.deleted", transaction_id=transaction_id)

    async def category_name(self, category_id: int) -> str:
        return await self.db.scalar(
            select(Category.name).where(Category.id == category_id)
        ) or ""

    # ─── Side effects ───────────────────────────────────

    async def _usable_category(
        self, identity: CurrentIdentity, category_id: int
    ) -> Category:
        category = await self.db.get(Category, category_id)
        if not category or not CategoryService.can_use(identity, category):
            raise ValidationError(
                "Invalid request data.",
                errors={"category_id": ["Category does not exist."]},
            )
        return category

    async def _linkable_goal(
        self, owner_id: int, type: TransactionType, goal_id: Optional[int]
    ) -> Optional[Goal]:
        if goal_id is None:
            return None
        if type != TransactionType.EXPENSE:
            raise ValidationError(
                "Only expense transactions can be linked to a goal.",
                errors={"goal_id": ["Only expense transactions can be linked to a goal."]},
            )
        goal = await self.db.get(Goal, goal_id)
        if not goal or goal.user_id != owner_id:
            raise ValidationError(
                "Invalid request data.", errors={"goal_id": ["Goal does not exist."]}
            )
        return goal

    async def _apply_goal_progress(self, goal: Goal, amount: Decimal) -> None:
        if goal.current_progress >= goal.target_amount:
            return
        progress = goal.current_progress + amount
        if progress >= goal.target_amount:
            goal.current_progress = goal.target_amount
            await self.alerts.create_alert(
                goal.user_id,
                f"Congratulations! You have completed the goal '{goal.name}'.",
            )
        else:
            goal.current_progress = progress
        await self.db.flush()

    async def _check_budget(self, transaction: Transaction, category: Category) -> None:
        start = month_start(transaction.date)
        budget = await self.db.scalar(
            select(MonthlyBudget).where(
                MonthlyBudget.user_id == transaction.user_id,
                MonthlyBudget.category_id == transaction.category_id,
                MonthlyBudget.month == start,
            )
        )
        if budget is None:
            return

        spent = await self.db.scalar(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.user_id == transaction.user_id,
                Transaction.category_id == transaction.category_id,
                Transaction.type == TransactionType.EXPENSE,
                Transaction.date >= day_start(start),
                Transaction.date < day_start(next_month_start(start)),
            )
        )
        spent = Decimal(spent)

        if spent > budget.amount:
            await self.alerts.create_alert(
                transaction.user_id,
                f"You have exceeded the budget for category {category.name} "
                f"by {format_amount(spent - budget.amount)}.",
            )
        elif budget.amount - spent < _BUDGET_WARNING_SHARE * budget.amount:
            await self.alerts.create_alert(
                transaction.user_id,
                f"You have less than 10% of the budget left for category {category.name}.",
            )
