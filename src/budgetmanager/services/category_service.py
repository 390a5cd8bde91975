"""Category service.

Categories are either global (user_id NULL, managed by admins) or
private to one user. Non-admins see globals plus their own.
"""

from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity
from budgetmanager.auth.roles import Role
from budgetmanager.db.models import Category, MonthlyBudget, Transaction, User
from budgetmanager.errors import Conflict, Forbidden, NotFound, ValidationError

logger = structlog.get_logger()


def check_version(entity, expected: Optional[int], label: str) -> None:
    """Reject an update made against an out-of-date copy."""
    if expected is not None and expected != entity.version:
        raise Conflict(
            f"{label} was modified by another request. Refresh and try again."
        )


class CategoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_categories(self, identity: CurrentIdentity) -> list[Category]:
        q = select(Category).order_by(Category.name, Category.id)
        if not identity.is_admin:
            q = q.where(
                or_(Category.user_id.is_(None), Category.user_id == identity.user_id)
            )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def get_category(self, identity: CurrentIdentity, category_id: int) -> Category:
        category = await self._load(category_id)
        if not self.can_use(identity, category):
            raise Forbidden("You do not have permission to access this category.")
        return category

    @staticmethod
    def can_use(identity: CurrentIdentity, category: Category) -> bool:
        return (
            identity.is_admin
            or category.user_id is None
            or category.user_id == identity.user_id
        )

    async def create_category(
        self, identity: CurrentIdentity, name: str, user_id: Optional[int] = None
    ) -> Category:
        """Admins may create global or per-user categories; Pro only their own."""
        if identity.role == Role.PRO:
            if user_id is not None and user_id != identity.user_id:
                raise Forbidden("Pro users can only create categories for themselves.")
            user_id = identity.user_id
        elif not identity.is_admin:
            raise Forbidden("You do not have permission to create categories.")

        if user_id is not None and not await self.db.get(User, user_id):
            raise ValidationError(
                "Invalid request data.", errors={"user_id": ["User does not exist."]}
            )

        category = Category(name=name.strip(), user_id=user_id)
        self.db.add(category)
        await self.db.flush()
        logger.info("category.created", category_id=category.id, owner=user_id)
        return category

    async def update_category(
        self,
        identity: CurrentIdentity,
        category_id: int,
        name: str,
        user_id: Optional[int] = None,
        version: Optional[int] = None,
    ) -> Category:
        category = await self._load(category_id)
        check_version(category, version, "Category")

        if identity.is_admin:
            if user_id is not None and not await self.db.get(User, user_id):
                raise ValidationError(
                    "Invalid request data.", errors={"user_id": ["User does not exist."]}
                )
            category.user_id = user_id
        elif category.user_id != identity.user_id:
            raise Forbidden("You can only edit your own categories.")

        category.name = name.strip()
        await self.db.flush()
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self._load(category_id)

        used = await self.db.scalar(
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.category_id == category_id)
        )
        budgeted = await self.db.scalar(
            select(func.count())
            .select_from(MonthlyBudget)
            .where(MonthlyBudget.category_id == category_id)
        )
        if used or budgeted:
            raise Conflict(
                "Category is used by transactions or budgets and cannot be deleted."
            )

        await self.db.delete(category)
        await self.db.flush()
        logger.info("category.deleted", category_id=category_id)

    async def _load(self, category_id: int) -> Category:
        category = await self.db.get(Category, category_id)
        if not category:
            raise NotFound(f"Category with ID {category_id} not found.")
        return category
