"""User service: profile self-service and admin account management."""

import enum
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.password import hash_password, verify_password
from budgetmanager.auth.roles import Role
from budgetmanager.db.models import (
    Alert,
    Category,
    Goal,
    MonthlyBudget,
    Transaction,
    User,
)
from budgetmanager.errors import (
    Conflict,
    ErrorCode,
    NotFound,
    ValidationError,
)
from budgetmanager.services.auth_service import (
    find_user_by_email,
    new_opaque_token,
    send_or_rollback,
    validate_email_shape,
    validate_new_password,
)
from budgetmanager.services.email import EmailNotifier

logger = structlog.get_logger()


class UserSortKey(str, enum.Enum):
    EMAIL = "email"
    ROLE = "role"
    IS_ACTIVE = "is_active"
    CREATED_AT = "created_at"
    LAST_LOGIN = "last_login"


_SORT_COLUMNS = {
    UserSortKey.EMAIL: User.email,
    UserSortKey.ROLE: User.role,
    UserSortKey.IS_ACTIVE: User.is_active,
    UserSortKey.CREATED_AT: User.created_at,
    UserSortKey.LAST_LOGIN: User.last_login,
}


class UserService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[EmailNotifier] = None,
        *,
        public_base_url: str = "http://localhost:8000",
        email_change_ttl: timedelta = timedelta(hours=24),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.public_base_url = public_base_url.rstrip("/")
        self.email_change_ttl = email_change_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound(
                f"User with ID {user_id} not found.",
                error_code=ErrorCode.USER_NOT_FOUND,
            )
        return user

    # ─── Profile ────────────────────────────────────────

    async def change_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        user = await self.get_user(user_id)
        if not verify_password(current_password, user.password_hash):
            raise ValidationError(
                "Current password is incorrect.",
                errors={"current_password": ["Current password is incorrect."]},
            )
        validate_new_password(new_password, confirm_password)

        user.password_hash = hash_password(new_password)
        await self.db.flush()
        logger.info("user.password_changed", user_id=user.id)

    async def request_email_change(self, user_id: int, new_email: str) -> None:
        """Park the new address and mail a confirmation link to it."""
        new_email = validate_email_shape(new_email)
        user = await self.get_user(user_id)

        if new_email == user.email or await find_user_by_email(self.db, new_email):
            raise Conflict(
                "Email is already in use.", error_code=ErrorCode.USER_ALREADY_EXISTS
            )

        user.new_email = new_email
        user.email_change_token = new_opaque_token()
        user.email_change_token_expiry = self._clock() + self.email_change_ttl
        await self.db.flush()

        link = (
            f"{self.public_base_url}/api/v1/users/profile/email/confirm"
            f"?token={user.email_change_token}"
        )
        await send_or_rollback(
            self.db,
            self.notifier,
            new_email,
            "Confirm your new email address",
            f"Confirm your new email address by opening this link: {link}",
        )
        logger.info("user.email_change_requested", user_id=user.id)

    async def confirm_email_change(self, token: str) -> User:
        result = await self.db.execute(
            select(User).where(User.email_change_token == token)
        )
        user = result.scalars().first()
        if (
            not token
            or not user
            or not user.new_email
            or user.email_change_token_expiry is None
            or user.email_change_token_expiry < self._clock()
        ):
            raise ValidationError(
                "Invalid or expired token.", error_code=ErrorCode.INVALID_TOKEN
            )
        if await find_user_by_email(self.db, user.new_email):
            raise Conflict(
                "Email is already in use.", error_code=ErrorCode.USER_ALREADY_EXISTS
            )

        user.email = user.new_email
        user.new_email = None
        user.email_change_token = None
        user.email_change_token_expiry = None
        await self.db.flush()
        logger.info("user.email_changed", user_id=user.id)
        return user

    # ─── Admin ──────────────────────────────────────────

    async def list_users(
        self,
        *,
        is_active: Optional[bool] = None,
        roles: Optional[list[Role]] = None,
        sort_by: UserSortKey = UserSortKey.EMAIL,
        descending: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[User], int]:
        q = select(User)
        if is_active is not None:
            q = q.where(User.is_active == is_active)
        if roles:
            q = q.where(User.role.in_(roles))

        total = await self.db.scalar(select(func.count()).select_from(q.subquery()))

        column = _SORT_COLUMNS[sort_by]
        q = q.order_by(column.desc() if descending else column.asc(), User.id.asc())
        q = q.offset((page - 1) * page_size).limit(page_size)
        result = await self.db.execute(q)
        return list(result.scalars().all()), total or 0

    async def create_user(
        self,
        email: str,
        password: str,
        confirm_password: str,
        role: Role = Role.USER,
        is_active: bool = False,
    ) -> User:
        email = validate_email_shape(email)
        validate_new_password(password, confirm_password)
        if await find_user_by_email(self.db, email):
            raise Conflict(
                "User with this email already exists.",
                error_code=ErrorCode.USER_ALREADY_EXISTS,
            )

        user = User(
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
            activation_token=None if is_active else new_opaque_token(),
        )
        self.db.add(user)
        await self.db.flush()
        logger.info("admin.user_created", user_id=user.id, role=role.value)
        return user

    async def update_user(
        self,
        user_id: int,
        *,
        email: Optional[str] = None,
        role: Optional[Role] = None,
    ) -> User:
        user = await self.get_user(user_id)
        if email:
            email = validate_email_shape(email)
            if email != user.email and await find_user_by_email(self.db, email):
                raise Conflict(
                    "User with this email already exists.",
                    error_code=ErrorCode.USER_ALREADY_EXISTS,
                )
            user.email = email
        if role is not None:
            user.role = role
        await self.db.flush()
        logger.info("admin.user_updated", user_id=user.id)
        return user

    async def set_role(self, user_id: int, role: Role) -> User:
        user = await self.get_user(user_id)
        user.role = role
        await self.db.flush()
        logger.info("admin.role_changed", user_id=user.id, role=role.value)
        return user

    async def set_active(self, actor_id: int, user_id: int, is_active: bool) -> User:
        if actor_id == user_id:
            raise ValidationError("You cannot change your own active status.")
        user = await self.get_user(user_id)
        user.is_active = is_active
        await self.db.flush()
        logger.info("admin.active_changed", user_id=user.id, is_active=is_active)
        return user

    async def delete_user(self, actor_id: int, user_id: int) -> None:
        """Remove a user and everything that belongs to them.

        Refused while the user owns categories; those may be referenced
        by other users' data.
        """
        if actor_id == user_id:
            raise ValidationError("You cannot delete yourself.")
        user = await self.get_user(user_id)

        owned = await self.db.scalar(
            select(func.count()).select_from(Category).where(Category.user_id == user_id)
        )
        if owned:
            raise Conflict(
                "User owns categories and cannot be deleted. "
                "Delete or reassign the categories first."
            )

        # Explicit cascade; SQLite does not enforce ON DELETE without a pragma.
        await self.db.execute(delete(Transaction).where(Transaction.user_id == user_id))
        await self.db.execute(
            update(Transaction).where(
                Transaction.goal_id.in_(select(Goal.id).where(Goal.user_id == user_id))
            ).values(goal_id=None),
            execution_options={"synchronize_session": False},
        )
        await self.db.execute(delete(Goal).where(Goal.user_id == user_id))
        await self.db.execute(delete(MonthlyBudget).where(MonthlyBudget.user_id == user_id))
        await self.db.execute(delete(Alert).where(Alert.user_id == user_id))
        await self.db.delete(user)
        await self.db.flush()
        logger.info("admin.user_deleted", user_id=user_id)
