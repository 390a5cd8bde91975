"""Account lifecycle: registration, activation, login, logout, password reset.

Services only flush; the route that owns the request commits. The one
exception is where an email has to go out before anything is made
durable: the flush happens, the mail is sent, and a transport failure
rolls the session back before raising, so no account exists without
its activation message having been handed to the transport.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.jwt import IssuedToken, TokenService
from budgetmanager.auth.password import (
    PASSWORD_POLICY_MESSAGE,
    burn_verification,
    hash_password,
    is_strong_password,
    is_valid_email,
    normalize_email,
    verify_password,
)
from budgetmanager.auth.revocation import RevocationRegistry
from budgetmanager.db.models import User
from budgetmanager.errors import (
    Conflict,
    ErrorCode,
    InternalError,
    NotFound,
    Unauthorized,
    ValidationError,
)
from budgetmanager.services.email import EmailDeliveryError, EmailNotifier

logger = structlog.get_logger()

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
NOT_ACTIVATED_MESSAGE = "Account is not activated."


def new_opaque_token() -> str:
    """Random single-use token for activation, reset and email-change links."""
    return secrets.token_urlsafe(32)


def validate_email_shape(email: str) -> str:
    email = normalize_email(email)
    if not is_valid_email(email):
        raise ValidationError(
            "Invalid request data.",
            errors={"email": ["A valid email address is required."]},
        )
    return email


def validate_new_password(password: str, confirm_password: str) -> None:
    """Policy check plus confirmation match; raises ValidationError."""
    if not is_strong_password(password):
        raise ValidationError(
            "Invalid request data.",
            errors={"password": [PASSWORD_POLICY_MESSAGE]},
        )
    if password != confirm_password:
        raise ValidationError(
            "Passwords do not match.",
            error_code=ErrorCode.PASSWORDS_MISMATCH,
            errors={"confirm_password": ["Passwords do not match."]},
        )


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalars().first()


async def send_or_rollback(
    db: AsyncSession,
    notifier: EmailNotifier,
    recipient: str,
    subject: str,
    body: str,
) -> None:
    """Send a mail; on transport failure undo pending changes and raise 500."""
    try:
        await notifier.send(recipient, subject, body)
    except EmailDeliveryError:
        await db.rollback()
        logger.error("email.delivery_failed", subject=subject)
        raise InternalError()


class AuthService:
    """Business logic for authentication flows."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: EmailNotifier,
        tokens: Optional[TokenService] = None,
        *,
        public_base_url: str = "http://localhost:8000",
        reset_token_ttl: timedelta = timedelta(hours=1),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.tokens = tokens
        self.public_base_url = public_base_url.rstrip("/")
        self.reset_token_ttl = reset_token_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ─── Registration & activation ──────────────────────

    async def register(
        self, email: str, password: str, confirm_password: str
    ) -> User:
        """Create an inactive account and mail its activation link.

        All validation happens before the store is touched.
        """
        email = validate_email_shape(email)
        validate_new_password(password, confirm_password)

        if await find_user_by_email(self.db, email):
            logger.info("auth.register_duplicate")
            raise Conflict(
                "User with this email already exists.",
                error_code=ErrorCode.USER_ALREADY_EXISTS,
            )

        user = User(
            email=email,
            password_hash=hash_password(password),
            is_active=False,
            activation_token=new_opaque_token(),
        )
        self.db.add(user)
        await self.db.flush()

        await send_or_rollback(
            self.db,
            self.notifier,
            user.email,
            "Activate your account",
            self._activation_body(user.activation_token),
        )
        logger.info("auth.registered", user_id=user.id)
        return user

    async def confirm_email(self, token: str) -> User:
        result = await self.db.execute(
            select(User).where(User.activation_token == token)
        )
        user = result.scalars().first()
        if not user or not token:
            raise NotFound("Invalid activation token.", error_code=ErrorCode.INVALID_TOKEN)
        if user.is_active:
            raise ValidationError(
                "User is already active.", error_code=ErrorCode.USER_ALREADY_ACTIVE
            )

        user.is_active = True
        user.activation_token = None
        await self.db.flush()
        logger.info("auth.activated", user_id=user.id)
        return user

    async def resend_activation(self, email: str) -> None:
        user = await find_user_by_email(self.db, email)
        if not user:
            raise NotFound("User not found.", error_code=ErrorCode.USER_NOT_FOUND)
        if user.is_active:
            raise ValidationError(
                "User is already active.", error_code=ErrorCode.USER_ALREADY_ACTIVE
            )

        user.activation_token = new_opaque_token()
        await self.db.flush()
        await send_or_rollback(
            self.db,
            self.notifier,
            user.email,
            "Activate your account",
            self._activation_body(user.activation_token),
        )

    # ─── Sessions ───────────────────────────────────────

    async def login(self, email: str, password: str) -> tuple[User, IssuedToken]:
        """Check credentials, stamp last_login, mint a token.

        Unknown email and wrong password look identical to the client;
        only the log events differ.
        """
        user = await find_user_by_email(self.db, email)
        if user is None:
            burn_verification(password)
            logger.info("auth.login_unknown_email")
            raise Unauthorized(
                INVALID_CREDENTIALS_MESSAGE, error_code=ErrorCode.INVALID_CREDENTIALS
            )

        if not verify_password(password, user.password_hash):
            logger.info("auth.login_bad_password", user_id=user.id)
            raise Unauthorized(
                INVALID_CREDENTIALS_MESSAGE, error_code=ErrorCode.INVALID_CREDENTIALS
            )

        if not user.is_active:
            logger.info("auth.login_inactive", user_id=user.id)
            raise Unauthorized(
                NOT_ACTIVATED_MESSAGE, error_code=ErrorCode.ACCOUNT_NOT_ACTIVATED
            )

        user.last_login = self._clock()
        await self.db.flush()

        issued = self.tokens.issue(user.id, user.email, user.role)
        logger.info("auth.login", user_id=user.id)
        return user, issued

    async def logout(self, token: str, expires_at: datetime) -> None:
        await RevocationRegistry(self.db).revoke(token, expires_at)
        logger.info("auth.logout")

    # ─── Password reset ─────────────────────────────────

    async def request_password_reset(self, email: str) -> None:
        user = await find_user_by_email(self.db, email)
        if not user:
            raise NotFound("User not found.", error_code=ErrorCode.USER_NOT_FOUND)

        user.reset_token = new_opaque_token()
        user.reset_token_expiry = self._clock() + self.reset_token_ttl
        await self.db.flush()

        link = f"{self.public_base_url}/reset-password?token={user.reset_token}"
        await send_or_rollback(
            self.db,
            self.notifier,
            user.email,
            "Reset your password",
            f"To reset your password, open this link: {link}\n"
            "The link is valid for one hour.",
        )
        logger.info("auth.reset_requested", user_id=user.id)

    async def reset_password(
        self, token: str, new_password: str, confirm_password: str
    ) -> None:
        validate_new_password(new_password, confirm_password)

        result = await self.db.execute(select(User).where(User.reset_token == token))
        user = result.scalars().first()
        if not user or not token:
            raise ValidationError("Invalid token.", error_code=ErrorCode.INVALID_TOKEN)
        if user.reset_token_expiry is None or user.reset_token_expiry < self._clock():
            raise ValidationError("Expired token.", error_code=ErrorCode.EXPIRED_TOKEN)

        user.password_hash = hash_password(new_password)
        user.reset_token = None
        user.reset_token_expiry = None
        await self.db.flush()
        logger.info("auth.password_reset", user_id=user.id)

    def _activation_body(self, token: str) -> str:
        link = f"{self.public_base_url}/api/v1/auth/confirm-email?token={token}"
        return f"Welcome! Confirm your email address by opening this link: {link}"
