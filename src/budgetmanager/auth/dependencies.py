"""FastAPI auth dependencies.

These run before route handlers (as Depends()) and make up the access
decision for a request:

1. no "Authorization: Bearer" header -> anonymous (route decides)
2. signature, expiry, issuer and audience checked -> 401 on failure
3. token present in the revocation registry -> 401
4. role not in the route's allowed set -> 403

FastAPI caches a dependency within one request, so the checks run once
however many routes or sub-dependencies ask for the identity.
"""

from datetime import datetime
from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.jwt import (
    ROLE_CLAIM,
    USER_ID_CLAIM,
    TokenError,
    TokenExpiredError,
    TokenService,
)
from budgetmanager.auth.revocation import RevocationRegistry
from budgetmanager.auth.roles import Role
from budgetmanager.config import settings
from budgetmanager.db.engine import get_db
from budgetmanager.errors import ErrorCode, Forbidden, Unauthorized
from budgetmanager.services.email import EmailNotifier, SmtpEmailNotifier

logger = structlog.get_logger()


class CurrentIdentity:
    """The authenticated caller, as read from a verified token."""

    def __init__(
        self,
        user_id: int,
        email: str,
        role: Role,
        token: str,
        expires_at: datetime,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.token = token
        self.expires_at = expires_at

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles


@lru_cache
def get_token_service() -> TokenService:
    return TokenService(settings.jwt_config())


@lru_cache
def get_email_notifier() -> EmailNotifier:
    return SmtpEmailNotifier.from_settings(settings)


def get_bearer_token(
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        return token or None
    return None


async def get_current_user_optional(
    token: Optional[str] = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
    db: AsyncSession = Depends(get_db),
) -> Optional[CurrentIdentity]:
    """Identity for the request, or None when no bearer token was sent."""
    if token is None:
        return None

    try:
        claims = tokens.verify(token)
    except TokenExpiredError as e:
        raise Unauthorized(str(e), error_code=ErrorCode.EXPIRED_TOKEN)
    except TokenError as e:
        logger.info("auth.token_rejected", reason=str(e))
        raise Unauthorized("Invalid token.", error_code=ErrorCode.INVALID_TOKEN)

    if await RevocationRegistry(db).is_revoked(token):
        raise Unauthorized(
            "Token has been revoked.", error_code=ErrorCode.TOKEN_REVOKED
        )

    try:
        user_id = int(claims[USER_ID_CLAIM])
        role = Role(claims.get(ROLE_CLAIM, Role.USER.value))
    except (TypeError, ValueError):
        raise Unauthorized("Invalid token.", error_code=ErrorCode.INVALID_TOKEN)

    return CurrentIdentity(
        user_id=user_id,
        email=claims["sub"],
        role=role,
        token=token,
        expires_at=TokenService.expiry_of(claims),
    )


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Identity for the request (required, 401 if anonymous)."""
    if identity is None:
        raise Unauthorized(
            "Authentication required.", error_code=ErrorCode.MISSING_TOKEN
        )
    return identity


def require_roles(*roles: Role):
    """Dependency factory restricting a route to the given roles."""
    allowed = frozenset(roles)

    async def _check(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if identity.role not in allowed:
            logger.info(
                "auth.forbidden",
                user_id=identity.user_id,
                role=identity.role.value,
            )
            raise Forbidden("You do not have permission to perform this action.")
        return identity

    return _check


require_admin = require_roles(Role.ADMIN)
