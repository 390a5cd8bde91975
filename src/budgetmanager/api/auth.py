"""Auth API: registration, activation, login, logout, password reset.

- POST /auth/register → inactive account + activation email
- GET  /auth/confirm-email?token= → activate
- POST /auth/resend-activation → new activation email
- POST /auth/login → email/password → bearer token
- POST /auth/logout → revoke the presented token
- POST /auth/request-password-reset → reset email (link valid 1 hour)
- POST /auth/reset-password → token + new password
- GET  /auth/me → current user
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import (
    CurrentIdentity,
    get_current_user,
    get_email_notifier,
    get_token_service,
)
from budgetmanager.auth.jwt import TokenService
from budgetmanager.config import settings
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.auth import (
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from budgetmanager.schemas.common import Message
from budgetmanager.services.auth_service import AuthService
from budgetmanager.services.email import EmailNotifier
from budgetmanager.services.user_service import UserService

router = APIRouter(prefix="/auth")


def _svc(
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_email_notifier),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(
        db,
        notifier,
        tokens,
        public_base_url=settings.public_base_url,
        reset_token_ttl=timedelta(minutes=settings.password_reset_expire_minutes),
    )


# ─── Registration ───────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    """Create an inactive account. The activation link is emailed."""
    user = await svc.register(body.email, body.password, body.confirm_password)
    await svc.db.commit()
    return user


@router.get("/confirm-email", response_model=Message)
async def confirm_email(
    token: str = Query(..., min_length=1), svc: AuthService = Depends(_svc)
):
    await svc.confirm_email(token)
    await svc.db.commit()
    return Message(message="Email confirmed. You can now log in.")


@router.post("/resend-activation", response_model=Message)
async def resend_activation(body: EmailRequest, svc: AuthService = Depends(_svc)):
    await svc.resend_activation(body.email)
    await svc.db.commit()
    return Message(message="Activation link has been sent.")


# ─── Sessions ───────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    user, issued = await svc.login(body.email, body.password)
    await svc.db.commit()
    return LoginResponse(
        access_token=issued.token,
        expires_at=issued.expires_at,
        user_id=user.id,
        email=user.email,
        role=user.role,
    )


@router.post("/logout", response_model=Message)
async def logout(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AuthService = Depends(_svc),
):
    """Revoke the bearer token used for this request."""
    await svc.logout(identity.token, identity.expires_at)
    await svc.db.commit()
    return Message(message="Logged out.")


@router.get("/me", response_model=MeResponse)
async def me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).get_user(identity.user_id)


# ─── Password reset ─────────────────────────────────────


@router.post("/request-password-reset", response_model=Message)
async def request_password_reset(body: EmailRequest, svc: AuthService = Depends(_svc)):
    await svc.request_password_reset(body.email)
    await svc.db.commit()
    return Message(message="Password reset link has been sent.")


@router.post("/reset-password", response_model=Message)
async def reset_password(body: ResetPasswordRequest, svc: AuthService = Depends(_svc)):
    await svc.reset_password(body.token, body.new_password, body.confirm_password)
    await svc.db.commit()
    return Message(message="Password has been reset.")
