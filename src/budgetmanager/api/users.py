"""Profile API: the caller's own account.

GET /users/profile/email/confirm is public: the token in the link is
the credential.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import (
    CurrentIdentity,
    get_current_user,
    get_email_notifier,
)
from budgetmanager.config import settings
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.common import Message
from budgetmanager.schemas.user import (
    ChangeEmailRequest,
    ChangePasswordRequest,
    ProfileRead,
)
from budgetmanager.services.email import EmailNotifier
from budgetmanager.services.user_service import UserService

router = APIRouter(prefix="/users")


def _svc(
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotifier = Depends(get_email_notifier),
) -> UserService:
    return UserService(
        db,
        notifier,
        public_base_url=settings.public_base_url,
        email_change_ttl=timedelta(hours=settings.email_change_expire_hours),
    )


@router.get("/profile", response_model=ProfileRead)
async def get_profile(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    return await svc.get_user(identity.user_id)


@router.post("/profile/change-password", response_model=Message)
async def change_password(
    body: ChangePasswordRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    await svc.change_password(
        identity.user_id,
        body.current_password,
        body.new_password,
        body.confirm_password,
    )
    await svc.db.commit()
    return Message(message="Password changed successfully.")


@router.put("/profile/email", response_model=Message)
async def request_email_change(
    body: ChangeEmailRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    """Start an email change. A confirmation link goes to the new address."""
    await svc.request_email_change(identity.user_id, body.new_email)
    await svc.db.commit()
    return Message(message="Confirmation link has been sent to the new email address.")


@router.get("/profile/email/confirm", response_model=Message)
async def confirm_email_change(
    token: str = Query(..., min_length=1), svc: UserService = Depends(_svc)
):
    await svc.confirm_email_change(token)
    await svc.db.commit()
    return Message(message="Email address has been changed.")
