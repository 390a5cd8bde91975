from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity, get_current_user
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.alert import AlertRead, MarkAsReadRequest, MarkAsReadResponse
from budgetmanager.services.alert_service import AlertService

router = APIRouter(prefix="/alerts")


def _svc(db: AsyncSession = Depends(get_db)) -> AlertService:
    return AlertService(db)


@router.get("", response_model=list[AlertRead])
async def list_alerts(
    unread_only: bool = False,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AlertService = Depends(_svc),
):
    return await svc.list_alerts(identity.user_id, unread_only)


@router.post("/mark-as-read", response_model=MarkAsReadResponse)
async def mark_as_read(
    body: MarkAsReadRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AlertService = Depends(_svc),
):
    marked = await svc.mark_as_read(identity.user_id, body.alert_ids)
    await svc.db.commit()
    return MarkAsReadResponse(marked=marked)
