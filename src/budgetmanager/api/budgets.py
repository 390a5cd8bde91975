"""Monthly budget API (current month only)."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity, get_current_user
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.budget import BudgetCreate, BudgetRead, BudgetStatus
from budgetmanager.services.budget_service import BudgetService

router = APIRouter(prefix="/budgets")


def _svc(db: AsyncSession = Depends(get_db)) -> BudgetService:
    return BudgetService(db)


@router.post("", response_model=BudgetRead, status_code=201)
async def create_budget(
    body: BudgetCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: BudgetService = Depends(_svc),
):
    budget = await svc.create_budget(identity, body.category_id, body.amount)
    await svc.db.commit()
    return budget


@router.get("", response_model=list[BudgetStatus])
async def budget_status(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: BudgetService = Depends(_svc),
):
    """Each budget of the current month with what has been spent so far."""
    return await svc.budget_status(identity.user_id)
