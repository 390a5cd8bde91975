"""Dashboard API: read-only aggregates for the caller."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity, get_current_user
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.dashboard import (
    BudgetForecast,
    CategoryExpense,
    DashboardSummary,
    FinancialIndicators,
    MonthBalance,
)
from budgetmanager.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard")


def _svc(db: AsyncSession = Depends(get_db)) -> DashboardService:
    return DashboardService(db)


@router.get("", response_model=DashboardSummary)
async def summary(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: DashboardService = Depends(_svc),
):
    return await svc.summary(identity.user_id)


@router.get("/expenses-by-category", response_model=list[CategoryExpense])
async def expenses_by_category(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: DashboardService = Depends(_svc),
):
    return await svc.expenses_by_category(identity.user_id)


@router.get("/balance-per-month", response_model=list[MonthBalance])
async def balance_per_month(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: DashboardService = Depends(_svc),
):
    return await svc.balance_per_month(identity.user_id)


@router.get("/budget-forecast", response_model=BudgetForecast)
async def budget_forecast(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: DashboardService = Depends(_svc),
):
    return await svc.budget_forecast(identity.user_id)


@router.get("/financial-indicators", response_model=FinancialIndicators)
async def financial_indicators(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: DashboardService = Depends(_svc),
):
    return await svc.financial_indicators(identity.user_id)
