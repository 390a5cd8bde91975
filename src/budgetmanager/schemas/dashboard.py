"""Pydantic schemas for dashboard aggregates."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from budgetmanager.db.models import TransactionType


class RecentTransaction(BaseModel):
    id: int
    date: datetime
    amount: Decimal
    category_name: str
    description: Optional[str] = None
    type: TransactionType


class GoalProgress(BaseModel):
    id: int
    name: str
    target_amount: Decimal
    current_progress: Decimal
    progress_percentage: Decimal
    due_date: Optional[datetime] = None
    is_close_to_completion: bool


class DashboardSummary(BaseModel):
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    recent_transactions: list[RecentTransaction]
    saving_goals: list[GoalProgress]


class CategoryExpense(BaseModel):
    category: str
    total_amount: Decimal


class MonthBalance(BaseModel):
    year_month: str
    income: Decimal
    expenses: Decimal


class BudgetForecast(BaseModel):
    predicted_income: Decimal
    predicted_expenses: Decimal
    predicted_balance: Decimal


class FinancialIndicators(BaseModel):
    savings_percentage: Decimal
    expenses_to_income_ratio: Decimal
    average_monthly_expenses: Decimal
    average_monthly_income: Decimal
