from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class BudgetCreate(BaseModel):
    category_id: int
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)


class BudgetRead(BaseModel):
    id: int
    user_id: int
    category_id: int
    amount: Decimal
    month: date

    model_config = {"from_attributes": True}


class BudgetStatus(BaseModel):
    id: int
    category_id: int
    category_name: str
    month: date
    budget_amount: Decimal
    spent_amount: Decimal
