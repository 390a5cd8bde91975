"""Pydantic schemas for transactions."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from budgetmanager.db.models import TransactionType


class TransactionCreate(BaseModel):
    category_id: int
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    type: TransactionType
    date: datetime
    description: Optional[str] = Field(None, max_length=500)
    is_recurring: bool = False
    goal_id: Optional[int] = None
    user_id: Optional[int] = Field(
        None, description="Owner; defaults to the caller. Only admins may set another user."
    )


class TransactionUpdate(TransactionCreate):
    version: Optional[int] = None


class TransactionRead(BaseModel):
    id: int
    user_id: int
    category_id: int
    category_name: Optional[str] = None
    goal_id: Optional[int] = None
    amount: Decimal
    type: TransactionType
    date: datetime
    description: Optional[str] = None
    is_recurring: bool
    version: int

    model_config = {"from_attributes": True}
