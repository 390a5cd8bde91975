from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class GoalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    current_progress: Decimal = Field(Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    due_date: Optional[datetime] = None


class GoalUpdate(GoalCreate):
    version: Optional[int] = None


class GoalRead(BaseModel):
    id: int
    user_id: int
    name: str
    target_amount: Decimal
    current_progress: Decimal
    due_date: Optional[datetime] = None
    created_at: datetime
    version: int

    model_config = {"from_attributes": True}
