from typing import Optional

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    user_id: Optional[int] = None


class CategoryUpdate(CategoryCreate):
    version: Optional[int] = None


class CategoryRead(BaseModel):
    id: int
    name: str
    user_id: Optional[int] = None
    version: int

    model_config = {"from_attributes": True}
