from datetime import datetime

from pydantic import BaseModel


class AlertRead(BaseModel):
    id: int
    message: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class MarkAsReadRequest(BaseModel):
    alert_ids: list[int]


class MarkAsReadResponse(BaseModel):
    marked: int
