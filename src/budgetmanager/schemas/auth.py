"""Pydantic schemas for the auth endpoints.

Password policy and confirmation are checked in the service layer so
the same rules apply to registration, reset and admin-created users.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from budgetmanager.auth.roles import Role


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255)
    password: str
    confirm_password: str


class RegisterResponse(BaseModel):
    id: int
    email: str
    role: Role

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user_id: int
    email: str
    role: Role


class EmailRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str
    confirm_password: str


class MeResponse(BaseModel):
    id: int
    email: str
    role: Role
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    model_config = {"from_attributes": True}
