"""Pydantic schemas for profile and admin user management."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from budgetmanager.auth.roles import Role


class ProfileRead(BaseModel):
    id: int
    email: str
    role: Role
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None
    new_email: Optional[str] = None

    model_config = {"from_attributes": True}


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str


class ChangeEmailRequest(BaseModel):
    new_email: str = Field(..., max_length=255)


# ─── Admin ──────────────────────────────────────────────

class AdminUserRead(BaseModel):
    id: int
    email: str
    role: Role
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AdminUserCreate(BaseModel):
    email: str = Field(..., max_length=255)
    password: str
    confirm_password: str
    role: Role = Role.USER
    is_active: bool = False


class AdminUserUpdate(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    role: Optional[Role] = None


class RoleUpdate(BaseModel):
    role: Role


class ActiveUpdate(BaseModel):
    is_active: bool
