"""Admin API: user management plus oversight of goals and categories.

Every route here is mounted behind the Admin role (see api/__init__.py).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.api.transactions import SortOrder
from budgetmanager.auth.dependencies import CurrentIdentity, require_admin
from budgetmanager.auth.roles import Role
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.common import Message, Page
from budgetmanager.schemas.goal import GoalRead
from budgetmanager.schemas.user import (
    ActiveUpdate,
    AdminUserCreate,
    AdminUserRead,
    AdminUserUpdate,
    RoleUpdate,
)
from budgetmanager.services.category_service import CategoryService
from budgetmanager.services.goal_service import GoalService
from budgetmanager.services.user_service import UserService, UserSortKey

router = APIRouter(prefix="/admin")


def _users(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


# ─── Users ──────────────────────────────────────────────


@router.get("/users", response_model=Page[AdminUserRead])
async def list_users(
    is_active: Optional[bool] = None,
    roles: Optional[list[Role]] = Query(None),
    sort_by: UserSortKey = UserSortKey.EMAIL,
    sort_order: SortOrder = SortOrder.ASC,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    svc: UserService = Depends(_users),
):
    users, total = await svc.list_users(
        is_active=is_active,
        roles=roles,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
        page=page,
        page_size=page_size,
    )
    items = [AdminUserRead.model_validate(u) for u in users]
    return Page[AdminUserRead].build(items, page, page_size, total)


@router.post("/users", response_model=AdminUserRead, status_code=201)
async def create_user(body: AdminUserCreate, svc: UserService = Depends(_users)):
    user = await svc.create_user(
        body.email,
        body.password,
        body.confirm_password,
        role=body.role,
        is_active=body.is_active,
    )
    await svc.db.commit()
    return user


@router.put("/users/{user_id}", response_model=AdminUserRead)
async def update_user(
    user_id: int, body: AdminUserUpdate, svc: UserService = Depends(_users)
):
    user = await svc.update_user(user_id, email=body.email, role=body.role)
    await svc.db.commit()
    return user


@router.patch("/users/{user_id}/role", response_model=AdminUserRead)
async def set_role(user_id: int, body: RoleUpdate, svc: UserService = Depends(_users)):
    user = await svc.set_role(user_id, body.role)
    await svc.db.commit()
    return user


@router.patch("/users/{user_id}/active", response_model=AdminUserRead)
async def set_active(
    user_id: int,
    body: ActiveUpdate,
    identity: CurrentIdentity = Depends(require_admin),
    svc: UserService = Depends(_users),
):
    user = await svc.set_active(identity.user_id, user_id, body.is_active)
    await svc.db.commit()
    return user


@router.delete("/users/{user_id}", response_model=Message)
async def delete_user(
    user_id: int,
    identity: CurrentIdentity = Depends(require_admin),
    svc: UserService = Depends(_users),
):
    await svc.delete_user(identity.user_id, user_id)
    await svc.db.commit()
    return Message(message=f"User with ID {user_id} has been deleted.")


# ─── Goals ──────────────────────────────────────────────


@router.get("/goals", response_model=list[GoalRead])
async def list_all_goals(db: AsyncSession = Depends(get_db)):
    return await GoalService(db).list_all_goals()


@router.delete("/goals/{goal_id}", response_model=Message)
async def delete_goal(goal_id: int, db: AsyncSession = Depends(get_db)):
    """Delete any goal; transactions linked to it are kept and unlinked."""
    await GoalService(db).admin_delete_goal(goal_id)
    await db.commit()
    return Message(message=f"Goal with ID {goal_id} has been deleted.")


# ─── Categories ─────────────────────────────────────────


@router.delete("/categories/{category_id}", response_model=Message)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    await CategoryService(db).delete_category(category_id)
    await db.commit()
    return Message(message=f"Category with ID {category_id} has been deleted.")
