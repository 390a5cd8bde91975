"""Category API. Creating and editing needs the Admin or Pro role."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity, get_current_user, require_roles
from budgetmanager.auth.roles import Role
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.category import CategoryCreate, CategoryRead, CategoryUpdate
from budgetmanager.services.category_service import CategoryService

router = APIRouter(prefix="/categories")

_editor = require_roles(Role.ADMIN, Role.PRO)


def _svc(db: AsyncSession = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


@router.get("", response_model=list[CategoryRead])
async def list_categories(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CategoryService = Depends(_svc),
):
    return await svc.list_categories(identity)


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(
    category_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: CategoryService = Depends(_svc),
):
    return await svc.get_category(identity, category_id)


@router.post("", response_model=CategoryRead, status_code=201)
async def create_category(
    body: CategoryCreate,
    identity: CurrentIdentity = Depends(_editor),
    svc: CategoryService = Depends(_svc),
):
    category = await svc.create_category(identity, body.name, body.user_id)
    await svc.db.commit()
    return category


@router.put("/{category_id}", response_model=CategoryRead)
async def update_category(
    category_id: int,
    body: CategoryUpdate,
    identity: CurrentIdentity = Depends(_editor),
    svc: CategoryService = Depends(_svc),
):
    category = await svc.update_category(
        identity, category_id, body.name, body.user_id, body.version
    )
    await svc.db.commit()
    return category
