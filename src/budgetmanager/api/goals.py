"""Goal API: the caller's own savings goals."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity, get_current_user
from budgetmanager.db.engine import get_db
from budgetmanager.schemas.common import Message
from budgetmanager.schemas.goal import GoalCreate, GoalRead, GoalUpdate
from budgetmanager.services.goal_service import GoalService

router = APIRouter(prefix="/goals")


def _svc(db: AsyncSession = Depends(get_db)) -> GoalService:
    return GoalService(db)


@router.get("", response_model=list[GoalRead])
async def list_goals(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GoalService = Depends(_svc),
):
    return await svc.list_goals(identity.user_id)


@router.get("/{goal_id}", response_model=GoalRead)
async def get_goal(
    goal_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GoalService = Depends(_svc),
):
    return await svc.get_goal(identity.user_id, goal_id)


@router.post("", response_model=GoalRead, status_code=201)
async def create_goal(
    body: GoalCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GoalService = Depends(_svc),
):
    goal = await svc.create_goal(identity.user_id, **body.model_dump())
    await svc.db.commit()
    return goal


@router.put("/{goal_id}", response_model=GoalRead)
async def update_goal(
    goal_id: int,
    body: GoalUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GoalService = Depends(_svc),
):
    goal = await svc.update_goal(identity.user_id, goal_id, **body.model_dump())
    await svc.db.commit()
    return goal


@router.delete("/{goal_id}", response_model=Message)
async def delete_goal(
    goal_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: GoalService = Depends(_svc),
):
    await svc.delete_goal(identity.user_id, goal_id)
    await svc.db.commit()
    return Message(message=f"Goal with ID {goal_id} has been deleted.")
