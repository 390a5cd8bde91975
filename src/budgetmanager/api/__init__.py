"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.

Auth is applied at the include_router level where a whole router needs
it. The auth and users routers mix public and protected routes, so
they declare their dependencies per route instead.
"""

from fastapi import APIRouter, Depends

from budgetmanager.api.admin import router as admin_router
from budgetmanager.api.alerts import router as alerts_router
from budgetmanager.api.auth import router as auth_router
from budgetmanager.api.budgets import router as budgets_router
from budgetmanager.api.categories import router as categories_router
from budgetmanager.api.dashboard import router as dashboard_router
from budgetmanager.api.goals import router as goals_router
from budgetmanager.api.health import router as health_router
from budgetmanager.api.transactions import router as transactions_router
from budgetmanager.api.users import router as users_router
from budgetmanager.auth.dependencies import get_current_user, require_admin

_auth = [Depends(get_current_user)]
_admin = [Depends(require_admin)]

api_router = APIRouter(prefix="/api/v1")

# Open, or protected per route
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(users_router, tags=["users"])

# Protected routes: require a valid, unrevoked bearer token
api_router.include_router(categories_router, tags=["categories"], dependencies=_auth)
api_router.include_router(transactions_router, tags=["transactions"], dependencies=_auth)
api_router.include_router(goals_router, tags=["goals"], dependencies=_auth)
api_router.include_router(budgets_router, tags=["budgets"], dependencies=_auth)
api_router.include_router(alerts_router, tags=["alerts"], dependencies=_auth)
api_router.include_router(dashboard_router, tags=["dashboard"], dependencies=_auth)

# Admin only
api_router.include_router(admin_router, tags=["admin"], dependencies=_admin)
