"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The lifespan
connects Redis (optional), starts the revoked-token cleanup loop and
tears both down, along with the database engine, on shutdown.
"""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from budgetmanager import __version__
from budgetmanager.api import api_router
from budgetmanager.api.errors import register_exception_handlers
from budgetmanager.cache import close_redis, init_redis
from budgetmanager.config import settings
from budgetmanager.db.engine import engine
from budgetmanager.middleware.rate_limit import RateLimitMiddleware
from budgetmanager.middleware.request_id import RequestIdMiddleware
from budgetmanager.services.token_cleanup import RevokedTokenCleanup

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Anything before `yield` runs at startup, after `yield` at shutdown."""
    logger.info(
        "budgetmanager.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    try:
        await init_redis()
        logger.info("budgetmanager.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional: only rate limiting depends on it
        logger.warning("budgetmanager.redis_unavailable", error=str(e))

    cleanup = RevokedTokenCleanup(
        interval=settings.revoked_token_cleanup_interval_seconds
    )
    cleanup_task = asyncio.create_task(cleanup.run_loop())
    app.state.token_cleanup = cleanup

    yield

    logger.info("budgetmanager.shutdown")

    cleanup.stop()
    try:
        await asyncio.wait_for(cleanup_task, timeout=10)
    except asyncio.TimeoutError:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass

    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Budget Manager",
        description="Personal budget tracking: transactions, goals, budgets and alerts",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # The last middleware added is the outermost:
    # CORS → RequestId → RateLimit → handler

    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: budgetmanager.main:app)
app = create_app()
