"""Rate limiting middleware: Redis fixed-window counters per minute.

Each client IP gets a counter key like "budgetmanager:rl:{ip}:{bucket}:{minute}".
Credential endpoints (login, register, password-reset requests) share a
stricter bucket to slow down guessing and mail flooding.

Skips rate limiting entirely when Redis is unavailable (e.g. in tests).
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from budgetmanager.cache import get_redis

logger = structlog.get_logger()

STRICT_PATHS = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/request-password-reset",
    "/api/v1/auth/resend-activation",
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_strict = request.url.path.startswith(STRICT_PATHS)
        rpm = self.auth_rpm if is_strict else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_strict else "api"
        key = f"budgetmanager:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded. Try again later.",
                    "error_code": "RATE_LIMITED",
                    "request_id": getattr(request.state, "request_id", None),
                },
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
