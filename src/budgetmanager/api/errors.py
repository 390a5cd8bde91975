"""Exception handlers: one JSON error shape for every failure.

    {"detail": str, "error_code": str, "request_id": str, "errors": {...}}

Business errors carry their own status and code. Request-body problems
become 422 VALIDATION_ERROR with per-field messages. Optimistic-lock
and unique-constraint races become 409. Anything else is logged in full
and answered with a generic 500 that leaks nothing.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from budgetmanager.errors import BudgetError, ErrorCode, InternalError

logger = structlog.get_logger()

_STATUS_TO_CODE = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    error_code: str,
    errors: Optional[dict[str, list[str]]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    content: dict[str, Any] = {
        "detail": message,
        "error_code": error_code,
        "request_id": _request_id(request),
    }
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append(err.get("msg", "Invalid value."))
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BudgetError)
    async def handle_budget_error(request: Request, exc: BudgetError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "request.failed",
            status_code=exc.status_code,
            error_code=exc.error_code.value,
            message=exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return error_response(
            request,
            exc.status_code,
            exc.message,
            exc.error_code.value,
            exc.errors,
            headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.info("request.invalid", fields=sorted(errors))
        return error_response(
            request,
            422,
            "Invalid request data.",
            ErrorCode.VALIDATION_ERROR.value,
            errors,
        )

    @app.exception_handler(StaleDataError)
    async def handle_stale_data(request: Request, exc: StaleDataError):
        logger.warning("request.concurrency_conflict", error=str(exc))
        return error_response(
            request,
            409,
            "The record was modified by another request. Refresh and try again.",
            ErrorCode.CONFLICT.value,
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("request.integrity_conflict", error=str(exc.orig))
        return error_response(
            request,
            409,
            "The request conflicts with existing data.",
            ErrorCode.CONFLICT.value,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_TO_CODE.get(exc.status_code, ErrorCode.VALIDATION_ERROR)
        return error_response(
            request,
            exc.status_code,
            str(exc.detail),
            code.value,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "request.unhandled_exception",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        generic = InternalError()
        return error_response(
            request, generic.status_code, generic.message, generic.error_code.value
        )
