"""
Request tracing and the error envelope shared by every MealPass endpoint.

Every failure leaves the API as
``{"success": false, "error": {"code", "message", "details"?}, "timestamp"}``.
"""

import time
import logging
from datetime import date
from uuid import UUID, uuid4
from decimal import Decimal

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.clock import utcnow
from app.exceptions import ServiceError

logger = logging.getLogger("mealpass.middleware")

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = {"/health-check"}


def make_serializable(obj):
    """Money, ids and dates become strings; containers are walked."""
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {key: make_serializable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [make_serializable(item) for item in obj]
    return obj


def error_envelope(status_code: int, code: str, message, details=None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = make_serializable(details)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "timestamp": utcnow().isoformat()},
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs one line per outcome.

    A caller-supplied X-Request-ID is reused so courier and kitchen apps can
    correlate their own logs with ours.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s failed after %.1fms",
                route,
                (time.perf_counter() - started) * 1000,
                extra={"request_id": request_id},
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        if request.url.path not in QUIET_PATHS:
            log = logger.warning if response.status_code >= 400 else logger.info
            log(
                "%s -> %s in %.1fms",
                route,
                response.status_code,
                elapsed_ms,
                extra={"request_id": request_id},
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms / 1000:.4f}"
        return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.info("Rejected payload for %s: %d problem(s)", request.url.path, len(errors))
    return error_envelope(
        status.HTTP_422_UNPROCESSABLE_CONTENT,
        "VALIDATION_ERROR",
        "Request validation failed",
        errors,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 404 for unknown routes, 405, 401 from the webhook guard
    return error_envelope(exc.status_code, f"HTTP_{exc.status_code}", exc.detail)


async def service_error_handler(request: Request, exc: ServiceError):
    """Domain errors carry their own code and HTTP status."""
    level = logging.ERROR if exc.http_status >= 500 else logging.INFO
    logger.log(level, "%s on %s: %s", exc.code, request.url.path, exc.message)

    body = exc.to_dict()
    return error_envelope(exc.http_status, body["code"], body["message"], body.get("details"))


async def general_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled %s on %s", type(exc).__name__, request.url.path)
    return error_envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )
