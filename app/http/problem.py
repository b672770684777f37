"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that produce
application/problem+json responses for HTTP errors, request validation
failures, persistence failures and anything unexpected.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
import logging
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.logic.errors import PersistenceError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(
    status: int,
    title: str,
    detail: Optional[str] = None,
    *,
    code: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    body: Dict[str, Any] = {"title": title, "status": status}
    if detail is not None:
        body["detail"] = detail
    if code is not None:
        body["code"] = code
    body.update(extra)
    return JSONResponse(
        jsonable_encoder(body),
        status_code=status,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(exc.status_code or 500)
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()} or None
    if isinstance(exc.detail, dict):
        return JSONResponse(exc.detail, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=headers)
    return problem_response(status, "Error", str(exc.detail or ""), headers=headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    logger.info(
        "validation_422 route=%s method=%s errors_cnt=%s",
        request.url.path,
        request.method,
        len(exc.errors()),
    )
    return problem_response(
        422,
        "Invalid Request",
        "Request validation failed",
        code="request_validation_failed",
        errors=list(exc.errors()),
    )


async def handle_persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:  # noqa: D401
    logger.error(
        "persistence_error route=%s operation=%s retryable=%s",
        request.url.path,
        exc.operation,
        exc.retryable,
    )
    headers = {"Retry-After": "1"} if exc.retryable else None
    return problem_response(
        503,
        "Service Unavailable",
        exc.user_message,
        code="persistence_failed",
        headers=headers,
        retryable=exc.retryable,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error route=%s", request.url.path, exc_info=exc)
    return problem_response(500, "Internal Server Error", code="internal_error")


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_persistence_error",
    "handle_unexpected_error",
]
