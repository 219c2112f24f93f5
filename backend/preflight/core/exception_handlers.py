"""
exception_handlers.py
- Purpose: Convert AppError (and generic exceptions) into consistent API responses.

Also logs errors with request context so failures are diagnosable. For a file
that could not be rendered, the log carries the strategies that were tried
and the last tool error, which the response body does not.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from preflight.core import AppError, ErrorCode, ErrorReason
from preflight.engine.errors import AttemptsExhausted, ToolError

logger = logging.getLogger("preflight.exceptions")


def _failure_context(exc: BaseException) -> dict[str, Any]:
    """Engine-side detail behind an error: attempt chain and the failing tool."""
    cause = exc.__cause__
    out: dict[str, Any] = {}
    if isinstance(cause, AttemptsExhausted):
        out["attempts"] = cause.attempts
        last = cause.last_error
        if last is not None:
            out["last_error"] = str(last)
            out["last_error_type"] = type(last).__name__
            if isinstance(last, ToolError) and last.cmd:
                out["tool"] = last.cmd[0]
    elif isinstance(cause, ToolError) and cause.cmd:
        out["tool"] = cause.cmd[0]
    return out


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(
        "app_error",
        extra={
            "path": str(getattr(request.url, "path", "")),
            "method": request.method,
            "status_code": exc.status_code,
            "code": getattr(exc, "code", None),
            "reason": getattr(exc, "reason", None),
            "details": exc.details,
            **_failure_context(exc),
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        extra={
            "path": str(getattr(request.url, "path", "")),
            "method": request.method,
            "error_type": type(exc).__name__,
            **_failure_context(exc),
        },
    )
    return JSONResponse(
        status_code=500,
        content={"error": {"code": ErrorCode.INTERNAL_ERROR, "reason": ErrorReason.INTERNAL_ERROR.value}},
    )
