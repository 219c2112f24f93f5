from __future__ import annotations

import time
import uuid
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from preflight.core.request_context import set_context, clear_context


logger = logging.getLogger("preflight.http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        # Accept upstream request id if present, else create one
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        upload_id = request.headers.get("x-upload-id")
        set_context(request_id=rid, upload_id=upload_id)

        t0 = time.monotonic()
        try:
            logger.info(
                "http.request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "content_length": request.headers.get("content-length"),
                },
            )
            try:
                response: Response = await call_next(request)
            except Exception:
                logger.exception(
                    "http.error",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": int((time.monotonic() - t0) * 1000),
                    },
                )
                raise

            logger.info(
                "http.response",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": int((time.monotonic() - t0) * 1000),
                },
            )

            response.headers["x-request-id"] = rid
            return response
        finally:
            clear_context()
