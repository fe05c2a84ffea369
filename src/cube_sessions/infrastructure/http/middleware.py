"""Request logging middleware."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

from fastapi import Request

logger = logging.getLogger("cube_sessions.http")

REQUEST_ID_HEADER = "x-request-id"


async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
) -> Any:
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    context = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
    }
    logger.info("request_received", extra={"data": context})

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", extra={"data": context})
        raise

    logger.info(
        "request_completed",
        extra={
            "data": {
                **context,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        },
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


__all__ = ["REQUEST_ID_HEADER", "request_logging_middleware"]
