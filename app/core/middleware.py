"""
HTTP middleware: request id binding and access logging.
"""

import time
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .request_context import set_request_id, clear_request_context, new_request_id

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a request id for the call and logs method, path, status and time"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        set_request_id(request_id)
        start_time = time.time()

        logger.info(f"Request: {request.method} {request.url.path}")
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"- Status: {response.status_code} - Time: {process_time:.3f}s",
            extra={"request_id": request_id, "status_code": response.status_code,
                   "duration_ms": process_time * 1000},
        )
        return response
