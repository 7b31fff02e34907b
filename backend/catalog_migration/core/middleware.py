"""
Middleware for request logging and response headers.
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from catalog_migration.core.logging import get_logger, request_id_var

logger = get_logger(__name__)

# The admin UI polls import state roughly once per second while a run is active.
POLLING_SUFFIXES = ("/import",)


def _is_status_poll(request: Request) -> bool:
    return request.method == "GET" and request.url.path.endswith(POLLING_SUFFIXES)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with timing; status polls are logged at DEBUG."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        level = logging.DEBUG if _is_status_poll(request) else logging.INFO
        start_time = time.perf_counter()

        logger.log(
            level,
            f"Request started: {request.method} {request.url.path}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.query_params),
                    "client_ip": request.client.host if request.client else None,
                }
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "extra_fields": {
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                    }
                },
                exc_info=True,
            )
            request_id_var.reset(token)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        if response.status_code >= 500:
            level = logging.WARNING

        logger.log(
            level,
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            },
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        request_id_var.reset(token)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach fixed response headers; import state is live so nothing is cacheable."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
        "Cache-Control": "no-store",
    }
    HSTS = "max-age=31536000"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers.update(self.HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = self.HSTS
        return response
