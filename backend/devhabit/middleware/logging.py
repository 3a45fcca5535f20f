"""
DevHabit Backend — Access Logging Middleware
==============================================

What:  One log line per request: method, path, status, duration, request ID.
Why:   Uvicorn's access log knows nothing about the correlation ID and cannot
       tell a 404 from a 412 by severity.

Levels:
    5xx → ERROR    4xx → WARNING    everything else → INFO

Request bodies and the Authorization header are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from devhabit.middleware.request_id import request_id_var

logger = logging.getLogger("devhabit.access")

# Probed every few seconds by orchestrators; logging them drowns real traffic
_QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in _QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"
        query = f"?{request.url.query}" if request.url.query else ""
        logger.log(
            level,
            "%s %s%s %d %.1fms [%s]",
            request.method,
            path,
            query,
            status,
            duration_ms,
            rid,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
