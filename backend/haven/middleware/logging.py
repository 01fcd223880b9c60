"""
Handcrafted Haven Backend — Access Log Middleware
=================================================

What:  One log line per request on the "haven.access" logger.
Format:
    PATCH /api/profiles/me 200 12.4ms [a1b2c3d4] from 203.0.113.7

Levels follow the status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
The same values are attached as `extra` fields for JSON formatters.

Never logged: request bodies (passwords, contact messages), uploaded
bytes, the Authorization header.

Not logged at all: /health (polled every few seconds) and /api/files/*
(every product card loads an image).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from haven.middleware.request_id import request_id_var

logger = logging.getLogger("haven.access")

QUIET_PATH_PREFIXES = ("/health", "/api/files/")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(QUIET_PATH_PREFIXES):
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(
            level,
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
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
