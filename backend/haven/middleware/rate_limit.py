"""
Handcrafted Haven Backend — Rate Limiting Middleware
====================================================

What:  Per-IP sliding window limit on API requests.
How:   Each client IP keeps the timestamps of its recent requests. Stale
       timestamps are dropped on every request; a client already holding
       `rate_limit_requests` timestamps inside `rate_limit_window` seconds
       gets 429 with Retry-After until its oldest request ages out.

AuthService applies the same algorithm per email to failed sign-ins, so a
single account is protected even when attempts come from many IPs.

Scope:
    State is in process memory. With several uvicorn workers each worker
    counts separately, so the effective limit is multiplied by the worker
    count.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from haven.config import settings
from haven.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# Drop idle clients once this many IPs are being tracked
CLEANUP_THRESHOLD = 10_000


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Limits come from settings on every request, so tests and operators can
    change them without rebuilding the app.

    Exempt: health probes, API docs and stored images.
    """

    EXEMPT_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
    EXEMPT_PREFIXES = ("/api/files/",)

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)

    def _is_exempt(self, path: str) -> bool:
        return path in self.EXEMPT_PATHS or path.startswith(self.EXEMPT_PREFIXES)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self._is_exempt(request.url.path):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - settings.rate_limit_window

        recent = [ts for ts in self._requests[client_ip] if ts > window_start]
        self._requests[client_ip] = recent

        if len(recent) >= settings.rate_limit_requests:
            retry_after = int(recent[0] + settings.rate_limit_window - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds",
                client_ip,
                len(recent),
                settings.rate_limit_window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Too many requests. Please wait a moment before trying again.",
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        recent.append(now)

        if len(self._requests) > CLEANUP_THRESHOLD:
            self._cleanup_idle_clients(window_start)

        return await call_next(request)

    def _cleanup_idle_clients(self, window_start: float) -> None:
        idle = [
            ip for ip, stamps in self._requests.items()
            if not stamps or stamps[-1] <= window_start
        ]
        for ip in idle:
            del self._requests[ip]
        logger.debug("Dropped %d idle rate-limit entries", len(idle))
