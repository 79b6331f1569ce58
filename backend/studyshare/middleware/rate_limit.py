"""
StudyShare Backend — Rate Limiting Middleware
===============================================

What:  Per-IP sliding-window request limit (settings.rate_limit_requests per
       settings.rate_limit_window seconds).
How:   Keeps the timestamps of each IP's requests inside the window. A
       request arriving when the window is full gets 429 with Retry-After
       set to the time until the oldest timestamp leaves the window.

Scope:
    State is in process memory, so each uvicorn worker counts separately.
    Health checks and the API docs are never limited.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from studyshare.config import settings
from studyshare.exceptions import RateLimitExceededError
from studyshare.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# Idle IPs are swept after this many tracked requests
_SWEEP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._since_sweep = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - settings.rate_limit_window

        hits = self._hits[client_ip]
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= settings.rate_limit_requests:
            exc = RateLimitExceededError(
                retry_after=int(hits[0] + settings.rate_limit_window - now) + 1
            )
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds",
                client_ip,
                len(hits),
                settings.rate_limit_window,
            )
            # Raised errors would bypass the app's exception handlers here,
            # so the 429 body is built directly in the same shape
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        hits.append(now)
        self._since_sweep += 1
        if self._since_sweep >= _SWEEP_EVERY:
            self._sweep(window_start)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        """Drop IPs whose newest request already left the window."""
        self._since_sweep = 0
        idle = [ip for ip, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for ip in idle:
            del self._hits[ip]
        if idle:
            logger.debug("Rate limiter dropped %d idle IPs", len(idle))
