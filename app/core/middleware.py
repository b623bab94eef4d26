"""
Request logging and rate limiting for the delivery endpoints
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

RATE_LIMITED_SUFFIXES: Tuple[str, ...] = ("/deliver",)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limit on delivery requests per client.

    Only paths that start a pack delivery count; status polling, listings,
    health checks and archive downloads are never limited.
    """

    def __init__(self, app, calls: int = 10, period: int = 60):
        super().__init__(app)
        self.calls = calls
        self.period = period
        self.clients: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or not request.url.path.endswith(
            RATE_LIMITED_SUFFIXES
        ):
            return await call_next(request)

        client_ip = request.client.host if request.client is not None else "unknown"
        now = time.time()
        window = self.clients[client_ip]
        while window and window[0] <= now - self.period:
            window.popleft()

        if len(window) >= self.calls:
            logger.warning("Delivery rate limit exceeded for %s", client_ip)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": {
                        "error": "Rate limit exceeded",
                        "details": f"Maximum {self.calls} deliveries per {self.period} seconds",
                    }
                },
            )

        window.append(now)
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its status and latency"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        client_host = request.client.host if request.client is not None else "unknown"

        response = await call_next(request)

        logger.info(
            "%s %s from %s -> %d in %.3fs",
            request.method,
            request.url.path,
            client_host,
            response.status_code,
            time.perf_counter() - start_time,
        )
        return response
