"""
Middleware for rate limiting and request logging.
"""

import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


# Rate limiter instance
limiter = Limiter(key_func=get_remote_address)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Middleware to log every request with its status and duration."""

    SKIP_PATHS = ["/health", "/docs", "/openapi.json", "/redoc"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip logging for health checks and docs
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.1f} ms, client={get_remote_address(request)})"
        )
        return response


def get_rate_limiter():
    """Get the rate limiter instance."""
    return limiter
