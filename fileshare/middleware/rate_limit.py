from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from fileshare.deps import rds
from fileshare.middleware.security_headers import BASELINE_HEADERS

logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "unknown") or "unknown"


def _hit(key: str, window_seconds: int) -> tuple[int, int]:
    """Count one request in the window; returns (count, seconds until reset)."""
    cur = int(rds.incr(key))  # type: ignore[arg-type]
    if cur == 1:
        rds.expire(key, window_seconds + 5)
    ttl = int(rds.ttl(key) or window_seconds)  # type: ignore[arg-type]
    return cur, ttl if ttl > 0 else window_seconds


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP limiter for unauthenticated requests. Fails open when Redis is down."""

    def __init__(self, app: ASGIApp, limit_per_minute: int = 100) -> None:
        super().__init__(app)
        self.limit = int(limit_per_minute)
        self._exempt_exact = {"/metrics", "/live", "/health", "/ready"}

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.headers.get("authorization"):
            return await call_next(request)
        if request.url.path in self._exempt_exact:
            return await call_next(request)

        key = f"rl:ip:{_client_ip(request)}:{int(time.time()) // 60}"
        try:
            cur, ttl = _hit(key, 60)
        except RedisError as e:
            logger.warning("RateLimitMiddleware failed to access Redis: %s", e)
            return await call_next(request)
        if cur > self.limit:
            # returned, not raised: exceptions in BaseHTTPMiddleware bypass the app's handlers
            headers = {"Retry-After": str(ttl), **BASELINE_HEADERS}
            return JSONResponse(status_code=429, content={"detail": "rate_limited"}, headers=headers)
        return await call_next(request)


def rate_limit(name: str, limit: int, window_seconds: int) -> Callable[..., Any]:
    """Dependency factory: limit one endpoint per client IP."""

    async def _dep(request: Request) -> None:
        window = max(1, int(window_seconds))
        key = f"rl:endpoint:{name}:{_client_ip(request)}:{int(time.time()) // window}"
        try:
            cur, ttl = _hit(key, window)
        except RedisError as e:
            logger.warning("rate_limit(%s) failed to access Redis: %s", name, e)
            return None
        if cur > int(limit):
            raise HTTPException(status_code=429, detail="rate_limited", headers={"Retry-After": str(ttl)})
        return None

    return _dep
