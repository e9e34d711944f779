from __future__ import annotations

import hashlib
import time
import uuid

from fastapi import Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from fileshare.security import parse_token
from fileshare.telemetry.logging import get_logger
from fileshare.telemetry.metrics import api_request_duration_seconds, api_requests_total


def _user_id_hash(request: Request) -> str | None:
    # derived from the JWT sub without touching the DB; raw ids never reach the logs
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    try:
        payload = parse_token(auth.split(" ", 1)[1])
    except JWTError:
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    return hashlib.sha256(str(sub).encode("utf-8")).hexdigest()


def _endpoint(request: Request) -> str:
    # link tokens sit in the path; label by route template so they never become metric labels
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = uuid.uuid4().hex
        logger = get_logger().bind(trace_id=trace_id)
        method = request.method.upper()
        user_id_hash = _user_id_hash(request)

        t0 = time.perf_counter()
        status_code = 500
        result_str = "error"
        try:
            response = await call_next(request)
            status_code = response.status_code
            result_str = "ok" if status_code < 400 else "error"
            response.headers["X-Trace-Id"] = trace_id
            return response
        finally:
            dt = time.perf_counter() - t0
            endpoint = _endpoint(request)
            api_requests_total.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
            api_request_duration_seconds.labels(endpoint=endpoint).observe(dt)
            logger.info(
                "request",
                action=f"{method} {endpoint}",
                duration_ms=round(dt * 1000.0, 3),
                result=result_str,
                status=status_code,
                user_id_hash=user_id_hash,
            )
