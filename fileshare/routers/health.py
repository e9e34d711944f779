from __future__ import annotations

import os
import time
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fileshare.deps import get_db, get_redis

router = APIRouter(tags=["health"])
START_TIME = time.time()


def _ok(v: object) -> bool:
    return v == "ok"


def _parse_required(env_val: str | None) -> list[str]:
    if not env_val:
        return ["db"]
    items = [x.strip() for x in env_val.split(",") if x.strip()]
    return items or ["db"]


def get_health_checks(db: Session, rds: Any) -> dict[str, Any]:
    checks: dict[str, Any] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["db"] = "ok"
    except SQLAlchemyError as e:
        checks["db"] = {"error": str(e)}

    # redis only backs rate limiting, which fails open; reported but not required by default
    try:
        rds.ping()
        checks["redis"] = "ok"
    except RedisError as e:
        checks["redis"] = {"error": str(e)}

    return checks


@router.get("/health", status_code=status.HTTP_200_OK)
def health(
    db: Annotated[Session, Depends(get_db)],
    rds: Annotated[Any, Depends(get_redis)],
) -> dict[str, Any]:
    checks = get_health_checks(db, rds)
    is_healthy = all(_ok(v) for v in checks.values())
    return {
        "status": "healthy" if is_healthy else "degraded",
        "version": os.getenv("GIT_SHA") or "dev",
        "uptime": time.time() - START_TIME,
        "checks": checks,
    }


@router.get("/live", status_code=status.HTTP_200_OK)
def live() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/ready")
def ready(
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    rds: Annotated[Any, Depends(get_redis)],
) -> dict[str, Any]:
    checks = get_health_checks(db, rds)
    required = _parse_required(os.getenv("READINESS_REQUIRED"))
    if all(_ok(checks.get(k)) for k in required):
        return {"status": "ready", "required": required}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "required": required, "checks": checks}
