from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import (  # type: ignore[reportMissingImports]
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from sqlalchemy.orm import Session

from fileshare.db.base import utcnow
from fileshare.deps import get_db
from fileshare.repos import grant_repo

logger = logging.getLogger(__name__)

# In-process API metrics
api_requests_total = Counter(
    "api_requests_total", "Total API requests", ["method", "endpoint", "status"]
)
api_request_duration_seconds = Histogram(
    "api_request_duration_seconds", "API request duration seconds", ["endpoint"]
)

# Access control
access_decisions_total = Counter(
    "access_decisions_total", "Access decisions by resolver path and outcome", ["path", "outcome"]
)
access_integrity_violations_total = Counter(
    "access_integrity_violations_total", "Duplicate active direct grants discovered at read time"
)
grants_created_total = Counter("grants_created_total", "Grants created", ["kind"])
grants_revoked_total = Counter("grants_revoked_total", "Grants revoked")
grants_purged_total = Counter("grants_purged_total", "Expired grants garbage-collected")

# Audit log
audit_writes_total = Counter("audit_writes_total", "Audit entries written", ["action"])
audit_write_failures_total = Counter(
    "audit_write_failures_total", "Audit entries lost after a successful primary action", ["action"]
)

# Set on scrape from the DB
active_grants_total = Gauge("active_grants_total", "Active (non-expired) grants total")

router = APIRouter()


@router.get("/metrics")
def metrics(db: Annotated[Session, Depends(get_db)]) -> PlainTextResponse:
    """Prometheus metrics endpoint.

    Before rendering, pull selected gauges from the DB to current values.
    """
    try:
        active_grants_total.set(grant_repo.count_active(db, utcnow()))
    except Exception as e:
        logger.warning("metrics: failed to fetch active grants count: %s", e, exc_info=True)

    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
