"""Celery task garbage-collecting expired grants.

Expired grants are already inert for access checks; purging only keeps the table small
and frees (file, user) pairs for re-sharing.
"""

from __future__ import annotations

import logging

from celery import Task

from fileshare.db.base import utcnow
from fileshare.deps import SessionLocal
from fileshare.errors import StorageFailure
from fileshare.repos import grant_repo
from fileshare.telemetry.metrics import grants_purged_total
from fileshare.worker import celery

log = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Base task with database session management."""

    _db = None

    def after_return(self, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        if self._db is not None:
            self._db.close()
            self._db = None


@celery.task(bind=True, base=DatabaseTask, name="grants.purge_expired")
def purge_expired_grants_task(self: DatabaseTask) -> dict[str, str | int]:
    db = SessionLocal()
    self._db = db
    try:
        removed = grant_repo.purge_expired(db, utcnow())
    except StorageFailure as e:
        log.error("grant purge failed: %s", e)
        return {"status": "error", "error": str(e)}
    finally:
        db.close()
    grants_purged_total.inc(removed)
    if removed:
        log.info("purged %d expired grants", removed)
    return {"status": "success", "purged": removed}
