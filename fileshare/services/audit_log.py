"""Audit log: append-only record of security-relevant actions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from fileshare.db.base import utcnow
from fileshare.errors import NotFound, NotOwner
from fileshare.models import AuditAction, AuditEntry
from fileshare.repos import file_repo
from fileshare.telemetry.metrics import audit_write_failures_total, audit_writes_total

log = logging.getLogger(__name__)


class AuditLog:
    """Writes go through their own short-lived session, after the caller's primary commit.

    Losing an entry never fails the primary action: the error is logged and counted in
    ``audit_write_failures_total`` for operators.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _persist_isolated(self, entry: AuditEntry) -> AuditEntry | None:
        try:
            with self._session_factory() as s:
                s.add(entry)
                s.commit()
                s.refresh(entry)
        except Exception as e:
            audit_write_failures_total.labels(action=entry.action).inc()
            log.error(
                "AuditLog: failed to persist %s entry for file=%s actor=%s: %s",
                entry.action,
                entry.file_id,
                entry.actor_id,
                e,
                exc_info=True,
            )
            return None
        audit_writes_total.labels(action=entry.action).inc()
        return entry

    def record(
        self,
        file_id: str,
        actor_id: str,
        action: AuditAction,
        metadata: str | None = None,
        ts: datetime | None = None,
    ) -> AuditEntry | None:
        """
        Append one entry. Call only after the state change it describes has succeeded.

        Returns the stored entry, or None when the write was lost.
        """
        entry = AuditEntry(
            file_id=file_id,
            actor_id=actor_id,
            action=AuditAction(action).value,
            details=metadata,
            created_at=ts or utcnow(),
        )
        return self._persist_isolated(entry)

    # ---- queries ----

    @staticmethod
    def for_file(db: Session, file_id: str, requesting_user_id: str) -> list[AuditEntry]:
        """Full history of one file, newest first. Owner only."""
        owner_id = file_repo.get_owner(db, file_id)
        if owner_id is None:
            raise NotFound("file_not_found")
        if owner_id != requesting_user_id:
            raise NotOwner()
        q = (
            select(AuditEntry)
            .where(AuditEntry.file_id == file_id)
            .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
        )
        return list(db.scalars(q).all())

    @staticmethod
    def for_actor(db: Session, user_id: str, limit: int = 50) -> list[AuditEntry]:
        """Entries where ``user_id`` is the actor, newest first."""
        q = (
            select(AuditEntry)
            .where(AuditEntry.actor_id == user_id)
            .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
            .limit(limit)
        )
        return list(db.scalars(q).all())

    @staticmethod
    def for_owned_files(db: Session, owner_id: str, limit: int = 100) -> list[AuditEntry]:
        """Everything that happened to any file ``owner_id`` owns, newest first."""
        file_ids = file_repo.list_ids_owned(db, owner_id)
        if not file_ids:
            return []
        q = (
            select(AuditEntry)
            .where(AuditEntry.file_id.in_(file_ids))
            .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
            .limit(limit)
        )
        return list(db.scalars(q).all())
