"""Grant store.

Invariants are enforced at write time by the database: ``uq_grants_file_target`` keeps a
single direct grant per (file, user) and ``uq_grants_token`` keeps link tokens unique.
``insert`` turns the resulting ``IntegrityError`` into the matching domain error.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fileshare.errors import DuplicateGrant, StorageFailure, TokenCollision
from fileshare.models import File, Grant, GrantKind

logger = logging.getLogger(__name__)


def _active(now: datetime):
    return or_(Grant.expires_at.is_(None), Grant.expires_at > now)


def get(db: Session, grant_id: str) -> Grant | None:
    return db.get(Grant, grant_id)


def get_by_token(db: Session, token: str) -> Grant | None:
    # exact match, no normalization
    return db.scalar(select(Grant).where(Grant.kind == GrantKind.LINK.value, Grant.token == token))


def find_direct(db: Session, file_id: str, user_id: str) -> list[Grant]:
    q = select(Grant).where(
        Grant.kind == GrantKind.USER.value,
        Grant.file_id == file_id,
        Grant.target_user_id == user_id,
    )
    return list(db.scalars(q).all())


def find_active_direct(db: Session, file_id: str, user_id: str, now: datetime) -> list[Grant]:
    """All active direct grants for the pair; more than one means the uniqueness invariant broke."""
    q = select(Grant).where(
        Grant.kind == GrantKind.USER.value,
        Grant.file_id == file_id,
        Grant.target_user_id == user_id,
        _active(now),
    )
    return list(db.scalars(q).all())


def list_for_file(db: Session, file_id: str) -> list[Grant]:
    q = select(Grant).where(Grant.file_id == file_id).order_by(Grant.created_at, Grant.id)
    return list(db.scalars(q).all())


def list_received(db: Session, user_id: str, now: datetime) -> list[tuple[Grant, File]]:
    """Active direct grants to ``user_id`` together with their files, newest first."""
    q = (
        select(Grant, File)
        .join(File, File.id == Grant.file_id)
        .where(
            Grant.kind == GrantKind.USER.value,
            Grant.target_user_id == user_id,
            _active(now),
        )
        .order_by(Grant.created_at.desc())
    )
    return [(g, f) for g, f in db.execute(q).all()]


def count_active(db: Session, now: datetime) -> int:
    return int(db.scalar(select(func.count(Grant.id)).where(_active(now))) or 0)


def insert(db: Session, grant: Grant) -> Grant:
    """Persist and commit a grant as one atomic write."""
    db.add(grant)
    try:
        db.commit()
    except IntegrityError as err:
        db.rollback()
        msg = str(err.orig).lower() if err.orig is not None else str(err).lower()
        if "uq_grants_token" in msg or "grants.token" in msg:
            raise TokenCollision() from err
        if "uq_grants_file_target" in msg or "grants.target_user_id" in msg:
            raise DuplicateGrant() from err
        logger.error("grant insert rejected by constraint: %s", err)
        raise StorageFailure("grant insert rejected") from err
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageFailure("grant insert failed") from err
    db.refresh(grant)
    return grant


def delete_one(db: Session, grant: Grant) -> None:
    try:
        db.delete(grant)
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageFailure("grant delete failed") from err


def delete_expired_direct(db: Session, file_id: str, user_id: str, now: datetime) -> int:
    """Drop expired direct grants for the pair so it can be shared again. Not committed."""
    res = db.execute(
        delete(Grant).where(
            Grant.kind == GrantKind.USER.value,
            Grant.file_id == file_id,
            Grant.target_user_id == user_id,
            Grant.expires_at.is_not(None),
            Grant.expires_at <= now,
        )
        .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)


def purge_expired(db: Session, now: datetime) -> int:
    """Garbage-collect every expired grant."""
    try:
        res = db.execute(
            delete(Grant)
            .where(Grant.expires_at.is_not(None), Grant.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        raise StorageFailure("grant purge failed") from err
    return int(res.rowcount or 0)
