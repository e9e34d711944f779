from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from fileshare.db.base import utcnow
from fileshare.models import File, Grant, GrantKind, User
from fileshare.repos import file_repo


def make_file(db: Session, owner: User, filename: str = "report.pdf") -> File:
    row = File(
        owner_id=owner.id,
        filename=filename,
        size=11,
        content_type="application/pdf",
        storage_id=f"blob-{filename}",
        url=f"http://blobs.test/blob-{filename}",
    )
    file_repo.add(db, row)
    db.commit()
    return row


def add_expired_direct_grant(db: Session, f: File, owner: User, target: User, role: str = "viewer") -> Grant:
    """Insert an already-expired grant directly; the API refuses past expiries."""
    g = Grant(
        file_id=f.id,
        kind=GrantKind.USER.value,
        target_user_id=target.id,
        role=role,
        expires_at=utcnow() - timedelta(minutes=5),
        created_by=owner.id,
    )
    db.add(g)
    db.commit()
    return g


def add_link_grant(db: Session, f: File, owner: User, token: str, expires_at: datetime | None) -> Grant:
    g = Grant(
        file_id=f.id,
        kind=GrantKind.LINK.value,
        token=token,
        role="viewer",
        expires_at=expires_at,
        created_by=owner.id,
    )
    db.add(g)
    db.commit()
    return g
