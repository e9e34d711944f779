"""File registry: ownership and metadata, the source of truth for "who owns this file"."""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from fileshare.models import AuditEntry, File, Grant


def get(db: Session, file_id: str) -> File | None:
    return db.get(File, file_id)


def get_owner(db: Session, file_id: str) -> str | None:
    return db.scalar(select(File.owner_id).where(File.id == file_id))


def file_exists(db: Session, file_id: str) -> bool:
    return get_owner(db, file_id) is not None


def add(db: Session, file_row: File) -> File:
    db.add(file_row)
    db.flush()
    return file_row


def list_owned(db: Session, owner_id: str) -> list[File]:
    q = select(File).where(File.owner_id == owner_id).order_by(File.created_at.desc())
    return list(db.scalars(q).all())


def list_ids_owned(db: Session, owner_id: str) -> list[str]:
    return list(db.scalars(select(File.id).where(File.owner_id == owner_id)).all())


def delete_cascade(db: Session, file_id: str) -> None:
    """
    Remove the file together with every grant and audit entry that references it.
    Runs inside the caller's transaction; nothing is committed here.
    """
    db.execute(delete(Grant).where(Grant.file_id == file_id))
    db.execute(delete(AuditEntry).where(AuditEntry.file_id == file_id))
    db.execute(delete(File).where(File.id == file_id))
