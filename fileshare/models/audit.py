from __future__ import annotations

import enum

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.db.base import TS_NOW, Base


class AuditAction(str, enum.Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    SHARE = "share"
    UNSHARE = "unshare"
    DELETE = "delete"


class AuditEntry(Base):
    __tablename__ = "audit_entries"
    __table_args__ = (
        Index("ix_audit_entries_file", "file_id"),
        Index("ix_audit_entries_actor", "actor_id"),
        Index("ix_audit_entries_created", "created_at"),
    )

    # monotonically increasing: ties on created_at still order by insertion
    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    file_id: Mapped[str] = mapped_column(
        sa.String(32), ForeignKey("files.id", ondelete="CASCADE"), nullable=False
    )
    actor_id: Mapped[str] = mapped_column(
        sa.String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    action: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    details: Mapped[str | None] = mapped_column("metadata", sa.Text, nullable=True)

    created_at: Mapped[TS_NOW]

    file = relationship("File", back_populates="audit_entries")
    actor = relationship("User")
