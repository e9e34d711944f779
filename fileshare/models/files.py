from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.db.base import STR_PK, TS_NOW, Base, utcnow
from fileshare.models.audit import AuditEntry
from fileshare.models.grants import Grant


class File(Base):
    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_owner", "owner_id"),
        Index("ix_files_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[STR_PK]

    owner_id: Mapped[str] = mapped_column(
        sa.String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    filename: Mapped[str] = mapped_column(sa.Text, nullable=False)
    size: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    content_type: Mapped[str] = mapped_column(sa.Text, nullable=False)

    # opaque blob store reference + resolved URL
    storage_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    url: Mapped[str] = mapped_column(sa.Text, nullable=False)

    created_at: Mapped[TS_NOW]
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    owner = relationship("User")
    grants: Mapped[list[Grant]] = relationship(
        "Grant", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )
    audit_entries: Mapped[list[AuditEntry]] = relationship(
        "AuditEntry", back_populates="file", cascade="all, delete-orphan", passive_deletes=True
    )
