from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fileshare.db.base import STR_PK, TS_NOW, Base, as_utc


class GrantKind(str, enum.Enum):
    USER = "user"
    LINK = "link"


class Role(str, enum.Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


# owner is derived from File.owner_id and is never stored on a grant
GRANTABLE_ROLES = frozenset({Role.VIEWER, Role.EDITOR})


class Grant(Base):
    __tablename__ = "grants"
    __table_args__ = (
        # one direct grant per (file, user); link grants have target NULL and never collide
        UniqueConstraint("file_id", "target_user_id", name="uq_grants_file_target"),
        UniqueConstraint("token", name="uq_grants_token"),
        CheckConstraint("role IN ('viewer', 'editor')", name="ck_grants_role"),
        CheckConstraint(
            "(kind = 'user' AND target_user_id IS NOT NULL AND token IS NULL)"
            " OR (kind = 'link' AND target_user_id IS NULL AND token IS NOT NULL)",
            name="ck_grants_kind_shape",
        ),
        Index("ix_grants_file", "file_id"),
        Index("ix_grants_target", "target_user_id"),
        Index("ix_grants_expires", "expires_at"),
    )

    id: Mapped[STR_PK]

    file_id: Mapped[str] = mapped_column(
        sa.String(32), ForeignKey("files.id", ondelete="CASCADE"), nullable=False
    )

    kind: Mapped[str] = mapped_column(sa.String(8), nullable=False)
    target_user_id: Mapped[str | None] = mapped_column(
        sa.String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    token: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    role: Mapped[str] = mapped_column(sa.String(8), nullable=False, default=Role.VIEWER.value)

    expires_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_by: Mapped[str] = mapped_column(
        sa.String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[TS_NOW]

    file = relationship("File", back_populates="grants")
    target_user = relationship("User", foreign_keys=[target_user_id])
    creator = relationship("User", foreign_keys=[created_by])

    def is_expired(self, now: datetime) -> bool:
        exp = as_utc(self.expires_at)
        return exp is not None and exp <= now

    def __repr__(self) -> str:
        return f"<Grant(id={self.id}, kind={self.kind}, file_id={self.file_id}, role={self.role})>"
