from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from fileshare.db.base import TS_NOW, Base

class User(Base):
    """Local mirror of identities issued by the identity provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(sa.String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")

    created_at: Mapped[TS_NOW]

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
