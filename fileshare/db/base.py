import uuid
from datetime import UTC, datetime
from typing import Annotated

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, mapped_column


# Declarative base
class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(ts: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


# Shared column types
STR_PK = Annotated[str, mapped_column(sa.String(32), primary_key=True, default=new_id)]
TS_NOW = Annotated[datetime, mapped_column(sa.DateTime(timezone=True), default=utcnow, nullable=False)]
