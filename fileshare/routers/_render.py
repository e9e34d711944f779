from __future__ import annotations

from datetime import datetime

from fileshare.db.base import as_utc
from fileshare.models import File, Grant, GrantKind, Role, User
from fileshare.schemas.common import UserOut
from fileshare.schemas.files import FileOut
from fileshare.schemas.share import GrantOut


def user_out(user: User | None) -> UserOut | None:
    if user is None:
        return None
    return UserOut(id=user.id, email=user.email, name=user.name)


def file_out(f: File, role: Role | str, is_owner: bool, shared_by: User | None = None) -> FileOut:
    return FileOut(
        id=f.id,
        filename=f.filename,
        size=f.size,
        type=f.content_type,
        upload_date=as_utc(f.created_at),
        owner=user_out(f.owner),
        is_owner=is_owner,
        role=Role(role).value,
        shared_by=user_out(shared_by),
    )


def grant_out(g: Grant, now: datetime) -> GrantOut:
    return GrantOut(
        id=g.id,
        share_type=g.kind,
        shared_with=user_out(g.target_user) if g.kind == GrantKind.USER.value else None,
        token=g.token,
        role=g.role,
        expires_at=as_utc(g.expires_at),
        expired=g.is_expired(now),
        created_at=as_utc(g.created_at),
    )
