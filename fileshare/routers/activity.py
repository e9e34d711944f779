from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fileshare.config import Settings
from fileshare.db.base import as_utc
from fileshare.deps import get_db, get_settings
from fileshare.models import AuditEntry, User
from fileshare.routers._render import user_out
from fileshare.schemas.activity import ActivityFileOut, ActivityListOut, ActivityOut
from fileshare.security import get_current_user
from fileshare.services.audit_log import AuditLog

router = APIRouter(prefix="/api/activity", tags=["activity"])


def _activity_out(e: AuditEntry) -> ActivityOut:
    f = e.file
    return ActivityOut(
        id=e.id,
        activity_type=e.action,
        file=ActivityFileOut(id=f.id, filename=f.filename) if f is not None else None,
        user=user_out(e.actor),
        metadata=e.details,
        created_at=as_utc(e.created_at),
    )


@router.get("/files/{file_id}", response_model=ActivityListOut)
def file_activity(
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ActivityListOut:
    entries = AuditLog.for_file(db, file_id, user.id)
    return ActivityListOut(activities=[_activity_out(e) for e in entries])


@router.get("/user", response_model=ActivityListOut)
def my_activity(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    cfg: Annotated[Settings, Depends(get_settings)],
    limit: int | None = Query(None, ge=1, le=500),
) -> ActivityListOut:
    entries = AuditLog.for_actor(db, user.id, limit or cfg.activity_user_limit)
    return ActivityListOut(activities=[_activity_out(e) for e in entries])


@router.get("", response_model=ActivityListOut)
def owned_files_activity(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    cfg: Annotated[Settings, Depends(get_settings)],
    limit: int | None = Query(None, ge=1, le=500),
) -> ActivityListOut:
    entries = AuditLog.for_owned_files(db, user.id, limit or cfg.activity_owner_limit)
    return ActivityListOut(activities=[_activity_out(e) for e in entries])
