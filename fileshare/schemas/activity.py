from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from fileshare.schemas.common import UserOut


class ActivityFileOut(BaseModel):
    id: str
    filename: str


class ActivityOut(BaseModel):
    id: int
    activity_type: str
    file: ActivityFileOut | None = None
    user: UserOut | None = None
    metadata: str | None = None
    created_at: datetime


class ActivityListOut(BaseModel):
    success: bool = True
    activities: list[ActivityOut]
