from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from fileshare.schemas.common import UserOut
from fileshare.schemas.files import FileOut
from fileshare.validators import normalize_email, validate_email


class ShareUserIn(BaseModel):
    user_email: str
    # "owner" is implicit and never grantable
    role: Literal["viewer", "editor"] = "viewer"
    expires_at: datetime | None = None

    @field_validator("user_email")
    @classmethod
    def validate_user_email(cls, v: str) -> str:
        if not validate_email(v):
            raise ValueError("bad_email")
        return normalize_email(v)


class ShareLinkIn(BaseModel):
    expires_at: datetime | None = None


class GrantOut(BaseModel):
    id: str
    share_type: str
    shared_with: UserOut | None = None
    token: str | None = None
    role: str
    expires_at: datetime | None = None
    expired: bool = False
    created_at: datetime


class ShareUserOut(BaseModel):
    success: bool = True
    message: str = "File shared successfully"
    share: GrantOut


class ShareLinkOut(BaseModel):
    success: bool = True
    message: str = "Share link generated successfully"
    share_link: str
    share: GrantOut


class SharesListOut(BaseModel):
    success: bool = True
    shares: list[GrantOut] = Field(default_factory=list)


class SharedFileOut(FileOut):
    download_url: str


class RedeemOut(BaseModel):
    success: bool = True
    file: SharedFileOut
