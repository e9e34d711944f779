from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from fileshare.schemas.common import UserOut


class FileOut(BaseModel):
    id: str
    filename: str
    size: int
    type: str
    upload_date: datetime
    owner: UserOut | None = None
    is_owner: bool
    role: str
    shared_by: UserOut | None = None


class UploadOut(BaseModel):
    success: bool = True
    file: FileOut


class UploadErrorOut(BaseModel):
    filename: str | None = None
    error: str


class BulkUploadOut(BaseModel):
    success: bool = True
    files: list[FileOut]
    errors: list[UploadErrorOut] | None = None


class FileListOut(BaseModel):
    success: bool = True
    owned_files: list[FileOut]
    shared_files: list[FileOut]


class FileDetailOut(BaseModel):
    success: bool = True
    file: FileOut


class DownloadOut(BaseModel):
    success: bool = True
    download_url: str
    filename: str
