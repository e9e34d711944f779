from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from fileshare.config import Settings
from fileshare.dependencies import get_file_service
from fileshare.deps import get_settings
from fileshare.errors import FileShareError
from fileshare.models import Role, User
from fileshare.routers._render import file_out
from fileshare.schemas.common import OkResponse
from fileshare.schemas.files import (
    BulkUploadOut,
    DownloadOut,
    FileDetailOut,
    FileListOut,
    UploadErrorOut,
    UploadOut,
)
from fileshare.security import get_current_user
from fileshare.services.files import FileService

router = APIRouter(prefix="/api/files", tags=["files"])
logger = logging.getLogger(__name__)


async def _read_limited(upload: UploadFile, limit: int) -> bytes:
    # read one byte past the limit so oversize uploads are detected without buffering them whole
    data = await upload.read(limit + 1)
    await upload.close()
    return data


@router.post("/upload", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadOut:
    data = await _read_limited(file, settings.max_upload_bytes)
    row = await run_in_threadpool(
        svc.upload, user.id, file.filename or "file", file.content_type or "application/octet-stream", data
    )
    return UploadOut(file=file_out(row, Role.OWNER, is_owner=True))


@router.post("/upload-bulk", response_model=BulkUploadOut, status_code=status.HTTP_201_CREATED)
async def upload_bulk(
    files: list[UploadFile],
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BulkUploadOut:
    if not files:
        raise HTTPException(400, "no_files")
    if len(files) > settings.max_bulk_files:
        raise HTTPException(400, "too_many_files")

    ok = []
    errors: list[UploadErrorOut] = []
    for upload in files:
        data = await _read_limited(upload, settings.max_upload_bytes)
        try:
            row = await run_in_threadpool(
                svc.upload,
                user.id, upload.filename or "file", upload.content_type or "application/octet-stream", data
            )
        except FileShareError as e:
            logger.info("bulk upload: %s rejected: %s", upload.filename, e)
            errors.append(UploadErrorOut(filename=upload.filename, error=str(e)))
            continue
        ok.append(file_out(row, Role.OWNER, is_owner=True))
    return BulkUploadOut(files=ok, errors=errors or None)


@router.get("", response_model=FileListOut)
def list_files(
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
) -> FileListOut:
    owned, shared = svc.list_visible(user.id)
    return FileListOut(
        owned_files=[file_out(f, Role.OWNER, is_owner=True) for f in owned],
        shared_files=[file_out(s.file, s.role, is_owner=False, shared_by=s.shared_by) for s in shared],
    )


@router.get("/{file_id}", response_model=FileDetailOut)
def get_file(
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
) -> FileDetailOut:
    access = svc.get_file(user.id, file_id)
    return FileDetailOut(file=file_out(access.file, access.role, is_owner=access.role is Role.OWNER))


@router.get("/{file_id}/download", response_model=DownloadOut)
def download_file(
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
) -> DownloadOut:
    access = svc.download(user.id, file_id)
    return DownloadOut(download_url=access.file.url, filename=access.file.filename)


@router.delete("/{file_id}", response_model=OkResponse)
def delete_file(
    file_id: str,
    user: Annotated[User, Depends(get_current_user)],
    svc: Annotated[FileService, Depends(get_file_service)],
) -> OkResponse:
    svc.delete(user.id, file_id)
    return OkResponse(message="File deleted successfully")
