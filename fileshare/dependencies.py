# FastAPI dependencies wiring the services to the request-scoped session.
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from fileshare.config import Settings
from fileshare.deps import SessionLocal, get_blob_store, get_db, get_settings
from fileshare.services.access import AccessResolver
from fileshare.services.audit_log import AuditLog
from fileshare.services.files import FileService
from fileshare.storage.blob_store import BlobStore

_audit_log = AuditLog(SessionLocal)


def get_audit_log() -> AuditLog:
    """Audit writes use their own sessions, never the request's."""
    return _audit_log


def get_resolver(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccessResolver:
    return AccessResolver(db, settings)


def get_file_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
    audit: Annotated[AuditLog, Depends(get_audit_log)],
) -> FileService:
    return FileService(db, settings, blob_store, audit)
