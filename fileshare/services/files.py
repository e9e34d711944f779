"""File lifecycle: upload, download, link redemption and delete.

Each flow finishes its primary state change before it touches the audit log, so an
entry never describes something that did not happen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fileshare.config import Settings
from fileshare.db.base import utcnow
from fileshare.errors import (
    AccessDenied,
    IntegrityViolation,
    InvalidUpload,
    LinkExpired,
    NotFound,
    NotOwner,
    StorageFailure,
)
from fileshare.models import AuditAction, File, Grant, Role, User
from fileshare.repos import file_repo, grant_repo
from fileshare.services import decisions
from fileshare.services.access import AccessResolver
from fileshare.services.audit_log import AuditLog
from fileshare.storage.blob_store import BlobStore
from fileshare.validators import sanitize_filename, validate_content_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileAccess:
    file: File
    role: Role


@dataclass(frozen=True)
class SharedFile:
    file: File
    role: Role
    shared_by: User | None


class FileService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        blob_store: BlobStore,
        audit: AuditLog,
    ) -> None:
        self.db = db
        self.settings = settings
        self.blob_store = blob_store
        self.audit = audit
        self.resolver = AccessResolver(db, settings)

    # ------------------------------------------------------------------ upload

    def upload(self, owner_id: str, filename: str, content_type: str, data: bytes) -> File:
        if not data:
            raise InvalidUpload("empty_file")
        if len(data) > self.settings.max_upload_bytes:
            raise InvalidUpload("file_too_large")
        if not validate_content_type(content_type, self.settings.allowed_content_types):
            raise InvalidUpload("unsupported_content_type")

        ref = self.blob_store.put(data, filename, content_type)
        row = File(
            owner_id=owner_id,
            filename=sanitize_filename(filename),
            size=len(data),
            content_type=content_type,
            storage_id=ref.storage_id,
            url=ref.url,
        )
        try:
            file_repo.add(self.db, row)
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            # do not leave an orphan blob behind a failed row insert
            try:
                self.blob_store.delete(ref.storage_id)
            except StorageFailure as cleanup_err:
                logger.error("upload: failed to clean up blob %s: %s", ref.storage_id, cleanup_err)
            raise StorageFailure("file insert failed") from err
        self.db.refresh(row)

        self.audit.record(row.id, owner_id, AuditAction.UPLOAD)
        logger.info("file %s uploaded by %s (%d bytes)", row.id, owner_id, row.size)
        return row

    # ------------------------------------------------------------------ read

    def get_file(self, user_id: str, file_id: str) -> FileAccess:
        decision = self.resolver.resolve_by_user(user_id, file_id)
        return FileAccess(file=self._allowed_file(decision), role=self._allowed_role(decision))

    def download(self, user_id: str, file_id: str) -> FileAccess:
        access = self.get_file(user_id, file_id)
        self.audit.record(access.file.id, user_id, AuditAction.DOWNLOAD)
        return access

    def redeem_link(self, user_id: str, token: str) -> FileAccess:
        """Open a link grant. The download is attributed to the redeeming user."""
        decision = self.resolver.resolve_by_token(token)
        if isinstance(decision, decisions.Denied) and decision.reason is decisions.DenyReason.EXPIRED:
            raise LinkExpired()
        access = FileAccess(file=self._allowed_file(decision), role=self._allowed_role(decision))
        self.audit.record(access.file.id, user_id, AuditAction.DOWNLOAD, "via share link")
        return access

    def _allowed_file(self, decision: decisions.AccessDecision) -> File:
        if isinstance(decision, decisions.Allowed):
            row = file_repo.get(self.db, decision.file_id)
            if row is None:
                raise NotFound("file_not_found")
            return row
        if isinstance(decision, decisions.Denied):
            if self.settings.mask_forbidden_as_not_found:
                raise NotFound("file_not_found")
            if decision.reason is decisions.DenyReason.INTEGRITY_VIOLATION:
                raise IntegrityViolation()
            raise AccessDenied(decision.reason.value)
        if isinstance(decision, decisions.NotFound):
            raise NotFound("file_not_found")
        raise TypeError(f"unexpected access decision {decision!r}")

    @staticmethod
    def _allowed_role(decision: decisions.AccessDecision) -> Role:
        if not isinstance(decision, decisions.Allowed):
            raise TypeError(f"unexpected access decision {decision!r}")
        return decision.role

    def list_visible(self, user_id: str) -> tuple[list[File], list[SharedFile]]:
        owned = file_repo.list_owned(self.db, user_id)
        shared = [
            SharedFile(file=f, role=Role(g.role), shared_by=g.creator)
            for g, f in grant_repo.list_received(self.db, user_id, utcnow())
        ]
        return owned, shared

    # ------------------------------------------------------------------ delete

    def delete(self, user_id: str, file_id: str) -> None:
        row = file_repo.get(self.db, file_id)
        if row is None:
            raise NotFound("file_not_found")
        if row.owner_id != user_id:
            raise NotOwner()

        # blob first: a failure here leaves everything untouched
        self.blob_store.delete(row.storage_id)

        self.audit.record(file_id, user_id, AuditAction.DELETE, row.filename)
        try:
            file_repo.delete_cascade(self.db, file_id)
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("delete: blob %s removed but row delete failed for file=%s", row.storage_id, file_id)
            raise StorageFailure("file delete failed") from err
        logger.info("file %s deleted by %s", file_id, user_id)

    # ------------------------------------------------------------------ sharing

    def share_with_user(
        self, file_id: str, owner_id: str, target: User, role: Role | str, expires_at: datetime | None = None
    ) -> Grant:
        grant = self.resolver.create_direct_grant(file_id, owner_id, target.id, role, expires_at)
        self.audit.record(file_id, owner_id, AuditAction.SHARE, f"Shared with {target.email}")
        return grant

    def share_by_link(self, file_id: str, owner_id: str, expires_at: datetime | None = None) -> Grant:
        grant = self.resolver.create_link_grant(file_id, owner_id, expires_at)
        self.audit.record(file_id, owner_id, AuditAction.SHARE, "Generated share link")
        return grant

    def revoke(self, grant_id: str, user_id: str) -> Grant:
        grant = self.resolver.revoke_grant(grant_id, user_id)
        self.audit.record(grant.file_id, user_id, AuditAction.UNSHARE, f"Revoked share {grant.id}")
        return grant
