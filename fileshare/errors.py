"""Error taxonomy shared by the resolver, the stores and the HTTP layer.

Every error carries an HTTP status and a stable snake_case ``code``; routers let them
propagate and ``fileshare.main`` renders ``{"detail": code}``.
"""

from __future__ import annotations


class FileShareError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class NotFound(FileShareError):
    status_code = 404
    code = "not_found"


class NotOwner(FileShareError):
    status_code = 403
    code = "not_owner"


class AccessDenied(FileShareError):
    status_code = 403
    code = "access_denied"


class LinkExpired(AccessDenied):
    status_code = 410
    code = "link_expired"


class DuplicateGrant(FileShareError):
    status_code = 409
    code = "duplicate_grant"


class SelfGrant(FileShareError):
    status_code = 400
    code = "self_grant"


class InvalidExpiry(FileShareError):
    status_code = 400
    code = "invalid_expiry"


class InvalidRole(FileShareError):
    status_code = 400
    code = "invalid_role"


class InvalidUpload(FileShareError):
    status_code = 400
    code = "invalid_upload"


class IntegrityViolation(AccessDenied):
    """More than one active direct grant for a pair was found at read time."""

    code = "integrity_violation"


class TokenCollision(FileShareError):
    status_code = 503
    code = "token_generation_failed"


class StorageFailure(FileShareError):
    """Durable store I/O failed; transient, the caller may retry."""

    status_code = 503
    code = "storage_unavailable"
