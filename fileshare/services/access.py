"""Access resolver: who may see a file, at what role, and who may change its grants."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fileshare.config import Settings
from fileshare.db.base import as_utc, utcnow
from fileshare.errors import (
    DuplicateGrant,
    InvalidExpiry,
    InvalidRole,
    NotFound,
    NotOwner,
    SelfGrant,
    StorageFailure,
    TokenCollision,
)
from fileshare.models import GRANTABLE_ROLES, Grant, GrantKind, Role
from fileshare.repos import file_repo, grant_repo
from fileshare.services import decisions
from fileshare.telemetry.metrics import (
    access_decisions_total,
    access_integrity_violations_total,
    grants_created_total,
    grants_revoked_total,
)
from fileshare.validators import is_future

logger = logging.getLogger(__name__)


def _count(path: str, decision: decisions.AccessDecision) -> decisions.AccessDecision:
    if isinstance(decision, decisions.Allowed):
        outcome = "allowed"
    elif isinstance(decision, decisions.Denied):
        outcome = f"denied_{decision.reason.value}"
    else:
        outcome = "not_found"
    access_decisions_total.labels(path=path, outcome=outcome).inc()
    return decision


class AccessResolver:
    def __init__(self, db: Session, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    # ---------------------------------------------------------------- checks

    def resolve_by_user(self, user_id: str, file_id: str) -> decisions.AccessDecision:
        owner_id = file_repo.get_owner(self.db, file_id)
        if owner_id is None:
            return _count("user", decisions.NotFound())
        if owner_id == user_id:
            return _count("user", decisions.Allowed(role=Role.OWNER, file_id=file_id))

        active = grant_repo.find_active_direct(self.db, file_id, user_id, utcnow())
        if len(active) > 1:
            access_integrity_violations_total.inc()
            logger.error(
                "integrity violation: %d active direct grants for file=%s user=%s (ids=%s)",
                len(active),
                file_id,
                user_id,
                [g.id for g in active],
            )
            return _count("user", decisions.Denied(decisions.DenyReason.INTEGRITY_VIOLATION))
        if active:
            g = active[0]
            return _count("user", decisions.Allowed(role=Role(g.role), file_id=file_id, grant_id=g.id))
        return _count("user", decisions.Denied(decisions.DenyReason.NO_GRANT))

    def resolve_by_token(self, token: str) -> decisions.AccessDecision:
        grant = grant_repo.get_by_token(self.db, token)
        if grant is None:
            return _count("token", decisions.NotFound())
        if grant.is_expired(utcnow()):
            return _count("token", decisions.Denied(decisions.DenyReason.EXPIRED))
        return _count(
            "token", decisions.Allowed(role=Role(grant.role), file_id=grant.file_id, grant_id=grant.id)
        )

    # ---------------------------------------------------------------- grants

    def _require_owner(self, file_id: str, user_id: str) -> None:
        owner_id = file_repo.get_owner(self.db, file_id)
        if owner_id is None:
            raise NotFound("file_not_found")
        if owner_id != user_id:
            raise NotOwner()

    @staticmethod
    def _check_expiry(expires_at: datetime | None, now: datetime) -> datetime | None:
        if expires_at is None:
            return None
        if not is_future(expires_at, now):
            raise InvalidExpiry("expires_at must be in the future")
        return as_utc(expires_at)

    def list_grants(self, file_id: str, requesting_user_id: str) -> list[Grant]:
        """Every grant on the file, expired ones included; owner only."""
        self._require_owner(file_id, requesting_user_id)
        return grant_repo.list_for_file(self.db, file_id)

    def create_direct_grant(
        self,
        file_id: str,
        owner_id: str,
        target_user_id: str,
        role: Role | str,
        expires_at: datetime | None = None,
    ) -> Grant:
        self._require_owner(file_id, owner_id)
        if target_user_id == owner_id:
            raise SelfGrant("cannot share with yourself")
        now = utcnow()
        exp = self._check_expiry(expires_at, now)
        try:
            role_v = Role(role)
        except ValueError as err:
            raise InvalidRole(f"unknown role {role!r}") from err
        if role_v not in GRANTABLE_ROLES:
            raise InvalidRole("owner is implicit and cannot be granted")

        if grant_repo.find_active_direct(self.db, file_id, target_user_id, now):
            raise DuplicateGrant()
        try:
            # an expired grant for the pair is inert; clear it so the pair can be shared again
            grant_repo.delete_expired_direct(self.db, file_id, target_user_id, now)
        except SQLAlchemyError as err:
            self.db.rollback()
            raise StorageFailure("grant cleanup failed") from err

        grant = Grant(
            file_id=file_id,
            kind=GrantKind.USER.value,
            target_user_id=target_user_id,
            role=role_v.value,
            expires_at=exp,
            created_by=owner_id,
        )
        # a concurrent create for the same pair loses here with DuplicateGrant
        grant = grant_repo.insert(self.db, grant)
        grants_created_total.labels(kind=GrantKind.USER.value).inc()
        logger.info(
            "direct grant %s created on file=%s for user=%s role=%s", grant.id, file_id, target_user_id, grant.role
        )
        return grant

    def _new_token(self) -> str:
        return secrets.token_urlsafe(self.settings.effective_link_token_bytes)

    def create_link_grant(self, file_id: str, owner_id: str, expires_at: datetime | None = None) -> Grant:
        self._require_owner(file_id, owner_id)
        exp = self._check_expiry(expires_at, utcnow())

        attempts = int(self.settings.link_token_attempts)
        for attempt in range(1, attempts + 1):
            grant = Grant(
                file_id=file_id,
                kind=GrantKind.LINK.value,
                token=self._new_token(),
                # links are read-only
                role=Role.VIEWER.value,
                expires_at=exp,
                created_by=owner_id,
            )
            try:
                grant = grant_repo.insert(self.db, grant)
            except TokenCollision:
                logger.warning("link token collision on attempt %d/%d", attempt, attempts)
                continue
            grants_created_total.labels(kind=GrantKind.LINK.value).inc()
            logger.info("link grant %s created on file=%s", grant.id, file_id)
            return grant
        raise TokenCollision()

    def revoke_grant(self, grant_id: str, requesting_user_id: str) -> Grant:
        """Delete the grant and hand it back so the caller can audit what was revoked."""
        grant = grant_repo.get(self.db, grant_id)
        if grant is None:
            raise NotFound("grant_not_found")
        owner_id = file_repo.get_owner(self.db, grant.file_id)
        if owner_id is None:
            raise NotFound("grant_not_found")
        if owner_id != requesting_user_id:
            raise NotOwner()
        grant_repo.delete_one(self.db, grant)
        grants_revoked_total.inc()
        logger.info("grant %s on file=%s revoked by %s", grant_id, grant.file_id, requesting_user_id)
        return grant
