"""Identity provider adapter.

Bearer JWTs are issued elsewhere; we only validate them and mirror the asserted identity
(``sub``, ``email``, ``name``) into the ``users`` table so owners can share by email.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fileshare.config import settings
from fileshare.deps import get_db
from fileshare.models import User
from fileshare.repos import user_repo
from fileshare.validators import normalize_email

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def parse_token(token: str) -> dict[str, Any]:
    """Decode and verify signature; ``exp``/``iat`` are checked by the caller with leeway."""
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"verify_aud": False, "verify_exp": False, "verify_iat": False},
    )


def authenticate(token: str) -> dict[str, str] | None:
    """Return ``{id, email, name}`` for a valid token, None otherwise."""
    try:
        payload = parse_token(token)
    except JWTError as e:
        logger.info("JWT decode failed: %s", e)
        return None

    now = int(datetime.now(UTC).timestamp())
    leeway = int(settings.jwt_leeway_seconds)
    exp = payload.get("exp")
    iat = payload.get("iat")
    if exp is not None and now > int(exp) + leeway:
        logger.info("JWT expired: now=%d exp=%d leeway=%d", now, int(exp), leeway)
        return None
    if iat is not None and int(iat) > now + leeway:
        logger.info("JWT iat in future: now=%d iat=%d leeway=%d", now, int(iat), leeway)
        return None

    uid = payload.get("sub")
    email = payload.get("email")
    if not uid or not email:
        logger.info("JWT missing sub/email claims, keys=%s", sorted(payload.keys()))
        return None
    return {"id": str(uid), "email": str(email), "name": str(payload.get("name") or "")}


def get_current_user(
    creds: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    if creds is None or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise HTTPException(status_code=401, detail="auth_required", headers={"WWW-Authenticate": "Bearer"})

    identity = authenticate(creds.credentials)
    if identity is None:
        raise HTTPException(status_code=401, detail="invalid_token", headers={"WWW-Authenticate": "Bearer"})

    user: User | None = user_repo.get(db, identity["id"])
    if user is None or user.email != normalize_email(identity["email"]) or user.name != identity["name"]:
        try:
            user = user_repo.upsert(db, identity["id"], identity["email"], identity["name"])
        except IntegrityError as err:
            db.rollback()
            logger.warning("identity %s asserts an email owned by another user", identity["id"])
            raise HTTPException(status_code=401, detail="identity_conflict") from err
    return user


def make_token(sub: str, email: str, name: str = "", ttl_min: int | None = None) -> str:
    """Issue a token the way the identity provider does; used by tooling and tests."""
    now = datetime.now(UTC)
    ttl = ttl_min if ttl_min is not None else int(settings.jwt_access_ttl_minutes)
    payload = {
        "sub": sub,
        "email": email,
        "name": name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
