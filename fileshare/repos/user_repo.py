from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from fileshare.models import User
from fileshare.validators import normalize_email


def get(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_by_email(db: Session, email: str) -> User | None:
    """Find a user by email (normalized to lower())."""
    return db.scalar(select(User).where(User.email == normalize_email(email)))


def upsert(db: Session, user_id: str, email: str, name: str | None = None) -> User:
    """
    Mirror an identity asserted by the identity provider.
    Email and name follow the provider; the id never changes.
    """
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=normalize_email(email), name=name or "")
        db.add(user)
    else:
        user.email = normalize_email(email) or user.email
        if name is not None:
            user.name = name
    db.commit()
    db.refresh(user)
    return user
