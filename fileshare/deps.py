from __future__ import annotations

from collections.abc import Generator
from typing import Any

import redis
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from fileshare.config import Settings, settings
from fileshare.storage.blob_store import BlobStore, build_blob_store


def get_settings() -> Settings:
    return settings


def _engine_kwargs(dsn: str) -> dict[str, Any]:
    if dsn.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": int(getattr(settings, "database_pool_size", 20)),
        "max_overflow": int(getattr(settings, "database_max_overflow", 10)),
        "pool_pre_ping": True,
    }


engine = create_engine(settings.database_dsn, future=True, **_engine_kwargs(settings.database_dsn))
SessionLocal = sessionmaker(engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

# Redis connection with pool
_pool = redis.ConnectionPool.from_url(
    settings.redis_dsn,
    max_connections=int(getattr(settings, "redis_max_connections", 100)),
    decode_responses=True,
)
rds = redis.Redis(connection_pool=_pool)


def get_redis() -> redis.Redis:
    """Dependency to get the Redis client instance."""
    return rds


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = build_blob_store(settings)
    return _blob_store
