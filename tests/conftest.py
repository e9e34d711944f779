# tests/conftest.py
import os
from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Minimal env so Settings() builds when fileshare.* is imported
os.environ.setdefault("DATABASE_DSN", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("JWT_SECRET", "test_secret")
os.environ.setdefault("CORS_ORIGINS", "http://localhost")
os.environ.setdefault("FRONTEND_URL", "http://front.test")
os.environ.setdefault("LINK_REDEEM_RATE_PER_MIN", "1000")
os.environ.setdefault("PUBLIC_RATE_PER_MIN", "1000")

from fileshare.config import settings  # noqa: E402
from fileshare.db.base import Base  # noqa: E402
from fileshare.models import User  # noqa: E402
from fileshare.repos import user_repo  # noqa: E402
from fileshare.security import make_token  # noqa: E402
from fileshare.services.audit_log import AuditLog  # noqa: E402
from fileshare.storage.blob_store import LocalBlobStore  # noqa: E402


class FakeRedis:
    """Just enough of redis.Redis for the limiter and the health checks."""

    def __init__(self) -> None:
        self.counters: dict[str, int] = {}

    def incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    def expire(self, key: str, seconds: int) -> bool:
        return True

    def ttl(self, key: str) -> int:
        return 42

    def ping(self) -> bool:
        return True


@pytest.fixture()
def engine(tmp_path):
    # a file, not :memory:, so the audit log's own sessions see the same database
    eng = create_engine(f"sqlite:///{tmp_path / 'fileshare.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory) -> Iterator[Session]:
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def audit(session_factory) -> AuditLog:
    return AuditLog(session_factory)


@pytest.fixture()
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs", "http://blobs.test")


@pytest.fixture()
def cfg():
    return settings.model_copy()


@pytest.fixture()
def alice(db) -> User:
    return user_repo.upsert(db, "u-alice", "alice@example.com", "Alice")


@pytest.fixture()
def bob(db) -> User:
    return user_repo.upsert(db, "u-bob", "bob@example.com", "Bob")


@pytest.fixture()
def carol(db) -> User:
    return user_repo.upsert(db, "u-carol", "carol@example.com", "Carol")


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def client(session_factory, audit, blob_store, fake_redis, monkeypatch) -> Iterator[TestClient]:
    from fileshare import dependencies, deps
    from fileshare.main import app
    from fileshare.middleware import rate_limit

    def _get_db() -> Iterator[Session]:
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    monkeypatch.setattr(rate_limit, "rds", fake_redis)
    app.dependency_overrides[deps.get_db] = _get_db
    app.dependency_overrides[deps.get_redis] = lambda: fake_redis
    app.dependency_overrides[deps.get_blob_store] = lambda: blob_store
    app.dependency_overrides[dependencies.get_audit_log] = lambda: audit
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user.id, user.email, user.name)}"}

    return _headers
