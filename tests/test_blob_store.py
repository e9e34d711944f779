from __future__ import annotations

import pytest
import requests

from fileshare.errors import StorageFailure
from fileshare.storage.blob_store import HttpBlobStore, LocalBlobStore


def test_local_put_and_delete(tmp_path):
    store = LocalBlobStore(tmp_path, "http://cdn.test/")
    ref = store.put(b"abc", "../../etc/passwd", "text/plain")
    assert "/" not in ref.storage_id
    assert ref.url == f"http://cdn.test/{ref.storage_id}"
    assert (tmp_path / ref.storage_id).read_bytes() == b"abc"
    store.delete(ref.storage_id)
    assert not (tmp_path / ref.storage_id).exists()
    # deleting twice is fine
    store.delete(ref.storage_id)


def test_local_refuses_path_escape(tmp_path):
    with pytest.raises(StorageFailure):
        LocalBlobStore(tmp_path).delete("../outside")


class _Resp:
    def __init__(self, status: int, payload: dict | None = None) -> None:
        self.status_code = status
        self._payload = payload or {}

    def json(self) -> dict:
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")


def test_http_put_and_delete(monkeypatch):
    calls = []
    monkeypatch.setattr(requests, "post", lambda url, **kw: calls.append(url) or _Resp(201, {"id": "obj1"}))
    monkeypatch.setattr(requests, "delete", lambda url, **kw: calls.append(url) or _Resp(404))
    store = HttpBlobStore("http://objects.test/api/", "http://cdn.test")
    ref = store.put(b"x", "a.txt", "text/plain")
    assert (ref.storage_id, ref.url) == ("obj1", "http://cdn.test/objects/obj1")
    store.delete("obj1")
    assert calls == ["http://objects.test/api/objects", "http://objects.test/api/objects/obj1"]


def test_http_failures_become_storage_failure(monkeypatch):
    def boom(url, **kw):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", boom)
    monkeypatch.setattr(requests, "delete", lambda url, **kw: _Resp(500))
    store = HttpBlobStore("http://objects.test/api")
    with pytest.raises(StorageFailure):
        store.put(b"x", "a.txt", "text/plain")
    with pytest.raises(StorageFailure):
        store.delete("obj1")
