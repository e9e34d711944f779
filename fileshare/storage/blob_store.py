"""Blob store collaborators: the core only ever keeps the opaque storage id and URL."""

from __future__ import annotations

import io
import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import requests

from fileshare.errors import StorageFailure
from fileshare.validators import sanitize_filename

if TYPE_CHECKING:
    from fileshare.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobRef:
    storage_id: str
    url: str


class BlobStore(Protocol):
    def put(self, data: bytes, filename: str, content_type: str) -> BlobRef: ...

    def delete(self, storage_id: str) -> None: ...

    def url(self, storage_id: str) -> str: ...


class LocalBlobStore:
    """Directory-backed store for development and tests."""

    def __init__(self, root: Path, public_url: str | None = None) -> None:
        self.root = Path(root)
        self.public_url = (public_url or self.root.resolve().as_uri()).rstrip("/")

    def _path(self, storage_id: str) -> Path:
        # storage ids are generated here; refuse anything that could escape root
        if "/" in storage_id or "\\" in storage_id or storage_id in ("", ".", ".."):
            raise StorageFailure(f"bad storage id {storage_id!r}")
        return self.root / storage_id

    def put(self, data: bytes, filename: str, content_type: str) -> BlobRef:
        storage_id = f"{secrets.token_hex(8)}-{sanitize_filename(filename)}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._path(storage_id).write_bytes(data)
        except OSError as err:
            raise StorageFailure("blob write failed") from err
        return BlobRef(storage_id=storage_id, url=self.url(storage_id))

    def delete(self, storage_id: str) -> None:
        try:
            self._path(storage_id).unlink(missing_ok=True)
        except OSError as err:
            raise StorageFailure("blob delete failed") from err

    def url(self, storage_id: str) -> str:
        return f"{self.public_url}/{storage_id}"


class HttpBlobStore:
    """Object store reached over HTTP: POST {api}/objects, DELETE {api}/objects/{id}."""

    def __init__(self, api_url: str, public_url: str | None = None, timeout: int = 15) -> None:
        self.api = api_url.rstrip("/")
        self.public = (public_url or self.api).rstrip("/")
        self.timeout = timeout

    def put(self, data: bytes, filename: str, content_type: str) -> BlobRef:
        files = {"file": (sanitize_filename(filename), io.BytesIO(data), content_type)}
        try:
            r = requests.post(f"{self.api}/objects", files=files, timeout=self.timeout)
            r.raise_for_status()
            storage_id = r.json()["id"]
        except (requests.RequestException, KeyError, ValueError) as err:
            raise StorageFailure("blob upload failed") from err
        return BlobRef(storage_id=storage_id, url=self.url(storage_id))

    def delete(self, storage_id: str) -> None:
        try:
            r = requests.delete(f"{self.api}/objects/{storage_id}", timeout=self.timeout)
            if r.status_code == 404:
                logger.info("blob %s already gone", storage_id)
                return
            r.raise_for_status()
        except requests.RequestException as err:
            raise StorageFailure("blob delete failed") from err

    def url(self, storage_id: str) -> str:
        return f"{self.public}/objects/{storage_id}"


def build_blob_store(settings: Settings) -> BlobStore:
    backend = (settings.blob_backend or "local").lower()
    if backend == "http":
        if not settings.blob_http_url:
            raise RuntimeError("Missing required configuration: BLOB_HTTP_URL (BLOB_BACKEND=http)")
        return HttpBlobStore(settings.blob_http_url, settings.blob_public_url, settings.blob_timeout_sec)
    if backend == "local":
        return LocalBlobStore(settings.blob_local_dir, settings.blob_public_url)
    raise RuntimeError(f"Unknown BLOB_BACKEND {settings.blob_backend!r}")
