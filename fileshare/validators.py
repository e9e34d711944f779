from __future__ import annotations

import os
import re
from datetime import datetime

from fileshare.db.base import as_utc

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._-]")

MAX_FILE_NAME_LEN = 200


def validate_email(addr: str) -> bool:
    return isinstance(addr, str) and EMAIL_RE.fullmatch(addr.strip()) is not None


def normalize_email(addr: str) -> str:
    return (addr or "").strip().lower()


def validate_content_type(ct: str, allowed: list[str]) -> bool:
    if not isinstance(ct, str) or not ct:
        return False
    if "*" in allowed:
        return True
    return ct.split(";", 1)[0].strip().lower() in allowed


def sanitize_filename(name: str) -> str:
    # Keep only basename, strip path components
    base = os.path.basename((name or "").replace("\0", "").replace("\\", "/"))
    base = SAFE_NAME_RE.sub("_", base)
    if len(base) > MAX_FILE_NAME_LEN:
        stem, ext = os.path.splitext(base)
        base = stem[: MAX_FILE_NAME_LEN - len(ext)] + ext
    if not base or base in (".", ".."):
        base = "file"
    return base


def is_future(ts: datetime, now: datetime) -> bool:
    """Strictly after ``now``; naive timestamps are read as UTC."""
    return as_utc(ts) > now  # type: ignore[operator]
