from __future__ import annotations

import enum
from dataclasses import dataclass

from fileshare.models import Role


class DenyReason(str, enum.Enum):
    NO_GRANT = "no_grant"
    EXPIRED = "expired"
    INTEGRITY_VIOLATION = "integrity_violation"


class _Decision:
    # decisions are matched by type, never tested for truthiness
    def __bool__(self) -> bool:
        raise TypeError(f"{type(self).__name__} has no truth value; dispatch on its type")


@dataclass(frozen=True)
class Allowed(_Decision):
    role: Role
    file_id: str
    grant_id: str | None = None


@dataclass(frozen=True)
class Denied(_Decision):
    reason: DenyReason = DenyReason.NO_GRANT


@dataclass(frozen=True)
class NotFound(_Decision):
    pass


AccessDecision = Allowed | Denied | NotFound
