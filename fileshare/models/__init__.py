from .audit import AuditAction, AuditEntry
from .files import File
from .grants import GRANTABLE_ROLES, Grant, GrantKind, Role
from .users import User

__all__ = ["AuditAction", "AuditEntry", "File", "GRANTABLE_ROLES", "Grant", "GrantKind", "Role", "User"]
