"""User and RBAC domain models."""

from __future__ import annotations

from enum import Enum

from provisioning.domain.models.base import DomainEntity


class Role(str, Enum):
    """Operator roles for RBAC."""

    ADMIN = "admin"
    IT_OPERATOR = "it_operator"
    HR_SUBMITTER = "hr_submitter"
    AUDITOR = "auditor"


class Permission(str, Enum):
    """System permissions."""

    PROVISIONING_RUN = "provisioning:run"
    PROVISIONING_READ = "provisioning:read"
    PROVISIONING_CANCEL = "provisioning:cancel"
    AUDIT_READ = "audit:read"
    USER_MANAGE = "user:manage"
    SYSTEM_ADMIN = "system:admin"


ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.ADMIN: set(Permission),
    Role.IT_OPERATOR: {
        Permission.PROVISIONING_RUN, Permission.PROVISIONING_READ,
        Permission.PROVISIONING_CANCEL, Permission.AUDIT_READ,
    },
    Role.HR_SUBMITTER: {
        Permission.PROVISIONING_RUN, Permission.PROVISIONING_READ,
    },
    Role.AUDITOR: {
        Permission.PROVISIONING_READ, Permission.AUDIT_READ,
    },
}


class User(DomainEntity):
    """Operator account allowed to call the provisioning API."""

    username: str
    email: str
    hashed_password: str = ""
    role: Role = Role.AUDITOR
    tenant_id: str = "default"
    is_active: bool = True

    def has_permission(self, permission: Permission) -> bool:
        if not self.is_active:
            return False
        role_perms = ROLE_PERMISSIONS.get(self.role, set())
        return permission in role_perms

    def has_any_permission(self, *permissions: Permission) -> bool:
        return any(self.has_permission(p) for p in permissions)
