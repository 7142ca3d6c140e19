"""Domain models package."""

from provisioning.domain.models.base import (
    AggregateRoot,
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)
from provisioning.domain.models.audit import AuditEntry, AuditOutcome, AuditScope
from provisioning.domain.models.entitlements import (
    DepartmentEntitlementConfig,
    EntitlementSet,
    PasswordPolicy,
    ProvisioningConfig,
    ResolutionSource,
    RoleEntitlementConfig,
)
from provisioning.domain.models.lifecycle import LifecycleEvent, LifecycleEventType
from provisioning.domain.models.notification import (
    Notification,
    NotificationPriority,
    NotificationStatus,
)
from provisioning.domain.models.provisioning import (
    ActionType,
    CompensationOutcome,
    CompensationStatus,
    InvalidStateTransitionError,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStep,
    REQUEST_VALID_TRANSITIONS,
    RequestStatus,
    ROLLBACKABLE_ACTIONS,
    StepStatus,
)
from provisioning.domain.models.user import (
    Permission,
    Role,
    ROLE_PERMISSIONS,
    User,
)


__all__ = [
    "ActionType",
    "AggregateRoot",
    "AuditEntry",
    "AuditOutcome",
    "AuditScope",
    "CompensationOutcome",
    "CompensationStatus",
    "DepartmentEntitlementConfig",
    "DomainEntity",
    "DomainEvent",
    "EntitlementSet",
    "InvalidStateTransitionError",
    "LifecycleEvent",
    "LifecycleEventType",
    "Notification",
    "NotificationPriority",
    "NotificationStatus",
    "PasswordPolicy",
    "Permission",
    "ProvisioningConfig",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ProvisioningStep",
    "REQUEST_VALID_TRANSITIONS",
    "RequestStatus",
    "ResolutionSource",
    "ROLE_PERMISSIONS",
    "ROLLBACKABLE_ACTIONS",
    "Role",
    "RoleEntitlementConfig",
    "StepStatus",
    "User",
    "ValueObject",
    "generate_id",
    "utc_now",
]
