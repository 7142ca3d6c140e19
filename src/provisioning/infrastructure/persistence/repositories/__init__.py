"""Repository implementations."""

from provisioning.infrastructure.persistence.repositories.audit_repo import (
    PostgresAuditLogRepository,
)
from provisioning.infrastructure.persistence.repositories.notification_repo import (
    PostgresNotificationQueue,
)
from provisioning.infrastructure.persistence.repositories.request_repo import (
    PostgresProvisioningRequestRepository,
)
from provisioning.infrastructure.persistence.repositories.user_repo import (
    PostgresUserRepository,
)


__all__ = [
    "PostgresAuditLogRepository",
    "PostgresNotificationQueue",
    "PostgresProvisioningRequestRepository",
    "PostgresUserRepository",
]
