"""Provisioning domain events."""

from __future__ import annotations

from provisioning.domain.models.base import DomainEvent


class ProvisioningRequestStarted(DomainEvent):
    """Emitted when a saga opens a new provisioning request."""

    request_id: str
    employee_id: str
    lifecycle_event: str
    event_type: str = "provisioning.started"


class ProvisioningRequestCompleted(DomainEvent):
    """Emitted when every step of a saga completed."""

    request_id: str
    employee_id: str
    completed_steps: int
    event_type: str = "provisioning.completed"


class ProvisioningRequestFailed(DomainEvent):
    """Emitted when a saga halts on a failed step."""

    request_id: str
    employee_id: str
    failed_step: str
    error_message: str
    event_type: str = "provisioning.failed"


class ProvisioningStepCompensated(DomainEvent):
    request_id: str
    step_id: str
    action: str
    event_type: str = "provisioning.step_compensated"


class ProvisioningCancellationRequested(DomainEvent):
    request_id: str
    requested_by: str = ""
    event_type: str = "provisioning.cancellation_requested"


class EntitlementFallbackUsed(DomainEvent):
    """Emitted when a department had no exact entitlement configuration."""

    department: str
    source: str
    event_type: str = "entitlements.fallback_used"
