"""Domain events package."""

from provisioning.domain.models.base import DomainEvent
from provisioning.domain.events.provisioning_events import (
    EntitlementFallbackUsed,
    ProvisioningCancellationRequested,
    ProvisioningRequestCompleted,
    ProvisioningRequestFailed,
    ProvisioningRequestStarted,
    ProvisioningStepCompensated,
)


__all__ = [
    "DomainEvent",
    "EntitlementFallbackUsed",
    "ProvisioningCancellationRequested",
    "ProvisioningRequestCompleted",
    "ProvisioningRequestFailed",
    "ProvisioningRequestStarted",
    "ProvisioningStepCompensated",
]
