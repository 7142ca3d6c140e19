"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from provisioning.domain.models.directory import (
    DirectoryIdentity,
    DirectoryReference,
    IdentityProfile,
    ProfileChanges,
)
from provisioning.domain.models.entitlements import ProvisioningConfig
from provisioning.domain.models.notification import NotificationPriority
from provisioning.domain.models.payloads import (
    GroupMembershipAdded,
    GroupMembershipRemoved,
    IdentityCreated,
    IdentityDisabled,
    LicensesAssigned,
    LicensesRemoved,
    ProfileUpdated,
    SessionsRevoked,
    TeamMembershipAdded,
    TeamMembershipRemoved,
)


class DirectoryClient(ABC):
    """Port for the remote identity directory.

    Membership mutations are idempotent: "already a member" on add and
    "not a member" on remove are reported as success. Failures raise
    ``ExternalServiceError`` (or ``DirectoryTimeoutError``); retries, when
    any, happen inside the adapter.
    """

    @abstractmethod
    async def create_identity(self, profile: IdentityProfile) -> IdentityCreated:
        """Create a directory identity."""

    @abstractmethod
    async def get_identity(self, principal: str) -> DirectoryIdentity | None:
        """Look up an identity by id or principal name."""

    @abstractmethod
    async def update_identity(self, identity_id: str, changes: ProfileChanges) -> ProfileUpdated:
        """Apply a partial profile update."""

    @abstractmethod
    async def set_manager(self, identity_id: str, manager_id: str) -> None:
        """Point the identity's manager reference at ``manager_id``."""

    @abstractmethod
    async def disable_identity(self, identity_id: str) -> IdentityDisabled:
        """Block sign-in for an identity. Never deletes it."""

    @abstractmethod
    async def enable_identity(self, identity_id: str) -> None:
        """Re-enable sign-in for an identity."""

    @abstractmethod
    async def revoke_sessions(self, identity_id: str) -> SessionsRevoked:
        """Invalidate every refresh token and session cookie."""

    @abstractmethod
    async def assign_licenses(self, identity_id: str, license_ids: list[str]) -> LicensesAssigned:
        """Assign licenses."""

    @abstractmethod
    async def remove_licenses(self, identity_id: str, license_ids: list[str]) -> LicensesRemoved:
        """Remove licenses."""

    @abstractmethod
    async def list_licenses(self, identity_id: str) -> list[DirectoryReference]:
        """List licenses currently assigned."""

    @abstractmethod
    async def add_to_group(self, identity_id: str, group_id: str) -> GroupMembershipAdded:
        """Add the identity to a security group."""

    @abstractmethod
    async def remove_from_group(self, identity_id: str, group_id: str) -> GroupMembershipRemoved:
        """Remove the identity from a security group."""

    @abstractmethod
    async def list_groups(self, identity_id: str) -> list[DirectoryReference]:
        """List groups the identity is a member of."""

    @abstractmethod
    async def add_to_team(
        self, identity_id: str, team_id: str, role: str = "member"
    ) -> TeamMembershipAdded:
        """Add the identity to a collaboration team."""

    @abstractmethod
    async def remove_from_team(self, identity_id: str, team_id: str) -> TeamMembershipRemoved:
        """Remove the identity from a collaboration team."""

    @abstractmethod
    async def list_teams(self, identity_id: str) -> list[DirectoryReference]:
        """List teams the identity is a member of."""


class NotificationQueue(ABC):
    """Port for the notification delivery subsystem."""

    @abstractmethod
    async def queue(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        priority: NotificationPriority,
        correlation_id: str,
    ) -> str:
        """Queue a message and return the queue item id."""


class ProvisioningConfigProvider(ABC):
    """Port for provisioning configuration."""

    @abstractmethod
    async def get_provisioning_config(self) -> ProvisioningConfig:
        """Return a configuration snapshot."""


class EventPublisher(ABC):
    """Port for publishing domain events."""

    @abstractmethod
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish an event."""

    @abstractmethod
    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        """Publish a batch of events."""


class DistributedLock(ABC):
    """Port for distributed locking."""

    @abstractmethod
    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        """Acquire a distributed lock."""

    @abstractmethod
    async def release(self, resource_id: str) -> bool:
        """Release a distributed lock."""

    @abstractmethod
    async def extend(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        """Extend the TTL of an existing lock."""

    @abstractmethod
    async def is_locked(self, resource_id: str) -> bool:
        """Check if a resource is locked."""
