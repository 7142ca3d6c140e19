"""Repository port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from provisioning.domain.models.audit import AuditEntry
from provisioning.domain.models.provisioning import ProvisioningRequest, RequestStatus
from provisioning.domain.models.user import User


class ProvisioningRequestRepository(ABC):
    """Port for provisioning request persistence."""

    @abstractmethod
    async def save(self, request: ProvisioningRequest) -> ProvisioningRequest:
        """Persist a new request."""

    @abstractmethod
    async def get_by_id(self, request_id: str) -> ProvisioningRequest | None:
        """Retrieve a request by ID."""

    @abstractmethod
    async def update(self, request: ProvisioningRequest) -> ProvisioningRequest:
        """Persist the current ledger and status of a request."""

    @abstractmethod
    async def list_by_employee(
        self, employee_id: str, limit: int = 50, offset: int = 0
    ) -> list[ProvisioningRequest]:
        """List requests for an employee, newest first."""

    @abstractmethod
    async def list_by_status(
        self, status: RequestStatus, limit: int = 50, offset: int = 0
    ) -> list[ProvisioningRequest]:
        """List requests by status, newest first."""

    @abstractmethod
    async def mark_cancellation_requested(self, request_id: str) -> bool:
        """Set the cancellation flag. Returns False if the request is unknown or terminal."""

    @abstractmethod
    async def is_cancellation_requested(self, request_id: str) -> bool:
        """Read the cancellation flag as currently stored."""


class AuditLogRepository(ABC):
    """Port for the append-only audit store."""

    @abstractmethod
    async def record(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry, returning it with its assigned sequence number."""

    @abstractmethod
    async def list_by_request(self, request_id: str) -> list[AuditEntry]:
        """All entries for a request, in sequence order."""


class UserRepository(ABC):
    """Port for user persistence."""

    @abstractmethod
    async def save(self, user: User) -> User:
        """Persist a user."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> User | None:
        """Retrieve a user by ID."""

    @abstractmethod
    async def get_by_username(self, username: str) -> User | None:
        """Retrieve a user by username."""

    @abstractmethod
    async def list_by_tenant(self, tenant_id: str) -> list[User]:
        """List users for a tenant."""

    @abstractmethod
    async def update(self, user: User) -> User:
        """Update a user."""
