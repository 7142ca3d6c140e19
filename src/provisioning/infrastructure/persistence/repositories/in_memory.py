"""In-memory repository implementations for development and testing."""

from __future__ import annotations

from provisioning.domain.models.audit import AuditEntry
from provisioning.domain.models.notification import Notification, NotificationPriority
from provisioning.domain.models.provisioning import ProvisioningRequest, RequestStatus
from provisioning.domain.models.user import User
from provisioning.domain.ports.repositories import (
    AuditLogRepository,
    ProvisioningRequestRepository,
    UserRepository,
)
from provisioning.domain.ports.services import NotificationQueue


# Module-level shared stores enable cross-instance access in the demo API
# while keeping a single clear point for test isolation.
_request_store: dict[str, ProvisioningRequest] = {}
_cancel_flags: set[str] = set()
_audit_store: dict[str, list[AuditEntry]] = {}
_notification_store: list[Notification] = []
_user_store: dict[str, User] = {}


class InMemoryProvisioningRequestRepository(ProvisioningRequestRepository):
    """In-memory provisioning request repository for testing and demo use."""

    def __init__(self) -> None:
        self._store = _request_store

    async def save(self, request: ProvisioningRequest) -> ProvisioningRequest:
        self._store[request.id] = request
        return request

    async def get_by_id(self, request_id: str) -> ProvisioningRequest | None:
        return self._store.get(request_id)

    async def update(self, request: ProvisioningRequest) -> ProvisioningRequest:
        self._store[request.id] = request
        return request

    async def list_by_employee(
        self, employee_id: str, limit: int = 50, offset: int = 0
    ) -> list[ProvisioningRequest]:
        items = [r for r in self._store.values() if r.employee_id == employee_id]
        return sorted(items, key=lambda r: r.created_at, reverse=True)[offset:offset + limit]

    async def list_by_status(
        self, status: RequestStatus, limit: int = 50, offset: int = 0
    ) -> list[ProvisioningRequest]:
        items = [r for r in self._store.values() if r.status == status]
        return sorted(items, key=lambda r: r.created_at, reverse=True)[offset:offset + limit]

    async def mark_cancellation_requested(self, request_id: str) -> bool:
        request = self._store.get(request_id)
        if request is None or request.is_terminal:
            return False
        _cancel_flags.add(request_id)
        return True

    async def is_cancellation_requested(self, request_id: str) -> bool:
        return request_id in _cancel_flags

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _request_store.clear()
        _cancel_flags.clear()


class InMemoryAuditLogRepository(AuditLogRepository):
    """Append-only in-memory audit store."""

    def __init__(self) -> None:
        self._store = _audit_store

    async def record(self, entry: AuditEntry) -> AuditEntry:
        entries = self._store.setdefault(entry.request_id, [])
        stored = entry.model_copy(update={"sequence": len(entries) + 1})
        entries.append(stored)
        return stored

    async def list_by_request(self, request_id: str) -> list[AuditEntry]:
        return list(self._store.get(request_id, []))

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _audit_store.clear()


class InMemoryNotificationQueue(NotificationQueue):
    """Collects queued notifications instead of handing them to a mail sender.

    ``fail_next`` makes the next ``queue`` call raise, for exercising the
    failure paths of callers.
    """

    def __init__(self) -> None:
        self._store = _notification_store
        self._failures: list[Exception] = []

    @property
    def queued(self) -> list[Notification]:
        return list(self._store)

    def fail_next(self, error: Exception | None = None) -> None:
        self._failures.append(error or ConnectionError("notification queue unavailable"))

    async def queue(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        priority: NotificationPriority,
        correlation_id: str,
    ) -> str:
        if self._failures:
            raise self._failures.pop(0)
        notification = Notification(
            recipients=recipients,
            subject=subject,
            body=body,
            priority=priority,
            correlation_id=correlation_id,
        )
        self._store.append(notification)
        return notification.id

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _notification_store.clear()


class InMemoryUserRepository(UserRepository):
    """In-memory user repository for testing and demo use."""

    def __init__(self) -> None:
        self._store = _user_store

    async def save(self, user: User) -> User:
        self._store[user.id] = user
        return user

    async def get_by_id(self, user_id: str) -> User | None:
        return self._store.get(user_id)

    async def get_by_username(self, username: str) -> User | None:
        for user in self._store.values():
            if user.username == username:
                return user
        return None

    async def list_by_tenant(self, tenant_id: str) -> list[User]:
        users = [u for u in self._store.values() if u.tenant_id == tenant_id]
        return sorted(users, key=lambda u: u.username)

    async def update(self, user: User) -> User:
        self._store[user.id] = user
        return user

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _user_store.clear()
