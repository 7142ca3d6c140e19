"""Unit tests for in-memory repository implementations."""

from __future__ import annotations

import pytest

from provisioning.domain.models.audit import AuditEntry, AuditOutcome
from provisioning.domain.models.notification import NotificationPriority
from provisioning.domain.models.provisioning import ProvisioningRequest, RequestStatus
from provisioning.domain.models.user import Role, User
from provisioning.infrastructure.persistence.repositories.in_memory import (
    InMemoryAuditLogRepository,
    InMemoryNotificationQueue,
    InMemoryProvisioningRequestRepository,
    InMemoryUserRepository,
)


def _make_request(event_factory, employee_id: str = "E1") -> ProvisioningRequest:
    return ProvisioningRequest.start(event_factory(employee_id=employee_id))


class TestInMemoryProvisioningRequestRepository:
    @pytest.mark.asyncio
    async def test_save_and_get(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        request = _make_request(event_factory)
        await repo.save(request)
        result = await repo.get_by_id(request.id)
        assert result is not None
        assert result.id == request.id

    @pytest.mark.asyncio
    async def test_get_nonexistent(self) -> None:
        assert await InMemoryProvisioningRequestRepository().get_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_shared_between_instances(self, event_factory) -> None:
        request = _make_request(event_factory)
        await InMemoryProvisioningRequestRepository().save(request)
        assert await InMemoryProvisioningRequestRepository().get_by_id(request.id) is not None

    @pytest.mark.asyncio
    async def test_list_by_employee(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        await repo.save(_make_request(event_factory, "a"))
        await repo.save(_make_request(event_factory, "a"))
        await repo.save(_make_request(event_factory, "b"))
        assert len(await repo.list_by_employee("a")) == 2
        assert len(await repo.list_by_employee("b")) == 1

    @pytest.mark.asyncio
    async def test_list_by_status(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        running = _make_request(event_factory)
        done = _make_request(event_factory)
        done.complete()
        await repo.save(running)
        await repo.save(done)
        assert [r.id for r in await repo.list_by_status(RequestStatus.IN_PROGRESS)] == [running.id]
        assert [r.id for r in await repo.list_by_status(RequestStatus.COMPLETED)] == [done.id]

    @pytest.mark.asyncio
    async def test_list_with_limit_offset(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        for _ in range(5):
            await repo.save(_make_request(event_factory))
        assert len(await repo.list_by_employee("E1", limit=2)) == 2
        assert len(await repo.list_by_employee("E1", limit=10, offset=3)) == 2

    @pytest.mark.asyncio
    async def test_cancellation_flag(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        request = _make_request(event_factory)
        await repo.save(request)

        assert not await repo.is_cancellation_requested(request.id)
        assert await repo.mark_cancellation_requested(request.id)
        assert await repo.is_cancellation_requested(request.id)

    @pytest.mark.asyncio
    async def test_cannot_cancel_terminal_or_unknown(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        request = _make_request(event_factory)
        request.fail("step", "boom")
        await repo.save(request)

        assert not await repo.mark_cancellation_requested(request.id)
        assert not await repo.mark_cancellation_requested("unknown")

    @pytest.mark.asyncio
    async def test_clear(self, event_factory) -> None:
        repo = InMemoryProvisioningRequestRepository()
        request = _make_request(event_factory)
        await repo.save(request)
        await repo.mark_cancellation_requested(request.id)
        InMemoryProvisioningRequestRepository.clear()
        assert await repo.get_by_id(request.id) is None
        assert not await repo.is_cancellation_requested(request.id)


class TestInMemoryAuditLogRepository:
    @pytest.mark.asyncio
    async def test_assigns_sequence_per_request(self) -> None:
        repo = InMemoryAuditLogRepository()
        first = await repo.record(AuditEntry(request_id="r1", action="A", outcome=AuditOutcome.SUCCESS))
        second = await repo.record(AuditEntry(request_id="r1", action="B", outcome=AuditOutcome.FAILED))
        other = await repo.record(AuditEntry(request_id="r2", action="A", outcome=AuditOutcome.SUCCESS))

        assert (first.sequence, second.sequence, other.sequence) == (1, 2, 1)
        assert [e.action for e in await repo.list_by_request("r1")] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_listing_returns_a_copy(self) -> None:
        repo = InMemoryAuditLogRepository()
        await repo.record(AuditEntry(request_id="r1", action="A", outcome=AuditOutcome.SUCCESS))
        entries = await repo.list_by_request("r1")
        entries.clear()
        assert len(await repo.list_by_request("r1")) == 1

    @pytest.mark.asyncio
    async def test_unknown_request(self) -> None:
        assert await InMemoryAuditLogRepository().list_by_request("nope") == []


class TestInMemoryNotificationQueue:
    @pytest.mark.asyncio
    async def test_queue(self) -> None:
        queue = InMemoryNotificationQueue()
        item_id = await queue.queue(["a@example.com"], "s", "b", NotificationPriority.HIGH, "corr")
        assert queue.queued[0].id == item_id
        assert queue.queued[0].priority == NotificationPriority.HIGH

    @pytest.mark.asyncio
    async def test_fail_next_is_one_shot(self) -> None:
        queue = InMemoryNotificationQueue()
        queue.fail_next()
        with pytest.raises(ConnectionError):
            await queue.queue(["a"], "s", "b", NotificationPriority.LOW, "c")
        await queue.queue(["a"], "s", "b", NotificationPriority.LOW, "c")
        assert len(queue.queued) == 1


class TestInMemoryUserRepository:
    @pytest.mark.asyncio
    async def test_save_and_get(self) -> None:
        repo = InMemoryUserRepository()
        user = User(username="test", email="t@t.com", role=Role.IT_OPERATOR)
        await repo.save(user)
        assert (await repo.get_by_id(user.id)).username == "test"

    @pytest.mark.asyncio
    async def test_get_by_username(self) -> None:
        repo = InMemoryUserRepository()
        await repo.save(User(username="alice", email="a@t.com"))
        result = await repo.get_by_username("alice")
        assert result is not None
        assert result.email == "a@t.com"
        assert await repo.get_by_username("bob") is None

    @pytest.mark.asyncio
    async def test_list_by_tenant(self) -> None:
        repo = InMemoryUserRepository()
        await repo.save(User(username="a", email="a@t.com", tenant_id="t1"))
        await repo.save(User(username="b", email="b@t.com", tenant_id="t2"))
        assert len(await repo.list_by_tenant("t1")) == 1

    @pytest.mark.asyncio
    async def test_update(self) -> None:
        repo = InMemoryUserRepository()
        user = User(username="a", email="a@t.com")
        await repo.save(user)
        user.is_active = False
        await repo.update(user)
        assert not (await repo.get_by_id(user.id)).is_active
