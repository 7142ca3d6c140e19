"""Application-facing service: serialized saga dispatch and request queries."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

import structlog

from provisioning.domain.errors import (
    EmployeeSagaInProgressError,
    RequestNotFoundError,
)
from provisioning.domain.models.audit import AuditEntry, AuditOutcome, AuditScope
from provisioning.domain.models.entitlements import EntitlementSet
from provisioning.domain.models.lifecycle import LifecycleEvent
from provisioning.domain.models.provisioning import (
    InvalidStateTransitionError,
    ProvisioningRequest,
    ProvisioningResult,
    RequestStatus,
)
from provisioning.domain.ports.repositories import AuditLogRepository, ProvisioningRequestRepository
from provisioning.domain.ports.services import DistributedLock, ProvisioningConfigProvider
from provisioning.domain.services.entitlement_resolver import EntitlementResolver
from provisioning.domain.services.saga_orchestrator import SagaOrchestrator


logger = structlog.get_logger(__name__)


class LifecycleService:
    """Entry point used by the API.

    Sagas for one employee never overlap: a distributed lock keyed on the
    employee id is held for the whole run, and a second submission while it
    is held is rejected rather than queued.
    """

    def __init__(
        self,
        orchestrator: SagaOrchestrator,
        request_repo: ProvisioningRequestRepository,
        audit_log: AuditLogRepository,
        config_provider: ProvisioningConfigProvider,
        lock_service: DistributedLock,
        resolver: EntitlementResolver | None = None,
        lock_ttl_seconds: int = 900,
        lock_renew_interval: float | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._request_repo = request_repo
        self._audit_log = audit_log
        self._config_provider = config_provider
        self._lock_service = lock_service
        self._resolver = resolver or EntitlementResolver()
        self._lock_ttl = lock_ttl_seconds
        # Renewed at a third of the TTL.
        self._lock_renew_interval = lock_renew_interval or max(lock_ttl_seconds / 3, 0.1)

    async def submit(
        self,
        event: LifecycleEvent | dict[str, Any],
        correlation_id: str | None = None,
    ) -> ProvisioningResult:
        """Validate and run a lifecycle event.

        Raises ``LifecycleEventValidationError`` before any external call when
        the event is malformed, and ``EmployeeSagaInProgressError`` when a saga
        for the same employee is still running.
        """
        if not isinstance(event, LifecycleEvent):
            event = LifecycleEvent.parse(event)

        lock_key = event.serialization_key
        acquired = await self._lock_service.acquire(lock_key, ttl_seconds=self._lock_ttl)
        if not acquired:
            logger.warning("saga_rejected_employee_locked", employee_id=event.employee_id)
            raise EmployeeSagaInProgressError(event.employee_id)

        heartbeat = asyncio.create_task(self._keep_lock(lock_key))
        try:
            return await self._orchestrator.run(event, correlation_id=correlation_id)
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
            await self._lock_service.release(lock_key)

    async def _keep_lock(self, lock_key: str) -> None:
        """Extend the employee lock for as long as the saga runs."""
        while True:
            await asyncio.sleep(self._lock_renew_interval)
            try:
                extended = await self._lock_service.extend(lock_key, ttl_seconds=self._lock_ttl)
            except Exception as e:  # noqa: BLE001
                logger.warning("employee_lock_extend_failed", lock_key=lock_key, error=str(e))
                continue
            if not extended:
                logger.error("employee_lock_lost", lock_key=lock_key)
                return

    async def get_request(self, request_id: str) -> ProvisioningRequest:
        request = await self._request_repo.get_by_id(request_id)
        if request is None:
            raise RequestNotFoundError(f"Provisioning request {request_id} not found")
        return request

    async def list_requests(
        self,
        employee_id: str | None = None,
        status: RequestStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ProvisioningRequest]:
        if employee_id:
            requests = await self._request_repo.list_by_employee(employee_id, limit=limit, offset=offset)
            if status is not None:
                requests = [r for r in requests if r.status == status]
            return requests
        if status is not None:
            return await self._request_repo.list_by_status(status, limit=limit, offset=offset)
        return await self._request_repo.list_by_status(
            RequestStatus.IN_PROGRESS, limit=limit, offset=offset,
        )

    async def cancel(
        self, request_id: str, requested_by: str, reason: str = "",
    ) -> ProvisioningRequest:
        """Flag an in-progress request for cancellation.

        The running saga notices the flag at its next step boundary and fails
        there, compensating what it already did.
        """
        request = await self.get_request(request_id)
        if request.is_terminal:
            raise InvalidStateTransitionError(
                f"Request {request_id} is already {request.status.value}"
            )
        request.request_cancellation(requested_by=requested_by)
        await self._request_repo.mark_cancellation_requested(request_id)
        await self._audit_log.record(AuditEntry(
            request_id=request_id,
            action="CancelRequested",
            outcome=AuditOutcome.SUCCESS,
            scope=AuditScope.SAGA,
            target=request.employee_id,
            actor=requested_by,
            details={"reason": reason} if reason else {},
        ))
        logger.info("cancellation_requested", request_id=request_id, requested_by=requested_by)
        return request

    async def get_audit_trail(self, request_id: str) -> list[AuditEntry]:
        await self.get_request(request_id)
        return await self._audit_log.list_by_request(request_id)

    async def resolve_entitlements(self, department: str, role: str | None = None) -> EntitlementSet:
        config = await self._config_provider.get_provisioning_config()
        return self._resolver.resolve(department, config, role=role)
