"""Provisioning request repository implementation."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from provisioning.domain.models.lifecycle import LifecycleEvent
from provisioning.domain.models.provisioning import (
    ProvisioningRequest,
    ProvisioningStep,
    RequestStatus,
)
from provisioning.domain.ports.repositories import ProvisioningRequestRepository
from provisioning.infrastructure.persistence.models import ProvisioningRequestORM


SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class PostgresProvisioningRequestRepository(ProvisioningRequestRepository):
    """PostgreSQL implementation of ProvisioningRequestRepository.

    Each call runs in its own committed session so the ledger is durable after
    every step and a cancellation flag written by another API call is visible
    to the running saga.
    """

    def __init__(self, session_scope: SessionScope) -> None:
        self._session_scope = session_scope

    async def save(self, request: ProvisioningRequest) -> ProvisioningRequest:
        async with self._session_scope() as session:
            session.add(self._to_orm(request))
            await session.flush()
        return request

    async def get_by_id(self, request_id: str) -> ProvisioningRequest | None:
        async with self._session_scope() as session:
            result = await session.execute(
                select(ProvisioningRequestORM).where(ProvisioningRequestORM.id == request_id)
            )
            orm = result.scalar_one_or_none()
            return self._to_domain(orm) if orm else None

    async def update(self, request: ProvisioningRequest) -> ProvisioningRequest:
        orm_data = {
            "status": request.status.value,
            "steps_data": [s.model_dump(mode="json") for s in request.steps],
            "failed_step": request.failed_step,
            "error_message": request.error_message,
            "warnings": list(request.warnings),
            "identity_id": request.identity_id,
            "version": request.version,
            "completed_at": request.completed_at,
        }
        # The cancellation flag is only ever raised here, never cleared, so a
        # flag set by another caller survives the saga's own ledger writes.
        if request.cancel_requested:
            orm_data["cancel_requested"] = True
        async with self._session_scope() as session:
            await session.execute(
                update(ProvisioningRequestORM)
                .where(ProvisioningRequestORM.id == request.id)
                .values(**orm_data)
            )
        return request

    async def list_by_employee(
        self, employee_id: str, limit: int = 50, offset: int = 0
    ) -> list[ProvisioningRequest]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(ProvisioningRequestORM)
                .where(ProvisioningRequestORM.employee_id == employee_id)
                .order_by(ProvisioningRequestORM.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return [self._to_domain(orm) for orm in result.scalars().all()]

    async def list_by_status(
        self, status: RequestStatus, limit: int = 50, offset: int = 0
    ) -> list[ProvisioningRequest]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(ProvisioningRequestORM)
                .where(ProvisioningRequestORM.status == status.value)
                .order_by(ProvisioningRequestORM.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return [self._to_domain(orm) for orm in result.scalars().all()]

    async def mark_cancellation_requested(self, request_id: str) -> bool:
        async with self._session_scope() as session:
            result = await session.execute(
                update(ProvisioningRequestORM)
                .where(
                    ProvisioningRequestORM.id == request_id,
                    ProvisioningRequestORM.status == RequestStatus.IN_PROGRESS.value,
                )
                .values(cancel_requested=True)
            )
            return result.rowcount > 0

    async def is_cancellation_requested(self, request_id: str) -> bool:
        async with self._session_scope() as session:
            result = await session.execute(
                select(ProvisioningRequestORM.cancel_requested)
                .where(ProvisioningRequestORM.id == request_id)
            )
            return bool(result.scalar_one_or_none())

    def _to_orm(self, request: ProvisioningRequest) -> ProvisioningRequestORM:
        return ProvisioningRequestORM(
            id=request.id,
            employee_id=request.employee_id,
            event_type=request.event_type.value,
            status=request.status.value,
            event_data=request.event.model_dump(mode="json"),
            steps_data=[s.model_dump(mode="json") for s in request.steps],
            failed_step=request.failed_step,
            error_message=request.error_message,
            warnings=list(request.warnings),
            cancel_requested=request.cancel_requested,
            identity_id=request.identity_id,
            correlation_id=request.correlation_id,
            version=request.version,
            created_at=request.created_at,
            completed_at=request.completed_at,
        )

    def _to_domain(self, orm: ProvisioningRequestORM) -> ProvisioningRequest:
        return ProvisioningRequest(
            id=orm.id,
            event=LifecycleEvent.model_validate(orm.event_data),
            status=RequestStatus(orm.status),
            steps=[ProvisioningStep.model_validate(s) for s in orm.steps_data or []],
            failed_step=orm.failed_step,
            error_message=orm.error_message or "",
            warnings=list(orm.warnings or []),
            cancel_requested=orm.cancel_requested,
            identity_id=orm.identity_id,
            correlation_id=orm.correlation_id,
            version=orm.version,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
            completed_at=orm.completed_at,
        )
