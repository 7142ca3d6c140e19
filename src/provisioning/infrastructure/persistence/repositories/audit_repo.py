"""Audit log repository implementation."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from provisioning.domain.models.audit import AuditEntry, AuditOutcome, AuditScope
from provisioning.domain.ports.repositories import AuditLogRepository
from provisioning.infrastructure.persistence.models import AuditLogORM
from provisioning.infrastructure.persistence.repositories.request_repo import SessionScope


MAX_SEQUENCE_ATTEMPTS = 3


class PostgresAuditLogRepository(AuditLogRepository):
    """Append-only audit store. Rows are inserted and read, never updated."""

    def __init__(self, session_scope: SessionScope) -> None:
        self._session_scope = session_scope

    async def record(self, entry: AuditEntry) -> AuditEntry:
        # The unique (request_id, sequence) constraint arbitrates concurrent writers.
        for attempt in range(1, MAX_SEQUENCE_ATTEMPTS + 1):
            try:
                async with self._session_scope() as session:
                    result = await session.execute(
                        select(func.coalesce(func.max(AuditLogORM.sequence), 0))
                        .where(AuditLogORM.request_id == entry.request_id)
                    )
                    stored = entry.model_copy(update={"sequence": result.scalar_one() + 1})
                    session.add(self._to_orm(stored))
                    await session.flush()
                return stored
            except IntegrityError:
                if attempt == MAX_SEQUENCE_ATTEMPTS:
                    raise
        raise AssertionError("unreachable")

    async def list_by_request(self, request_id: str) -> list[AuditEntry]:
        async with self._session_scope() as session:
            result = await session.execute(
                select(AuditLogORM)
                .where(AuditLogORM.request_id == request_id)
                .order_by(AuditLogORM.sequence.asc())
            )
            return [self._to_domain(orm) for orm in result.scalars().all()]

    def _to_orm(self, entry: AuditEntry) -> AuditLogORM:
        return AuditLogORM(
            id=entry.id,
            request_id=entry.request_id,
            sequence=entry.sequence,
            action=entry.action,
            outcome=entry.outcome.value,
            scope=entry.scope.value,
            target=entry.target,
            error_detail=entry.error_detail,
            actor=entry.actor,
            details=dict(entry.details),
            timestamp=entry.timestamp,
        )

    def _to_domain(self, orm: AuditLogORM) -> AuditEntry:
        return AuditEntry(
            id=orm.id,
            request_id=orm.request_id,
            sequence=orm.sequence,
            action=orm.action,
            outcome=AuditOutcome(orm.outcome),
            scope=AuditScope(orm.scope),
            target=orm.target or "",
            error_detail=orm.error_detail or "",
            actor=orm.actor,
            details=dict(orm.details or {}),
            timestamp=orm.timestamp,
        )
