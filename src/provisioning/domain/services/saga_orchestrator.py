"""Saga engine: runs a workflow's steps, records the ledger, compensates on failure."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime

import structlog
from opentelemetry import trace

from provisioning.domain.events.provisioning_events import EntitlementFallbackUsed
from provisioning.domain.errors import (
    DirectoryTimeoutError,
    FailureKind,
    LedgerWriteError,
    ProvisioningError,
    SagaCancelledError,
)
from provisioning.domain.models.audit import AuditEntry, AuditOutcome, AuditScope
from provisioning.domain.models.base import AggregateRoot, utc_now
from provisioning.domain.models.entitlements import ProvisioningConfig
from provisioning.domain.models.lifecycle import LifecycleEvent
from provisioning.domain.models.provisioning import (
    CompensationOutcome,
    CompensationStatus,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStep,
)
from provisioning.domain.ports.repositories import AuditLogRepository, ProvisioningRequestRepository
from provisioning.domain.ports.services import (
    DirectoryClient,
    EventPublisher,
    NotificationQueue,
    ProvisioningConfigProvider,
)
from provisioning.domain.services.compensation import Compensator
from provisioning.domain.services.entitlement_resolver import EntitlementResolver
from provisioning.domain.services.notifications import NotificationEmitter
from provisioning.domain.services.workflows import PLANNERS, SagaContext, SagaStep, Workflow
from provisioning.infrastructure.observability.metrics import (
    ACTIVE_SAGAS,
    LEDGER_WRITE_FAILURES_TOTAL,
    SAGA_DURATION,
    SAGAS_TOTAL,
    STEP_DURATION,
    STEPS_TOTAL,
    TOLERATED_FAILURES_TOTAL,
)


logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

LOAD_CONFIG_STEP = "Load provisioning configuration"
PLAN_STEP = "Read directory state"
RECORD_REQUEST_STEP = "Record provisioning request"


class SagaOrchestrator:
    """Drives Join, Move and Leave sagas.

    Every collaborator is injected. The orchestrator never raises for a
    failed saga: it returns a ``ProvisioningResult`` and leaves the request
    Failed, audited and escalated. Callers are responsible for serializing
    sagas for the same employee.
    """

    def __init__(
        self,
        directory: DirectoryClient,
        config_provider: ProvisioningConfigProvider,
        request_repo: ProvisioningRequestRepository,
        audit_log: AuditLogRepository,
        notification_queue: NotificationQueue,
        resolver: EntitlementResolver | None = None,
        event_publisher: EventPublisher | None = None,
        step_timeout_seconds: float = 60.0,
        system_actor: str = "provisioning-service",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._directory = directory
        self._config_provider = config_provider
        self._request_repo = request_repo
        self._audit_log = audit_log
        self._notifier = NotificationEmitter(notification_queue)
        self._resolver = resolver or EntitlementResolver()
        self._event_publisher = event_publisher
        self._step_timeout = step_timeout_seconds
        self._system_actor = system_actor
        self._clock = clock
        self._compensator = Compensator(directory, call_timeout_seconds=step_timeout_seconds)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self, event: LifecycleEvent, correlation_id: str | None = None
    ) -> ProvisioningResult:
        """Run the saga for ``event`` and return its structured outcome."""
        request = ProvisioningRequest.start(event, correlation_id=correlation_id)
        save_error = await self._persist(request, operation="save")

        event_type = event.event_type.value
        structlog.contextvars.bind_contextvars(
            request_id=request.id,
            employee_id=event.employee_id,
            event_type=event_type,
        )
        started = time.perf_counter()
        ACTIVE_SAGAS.labels(event_type=event_type).inc()
        try:
            with tracer.start_as_current_span("provisioning.saga") as span:
                span.set_attribute("provisioning.request_id", request.id)
                span.set_attribute("provisioning.event_type", event_type)
                result = await self._execute(request, save_error)
                span.set_attribute("provisioning.status", result.status.value)
        finally:
            ACTIVE_SAGAS.labels(event_type=event_type).dec()
            SAGA_DURATION.labels(event_type=event_type).observe(time.perf_counter() - started)
            structlog.contextvars.unbind_contextvars("request_id", "employee_id", "event_type")

        SAGAS_TOTAL.labels(event_type=event_type, status=result.status.value).inc()
        return result

    async def _execute(
        self, request: ProvisioningRequest, save_error: LedgerWriteError | None = None,
    ) -> ProvisioningResult:
        logger.info("saga_started", correlation_id=request.correlation_id)

        try:
            config = await self._config_provider.get_provisioning_config()
        except Exception as e:  # noqa: BLE001
            return await self._finish_failed(
                request, None, None, LOAD_CONFIG_STEP, e,
            )

        # No directory call is made for a request the ledger never recorded.
        if save_error is not None:
            return await self._finish_failed(request, config, None, RECORD_REQUEST_STEP, save_error)

        ctx = SagaContext(
            request=request,
            config=config,
            directory=self._directory,
            resolver=self._resolver,
            notifier=self._notifier,
            clock=self._clock,
        )

        try:
            workflow = await PLANNERS[request.event_type](ctx)
        except Exception as e:  # noqa: BLE001
            return await self._finish_failed(request, config, None, PLAN_STEP, e)
        finally:
            self._record_fallbacks(ctx)

        logger.info("saga_planned", step_count=len(workflow.steps))

        for saga_step in workflow.steps:
            if await self._cancellation_requested(request):
                return await self._finish_failed(
                    request, config, workflow, saga_step.name, SagaCancelledError(request.id),
                )

            error = await self._run_step(ctx, saga_step)
            if error is not None:
                return await self._finish_failed(request, config, workflow, saga_step.name, error)

        request.complete(now=self._clock())
        await self._persist_or_warn(request)
        await self._audit(
            request, "Saga", AuditOutcome.SUCCESS, AuditScope.SAGA,
            target=request.employee_id,
            details={"completed_steps": str(len(request.completed_steps))},
        )
        await self._publish_events(request)
        logger.info(
            "saga_completed",
            completed_steps=len(request.completed_steps),
            warnings=len(request.warnings),
        )
        return ProvisioningResult.from_request(request)

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    async def _run_step(self, ctx: SagaContext, saga_step: SagaStep) -> Exception | None:
        """Run one step. Returns the error when the saga must halt."""
        request = ctx.request
        step = request.begin_step(
            saga_step.name, saga_step.action, target=saga_step.target, now=self._clock(),
        )
        ledger_error = await self._persist(request)
        if ledger_error is not None:
            request.fail_step(step, str(ledger_error), now=self._clock())
            logger.error("step_not_started", step=step.name, error=str(ledger_error))
            return ledger_error

        action = saga_step.action.value
        started = time.perf_counter()
        with tracer.start_as_current_span("provisioning.step") as span:
            span.set_attribute("provisioning.step", saga_step.name)
            span.set_attribute("provisioning.action", action)
            try:
                payload = await asyncio.wait_for(
                    saga_step.execute(ctx), timeout=self._step_timeout,
                )
            except asyncio.TimeoutError:
                error: Exception | None = DirectoryTimeoutError(saga_step.name, self._step_timeout)
            except Exception as e:  # noqa: BLE001
                error = e
            else:
                error = None
            span.set_attribute("provisioning.step_failed", error is not None)

        STEP_DURATION.labels(action=action).observe(time.perf_counter() - started)

        if error is None:
            request.complete_step(step, payload, now=self._clock())
            STEPS_TOTAL.labels(action=action, status="Completed").inc()
            logger.info("step_completed", step=step.name, action=action, target=step.target)
            await self._audit(request, action, AuditOutcome.SUCCESS, target=step.target)
            # A completed step whose record cannot be written halts the saga and is compensated.
            return await self._persist(request)

        request.fail_step(
            step, str(error), tolerated=saga_step.tolerate_failure, now=self._clock(),
        )
        ledger_error = await self._persist(request)
        STEPS_TOTAL.labels(action=action, status="Failed").inc()
        await self._audit(
            request, action, AuditOutcome.FAILED, target=step.target, error_detail=str(error),
        )

        if saga_step.tolerate_failure:
            TOLERATED_FAILURES_TOTAL.labels(action=action).inc()
            logger.warning("step_failure_tolerated", step=step.name, action=action, error=str(error))
            return ledger_error

        logger.error("step_failed", step=step.name, action=action, error=str(error))
        return error

    async def _cancellation_requested(self, request: ProvisioningRequest) -> bool:
        if request.cancel_requested:
            return True
        try:
            return await self._request_repo.is_cancellation_requested(request.id)
        except Exception as e:  # noqa: BLE001
            logger.error("cancellation_check_failed", error=str(e))
            return False

    # ------------------------------------------------------------------
    # Failure path
    # ------------------------------------------------------------------

    async def _finish_failed(
        self,
        request: ProvisioningRequest,
        config: ProvisioningConfig | None,
        workflow: Workflow | None,
        step_name: str,
        error: Exception,
    ) -> ProvisioningResult:
        error_message = str(error)
        completed_before_failure = len(request.completed_steps)
        request.fail(step_name, error_message, now=self._clock())
        await self._persist_or_warn(request)

        compensations: list[CompensationOutcome] = []
        if workflow is not None and workflow.compensate_on_failure:
            newest_first = [s for s in reversed(request.steps) if s.is_completed]
            compensations = await self._compensator.compensate(request, newest_first)
            await self._persist_or_warn(request)
            await self._audit_compensations(request, compensations)

        await self._audit(
            request, "Saga", AuditOutcome.FAILED, AuditScope.SAGA,
            target=step_name, error_detail=error_message,
        )

        compensated = sum(1 for c in compensations if c.status == CompensationStatus.COMPENSATED)
        await self._notifier.escalate(
            request.event,
            config.admin_recipients if config is not None else [],
            request_id=request.id,
            failed_step=step_name,
            error_message=error_message,
            correlation_id=request.correlation_id,
            compensated_steps=compensated,
        )
        await self._publish_events(request)

        failure_kind = _classify(error, completed_before_failure)
        logger.error(
            "saga_failed",
            failed_step=step_name,
            error=error_message,
            failure_kind=failure_kind.value,
            compensated_steps=compensated,
        )
        return ProvisioningResult.from_request(
            request, failure_kind=failure_kind, compensations=compensations,
        )

    async def _audit_compensations(
        self, request: ProvisioningRequest, outcomes: list[CompensationOutcome]
    ) -> None:
        steps_by_id: dict[str, ProvisioningStep] = {s.id: s for s in request.steps}
        for outcome in outcomes:
            if outcome.status == CompensationStatus.SKIPPED:
                continue
            step = steps_by_id.get(outcome.step_id)
            await self._audit(
                request,
                outcome.compensating_action,
                AuditOutcome.ROLLED_BACK
                if outcome.status == CompensationStatus.COMPENSATED else AuditOutcome.FAILED,
                target=step.target if step is not None else "",
                error_detail=outcome.error_message,
                details={"compensated_step": outcome.step_name},
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _persist(
        self, request: ProvisioningRequest, operation: str = "update",
    ) -> LedgerWriteError | None:
        """Write the ledger. A failed write is returned, never raised."""
        try:
            if operation == "save":
                await self._request_repo.save(request)
            else:
                await self._request_repo.update(request)
        except Exception as e:  # noqa: BLE001
            LEDGER_WRITE_FAILURES_TOTAL.labels(operation=operation).inc()
            logger.error(
                "ledger_write_failed",
                operation=operation,
                request_status=request.status.value,
                error=str(e),
            )
            return LedgerWriteError(request.id, e)
        return None

    async def _persist_or_warn(self, request: ProvisioningRequest) -> None:
        ledger_error = await self._persist(request)
        if ledger_error is not None:
            request.add_warning(str(ledger_error))

    async def _audit(
        self,
        request: ProvisioningRequest,
        action: str,
        outcome: AuditOutcome,
        scope: AuditScope = AuditScope.STEP,
        target: str = "",
        error_detail: str = "",
        details: dict[str, str] | None = None,
    ) -> None:
        entry = AuditEntry(
            request_id=request.id,
            action=action,
            outcome=outcome,
            scope=scope,
            target=target,
            error_detail=error_detail,
            actor=request.event.actor or self._system_actor,
            details=details or {},
            timestamp=self._clock(),
        )
        try:
            await self._audit_log.record(entry)
        except Exception as e:  # noqa: BLE001
            logger.error("audit_record_failed", action=action, outcome=outcome.value, error=str(e))

    def _record_fallbacks(self, ctx: SagaContext) -> None:
        for entitlements in ctx.entitlements:
            if entitlements.is_fallback:
                ctx.request.add_event(EntitlementFallbackUsed(
                    department=entitlements.department,
                    source=entitlements.source.value,
                    correlation_id=ctx.request.correlation_id,
                ))

    async def _publish_events(self, aggregate: AggregateRoot) -> None:
        """Collect and publish all pending domain events from an aggregate."""
        events = aggregate.collect_events()
        if self._event_publisher is None:
            return
        try:
            await self._event_publisher.publish_batch(
                [(event.event_type, event.to_payload()) for event in events]
            )
        except Exception as e:  # noqa: BLE001
            logger.error("event_publish_failed", count=len(events), error=str(e))


def _classify(error: Exception, completed_steps: int) -> FailureKind:
    kind = error.failure_kind if isinstance(error, ProvisioningError) else FailureKind.EXTERNAL_SERVICE
    if kind in (FailureKind.NOT_FOUND, FailureKind.CANCELLED):
        return kind
    if completed_steps > 0:
        return FailureKind.PARTIAL_FAILURE
    return kind
