"""Best-effort reverse compensation of completed saga steps."""

from __future__ import annotations

import asyncio

import structlog

from provisioning.domain.errors import DirectoryTimeoutError
from provisioning.domain.models.payloads import (
    GroupMembershipAdded,
    IdentityCreated,
    LicensesAssigned,
    StepPayload,
    TeamMembershipAdded,
)
from provisioning.domain.models.provisioning import (
    CompensationOutcome,
    CompensationStatus,
    ProvisioningRequest,
    ProvisioningStep,
)
from provisioning.domain.ports.services import DirectoryClient
from provisioning.infrastructure.observability.metrics import COMPENSATIONS_TOTAL


logger = structlog.get_logger(__name__)


class Compensator:
    """Reverses completed steps newest-first.

    A created identity is only ever disabled, never deleted. Every attempt is
    independent: a failure is logged, reported as an outcome, and the next
    step is still attempted.
    """

    def __init__(self, directory: DirectoryClient, call_timeout_seconds: float = 60.0) -> None:
        self._directory = directory
        self._timeout = call_timeout_seconds

    async def compensate(
        self,
        request: ProvisioningRequest,
        steps: list[ProvisioningStep],
    ) -> list[CompensationOutcome]:
        """Compensate ``steps`` in the order given (callers pass newest first)."""
        outcomes: list[CompensationOutcome] = []
        for step in steps:
            outcome = await self._compensate_step(request, step)
            COMPENSATIONS_TOTAL.labels(
                action=step.action.value, outcome=outcome.status.value,
            ).inc()
            outcomes.append(outcome)
        return outcomes

    async def _compensate_step(
        self, request: ProvisioningRequest, step: ProvisioningStep
    ) -> CompensationOutcome:
        if not (step.is_completed and step.can_rollback):
            return CompensationOutcome(
                step_id=step.id,
                step_name=step.name,
                action=step.action,
                status=CompensationStatus.SKIPPED,
            )

        description = _describe(step.payload)
        try:
            await asyncio.wait_for(self._reverse(step.payload), timeout=self._timeout)
        except asyncio.TimeoutError:
            error = DirectoryTimeoutError(description, self._timeout)
            return self._failed(request, step, description, str(error))
        except Exception as e:  # noqa: BLE001
            return self._failed(request, step, description, str(e))

        request.mark_rolled_back(step)
        logger.info(
            "step_compensated",
            request_id=request.id,
            step=step.name,
            compensating_action=description,
        )
        return CompensationOutcome(
            step_id=step.id,
            step_name=step.name,
            action=step.action,
            status=CompensationStatus.COMPENSATED,
            compensating_action=description,
        )

    def _failed(
        self,
        request: ProvisioningRequest,
        step: ProvisioningStep,
        description: str,
        error: str,
    ) -> CompensationOutcome:
        logger.error(
            "step_compensation_failed",
            request_id=request.id,
            step=step.name,
            compensating_action=description,
            error=error,
        )
        return CompensationOutcome(
            step_id=step.id,
            step_name=step.name,
            action=step.action,
            status=CompensationStatus.FAILED,
            compensating_action=description,
            error_message=error,
        )

    async def _reverse(self, payload: StepPayload | None) -> None:
        if isinstance(payload, IdentityCreated):
            await self._directory.disable_identity(payload.identity_id)
        elif isinstance(payload, LicensesAssigned):
            await self._directory.remove_licenses(payload.identity_id, payload.license_ids)
        elif isinstance(payload, GroupMembershipAdded):
            await self._directory.remove_from_group(payload.identity_id, payload.group_id)
        elif isinstance(payload, TeamMembershipAdded):
            await self._directory.remove_from_team(payload.identity_id, payload.team_id)
        else:
            raise CompensationPayloadError(payload)


def _describe(payload: StepPayload | None) -> str:
    if isinstance(payload, IdentityCreated):
        return "DisableIdentity"
    if isinstance(payload, LicensesAssigned):
        return "RemoveLicense"
    if isinstance(payload, GroupMembershipAdded):
        return "RemoveFromGroup"
    if isinstance(payload, TeamMembershipAdded):
        return "RemoveFromTeam"
    return "None"


class CompensationPayloadError(Exception):
    """Raised when a step's captured payload cannot be reversed."""

    def __init__(self, payload: StepPayload | None) -> None:
        kind = payload.kind if payload is not None else "none"
        super().__init__(f"No compensation defined for captured payload {kind!r}")
