"""Provisioning request aggregate root and its step ledger."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from provisioning.domain.errors import FailureKind
from provisioning.domain.events.provisioning_events import (
    ProvisioningCancellationRequested,
    ProvisioningRequestCompleted,
    ProvisioningRequestFailed,
    ProvisioningRequestStarted,
    ProvisioningStepCompensated,
)
from provisioning.domain.models.base import AggregateRoot, generate_id, utc_now, ValueObject
from provisioning.domain.models.lifecycle import LifecycleEvent, LifecycleEventType
from provisioning.domain.models.payloads import (
    GroupMembershipAdded,
    IdentityCreated,
    LicensesAssigned,
    StepPayload,
    TeamMembershipAdded,
)


class ActionType(str, Enum):
    """Directory and messaging actions a saga step can perform."""

    CREATE_IDENTITY = "CreateIdentity"
    DISABLE_IDENTITY = "DisableIdentity"
    REVOKE_SESSIONS = "RevokeSessions"
    ASSIGN_LICENSE = "AssignLicense"
    REMOVE_LICENSE = "RemoveLicense"
    ADD_TO_GROUP = "AddToGroup"
    REMOVE_FROM_GROUP = "RemoveFromGroup"
    ADD_TO_TEAM = "AddToTeam"
    REMOVE_FROM_TEAM = "RemoveFromTeam"
    SEND_NOTIFICATION = "SendNotification"
    UPDATE_PROFILE = "UpdateProfile"
    SCHEDULE_LICENSE_REMOVAL = "ScheduleLicenseRemoval"


# Actions with a safe reverse operation. Everything else compensates as a no-op.
ROLLBACKABLE_ACTIONS: frozenset[ActionType] = frozenset({
    ActionType.CREATE_IDENTITY,
    ActionType.ASSIGN_LICENSE,
    ActionType.ADD_TO_GROUP,
    ActionType.ADD_TO_TEAM,
})


class StepStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class RequestStatus(str, Enum):
    """Provisioning request lifecycle states."""

    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


REQUEST_VALID_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.IN_PROGRESS: {RequestStatus.COMPLETED, RequestStatus.FAILED},
    RequestStatus.COMPLETED: set(),
    RequestStatus.FAILED: set(),
}


class ProvisioningStep(BaseModel):
    """One ledger entry: an attempted unit of saga work."""

    id: str = Field(default_factory=generate_id)
    name: str
    action: ActionType
    status: StepStatus = StepStatus.IN_PROGRESS
    target: str = ""
    payload: StepPayload | None = None
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    can_rollback: bool = False
    rollback_completed: bool = False
    tolerated: bool = False
    error_message: str = ""

    model_config = {"validate_assignment": True}

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED


class ProvisioningRequest(AggregateRoot):
    """One saga execution for one lifecycle event.

    The request owns its steps. It is mutated only by the orchestrator and is
    terminal as soon as the status leaves ``InProgress``.
    """

    event: LifecycleEvent
    status: RequestStatus = RequestStatus.IN_PROGRESS
    steps: list[ProvisioningStep] = Field(default_factory=list)
    completed_at: datetime | None = None
    failed_step: str | None = None
    error_message: str = ""
    warnings: list[str] = Field(default_factory=list)
    cancel_requested: bool = False
    identity_id: str | None = None
    correlation_id: str = Field(default_factory=generate_id)

    @classmethod
    def start(cls, event: LifecycleEvent, correlation_id: str | None = None) -> ProvisioningRequest:
        """Open a new request for ``event``."""
        request = cls(event=event, correlation_id=correlation_id or generate_id())
        request.add_event(ProvisioningRequestStarted(
            request_id=request.id,
            employee_id=event.employee_id,
            lifecycle_event=event.event_type.value,
            correlation_id=request.correlation_id,
        ))
        return request

    @property
    def event_type(self) -> LifecycleEventType:
        return self.event.event_type

    @property
    def employee_id(self) -> str:
        return self.event.employee_id

    def _transition_to(self, new_status: RequestStatus) -> None:
        valid = REQUEST_VALID_TRANSITIONS.get(self.status, set())
        if new_status not in valid:
            raise InvalidStateTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}. "
                f"Valid transitions: {[s.value for s in valid]}"
            )
        self.status = new_status
        self.touch()

    def _require_in_progress(self, operation: str) -> None:
        if self.status != RequestStatus.IN_PROGRESS:
            raise InvalidStateTransitionError(
                f"Cannot {operation} on a request in status {self.status.value}"
            )

    def begin_step(
        self,
        name: str,
        action: ActionType,
        target: str = "",
        can_rollback: bool | None = None,
        now: datetime | None = None,
    ) -> ProvisioningStep:
        """Append an InProgress step to the ledger and return it."""
        self._require_in_progress("begin a step")
        step = ProvisioningStep(
            name=name,
            action=action,
            target=target,
            can_rollback=action in ROLLBACKABLE_ACTIONS if can_rollback is None else can_rollback,
            started_at=now or utc_now(),
        )
        self.steps.append(step)
        self.touch()
        return step

    def complete_step(
        self,
        step: ProvisioningStep,
        payload: StepPayload | None = None,
        now: datetime | None = None,
    ) -> None:
        """Record a step's success and its captured response."""
        step.payload = payload
        step.status = StepStatus.COMPLETED
        step.completed_at = now or utc_now()
        if isinstance(payload, IdentityCreated):
            self.identity_id = payload.identity_id
        self.touch()

    def fail_step(
        self,
        step: ProvisioningStep,
        error_message: str,
        tolerated: bool = False,
        now: datetime | None = None,
    ) -> None:
        """Record a step failure. Tolerated failures become request warnings."""
        step.status = StepStatus.FAILED
        step.error_message = error_message
        step.completed_at = now or utc_now()
        step.tolerated = tolerated
        if tolerated:
            self.warnings.append(f"{step.name} failed: {error_message}")
        self.touch()

    def add_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)
            self.touch()

    def complete(self, now: datetime | None = None) -> None:
        """Mark the saga as successfully completed."""
        self._transition_to(RequestStatus.COMPLETED)
        self.completed_at = now or utc_now()
        self.add_event(ProvisioningRequestCompleted(
            request_id=self.id,
            employee_id=self.employee_id,
            completed_steps=len(self.completed_steps),
            correlation_id=self.correlation_id,
        ))

    def fail(self, step_name: str, error_message: str, now: datetime | None = None) -> None:
        """Mark the saga as failed at ``step_name``."""
        self.failed_step = step_name
        self.error_message = error_message
        self._transition_to(RequestStatus.FAILED)
        self.completed_at = now or utc_now()
        self.add_event(ProvisioningRequestFailed(
            request_id=self.id,
            employee_id=self.employee_id,
            failed_step=step_name,
            error_message=error_message,
            correlation_id=self.correlation_id,
        ))

    def mark_rolled_back(self, step: ProvisioningStep) -> None:
        """Flag a completed step as compensated. Only valid once the request failed."""
        if self.status != RequestStatus.FAILED:
            raise InvalidStateTransitionError(
                f"Cannot roll back step {step.name!r} while request is {self.status.value}"
            )
        if not step.is_completed or not step.can_rollback:
            raise InvalidStateTransitionError(
                f"Step {step.name!r} is not a completed, rollback-able step"
            )
        step.rollback_completed = True
        self.touch()
        self.add_event(ProvisioningStepCompensated(
            request_id=self.id,
            step_id=step.id,
            action=step.action.value,
            correlation_id=self.correlation_id,
        ))

    def request_cancellation(self, requested_by: str = "") -> None:
        """Ask the running saga to stop at its next step boundary."""
        self._require_in_progress("cancel")
        self.cancel_requested = True
        self.touch()
        self.add_event(ProvisioningCancellationRequested(
            request_id=self.id,
            requested_by=requested_by,
            correlation_id=self.correlation_id,
        ))

    @property
    def completed_steps(self) -> list[ProvisioningStep]:
        return [s for s in self.steps if s.is_completed]

    def rollback_candidates(self) -> list[ProvisioningStep]:
        """Completed rollback-able steps, newest first."""
        return [s for s in reversed(self.steps) if s.is_completed and s.can_rollback]

    @property
    def is_terminal(self) -> bool:
        return self.status != RequestStatus.IN_PROGRESS


class CompensationStatus(str, Enum):
    COMPENSATED = "Compensated"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class CompensationOutcome(ValueObject):
    """Result of one compensation attempt."""

    step_id: str
    step_name: str
    action: ActionType
    status: CompensationStatus
    compensating_action: str = ""
    error_message: str = ""


class ProvisioningResult(ValueObject):
    """Structured outcome handed back to the caller instead of a raw exception."""

    success: bool
    request_id: str
    status: RequestStatus
    completed_steps: int
    total_steps: int
    failed_step: str | None = None
    error_message: str = ""
    failure_kind: FailureKind | None = None
    warnings: list[str] = Field(default_factory=list)
    compensations: list[CompensationOutcome] = Field(default_factory=list)
    identity_id: str | None = None
    licenses_assigned: int = 0
    groups_added: int = 0
    teams_added: int = 0

    @classmethod
    def from_request(
        cls,
        request: ProvisioningRequest,
        failure_kind: FailureKind | None = None,
        compensations: list[CompensationOutcome] | None = None,
    ) -> ProvisioningResult:
        completed = request.completed_steps
        licenses = sum(
            len(s.payload.license_ids) for s in completed
            if isinstance(s.payload, LicensesAssigned)
        )
        return cls(
            success=request.status == RequestStatus.COMPLETED,
            request_id=request.id,
            status=request.status,
            completed_steps=len(completed),
            total_steps=len(request.steps),
            failed_step=request.failed_step,
            error_message=request.error_message,
            failure_kind=failure_kind,
            warnings=list(request.warnings),
            compensations=list(compensations or []),
            identity_id=request.identity_id,
            licenses_assigned=licenses,
            groups_added=sum(1 for s in completed if isinstance(s.payload, GroupMembershipAdded)),
            teams_added=sum(1 for s in completed if isinstance(s.payload, TeamMembershipAdded)),
        )


class InvalidStateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
