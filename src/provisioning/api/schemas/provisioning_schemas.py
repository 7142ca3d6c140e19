"""API schemas for provisioning endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from provisioning.domain.errors import FailureKind
from provisioning.domain.models.audit import AuditOutcome, AuditScope
from provisioning.domain.models.entitlements import ResolutionSource
from provisioning.domain.models.provisioning import (
    ActionType,
    CompensationStatus,
    ProvisioningRequest,
    ProvisioningStep,
    RequestStatus,
    StepStatus,
)


class LifecycleEventRequest(BaseModel):
    """Inbound HR event.

    Field rules are enforced by the domain model so that the API and direct
    callers get the same validation messages.
    """

    employee_id: str
    display_name: str
    email: str
    department: str
    event_type: str
    job_title: str = ""
    location: str = ""
    previous_department: str | None = None
    manager_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    actor: str | None = None


class CompensationResponse(BaseModel):
    step_id: str
    step_name: str
    action: ActionType
    status: CompensationStatus
    compensating_action: str = ""
    error_message: str = ""

    model_config = {"from_attributes": True}


class ProvisioningResultResponse(BaseModel):
    success: bool
    request_id: str
    status: RequestStatus
    completed_steps: int
    total_steps: int
    failed_step: str | None = None
    error_message: str = ""
    failure_kind: FailureKind | None = None
    warnings: list[str] = Field(default_factory=list)
    compensations: list[CompensationResponse] = Field(default_factory=list)
    identity_id: str | None = None
    licenses_assigned: int = 0
    groups_added: int = 0
    teams_added: int = 0

    model_config = {"from_attributes": True}


class StepResponse(BaseModel):
    id: str
    name: str
    action: ActionType
    status: StepStatus
    target: str = ""
    payload: dict[str, Any] | None = None
    started_at: datetime
    completed_at: datetime | None = None
    can_rollback: bool
    rollback_completed: bool
    tolerated: bool
    error_message: str = ""

    @classmethod
    def from_domain(cls, step: ProvisioningStep) -> StepResponse:
        data = step.model_dump(mode="json", exclude={"payload"})
        data["payload"] = step.payload.model_dump(mode="json") if step.payload else None
        return cls.model_validate(data)


class ProvisioningRequestResponse(BaseModel):
    id: str
    employee_id: str
    event_type: str
    department: str
    status: RequestStatus
    steps: list[StepResponse] = Field(default_factory=list)
    failed_step: str | None = None
    error_message: str = ""
    warnings: list[str] = Field(default_factory=list)
    cancel_requested: bool = False
    identity_id: str | None = None
    correlation_id: str
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, request: ProvisioningRequest) -> ProvisioningRequestResponse:
        return cls(
            id=request.id,
            employee_id=request.employee_id,
            event_type=request.event_type.value,
            department=request.event.department,
            status=request.status,
            steps=[StepResponse.from_domain(s) for s in request.steps],
            failed_step=request.failed_step,
            error_message=request.error_message,
            warnings=list(request.warnings),
            cancel_requested=request.cancel_requested,
            identity_id=request.identity_id,
            correlation_id=request.correlation_id,
            created_at=request.created_at,
            updated_at=request.updated_at,
            completed_at=request.completed_at,
        )


class ProvisioningRequestListResponse(BaseModel):
    items: list[ProvisioningRequestResponse]
    total: int
    limit: int
    offset: int


class AuditEntryResponse(BaseModel):
    id: str
    request_id: str
    sequence: int
    action: str
    outcome: AuditOutcome
    scope: AuditScope
    target: str = ""
    error_detail: str = ""
    actor: str
    details: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime

    model_config = {"from_attributes": True}


class EntitlementSetResponse(BaseModel):
    department: str
    source: ResolutionSource
    licenses: list[str]
    groups: list[str]
    teams: list[str]

    model_config = {"from_attributes": True}


class CancelRequest(BaseModel):
    reason: str = Field(default="", max_length=500)
