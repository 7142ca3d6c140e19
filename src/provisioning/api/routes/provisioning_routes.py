"""Provisioning API routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    status,
)

from provisioning.api.dependencies.auth import require_permission
from provisioning.api.dependencies.services import get_lifecycle_service
from provisioning.api.middleware.correlation import get_correlation_id
from provisioning.api.schemas.provisioning_schemas import (
    AuditEntryResponse,
    CancelRequest,
    EntitlementSetResponse,
    LifecycleEventRequest,
    ProvisioningRequestListResponse,
    ProvisioningRequestResponse,
    ProvisioningResultResponse,
)
from provisioning.domain.errors import (
    EmployeeSagaInProgressError,
    LifecycleEventValidationError,
    RequestNotFoundError,
)
from provisioning.domain.models.provisioning import InvalidStateTransitionError, RequestStatus
from provisioning.domain.models.user import Permission, User
from provisioning.domain.services.lifecycle_service import LifecycleService


router = APIRouter(prefix="/provisioning", tags=["provisioning"])

Service = Annotated[LifecycleService, Depends(get_lifecycle_service)]


@router.post(
    "/events",
    response_model=ProvisioningResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_event(
    request: LifecycleEventRequest,
    user: Annotated[User, Depends(require_permission(Permission.PROVISIONING_RUN))],
    service: Service,
) -> ProvisioningResultResponse:
    """Run the Join/Move/Leave saga for an HR event and return its outcome.

    A saga that fails still answers 201: the request was recorded and the
    body carries the failed step, compensations and failure kind.
    """
    data = request.model_dump(exclude_none=True)
    data.setdefault("actor", user.username)
    try:
        result = await service.submit(data, correlation_id=get_correlation_id() or None)
    except LifecycleEventValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid lifecycle event", "problems": e.problems},
        ) from e
    except EmployeeSagaInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return ProvisioningResultResponse.model_validate(result)


@router.get("/requests", response_model=ProvisioningRequestListResponse)
async def list_requests(
    _user: Annotated[User, Depends(require_permission(Permission.PROVISIONING_READ))],
    service: Service,
    employee_id: str | None = None,
    request_status: Annotated[RequestStatus | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ProvisioningRequestListResponse:
    """List requests for an employee, or by status (in-progress by default)."""
    requests = await service.list_requests(
        employee_id=employee_id, status=request_status, limit=limit, offset=offset,
    )
    return ProvisioningRequestListResponse(
        items=[ProvisioningRequestResponse.from_domain(r) for r in requests],
        total=len(requests),
        limit=limit,
        offset=offset,
    )


@router.get("/requests/{request_id}", response_model=ProvisioningRequestResponse)
async def get_request(
    request_id: str,
    _user: Annotated[User, Depends(require_permission(Permission.PROVISIONING_READ))],
    service: Service,
) -> ProvisioningRequestResponse:
    try:
        request = await service.get_request(request_id)
    except RequestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return ProvisioningRequestResponse.from_domain(request)


@router.post("/requests/{request_id}/cancel", response_model=ProvisioningRequestResponse)
async def cancel_request(
    request_id: str,
    user: Annotated[User, Depends(require_permission(Permission.PROVISIONING_CANCEL))],
    service: Service,
    body: CancelRequest | None = None,
) -> ProvisioningRequestResponse:
    """Ask a running saga to stop at its next step and compensate."""
    try:
        request = await service.cancel(
            request_id, requested_by=user.username, reason=body.reason if body else "",
        )
    except RequestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidStateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return ProvisioningRequestResponse.from_domain(request)


@router.get("/requests/{request_id}/audit", response_model=list[AuditEntryResponse])
async def get_audit_trail(
    request_id: str,
    _user: Annotated[User, Depends(require_permission(Permission.AUDIT_READ))],
    service: Service,
) -> list[AuditEntryResponse]:
    try:
        entries = await service.get_audit_trail(request_id)
    except RequestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return [AuditEntryResponse.model_validate(e) for e in entries]


@router.get("/entitlements/{department}", response_model=EntitlementSetResponse)
async def resolve_entitlements(
    department: str,
    _user: Annotated[User, Depends(require_permission(Permission.PROVISIONING_READ))],
    service: Service,
    role: str | None = None,
) -> EntitlementSetResponse:
    """Preview what a Join into ``department`` would grant."""
    entitlements = await service.resolve_entitlements(department, role=role)
    return EntitlementSetResponse.model_validate(entitlements)
