"""Domain error taxonomy for identity provisioning."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Classification of a failed saga, reported on the structured result."""

    NOT_FOUND = "NotFound"
    EXTERNAL_SERVICE = "ExternalServiceError"
    PARTIAL_FAILURE = "PartialFailure"
    CANCELLED = "Cancelled"


class ProvisioningError(Exception):
    """Base class for provisioning errors."""

    failure_kind: FailureKind = FailureKind.EXTERNAL_SERVICE


class LifecycleEventValidationError(ProvisioningError):
    """Raised when a lifecycle event is malformed. Nothing external has been called."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Invalid lifecycle event: " + "; ".join(problems))


class IdentityNotFoundError(ProvisioningError):
    """Raised when the identity a Move or Leave refers to does not exist."""

    failure_kind = FailureKind.NOT_FOUND

    def __init__(self, principal: str) -> None:
        self.principal = principal
        super().__init__(f"Identity not found: {principal}")


class ExternalServiceError(ProvisioningError):
    """Raised when a remote directory call fails."""

    def __init__(self, operation: str, detail: str, status_code: int | None = None) -> None:
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        prefix = f"{operation} failed"
        if status_code is not None:
            prefix += f" ({status_code})"
        super().__init__(f"{prefix}: {detail}")


class DirectoryTimeoutError(ExternalServiceError):
    """Raised when a remote directory call exceeds its deadline."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        super().__init__(operation, f"timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class SagaCancelledError(ProvisioningError):
    """Signals that an operator asked for the running saga to stop."""

    failure_kind = FailureKind.CANCELLED

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Provisioning request {request_id} was cancelled")


class RequestNotFoundError(ProvisioningError):
    """Raised when a provisioning request id is unknown."""

    failure_kind = FailureKind.NOT_FOUND


class EmployeeSagaInProgressError(ProvisioningError):
    """Raised when a saga for the same employee is already running."""

    def __init__(self, employee_id: str) -> None:
        self.employee_id = employee_id
        super().__init__(f"A provisioning saga is already running for employee {employee_id}")


class LedgerWriteError(ProvisioningError):
    """Raised when the request ledger could not be persisted."""

    def __init__(self, request_id: str, cause: Exception) -> None:
        self.request_id = request_id
        self.cause = cause
        super().__init__(f"Ledger write for request {request_id} failed: {cause}")
