"""Append-only audit trail entries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from provisioning.domain.models.base import generate_id, utc_now, ValueObject


class AuditOutcome(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"
    ROLLED_BACK = "RolledBack"


class AuditScope(str, Enum):
    """Whether an entry describes one step or the saga as a whole."""

    STEP = "step"
    SAGA = "saga"


class AuditEntry(ValueObject):
    """Compliance record. Entries are never mutated or deleted once recorded.

    ``sequence`` is assigned by the audit store on ``record`` and, together with
    ``request_id``, uniquely identifies an entry.
    """

    id: str = Field(default_factory=generate_id)
    request_id: str
    sequence: int = 0
    action: str
    outcome: AuditOutcome
    scope: AuditScope = AuditScope.STEP
    target: str = ""
    error_detail: str = ""
    actor: str = "system"
    details: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
