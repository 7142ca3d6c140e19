"""Lifecycle events: the joiner/mover/leaver input to a provisioning saga."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator, ValidationError

from provisioning.domain.errors import LifecycleEventValidationError
from provisioning.domain.models.base import ValueObject


class LifecycleEventType(str, Enum):
    """Kinds of lifecycle event the orchestrator can run."""

    JOIN = "Join"
    MOVE = "Move"
    LEAVE = "Leave"


class LifecycleEvent(ValueObject):
    """An accepted lifecycle event. Immutable once constructed."""

    employee_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[\w\.\-+']+@[\w\.-]+\.\w+$")
    department: str = Field(..., min_length=1)
    job_title: str = ""
    location: str = ""
    event_type: LifecycleEventType
    previous_department: str | None = None
    manager_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    actor: str = "system"

    @field_validator("employee_id", "display_name", "department", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_event_shape(self) -> LifecycleEvent:
        if self.event_type == LifecycleEventType.MOVE and not (
            self.previous_department and self.previous_department.strip()
        ):
            raise ValueError("previous_department is required for Move events")
        return self

    @classmethod
    def parse(cls, data: dict[str, Any]) -> LifecycleEvent:
        """Build an event from raw input, raising the domain validation error."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or 'event'}: {err['msg']}"
                for err in e.errors()
            ]
            raise LifecycleEventValidationError(problems) from e

    @property
    def given_name(self) -> str:
        return self.display_name.split(" ")[0]

    @property
    def surname(self) -> str:
        parts = self.display_name.split(" ")
        return " ".join(parts[1:]) or parts[0]

    @property
    def mail_nickname(self) -> str:
        return self.email.split("@")[0]

    @property
    def serialization_key(self) -> str:
        """Key callers use to keep sagas for one employee from overlapping."""
        return f"employee:{self.employee_id}"
