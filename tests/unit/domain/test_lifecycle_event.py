"""Unit tests for lifecycle event validation."""

from __future__ import annotations

from typing import Any

import pytest

from provisioning.domain.errors import LifecycleEventValidationError
from provisioning.domain.models.lifecycle import LifecycleEvent, LifecycleEventType


def _raw(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "employee_id": "E42",
        "display_name": "Grace Brewster Hopper",
        "email": "grace.hopper@contoso.com",
        "department": "Engineering",
        "event_type": "Join",
    }
    data.update(overrides)
    return data


class TestLifecycleEventParse:
    def test_valid_join(self) -> None:
        event = LifecycleEvent.parse(_raw())
        assert event.event_type == LifecycleEventType.JOIN
        assert event.actor == "system"

    def test_strips_whitespace(self) -> None:
        event = LifecycleEvent.parse(_raw(employee_id="  E42 ", department=" Sales "))
        assert event.employee_id == "E42"
        assert event.department == "Sales"

    @pytest.mark.parametrize("field", ["employee_id", "display_name", "department"])
    def test_blank_required_field(self, field: str) -> None:
        with pytest.raises(LifecycleEventValidationError) as exc:
            LifecycleEvent.parse(_raw(**{field: "   "}))
        assert any(field in p for p in exc.value.problems)

    def test_missing_email(self) -> None:
        data = _raw()
        del data["email"]
        with pytest.raises(LifecycleEventValidationError) as exc:
            LifecycleEvent.parse(data)
        assert any("email" in p for p in exc.value.problems)

    def test_malformed_email(self) -> None:
        with pytest.raises(LifecycleEventValidationError):
            LifecycleEvent.parse(_raw(email="not-an-address"))

    def test_unknown_event_type(self) -> None:
        with pytest.raises(LifecycleEventValidationError):
            LifecycleEvent.parse(_raw(event_type="Promote"))

    def test_move_requires_previous_department(self) -> None:
        with pytest.raises(LifecycleEventValidationError) as exc:
            LifecycleEvent.parse(_raw(event_type="Move"))
        assert "previous_department" in str(exc.value)

    def test_move_with_previous_department(self) -> None:
        event = LifecycleEvent.parse(_raw(event_type="Move", previous_department="Sales"))
        assert event.previous_department == "Sales"

    def test_leave_needs_no_previous_department(self) -> None:
        assert LifecycleEvent.parse(_raw(event_type="Leave")).event_type == LifecycleEventType.LEAVE


class TestLifecycleEventNames:
    def test_given_name_and_surname(self) -> None:
        event = LifecycleEvent.parse(_raw())
        assert event.given_name == "Grace"
        assert event.surname == "Brewster Hopper"

    def test_single_word_name(self) -> None:
        event = LifecycleEvent.parse(_raw(display_name="Cher"))
        assert event.given_name == "Cher"
        assert event.surname == "Cher"

    def test_mail_nickname(self) -> None:
        assert LifecycleEvent.parse(_raw()).mail_nickname == "grace.hopper"

    def test_serialization_key(self) -> None:
        assert LifecycleEvent.parse(_raw()).serialization_key == "employee:E42"
