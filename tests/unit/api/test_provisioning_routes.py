"""API tests for the provisioning routes."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from provisioning.domain.models.provisioning import ProvisioningRequest
from provisioning.domain.models.user import Role, User


EVENTS_URL = "/api/v1/provisioning/events"
REQUESTS_URL = "/api/v1/provisioning/requests"


def _join(**overrides: Any) -> dict[str, Any]:
    body = {
        "employee_id": "E1001",
        "display_name": "Ada Lovelace",
        "email": "ada.lovelace@contoso.com",
        "department": "Engineering",
        "job_title": "Software Engineer",
        "event_type": "Join",
    }
    body.update(overrides)
    return body


@pytest.fixture
def operator_headers(auth_headers, operator_user) -> dict[str, str]:
    return auth_headers(operator_user)


class TestSubmitEvent:
    def test_join_returns_result(self, client, operator_headers, directory) -> None:
        response = client.post(EVENTS_URL, json=_join(), headers=operator_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "Completed"
        assert body["completed_steps"] == 5
        assert body["licenses_assigned"] == 2
        assert directory.snapshot(body["identity_id"]).groups == ["grp-eng"]

    def test_failed_saga_is_still_created(self, client, operator_headers, directory) -> None:
        directory.fail_on("add_to_group", "grp-eng")

        response = client.post(EVENTS_URL, json=_join(), headers=operator_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is False
        assert body["failure_kind"] == "PartialFailure"
        assert body["failed_step"] == "Add to group grp-eng"
        assert [c["compensating_action"] for c in body["compensations"]] == [
            "RemoveLicense", "DisableIdentity",
        ]

    def test_actor_defaults_to_caller(self, client, operator_headers, audit_log) -> None:
        response = client.post(EVENTS_URL, json=_join(), headers=operator_headers)
        entries = asyncio.run(audit_log.list_by_request(response.json()["request_id"]))
        assert {e.actor for e in entries} == {"operator"}

    def test_correlation_header_is_used(self, client, operator_headers) -> None:
        response = client.post(
            EVENTS_URL, json=_join(), headers={**operator_headers, "X-Correlation-ID": "corr-api-1"},
        )
        request_id = response.json()["request_id"]
        assert response.headers["X-Correlation-ID"] == "corr-api-1"

        detail = client.get(f"{REQUESTS_URL}/{request_id}", headers=operator_headers).json()
        assert detail["correlation_id"] == "corr-api-1"

    def test_invalid_event_is_422(self, client, operator_headers, directory) -> None:
        response = client.post(EVENTS_URL, json=_join(email="not-an-email"), headers=operator_headers)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["message"] == "Invalid lifecycle event"
        assert any("email" in p for p in detail["problems"])
        assert directory.calls == []

    def test_move_without_previous_department_is_422(self, client, operator_headers) -> None:
        response = client.post(EVENTS_URL, json=_join(event_type="Move"), headers=operator_headers)
        assert response.status_code == 422

    def test_missing_field_is_422(self, client, operator_headers) -> None:
        body = _join()
        del body["employee_id"]
        assert client.post(EVENTS_URL, json=body, headers=operator_headers).status_code == 422

    def test_employee_already_locked_is_409(self, client, container, operator_headers) -> None:
        asyncio.run(container.lock_service.acquire("employee:E1001", ttl_seconds=60))
        response = client.post(EVENTS_URL, json=_join(), headers=operator_headers)
        assert response.status_code == 409

    def test_requires_authentication(self, client) -> None:
        assert client.post(EVENTS_URL, json=_join()).status_code in (401, 403)

    def test_auditor_cannot_submit(self, client, auth_headers) -> None:
        auditor = User(username="auditor", email="a@example.com", role=Role.AUDITOR)
        response = client.post(EVENTS_URL, json=_join(), headers=auth_headers(auditor))
        assert response.status_code == 403

    def test_hr_submitter_can_submit(self, client, auth_headers) -> None:
        hr = User(username="hr-feed", email="hr@example.com", role=Role.HR_SUBMITTER)
        response = client.post(EVENTS_URL, json=_join(), headers=auth_headers(hr))
        assert response.status_code == 201


class TestQueryRequests:
    def test_get_request_detail(self, client, operator_headers) -> None:
        request_id = client.post(EVENTS_URL, json=_join(), headers=operator_headers).json()["request_id"]

        response = client.get(f"{REQUESTS_URL}/{request_id}", headers=operator_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["employee_id"] == "E1001"
        assert body["event_type"] == "Join"
        assert body["department"] == "Engineering"
        assert len(body["steps"]) == 5
        first = body["steps"][0]
        assert first["action"] == "CreateIdentity"
        assert first["payload"]["kind"] == "identity_created"

    def test_unknown_request_is_404(self, client, operator_headers) -> None:
        assert client.get(f"{REQUESTS_URL}/missing", headers=operator_headers).status_code == 404

    def test_list_by_employee(self, client, operator_headers) -> None:
        client.post(EVENTS_URL, json=_join(), headers=operator_headers)
        client.post(EVENTS_URL, json=_join(employee_id="E2", email="b@contoso.com"), headers=operator_headers)

        body = client.get(REQUESTS_URL, params={"employee_id": "E1001"}, headers=operator_headers).json()

        assert body["total"] == 1
        assert body["items"][0]["employee_id"] == "E1001"
        assert body["limit"] == 50

    def test_list_by_status(self, client, operator_headers) -> None:
        client.post(EVENTS_URL, json=_join(), headers=operator_headers)

        completed = client.get(REQUESTS_URL, params={"status": "Completed"}, headers=operator_headers)
        running = client.get(REQUESTS_URL, headers=operator_headers)

        assert completed.json()["total"] == 1
        assert running.json()["total"] == 0

    def test_list_rejects_bad_limit(self, client, operator_headers) -> None:
        response = client.get(REQUESTS_URL, params={"limit": 0}, headers=operator_headers)
        assert response.status_code == 422


class TestCancelRequest:
    def test_cancel_terminal_is_409(self, client, operator_headers) -> None:
        request_id = client.post(EVENTS_URL, json=_join(), headers=operator_headers).json()["request_id"]
        response = client.post(
            f"{REQUESTS_URL}/{request_id}/cancel", json={"reason": "duplicate"}, headers=operator_headers,
        )
        assert response.status_code == 409

    def test_cancel_unknown_is_404(self, client, operator_headers) -> None:
        assert client.post(f"{REQUESTS_URL}/missing/cancel", headers=operator_headers).status_code == 404

    def test_cancel_in_progress(self, client, operator_headers, request_repo, audit_log, event_factory) -> None:
        running = ProvisioningRequest.start(event_factory())
        asyncio.run(request_repo.save(running))

        response = client.post(
            f"{REQUESTS_URL}/{running.id}/cancel", json={"reason": "wrong start date"}, headers=operator_headers,
        )

        assert response.status_code == 200
        assert response.json()["cancel_requested"] is True
        assert asyncio.run(request_repo.is_cancellation_requested(running.id))
        entries = asyncio.run(audit_log.list_by_request(running.id))
        assert entries[0].details == {"reason": "wrong start date"}

    def test_hr_submitter_cannot_cancel(self, client, auth_headers) -> None:
        hr = User(username="hr-feed", email="hr@example.com", role=Role.HR_SUBMITTER)
        response = client.post(f"{REQUESTS_URL}/any/cancel", headers=auth_headers(hr))
        assert response.status_code == 403


class TestAuditTrail:
    def test_audit_trail(self, client, operator_headers) -> None:
        request_id = client.post(EVENTS_URL, json=_join(), headers=operator_headers).json()["request_id"]

        response = client.get(f"{REQUESTS_URL}/{request_id}/audit", headers=operator_headers)

        assert response.status_code == 200
        entries = response.json()
        assert [e["sequence"] for e in entries] == list(range(1, 7))
        assert entries[-1]["scope"] == "saga"
        assert entries[-1]["outcome"] == "Success"

    def test_audit_requires_audit_permission(self, client, auth_headers) -> None:
        hr = User(username="hr-feed", email="hr@example.com", role=Role.HR_SUBMITTER)
        assert client.get(f"{REQUESTS_URL}/any/audit", headers=auth_headers(hr)).status_code == 403

    def test_audit_unknown_request(self, client, operator_headers) -> None:
        assert client.get(f"{REQUESTS_URL}/missing/audit", headers=operator_headers).status_code == 404


class TestEntitlementPreview:
    def test_preview(self, client, operator_headers) -> None:
        response = client.get(
            "/api/v1/provisioning/entitlements/Engineering",
            params={"role": "Engineering Manager"},
            headers=operator_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "exact"
        assert body["groups"] == ["grp-eng", "grp-eng-managers"]

    def test_fallback_preview(self, client, operator_headers) -> None:
        body = client.get("/api/v1/provisioning/entitlements/Legal", headers=operator_headers).json()
        assert body["source"] == "default"
        assert body["licenses"] == ["sku-e1"]
