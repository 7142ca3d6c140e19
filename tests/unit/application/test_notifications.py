"""Tests for notification rendering and queueing."""

from __future__ import annotations

import pytest

from provisioning.domain.models.notification import NotificationPriority
from provisioning.domain.services.notifications import (
    NotificationEmitter,
    render_escalation,
    render_welcome,
)


class TestRendering:
    def test_welcome(self, join_event) -> None:
        subject, body = render_welcome(join_event, "ada.lovelace@contoso.com", "S3cret!pass")
        assert subject == "Welcome to the organization, Ada!"
        assert "Username: ada.lovelace@contoso.com" in body
        assert "Temporary password: S3cret!pass" in body
        assert "Role: Software Engineer" in body

    def test_welcome_without_job_title(self, event_factory) -> None:
        _, body = render_welcome(event_factory(job_title=""), "p", "x")
        assert "Role:" not in body

    def test_escalation(self, join_event) -> None:
        subject, body = render_escalation(join_event, "req-1", "Add to group g", "boom", 2)
        assert subject.startswith("[Action required] Join provisioning failed")
        assert "Ada Lovelace (E1001)" in body
        assert "Failed step: Add to group g" in body
        assert "Error: boom" in body
        assert "Steps rolled back: 2" in body


class TestNotificationEmitter:
    @pytest.mark.asyncio
    async def test_send_welcome(self, notification_queue, join_event) -> None:
        emitter = NotificationEmitter(notification_queue)
        outcome = await emitter.send_welcome(join_event, "ada@contoso.com", "pw", "corr")

        assert outcome.queued
        assert outcome.queue_item_id == notification_queue.queued[0].id
        assert notification_queue.queued[0].correlation_id == "corr"

    @pytest.mark.asyncio
    async def test_escalate(self, notification_queue, join_event) -> None:
        emitter = NotificationEmitter(notification_queue)
        outcome = await emitter.escalate(
            join_event, ["ops@example.com"], "req-1", "step", "boom", "corr",
        )
        assert outcome is not None
        assert notification_queue.queued[0].priority == NotificationPriority.URGENT

    @pytest.mark.asyncio
    async def test_escalate_without_recipients(self, notification_queue, join_event) -> None:
        emitter = NotificationEmitter(notification_queue)
        assert await emitter.escalate(join_event, [], "req-1", "step", "boom", "corr") is None
        assert notification_queue.queued == []

    @pytest.mark.asyncio
    async def test_queue_failure_is_reported(self, notification_queue, join_event) -> None:
        notification_queue.fail_next(RuntimeError("smtp relay refused"))
        emitter = NotificationEmitter(notification_queue)

        outcome = await emitter.send_welcome(join_event, "ada@contoso.com", "pw", "corr")

        assert not outcome.queued
        assert outcome.queue_item_id is None
        assert outcome.error == "smtp relay refused"
