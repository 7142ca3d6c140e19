"""Welcome and escalation notifications.

Queueing failures are logged and reported back to the caller as data. They are
never raised, so a broken mail pipeline cannot fail a provisioning saga.
"""

from __future__ import annotations

import structlog

from provisioning.domain.models.lifecycle import LifecycleEvent
from provisioning.domain.models.notification import NotificationPriority
from provisioning.domain.models.payloads import NotificationQueued
from provisioning.domain.ports.services import NotificationQueue
from provisioning.infrastructure.observability.metrics import NOTIFICATION_FAILURES_TOTAL


logger = structlog.get_logger(__name__)


def render_welcome(event: LifecycleEvent, principal_name: str, one_time_password: str) -> tuple[str, str]:
    """Return ``(subject, body)`` for a new starter."""
    subject = f"Welcome to the organization, {event.given_name}!"
    lines = [
        f"Hi {event.given_name},",
        "",
        "Your account has been created. Use the details below for your first sign-in.",
        "",
        f"Username: {principal_name}",
        f"Temporary password: {one_time_password}",
        "",
        "You will be asked to choose a new password the first time you sign in.",
    ]
    if event.start_date:
        lines.append(f"Your start date is {event.start_date.isoformat()}.")
    lines += [
        "",
        f"Department: {event.department}",
    ]
    if event.job_title:
        lines.append(f"Role: {event.job_title}")
    return subject, "\n".join(lines)


def render_escalation(
    event: LifecycleEvent,
    request_id: str,
    failed_step: str,
    error_message: str,
    compensated_steps: int = 0,
) -> tuple[str, str]:
    subject = (
        f"[Action required] {event.event_type.value} provisioning failed "
        f"for {event.display_name}"
    )
    body = "\n".join([
        f"A {event.event_type.value} provisioning saga failed and needs attention.",
        "",
        f"Employee: {event.display_name} ({event.employee_id})",
        f"Email: {event.email}",
        f"Department: {event.department}",
        f"Failed step: {failed_step}",
        f"Error: {error_message}",
        f"Request ID: {request_id}",
        f"Steps rolled back: {compensated_steps}",
    ])
    return subject, body


class NotificationEmitter:
    """Renders and queues saga notifications."""

    def __init__(self, queue: NotificationQueue) -> None:
        self._queue = queue

    async def send_welcome(
        self,
        event: LifecycleEvent,
        principal_name: str,
        one_time_password: str,
        correlation_id: str,
    ) -> NotificationQueued:
        recipients = [principal_name]
        subject, body = render_welcome(event, principal_name, one_time_password)
        return await self._send(
            "welcome", recipients, subject, body, NotificationPriority.HIGH, correlation_id,
        )

    async def escalate(
        self,
        event: LifecycleEvent,
        admin_recipients: list[str],
        request_id: str,
        failed_step: str,
        error_message: str,
        correlation_id: str,
        compensated_steps: int = 0,
    ) -> NotificationQueued | None:
        """Queue an urgent failure notice. Returns None when nobody is configured to receive it."""
        if not admin_recipients:
            logger.warning(
                "escalation_skipped_no_recipients",
                request_id=request_id,
                employee_id=event.employee_id,
            )
            return None
        subject, body = render_escalation(
            event, request_id, failed_step, error_message, compensated_steps,
        )
        return await self._send(
            "escalation", admin_recipients, subject, body,
            NotificationPriority.URGENT, correlation_id,
        )

    async def _send(
        self,
        kind: str,
        recipients: list[str],
        subject: str,
        body: str,
        priority: NotificationPriority,
        correlation_id: str,
    ) -> NotificationQueued:
        try:
            item_id = await self._queue.queue(recipients, subject, body, priority, correlation_id)
        except Exception as e:  # noqa: BLE001
            NOTIFICATION_FAILURES_TOTAL.labels(kind=kind).inc()
            logger.error(
                "notification_queue_failed",
                kind=kind,
                correlation_id=correlation_id,
                error=str(e),
            )
            return NotificationQueued(recipients=recipients, queued=False, error=str(e))

        logger.info("notification_queued", kind=kind, priority=priority.value, queue_item_id=item_id)
        return NotificationQueued(recipients=recipients, queue_item_id=item_id)
