"""Database-backed notification queue."""

from __future__ import annotations

import structlog

from provisioning.domain.models.notification import Notification, NotificationPriority
from provisioning.domain.ports.services import NotificationQueue
from provisioning.infrastructure.persistence.models import NotificationORM
from provisioning.infrastructure.persistence.repositories.request_repo import SessionScope


logger = structlog.get_logger(__name__)


class PostgresNotificationQueue(NotificationQueue):
    """Writes notifications to the ``notification_queue`` table for the mail sender to pick up."""

    def __init__(self, session_scope: SessionScope) -> None:
        self._session_scope = session_scope

    async def queue(
        self,
        recipients: list[str],
        subject: str,
        body: str,
        priority: NotificationPriority,
        correlation_id: str,
    ) -> str:
        notification = Notification(
            recipients=recipients,
            subject=subject,
            body=body,
            priority=priority,
            correlation_id=correlation_id,
        )
        async with self._session_scope() as session:
            session.add(NotificationORM(
                id=notification.id,
                recipients=list(notification.recipients),
                subject=notification.subject,
                body=notification.body,
                priority=notification.priority.value,
                correlation_id=notification.correlation_id,
                status=notification.status.value,
                queued_at=notification.queued_at,
            ))
            await session.flush()
        logger.debug("notification_row_inserted", notification_id=notification.id)
        return notification.id
