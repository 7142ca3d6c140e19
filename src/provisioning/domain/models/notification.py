"""Queued notification messages."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from provisioning.domain.models.base import generate_id, utc_now, ValueObject


class NotificationPriority(str, Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"


class NotificationStatus(str, Enum):
    QUEUED = "Queued"
    SENT = "Sent"
    FAILED = "Failed"


class Notification(ValueObject):
    """A message handed to the delivery subsystem."""

    id: str = Field(default_factory=generate_id)
    recipients: list[str]
    subject: str
    body: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    correlation_id: str = ""
    status: NotificationStatus = NotificationStatus.QUEUED
    queued_at: datetime = Field(default_factory=utc_now)
