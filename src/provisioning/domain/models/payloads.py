"""Typed responses captured on provisioning steps.

Each directory capability returns its own payload type. The step ledger keeps
the payload so compensation can rebuild the reverse call without guessing at an
untyped response bag.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import Field

from provisioning.domain.models.base import ValueObject


class IdentityCreated(ValueObject):
    kind: Literal["identity_created"] = "identity_created"
    identity_id: str
    principal_name: str
    mail: str = ""
    manager_id: str | None = None


class ProfileUpdated(ValueObject):
    kind: Literal["profile_updated"] = "profile_updated"
    identity_id: str
    changes: dict[str, str] = Field(default_factory=dict)


class IdentityDisabled(ValueObject):
    kind: Literal["identity_disabled"] = "identity_disabled"
    identity_id: str


class SessionsRevoked(ValueObject):
    kind: Literal["sessions_revoked"] = "sessions_revoked"
    identity_id: str


class LicensesAssigned(ValueObject):
    kind: Literal["licenses_assigned"] = "licenses_assigned"
    identity_id: str
    license_ids: list[str]


class LicensesRemoved(ValueObject):
    kind: Literal["licenses_removed"] = "licenses_removed"
    identity_id: str
    license_ids: list[str]


class GroupMembershipAdded(ValueObject):
    kind: Literal["group_membership_added"] = "group_membership_added"
    identity_id: str
    group_id: str


class GroupMembershipRemoved(ValueObject):
    kind: Literal["group_membership_removed"] = "group_membership_removed"
    identity_id: str
    group_id: str


class TeamMembershipAdded(ValueObject):
    kind: Literal["team_membership_added"] = "team_membership_added"
    identity_id: str
    team_id: str
    role: str = "member"


class TeamMembershipRemoved(ValueObject):
    kind: Literal["team_membership_removed"] = "team_membership_removed"
    identity_id: str
    team_id: str


class NotificationQueued(ValueObject):
    """Outcome of queueing a notification. ``queued`` is False when delivery was skipped."""

    kind: Literal["notification_queued"] = "notification_queued"
    recipients: list[str]
    queue_item_id: str | None = None
    queued: bool = True
    error: str = ""


class LicenseRemovalScheduled(ValueObject):
    kind: Literal["license_removal_scheduled"] = "license_removal_scheduled"
    identity_id: str
    scheduled_for: datetime
    license_ids: list[str] = Field(default_factory=list)


StepPayload = Annotated[
    Union[
        IdentityCreated,
        ProfileUpdated,
        IdentityDisabled,
        SessionsRevoked,
        LicensesAssigned,
        LicensesRemoved,
        GroupMembershipAdded,
        GroupMembershipRemoved,
        TeamMembershipAdded,
        TeamMembershipRemoved,
        NotificationQueued,
        LicenseRemovalScheduled,
    ],
    Field(discriminator="kind"),
]
