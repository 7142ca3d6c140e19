"""Simulated directory for development, demos and tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from provisioning.domain.errors import ExternalServiceError
from provisioning.domain.models.base import generate_id
from provisioning.domain.models.directory import (
    DirectoryIdentity,
    DirectoryReference,
    IdentityProfile,
    ProfileChanges,
)
from provisioning.domain.models.payloads import (
    GroupMembershipAdded,
    GroupMembershipRemoved,
    IdentityCreated,
    IdentityDisabled,
    LicensesAssigned,
    LicensesRemoved,
    ProfileUpdated,
    SessionsRevoked,
    TeamMembershipAdded,
    TeamMembershipRemoved,
)
from provisioning.domain.ports.services import DirectoryClient


logger = structlog.get_logger(__name__)

MEMBERSHIP_OPERATIONS = frozenset({
    "assign_licenses", "remove_licenses",
    "add_to_group", "remove_from_group",
    "add_to_team", "remove_from_team",
})


@dataclass
class DirectoryCall:
    operation: str
    identity_id: str = ""
    target: str = ""


@dataclass
class _Identity:
    id: str
    user_principal_name: str
    display_name: str
    mail: str = ""
    department: str = ""
    job_title: str = ""
    office_location: str = ""
    account_enabled: bool = True
    manager_id: str | None = None
    licenses: list[str] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)
    teams: list[str] = field(default_factory=list)
    session_revocations: int = 0


class InMemoryDirectoryClient(DirectoryClient):
    """Directory held in process memory.

    ``fail_on(operation, target=...)`` makes the next matching call raise
    ``ExternalServiceError``; ``delay_on`` makes it sleep first, which is how
    step timeouts are exercised. Every call is appended to ``calls``.
    """

    def __init__(self) -> None:
        self._identities: dict[str, _Identity] = {}
        self._failures: dict[tuple[str, str], str] = {}
        self._delays: dict[str, float] = {}
        self.calls: list[DirectoryCall] = []

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_on(self, operation: str, target: str = "*", message: str = "simulated failure") -> None:
        self._failures[(operation, target)] = message

    def delay_on(self, operation: str, seconds: float) -> None:
        self._delays[operation] = seconds

    def seed_identity(
        self,
        principal_name: str,
        display_name: str = "",
        department: str = "",
        licenses: list[str] | None = None,
        groups: list[str] | None = None,
        teams: list[str] | None = None,
    ) -> str:
        identity = _Identity(
            id=generate_id(),
            user_principal_name=principal_name,
            display_name=display_name or principal_name,
            mail=principal_name,
            department=department,
            licenses=list(licenses or []),
            groups=list(groups or []),
            teams=list(teams or []),
        )
        self._identities[identity.id] = identity
        return identity.id

    def snapshot(self, identity_id: str) -> _Identity:
        return self._identities[identity_id]

    def calls_for(self, *operations: str) -> list[DirectoryCall]:
        return [c for c in self.calls if c.operation in operations]

    def membership_calls(self) -> list[DirectoryCall]:
        return [c for c in self.calls if c.operation in MEMBERSHIP_OPERATIONS]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _enter(self, operation: str, identity_id: str = "", target: str = "") -> None:
        self.calls.append(DirectoryCall(operation, identity_id, target))
        delay = self._delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        message = self._failures.pop((operation, target), None)
        if message is None:
            message = self._failures.pop((operation, "*"), None)
        if message is not None:
            raise ExternalServiceError(operation, message, status_code=503)

    def _get(self, operation: str, identity_id: str) -> _Identity:
        identity = self._identities.get(identity_id)
        if identity is None:
            raise ExternalServiceError(operation, f"identity {identity_id} does not exist", status_code=404)
        return identity

    def _find(self, principal: str) -> _Identity | None:
        if principal in self._identities:
            return self._identities[principal]
        wanted = principal.casefold()
        for identity in self._identities.values():
            if identity.user_principal_name.casefold() == wanted:
                return identity
        return None

    # ------------------------------------------------------------------
    # DirectoryClient
    # ------------------------------------------------------------------

    async def create_identity(self, profile: IdentityProfile) -> IdentityCreated:
        await self._enter("create_identity", target=profile.user_principal_name)
        if self._find(profile.user_principal_name) is not None:
            raise ExternalServiceError(
                "create_identity",
                f"Another object with the same value for property userPrincipalName already exists: "
                f"{profile.user_principal_name}",
                status_code=400,
            )
        identity = _Identity(
            id=generate_id(),
            user_principal_name=profile.user_principal_name,
            display_name=profile.display_name,
            mail=profile.user_principal_name,
            department=profile.department,
            job_title=profile.job_title,
            office_location=profile.office_location,
            account_enabled=profile.account_enabled,
        )
        self._identities[identity.id] = identity
        logger.debug("simulated_identity_created", identity_id=identity.id)
        return IdentityCreated(
            identity_id=identity.id,
            principal_name=identity.user_principal_name,
            mail=identity.mail,
        )

    async def get_identity(self, principal: str) -> DirectoryIdentity | None:
        await self._enter("get_identity", target=principal)
        identity = self._find(principal)
        if identity is None:
            return None
        return DirectoryIdentity(
            id=identity.id,
            user_principal_name=identity.user_principal_name,
            display_name=identity.display_name,
            mail=identity.mail,
            department=identity.department,
            job_title=identity.job_title,
            office_location=identity.office_location,
            account_enabled=identity.account_enabled,
        )

    async def update_identity(self, identity_id: str, changes: ProfileChanges) -> ProfileUpdated:
        await self._enter("update_identity", identity_id)
        identity = self._get("update_identity", identity_id)
        updates = changes.as_dict()
        for key, value in updates.items():
            setattr(identity, key, value)
        return ProfileUpdated(identity_id=identity_id, changes=updates)

    async def set_manager(self, identity_id: str, manager_id: str) -> None:
        await self._enter("set_manager", identity_id, manager_id)
        self._get("set_manager", identity_id).manager_id = manager_id

    async def disable_identity(self, identity_id: str) -> IdentityDisabled:
        await self._enter("disable_identity", identity_id)
        self._get("disable_identity", identity_id).account_enabled = False
        return IdentityDisabled(identity_id=identity_id)

    async def enable_identity(self, identity_id: str) -> None:
        await self._enter("enable_identity", identity_id)
        self._get("enable_identity", identity_id).account_enabled = True

    async def revoke_sessions(self, identity_id: str) -> SessionsRevoked:
        await self._enter("revoke_sessions", identity_id)
        self._get("revoke_sessions", identity_id).session_revocations += 1
        return SessionsRevoked(identity_id=identity_id)

    async def assign_licenses(self, identity_id: str, license_ids: list[str]) -> LicensesAssigned:
        await self._enter("assign_licenses", identity_id, ",".join(license_ids))
        identity = self._get("assign_licenses", identity_id)
        for sku in license_ids:
            if sku not in identity.licenses:
                identity.licenses.append(sku)
        return LicensesAssigned(identity_id=identity_id, license_ids=list(license_ids))

    async def remove_licenses(self, identity_id: str, license_ids: list[str]) -> LicensesRemoved:
        await self._enter("remove_licenses", identity_id, ",".join(license_ids))
        identity = self._get("remove_licenses", identity_id)
        identity.licenses = [sku for sku in identity.licenses if sku not in license_ids]
        return LicensesRemoved(identity_id=identity_id, license_ids=list(license_ids))

    async def list_licenses(self, identity_id: str) -> list[DirectoryReference]:
        await self._enter("list_licenses", identity_id)
        return [DirectoryReference(id=sku) for sku in self._get("list_licenses", identity_id).licenses]

    async def add_to_group(self, identity_id: str, group_id: str) -> GroupMembershipAdded:
        await self._enter("add_to_group", identity_id, group_id)
        identity = self._get("add_to_group", identity_id)
        if group_id not in identity.groups:
            identity.groups.append(group_id)
        return GroupMembershipAdded(identity_id=identity_id, group_id=group_id)

    async def remove_from_group(self, identity_id: str, group_id: str) -> GroupMembershipRemoved:
        await self._enter("remove_from_group", identity_id, group_id)
        identity = self._get("remove_from_group", identity_id)
        if group_id in identity.groups:
            identity.groups.remove(group_id)
        return GroupMembershipRemoved(identity_id=identity_id, group_id=group_id)

    async def list_groups(self, identity_id: str) -> list[DirectoryReference]:
        await self._enter("list_groups", identity_id)
        return [DirectoryReference(id=g) for g in self._get("list_groups", identity_id).groups]

    async def add_to_team(
        self, identity_id: str, team_id: str, role: str = "member"
    ) -> TeamMembershipAdded:
        await self._enter("add_to_team", identity_id, team_id)
        identity = self._get("add_to_team", identity_id)
        if team_id not in identity.teams:
            identity.teams.append(team_id)
        return TeamMembershipAdded(identity_id=identity_id, team_id=team_id, role=role)

    async def remove_from_team(self, identity_id: str, team_id: str) -> TeamMembershipRemoved:
        await self._enter("remove_from_team", identity_id, team_id)
        identity = self._get("remove_from_team", identity_id)
        if team_id in identity.teams:
            identity.teams.remove(team_id)
        return TeamMembershipRemoved(identity_id=identity_id, team_id=team_id)

    async def list_teams(self, identity_id: str) -> list[DirectoryReference]:
        await self._enter("list_teams", identity_id)
        return [DirectoryReference(id=t) for t in self._get("list_teams", identity_id).teams]
