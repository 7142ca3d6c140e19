"""Entitlement configuration and resolved entitlement sets."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from provisioning.domain.models.base import ValueObject


FALLBACK_DEPARTMENT_NAMES = ("default", "general")


class ResolutionSource(str, Enum):
    """Which rung of the fallback chain produced an entitlement set."""

    EXACT = "exact"
    DEFAULT = "default"
    EMPTY = "empty"


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class DepartmentEntitlementConfig(ValueObject):
    """Licenses, groups and teams every member of a department receives."""

    department: str
    default_licenses: list[str] = Field(default_factory=list)
    security_groups: list[str] = Field(default_factory=list)
    teams: list[str] = Field(default_factory=list)
    sharepoint_sites: list[str] = Field(default_factory=list)


class RoleEntitlementConfig(ValueObject):
    """Extra entitlements layered on top of the department for a job title."""

    role: str
    additional_licenses: list[str] = Field(default_factory=list)
    additional_groups: list[str] = Field(default_factory=list)
    additional_teams: list[str] = Field(default_factory=list)


class PasswordPolicy(ValueObject):
    """Policy for one-time credentials issued to new identities."""

    min_length: int = Field(default=16, ge=8, le=256)
    force_change_on_first_sign_in: bool = True


class ProvisioningConfig(ValueObject):
    """Snapshot of provisioning configuration, read once per saga."""

    tenant_id: str = ""
    default_usage_location: str = "US"
    password_policy: PasswordPolicy = Field(default_factory=PasswordPolicy)
    send_welcome_notification: bool = True
    department_configs: list[DepartmentEntitlementConfig] = Field(default_factory=list)
    role_configs: list[RoleEntitlementConfig] = Field(default_factory=list)
    leaver_grace_period_days: int = Field(default=30, ge=0)
    auto_disable_on_leave: bool = True
    admin_recipients: list[str] = Field(default_factory=list)

    def managed_ids(self) -> tuple[set[str], set[str], set[str]]:
        """Every license, group and team id referenced by any config entry."""
        licenses: set[str] = set()
        groups: set[str] = set()
        teams: set[str] = set()
        for dept in self.department_configs:
            licenses.update(dept.default_licenses)
            groups.update(dept.security_groups)
            teams.update(dept.teams)
        for role in self.role_configs:
            licenses.update(role.additional_licenses)
            groups.update(role.additional_groups)
            teams.update(role.additional_teams)
        return licenses, groups, teams


class EntitlementSet(ValueObject):
    """Target licenses, groups and teams for a department/role."""

    department: str = ""
    licenses: list[str] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    teams: list[str] = Field(default_factory=list)
    source: ResolutionSource = ResolutionSource.EXACT

    @field_validator("licenses", "groups", "teams")
    @classmethod
    def _unique(cls, values: list[str]) -> list[str]:
        return _dedupe(values)

    @property
    def is_empty(self) -> bool:
        return not (self.licenses or self.groups or self.teams)

    @property
    def is_fallback(self) -> bool:
        return self.source != ResolutionSource.EXACT

    def merged_with(self, role: RoleEntitlementConfig) -> EntitlementSet:
        """Return a copy extended with a role's additional entitlements."""
        return self.model_copy(update={
            "licenses": _dedupe([*self.licenses, *role.additional_licenses]),
            "groups": _dedupe([*self.groups, *role.additional_groups]),
            "teams": _dedupe([*self.teams, *role.additional_teams]),
        })
