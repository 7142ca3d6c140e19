"""Declarative step lists for the Join, Move and Leave workflows.

A planner inspects the lifecycle event (and, for Move and Leave, the live
directory state) and returns a ``Workflow``: an ordered list of ``SagaStep``
objects. The orchestrator runs every workflow with the same loop.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from provisioning.domain.errors import IdentityNotFoundError, ProvisioningError
from provisioning.domain.models.base import days_from
from provisioning.domain.models.directory import DirectoryIdentity, IdentityProfile, ProfileChanges
from provisioning.domain.models.entitlements import EntitlementSet, ProvisioningConfig
from provisioning.domain.models.lifecycle import LifecycleEvent, LifecycleEventType
from provisioning.domain.models.payloads import LicenseRemovalScheduled, StepPayload
from provisioning.domain.models.provisioning import ActionType, ProvisioningRequest
from provisioning.domain.ports.services import DirectoryClient
from provisioning.domain.services.credentials import generate_one_time_password
from provisioning.domain.services.entitlement_resolver import EntitlementResolver
from provisioning.domain.services.notifications import NotificationEmitter


logger = structlog.get_logger(__name__)


@dataclass
class SagaContext:
    """Mutable state shared by the steps of one saga run."""

    request: ProvisioningRequest
    config: ProvisioningConfig
    directory: DirectoryClient
    resolver: EntitlementResolver
    notifier: NotificationEmitter
    clock: Callable[[], datetime]
    identity_id: str | None = None
    principal_name: str = ""
    one_time_password: str = field(default="", repr=False)
    entitlements: list[EntitlementSet] = field(default_factory=list)

    @property
    def event(self) -> LifecycleEvent:
        return self.request.event

    def resolve(self, department: str, role: str | None = None) -> EntitlementSet:
        """Resolve entitlements, surfacing any fallback as a request warning."""
        entitlements = self.resolver.resolve(department, self.config, role=role)
        if entitlements.is_fallback:
            self.request.add_warning(
                f"No entitlement configuration for department {department!r}; "
                f"used {entitlements.source.value} entitlements"
            )
        self.entitlements.append(entitlements)
        return entitlements

    def require_identity(self) -> str:
        if self.identity_id is None:
            raise IdentityNotFoundError(self.principal_name or self.event.email)
        return self.identity_id


StepExecutor = Callable[[SagaContext], Awaitable[StepPayload | None]]


@dataclass(frozen=True)
class SagaStep:
    """One declarative unit of work in a workflow."""

    name: str
    action: ActionType
    execute: StepExecutor
    target: str = ""
    tolerate_failure: bool = False


@dataclass(frozen=True)
class Workflow:
    event_type: LifecycleEventType
    steps: list[SagaStep]
    compensate_on_failure: bool = True


# ----------------------------------------------------------------------
# Step executors
# ----------------------------------------------------------------------


async def _create_identity(ctx: SagaContext) -> StepPayload:
    event = ctx.event
    policy = ctx.config.password_policy
    ctx.one_time_password = generate_one_time_password(policy)
    profile = IdentityProfile(
        display_name=event.display_name,
        given_name=event.given_name,
        surname=event.surname,
        mail_nickname=event.mail_nickname,
        user_principal_name=event.email,
        department=event.department,
        job_title=event.job_title,
        office_location=event.location,
        usage_location=ctx.config.default_usage_location,
        employee_id=event.employee_id,
        password=ctx.one_time_password,
        force_change_password=policy.force_change_on_first_sign_in,
    )
    created = await ctx.directory.create_identity(profile)
    ctx.identity_id = created.identity_id
    ctx.principal_name = created.principal_name

    if event.manager_id:
        try:
            await ctx.directory.set_manager(created.identity_id, event.manager_id)
        except ProvisioningError as e:
            # The identity exists; a missing manager link is reported, not fatal.
            logger.warning("set_manager_failed", identity_id=created.identity_id, error=str(e))
            ctx.request.add_warning(f"Could not set manager {event.manager_id}: {e}")
            return created
        return created.model_copy(update={"manager_id": event.manager_id})
    return created


def _assign_licenses(license_ids: list[str]) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        return await ctx.directory.assign_licenses(ctx.require_identity(), license_ids)
    return run


def _remove_licenses(license_ids: list[str]) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        return await ctx.directory.remove_licenses(ctx.require_identity(), license_ids)
    return run


def _add_to_group(group_id: str) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        return await ctx.directory.add_to_group(ctx.require_identity(), group_id)
    return run


def _remove_from_group(group_id: str) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        return await ctx.directory.remove_from_group(ctx.require_identity(), group_id)
    return run


def _add_to_team(team_id: str) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        return await ctx.directory.add_to_team(ctx.require_identity(), team_id, "member")
    return run


def _remove_from_team(team_id: str) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        return await ctx.directory.remove_from_team(ctx.require_identity(), team_id)
    return run


async def _send_welcome(ctx: SagaContext) -> StepPayload:
    outcome = await ctx.notifier.send_welcome(
        ctx.event,
        ctx.principal_name or ctx.event.email,
        ctx.one_time_password,
        ctx.request.correlation_id,
    )
    if not outcome.queued:
        ctx.request.add_warning(f"Welcome notification was not queued: {outcome.error}")
    return outcome


async def _update_profile(ctx: SagaContext) -> StepPayload:
    event = ctx.event
    changes = ProfileChanges(
        department=event.department,
        job_title=event.job_title or None,
        office_location=event.location or None,
    )
    return await ctx.directory.update_identity(ctx.require_identity(), changes)


async def _disable_identity(ctx: SagaContext) -> StepPayload:
    return await ctx.directory.disable_identity(ctx.require_identity())


async def _revoke_sessions(ctx: SagaContext) -> StepPayload:
    return await ctx.directory.revoke_sessions(ctx.require_identity())


def _schedule_license_removal(license_ids: list[str]) -> StepExecutor:
    async def run(ctx: SagaContext) -> StepPayload:
        scheduled_for = days_from(ctx.clock(), ctx.config.leaver_grace_period_days)
        logger.info(
            "license_removal_scheduled",
            identity_id=ctx.identity_id,
            scheduled_for=scheduled_for.isoformat(),
            license_count=len(license_ids),
        )
        return LicenseRemovalScheduled(
            identity_id=ctx.require_identity(),
            scheduled_for=scheduled_for,
            license_ids=license_ids,
        )
    return run


# ----------------------------------------------------------------------
# Planners
# ----------------------------------------------------------------------


async def _lookup_identity(ctx: SagaContext) -> DirectoryIdentity:
    principal = ctx.event.email
    identity = await ctx.directory.get_identity(principal)
    if identity is None:
        raise IdentityNotFoundError(principal)
    ctx.identity_id = identity.id
    ctx.request.identity_id = identity.id
    ctx.principal_name = identity.user_principal_name
    return identity


async def _live_ids(ctx: SagaContext) -> tuple[list[str], list[str], list[str]]:
    identity_id = ctx.require_identity()
    licenses = [ref.id for ref in await ctx.directory.list_licenses(identity_id)]
    groups = [ref.id for ref in await ctx.directory.list_groups(identity_id)]
    teams = [ref.id for ref in await ctx.directory.list_teams(identity_id)]
    return licenses, groups, teams


async def plan_join(ctx: SagaContext) -> Workflow:
    event = ctx.event
    target = ctx.resolve(event.department, role=event.job_title)

    steps = [SagaStep(
        name=f"Create identity {event.email}",
        action=ActionType.CREATE_IDENTITY,
        execute=_create_identity,
        target=event.email,
    )]
    if target.licenses:
        steps.append(SagaStep(
            name=f"Assign {len(target.licenses)} license(s)",
            action=ActionType.ASSIGN_LICENSE,
            execute=_assign_licenses(target.licenses),
            target=",".join(target.licenses),
        ))
    steps += [
        SagaStep(
            name=f"Add to group {group_id}",
            action=ActionType.ADD_TO_GROUP,
            execute=_add_to_group(group_id),
            target=group_id,
        )
        for group_id in target.groups
    ]
    steps += [
        SagaStep(
            name=f"Add to team {team_id}",
            action=ActionType.ADD_TO_TEAM,
            execute=_add_to_team(team_id),
            target=team_id,
        )
        for team_id in target.teams
    ]
    if ctx.config.send_welcome_notification:
        steps.append(SagaStep(
            name="Send welcome notification",
            action=ActionType.SEND_NOTIFICATION,
            execute=_send_welcome,
            target=event.email,
        ))
    return Workflow(event_type=LifecycleEventType.JOIN, steps=steps)


def _diff(live: list[str], old: list[str], new: list[str], managed: set[str]) -> tuple[list[str], list[str]]:
    """Return ``(remove, add)`` converging the managed part of ``live`` onto ``new``."""
    removable = set(old) | managed
    remove = [i for i in live if i in removable and i not in new]
    add = [i for i in new if i not in live]
    return remove, add


async def plan_move(ctx: SagaContext) -> Workflow:
    event = ctx.event
    await _lookup_identity(ctx)
    old = ctx.resolve(event.previous_department or "")
    new = ctx.resolve(event.department, role=event.job_title)
    live_licenses, live_groups, live_teams = await _live_ids(ctx)
    managed_licenses, managed_groups, managed_teams = ctx.config.managed_ids()

    groups_remove, groups_add = _diff(live_groups, old.groups, new.groups, managed_groups)
    licenses_remove, licenses_add = _diff(live_licenses, old.licenses, new.licenses, managed_licenses)
    teams_remove, teams_add = _diff(live_teams, old.teams, new.teams, managed_teams)

    logger.info(
        "move_diff_computed",
        employee_id=event.employee_id,
        groups_remove=groups_remove,
        groups_add=groups_add,
        licenses_remove=licenses_remove,
        licenses_add=licenses_add,
        teams_remove=teams_remove,
        teams_add=teams_add,
    )

    steps = [SagaStep(
        name=f"Update profile for {event.department}",
        action=ActionType.UPDATE_PROFILE,
        execute=_update_profile,
        target=ctx.identity_id or "",
    )]
    steps += [
        SagaStep(f"Remove from group {g}", ActionType.REMOVE_FROM_GROUP, _remove_from_group(g), g)
        for g in groups_remove
    ]
    steps += [
        SagaStep(f"Add to group {g}", ActionType.ADD_TO_GROUP, _add_to_group(g), g)
        for g in groups_add
    ]
    if licenses_remove:
        steps.append(SagaStep(
            name=f"Remove {len(licenses_remove)} license(s)",
            action=ActionType.REMOVE_LICENSE,
            execute=_remove_licenses(licenses_remove),
            target=",".join(licenses_remove),
            tolerate_failure=True,
        ))
    if licenses_add:
        steps.append(SagaStep(
            name=f"Assign {len(licenses_add)} license(s)",
            action=ActionType.ASSIGN_LICENSE,
            execute=_assign_licenses(licenses_add),
            target=",".join(licenses_add),
            tolerate_failure=True,
        ))
    steps += [
        SagaStep(f"Remove from team {t}", ActionType.REMOVE_FROM_TEAM, _remove_from_team(t), t)
        for t in teams_remove
    ]
    steps += [
        SagaStep(f"Add to team {t}", ActionType.ADD_TO_TEAM, _add_to_team(t), t)
        for t in teams_add
    ]
    return Workflow(event_type=LifecycleEventType.MOVE, steps=steps)


async def plan_leave(ctx: SagaContext) -> Workflow:
    event = ctx.event
    identity = await _lookup_identity(ctx)
    live_licenses, live_groups, live_teams = await _live_ids(ctx)

    steps: list[SagaStep] = []
    if ctx.config.auto_disable_on_leave:
        steps.append(SagaStep(
            name=f"Disable identity {identity.user_principal_name}",
            action=ActionType.DISABLE_IDENTITY,
            execute=_disable_identity,
            target=identity.id,
        ))
    steps.append(SagaStep(
        name="Revoke sign-in sessions",
        action=ActionType.REVOKE_SESSIONS,
        execute=_revoke_sessions,
        target=identity.id,
    ))
    steps += [
        SagaStep(f"Remove from group {g}", ActionType.REMOVE_FROM_GROUP, _remove_from_group(g), g)
        for g in live_groups
    ]
    steps += [
        SagaStep(f"Remove from team {t}", ActionType.REMOVE_FROM_TEAM, _remove_from_team(t), t)
        for t in live_teams
    ]
    steps.append(SagaStep(
        name=f"Schedule license removal in {ctx.config.leaver_grace_period_days} day(s)",
        action=ActionType.SCHEDULE_LICENSE_REMOVAL,
        execute=_schedule_license_removal(live_licenses),
        target=identity.id,
    ))
    logger.info(
        "leave_planned",
        employee_id=event.employee_id,
        groups=len(live_groups),
        teams=len(live_teams),
        licenses=len(live_licenses),
    )
    return Workflow(event_type=LifecycleEventType.LEAVE, steps=steps, compensate_on_failure=False)


PLANNERS: dict[LifecycleEventType, Callable[[SagaContext], Awaitable[Workflow]]] = {
    LifecycleEventType.JOIN: plan_join,
    LifecycleEventType.MOVE: plan_move,
    LifecycleEventType.LEAVE: plan_leave,
}
