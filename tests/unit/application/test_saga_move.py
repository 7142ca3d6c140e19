"""Tests for the Move saga."""

from __future__ import annotations

import pytest

from provisioning.domain.errors import FailureKind
from provisioning.domain.models.provisioning import (
    CompensationStatus,
    RequestStatus,
    StepStatus,
)
from provisioning.domain.services.saga_orchestrator import PLAN_STEP


@pytest.fixture
def seeded_identity(directory) -> str:
    return directory.seed_identity(
        "ada.lovelace@contoso.com",
        display_name="Ada Lovelace",
        department="Sales",
        licenses=["sku-e3"],
        groups=["grp-sales", "grp-crm", "grp-unmanaged"],
        teams=["team-sales"],
    )


class TestMoveConvergence:
    @pytest.mark.asyncio
    async def test_moves_sales_to_engineering(
        self, orchestrator, directory, seeded_identity, move_event,
    ) -> None:
        result = await orchestrator.run(move_event)

        assert result.success
        assert result.total_steps == 7
        assert result.identity_id == seeded_identity
        identity = directory.snapshot(seeded_identity)
        assert identity.department == "Engineering"
        assert sorted(identity.groups) == ["grp-eng", "grp-unmanaged"]
        assert sorted(identity.licenses) == ["sku-copilot", "sku-e3"]
        assert identity.teams == ["team-eng"]

    @pytest.mark.asyncio
    async def test_step_order(self, orchestrator, request_repo, seeded_identity, move_event) -> None:
        result = await orchestrator.run(move_event)
        request = await request_repo.get_by_id(result.request_id)
        assert request.identity_id == seeded_identity

        assert [s.name for s in request.steps] == [
            "Update profile for Engineering",
            "Remove from group grp-sales",
            "Remove from group grp-crm",
            "Add to group grp-eng",
            "Assign 1 license(s)",
            "Remove from team team-sales",
            "Add to team team-eng",
        ]

    @pytest.mark.asyncio
    async def test_unmanaged_memberships_are_kept(
        self, orchestrator, directory, seeded_identity, move_event,
    ) -> None:
        await orchestrator.run(move_event)
        removed = [c.target for c in directory.calls_for("remove_from_group")]
        assert "grp-unmanaged" not in removed

    @pytest.mark.asyncio
    async def test_shared_license_is_not_churned(
        self, orchestrator, directory, seeded_identity, move_event,
    ) -> None:
        await orchestrator.run(move_event)
        assert directory.calls_for("remove_licenses") == []
        assert [c.target for c in directory.calls_for("assign_licenses")] == ["sku-copilot"]

    @pytest.mark.asyncio
    async def test_rerun_is_a_no_op(
        self, orchestrator, directory, seeded_identity, move_event,
    ) -> None:
        await orchestrator.run(move_event)
        directory.calls.clear()

        result = await orchestrator.run(move_event)

        assert result.success
        assert result.total_steps == 1
        assert directory.membership_calls() == []

    @pytest.mark.asyncio
    async def test_removes_stale_managed_group_from_other_department(
        self, orchestrator, directory, move_event,
    ) -> None:
        identity_id = directory.seed_identity(
            "ada.lovelace@contoso.com", department="Sales", groups=["grp-sales", "grp-all-staff"],
        )
        await orchestrator.run(move_event)
        assert directory.snapshot(identity_id).groups == ["grp-eng"]


class TestMoveTolerance:
    @pytest.mark.asyncio
    async def test_license_assignment_failure_is_tolerated(
        self, orchestrator, directory, request_repo, seeded_identity, move_event,
    ) -> None:
        directory.fail_on("assign_licenses", message="no seats left")

        result = await orchestrator.run(move_event)

        assert result.success
        assert result.status == RequestStatus.COMPLETED
        assert result.completed_steps == 6
        assert result.warnings == ["Assign 1 license(s) failed: assign_licenses failed (503): no seats left"]
        request = await request_repo.get_by_id(result.request_id)
        assign = next(s for s in request.steps if s.name == "Assign 1 license(s)")
        assert assign.status == StepStatus.FAILED
        assert assign.tolerated

    @pytest.mark.asyncio
    async def test_license_removal_failure_is_tolerated(
        self, orchestrator, directory, move_event,
    ) -> None:
        identity_id = directory.seed_identity(
            "ada.lovelace@contoso.com", department="Sales", licenses=["sku-e3", "sku-e1"],
        )
        directory.fail_on("remove_licenses")

        result = await orchestrator.run(move_event)

        assert result.success
        assert any(w.startswith("Remove 1 license(s) failed") for w in result.warnings)
        assert "sku-e1" in directory.snapshot(identity_id).licenses


class TestMoveFailure:
    @pytest.mark.asyncio
    async def test_missing_identity_is_not_found(self, orchestrator, directory, move_event) -> None:
        result = await orchestrator.run(move_event)

        assert not result.success
        assert result.failure_kind == FailureKind.NOT_FOUND
        assert result.failed_step == PLAN_STEP
        assert result.total_steps == 0
        assert directory.membership_calls() == []

    @pytest.mark.asyncio
    async def test_team_failure_rolls_back_additions_only(
        self, orchestrator, directory, seeded_identity, move_event,
    ) -> None:
        directory.fail_on("add_to_team", "team-eng")

        result = await orchestrator.run(move_event)

        assert result.failure_kind == FailureKind.PARTIAL_FAILURE
        assert result.failed_step == "Add to team team-eng"
        assert result.identity_id == seeded_identity
        compensated = [
            c.compensating_action for c in result.compensations
            if c.status == CompensationStatus.COMPENSATED
        ]
        assert compensated == ["RemoveLicense", "RemoveFromGroup"]
        skipped = [c.step_name for c in result.compensations if c.status == CompensationStatus.SKIPPED]
        assert "Remove from team team-sales" in skipped

        identity = directory.snapshot(seeded_identity)
        assert "grp-eng" not in identity.groups
        assert identity.licenses == ["sku-e3"]
        assert identity.account_enabled
