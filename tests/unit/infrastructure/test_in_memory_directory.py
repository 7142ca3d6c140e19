"""Tests for the simulated directory."""

from __future__ import annotations

import pytest

from provisioning.domain.errors import ExternalServiceError
from provisioning.domain.models.directory import IdentityProfile, ProfileChanges


def _profile(upn: str = "ada@contoso.com") -> IdentityProfile:
    return IdentityProfile(
        display_name="Ada", mail_nickname="ada", user_principal_name=upn, password="pw-123456789",
    )


class TestInMemoryDirectoryClient:
    @pytest.mark.asyncio
    async def test_create_and_lookup(self, directory) -> None:
        created = await directory.create_identity(_profile())
        found = await directory.get_identity("ADA@contoso.com")
        assert found is not None
        assert found.id == created.identity_id
        assert (await directory.get_identity(created.identity_id)).id == created.identity_id

    @pytest.mark.asyncio
    async def test_duplicate_principal_rejected(self, directory) -> None:
        await directory.create_identity(_profile())
        with pytest.raises(ExternalServiceError) as exc:
            await directory.create_identity(_profile())
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_identity(self, directory) -> None:
        assert await directory.get_identity("ghost@contoso.com") is None
        with pytest.raises(ExternalServiceError) as exc:
            await directory.disable_identity("missing-id")
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_membership_operations_are_idempotent(self, directory) -> None:
        identity_id = directory.seed_identity("ada@contoso.com")
        await directory.add_to_group(identity_id, "g1")
        await directory.add_to_group(identity_id, "g1")
        await directory.remove_from_team(identity_id, "t-never")
        assert directory.snapshot(identity_id).groups == ["g1"]
        assert directory.snapshot(identity_id).teams == []

    @pytest.mark.asyncio
    async def test_update_profile(self, directory) -> None:
        identity_id = directory.seed_identity("ada@contoso.com", department="Sales")
        updated = await directory.update_identity(identity_id, ProfileChanges(department="Engineering"))
        assert updated.changes == {"department": "Engineering"}
        assert directory.snapshot(identity_id).department == "Engineering"

    @pytest.mark.asyncio
    async def test_enable_and_disable(self, directory) -> None:
        identity_id = directory.seed_identity("ada@contoso.com")
        await directory.disable_identity(identity_id)
        assert not directory.snapshot(identity_id).account_enabled
        await directory.enable_identity(identity_id)
        assert directory.snapshot(identity_id).account_enabled

    @pytest.mark.asyncio
    async def test_fail_on_is_one_shot_and_targeted(self, directory) -> None:
        identity_id = directory.seed_identity("ada@contoso.com")
        directory.fail_on("add_to_group", "g2", message="nope")

        await directory.add_to_group(identity_id, "g1")
        with pytest.raises(ExternalServiceError, match="nope"):
            await directory.add_to_group(identity_id, "g2")
        await directory.add_to_group(identity_id, "g2")

        assert directory.snapshot(identity_id).groups == ["g1", "g2"]

    @pytest.mark.asyncio
    async def test_calls_are_recorded(self, directory) -> None:
        identity_id = directory.seed_identity("ada@contoso.com", licenses=["sku-1"])
        await directory.list_licenses(identity_id)
        await directory.assign_licenses(identity_id, ["sku-2", "sku-3"])

        assert [c.operation for c in directory.calls] == ["list_licenses", "assign_licenses"]
        assert directory.membership_calls()[0].target == "sku-2,sku-3"
        assert directory.snapshot(identity_id).licenses == ["sku-1", "sku-2", "sku-3"]
