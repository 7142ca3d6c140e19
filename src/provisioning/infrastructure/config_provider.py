"""Provisioning configuration providers."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from provisioning.config import ProvisioningDefaults
from provisioning.domain.models.entitlements import (
    DepartmentEntitlementConfig,
    PasswordPolicy,
    ProvisioningConfig,
    RoleEntitlementConfig,
)
from provisioning.domain.ports.services import ProvisioningConfigProvider


logger = structlog.get_logger(__name__)


class StaticConfigProvider(ProvisioningConfigProvider):
    """Serves a fixed configuration. Each call returns the same immutable snapshot."""

    def __init__(self, config: ProvisioningConfig) -> None:
        self._config = config

    async def get_provisioning_config(self) -> ProvisioningConfig:
        return self._config

    def replace(self, config: ProvisioningConfig) -> None:
        """Swap the configuration. Sagas already running keep their snapshot."""
        self._config = config


class SettingsConfigProvider(ProvisioningConfigProvider):
    """Builds the configuration from environment defaults plus an entitlements file.

    The file is JSON with ``departments`` and ``roles`` lists. It is re-read on
    every call so edits are picked up by the next saga.
    """

    def __init__(self, defaults: ProvisioningDefaults) -> None:
        self._defaults = defaults

    async def get_provisioning_config(self) -> ProvisioningConfig:
        departments, roles = self._load_entitlements()
        d = self._defaults
        return ProvisioningConfig(
            tenant_id=d.tenant_id,
            default_usage_location=d.default_usage_location,
            password_policy=PasswordPolicy(
                min_length=d.password_length,
                force_change_on_first_sign_in=d.force_password_change,
            ),
            send_welcome_notification=d.send_welcome_notification,
            department_configs=departments,
            role_configs=roles,
            leaver_grace_period_days=d.leaver_grace_period_days,
            auto_disable_on_leave=d.auto_disable_on_leave,
            admin_recipients=list(d.admin_recipients),
        )

    def _load_entitlements(
        self,
    ) -> tuple[list[DepartmentEntitlementConfig], list[RoleEntitlementConfig]]:
        if not self._defaults.entitlements_file:
            return [], []
        path = Path(self._defaults.entitlements_file)
        data = json.loads(path.read_text(encoding="utf-8"))
        departments = [DepartmentEntitlementConfig(**d) for d in data.get("departments", [])]
        roles = [RoleEntitlementConfig(**r) for r in data.get("roles", [])]
        logger.debug(
            "entitlements_file_loaded",
            path=str(path),
            departments=len(departments),
            roles=len(roles),
        )
        return departments, roles
