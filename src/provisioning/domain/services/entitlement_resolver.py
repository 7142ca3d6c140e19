"""Department/role to entitlement resolution."""

from __future__ import annotations

import structlog

from provisioning.domain.models.entitlements import (
    DepartmentEntitlementConfig,
    EntitlementSet,
    FALLBACK_DEPARTMENT_NAMES,
    ProvisioningConfig,
    ResolutionSource,
    RoleEntitlementConfig,
)
from provisioning.infrastructure.observability.metrics import ENTITLEMENT_FALLBACKS_TOTAL


logger = structlog.get_logger(__name__)


def _normalize(name: str | None) -> str:
    return (name or "").strip().casefold()


class EntitlementResolver:
    """Resolves the target entitlements for a department and optional role.

    Resolution never raises. The chain is: an exact case-insensitive
    department match, then a department named "Default" or "General", then an
    empty set. A matching role config is layered on top of whatever the
    department chain produced.
    """

    def resolve(
        self,
        department: str,
        config: ProvisioningConfig,
        role: str | None = None,
    ) -> EntitlementSet:
        dept_config, source = self._find_department(department, config.department_configs)

        if dept_config is None:
            entitlements = EntitlementSet(department=department, source=source)
        else:
            entitlements = EntitlementSet(
                department=department,
                licenses=dept_config.default_licenses,
                groups=dept_config.security_groups,
                teams=dept_config.teams,
                source=source,
            )

        if source != ResolutionSource.EXACT:
            ENTITLEMENT_FALLBACKS_TOTAL.labels(source=source.value).inc()
            logger.warning(
                "entitlement_fallback_used",
                department=department,
                source=source.value,
                configured_departments=len(config.department_configs),
            )

        role_config = self._find_role(role, config.role_configs)
        if role_config is not None:
            entitlements = entitlements.merged_with(role_config)
            logger.debug("role_entitlements_merged", department=department, role=role_config.role)

        return entitlements

    @staticmethod
    def _find_department(
        department: str, configs: list[DepartmentEntitlementConfig]
    ) -> tuple[DepartmentEntitlementConfig | None, ResolutionSource]:
        wanted = _normalize(department)
        if wanted:
            for cfg in configs:
                if _normalize(cfg.department) == wanted:
                    return cfg, ResolutionSource.EXACT

        for fallback in FALLBACK_DEPARTMENT_NAMES:
            for cfg in configs:
                if _normalize(cfg.department) == fallback:
                    return cfg, ResolutionSource.DEFAULT

        return None, ResolutionSource.EMPTY

    @staticmethod
    def _find_role(
        role: str | None, configs: list[RoleEntitlementConfig]
    ) -> RoleEntitlementConfig | None:
        wanted = _normalize(role)
        if not wanted:
            return None
        for cfg in configs:
            if _normalize(cfg.role) == wanted:
                return cfg
        return None
