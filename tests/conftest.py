"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from provisioning.api.app import create_app
from provisioning.api.dependencies.services import ServiceContainer
from provisioning.config import AuthSettings, Environment, get_settings, RateLimitSettings, Settings
from provisioning.domain.models.entitlements import (
    DepartmentEntitlementConfig,
    ProvisioningConfig,
    RoleEntitlementConfig,
)
from provisioning.domain.models.lifecycle import LifecycleEvent, LifecycleEventType
from provisioning.domain.models.user import Role, User
from provisioning.domain.services.lifecycle_service import LifecycleService
from provisioning.domain.services.saga_orchestrator import SagaOrchestrator
from provisioning.infrastructure.auth.jwt_handler import JWTHandler
from provisioning.infrastructure.config_provider import StaticConfigProvider
from provisioning.infrastructure.directory.in_memory import InMemoryDirectoryClient
from provisioning.infrastructure.locking.employee_lock import InMemoryDistributedLock
from provisioning.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from provisioning.infrastructure.persistence.repositories.in_memory import (
    InMemoryAuditLogRepository,
    InMemoryNotificationQueue,
    InMemoryProvisioningRequestRepository,
    InMemoryUserRepository,
)


FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
ADMIN_RECIPIENTS = ["it-admins@example.com"]


@pytest.fixture(autouse=True)
def clear_stores() -> None:
    """Clear in-memory stores before each test."""
    InMemoryProvisioningRequestRepository.clear()
    InMemoryAuditLogRepository.clear()
    InMemoryNotificationQueue.clear()
    InMemoryUserRepository.clear()
    ServiceContainer.reset()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment=Environment.TESTING,
        debug=True,
        rate_limit=RateLimitSettings(requests_per_minute=6000, burst_size=1000),
    )


@pytest.fixture
def auth_settings() -> AuthSettings:
    return AuthSettings(
        secret_key="test-secret-key",
        algorithm="HS256",
        access_token_expire_minutes=30,
    )


@pytest.fixture
def jwt_handler(auth_settings: AuthSettings) -> JWTHandler:
    return JWTHandler(auth_settings)


@pytest.fixture
def provisioning_config() -> ProvisioningConfig:
    return ProvisioningConfig(
        tenant_id="contoso",
        department_configs=[
            DepartmentEntitlementConfig(
                department="Engineering",
                default_licenses=["sku-e3", "sku-copilot"],
                security_groups=["grp-eng"],
                teams=["team-eng"],
            ),
            DepartmentEntitlementConfig(
                department="Sales",
                default_licenses=["sku-e3"],
                security_groups=["grp-sales", "grp-crm"],
                teams=["team-sales"],
            ),
            DepartmentEntitlementConfig(
                department="Default",
                default_licenses=["sku-e1"],
                security_groups=["grp-all-staff"],
            ),
        ],
        role_configs=[
            RoleEntitlementConfig(role="Engineering Manager", additional_groups=["grp-eng-managers"]),
        ],
        admin_recipients=ADMIN_RECIPIENTS,
    )


@pytest.fixture
def config_provider(provisioning_config: ProvisioningConfig) -> StaticConfigProvider:
    return StaticConfigProvider(provisioning_config)


@pytest.fixture
def directory() -> InMemoryDirectoryClient:
    return InMemoryDirectoryClient()


@pytest.fixture
def request_repo() -> InMemoryProvisioningRequestRepository:
    return InMemoryProvisioningRequestRepository()


@pytest.fixture
def audit_log() -> InMemoryAuditLogRepository:
    return InMemoryAuditLogRepository()


@pytest.fixture
def notification_queue() -> InMemoryNotificationQueue:
    return InMemoryNotificationQueue()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def event_publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def lock_service() -> InMemoryDistributedLock:
    return InMemoryDistributedLock()


@pytest.fixture
def orchestrator(
    directory: InMemoryDirectoryClient,
    config_provider: StaticConfigProvider,
    request_repo: InMemoryProvisioningRequestRepository,
    audit_log: InMemoryAuditLogRepository,
    notification_queue: InMemoryNotificationQueue,
    event_publisher: InMemoryEventPublisher,
) -> SagaOrchestrator:
    return SagaOrchestrator(
        directory=directory,
        config_provider=config_provider,
        request_repo=request_repo,
        audit_log=audit_log,
        notification_queue=notification_queue,
        event_publisher=event_publisher,
        step_timeout_seconds=5.0,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def lifecycle_service(
    orchestrator: SagaOrchestrator,
    request_repo: InMemoryProvisioningRequestRepository,
    audit_log: InMemoryAuditLogRepository,
    config_provider: StaticConfigProvider,
    lock_service: InMemoryDistributedLock,
) -> LifecycleService:
    return LifecycleService(
        orchestrator=orchestrator,
        request_repo=request_repo,
        audit_log=audit_log,
        config_provider=config_provider,
        lock_service=lock_service,
    )


def make_event(event_type: LifecycleEventType = LifecycleEventType.JOIN, **overrides: Any) -> LifecycleEvent:
    data: dict[str, Any] = {
        "employee_id": "E1001",
        "display_name": "Ada Lovelace",
        "email": "ada.lovelace@contoso.com",
        "department": "Engineering",
        "job_title": "Software Engineer",
        "location": "London",
        "event_type": event_type,
    }
    if event_type == LifecycleEventType.MOVE:
        data["previous_department"] = "Sales"
    data.update(overrides)
    return LifecycleEvent(**data)


@pytest.fixture
def join_event() -> LifecycleEvent:
    return make_event(LifecycleEventType.JOIN)


@pytest.fixture
def move_event() -> LifecycleEvent:
    return make_event(LifecycleEventType.MOVE)


@pytest.fixture
def leave_event() -> LifecycleEvent:
    return make_event(LifecycleEventType.LEAVE)


@pytest.fixture
def operator_user() -> User:
    return User(
        username="operator",
        email="operator@example.com",
        hashed_password=JWTHandler.hash_password("operatorpassword123"),
        role=Role.IT_OPERATOR,
        tenant_id="test-tenant",
    )


@pytest.fixture
def admin_user() -> User:
    return User(
        username="admin",
        email="admin@example.com",
        hashed_password=JWTHandler.hash_password("adminpassword123"),
        role=Role.ADMIN,
        tenant_id="test-tenant",
    )


@pytest.fixture
def event_factory() -> Any:
    return make_event


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def orchestrator_factory(
    directory: InMemoryDirectoryClient,
    provisioning_config: ProvisioningConfig,
    request_repo: InMemoryProvisioningRequestRepository,
    audit_log: InMemoryAuditLogRepository,
    notification_queue: InMemoryNotificationQueue,
    event_publisher: InMemoryEventPublisher,
) -> Any:
    """Build an orchestrator with config overrides or replaced collaborators."""

    def build(config_overrides: dict[str, Any] | None = None, **kwargs: Any) -> SagaOrchestrator:
        config = provisioning_config.model_copy(update=config_overrides or {})
        options: dict[str, Any] = {
            "directory": directory,
            "config_provider": StaticConfigProvider(config),
            "request_repo": request_repo,
            "audit_log": audit_log,
            "notification_queue": notification_queue,
            "event_publisher": event_publisher,
            "step_timeout_seconds": 5.0,
            "clock": lambda: FIXED_NOW,
        }
        options.update(kwargs)
        return SagaOrchestrator(**options)

    return build


@pytest.fixture
def container(
    settings: Settings,
    directory: InMemoryDirectoryClient,
    config_provider: StaticConfigProvider,
    event_publisher: InMemoryEventPublisher,
) -> ServiceContainer:
    container = ServiceContainer(
        settings,
        directory=directory,
        config_provider=config_provider,
        event_publisher=event_publisher,
    )
    ServiceContainer.set_instance(container)
    return container


@pytest.fixture
def client(settings: Settings, container: ServiceContainer) -> TestClient:
    return TestClient(create_app(settings))


@pytest.fixture
def auth_headers() -> Any:
    """Build an Authorization header for a user, signed with the app's key."""

    def build(user: User) -> dict[str, str]:
        token = JWTHandler(get_settings().auth).create_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return build
