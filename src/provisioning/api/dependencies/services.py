"""Service dependencies for FastAPI dependency injection."""

from __future__ import annotations

import structlog

from provisioning.config import get_settings, Settings, StorageBackend
from provisioning.domain.models.user import Role, User
from provisioning.domain.ports.repositories import (
    AuditLogRepository,
    ProvisioningRequestRepository,
    UserRepository,
)
from provisioning.domain.ports.services import (
    DirectoryClient,
    DistributedLock,
    EventPublisher,
    NotificationQueue,
    ProvisioningConfigProvider,
)
from provisioning.domain.services.entitlement_resolver import EntitlementResolver
from provisioning.domain.services.lifecycle_service import LifecycleService
from provisioning.domain.services.saga_orchestrator import SagaOrchestrator
from provisioning.infrastructure.auth.jwt_handler import JWTHandler
from provisioning.infrastructure.config_provider import SettingsConfigProvider
from provisioning.infrastructure.directory.graph_client import GraphDirectoryClient
from provisioning.infrastructure.directory.in_memory import InMemoryDirectoryClient
from provisioning.infrastructure.locking.employee_lock import (
    create_redis_client,
    InMemoryDistributedLock,
    RedisDistributedLock,
)
from provisioning.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from provisioning.infrastructure.persistence.database import DatabaseManager
from provisioning.infrastructure.persistence.repositories import (
    PostgresAuditLogRepository,
    PostgresNotificationQueue,
    PostgresProvisioningRequestRepository,
    PostgresUserRepository,
)
from provisioning.infrastructure.persistence.repositories.in_memory import (
    InMemoryAuditLogRepository,
    InMemoryNotificationQueue,
    InMemoryProvisioningRequestRepository,
    InMemoryUserRepository,
)


logger = structlog.get_logger(__name__)


class ServiceContainer:
    """Simple dependency injection container.

    Implements the Composition Root pattern: adapters are chosen from settings
    (simulated or Graph directory, memory or Postgres storage, local or Redis
    lock) unless an explicit instance is passed in.
    """

    _instance: ServiceContainer | None = None

    def __init__(
        self,
        settings: Settings | None = None,
        directory: DirectoryClient | None = None,
        config_provider: ProvisioningConfigProvider | None = None,
        event_publisher: EventPublisher | None = None,
        lock_service: DistributedLock | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._event_publisher = event_publisher or InMemoryEventPublisher()
        self._config_provider = config_provider or SettingsConfigProvider(self._settings.provisioning)
        self._resolver = EntitlementResolver()
        self._directory = directory or self._build_directory()
        self._lock_service = lock_service or self._build_lock()

        self._database: DatabaseManager | None = None
        if self._settings.storage_backend == StorageBackend.POSTGRES:
            self._database = DatabaseManager(self._settings.database)
            scope = self._database.session
            self._request_repo: ProvisioningRequestRepository = PostgresProvisioningRequestRepository(scope)
            self._audit_log: AuditLogRepository = PostgresAuditLogRepository(scope)
            self._notification_queue: NotificationQueue = PostgresNotificationQueue(scope)
            self._user_repo: UserRepository = PostgresUserRepository(scope)
        else:
            self._request_repo = InMemoryProvisioningRequestRepository()
            self._audit_log = InMemoryAuditLogRepository()
            self._notification_queue = InMemoryNotificationQueue()
            self._user_repo = InMemoryUserRepository()

        self._orchestrator = SagaOrchestrator(
            directory=self._directory,
            config_provider=self._config_provider,
            request_repo=self._request_repo,
            audit_log=self._audit_log,
            notification_queue=self._notification_queue,
            resolver=self._resolver,
            event_publisher=self._event_publisher,
            step_timeout_seconds=self._settings.saga.step_timeout_seconds,
            system_actor=self._settings.saga.system_actor,
        )
        self._lifecycle_service = LifecycleService(
            orchestrator=self._orchestrator,
            request_repo=self._request_repo,
            audit_log=self._audit_log,
            config_provider=self._config_provider,
            lock_service=self._lock_service,
            resolver=self._resolver,
            lock_ttl_seconds=self._settings.saga.employee_lock_ttl_seconds,
        )

    def _build_directory(self) -> DirectoryClient:
        if self._settings.directory.simulated:
            logger.info("directory_adapter_selected", adapter="simulated")
            return InMemoryDirectoryClient()
        logger.info("directory_adapter_selected", adapter="graph", base_url=self._settings.directory.base_url)
        return GraphDirectoryClient(self._settings.directory)

    def _build_lock(self) -> DistributedLock:
        if self._settings.redis.enabled:
            return RedisDistributedLock(create_redis_client(self._settings.redis))
        return InMemoryDistributedLock()

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def set_instance(cls, container: ServiceContainer) -> None:
        cls._instance = container

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    async def startup(self) -> None:
        if self._database is not None:
            await self._database.initialize(create_tables=self._settings.debug)
            logger.info("database_initialized")
        await self._seed_bootstrap_admin()

    async def _seed_bootstrap_admin(self) -> None:
        auth = self._settings.auth
        if not auth.bootstrap_admin_password:
            return
        if await self._user_repo.get_by_username(auth.bootstrap_admin_username):
            return
        await self._user_repo.save(User(
            username=auth.bootstrap_admin_username,
            email=f"{auth.bootstrap_admin_username}@localhost.local",
            hashed_password=JWTHandler.hash_password(auth.bootstrap_admin_password),
            role=Role.ADMIN,
        ))
        logger.info("bootstrap_admin_created", username=auth.bootstrap_admin_username)

    async def storage_ready(self) -> bool:
        """In-memory storage is always ready; Postgres must answer a ping."""
        if self._database is None:
            return True
        return await self._database.ping()

    async def shutdown(self) -> None:
        if isinstance(self._directory, GraphDirectoryClient):
            await self._directory.close()
        if self._database is not None:
            await self._database.close()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def directory(self) -> DirectoryClient:
        return self._directory

    @property
    def event_publisher(self) -> EventPublisher:
        return self._event_publisher

    @property
    def lock_service(self) -> DistributedLock:
        return self._lock_service

    @property
    def notification_queue(self) -> NotificationQueue:
        return self._notification_queue

    @property
    def user_repo(self) -> UserRepository:
        return self._user_repo

    @property
    def lifecycle_service(self) -> LifecycleService:
        return self._lifecycle_service


def get_service_container() -> ServiceContainer:
    return ServiceContainer.get_instance()


def get_lifecycle_service() -> LifecycleService:
    return ServiceContainer.get_instance().lifecycle_service
