"""Application configuration using pydantic-settings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    POSTGRES = "postgres"


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    host: str = Field(default="localhost", alias="DB_HOST")
    port: int = Field(default=5432, alias="DB_PORT")
    name: str = Field(default="provisioning", alias="DB_NAME")
    user: str = Field(default="provisioning", alias="DB_USER")
    password: str = Field(default="", alias="DB_PASSWORD")
    pool_size: int = Field(default=20, alias="DB_POOL_SIZE")
    max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")
    pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT")

    @property
    def async_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.name}"
        )

    model_config = {"env_prefix": "DB_", "extra": "ignore", "populate_by_name": True}


class RedisSettings(BaseSettings):
    """Redis configuration."""

    host: str = Field(default="localhost", alias="REDIS_HOST")
    port: int = Field(default=6379, alias="REDIS_PORT")
    password: str = Field(default="", alias="REDIS_PASSWORD")
    db: int = Field(default=0, alias="REDIS_DB")
    enabled: bool = Field(default=False, alias="REDIS_ENABLED")

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"

    model_config = {"env_prefix": "REDIS_", "extra": "ignore", "populate_by_name": True}


class AuthSettings(BaseSettings):
    """Authentication configuration."""

    secret_key: str = Field(default="change-me-in-production", alias="AUTH_SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="AUTH_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="AUTH_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=7, alias="AUTH_REFRESH_TOKEN_EXPIRE_DAYS")
    bootstrap_admin_username: str = Field(default="admin", alias="AUTH_BOOTSTRAP_ADMIN_USERNAME")
    bootstrap_admin_password: str = Field(default="", alias="AUTH_BOOTSTRAP_ADMIN_PASSWORD")

    model_config = {"env_prefix": "AUTH_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    otlp_endpoint: str = Field(default="", alias="OTLP_ENDPOINT")
    service_name: str = Field(default="identity-provisioning", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")
    console_spans: bool = Field(default=False, alias="TRACING_CONSOLE_SPANS")
    trace_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0, alias="TRACING_SAMPLE_RATIO")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration."""

    requests_per_minute: int = Field(default=60, ge=1, alias="RATE_LIMIT_RPM")
    burst_size: int = Field(default=10, alias="RATE_LIMIT_BURST")

    model_config = {"env_prefix": "RATE_LIMIT_", "extra": "ignore", "populate_by_name": True}


class DirectorySettings(BaseSettings):
    """Remote identity directory (Microsoft Graph) configuration."""

    base_url: str = Field(default="https://graph.microsoft.com/v1.0", alias="DIRECTORY_BASE_URL")
    access_token: str = Field(default="", alias="DIRECTORY_ACCESS_TOKEN")
    request_timeout_seconds: float = Field(default=15.0, alias="DIRECTORY_REQUEST_TIMEOUT")
    max_retries: int = Field(default=3, ge=0, alias="DIRECTORY_MAX_RETRIES")
    backoff_base_seconds: float = Field(default=0.5, alias="DIRECTORY_BACKOFF_BASE")
    backoff_max_seconds: float = Field(default=8.0, alias="DIRECTORY_BACKOFF_MAX")
    simulated: bool = Field(default=True, alias="DIRECTORY_SIMULATED")

    model_config = {"env_prefix": "DIRECTORY_", "extra": "ignore", "populate_by_name": True}


class SagaSettings(BaseSettings):
    """Saga execution configuration."""

    step_timeout_seconds: float = Field(default=60.0, gt=0, alias="SAGA_STEP_TIMEOUT")
    employee_lock_ttl_seconds: int = Field(default=900, alias="SAGA_EMPLOYEE_LOCK_TTL")
    system_actor: str = Field(default="provisioning-service", alias="SAGA_SYSTEM_ACTOR")

    model_config = {"env_prefix": "SAGA_", "extra": "ignore", "populate_by_name": True}


class ProvisioningDefaults(BaseSettings):
    """Defaults for the provisioning configuration snapshot."""

    tenant_id: str = Field(default="", alias="PROVISIONING_TENANT_ID")
    default_usage_location: str = Field(default="US", alias="PROVISIONING_USAGE_LOCATION")
    password_length: int = Field(default=16, ge=8, alias="PROVISIONING_PASSWORD_LENGTH")
    force_password_change: bool = Field(default=True, alias="PROVISIONING_FORCE_PASSWORD_CHANGE")
    send_welcome_notification: bool = Field(default=True, alias="PROVISIONING_SEND_WELCOME")
    leaver_grace_period_days: int = Field(default=30, ge=0, alias="PROVISIONING_LEAVER_GRACE_DAYS")
    auto_disable_on_leave: bool = Field(default=True, alias="PROVISIONING_AUTO_DISABLE_ON_LEAVE")
    admin_recipients: list[str] = Field(default_factory=list, alias="PROVISIONING_ADMIN_RECIPIENTS")
    entitlements_file: str = Field(default="", alias="PROVISIONING_ENTITLEMENTS_FILE")

    model_config = {"env_prefix": "PROVISIONING_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    host: str = Field(default="0.0.0.0", alias="HOST")  # noqa: S104
    port: int = Field(default=8000, alias="PORT")
    workers: int = Field(default=1, alias="WORKERS")
    storage_backend: StorageBackend = Field(default=StorageBackend.MEMORY, alias="STORAGE_BACKEND")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    directory: DirectorySettings = Field(default_factory=DirectorySettings)
    saga: SagaSettings = Field(default_factory=SagaSettings)
    provisioning: ProvisioningDefaults = Field(default_factory=ProvisioningDefaults)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
