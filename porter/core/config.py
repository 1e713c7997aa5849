"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Cross-field rules (secret required for non-plain key
storage, TTL overrides) are validated at load time.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from porter.domain.enums import AssignmentStrategy, IdStrategy, KeyStorage


class RoleDefinition(BaseModel):
    """One entry of the ROLES setting (JSON list in the environment)."""

    name: str = Field(..., min_length=1, max_length=64)
    level: int = Field(..., ge=1)
    label: str | None = None
    description: str | None = None


class Settings(BaseSettings):
    """Porter settings loaded from environment and .env.

    All settings have defaults; secret_key is required only when
    key_storage is 'hashed' or 'encrypted' (see validate_security).
    """

    # App
    app_name: str = "porter"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./porter.db"
    database_echo: bool = False
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    roster_table: str = "roster"
    id_strategy: IdStrategy = IdStrategy.ULID

    # Roles: empty list means the built-in catalogue (admin .. guest)
    roles: list[RoleDefinition] = Field(default_factory=list)
    assignment_strategy: AssignmentStrategy = AssignmentStrategy.REPLACE

    # Security: storage representation of role keys
    key_storage: KeyStorage = KeyStorage.PLAIN
    secret_key: SecretStr = SecretStr("")

    # Multitenancy
    multitenancy_enabled: bool = False
    multitenancy_tenant_column: str = "tenant_id"
    multitenancy_auto_scope: bool = True
    multitenancy_cache_per_tenant: bool = True

    # Cache (Redis)
    cache_enabled: bool = True
    cache_ttl: int = 3600
    # Per-purpose overrides; None falls back to cache_ttl
    cache_ttl_role_check: int | None = 1800
    cache_ttl_participants: int | None = None
    cache_ttl_assigned_entities: int | None = None
    cache_key_prefix: str = "porter"
    cache_use_tags: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None

    # Events: also publish RoleAssigned/RoleRemoved to Redis pub/sub
    events_broadcast: bool = False

    # Retry policy for infrastructure errors (lock timeout, connection loss)
    retry_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.05, ge=0)

    # Telemetry (OpenTelemetry tracing)
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"  # console | otlp | none
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = Field(default=1.0, ge=0, le=1)
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_security(self) -> "Settings":
        """Validate cross-field rules.

        - hashed/encrypted key storage: SECRET_KEY required.
        - cache key prefix must not contain the key separator.
        """
        if self.key_storage != KeyStorage.PLAIN and not self.secret_key.get_secret_value():
            raise ValueError(
                f"SECRET_KEY is required when key_storage is {self.key_storage.value!r}. "
                "Generate with: openssl rand -hex 32. Changing it later orphans stored role keys."
            )
        if ":" in self.cache_key_prefix:
            raise ValueError("cache_key_prefix must not contain ':'")
        return self

    def ttl_for(self, purpose: str) -> int:
        """Return TTL in seconds for a cache purpose (role_check, participants, assigned_entities)."""
        override = {
            "role_check": self.cache_ttl_role_check,
            "participants": self.cache_ttl_participants,
            "assigned_entities": self.cache_ttl_assigned_entities,
        }.get(purpose)
        return override if override is not None else self.cache_ttl


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    In tests, call get_settings.cache_clear() before overriding env vars so
    the next get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
