"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    DatabaseSchema     → database.yaml
    LoggingSchema      → logging.yaml
    SyncSchema         → sync.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int


class CorsSchema(_StrictBase):
    origins: list[str]


class TimeoutsSchema(_StrictBase):
    database: int
    external_api: int


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    api_prefix: str
    docs_enabled: bool
    server: ServerSchema
    cors: CorsSchema
    timeouts: TimeoutsSchema


# =============================================================================
# database.yaml
# =============================================================================


class DatabaseSchema(_StrictBase):
    url: str
    echo: bool = False
    seed_default_tags: bool = True


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# sync.yaml
# =============================================================================


class LocalStoreSchema(_StrictBase):
    backend: Literal["file", "memory"] = "file"
    directory: str = "data/local_store"
    namespace: str = "notes_master"


class ConnectivitySchema(_StrictBase):
    signal: Literal["socket", "manual"] = "socket"
    probe_host: str = "127.0.0.1"
    probe_port: int = 8000
    probe_timeout: float = Field(default=1.5, gt=0)
    watch_interval: float = Field(default=10, gt=0)


class BackupRetrySchema(_StrictBase):
    max_attempts: int = Field(default=3, ge=1)
    backoff_multiplier: float = 0.5
    backoff_max: float = 4


class BackupCircuitBreakerSchema(_StrictBase):
    fail_max: int = Field(default=5, ge=1)
    timeout_duration: int = Field(default=30, ge=1)


class CloudBackupSchema(_StrictBase):
    enabled: bool = False
    provider: str = "local"
    namespace: str = "notesync"
    directory: str = "data/cloud_backup"
    retry: BackupRetrySchema = Field(default_factory=BackupRetrySchema)
    circuit_breaker: BackupCircuitBreakerSchema = Field(
        default_factory=BackupCircuitBreakerSchema,
    )


class AutosaveSchema(_StrictBase):
    idle_seconds: float = Field(default=0.8, gt=0)
    max_interval_seconds: float = Field(default=5.0, gt=0)


class SyncSchema(_StrictBase):
    local_store: LocalStoreSchema = Field(default_factory=LocalStoreSchema)
    connectivity: ConnectivitySchema = Field(default_factory=ConnectivitySchema)
    cloud_backup: CloudBackupSchema = Field(default_factory=CloudBackupSchema)
    autosave: AutosaveSchema = Field(default_factory=AutosaveSchema)
