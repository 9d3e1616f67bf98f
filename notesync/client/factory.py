"""
Client wiring.

Builds the offline client from config/settings/sync.yaml. Every component
is constructed explicitly and handed to the orchestrator; nothing is kept
at module level.
"""

from notesync.backend.core.config import get_app_config, resolve_project_path
from notesync.backend.core.config_schema import (
    CloudBackupSchema,
    ConnectivitySchema,
    LocalStoreSchema,
    SyncSchema,
)
from notesync.backend.core.resilience import create_circuit_breaker
from notesync.client.api_client import NotesApiClient
from notesync.client.cloud_backup import CloudBackupClient, DirectoryBlobStore, MemoryBlobStore
from notesync.client.connectivity import ConnectivityPolicy, ManualSignal, SocketSignal
from notesync.client.local_store import JsonFileBackend, LocalStore, MemoryBackend
from notesync.client.orchestrator import SyncOrchestrator


def build_local_store(config: LocalStoreSchema) -> LocalStore:
    if config.backend == "memory":
        return LocalStore(MemoryBackend(), namespace=config.namespace)
    directory = resolve_project_path(config.directory)
    return LocalStore(JsonFileBackend(directory), namespace=config.namespace)


def build_connectivity(config: ConnectivitySchema, force_offline: bool = False) -> ConnectivityPolicy:
    """A manual offline signal when forced, otherwise the configured one."""
    if force_offline:
        return ConnectivityPolicy(ManualSignal(online=False))
    if config.signal == "manual":
        return ConnectivityPolicy(ManualSignal(online=True))
    return ConnectivityPolicy(
        SocketSignal(config.probe_host, config.probe_port, timeout=config.probe_timeout)
    )


def build_cloud_backup(config: CloudBackupSchema) -> CloudBackupClient | None:
    """None when cloud backup is disabled."""
    if not config.enabled:
        return None
    if config.provider == "memory":
        store = MemoryBlobStore()
    else:
        store = DirectoryBlobStore(resolve_project_path(config.directory))
    return CloudBackupClient(
        store,
        provider=config.provider,
        namespace=config.namespace,
        retry_attempts=config.retry.max_attempts,
        backoff_multiplier=config.retry.backoff_multiplier,
        backoff_max=config.retry.backoff_max,
        breaker=create_circuit_breaker(
            "cloud_backup",
            fail_max=config.circuit_breaker.fail_max,
            timeout_duration=config.circuit_breaker.timeout_duration,
        ),
    )


def build_orchestrator(
    sync_config: SyncSchema | None = None,
    remote: NotesApiClient | None = None,
    force_offline: bool = False,
    user_id: str | None = None,
) -> SyncOrchestrator:
    """
    Assemble a SyncOrchestrator.

    Args:
        sync_config: Settings to use; sync.yaml when omitted
        remote: Backend client; built from application.yaml when omitted
        force_offline: Never attempt the network
        user_id: Signed-in user for cloud mirroring
    """
    sync_config = sync_config or get_app_config().sync
    return SyncOrchestrator(
        local_store=build_local_store(sync_config.local_store),
        remote=remote or NotesApiClient(),
        connectivity=build_connectivity(sync_config.connectivity, force_offline=force_offline),
        cloud_backup=build_cloud_backup(sync_config.cloud_backup),
        user_id=user_id,
    )
