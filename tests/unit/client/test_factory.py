"""Unit tests for client wiring and result types."""

from unittest.mock import MagicMock

from notesync.backend.core.config_schema import (
    CloudBackupSchema,
    ConnectivitySchema,
    LocalStoreSchema,
    SyncSchema,
)
from notesync.client.cloud_backup import DirectoryBlobStore, MemoryBlobStore
from notesync.client.connectivity import ManualSignal, SocketSignal
from notesync.client.factory import (
    build_cloud_backup,
    build_connectivity,
    build_local_store,
    build_orchestrator,
)
from notesync.client.local_store import JsonFileBackend, MemoryBackend
from notesync.client.results import SyncOutcome, SyncReport, SyncResult


class TestFactory:
    """Tests for building components from settings."""

    def test_memory_local_store(self):
        store = build_local_store(LocalStoreSchema(backend="memory", namespace="t"))
        assert isinstance(store.backend, MemoryBackend)
        assert store.namespace == "t"

    def test_file_local_store_uses_absolute_directory(self, tmp_path):
        store = build_local_store(LocalStoreSchema(backend="file", directory=str(tmp_path)))
        assert isinstance(store.backend, JsonFileBackend)

    def test_forced_offline_connectivity(self):
        policy = build_connectivity(ConnectivitySchema(), force_offline=True)
        assert isinstance(policy.signal, ManualSignal)
        assert policy.is_offline() is True

    def test_socket_connectivity(self):
        policy = build_connectivity(ConnectivitySchema(probe_host="example.test", probe_port=9))
        assert isinstance(policy.signal, SocketSignal)
        assert policy.signal.port == 9

    def test_cloud_backup_disabled(self):
        assert build_cloud_backup(CloudBackupSchema(enabled=False)) is None

    def test_cloud_backup_providers(self, tmp_path):
        memory = build_cloud_backup(CloudBackupSchema(enabled=True, provider="memory"))
        directory = build_cloud_backup(
            CloudBackupSchema(enabled=True, provider="local", directory=str(tmp_path))
        )
        assert isinstance(memory.store, MemoryBlobStore)
        assert isinstance(directory.store, DirectoryBlobStore)
        assert directory.blob_key("u", "notes") == "local/notesync/u/notes"

    def test_orchestrator_from_settings(self):
        config = SyncSchema(
            local_store=LocalStoreSchema(backend="memory"),
            connectivity=ConnectivitySchema(signal="manual"),
        )
        remote = MagicMock()

        orchestrator = build_orchestrator(config, remote=remote, user_id="alice")

        assert orchestrator.remote is remote
        assert orchestrator.user_id == "alice"
        assert orchestrator.cloud_backup is None
        assert orchestrator.connectivity.is_offline() is False


class TestResults:
    """Tests for result value objects."""

    def test_constructors(self):
        assert SyncResult.live(1).is_live
        assert SyncResult.offline(1).reason == "offline"
        assert SyncResult.degraded(1, "timeout").is_local
        rejected = SyncResult.rejected(ValueError("no"))
        assert rejected.outcome is SyncOutcome.REJECTED
        assert rejected.reason == "no"
        assert not rejected.is_local

    def test_report_complete(self):
        report = SyncReport()
        assert report.complete
        report.failed.append(-3)
        assert not report.complete
