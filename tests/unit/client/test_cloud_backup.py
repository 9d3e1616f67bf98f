"""
Unit Tests for the Cloud Backup Client.

Blob addressing, snapshot round trips, retry/breaker behavior and the
best-effort mirror.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from notesync.backend.core.exceptions import CloudBackupError
from notesync.backend.core.resilience import create_circuit_breaker
from notesync.client.cloud_backup import (
    CloudBackupClient,
    DirectoryBlobStore,
    MemoryBlobStore,
    SnapshotKind,
)


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def backup(blob_store) -> CloudBackupClient:
    """Client with a single attempt so failures surface immediately."""
    return CloudBackupClient(
        blob_store,
        provider="local",
        namespace="notesync",
        retry_attempts=1,
        breaker=create_circuit_breaker("cloud_backup_test", fail_max=50),
    )


class TestAddressing:
    """Tests for blob keys."""

    def test_blob_key_layout(self, backup):
        assert backup.blob_key("alice", SnapshotKind.NOTES) == "local/notesync/alice/notes"
        assert backup.blob_key("alice", SnapshotKind.TAGS) == "local/notesync/alice/tags"


class TestSnapshots:
    """Tests for push and pull."""

    @pytest.mark.asyncio
    async def test_push_writes_full_array(self, backup, blob_store, make_tag):
        await backup.push_snapshot("alice", SnapshotKind.TAGS, [make_tag(1, "Work"), make_tag(2, "Home")])

        payload = json.loads(blob_store.blobs["local/notesync/alice/tags"])
        assert [item["name"] for item in payload] == ["Work", "Home"]
        assert "clientRef" in payload[0]

    @pytest.mark.asyncio
    async def test_push_overwrites_previous_snapshot(self, backup, blob_store, make_tag):
        await backup.push_snapshot("alice", SnapshotKind.TAGS, [make_tag(1, "Work")])
        await backup.push_snapshot("alice", SnapshotKind.TAGS, [])

        assert json.loads(blob_store.blobs["local/notesync/alice/tags"]) == []

    @pytest.mark.asyncio
    async def test_pull_returns_items(self, backup, make_view):
        await backup.push_snapshot("bob", SnapshotKind.NOTES, [make_view(3, "Trip")])

        items = await backup.pull_snapshot("bob", SnapshotKind.NOTES)

        assert items[0]["id"] == 3
        assert items[0]["title"] == "Trip"

    @pytest.mark.asyncio
    async def test_pull_absent_returns_none(self, backup):
        assert await backup.pull_snapshot("nobody", SnapshotKind.NOTES) is None

    @pytest.mark.asyncio
    async def test_pull_invalid_json_raises(self, backup, blob_store):
        blob_store.blobs["local/notesync/alice/notes"] = b"{broken"
        with pytest.raises(CloudBackupError):
            await backup.pull_snapshot("alice", SnapshotKind.NOTES)

    @pytest.mark.asyncio
    async def test_pull_non_array_raises(self, backup, blob_store):
        blob_store.blobs["local/notesync/alice/notes"] = b'{"id": 1}'
        with pytest.raises(CloudBackupError):
            await backup.pull_snapshot("alice", SnapshotKind.NOTES)

    @pytest.mark.asyncio
    async def test_directory_store_round_trip(self, tmp_path, make_tag):
        client = CloudBackupClient(DirectoryBlobStore(tmp_path), retry_attempts=1)

        await client.push_snapshot("carol", SnapshotKind.TAGS, [make_tag(1, "Work")])

        assert (tmp_path / "local" / "notesync" / "carol" / "tags.json").exists()
        items = await client.pull_snapshot("carol", SnapshotKind.TAGS)
        assert items[0]["name"] == "Work"


class TestResilience:
    """Tests for retry and failure mapping."""

    @pytest.mark.asyncio
    async def test_retries_transient_io_errors(self, blob_store):
        """An OSError followed by success should be retried."""
        client = CloudBackupClient(
            blob_store,
            retry_attempts=3,
            backoff_multiplier=0,
            backoff_max=0,
            breaker=create_circuit_breaker("cloud_backup_retry", fail_max=50),
        )
        blob_store.write = AsyncMock(side_effect=[OSError("reset"), None])

        await client.push_snapshot("alice", SnapshotKind.TAGS, [])

        assert blob_store.write.await_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises_backup_error(self, backup, blob_store):
        blob_store.write = AsyncMock(side_effect=OSError("disk full"))

        with pytest.raises(CloudBackupError):
            await backup.push_snapshot("alice", SnapshotKind.TAGS, [])

    @pytest.mark.asyncio
    async def test_provider_error_raises_backup_error(self, backup, blob_store):
        """Errors that are not OSError should still surface as CloudBackupError."""
        blob_store.write = AsyncMock(side_effect=RuntimeError("provider 403"))

        with pytest.raises(CloudBackupError, match="RuntimeError: provider 403"):
            await backup.push_snapshot("alice", SnapshotKind.TAGS, [])

    @pytest.mark.asyncio
    async def test_provider_error_is_not_retried(self, blob_store):
        client = CloudBackupClient(
            blob_store,
            retry_attempts=3,
            backoff_multiplier=0,
            backoff_max=0,
            breaker=create_circuit_breaker("cloud_backup_provider", fail_max=50),
        )
        blob_store.read = AsyncMock(side_effect=ValueError("bad token"))

        with pytest.raises(CloudBackupError):
            await client.pull_snapshot("alice", SnapshotKind.NOTES)

        assert blob_store.read.await_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_raises_backup_error(self, blob_store):
        """Once the breaker opens, calls should fail fast as CloudBackupError."""
        client = CloudBackupClient(
            blob_store,
            retry_attempts=1,
            breaker=create_circuit_breaker("cloud_backup_open", fail_max=1, timeout_duration=60),
        )
        blob_store.write = AsyncMock(side_effect=OSError("down"))

        for _ in range(3):
            with pytest.raises(CloudBackupError):
                await client.push_snapshot("alice", SnapshotKind.TAGS, [])


class TestMirror:
    """Tests for the best-effort wrapper."""

    @pytest.mark.asyncio
    async def test_mirror_success(self, backup, blob_store):
        assert await backup.mirror("alice", SnapshotKind.TAGS, []) is True
        assert "local/notesync/alice/tags" in blob_store.blobs

    @pytest.mark.asyncio
    async def test_mirror_swallows_failures(self, backup, blob_store):
        """A failing mirror should log and return False, never raise."""
        blob_store.write = AsyncMock(side_effect=OSError("offline"))

        with patch("notesync.client.cloud_backup.logger") as mock_logger:
            assert await backup.mirror("alice", SnapshotKind.NOTES, []) is False
            mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_mirror_swallows_provider_errors(self, backup, blob_store):
        blob_store.write = AsyncMock(side_effect=RuntimeError("provider 403"))

        assert await backup.mirror("alice", SnapshotKind.NOTES, []) is False
