"""
Offline client.

Local store, remote API client, cloud backup, connectivity policy and the
sync orchestrator that ties them together.
"""

from notesync.client.api_client import NotesApiClient
from notesync.client.autosave import AutoSaver
from notesync.client.cloud_backup import CloudBackupClient, SnapshotKind
from notesync.client.connectivity import ConnectivityPolicy, ManualSignal, SocketSignal
from notesync.client.local_store import JsonFileBackend, LocalStore, MemoryBackend
from notesync.client.orchestrator import SyncOrchestrator
from notesync.client.results import SyncOutcome, SyncReport, SyncResult, SyncStatus

__all__ = [
    "AutoSaver",
    "CloudBackupClient",
    "ConnectivityPolicy",
    "JsonFileBackend",
    "LocalStore",
    "ManualSignal",
    "MemoryBackend",
    "NotesApiClient",
    "SnapshotKind",
    "SocketSignal",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncReport",
    "SyncResult",
    "SyncStatus",
]
