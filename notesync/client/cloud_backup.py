"""
Cloud Backup Client.

Best-effort mirror of a signed-in user's full note or tag snapshot into a
blob store. Blobs are addressed as

    {provider}/{namespace}/{user_id}/{kind}

and hold the complete JSON array for that kind. Nothing here is
authoritative: snapshots are only pushed after the backend accepted a
write, and mirror() never lets a failure reach the caller.

Calls run through the standard resilience stack:
    Circuit Breaker (aiobreaker) → Retry (tenacity) → Blob store
"""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import aiobreaker
from pydantic_core import PydanticSerializationError, from_json, to_json

from notesync.backend.core.exceptions import CloudBackupError
from notesync.backend.core.logging import get_logger, log_with_source
from notesync.backend.core.resilience import (
    RetryPolicy,
    call_with_resilience,
    create_circuit_breaker,
)

logger = get_logger(__name__)


class SnapshotKind(str, Enum):
    """Kinds of snapshot kept per user."""

    NOTES = "notes"
    TAGS = "tags"


class BlobStore(Protocol):
    """Async blob persistence used by CloudBackupClient."""

    async def write(self, key: str, payload: bytes) -> None: ...

    async def read(self, key: str) -> bytes | None: ...


class MemoryBlobStore:
    """Blob store kept in a dict. Stands in for a provider in tests and demos."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    async def write(self, key: str, payload: bytes) -> None:
        self.blobs[key] = payload

    async def read(self, key: str) -> bytes | None:
        return self.blobs.get(key)


class DirectoryBlobStore:
    """Blob store on the local filesystem, one file per key under root."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def _write_sync(self, key: str, payload: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_bytes(payload)
        tmp_path.replace(path)

    def _read_sync(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    async def write(self, key: str, payload: bytes) -> None:
        await asyncio.to_thread(self._write_sync, key, payload)

    async def read(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self._read_sync, key)


class CloudBackupClient:
    """
    Push and pull per-user snapshots.

    Args:
        store: Blob store to write to
        provider: Provider segment of the blob address
        namespace: Namespace segment of the blob address
        retry_attempts: Total attempts per call (1 disables retry)
        backoff_multiplier: tenacity exponential backoff multiplier
        backoff_max: Upper bound of a single backoff wait, in seconds
        breaker: Circuit breaker; one is created when omitted
    """

    def __init__(
        self,
        store: BlobStore,
        provider: str = "local",
        namespace: str = "notesync",
        retry_attempts: int = 3,
        backoff_multiplier: float = 0.5,
        backoff_max: float = 4,
        breaker: aiobreaker.CircuitBreaker | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.namespace = namespace
        self.retry = RetryPolicy(
            attempts=retry_attempts,
            backoff_multiplier=backoff_multiplier,
            backoff_max=backoff_max,
        )
        self.breaker = breaker or create_circuit_breaker("cloud_backup")

    def blob_key(self, user_id: str, kind: SnapshotKind) -> str:
        return f"{self.provider}/{self.namespace}/{user_id}/{SnapshotKind(kind).value}"

    async def _call(self, operation: Any, *args: Any) -> Any:
        try:
            return await call_with_resilience(self.breaker, self.retry, operation, *args)
        except aiobreaker.CircuitBreakerError as e:
            raise CloudBackupError("Cloud backup circuit is open") from e
        except OSError as e:
            raise CloudBackupError(f"Cloud backup I/O failed: {e}") from e
        except Exception as e:
            # Provider SDKs raise their own types; callers only see CloudBackupError.
            raise CloudBackupError(f"Cloud backup failed: {type(e).__name__}: {e}") from e

    async def push_snapshot(self, user_id: str, kind: SnapshotKind, items: list[Any]) -> None:
        """
        Overwrite the user's snapshot of the given kind.

        Raises:
            CloudBackupError: If the blob could not be written
        """
        key = self.blob_key(user_id, kind)
        try:
            payload = to_json(items, by_alias=True)
        except PydanticSerializationError as e:
            raise CloudBackupError(f"Snapshot {key} could not be serialized") from e
        await self._call(self.store.write, key, payload)
        log_with_source(
            logger,
            "backup",
            "debug",
            "Snapshot pushed",
            key=key,
            items=len(items),
        )

    async def pull_snapshot(self, user_id: str, kind: SnapshotKind) -> list[dict[str, Any]] | None:
        """
        Read the user's snapshot of the given kind.

        Returns:
            The stored items, or None when no snapshot exists

        Raises:
            CloudBackupError: If the blob could not be read or parsed
        """
        key = self.blob_key(user_id, kind)
        payload = await self._call(self.store.read, key)
        if payload is None:
            return None
        try:
            items = from_json(payload)
        except ValueError as e:
            raise CloudBackupError(f"Snapshot {key} is not valid JSON") from e
        if not isinstance(items, list):
            raise CloudBackupError(f"Snapshot {key} is not a JSON array")
        return items

    async def mirror(self, user_id: str, kind: SnapshotKind, items: list[Any]) -> bool:
        """
        Best-effort push_snapshot. Failures are logged and swallowed.

        Returns:
            True if the snapshot was written
        """
        try:
            await self.push_snapshot(user_id, kind, items)
        except CloudBackupError as e:
            log_with_source(
                logger,
                "backup",
                "warning",
                "Snapshot mirror failed",
                user_id=user_id,
                kind=SnapshotKind(kind).value,
                error=e.message,
            )
            return False
        return True
