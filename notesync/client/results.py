"""
Sync results.

Every orchestrator operation returns a SyncResult so callers can tell
where the value came from instead of inferring it from side effects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class SyncOutcome(str, Enum):
    """Provenance of an orchestrator result."""

    LIVE = "live"            # served by the backend, mirrored locally
    OFFLINE = "offline"      # connectivity said offline; local store only
    DEGRADED = "degraded"    # backend unreachable; served from the local store
    REJECTED = "rejected"    # backend or local store refused the operation


@dataclass(frozen=True)
class SyncResult(Generic[T]):
    outcome: SyncOutcome
    value: T | None = None
    reason: str | None = None
    error: Exception | None = None

    @property
    def is_live(self) -> bool:
        return self.outcome == SyncOutcome.LIVE

    @property
    def is_local(self) -> bool:
        """True when the value was produced by the local store alone."""
        return self.outcome in (SyncOutcome.OFFLINE, SyncOutcome.DEGRADED)

    @classmethod
    def live(cls, value: T) -> "SyncResult[T]":
        return cls(SyncOutcome.LIVE, value)

    @classmethod
    def offline(cls, value: T) -> "SyncResult[T]":
        return cls(SyncOutcome.OFFLINE, value, reason="offline")

    @classmethod
    def degraded(cls, value: T, reason: str) -> "SyncResult[T]":
        return cls(SyncOutcome.DEGRADED, value, reason=reason)

    @classmethod
    def rejected(cls, error: Exception) -> "SyncResult[T]":
        return cls(SyncOutcome.REJECTED, None, reason=str(error), error=error)


@dataclass(frozen=True)
class SyncStatus:
    """Snapshot of the client's sync state for display."""

    online: bool
    last_sync: datetime | None
    pending_notes: int
    pending_tags: int
    user_id: str | None

    @property
    def pending(self) -> int:
        return self.pending_notes + self.pending_tags


@dataclass
class SyncReport:
    """Outcome of pushing locally created entities to the backend."""

    pushed_notes: int = 0
    pushed_tags: int = 0
    failed: list[int] = field(default_factory=list)
    id_map: dict[int, int] = field(default_factory=dict)
    outcome: SyncOutcome = SyncOutcome.LIVE

    @property
    def complete(self) -> bool:
        return self.outcome == SyncOutcome.LIVE and not self.failed
