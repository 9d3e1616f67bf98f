"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Test Database Configuration:
    Every test that needs the authoritative store gets its own in-memory
    SQLite Database, so tests never see each other's rows.
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest

from notesync.backend.core.database import Database
from notesync.backend.schemas.note import NoteResponse, NoteWithTags
from notesync.backend.schemas.tag import TagResponse
from notesync.client.connectivity import ConnectivityPolicy, ManualSignal
from notesync.client.local_store import LocalStore, MemoryBackend

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """
    Fresh in-memory database with all tables created.

    Usage:
        async def test_something(database: Database):
            async with database.session() as session:
                ...
    """
    db = Database(TEST_DATABASE_URL)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def db_session(database: Database):
    """A committed-on-exit session on the per-test database."""
    async with database.session() as session:
        yield session


# =============================================================================
# Offline Client Fixtures
# =============================================================================


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def local_store(memory_backend: MemoryBackend) -> LocalStore:
    """Empty local store over an in-memory backend."""
    return LocalStore(memory_backend)


@pytest.fixture
def signal() -> ManualSignal:
    """Connectivity signal that starts online."""
    return ManualSignal(online=True)


@pytest.fixture
def connectivity(signal: ManualSignal) -> ConnectivityPolicy:
    return ConnectivityPolicy(signal)


# =============================================================================
# Record Builders
# =============================================================================


def _make_note(note_id: int, title: str = "Note", content: str = "", **fields) -> NoteResponse:
    """Build a NoteResponse with fixed timestamps."""
    timestamp = fields.pop("updated_at", datetime(2024, 1, 1, 12, 0, 0))
    return NoteResponse(
        id=note_id,
        title=title,
        content=content,
        created_at=fields.pop("created_at", timestamp),
        updated_at=timestamp,
        **fields,
    )


def _make_tag(tag_id: int, name: str, color: str = "#3B82F6", **fields) -> TagResponse:
    return TagResponse(id=tag_id, name=name, color=color, **fields)


def _make_view(
    note_id: int,
    title: str = "Note",
    tags: list[TagResponse] | None = None,
    **fields,
) -> NoteWithTags:
    """Build a NoteWithTags as the backend would return it."""
    note = _make_note(note_id, title, **fields)
    return NoteWithTags(**note.model_dump(), tags=tags or [])


@pytest.fixture
def make_note():
    """Builder for stored notes: make_note(id, title, content, **fields)."""
    return _make_note


@pytest.fixture
def make_tag():
    """Builder for tags: make_tag(id, name, color)."""
    return _make_tag


@pytest.fixture
def make_view():
    """Builder for NoteWithTags views: make_view(id, title, tags, **fields)."""
    return _make_view


@pytest.fixture
def anyio_backend() -> str:
    """Specify the async backend for anyio."""
    return "asyncio"
