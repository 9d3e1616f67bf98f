"""
Local Store.

Durable, synchronous, client-local copy of notes, tags and note-tag
relations, plus the last successful sync time.

Data lives in four independent keys of a key-value backend:

    {namespace}_offline_notes       JSON array of notes (camelCase)
    {namespace}_offline_tags        JSON array of tags
    {namespace}_offline_note_tags   JSON array of {noteId, tagId}
    {namespace}_last_sync           ISO-8601 timestamp

A missing or corrupt key reads as an empty collection; it is logged and
overwritten on the next write. Every operation leaves relations pointing
only at notes and tags that exist.

Usage:
    store = LocalStore(JsonFileBackend("data/local_store"))
    store.save_tag(TagResponse(id=1, name="Work"))
    store.save_note(note)
    store.add_note_tag_relation(note.id, 1)
    store.search_local("work")
"""

import os
import random
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from notesync.backend.core.exceptions import LocalStoreInconsistencyError
from notesync.backend.core.logging import get_logger
from notesync.backend.core.utils import utc_now
from notesync.backend.schemas.base import CamelModel
from notesync.backend.schemas.note import NoteResponse, NoteWithTags
from notesync.backend.schemas.tag import TagResponse

logger = get_logger(__name__)

NOTES_KEY = "offline_notes"
TAGS_KEY = "offline_tags"
NOTE_TAGS_KEY = "offline_note_tags"
LAST_SYNC_KEY = "last_sync"

PLACEHOLDER_ID_RANGE = 10_000_000


class NoteTagPair(CamelModel):
    """Stored relation row."""

    note_id: int
    tag_id: int


_NOTES = TypeAdapter(list[NoteResponse])
_TAGS = TypeAdapter(list[TagResponse])
_PAIRS = TypeAdapter(list[NoteTagPair])
_TIMESTAMP = TypeAdapter(datetime)


# =============================================================================
# Key-value backends
# =============================================================================


class KeyValueBackend(Protocol):
    """Minimal string key-value persistence used by LocalStore."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryBackend:
    """Process-local backend for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileBackend:
    """
    One JSON file per key inside a directory.

    Writes go to a temporary file first and are moved into place with
    os.replace, so a crash never leaves a half-written key behind.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# =============================================================================
# Local store
# =============================================================================


def _plain_note(note: NoteResponse) -> NoteResponse:
    if isinstance(note, NoteWithTags):
        return note.as_note()
    return note


def _sort_notes(notes: list[NoteResponse]) -> list[NoteResponse]:
    return sorted(notes, key=lambda n: (n.updated_at, n.id), reverse=True)


class LocalStore:
    """
    Client-local cache of notes, tags and relations.

    All methods are synchronous and complete without suspension. Writes
    are whole-collection rewrites of the affected key, so each call is
    atomic with respect to the store's own consistency.
    """

    def __init__(
        self,
        backend: KeyValueBackend | None = None,
        namespace: str = "notes_master",
    ) -> None:
        self.backend = backend if backend is not None else MemoryBackend()
        self.namespace = namespace

    # -------------------------------------------------------------------------
    # Raw collections
    # -------------------------------------------------------------------------

    def _key(self, name: str) -> str:
        return f"{self.namespace}_{name}"

    def _load(self, name: str, adapter: TypeAdapter) -> list:
        raw = self.backend.read(self._key(name))
        if raw is None:
            return []
        try:
            return adapter.validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            logger.warning(
                "Discarding unreadable local data",
                extra={"key": self._key(name), "error": str(e)[:200]},
            )
            return []

    def _dump(self, name: str, adapter: TypeAdapter, items: list) -> None:
        self.backend.write(self._key(name), adapter.dump_json(items, by_alias=True).decode())

    def _notes(self) -> list[NoteResponse]:
        return self._load(NOTES_KEY, _NOTES)

    def _tags(self) -> list[TagResponse]:
        return self._load(TAGS_KEY, _TAGS)

    def _pairs(self) -> list[NoteTagPair]:
        return self._load(NOTE_TAGS_KEY, _PAIRS)

    def _write_notes(self, notes: list[NoteResponse]) -> None:
        self._dump(NOTES_KEY, _NOTES, notes)

    def _write_tags(self, tags: list[TagResponse]) -> None:
        self._dump(TAGS_KEY, _TAGS, tags)

    def _write_pairs(self, pairs: list[NoteTagPair]) -> None:
        self._dump(NOTE_TAGS_KEY, _PAIRS, pairs)

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    def get_notes(self, include_deleted: bool = False) -> list[NoteResponse]:
        """Notes, most recently updated first. Trash excluded unless asked for."""
        notes = self._notes()
        if not include_deleted:
            notes = [note for note in notes if not note.is_deleted]
        return _sort_notes(notes)

    def get_note(self, note_id: int) -> NoteResponse | None:
        return next((note for note in self._notes() if note.id == note_id), None)

    def get_note_with_tags(self, note_id: int) -> NoteWithTags | None:
        note = self.get_note(note_id)
        if note is None:
            return None
        return NoteWithTags(**note.model_dump(), tags=self.get_tags_for_note(note_id))

    def get_all_notes_with_tags(self, include_deleted: bool = False) -> list[NoteWithTags]:
        """Every note with its tags resolved from the relation rows."""
        tags_by_id = {tag.id: tag for tag in self._tags()}
        pairs = self._pairs()
        views = []
        for note in self.get_notes(include_deleted=include_deleted):
            tags = [
                tags_by_id[pair.tag_id]
                for pair in pairs
                if pair.note_id == note.id and pair.tag_id in tags_by_id
            ]
            views.append(NoteWithTags(**note.model_dump(), tags=tags))
        return views

    def save_note(self, note: NoteResponse) -> NoteResponse:
        """
        Upsert keyed by id. New ids are appended, existing ones replaced
        in place. Fields are never merged: the stored record is the given one.
        """
        note = _plain_note(note)
        notes = self._notes()
        for index, existing in enumerate(notes):
            if existing.id == note.id:
                notes[index] = note
                break
        else:
            notes.append(note)
        self._write_notes(notes)
        return note

    def delete_note(self, note_id: int) -> bool:
        """
        Remove a note and its relations.

        Normal deletion is a soft delete through save_note(is_deleted=True);
        this is for hard cleanup (e.g. replaced placeholders).
        """
        notes = self._notes()
        remaining = [note for note in notes if note.id != note_id]
        if len(remaining) == len(notes):
            return False
        self._write_pairs([pair for pair in self._pairs() if pair.note_id != note_id])
        self._write_notes(remaining)
        return True

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def get_tags(self) -> list[TagResponse]:
        """All tags ordered by name."""
        return sorted(self._tags(), key=lambda tag: (tag.name.lower(), tag.id))

    def get_tag(self, tag_id: int) -> TagResponse | None:
        return next((tag for tag in self._tags() if tag.id == tag_id), None)

    def get_tags_for_note(self, note_id: int) -> list[TagResponse]:
        """Tags of a note in the order they were attached."""
        tags_by_id = {tag.id: tag for tag in self._tags()}
        return [
            tags_by_id[pair.tag_id]
            for pair in self._pairs()
            if pair.note_id == note_id and pair.tag_id in tags_by_id
        ]

    def save_tag(self, tag: TagResponse) -> TagResponse:
        """
        Upsert keyed by id.

        When the tag carries a client_ref held by a placeholder under another
        id, the placeholder is replaced and its relations move to the new id.
        """
        tags = self._tags()
        if tag.client_ref:
            placeholders = [t for t in tags if t.client_ref == tag.client_ref and t.id != tag.id]
            for placeholder in placeholders:
                self._move_tag_relations(placeholder.id, tag.id)
                tags = [t for t in tags if t.id != placeholder.id]
                logger.debug(
                    "Placeholder tag reconciled",
                    extra={"placeholder_id": placeholder.id, "tag_id": tag.id},
                )

        for index, existing in enumerate(tags):
            if existing.id == tag.id:
                tags[index] = tag
                break
        else:
            tags.append(tag)
        self._write_tags(tags)
        return tag

    def delete_tag(self, tag_id: int) -> bool:
        """Remove a tag and every relation referencing it."""
        tags = self._tags()
        remaining = [tag for tag in tags if tag.id != tag_id]
        self._write_pairs([pair for pair in self._pairs() if pair.tag_id != tag_id])
        if len(remaining) == len(tags):
            return False
        self._write_tags(remaining)
        return True

    def _move_tag_relations(self, old_id: int, new_id: int) -> None:
        moved: list[NoteTagPair] = []
        seen: set[tuple[int, int]] = set()
        for pair in self._pairs():
            if pair.tag_id == old_id:
                pair = NoteTagPair(note_id=pair.note_id, tag_id=new_id)
            if (pair.note_id, pair.tag_id) not in seen:
                seen.add((pair.note_id, pair.tag_id))
                moved.append(pair)
        self._write_pairs(moved)

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    def _require(self, note_id: int, tag_ids: list[int]) -> None:
        if self.get_note(note_id) is None:
            raise LocalStoreInconsistencyError(f"Note {note_id} is not in the local store")
        known = {tag.id for tag in self._tags()}
        missing = [tag_id for tag_id in tag_ids if tag_id not in known]
        if missing:
            raise LocalStoreInconsistencyError(f"Tags {missing} are not in the local store")

    def add_note_tag_relation(self, note_id: int, tag_id: int) -> bool:
        """
        Attach a tag. Adding an existing pair is a no-op (returns False).

        Raises:
            LocalStoreInconsistencyError: If the note or the tag is missing
        """
        self._require(note_id, [tag_id])
        pairs = self._pairs()
        if any(pair.note_id == note_id and pair.tag_id == tag_id for pair in pairs):
            return False
        pairs.append(NoteTagPair(note_id=note_id, tag_id=tag_id))
        self._write_pairs(pairs)
        return True

    def remove_note_tag_relation(self, note_id: int, tag_id: int) -> bool:
        """Detach a tag. Removing a missing pair is a no-op (returns False)."""
        pairs = self._pairs()
        remaining = [
            pair for pair in pairs
            if not (pair.note_id == note_id and pair.tag_id == tag_id)
        ]
        if len(remaining) == len(pairs):
            return False
        self._write_pairs(remaining)
        return True

    def set_note_tags(self, note_id: int, tag_ids: list[int]) -> None:
        """
        Replace the tag set of a note.

        Raises:
            LocalStoreInconsistencyError: If the note or any tag is missing
        """
        wanted = list(dict.fromkeys(tag_ids))
        self._require(note_id, wanted)
        pairs = [pair for pair in self._pairs() if pair.note_id != note_id]
        pairs.extend(NoteTagPair(note_id=note_id, tag_id=tag_id) for tag_id in wanted)
        self._write_pairs(pairs)

    # -------------------------------------------------------------------------
    # Write-through of server views
    # -------------------------------------------------------------------------

    def save_note_with_tags(self, view: NoteWithTags) -> NoteWithTags:
        """
        Store a note exactly as the server returned it, tags included.

        Tags in the view are upserted, the note's relation set is replaced
        by the view's, and a placeholder with the same client_ref under a
        different id is removed so no duplicate of the note survives.
        """
        for tag in view.tags:
            self.save_tag(tag)

        if view.client_ref:
            for placeholder in self._notes():
                if placeholder.client_ref == view.client_ref and placeholder.id != view.id:
                    self.delete_note(placeholder.id)
                    logger.debug(
                        "Placeholder note reconciled",
                        extra={"placeholder_id": placeholder.id, "note_id": view.id},
                    )

        self.save_note(view)
        self.set_note_tags(view.id, [tag.id for tag in view.tags])
        return self.get_note_with_tags(view.id)

    def reconcile_placeholder(
        self,
        placeholder_id: int,
        record: NoteWithTags | TagResponse,
    ) -> NoteWithTags | TagResponse:
        """
        Replace a placeholder row with the server record for the same entity.

        For tags, relations of the placeholder move to the server id. For
        notes, the server view's tag set wins. The placeholder row is removed
        even when the record carries no client_ref.
        """
        if isinstance(record, NoteWithTags):
            if placeholder_id != record.id:
                self.delete_note(placeholder_id)
            return self.save_note_with_tags(record)

        if placeholder_id != record.id and self.get_tag(placeholder_id) is not None:
            self._move_tag_relations(placeholder_id, record.id)
            self._write_tags([tag for tag in self._tags() if tag.id != placeholder_id])
        return self.save_tag(record)

    def placeholder_notes(self) -> list[NoteWithTags]:
        """Notes created locally that the server has not confirmed yet."""
        return [
            note for note in self.get_all_notes_with_tags(include_deleted=True)
            if note.id < 0
        ]

    def placeholder_tags(self) -> list[TagResponse]:
        return [tag for tag in self._tags() if tag.id < 0]

    def next_placeholder_id(self) -> int:
        """A random negative id not used by any local note or tag."""
        taken = {note.id for note in self._notes()} | {tag.id for tag in self._tags()}
        while True:
            candidate = -random.randint(1, PLACEHOLDER_ID_RANGE)
            if candidate not in taken:
                return candidate

    # -------------------------------------------------------------------------
    # Search and metadata
    # -------------------------------------------------------------------------

    def search_local(self, query: str) -> list[NoteWithTags]:
        """
        Case-insensitive substring search over title, content and tag names.

        Deleted notes are excluded. A blank query returns every
        non-deleted note.
        """
        needle = query.strip().lower()
        notes = self.get_all_notes_with_tags()
        if not needle:
            return notes
        return [
            note for note in notes
            if needle in note.title.lower()
            or needle in note.content.lower()
            or any(needle in tag.name.lower() for tag in note.tags)
        ]

    def get_last_sync(self) -> datetime | None:
        raw = self.backend.read(self._key(LAST_SYNC_KEY))
        if raw is None:
            return None
        try:
            return _TIMESTAMP.validate_json(raw)
        except (PydanticValidationError, ValueError):
            logger.warning("Discarding unreadable last sync time", extra={"value": raw[:64]})
            return None

    def set_last_sync(self, timestamp: datetime | None = None) -> datetime:
        timestamp = timestamp or utc_now()
        self.backend.write(self._key(LAST_SYNC_KEY), _TIMESTAMP.dump_json(timestamp).decode())
        return timestamp

    def clear(self) -> None:
        """Drop every key of this namespace."""
        for name in (NOTES_KEY, TAGS_KEY, NOTE_TAGS_KEY, LAST_SYNC_KEY):
            self.backend.remove(self._key(name))
