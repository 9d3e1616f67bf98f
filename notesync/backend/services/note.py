"""
Note Service.

Business logic layer for notes and their tag relations. Orchestrates
repositories, handles validation, and implements business rules.
Every method returns NoteWithTags views (tags resolved on each read).
"""

from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from notesync.backend.core.exceptions import ValidationError
from notesync.backend.core.markup import render_export
from notesync.backend.core.utils import utc_now
from notesync.backend.models.note import Note, Tag
from notesync.backend.repositories.note import NoteRepository
from notesync.backend.repositories.tag import NoteTagRepository, TagRepository
from notesync.backend.schemas.export import ExportDocument, ExportFormat
from notesync.backend.schemas.note import NoteCreate, NoteUpdate, NoteWithTags
from notesync.backend.schemas.tag import TagResponse
from notesync.backend.services.base import BaseService


def to_note_with_tags(note: Note, tags: Iterable[Tag]) -> NoteWithTags:
    """Build the NoteWithTags view of an ORM note."""
    return NoteWithTags.model_validate(note).model_copy(
        update={"tags": [TagResponse.model_validate(tag) for tag in tags]},
    )


class NoteService(BaseService):
    """
    Service for note business logic.

    Notes are soft-deleted (is_deleted) and never removed by normal flows.
    updated_at is refreshed on every mutation, including tag changes.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = NoteRepository(session)
        self.tag_repo = TagRepository(session)
        self.relations = NoteTagRepository(session)

    async def _view(self, note: Note) -> NoteWithTags:
        return to_note_with_tags(note, await self.relations.tags_for_note(note.id))

    async def _views(self, notes: list[Note]) -> list[NoteWithTags]:
        tags_by_note = await self.relations.tags_for_notes(note.id for note in notes)
        return [to_note_with_tags(note, tags_by_note.get(note.id, [])) for note in notes]

    async def _require_tags(self, tag_ids: Iterable[int]) -> None:
        wanted = set(tag_ids)
        missing = wanted - await self.tag_repo.existing_ids(wanted)
        if missing:
            raise ValidationError(
                "Unknown tag ids",
                details={"missing_tag_ids": sorted(missing)},
            )

    async def _touch(self, note_id: int) -> Note:
        return await self.repo.update(note_id, updated_at=utc_now())

    async def list_notes(self, include_deleted: bool = False) -> list[NoteWithTags]:
        """
        List notes with their tags.

        Args:
            include_deleted: Whether to include notes in the trash
        """
        return await self._views(await self.repo.list_notes(include_deleted=include_deleted))

    async def get_note(self, note_id: int) -> NoteWithTags:
        """
        Get a note by ID.

        Raises:
            NotFoundError: If note not found
        """
        return await self._view(await self.repo.get_by_id(note_id))

    async def search_notes(self, query: str) -> list[NoteWithTags]:
        """Search title and content. Tag names are not searched server-side."""
        self._log_debug("Searching notes", query=query)
        return await self._views(await self.repo.search(query))

    async def create_note(self, data: NoteCreate) -> NoteWithTags:
        """
        Create a new note, optionally with tags.

        A request repeating a client_ref that is already stored returns the
        existing note, so an offline client can safely retry its creates.

        Raises:
            ValidationError: If tag_ids references unknown tags
        """
        if data.client_ref:
            existing = await self.repo.get_by_client_ref(data.client_ref)
            if existing is not None:
                self._log_operation(
                    "Create replayed for known client_ref",
                    note_id=existing.id,
                    client_ref=data.client_ref,
                )
                return await self._view(existing)

        tag_ids = list(dict.fromkeys(data.tag_ids or []))
        await self._require_tags(tag_ids)

        self._log_operation("Creating note", title=data.title, tag_count=len(tag_ids))

        note = await self._execute_db_operation(
            "create_note",
            self.repo.create(
                title=data.title,
                content=data.content,
                is_favorite=data.is_favorite,
                is_deleted=data.is_deleted,
                client_ref=data.client_ref,
            ),
        )
        for tag_id in tag_ids:
            await self.relations.add(note.id, tag_id)

        self._log_debug("Note created", note_id=note.id)
        return await self._view(note)

    async def update_note(self, note_id: int, data: NoteUpdate) -> NoteWithTags:
        """
        Apply a partial update.

        Fields absent from the request (or sent as null) are left alone.
        When tag_ids is present, relations are diffed: missing ones are
        added, extra ones removed.

        Raises:
            NotFoundError: If note not found
            ValidationError: If tag_ids references unknown tags
        """
        await self.repo.get_by_id(note_id)

        fields = {
            key: value
            for key, value in data.model_dump(exclude_unset=True, exclude={"tag_ids"}).items()
            if value is not None
        }

        if data.tag_ids is not None:
            wanted = set(data.tag_ids)
            await self._require_tags(wanted)
            current = await self.relations.tag_ids_for_note(note_id)
            for tag_id in wanted - current:
                await self.relations.add(note_id, tag_id)
            for tag_id in current - wanted:
                await self.relations.remove(note_id, tag_id)
            fields_changed = sorted(fields) + ["tag_ids"]
        else:
            fields_changed = sorted(fields)

        self._log_operation("Updating note", note_id=note_id, fields=fields_changed)

        note = await self._execute_db_operation(
            "update_note",
            self.repo.update(note_id, **fields, updated_at=utc_now()),
        )
        return await self._view(note)

    async def delete_note(self, note_id: int) -> NoteWithTags:
        """Move a note to the trash (soft delete)."""
        self._log_operation("Deleting note", note_id=note_id)
        note = await self.repo.update(note_id, is_deleted=True, updated_at=utc_now())
        return await self._view(note)

    async def restore_note(self, note_id: int) -> NoteWithTags:
        """Take a note out of the trash."""
        self._log_operation("Restoring note", note_id=note_id)
        note = await self.repo.update(note_id, is_deleted=False, updated_at=utc_now())
        return await self._view(note)

    async def toggle_favorite(self, note_id: int) -> NoteWithTags:
        """Flip the favorite flag."""
        note = await self.repo.get_by_id(note_id)
        self._log_operation("Toggling favorite", note_id=note_id, is_favorite=not note.is_favorite)
        note = await self.repo.update(
            note_id,
            is_favorite=not note.is_favorite,
            updated_at=utc_now(),
        )
        return await self._view(note)

    async def tags_for_note(self, note_id: int) -> list[TagResponse]:
        """
        Tags attached to a note.

        Raises:
            NotFoundError: If note not found
        """
        await self.repo.get_by_id(note_id)
        return [TagResponse.model_validate(tag) for tag in await self.relations.tags_for_note(note_id)]

    async def add_tag(self, note_id: int, tag_id: int) -> list[TagResponse]:
        """
        Attach a tag to a note. Adding an existing pair is a no-op.

        Raises:
            NotFoundError: If the note or the tag does not exist
        """
        await self.repo.get_by_id(note_id)
        await self.tag_repo.get_by_id(tag_id)

        if await self.relations.add(note_id, tag_id):
            self._log_operation("Tag attached", note_id=note_id, tag_id=tag_id)
            await self._touch(note_id)
        return await self.tags_for_note(note_id)

    async def remove_tag(self, note_id: int, tag_id: int) -> list[TagResponse]:
        """
        Detach a tag from a note. Removing a missing pair is a no-op.

        Raises:
            NotFoundError: If the note does not exist
        """
        await self.repo.get_by_id(note_id)

        if await self.relations.remove(note_id, tag_id):
            self._log_operation("Tag detached", note_id=note_id, tag_id=tag_id)
            await self._touch(note_id)
        return await self.tags_for_note(note_id)

    async def export_note(self, note_id: int, export_format: ExportFormat) -> ExportDocument:
        """
        Render a note as text, Markdown or JSON.

        Raises:
            NotFoundError: If note not found
        """
        note = await self.get_note(note_id)
        self._log_debug("Exporting note", note_id=note_id, format=export_format.value)
        return render_export(note, export_format)
