"""
Tag Repository.

Data access layer for tags and the note-tag relation.
"""

from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.backend.models.note import NoteTag, Tag
from notesync.backend.repositories.base import BaseRepository


class TagRepository(BaseRepository[Tag]):
    """Repository for Tag model."""

    model = Tag

    async def list_tags(self) -> list[Tag]:
        """All tags ordered by name."""
        result = await self.session.execute(select(Tag).order_by(Tag.name, Tag.id))
        return list(result.scalars().all())

    async def existing_ids(self, ids: Iterable[int]) -> set[int]:
        """Subset of the given ids that exist."""
        wanted = set(ids)
        if not wanted:
            return set()
        result = await self.session.execute(select(Tag.id).where(Tag.id.in_(wanted)))
        return set(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(Tag))
        return result.scalar_one()


class NoteTagRepository:
    """
    Repository for the note-tag relation.

    add() and remove() are idempotent: they report whether anything
    changed instead of failing on duplicates or missing rows.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def tags_for_note(self, note_id: int) -> list[Tag]:
        """Tags of a note in the order they were attached."""
        result = await self.session.execute(
            select(Tag)
            .join(NoteTag, NoteTag.tag_id == Tag.id)
            .where(NoteTag.note_id == note_id)
            .order_by(NoteTag.id)
        )
        return list(result.scalars().all())

    async def tags_for_notes(self, note_ids: Iterable[int]) -> dict[int, list[Tag]]:
        """Tags for many notes with one query."""
        ids = list(note_ids)
        grouped: dict[int, list[Tag]] = defaultdict(list)
        if not ids:
            return grouped

        result = await self.session.execute(
            select(NoteTag.note_id, Tag)
            .join(Tag, NoteTag.tag_id == Tag.id)
            .where(NoteTag.note_id.in_(ids))
            .order_by(NoteTag.id)
        )
        for note_id, tag in result.all():
            grouped[note_id].append(tag)
        return grouped

    async def tag_ids_for_note(self, note_id: int) -> set[int]:
        result = await self.session.execute(
            select(NoteTag.tag_id).where(NoteTag.note_id == note_id)
        )
        return set(result.scalars().all())

    async def exists(self, note_id: int, tag_id: int) -> bool:
        result = await self.session.execute(
            select(NoteTag.id).where(
                NoteTag.note_id == note_id,
                NoteTag.tag_id == tag_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add(self, note_id: int, tag_id: int) -> bool:
        """Attach a tag. Returns False when the pair already existed."""
        if await self.exists(note_id, tag_id):
            return False
        self.session.add(NoteTag(note_id=note_id, tag_id=tag_id))
        await self.session.flush()
        return True

    async def remove(self, note_id: int, tag_id: int) -> bool:
        """Detach a tag. Returns False when the pair did not exist."""
        result = await self.session.execute(
            delete(NoteTag).where(
                NoteTag.note_id == note_id,
                NoteTag.tag_id == tag_id,
            )
        )
        return result.rowcount > 0

    async def remove_for_tag(self, tag_id: int) -> int:
        """Remove every relation referencing a tag. Returns the number removed."""
        result = await self.session.execute(delete(NoteTag).where(NoteTag.tag_id == tag_id))
        return result.rowcount
