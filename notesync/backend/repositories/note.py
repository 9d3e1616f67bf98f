"""
Note Repository.

Data access layer for notes. Handles all database operations
for the Note model.
"""

from sqlalchemy import func, or_, select

from notesync.backend.models.note import Note
from notesync.backend.repositories.base import BaseRepository


class NoteRepository(BaseRepository[Note]):
    """
    Repository for Note model.

    Inherits standard CRUD operations from BaseRepository
    and adds note-specific queries.
    """

    model = Note

    async def list_notes(self, include_deleted: bool = False) -> list[Note]:
        """
        List notes, most recently updated first.

        Args:
            include_deleted: Whether to include notes in the trash

        Returns:
            List of notes
        """
        stmt = select(Note).order_by(Note.updated_at.desc(), Note.id.desc())
        if not include_deleted:
            stmt = stmt.where(Note.is_deleted == False)  # noqa: E712
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def search(self, query: str) -> list[Note]:
        """
        Case-insensitive substring search over title and content.

        Deleted notes are excluded. A blank query returns every
        non-deleted note.

        Args:
            query: Search string, matched literally (no wildcards)

        Returns:
            List of matching notes
        """
        needle = query.strip().lower()
        if not needle:
            return await self.list_notes()

        result = await self.session.execute(
            select(Note)
            .where(Note.is_deleted == False)  # noqa: E712
            .where(
                or_(
                    func.lower(Note.title).contains(needle, autoescape=True),
                    func.lower(Note.content).contains(needle, autoescape=True),
                )
            )
            .order_by(Note.updated_at.desc(), Note.id.desc())
        )
        return list(result.scalars().all())
