# SQLAlchemy models package
from notesync.backend.models.base import Base
from notesync.backend.models.note import Note, NoteTag, Tag

__all__ = ["Base", "Note", "NoteTag", "Tag"]
