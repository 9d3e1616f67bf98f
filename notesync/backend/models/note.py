"""
Note Model.

Database models for notes, tags and the note-tag relation.
"""

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from notesync.backend.models.base import Base, IntegerIdMixin, TimestampMixin


class Note(IntegerIdMixin, TimestampMixin, Base):
    """
    Note database model.

    Soft-deleted notes keep their row with is_deleted=True so they can be
    restored. client_ref is the correlation id sent by offline clients.
    """

    __tablename__ = "notes"

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="Untitled",
        index=True,
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    is_favorite: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
        index=True,
    )
    client_ref: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title={self.title!r})>"


class Tag(IntegerIdMixin, Base):
    """Tag database model. Tags are hard-deleted together with their relations."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )
    color: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        default="#8B5CF6",
    )
    client_ref: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name!r})>"


class NoteTag(IntegerIdMixin, Base):
    """Association between a note and a tag. One row per pair."""

    __tablename__ = "note_tags"
    __table_args__ = (UniqueConstraint("note_id", "tag_id", name="uq_note_tags_pair"),)

    note_id: Mapped[int] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_id: Mapped[int] = mapped_column(
        ForeignKey("tags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
