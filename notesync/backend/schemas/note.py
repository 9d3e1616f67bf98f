"""
Note Schemas.

Pydantic schemas for note API request/response validation.
NoteWithTags is also the record kept by the offline local store.
"""

from datetime import datetime

from pydantic import Field

from notesync.backend.schemas.base import CamelModel, PatchModel
from notesync.backend.schemas.tag import TagResponse

DEFAULT_NOTE_TITLE = "Untitled"


class NoteCreate(PatchModel):
    """Schema for creating a new note."""

    title: str = Field(
        default=DEFAULT_NOTE_TITLE,
        max_length=255,
        description="Note title",
        examples=["Trip"],
    )
    content: str = Field(
        default="",
        description="Rich-text (HTML) content",
        examples=["<p>Pack bags</p>"],
    )
    is_favorite: bool = Field(default=False, description="Favorite flag")
    is_deleted: bool = Field(default=False, description="Trash flag")
    tag_ids: list[int] | None = Field(
        default=None,
        description="Tags to attach on creation",
    )
    client_ref: str | None = Field(
        default=None,
        max_length=64,
        description="Client correlation id for notes created offline",
    )


class NoteUpdate(PatchModel):
    """
    Schema for updating an existing note.

    Only fields present in the request are applied. When tag_ids is given,
    the note's relations are diffed against it.
    """

    title: str | None = Field(default=None, max_length=255)
    content: str | None = Field(default=None)
    is_favorite: bool | None = Field(default=None)
    is_deleted: bool | None = Field(default=None)
    tag_ids: list[int] | None = Field(default=None)


class NoteResponse(CamelModel):
    """Schema for a note in API responses."""

    id: int = Field(description="Note identifier, negative while unsynced")
    title: str = Field(default=DEFAULT_NOTE_TITLE, description="Note title")
    content: str = Field(default="", description="Rich-text (HTML) content")
    is_favorite: bool = Field(default=False, description="Favorite flag")
    is_deleted: bool = Field(default=False, description="Trash flag")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    client_ref: str | None = Field(default=None, description="Client correlation id")


class NoteWithTags(NoteResponse):
    """A note with its resolved tag set."""

    tags: list[TagResponse] = Field(default_factory=list)

    def as_note(self) -> NoteResponse:
        """Drop the tag view."""
        return NoteResponse.model_validate(self.model_dump(exclude={"tags"}))
