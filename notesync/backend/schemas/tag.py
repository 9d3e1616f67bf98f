"""
Tag Schemas.

Pydantic schemas for tag API request/response validation.
"""

from pydantic import Field

from notesync.backend.schemas.base import CamelModel, PatchModel

DEFAULT_TAG_COLOR = "#8B5CF6"
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class TagCreate(PatchModel):
    """Schema for creating a new tag."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Tag name",
        examples=["Work"],
    )
    color: str = Field(
        default=DEFAULT_TAG_COLOR,
        pattern=HEX_COLOR_PATTERN,
        description="Hex color (#RRGGBB)",
        examples=["#3B82F6"],
    )
    client_ref: str | None = Field(
        default=None,
        max_length=64,
        description="Client correlation id for tags created offline",
    )


class TagUpdate(PatchModel):
    """Schema for updating a tag. Only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)


class TagResponse(CamelModel):
    """Schema for a tag in API responses and in the local store."""

    id: int = Field(description="Tag identifier, negative while unsynced")
    name: str = Field(description="Tag name")
    color: str = Field(default=DEFAULT_TAG_COLOR, description="Hex color")
    client_ref: str | None = Field(default=None, description="Client correlation id")
