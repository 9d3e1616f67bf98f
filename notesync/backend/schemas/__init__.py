# Pydantic schemas package
from notesync.backend.schemas.base import (
    ApiResponse,
    ErrorDetail,
    ErrorResponse,
    ResponseMetadata,
)
from notesync.backend.schemas.export import ExportDocument, ExportFormat
from notesync.backend.schemas.note import NoteCreate, NoteResponse, NoteUpdate, NoteWithTags
from notesync.backend.schemas.tag import TagCreate, TagResponse, TagUpdate

__all__ = [
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "ExportDocument",
    "ExportFormat",
    "NoteCreate",
    "NoteResponse",
    "NoteUpdate",
    "NoteWithTags",
    "ResponseMetadata",
    "TagCreate",
    "TagResponse",
    "TagUpdate",
]
