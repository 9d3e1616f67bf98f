"""
Notes API Endpoints.

REST API endpoints for notes, note search/export and note-tag relations.
"""

from fastapi import APIRouter, Query, Response

from notesync.backend.core.dependencies import DbSession, RequestId
from notesync.backend.schemas.base import ApiResponse, ResponseMetadata
from notesync.backend.schemas.export import ExportFormat
from notesync.backend.schemas.note import NoteCreate, NoteUpdate, NoteWithTags
from notesync.backend.schemas.tag import TagResponse
from notesync.backend.services.note import NoteService

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[NoteWithTags]],
    summary="List notes",
    description="List notes with their tags, most recently updated first.",
)
async def list_notes(
    db: DbSession,
    request_id: RequestId,
    include_deleted: bool = Query(
        default=False,
        alias="includeDeleted",
        description="Include notes in the trash",
    ),
) -> ApiResponse[list[NoteWithTags]]:
    """List notes."""
    notes = await NoteService(db).list_notes(include_deleted=include_deleted)
    return ApiResponse(data=notes, metadata=ResponseMetadata(request_id=request_id))


@router.get(
    "/search",
    response_model=ApiResponse[list[NoteWithTags]],
    summary="Search notes",
    description="Case-insensitive substring search over title and content. "
    "An empty query returns every note not in the trash.",
)
async def search_notes(
    db: DbSession,
    request_id: RequestId,
    q: str = Query(default="", max_length=200, description="Search query"),
) -> ApiResponse[list[NoteWithTags]]:
    """Search notes."""
    notes = await NoteService(db).search_notes(q)
    return ApiResponse(data=notes, metadata=ResponseMetadata(request_id=request_id))


@router.post(
    "",
    response_model=ApiResponse[NoteWithTags],
    status_code=201,
    summary="Create a note",
    description="Create a note, optionally attaching tags.",
)
async def create_note(
    data: NoteCreate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NoteWithTags]:
    """Create a new note."""
    note = await NoteService(db).create_note(data)
    return ApiResponse(data=note, metadata=ResponseMetadata(request_id=request_id))


@router.get(
    "/{note_id}",
    response_model=ApiResponse[NoteWithTags],
    summary="Get a note",
)
async def get_note(
    note_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NoteWithTags]:
    """Get a note by ID."""
    note = await NoteService(db).get_note(note_id)
    return ApiResponse(data=note, metadata=ResponseMetadata(request_id=request_id))


@router.put(
    "/{note_id}",
    response_model=ApiResponse[NoteWithTags],
    summary="Update a note",
    description="Partial update. When tagIds is given, relations are diffed against it.",
)
async def update_note(
    note_id: int,
    data: NoteUpdate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NoteWithTags]:
    """Update a note."""
    note = await NoteService(db).update_note(note_id, data)
    return ApiResponse(data=note, metadata=ResponseMetadata(request_id=request_id))


@router.delete(
    "/{note_id}",
    response_model=ApiResponse[NoteWithTags],
    summary="Move a note to the trash",
    description="Soft delete: sets isDeleted. The note can be restored.",
)
async def delete_note(
    note_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NoteWithTags]:
    """Soft-delete a note."""
    note = await NoteService(db).delete_note(note_id)
    return ApiResponse(data=note, metadata=ResponseMetadata(request_id=request_id))


@router.post(
    "/{note_id}/restore",
    response_model=ApiResponse[NoteWithTags],
    summary="Restore a note from the trash",
)
async def restore_note(
    note_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NoteWithTags]:
    """Restore a soft-deleted note."""
    note = await NoteService(db).restore_note(note_id)
    return ApiResponse(data=note, metadata=ResponseMetadata(request_id=request_id))


@router.post(
    "/{note_id}/toggle-favorite",
    response_model=ApiResponse[NoteWithTags],
    summary="Toggle the favorite flag",
)
async def toggle_favorite(
    note_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NoteWithTags]:
    """Flip isFavorite."""
    note = await NoteService(db).toggle_favorite(note_id)
    return ApiResponse(data=note, metadata=ResponseMetadata(request_id=request_id))


@router.get(
    "/{note_id}/export",
    summary="Export a note",
    description="Download a note as plain text, Markdown or JSON.",
    response_class=Response,
)
async def export_note(
    note_id: int,
    db: DbSession,
    export_format: ExportFormat = Query(default=ExportFormat.TEXT, alias="format"),
) -> Response:
    """Export a note as an attachment."""
    document = await NoteService(db).export_note(note_id, export_format)
    return Response(
        content=document.body,
        media_type=document.media_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


@router.get(
    "/{note_id}/tags",
    response_model=ApiResponse[list[TagResponse]],
    summary="List the tags of a note",
)
async def list_note_tags(
    note_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[TagResponse]]:
    """Tags attached to a note."""
    tags = await NoteService(db).tags_for_note(note_id)
    return ApiResponse(data=tags, metadata=ResponseMetadata(request_id=request_id))


@router.post(
    "/{note_id}/tags/{tag_id}",
    response_model=ApiResponse[list[TagResponse]],
    summary="Attach a tag to a note",
    description="Idempotent: attaching an already attached tag changes nothing.",
)
async def add_note_tag(
    note_id: int,
    tag_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[TagResponse]]:
    """Attach a tag."""
    tags = await NoteService(db).add_tag(note_id, tag_id)
    return ApiResponse(data=tags, metadata=ResponseMetadata(request_id=request_id))


@router.delete(
    "/{note_id}/tags/{tag_id}",
    response_model=ApiResponse[list[TagResponse]],
    summary="Detach a tag from a note",
    description="Idempotent: detaching a tag that is not attached changes nothing.",
)
async def remove_note_tag(
    note_id: int,
    tag_id: int,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[TagResponse]]:
    """Detach a tag."""
    tags = await NoteService(db).remove_tag(note_id, tag_id)
    return ApiResponse(data=tags, metadata=ResponseMetadata(request_id=request_id))
