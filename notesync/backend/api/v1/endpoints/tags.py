"""
Tags API Endpoints.

REST API endpoints for tag management.
"""

from fastapi import APIRouter

from notesync.backend.core.dependencies import DbSession, RequestId
from notesync.backend.schemas.base import ApiResponse, ResponseMetadata
from notesync.backend.schemas.tag import TagCreate, TagResponse, TagUpdate
from notesync.backend.services.tag import TagService

router = APIRouter()


@router.get(
    "",
    response_model=ApiResponse[list[TagResponse]],
    summary="List tags",
)
async def list_tags(db: DbSession, request_id: RequestId) -> ApiResponse[list[TagResponse]]:
    """List all tags ordered by name."""
    tags = await TagService(db).list_tags()
    return ApiResponse(data=tags, metadata=ResponseMetadata(request_id=request_id))


@router.post(
    "",
    response_model=ApiResponse[TagResponse],
    status_code=201,
    summary="Create a tag",
)
async def create_tag(
    data: TagCreate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[TagResponse]:
    """Create a tag."""
    tag = await TagService(db).create_tag(data)
    return ApiResponse(data=tag, metadata=ResponseMetadata(request_id=request_id))


@router.get(
    "/{tag_id}",
    response_model=ApiResponse[TagResponse],
    summary="Get a tag",
)
async def get_tag(tag_id: int, db: DbSession, request_id: RequestId) -> ApiResponse[TagResponse]:
    """Get a tag by ID."""
    tag = await TagService(db).get_tag(tag_id)
    return ApiResponse(data=tag, metadata=ResponseMetadata(request_id=request_id))


@router.put(
    "/{tag_id}",
    response_model=ApiResponse[TagResponse],
    summary="Update a tag",
)
async def update_tag(
    tag_id: int,
    data: TagUpdate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[TagResponse]:
    """Rename or recolor a tag."""
    tag = await TagService(db).update_tag(tag_id, data)
    return ApiResponse(data=tag, metadata=ResponseMetadata(request_id=request_id))


@router.delete(
    "/{tag_id}",
    status_code=204,
    summary="Delete a tag",
    description="Deletes the tag and detaches it from every note.",
)
async def delete_tag(tag_id: int, db: DbSession) -> None:
    """Delete a tag."""
    await TagService(db).delete_tag(tag_id)
