"""
Tag Service.

Business logic for tags. Deleting a tag removes it together with all of
its note relations.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from notesync.backend.repositories.tag import NoteTagRepository, TagRepository
from notesync.backend.schemas.tag import TagCreate, TagResponse, TagUpdate
from notesync.backend.services.base import BaseService

DEFAULT_TAGS: list[tuple[str, str]] = [
    ("Work", "#3B82F6"),
    ("Personal", "#10B981"),
    ("Ideas", "#8B5CF6"),
    ("Meeting", "#8B5CF6"),
    ("Planning", "#3B82F6"),
]


class TagService(BaseService):
    """Service for tag business logic."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TagRepository(session)
        self.relations = NoteTagRepository(session)

    async def list_tags(self) -> list[TagResponse]:
        return [TagResponse.model_validate(tag) for tag in await self.repo.list_tags()]

    async def get_tag(self, tag_id: int) -> TagResponse:
        """
        Raises:
            NotFoundError: If tag not found
        """
        return TagResponse.model_validate(await self.repo.get_by_id(tag_id))

    async def create_tag(self, data: TagCreate) -> TagResponse:
        """
        Create a tag.

        Repeating a stored client_ref returns the existing tag.
        """
        if data.client_ref:
            existing = await self.repo.get_by_client_ref(data.client_ref)
            if existing is not None:
                self._log_operation(
                    "Create replayed for known client_ref",
                    tag_id=existing.id,
                    client_ref=data.client_ref,
                )
                return TagResponse.model_validate(existing)

        self._log_operation("Creating tag", name=data.name, color=data.color)
        tag = await self._execute_db_operation(
            "create_tag",
            self.repo.create(name=data.name, color=data.color, client_ref=data.client_ref),
        )
        return TagResponse.model_validate(tag)

    async def update_tag(self, tag_id: int, data: TagUpdate) -> TagResponse:
        """
        Rename or recolor a tag.

        Raises:
            NotFoundError: If tag not found
        """
        fields = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if not fields:
            return await self.get_tag(tag_id)

        self._log_operation("Updating tag", tag_id=tag_id, fields=sorted(fields))
        tag = await self._execute_db_operation(
            "update_tag",
            self.repo.update(tag_id, **fields),
        )
        return TagResponse.model_validate(tag)

    async def delete_tag(self, tag_id: int) -> None:
        """
        Delete a tag and every relation referencing it.

        Raises:
            NotFoundError: If tag not found
        """
        await self.repo.get_by_id(tag_id)
        removed = await self.relations.remove_for_tag(tag_id)
        self._log_operation("Deleting tag", tag_id=tag_id, relations_removed=removed)
        await self._execute_db_operation("delete_tag", self.repo.delete(tag_id))

    async def seed_defaults(self) -> int:
        """Create the default tags when the store has none. Returns how many were created."""
        if await self.repo.count():
            return 0
        for name, color in DEFAULT_TAGS:
            await self.repo.create(name=name, color=color)
        self._log_operation("Seeded default tags", count=len(DEFAULT_TAGS))
        return len(DEFAULT_TAGS)
