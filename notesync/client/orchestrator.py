"""
Sync Orchestrator.

Wraps every read and write intent in the offline-first fallback chain:

    offline              -> local store only                  (OFFLINE)
    online, success      -> write-through into the local store,
                            record last sync, mirror to cloud (LIVE)
    online, unreachable  -> same local mutation as offline    (DEGRADED)
    online, rejected     -> ApplicationRejectedError raised, local store untouched

Local mutations on an id the store does not hold raise
LocalStoreInconsistencyError. settle() turns both raised kinds into
REJECTED results for callers that prefer values over exceptions.

Entities created without the backend get a negative placeholder id and a
client_ref. When the backend later returns a record with the same
client_ref, the placeholder row is replaced by it. Intents that target a
placeholder id never reach the backend; push_placeholders() replays them.

Usage:
    orchestrator = SyncOrchestrator(store, NotesApiClient(), policy)
    result = await orchestrator.create_note(NoteCreate(title="Trip"))
    if result.is_local:
        print("saved offline")
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from pydantic import ValidationError

from notesync.backend.core.exceptions import (
    ApplicationRejectedError,
    CloudBackupError,
    LocalStoreInconsistencyError,
    NetworkUnreachableError,
)
from notesync.backend.core.logging import get_logger, log_with_source
from notesync.backend.core.markup import render_export
from notesync.backend.core.utils import new_client_ref, utc_now
from notesync.backend.schemas.export import ExportDocument, ExportFormat
from notesync.backend.schemas.note import NoteCreate, NoteResponse, NoteUpdate, NoteWithTags
from notesync.backend.schemas.tag import TagCreate, TagResponse, TagUpdate
from notesync.client.api_client import NotesApiClient
from notesync.client.cloud_backup import CloudBackupClient, SnapshotKind
from notesync.client.connectivity import ConnectivityPolicy
from notesync.client.local_store import LocalStore
from notesync.client.results import SyncOutcome, SyncReport, SyncResult, SyncStatus

logger = get_logger(__name__)

R = TypeVar("R")
T = TypeVar("T")

UNSYNCED_REASON = "target has not been synced yet"
BACKUP_REASON = "cloud backup"


def _next_timestamp(previous: datetime) -> datetime:
    """Now, but never earlier than or equal to previous."""
    if previous.tzinfo is not None:
        previous = previous.astimezone(timezone.utc).replace(tzinfo=None)
    return max(utc_now(), previous + timedelta(microseconds=1))


class SyncOrchestrator:
    """
    Offline-first facade over the local store and the remote API.

    Args:
        local_store: Client-local cache, always updated
        remote: Backend client
        connectivity: Decides per call whether the backend is tried
        cloud_backup: Optional snapshot mirror for signed-in users
        user_id: Signed-in user; enables cloud mirroring
    """

    def __init__(
        self,
        local_store: LocalStore,
        remote: NotesApiClient,
        connectivity: ConnectivityPolicy,
        cloud_backup: CloudBackupClient | None = None,
        user_id: str | None = None,
    ) -> None:
        self.local_store = local_store
        self.remote = remote
        self.connectivity = connectivity
        self.cloud_backup = cloud_backup
        self.user_id = user_id

    # -------------------------------------------------------------------------
    # Fallback chain
    # -------------------------------------------------------------------------

    async def _run(
        self,
        operation: str,
        remote_call: Callable[[], Awaitable[R]],
        write_through: Callable[[R], T],
        local: Callable[[], T],
        mirror: tuple[SnapshotKind, ...] = (),
    ) -> SyncResult[T]:
        if await self.connectivity.check_offline():
            value = local()
            log_with_source(logger, "sync", "info", "Served offline", operation=operation)
            return SyncResult.offline(value)

        try:
            remote_value = await remote_call()
        except NetworkUnreachableError as e:
            value = local()
            log_with_source(
                logger,
                "sync",
                "warning",
                "Backend unreachable, served from local store",
                operation=operation,
                error=e.message,
            )
            return SyncResult.degraded(value, e.message)

        value = write_through(remote_value)
        self.local_store.set_last_sync()
        if mirror:
            await self._mirror(*mirror)
        log_with_source(logger, "sync", "debug", "Served live", operation=operation)
        return SyncResult.live(value)

    def _unsynced(self, operation: str, local: Callable[[], T]) -> SyncResult[T]:
        value = local()
        log_with_source(
            logger,
            "sync",
            "info",
            "Applied to unsynced placeholder locally",
            operation=operation,
        )
        return SyncResult.degraded(value, UNSYNCED_REASON)

    async def _mirror(self, *kinds: SnapshotKind) -> None:
        if self.cloud_backup is None or self.user_id is None:
            return
        for kind in kinds:
            if kind is SnapshotKind.NOTES:
                items: list[Any] = self.local_store.get_all_notes_with_tags(include_deleted=True)
            else:
                items = self.local_store.get_tags()
            await self.cloud_backup.mirror(self.user_id, kind, items)

    async def settle(self, operation: Awaitable[SyncResult[T]]) -> SyncResult[T]:
        """Await an operation, turning rejections into a REJECTED result."""
        try:
            return await operation
        except (ApplicationRejectedError, LocalStoreInconsistencyError) as e:
            log_with_source(
                logger,
                "sync",
                "info",
                "Operation rejected",
                error_code=e.code,
                error=e.message,
            )
            return SyncResult.rejected(e)

    # -------------------------------------------------------------------------
    # Local mutations
    # -------------------------------------------------------------------------

    def _require_note(self, note_id: int) -> NoteResponse:
        note = self.local_store.get_note(note_id)
        if note is None:
            raise LocalStoreInconsistencyError(f"Note {note_id} is not in the local store")
        return note

    def _require_tag(self, tag_id: int) -> TagResponse:
        tag = self.local_store.get_tag(tag_id)
        if tag is None:
            raise LocalStoreInconsistencyError(f"Tag {tag_id} is not in the local store")
        return tag

    def _store_views(self, views: list[NoteWithTags]) -> list[NoteWithTags]:
        for view in views:
            self.local_store.save_note_with_tags(view)
        return views

    def _store_tags(self, tags: list[TagResponse]) -> list[TagResponse]:
        for tag in tags:
            self.local_store.save_tag(tag)
        return tags

    def _local_view(self, note_id: int) -> NoteWithTags:
        view = self.local_store.get_note_with_tags(note_id)
        if view is None:
            raise LocalStoreInconsistencyError(f"Note {note_id} is not in the local store")
        return view

    def _create_note_locally(self, draft: NoteCreate) -> NoteWithTags:
        tag_ids = list(dict.fromkeys(draft.tag_ids or []))
        for tag_id in tag_ids:
            self._require_tag(tag_id)

        now = utc_now()
        note = NoteResponse(
            id=self.local_store.next_placeholder_id(),
            title=draft.title,
            content=draft.content,
            is_favorite=draft.is_favorite,
            is_deleted=draft.is_deleted,
            created_at=now,
            updated_at=now,
            client_ref=draft.client_ref,
        )
        self.local_store.save_note(note)
        self.local_store.set_note_tags(note.id, tag_ids)
        return self._local_view(note.id)

    def _update_note_locally(self, note_id: int, **fields: Any) -> NoteWithTags:
        note = self._require_note(note_id)
        tag_ids = fields.pop("tag_ids", None)
        if tag_ids is not None:
            for tag_id in tag_ids:
                self._require_tag(tag_id)

        fields["updated_at"] = _next_timestamp(note.updated_at)
        self.local_store.save_note(note.model_copy(update=fields))
        if tag_ids is not None:
            self.local_store.set_note_tags(note_id, tag_ids)
        return self._local_view(note_id)

    def _touch_note(self, note_id: int) -> None:
        note = self._require_note(note_id)
        self.local_store.save_note(
            note.model_copy(update={"updated_at": _next_timestamp(note.updated_at)})
        )

    def _attach_locally(self, note_id: int, tag_id: int) -> list[TagResponse]:
        if self.local_store.add_note_tag_relation(note_id, tag_id):
            self._touch_note(note_id)
        return self.local_store.get_tags_for_note(note_id)

    def _detach_locally(self, note_id: int, tag_id: int) -> list[TagResponse]:
        self._require_note(note_id)
        if self.local_store.remove_note_tag_relation(note_id, tag_id):
            self._touch_note(note_id)
        return self.local_store.get_tags_for_note(note_id)

    def _store_note_tags(self, note_id: int, tags: list[TagResponse]) -> list[TagResponse]:
        self._store_tags(tags)
        if self.local_store.get_note(note_id) is not None:
            self.local_store.set_note_tags(note_id, [tag.id for tag in tags])
        return tags

    def _create_tag_locally(self, draft: TagCreate) -> TagResponse:
        tag = TagResponse(
            id=self.local_store.next_placeholder_id(),
            name=draft.name,
            color=draft.color,
            client_ref=draft.client_ref,
        )
        return self.local_store.save_tag(tag)

    def _update_tag_locally(self, tag_id: int, fields: dict[str, Any]) -> TagResponse:
        tag = self._require_tag(tag_id)
        return self.local_store.save_tag(tag.model_copy(update=fields))

    def _delete_tag_locally(self, tag_id: int) -> bool:
        if not self.local_store.delete_tag(tag_id):
            raise LocalStoreInconsistencyError(f"Tag {tag_id} is not in the local store")
        return True

    def _delete_tag_through(self, tag_id: int) -> bool:
        self.local_store.delete_tag(tag_id)
        return True

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_notes(self, include_deleted: bool = False) -> SyncResult[list[NoteWithTags]]:
        return await self._run(
            "list_notes",
            lambda: self.remote.list_notes(include_deleted=include_deleted),
            self._store_views,
            lambda: self.local_store.get_all_notes_with_tags(include_deleted=include_deleted),
        )

    async def get_note(self, note_id: int) -> SyncResult[NoteWithTags | None]:
        """A single note. Locally, an unknown id yields a None value."""

        def local() -> Any:
            return self.local_store.get_note_with_tags(note_id)

        if note_id < 0:
            return self._unsynced("get_note", local)
        return await self._run(
            "get_note",
            lambda: self.remote.get_note(note_id),
            self.local_store.save_note_with_tags,
            local,
        )

    async def list_tags(self) -> SyncResult[list[TagResponse]]:
        return await self._run(
            "list_tags",
            self.remote.list_tags,
            self._store_tags,
            self.local_store.get_tags,
        )

    async def get_tags_for_note(self, note_id: int) -> SyncResult[list[TagResponse]]:
        def local() -> Any:
            return self.local_store.get_tags_for_note(note_id)

        if note_id < 0:
            return self._unsynced("get_tags_for_note", local)
        return await self._run(
            "get_tags_for_note",
            lambda: self.remote.get_tags_for_note(note_id),
            lambda tags: self._store_note_tags(note_id, tags),
            local,
        )

    async def search_notes(self, query: str) -> SyncResult[list[NoteWithTags]]:
        """
        Backend search covers title and content. The local fallback also
        matches tag names, so it returns a superset.
        """
        return await self._run(
            "search_notes",
            lambda: self.remote.search_notes(query),
            self._store_views,
            lambda: self.local_store.search_local(query),
        )

    async def export_note(
        self,
        note_id: int,
        export_format: ExportFormat = ExportFormat.TEXT,
    ) -> SyncResult[ExportDocument]:
        """Backend rendering when reachable, the same rules client-side otherwise."""
        export_format = ExportFormat(export_format)

        def local() -> Any:
            return render_export(self._local_view(note_id), export_format)

        if note_id < 0:
            return self._unsynced("export_note", local)
        return await self._run(
            "export_note",
            lambda: self.remote.export_note(note_id, export_format),
            lambda document: document,
            local,
        )

    # -------------------------------------------------------------------------
    # Note writes
    # -------------------------------------------------------------------------

    async def create_note(self, draft: NoteCreate | None = None) -> SyncResult[NoteWithTags]:
        draft = draft or NoteCreate()
        if not draft.client_ref:
            draft = draft.model_copy(update={"client_ref": new_client_ref()})
        if any(tag_id < 0 for tag_id in draft.tag_ids or []):
            return self._unsynced("create_note", lambda: self._create_note_locally(draft))
        return await self._run(
            "create_note",
            lambda: self.remote.create_note(draft),
            self.local_store.save_note_with_tags,
            lambda: self._create_note_locally(draft),
            mirror=(SnapshotKind.NOTES,),
        )

    async def update_note(self, note_id: int, patch: NoteUpdate) -> SyncResult[NoteWithTags]:
        fields = {
            key: value
            for key, value in patch.model_dump(exclude_unset=True).items()
            if value is not None
        }

        def local() -> Any:
            return self._update_note_locally(note_id, **fields)

        if note_id < 0 or any(tag_id < 0 for tag_id in fields.get("tag_ids", [])):
            return self._unsynced("update_note", local)
        return await self._run(
            "update_note",
            lambda: self.remote.update_note(note_id, patch),
            self.local_store.save_note_with_tags,
            local,
            mirror=(SnapshotKind.NOTES,),
        )

    async def _note_flag(
        self,
        operation: str,
        note_id: int,
        remote_call: Callable[[], Awaitable[NoteWithTags]],
        fields: Callable[[], dict[str, Any]],
    ) -> SyncResult[NoteWithTags]:
        def local() -> Any:
            return self._update_note_locally(note_id, **fields())

        if note_id < 0:
            return self._unsynced(operation, local)
        return await self._run(
            operation,
            remote_call,
            self.local_store.save_note_with_tags,
            local,
            mirror=(SnapshotKind.NOTES,),
        )

    async def delete_note(self, note_id: int) -> SyncResult[NoteWithTags]:
        """Move a note to the trash."""
        return await self._note_flag(
            "delete_note",
            note_id,
            lambda: self.remote.delete_note(note_id),
            lambda: {"is_deleted": True},
        )

    async def restore_note(self, note_id: int) -> SyncResult[NoteWithTags]:
        return await self._note_flag(
            "restore_note",
            note_id,
            lambda: self.remote.restore_note(note_id),
            lambda: {"is_deleted": False},
        )

    async def toggle_favorite(self, note_id: int) -> SyncResult[NoteWithTags]:
        return await self._note_flag(
            "toggle_favorite",
            note_id,
            lambda: self.remote.toggle_favorite(note_id),
            lambda: {"is_favorite": not self._require_note(note_id).is_favorite},
        )

    async def add_tag_to_note(self, note_id: int, tag_id: int) -> SyncResult[list[TagResponse]]:
        def local() -> Any:
            return self._attach_locally(note_id, tag_id)

        if note_id < 0 or tag_id < 0:
            return self._unsynced("add_tag_to_note", local)
        return await self._run(
            "add_tag_to_note",
            lambda: self.remote.add_tag_to_note(note_id, tag_id),
            lambda tags: self._store_note_tags(note_id, tags),
            local,
            mirror=(SnapshotKind.NOTES,),
        )

    async def remove_tag_from_note(
        self,
        note_id: int,
        tag_id: int,
    ) -> SyncResult[list[TagResponse]]:
        def local() -> Any:
            return self._detach_locally(note_id, tag_id)

        if note_id < 0 or tag_id < 0:
            return self._unsynced("remove_tag_from_note", local)
        return await self._run(
            "remove_tag_from_note",
            lambda: self.remote.remove_tag_from_note(note_id, tag_id),
            lambda tags: self._store_note_tags(note_id, tags),
            local,
            mirror=(SnapshotKind.NOTES,),
        )

    # -------------------------------------------------------------------------
    # Tag writes
    # -------------------------------------------------------------------------

    async def create_tag(self, draft: TagCreate) -> SyncResult[TagResponse]:
        if not draft.client_ref:
            draft = draft.model_copy(update={"client_ref": new_client_ref()})
        return await self._run(
            "create_tag",
            lambda: self.remote.create_tag(draft),
            self.local_store.save_tag,
            lambda: self._create_tag_locally(draft),
            mirror=(SnapshotKind.TAGS,),
        )

    async def update_tag(self, tag_id: int, patch: TagUpdate) -> SyncResult[TagResponse]:
        fields = {
            key: value
            for key, value in patch.model_dump(exclude_unset=True).items()
            if value is not None
        }

        def local() -> Any:
            return self._update_tag_locally(tag_id, fields)

        if tag_id < 0:
            return self._unsynced("update_tag", local)
        return await self._run(
            "update_tag",
            lambda: self.remote.update_tag(tag_id, patch),
            self.local_store.save_tag,
            local,
            mirror=(SnapshotKind.TAGS, SnapshotKind.NOTES),
        )

    async def delete_tag(self, tag_id: int) -> SyncResult[bool]:
        """Delete a tag and detach it from every note."""

        def local() -> Any:
            return self._delete_tag_locally(tag_id)

        if tag_id < 0:
            return self._unsynced("delete_tag", local)
        return await self._run(
            "delete_tag",
            lambda: self.remote.delete_tag(tag_id),
            lambda _: self._delete_tag_through(tag_id),
            local,
            mirror=(SnapshotKind.TAGS, SnapshotKind.NOTES),
        )

    # -------------------------------------------------------------------------
    # Placeholders, backup and session
    # -------------------------------------------------------------------------

    async def push_placeholders(self) -> SyncReport:
        """
        Create every placeholder tag, then every placeholder note, on the backend.

        Stops at the first network failure. Rejected entities are reported
        and left in place.
        """
        report = SyncReport()
        if await self.connectivity.check_offline():
            report.outcome = SyncOutcome.OFFLINE
            return report

        for tag in self.local_store.placeholder_tags():
            draft = TagCreate(
                name=tag.name,
                color=tag.color,
                client_ref=tag.client_ref or new_client_ref(),
            )
            try:
                created = await self.remote.create_tag(draft)
            except NetworkUnreachableError as e:
                return self._interrupted(report, tag.id, e)
            except ApplicationRejectedError as e:
                self._skipped(report, tag.id, e)
                continue
            self.local_store.reconcile_placeholder(tag.id, created)
            report.id_map[tag.id] = created.id
            report.pushed_tags += 1

        # Placeholder notes are read after the tag pass so relations already
        # point at server tag ids.
        for note in self.local_store.placeholder_notes():
            draft = NoteCreate(
                title=note.title,
                content=note.content,
                is_favorite=note.is_favorite,
                is_deleted=note.is_deleted,
                tag_ids=[tag.id for tag in note.tags if tag.id > 0],
                client_ref=note.client_ref or new_client_ref(),
            )
            try:
                created = await self.remote.create_note(draft)
            except NetworkUnreachableError as e:
                return self._interrupted(report, note.id, e)
            except ApplicationRejectedError as e:
                self._skipped(report, note.id, e)
                continue
            self.local_store.reconcile_placeholder(note.id, created)
            report.id_map[note.id] = created.id
            report.pushed_notes += 1

        if report.id_map:
            self.local_store.set_last_sync()
            await self._mirror(SnapshotKind.TAGS, SnapshotKind.NOTES)
        log_with_source(
            logger,
            "sync",
            "info",
            "Placeholders pushed",
            pushed_notes=report.pushed_notes,
            pushed_tags=report.pushed_tags,
            failed=len(report.failed),
        )
        return report

    def _interrupted(
        self,
        report: SyncReport,
        entity_id: int,
        error: NetworkUnreachableError,
    ) -> SyncReport:
        report.failed.append(entity_id)
        report.outcome = SyncOutcome.DEGRADED
        log_with_source(
            logger,
            "sync",
            "warning",
            "Placeholder push interrupted",
            entity_id=entity_id,
            error=error.message,
        )
        if report.id_map:
            self.local_store.set_last_sync()
        return report

    def _skipped(self, report: SyncReport, entity_id: int, error: ApplicationRejectedError) -> None:
        report.failed.append(entity_id)
        log_with_source(
            logger,
            "sync",
            "warning",
            "Placeholder rejected by backend",
            entity_id=entity_id,
            error_code=error.code,
            error=error.message,
        )

    async def restore_from_backup(self) -> SyncResult[dict[str, int]]:
        """
        Pull the signed-in user's snapshots into the local store.

        Snapshot rows are upserted; nothing already in the store is removed.
        The backend is not contacted, so success is reported as DEGRADED with
        reason "cloud backup". An unreadable or malformed snapshot
        yields REJECTED and leaves the store untouched.
        """
        if self.cloud_backup is None or self.user_id is None:
            return SyncResult.rejected(
                ApplicationRejectedError(
                    "Sign in with cloud backup enabled to restore",
                    code="BACKUP_UNAVAILABLE",
                )
            )

        try:
            raw_tags = await self.cloud_backup.pull_snapshot(self.user_id, SnapshotKind.TAGS)
            raw_notes = await self.cloud_backup.pull_snapshot(self.user_id, SnapshotKind.NOTES)
        except CloudBackupError as e:
            log_with_source(logger, "backup", "warning", "Restore failed", error=e.message)
            return SyncResult.rejected(e)

        try:
            tags = [TagResponse.model_validate(item) for item in raw_tags or []]
            notes = [NoteWithTags.model_validate(item) for item in raw_notes or []]
        except ValidationError as e:
            error = CloudBackupError(
                f"Cloud backup snapshot is malformed: {e.error_count()} invalid field(s)"
            )
            log_with_source(logger, "backup", "warning", "Restore failed", error=error.message)
            return SyncResult.rejected(error)

        self._store_tags(tags)
        self._store_views(notes)

        counts = {"notes": len(notes), "tags": len(tags)}
        log_with_source(
            logger,
            "backup",
            "info",
            "Restored from cloud backup",
            user_id=self.user_id,
            **counts,
        )
        return SyncResult.degraded(counts, BACKUP_REASON)

    def sign_in(self, user_id: str) -> None:
        """Attach a user identity; later writes are mirrored to cloud backup."""
        self.user_id = user_id
        log_with_source(logger, "sync", "info", "Signed in", user_id=user_id)

    def sign_out(self) -> None:
        log_with_source(logger, "sync", "info", "Signed out", user_id=self.user_id)
        self.user_id = None

    async def status(self) -> SyncStatus:
        return SyncStatus(
            online=not await self.connectivity.check_offline(),
            last_sync=self.local_store.get_last_sync(),
            pending_notes=len(self.local_store.placeholder_notes()),
            pending_tags=len(self.local_store.placeholder_tags()),
            user_id=self.user_id,
        )
