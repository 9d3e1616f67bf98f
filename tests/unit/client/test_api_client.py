"""
Unit Tests for the Remote API Client.

Uses httpx.MockTransport so every request is answered in-process.
"""

import json

import httpx
import pytest

from notesync.backend.core.exceptions import ApplicationRejectedError, NetworkUnreachableError
from notesync.backend.schemas.export import ExportFormat
from notesync.backend.schemas.note import NoteCreate, NoteUpdate
from notesync.backend.schemas.tag import TagCreate
from notesync.client.api_client import NotesApiClient

BASE_URL = "http://api.test/api/v1"

NOTE_PAYLOAD = {
    "id": 10,
    "title": "Trip",
    "content": "<h1>Trip</h1><p>Pack bags</p>",
    "isFavorite": False,
    "isDeleted": False,
    "createdAt": "2024-01-01T12:00:00Z",
    "updatedAt": "2024-01-01T12:00:00Z",
    "clientRef": None,
    "tags": [{"id": 2, "name": "Home", "color": "#10B981", "clientRef": None}],
}


def envelope(data):
    return {"success": True, "data": data, "error": None, "metadata": {}}


def error_envelope(code: str, message: str, details=None):
    return {
        "success": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details},
        "metadata": {},
    }


def make_client(handler) -> NotesApiClient:
    return NotesApiClient(
        base_url=BASE_URL,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    """Tests for request shape."""

    @pytest.mark.asyncio
    async def test_sends_frontend_header(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["header"] = request.headers.get("X-Frontend-ID")
            seen["path"] = request.url.path
            return httpx.Response(200, json=envelope([]))

        async with make_client(handler) as api:
            assert await api.list_notes() == []

        assert seen == {"header": "client", "path": "/api/v1/notes"}

    @pytest.mark.asyncio
    async def test_create_note_sends_camel_case_body(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json=envelope(NOTE_PAYLOAD))

        async with make_client(handler) as api:
            note = await api.create_note(NoteCreate(title="Trip", tag_ids=[2], client_ref="abc"))

        assert captured["body"]["tagIds"] == [2]
        assert captured["body"]["clientRef"] == "abc"
        assert note.id == 10
        assert note.tags[0].name == "Home"

    @pytest.mark.asyncio
    async def test_update_sends_only_set_fields(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=envelope(NOTE_PAYLOAD))

        async with make_client(handler) as api:
            await api.update_note(10, NoteUpdate(title="Trip"))

        assert captured == {"method": "PUT", "body": {"title": "Trip"}}

    @pytest.mark.asyncio
    async def test_list_notes_passes_include_deleted(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["params"] = dict(request.url.params)
            return httpx.Response(200, json=envelope([NOTE_PAYLOAD]))

        async with make_client(handler) as api:
            notes = await api.list_notes(include_deleted=True)

        assert captured["params"] == {"includeDeleted": "true"}
        assert [n.id for n in notes] == [10]

    @pytest.mark.asyncio
    async def test_create_tag(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(201, json=envelope({"id": 5, "clientRef": None, **body}))

        async with make_client(handler) as api:
            tag = await api.create_tag(TagCreate(name="Work", color="#3B82F6"))

        assert (tag.id, tag.name, tag.color) == (5, "Work", "#3B82F6")


class TestErrorMapping:
    """Tests for the sync error taxonomy."""

    @pytest.mark.asyncio
    async def test_connect_error_is_network_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as api:
            with pytest.raises(NetworkUnreachableError) as exc_info:
                await api.list_tags()

        assert exc_info.value.status is None

    @pytest.mark.asyncio
    async def test_timeout_is_network_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as api:
            with pytest.raises(NetworkUnreachableError):
                await api.get_note(1)

    @pytest.mark.asyncio
    async def test_server_error_is_network_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json=error_envelope("SYS_UNAVAILABLE", "down"))

        async with make_client(handler) as api:
            with pytest.raises(NetworkUnreachableError) as exc_info:
                await api.list_notes()

        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_not_found_is_rejected_with_envelope_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json=error_envelope("RES_NOT_FOUND", "Note 99 not found"))

        async with make_client(handler) as api:
            with pytest.raises(ApplicationRejectedError) as exc_info:
                await api.get_note(99)

        assert exc_info.value.status == 404
        assert exc_info.value.code == "RES_NOT_FOUND"
        assert exc_info.value.message == "Note 99 not found"

    @pytest.mark.asyncio
    async def test_rejection_without_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text="bad request")

        async with make_client(handler) as api:
            with pytest.raises(ApplicationRejectedError) as exc_info:
                await api.delete_tag(1)

        assert exc_info.value.code == "REQ_REJECTED"
        assert exc_info.value.status == 400

    @pytest.mark.asyncio
    async def test_malformed_payload_is_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True})

        async with make_client(handler) as api:
            with pytest.raises(ApplicationRejectedError) as exc_info:
                await api.list_notes()

        assert exc_info.value.code == "SYS_BAD_PAYLOAD"


class TestExport:
    """Tests for export downloads."""

    @pytest.mark.asyncio
    async def test_filename_from_content_disposition(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["format"] == "markdown"
            return httpx.Response(
                200,
                text="# Trip\n\nPack bags\n",
                headers={
                    "content-type": "text/markdown; charset=utf-8",
                    "content-disposition": 'attachment; filename="Trip.md"',
                },
            )

        async with make_client(handler) as api:
            document = await api.export_note(10, ExportFormat.MARKDOWN)

        assert document.filename == "Trip.md"
        assert document.media_type == "text/markdown"
        assert document.body == "# Trip\n\nPack bags\n"

    @pytest.mark.asyncio
    async def test_filename_fallback(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="Trip", headers={"content-type": "text/plain"})

        async with make_client(handler) as api:
            document = await api.export_note(10, ExportFormat.TEXT)

        assert document.filename == "note_10.txt"


class TestLifecycle:
    """Tests for client lifecycle."""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        api = make_client(lambda request: httpx.Response(200, json=envelope([])))
        await api.list_tags()

        await api.close()
        await api.close()

        assert api._client is None

    def test_base_url_trailing_slash_stripped(self):
        api = NotesApiClient(base_url=f"{BASE_URL}/", timeout=1)
        assert api.base_url == BASE_URL
