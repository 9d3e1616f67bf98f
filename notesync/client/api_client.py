"""
Remote API Client.

Async HTTP client for the notes/tags REST API. All requests include
X-Frontend-ID: client for log routing.

Failures are translated into the sync error taxonomy and always raised:
    - transport errors (connect, read, timeout) and 5xx -> NetworkUnreachableError
    - 4xx -> ApplicationRejectedError carrying the envelope's error code
Nothing is retried here; the orchestrator decides the fallback.

Usage:
    async with NotesApiClient() as api:
        notes = await api.list_notes()
        note = await api.create_note(NoteCreate(title="Trip"))
"""

import re
from typing import Any

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from notesync.backend.core.config import get_api_base_url
from notesync.backend.core.exceptions import ApplicationRejectedError, NetworkUnreachableError
from notesync.backend.core.logging import get_logger, log_with_source
from notesync.backend.schemas.export import (
    EXPORT_EXTENSIONS,
    EXPORT_MEDIA_TYPES,
    ExportDocument,
    ExportFormat,
)
from notesync.backend.schemas.note import NoteCreate, NoteUpdate, NoteWithTags
from notesync.backend.schemas.tag import TagCreate, TagResponse, TagUpdate

logger = get_logger(__name__)

_NOTE = TypeAdapter(NoteWithTags)
_NOTES = TypeAdapter(list[NoteWithTags])
_TAG = TypeAdapter(TagResponse)
_TAGS = TypeAdapter(list[TagResponse])

_FILENAME_PATTERN = re.compile(r'filename="?([^";]+)"?')


class NotesApiClient:
    """
    HTTP client for the notes backend.

    Args:
        base_url: API base URL including the version prefix. If None, built
            from config/settings/application.yaml.
        timeout: Request timeout in seconds. If None, timeouts.external_api.
        transport: Optional httpx transport (MockTransport, ASGITransport).
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if base_url is None or timeout is None:
            config_base_url, config_timeout = get_api_base_url()
            base_url = base_url or config_base_url
            timeout = timeout if timeout is not None else config_timeout

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NotesApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"X-Frontend-ID": "client"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Make an HTTP request and classify failures.

        Raises:
            NetworkUnreachableError: No response, or a 5xx response
            ApplicationRejectedError: A 4xx response
        """
        client = await self._get_client()
        log_with_source(logger, "client", "debug", "API request", method=method, path=path)

        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            log_with_source(
                logger,
                "client",
                "warning",
                "API unreachable",
                method=method,
                path=path,
                error=str(e) or type(e).__name__,
            )
            raise NetworkUnreachableError(f"{method} {path} failed: {type(e).__name__}") from e

        log_with_source(
            logger,
            "client",
            "debug",
            "API response",
            method=method,
            path=path,
            status_code=response.status_code,
        )

        if response.status_code >= 500:
            raise NetworkUnreachableError(
                f"{method} {path} returned {response.status_code}",
                status=response.status_code,
            )
        if response.status_code >= 400:
            raise self._rejection(response)
        return response

    @staticmethod
    def _rejection(response: httpx.Response) -> ApplicationRejectedError:
        code = "REQ_REJECTED"
        message = f"Request rejected with status {response.status_code}"
        details = None
        try:
            error = response.json().get("error") or {}
        except (ValueError, AttributeError):
            error = {}
        if isinstance(error, dict):
            code = error.get("code") or code
            message = error.get("message") or message
            details = error.get("details")

        log_with_source(
            logger,
            "client",
            "info",
            "API rejected request",
            status_code=response.status_code,
            error_code=code,
        )
        return ApplicationRejectedError(
            message,
            status=response.status_code,
            code=code,
            details=details,
        )

    async def _data(self, method: str, path: str, adapter: TypeAdapter, **kwargs: Any) -> Any:
        """Request and unwrap the `data` field of the response envelope."""
        response = await self.request(method, path, **kwargs)
        try:
            return adapter.validate_python(response.json()["data"])
        except (ValueError, KeyError, TypeError, PydanticValidationError) as e:
            raise ApplicationRejectedError(
                f"Malformed response from {method} {path}",
                status=response.status_code,
                code="SYS_BAD_PAYLOAD",
            ) from e

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    async def list_notes(self, include_deleted: bool = False) -> list[NoteWithTags]:
        params = {"includeDeleted": "true" if include_deleted else "false"}
        return await self._data("GET", "/notes", _NOTES, params=params)

    async def search_notes(self, query: str) -> list[NoteWithTags]:
        return await self._data("GET", "/notes/search", _NOTES, params={"q": query})

    async def get_note(self, note_id: int) -> NoteWithTags:
        return await self._data("GET", f"/notes/{note_id}", _NOTE)

    async def create_note(self, draft: NoteCreate) -> NoteWithTags:
        body = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
        return await self._data("POST", "/notes", _NOTE, json=body)

    async def update_note(self, note_id: int, patch: NoteUpdate) -> NoteWithTags:
        body = patch.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return await self._data("PUT", f"/notes/{note_id}", _NOTE, json=body)

    async def delete_note(self, note_id: int) -> NoteWithTags:
        """Soft delete."""
        return await self._data("DELETE", f"/notes/{note_id}", _NOTE)

    async def restore_note(self, note_id: int) -> NoteWithTags:
        return await self._data("POST", f"/notes/{note_id}/restore", _NOTE)

    async def toggle_favorite(self, note_id: int) -> NoteWithTags:
        return await self._data("POST", f"/notes/{note_id}/toggle-favorite", _NOTE)

    async def export_note(self, note_id: int, export_format: ExportFormat) -> ExportDocument:
        """Download an export; the filename comes from Content-Disposition."""
        response = await self.request(
            "GET",
            f"/notes/{note_id}/export",
            params={"format": export_format.value},
        )
        match = _FILENAME_PATTERN.search(response.headers.get("content-disposition", ""))
        filename = match.group(1) if match else f"note_{note_id}.{EXPORT_EXTENSIONS[export_format]}"
        media_type = response.headers.get("content-type", EXPORT_MEDIA_TYPES[export_format])
        return ExportDocument(
            filename=filename,
            media_type=media_type.split(";")[0].strip(),
            body=response.text,
        )

    # -------------------------------------------------------------------------
    # Note-tag relations
    # -------------------------------------------------------------------------

    async def get_tags_for_note(self, note_id: int) -> list[TagResponse]:
        return await self._data("GET", f"/notes/{note_id}/tags", _TAGS)

    async def add_tag_to_note(self, note_id: int, tag_id: int) -> list[TagResponse]:
        return await self._data("POST", f"/notes/{note_id}/tags/{tag_id}", _TAGS)

    async def remove_tag_from_note(self, note_id: int, tag_id: int) -> list[TagResponse]:
        return await self._data("DELETE", f"/notes/{note_id}/tags/{tag_id}", _TAGS)

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def list_tags(self) -> list[TagResponse]:
        return await self._data("GET", "/tags", _TAGS)

    async def get_tag(self, tag_id: int) -> TagResponse:
        return await self._data("GET", f"/tags/{tag_id}", _TAG)

    async def create_tag(self, draft: TagCreate) -> TagResponse:
        body = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
        return await self._data("POST", "/tags", _TAG, json=body)

    async def update_tag(self, tag_id: int, patch: TagUpdate) -> TagResponse:
        body = patch.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return await self._data("PUT", f"/tags/{tag_id}", _TAG, json=body)

    async def delete_tag(self, tag_id: int) -> None:
        await self.request("DELETE", f"/tags/{tag_id}")
