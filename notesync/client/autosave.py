"""
AutoSaver.

Coalesces rapid edits into few saves. Each note has at most one pending
patch holding the latest title/content; it is saved once the note has been
idle for `idle_seconds`, or at the latest `max_interval_seconds` after its
first unsaved change.

Usage:
    async with AutoSaver(orchestrator.update_note) as saver:
        saver.schedule(note_id, content="<p>draft</p>")
        ...
    # leaving the block saves pending edits and waits for running saves
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from notesync.backend.core.logging import get_logger, log_with_source
from notesync.backend.schemas.note import NoteUpdate

logger = get_logger(__name__)

SaveFunc = Callable[[int, NoteUpdate], Awaitable[Any]]
ErrorHandler = Callable[[int, Exception], None]


def _log_error(note_id: int, error: Exception) -> None:
    log_with_source(
        logger,
        "sync",
        "error",
        "Autosave failed",
        note_id=note_id,
        error=str(error),
        error_type=type(error).__name__,
    )


class AutoSaver:
    """
    Timer-driven coalescing saver.

    Args:
        save: Coroutine function called as save(note_id, NoteUpdate)
        idle_seconds: Quiet period after the last change before saving
        max_interval_seconds: Upper bound between first change and save
        on_error: Called with (note_id, exception) when a save fails
    """

    def __init__(
        self,
        save: SaveFunc,
        idle_seconds: float = 0.8,
        max_interval_seconds: float = 5.0,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.save = save
        self.idle_seconds = idle_seconds
        self.max_interval_seconds = max_interval_seconds
        self.on_error = on_error or _log_error
        self._pending: dict[int, dict[str, str]] = {}
        self._first_change: dict[int, float] = {}
        self._timers: dict[int, asyncio.Task] = {}
        self._in_flight: set[asyncio.Task] = set()
        self._closed = False

    async def __aenter__(self) -> "AutoSaver":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def pending(self) -> dict[int, dict[str, str]]:
        """Unsaved fields per note."""
        return {note_id: dict(fields) for note_id, fields in self._pending.items()}

    def schedule(
        self,
        note_id: int,
        title: str | None = None,
        content: str | None = None,
    ) -> None:
        """
        Record the latest title/content of a note and (re)arm its timer.

        Raises:
            RuntimeError: If the saver has been closed
        """
        if self._closed:
            raise RuntimeError("AutoSaver is closed")

        fields = self._pending.setdefault(note_id, {})
        if title is not None:
            fields["title"] = title
        if content is not None:
            fields["content"] = content

        loop = asyncio.get_running_loop()
        now = loop.time()
        first = self._first_change.setdefault(note_id, now)
        delay = max(0.0, min(self.idle_seconds, first + self.max_interval_seconds - now))

        timer = self._timers.pop(note_id, None)
        if timer is not None:
            timer.cancel()
        self._timers[note_id] = loop.create_task(self._save_after(note_id, delay))

    async def _save_after(self, note_id: int, delay: float) -> None:
        await asyncio.sleep(delay)
        task = asyncio.current_task()
        # Detach before saving so a new schedule() does not cancel an in-flight save.
        if self._timers.get(note_id) is task:
            del self._timers[note_id]
        self._in_flight.add(task)
        try:
            await self._save(note_id)
        finally:
            self._in_flight.discard(task)

    async def _save(self, note_id: int) -> None:
        fields = self._pending.pop(note_id, None)
        self._first_change.pop(note_id, None)
        if not fields:
            return
        try:
            await self.save(note_id, NoteUpdate(**fields))
        except Exception as e:
            self.on_error(note_id, e)

    async def flush(self) -> None:
        """Save every pending note now and wait for saves already running."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        for note_id in list(self._pending):
            await self._save(note_id)
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def aclose(self) -> None:
        """Refuse further scheduling, then flush."""
        self._closed = True
        await self.flush()
