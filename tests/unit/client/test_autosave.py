"""Unit tests for notesync.client.autosave."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notesync.backend.schemas.note import NoteUpdate
from notesync.client.autosave import AutoSaver


class TestCoalescing:
    """Tests for timer-driven saves."""

    @pytest.mark.asyncio
    async def test_rapid_edits_saved_once(self):
        save = AsyncMock()
        saver = AutoSaver(save, idle_seconds=0.05, max_interval_seconds=5)

        saver.schedule(10, content="<p>P</p>")
        saver.schedule(10, content="<p>Pa</p>")
        saver.schedule(10, title="Trip", content="<p>Pack</p>")
        await asyncio.sleep(0.2)

        save.assert_awaited_once_with(10, NoteUpdate(title="Trip", content="<p>Pack</p>"))
        assert saver.pending == {}

    @pytest.mark.asyncio
    async def test_notes_saved_independently(self):
        save = AsyncMock()
        saver = AutoSaver(save, idle_seconds=0.02)

        saver.schedule(1, title="One")
        saver.schedule(2, title="Two")
        await asyncio.sleep(0.15)

        saved = {call.args[0]: call.args[1].title for call in save.await_args_list}
        assert saved == {1: "One", 2: "Two"}

    @pytest.mark.asyncio
    async def test_max_interval_bounds_delay(self):
        """Continuous typing should still save once the max interval elapses."""
        save = AsyncMock()
        saver = AutoSaver(save, idle_seconds=1.0, max_interval_seconds=0.05)

        saver.schedule(10, content="a")
        await asyncio.sleep(0.02)
        saver.schedule(10, content="ab")
        await asyncio.sleep(0.15)

        save.assert_awaited_once_with(10, NoteUpdate(content="ab"))
        await saver.aclose()

    @pytest.mark.asyncio
    async def test_pending_reflects_latest_fields(self):
        saver = AutoSaver(AsyncMock(), idle_seconds=10)

        saver.schedule(10, title="Draft")
        saver.schedule(10, content="<p>x</p>")

        assert saver.pending == {10: {"title": "Draft", "content": "<p>x</p>"}}
        await saver.aclose()


class TestFlushAndClose:
    """Tests for flush and shutdown."""

    @pytest.mark.asyncio
    async def test_flush_saves_immediately(self):
        save = AsyncMock()
        saver = AutoSaver(save, idle_seconds=10)
        saver.schedule(10, title="Trip")

        await saver.flush()

        save.assert_awaited_once_with(10, NoteUpdate(title="Trip"))
        assert saver.pending == {}

    @pytest.mark.asyncio
    async def test_context_manager_flushes_on_exit(self):
        save = AsyncMock()

        async with AutoSaver(save, idle_seconds=10) as saver:
            saver.schedule(10, content="<p>last words</p>")

        save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_waits_for_running_save(self):
        """A save whose timer already fired should finish before aclose returns."""
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def slow_save(note_id, patch):
            started.set()
            await release.wait()
            finished.append(note_id)

        saver = AutoSaver(slow_save, idle_seconds=0.01)
        saver.schedule(10, title="Trip")
        await asyncio.wait_for(started.wait(), timeout=1)

        closing = asyncio.create_task(saver.aclose())
        await asyncio.sleep(0.02)
        assert not closing.done()

        release.set()
        await asyncio.wait_for(closing, timeout=1)

        assert finished == [10]
        assert saver._in_flight == set()

    @pytest.mark.asyncio
    async def test_flush_waits_for_running_save_that_fails(self):
        started = asyncio.Event()
        release = asyncio.Event()
        on_error = MagicMock()

        async def failing_save(note_id, patch):
            started.set()
            await release.wait()
            raise RuntimeError("backend refused")

        saver = AutoSaver(failing_save, idle_seconds=0.01, on_error=on_error)
        saver.schedule(10, title="Trip")
        await asyncio.wait_for(started.wait(), timeout=1)

        release.set()
        await saver.flush()

        on_error.assert_called_once()

    @pytest.mark.asyncio
    async def test_schedule_after_close_raises(self):
        saver = AutoSaver(AsyncMock())
        await saver.aclose()

        with pytest.raises(RuntimeError):
            saver.schedule(10, title="late")

    @pytest.mark.asyncio
    async def test_flush_with_nothing_pending(self):
        save = AsyncMock()
        saver = AutoSaver(save)

        await saver.flush()

        save.assert_not_awaited()


class TestErrors:
    """Tests for failing saves."""

    @pytest.mark.asyncio
    async def test_on_error_receives_exception(self):
        error = RuntimeError("backend refused")
        on_error = MagicMock()
        saver = AutoSaver(AsyncMock(side_effect=error), idle_seconds=10, on_error=on_error)
        saver.schedule(10, title="Trip")

        await saver.flush()

        on_error.assert_called_once_with(10, error)

    @pytest.mark.asyncio
    async def test_default_handler_logs(self):
        saver = AutoSaver(AsyncMock(side_effect=ValueError("bad")), idle_seconds=10)
        saver.schedule(10, title="Trip")

        with patch("notesync.client.autosave.logger") as mock_logger:
            await saver.flush()
            mock_logger.error.assert_called_once()
