"""Unit tests for notesync.client.connectivity."""

import asyncio
import socket
import threading
from unittest.mock import MagicMock, patch

import pytest

from notesync.client.connectivity import (
    ConnectionStatus,
    ConnectivityPolicy,
    ManualSignal,
    SocketSignal,
)


class TestIsOffline:
    """Tests for per-call sampling."""

    def test_samples_signal_every_call(self, signal, connectivity):
        """The policy should never cache the previous answer."""
        assert connectivity.is_offline() is False
        signal.set_offline()
        assert connectivity.is_offline() is True
        signal.set_online()
        assert connectivity.is_offline() is False

    def test_status_starts_unknown(self, connectivity):
        assert connectivity.status is ConnectionStatus.UNKNOWN
        assert connectivity.last_change is None

    def test_status_tracks_last_sample(self, signal, connectivity):
        connectivity.is_offline()
        assert connectivity.status is ConnectionStatus.ONLINE

        signal.set_offline()
        connectivity.is_offline()
        assert connectivity.status is ConnectionStatus.OFFLINE
        assert connectivity.last_change is not None


class TestListeners:
    """Tests for transition listeners."""

    def test_fires_on_transitions_only(self, signal, connectivity):
        on_online = MagicMock()
        on_offline = MagicMock()
        connectivity.on_connectivity_change(on_online, on_offline)

        connectivity.is_offline()
        connectivity.is_offline()
        signal.set_offline()
        connectivity.is_offline()
        connectivity.is_offline()
        signal.set_online()
        connectivity.is_offline()

        on_offline.assert_called_once()
        on_online.assert_called_once()

    def test_first_sample_is_baseline(self):
        """The first observation should not count as a transition."""
        policy = ConnectivityPolicy(ManualSignal(online=False))
        on_offline = MagicMock()
        policy.on_connectivity_change(on_offline=on_offline)

        policy.is_offline()

        on_offline.assert_not_called()

    def test_unsubscribe_stops_notifications(self, signal, connectivity):
        on_offline = MagicMock()
        unsubscribe = connectivity.on_connectivity_change(on_offline=on_offline)
        connectivity.is_offline()

        unsubscribe()
        signal.set_offline()
        connectivity.is_offline()

        on_offline.assert_not_called()
        assert connectivity.listener_count == 0

    def test_unsubscribe_is_idempotent(self, connectivity):
        first = connectivity.on_connectivity_change(on_online=MagicMock())
        second = connectivity.on_connectivity_change(on_online=MagicMock())

        first()
        first()

        assert connectivity.listener_count == 1
        second()
        assert connectivity.listener_count == 0

    def test_failing_listener_does_not_break_others(self, signal, connectivity):
        """A listener exception should be logged, not propagated."""
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        connectivity.on_connectivity_change(on_offline=broken)
        connectivity.on_connectivity_change(on_offline=healthy)
        connectivity.is_offline()

        signal.set_offline()
        with patch("notesync.client.connectivity.logger") as mock_logger:
            assert connectivity.is_offline() is True
            mock_logger.error.assert_called_once()

        healthy.assert_called_once()


class TestSocketSignal:
    """Tests for the TCP probe."""

    def test_online_when_connect_succeeds(self):
        with patch("notesync.client.connectivity.socket.create_connection") as mock_connect:
            assert SocketSignal("127.0.0.1", 8000, timeout=0.5).is_online() is True
            mock_connect.assert_called_once_with(("127.0.0.1", 8000), timeout=0.5)

    def test_offline_when_connect_fails(self):
        with patch(
            "notesync.client.connectivity.socket.create_connection",
            side_effect=ConnectionRefusedError(),
        ):
            assert SocketSignal("127.0.0.1", 8000).is_online() is False

    def test_offline_on_timeout(self):
        with patch(
            "notesync.client.connectivity.socket.create_connection",
            side_effect=socket.timeout(),
        ):
            assert SocketSignal("10.255.255.1", 80).is_online() is False


class ThreadRecordingSignal(ManualSignal):
    """ManualSignal that remembers which thread sampled it."""

    def __init__(self, online: bool = True) -> None:
        super().__init__(online)
        self.sampled_on: list[int] = []

    def is_online(self) -> bool:
        self.sampled_on.append(threading.get_ident())
        return super().is_online()


class TestCheckOffline:
    """Tests for sampling from a coroutine."""

    @pytest.mark.asyncio
    async def test_samples_in_worker_thread(self):
        signal = ThreadRecordingSignal()
        policy = ConnectivityPolicy(signal)

        assert await policy.check_offline() is False

        assert signal.sampled_on
        assert threading.get_ident() not in signal.sampled_on

    @pytest.mark.asyncio
    async def test_listeners_fire_on_loop_thread(self):
        signal = ThreadRecordingSignal()
        policy = ConnectivityPolicy(signal)
        fired_on: list[int] = []
        policy.on_connectivity_change(on_offline=lambda: fired_on.append(threading.get_ident()))
        await policy.check_offline()

        signal.set_offline()
        assert await policy.check_offline() is True

        assert fired_on == [threading.get_ident()]
        assert policy.status is ConnectionStatus.OFFLINE

    @pytest.mark.asyncio
    async def test_slow_connect_does_not_block_loop(self):
        """Other coroutines should keep running while a socket connect waits."""
        release = threading.Event()

        def slow_connect(*args, **kwargs):
            release.wait(2)
            raise ConnectionRefusedError()

        policy = ConnectivityPolicy(SocketSignal("127.0.0.1", 8000))
        with patch("notesync.client.connectivity.socket.create_connection", side_effect=slow_connect):
            sampling = asyncio.create_task(policy.check_offline())
            await asyncio.sleep(0.01)
            assert not sampling.done()
            release.set()
            assert await sampling is True


class TestWatch:
    """Tests for the polling loop."""

    @pytest.mark.asyncio
    async def test_watch_pushes_transitions(self, signal, connectivity):
        went_offline = threading.Event()
        connectivity.is_offline()
        connectivity.on_connectivity_change(on_offline=went_offline.set)

        task = asyncio.create_task(connectivity.watch(0.01))
        signal.set_offline()
        for _ in range(200):
            if went_offline.is_set():
                break
            await asyncio.sleep(0.01)
        assert went_offline.is_set()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert connectivity.status is ConnectionStatus.OFFLINE
