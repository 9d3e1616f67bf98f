"""
Connectivity Policy.

Single source of truth for "should we attempt the network". The signal is
sampled on every call to is_offline() or check_offline(); nothing is cached
between calls.
Listeners registered with on_connectivity_change() fire whenever a sample
differs from the previous one.

Usage:
    policy = ConnectivityPolicy(SocketSignal("127.0.0.1", 8000))
    unsubscribe = policy.on_connectivity_change(
        on_online=lambda: print("back online"),
        on_offline=lambda: print("offline"),
    )
    ...
    unsubscribe()
"""

import asyncio
import socket
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Protocol

from notesync.backend.core.logging import get_logger, log_with_source
from notesync.backend.core.utils import utc_now

logger = get_logger(__name__)

Listener = Callable[[], None]


class ConnectionStatus(str, Enum):
    """Last observed connectivity."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ConnectivitySignal(Protocol):
    """Platform connectivity signal."""

    def is_online(self) -> bool: ...


class ManualSignal:
    """Signal flipped by hand. Used by tests and the CLI --offline flag."""

    def __init__(self, online: bool = True) -> None:
        self.online = online

    def set_online(self) -> None:
        self.online = True

    def set_offline(self) -> None:
        self.online = False

    def is_online(self) -> bool:
        return self.online


class SocketSignal:
    """Online when a TCP connection to host:port opens within timeout."""

    def __init__(self, host: str, port: int, timeout: float = 1.5) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    def is_online(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError:
            return False


class ConnectivityPolicy:
    """Samples a connectivity signal and notifies listeners of transitions."""

    def __init__(self, signal: ConnectivitySignal) -> None:
        self.signal = signal
        self._status = ConnectionStatus.UNKNOWN
        self._last_change: datetime | None = None
        self._listeners: list[tuple[Listener | None, Listener | None]] = []

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def last_change(self) -> datetime | None:
        return self._last_change

    def is_offline(self) -> bool:
        """
        Sample the signal now, on the calling thread. Fires listeners on a
        transition.

        A SocketSignal connects inside this call; from a coroutine use
        check_offline() instead.
        """
        return self._observe(self.signal.is_online())

    async def check_offline(self) -> bool:
        """
        Sample the signal in a worker thread.

        The transition bookkeeping and listeners still run on the event
        loop thread.
        """
        online = await asyncio.to_thread(self.signal.is_online)
        return self._observe(online)

    def _observe(self, online: bool) -> bool:
        observed = ConnectionStatus.ONLINE if online else ConnectionStatus.OFFLINE
        if observed != self._status:
            previous = self._status
            self._status = observed
            self._last_change = utc_now()
            log_with_source(
                logger,
                "sync",
                "info",
                "Connectivity changed",
                previous=previous.value,
                current=observed.value,
            )
            # The first sample only establishes a baseline.
            if previous != ConnectionStatus.UNKNOWN:
                self._notify(online)
        return not online

    def _notify(self, online: bool) -> None:
        for on_online, on_offline in list(self._listeners):
            callback = on_online if online else on_offline
            if callback is None:
                continue
            try:
                callback()
            except Exception as e:
                logger.error(
                    "Connectivity listener failed",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )

    def on_connectivity_change(
        self,
        on_online: Listener | None = None,
        on_offline: Listener | None = None,
    ) -> Callable[[], None]:
        """
        Register transition listeners.

        Returns:
            An unsubscribe function. Calling it more than once is harmless.
        """
        entry = (on_online, on_offline)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            # Identity match so equal lambdas registered twice stay independent.
            for index, registered in enumerate(self._listeners):
                if registered is entry:
                    del self._listeners[index]
                    return

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def watch(self, interval: float) -> None:
        """
        Sample the signal every `interval` seconds until cancelled.

        Samples through check_offline(), so listeners fire on the loop thread.
        """
        log_with_source(logger, "sync", "debug", "Connectivity watch started", interval=interval)
        while True:
            await self.check_offline()
            await asyncio.sleep(interval)
