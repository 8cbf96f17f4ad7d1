"""
Connectivity Monitor
====================
Tracks whether the device is online and tells interested parties when
that changes.

Online means at least one active transport is wifi, cellular or
ethernet. A VPN or bluetooth link on its own does not count.

Listeners are notified only on flips: a platform event that leaves the
boolean unchanged is dropped. An offline -> online flip also invokes the
reconnect listeners; the app wires the sync engine's ``request_sweep`` in
there, and that is the only thing that starts a sweep.

The platform signal comes from a ``ConnectivitySource``. On a desktop or
server host, ``InterfaceConnectivitySource`` derives it from the network
interfaces reported by psutil.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from enum import Enum
from typing import AsyncIterator, Callable, Iterable, Optional

import psutil

logger = logging.getLogger(__name__)


class Transport(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    VPN = "vpn"
    BLUETOOTH = "bluetooth"
    OTHER = "other"
    NONE = "none"


ONLINE_TRANSPORTS = frozenset({Transport.WIFI, Transport.CELLULAR, Transport.ETHERNET})


def transports_online(transports: Iterable[Transport]) -> bool:
    return any(transport in ONLINE_TRANSPORTS for transport in transports)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class ConnectivitySource:
    """Platform signal: the set of active transports, now and over time."""

    async def current(self) -> list[Transport]:
        raise NotImplementedError

    def watch(self) -> AsyncIterator[list[Transport]]:
        """Yield the transport list each time the platform reports it."""
        raise NotImplementedError


# Interface-name prefixes, checked in order. Loopback is skipped entirely.
_INTERFACE_PREFIXES: tuple[tuple[tuple[str, ...], Transport], ...] = (
    (("wl", "wi-fi", "wifi", "wlan"), Transport.WIFI),
    (("wwan", "rmnet", "ccmni", "pdp_ip", "cellular"), Transport.CELLULAR),
    (("tun", "tap", "utun", "wg", "ppp", "ipsec", "vpn"), Transport.VPN),
    (("bnep", "bt", "bluetooth"), Transport.BLUETOOTH),
    (("en", "eth", "ethernet"), Transport.ETHERNET),
)

_ADDRESS_FAMILIES = (socket.AF_INET, socket.AF_INET6)


def classify_interface(name: str) -> Optional[Transport]:
    """Map an OS interface name to a transport; ``None`` for loopback."""
    lowered = name.lower()
    if lowered.startswith("lo"):
        return None
    for prefixes, transport in _INTERFACE_PREFIXES:
        if lowered.startswith(prefixes):
            return transport
    return Transport.OTHER


class InterfaceConnectivitySource(ConnectivitySource):
    """Polls psutil for interfaces that are up and carry an IP address."""

    def __init__(self, poll_interval: float = 2.0) -> None:
        self._poll_interval = poll_interval

    @staticmethod
    def _scan() -> list[Transport]:
        stats = psutil.net_if_stats()
        addresses = psutil.net_if_addrs()
        transports: list[Transport] = []
        for name, stat in stats.items():
            if not stat.isup:
                continue
            if not any(addr.family in _ADDRESS_FAMILIES for addr in addresses.get(name, [])):
                continue
            transport = classify_interface(name)
            if transport is not None and transport not in transports:
                transports.append(transport)
        return transports or [Transport.NONE]

    async def current(self) -> list[Transport]:
        return await asyncio.to_thread(self._scan)

    async def watch(self) -> AsyncIterator[list[Transport]]:
        while True:
            await asyncio.sleep(self._poll_interval)
            yield await self.current()


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------

_CLOSED = object()


class ConnectivityMonitor:
    """Boolean online state with flip notifications and reconnect hooks."""

    def __init__(self, source: ConnectivitySource) -> None:
        self._source = source
        self._online = False
        self._opened = False
        self._watch_task: Optional[asyncio.Task] = None
        self._subscribers: list[asyncio.Queue] = []
        self._reconnect_listeners: list[Callable[[], None]] = []

    @property
    def is_online(self) -> bool:
        return self._online

    async def open(self) -> None:
        """Read the initial state and start following the source."""
        if self._opened:
            return
        self._online = transports_online(await self._source.current())
        self._opened = True
        self._watch_task = asyncio.create_task(self._follow_source())
        logger.info("Connectivity monitor started (online=%s)", self._online)

    async def close(self) -> None:
        """Stop following the source and end every ``changes()`` stream."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)
        self._subscribers.clear()
        self._opened = False

    async def check(self) -> bool:
        """Recompute the state now instead of waiting for the next event."""
        self._apply(await self._source.current())
        return self._online

    def add_reconnect_listener(self, callback: Callable[[], None]) -> None:
        self._reconnect_listeners.append(callback)

    async def changes(self) -> AsyncIterator[bool]:
        """Yield the new state on every flip until the monitor is closed."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            while True:
                value = await queue.get()
                if value is _CLOSED:
                    return
                yield value
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    # ---- Internals ----------------------------------------------------------

    async def _follow_source(self) -> None:
        try:
            async for transports in self._source.watch():
                self._apply(transports)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Connectivity source failed; state frozen at online=%s", self._online)

    def _apply(self, transports: Iterable[Transport]) -> None:
        online = transports_online(transports)
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for queue in self._subscribers:
            queue.put_nowait(online)
        if online:
            for listener in self._reconnect_listeners:
                try:
                    listener()
                except Exception:
                    logger.exception("Reconnect listener failed")
