"""One shared live stream per process, reference counted across consumers.

Several widgets watching the same tenant share a single transport. The
transport opens when the first consumer attaches and closes when the last one
detaches. Attaching for a different tenant replaces the transport; handles
issued for the old tenant go stale and detaching them does nothing.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from harbor_realtime.domain.events.stream import EventParseError, StreamEvent, parse_event
from harbor_realtime.sync.transport import OnRawEvent, OnStatus

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def start(self) -> None: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[str, OnRawEvent, OnStatus], Transport]


class StreamListener(Protocol):
    def on_event(self, event: StreamEvent) -> None: ...

    def on_status(self, connected: bool) -> None: ...


class SubscriptionHandle:
    __slots__ = ("key", "listener", "_stale")

    def __init__(self, key: str, listener: StreamListener) -> None:
        self.key = key
        self.listener = listener
        self._stale = False

    @property
    def stale(self) -> bool:
        return self._stale

    def __repr__(self) -> str:
        return f"SubscriptionHandle(key={self.key!r}, stale={self._stale})"


class SubscriptionManager:
    def __init__(self, transport_factory: TransportFactory) -> None:
        self._factory = transport_factory
        self._lock = asyncio.Lock()
        self._key: str | None = None
        self._transport: Transport | None = None
        self._handles: list[SubscriptionHandle] = []

    @property
    def key(self) -> str | None:
        return self._key

    @property
    def refcount(self) -> int:
        return len(self._handles)

    async def attach(self, key: str, listener: StreamListener) -> SubscriptionHandle:
        async with self._lock:
            if self._key is not None and key != self._key:
                logger.info("Switching shared stream from %s to %s", self._key, key)
                displaced, self._handles = self._handles, []
                for stale in displaced:
                    stale._stale = True
                await self._close_transport()
                self._notify_status(displaced, False)

            handle = SubscriptionHandle(key, listener)
            self._handles.append(handle)
            if self._transport is None:
                self._key = key
                self._transport = self._factory(key, self._dispatch, self._status)
                await self._transport.start()
                logger.debug("Opened shared stream for %s", key)
            return handle

    async def detach(self, handle: SubscriptionHandle) -> None:
        async with self._lock:
            if handle.stale or handle not in self._handles:
                return
            self._handles.remove(handle)
            handle._stale = True
            if not self._handles:
                await self._close_transport()

    async def close(self) -> None:
        async with self._lock:
            for handle in self._handles:
                handle._stale = True
            self._handles = []
            await self._close_transport()

    async def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        key, self._key = self._key, None
        if transport is not None:
            await transport.close()
            logger.debug("Closed shared stream for %s", key)

    def _dispatch(self, raw: str) -> None:
        try:
            event = parse_event(raw)
        except EventParseError as exc:
            logger.warning("Dropping malformed stream event: %s", exc)
            return
        for handle in list(self._handles):
            try:
                handle.listener.on_event(event)
            except Exception:
                logger.exception("Stream listener failed on %s", event.type)

    def _status(self, connected: bool) -> None:
        self._notify_status(list(self._handles), connected)

    @staticmethod
    def _notify_status(handles: list[SubscriptionHandle], connected: bool) -> None:
        for handle in handles:
            try:
                handle.listener.on_status(connected)
            except Exception:
                logger.exception("Stream status listener failed")


_manager: SubscriptionManager | None = None


def get_subscription_manager(transport_factory: TransportFactory | None = None) -> SubscriptionManager:
    """The process-wide manager, created on first use."""
    global _manager  # noqa: PLW0603
    if _manager is None:
        if transport_factory is None:
            raise RuntimeError("transport_factory is required to create the subscription manager")
        _manager = SubscriptionManager(transport_factory)
    return _manager


async def reset_subscription_manager() -> None:
    global _manager  # noqa: PLW0603
    manager, _manager = _manager, None
    if manager is not None:
        await manager.close()
