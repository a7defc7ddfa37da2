"""In-process tenant event gateway.

Each open stream owns a bounded queue. Publishing never blocks: a subscriber
whose queue is full is dropped and its stream ends, so the consumer falls back
to reconnect + snapshot polling. Nothing is buffered for consumers that are
not connected.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from harbor_realtime.domain.events.stream import ConnectionEstablished, StreamEvent

logger = logging.getLogger(__name__)

_CLOSE = object()


class StreamClosed(Exception):
    pass


class StreamSubscription:
    """One live consumer of a tenant's event stream."""

    __slots__ = ("tenant_id", "user_email", "_queue", "_closed")

    def __init__(self, tenant_id: str, user_email: str, maxsize: int) -> None:
        self.tenant_id = tenant_id
        self.user_email = user_email
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: StreamEvent) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSE)

    async def get(self, timeout: float | None = None) -> StreamEvent | None:
        """Next event, or None if ``timeout`` elapsed first."""
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSE:
            raise StreamClosed(self.tenant_id)
        return item  # type: ignore[return-value]


class EventGateway:
    """Tracks open streams per tenant and fans events out to them."""

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._subscriptions: dict[str, set[StreamSubscription]] = {}

    def subscribe(self, tenant_id: str, user_email: str) -> StreamSubscription:
        sub = StreamSubscription(tenant_id, user_email, self._queue_size)
        self._subscriptions.setdefault(tenant_id, set()).add(sub)
        logger.debug(
            "Stream opened: tenant=%s user=%s (tenant streams=%d)",
            tenant_id, user_email, len(self._subscriptions[tenant_id]),
        )
        return sub

    def unsubscribe(self, sub: StreamSubscription) -> None:
        subs = self._subscriptions.get(sub.tenant_id)
        if subs:
            subs.discard(sub)
            if not subs:
                del self._subscriptions[sub.tenant_id]
        sub.close()
        logger.debug("Stream closed: tenant=%s user=%s", sub.tenant_id, sub.user_email)

    def subscriber_count(self, tenant_id: str) -> int:
        return len(self._subscriptions.get(tenant_id, ()))

    def publish(self, tenant_id: str, event: StreamEvent) -> int:
        """Deliver ``event`` to every open stream of ``tenant_id``. Returns the number reached."""
        delivered = 0
        overflowed: list[StreamSubscription] = []
        for sub in list(self._subscriptions.get(tenant_id, ())):
            if sub.deliver(event):
                delivered += 1
            else:
                overflowed.append(sub)
        for sub in overflowed:
            logger.warning(
                "Dropping slow stream consumer: tenant=%s user=%s", sub.tenant_id, sub.user_email,
            )
            self.unsubscribe(sub)
        return delivered

    async def stream(
        self,
        sub: StreamSubscription,
        established: ConnectionEstablished,
        *,
        idle_timeout: float | None = None,
    ) -> AsyncIterator[StreamEvent | None]:
        """Yield ``established`` first, then published events until the stream closes.

        With ``idle_timeout`` set, ``None`` is yielded whenever that many seconds
        pass without an event so the caller can emit a keep-alive.
        """
        yield established
        while True:
            try:
                event = await sub.get(timeout=idle_timeout)
            except StreamClosed:
                return
            yield event

    def close_all(self) -> None:
        for subs in list(self._subscriptions.values()):
            for sub in list(subs):
                self.unsubscribe(sub)
