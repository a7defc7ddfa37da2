"""Server-sent events over a long-lived httpx stream, reconnecting until closed."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterable, AsyncIterator, Callable

import httpx

logger = logging.getLogger(__name__)

OnRawEvent = Callable[[str], None]
OnStatus = Callable[[bool], None]

DEFAULT_RECONNECT_DELAY = 5.0


async def iter_sse_data(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Yield the ``data`` payload of each SSE frame; comment lines are keep-alives."""
    buffer: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name == "data":
            buffer.append(value[1:] if value.startswith(" ") else value)
    if buffer:
        yield "\n".join(buffer)


class EventStreamTransport:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        on_event: OnRawEvent,
        on_status: OnStatus,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        backoff_factor: float = 1.0,
        max_reconnect_delay: float = 60.0,
    ) -> None:
        self._client = client
        self._url = url
        self._on_event = on_event
        self._on_status = on_status
        self._reconnect_delay = reconnect_delay
        self._backoff_factor = backoff_factor
        self._max_reconnect_delay = max(max_reconnect_delay, reconnect_delay)
        self._connected = False
        self._closed = False
        self._task: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        if self._task is not None or self._closed:
            return
        self._task = asyncio.create_task(self._run(), name=f"sse-transport {self._url}")

    async def close(self) -> None:
        self._closed = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._set_connected(False)

    def _set_connected(self, connected: bool) -> None:
        if self._connected == connected:
            return
        self._connected = connected
        try:
            self._on_status(connected)
        except Exception:
            logger.exception("Stream status listener failed")

    def _emit(self, raw: str) -> None:
        try:
            self._on_event(raw)
        except Exception:
            logger.exception("Stream event handler failed")

    async def _run(self) -> None:
        delay = self._reconnect_delay
        while not self._closed:
            try:
                async with self._client.stream(
                    "GET",
                    self._url,
                    headers={"Accept": "text/event-stream"},
                    timeout=httpx.Timeout(10.0, read=None),
                ) as response:
                    if response.status_code != 200:
                        raise httpx.HTTPStatusError(
                            f"stream returned HTTP {response.status_code}",
                            request=response.request,
                            response=response,
                        )
                    delay = self._reconnect_delay
                    self._set_connected(True)
                    async for data in iter_sse_data(response.aiter_lines()):
                        self._emit(data)
                logger.info("Event stream ended: %s", self._url)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Event stream error on %s: %s", self._url, exc)
            finally:
                self._set_connected(False)

            if self._closed:
                break
            logger.debug("Reconnecting to %s in %.1fs", self._url, delay)
            await asyncio.sleep(delay)
            delay = min(delay * self._backoff_factor, self._max_reconnect_delay)


def http_transport_factory(
    client: httpx.AsyncClient,
    *,
    path_template: str = "/api/messaging/stream/{tenant_id}",
    **options: float,
) -> Callable[[str, OnRawEvent, OnStatus], EventStreamTransport]:
    """Factory for :class:`SubscriptionManager` that streams one tenant from ``client``."""

    def factory(tenant_id: str, on_event: OnRawEvent, on_status: OnStatus) -> EventStreamTransport:
        return EventStreamTransport(
            client,
            path_template.format(tenant_id=tenant_id),
            on_event=on_event,
            on_status=on_status,
            **options,
        )

    return factory
