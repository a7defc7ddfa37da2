from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Callable

from harbor_realtime.application.ports.clock import Clock, isoformat_now
from harbor_realtime.application.uow import UnitOfWork
from harbor_realtime.domain.events.stream import UnreadUpdate, UnreadUpdateData
from harbor_realtime.infrastructure.stream.gateway import StreamSubscription
from harbor_realtime.services import unread_service

logger = logging.getLogger(__name__)

UowFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]


class UnreadWatcher:
    """Re-reads one connection's unread count and pushes ``unread:update`` on change.

    The gateway is tenant-scoped, so per-user counts only ever travel on the
    connection of the user they belong to.
    """

    def __init__(
        self,
        sub: StreamSubscription,
        uow_factory: UowFactory,
        interval: float,
        clock: Clock | None = None,
    ) -> None:
        self._sub = sub
        self._uow_factory = uow_factory
        self._interval = interval
        self._clock = clock
        self._last_count: int | None = None

    async def check_once(self) -> bool:
        """Poll once; return True if an update was pushed."""
        async with self._uow_factory() as uow:
            count = await unread_service.count_unread(
                self._sub.user_email, self._sub.tenant_id, uow,
            )
        if count == self._last_count:
            return False
        self._last_count = count
        return self._sub.deliver(
            UnreadUpdate(data=UnreadUpdateData(count=count, timestamp=isoformat_now(self._clock)))
        )

    async def run(self) -> None:
        while not self._sub.closed:
            await asyncio.sleep(self._interval)
            try:
                await self.check_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Unread poll failed: tenant=%s user=%s", self._sub.tenant_id, self._sub.user_email,
                )
