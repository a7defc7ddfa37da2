"""Keeps one user's unread badge correct from snapshots plus live push events.

Snapshots are authoritative and arrive on start and on every poll; push
events patch the state in between. Whichever arrives last wins, and the next
poll corrects any drift.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from harbor_realtime.domain.entities.message import MessageSummary
from harbor_realtime.domain.events.stream import StreamEvent
from harbor_realtime.sync.snapshot import Snapshot, SnapshotAuthError, SnapshotError, SnapshotSource
from harbor_realtime.sync.state import DEFAULT_RECENT_LIMIT, UnreadState
from harbor_realtime.sync.subscriptions import SubscriptionHandle, SubscriptionManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncOptions:
    poll_connected: float = 120.0
    poll_disconnected: float = 30.0
    recent_limit: int = DEFAULT_RECENT_LIMIT
    subscribe: bool = True


@dataclass(frozen=True, slots=True)
class UnreadView:
    count: int
    recent: tuple[MessageSummary, ...]
    connected: bool
    error: str | None
    version: int


Listener = Callable[[UnreadView], None]


class UnreadSynchronizer:
    def __init__(
        self,
        user_email: str,
        source: SnapshotSource,
        subscriptions: SubscriptionManager,
        options: SyncOptions | None = None,
    ) -> None:
        self.user_email = user_email.strip().lower()
        self.options = options or SyncOptions()
        self.state = UnreadState(recent_limit=self.options.recent_limit)
        self._source = source
        self._subscriptions = subscriptions
        self._snapshot_tenant: str | None = None
        self._handle: SubscriptionHandle | None = None
        self._listeners: list[Listener] = []
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def view(self) -> UnreadView:
        s = self.state
        return UnreadView(s.count, s.recent, s.connected, s.error, s.version)

    @property
    def tenant_id(self) -> str | None:
        return self._handle.key if self._handle and not self._handle.stale else None

    @property
    def poll_interval(self) -> float:
        if self.state.connected:
            return self.options.poll_connected
        return self.options.poll_disconnected

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self, changed: bool) -> None:
        if not changed:
            return
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Unread listener failed")

    async def fetch_snapshot(self) -> Snapshot | None:
        try:
            snapshot = await self._source.fetch()
        except SnapshotAuthError as exc:
            logger.debug("Snapshot unavailable for %s: %s", self.user_email, exc)
            self._changed(self.state.reset())
            return None
        except SnapshotError as exc:
            logger.warning("Snapshot failed for %s: %s", self.user_email, exc)
            self._changed(self.state.record_error(str(exc)))
            return None

        if snapshot.tenant_id:
            self._snapshot_tenant = snapshot.tenant_id
        self._changed(self.state.replace_from_snapshot(snapshot.unread_count, snapshot.recent))
        return snapshot

    async def _resolve_tenant(self) -> str | None:
        if self._snapshot_tenant:
            return self._snapshot_tenant
        tenants = await self._source.user_tenants()
        return tenants[0].id if tenants else None

    async def attach(self) -> SubscriptionHandle | None:
        tenant_id = await self._resolve_tenant()
        if tenant_id is None:
            logger.info("No tenant for %s; polling only", self.user_email)
            return None
        if self._handle is not None and not self._handle.stale and self._handle.key == tenant_id:
            return self._handle
        if self._handle is not None:
            await self._subscriptions.detach(self._handle)
        self._handle = await self._subscriptions.attach(tenant_id, self)
        return self._handle

    async def detach(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await self._subscriptions.detach(handle)
        self._changed(self.state.set_connected(False))

    def on_event(self, event: StreamEvent) -> None:
        self._changed(self.state.apply(event, self.user_email))

    def on_status(self, connected: bool) -> None:
        self._changed(self.state.set_connected(connected))

    async def start(self) -> None:
        await self.fetch_snapshot()
        if self.options.subscribe:
            await self.attach()
        if self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll(), name=f"unread-poll {self.user_email}")

    async def stop(self) -> None:
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        await self.detach()

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.fetch_snapshot()
                if self.options.subscribe and self.tenant_id is None:
                    await self.attach()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unread poll failed for %s", self.user_email)
