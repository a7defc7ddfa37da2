from __future__ import annotations

from contextlib import asynccontextmanager

import pytest

from harbor_realtime.infrastructure.stream.gateway import EventGateway
from harbor_realtime.infrastructure.stream.unread_watcher import UnreadWatcher
from tests.conftest import ALICE, TENANT_ID, FakeUoW, FixedClock, make_message


@pytest.fixture
def uow():
    uow = FakeUoW()
    uow.messages._messages[1] = make_message(message_id=1)
    return uow


def _factory(uow):
    @asynccontextmanager
    async def open_uow():
        yield uow

    return open_uow


@pytest.mark.asyncio
async def test_pushes_only_when_count_changes(uow):
    gateway = EventGateway()
    sub = gateway.subscribe(TENANT_ID, ALICE)
    watcher = UnreadWatcher(sub, _factory(uow), interval=30, clock=FixedClock())

    assert await watcher.check_once() is True
    assert await watcher.check_once() is False

    uow.messages._messages[2] = make_message(message_id=2)
    assert await watcher.check_once() is True

    first = await sub.get(timeout=0.1)
    second = await sub.get(timeout=0.1)
    assert (first.type, first.data.count) == ("unread:update", 1)
    assert second.data.count == 2
    assert await sub.get(timeout=0.01) is None


@pytest.mark.asyncio
async def test_update_goes_to_the_watched_connection_only(uow):
    gateway = EventGateway()
    mine = gateway.subscribe(TENANT_ID, ALICE)
    other = gateway.subscribe(TENANT_ID, "carol@harbor.dev")

    await UnreadWatcher(mine, _factory(uow), interval=30).check_once()

    assert (await mine.get(timeout=0.1)).data.count == 1
    assert await other.get(timeout=0.01) is None
