from __future__ import annotations

import httpx
import pytest

from harbor_realtime.sync.snapshot import HttpSnapshotSource, SnapshotAuthError, SnapshotError


def _source(handler) -> HttpSnapshotSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://harbor.test")
    return HttpSnapshotSource(client)


@pytest.mark.asyncio
async def test_snapshot_is_read_from_wire_aliases():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/messaging/unread-count"
        return httpx.Response(200, json={
            "unreadCount": 2,
            "tenantId": "tenant-1",
            "tenantName": "Harbor One",
            "timestamp": "2024-01-01T00:00:00+00:00",
            "recentUnreadMessages": [
                {"Id": 7, "Subject": "Hi", "SenderEmail": "bob@harbor.dev", "CreatedAt": "2024-01-01T00:00:00+00:00"},
            ],
        })

    snapshot = await _source(handler).fetch()

    assert snapshot.unread_count == 2
    assert snapshot.tenant_id == "tenant-1"
    assert snapshot.recent[0].id == 7
    assert snapshot.recent[0].sender_email == "bob@harbor.dev"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_denied_snapshot_raises_auth_error(status):
    with pytest.raises(SnapshotAuthError) as exc_info:
        await _source(lambda request: httpx.Response(status)).fetch()
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_server_error_raises_snapshot_error():
    with pytest.raises(SnapshotError) as exc_info:
        await _source(lambda request: httpx.Response(500)).fetch()
    assert not isinstance(exc_info.value, SnapshotAuthError)


@pytest.mark.asyncio
async def test_tenant_lookup_failure_is_empty():
    assert await _source(lambda request: httpx.Response(500)).user_tenants() == []

    tenants = await _source(
        lambda request: httpx.Response(200, json=[{"id": "tenant-2", "name": "Two"}, {"name": "no id"}])
    ).user_tenants()
    assert [t.id for t in tenants] == ["tenant-2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[1, 2], "ok", {"unreadCount": 1, "recentUnreadMessages": [3]}])
async def test_snapshot_with_unexpected_shape_is_snapshot_error(body):
    with pytest.raises(SnapshotError) as exc_info:
        await _source(lambda request: httpx.Response(200, json=body)).fetch()
    assert not isinstance(exc_info.value, SnapshotAuthError)


@pytest.mark.asyncio
async def test_tenant_lookup_with_unexpected_shape_is_empty():
    assert await _source(lambda request: httpx.Response(200, json={"id": "tenant-1"})).user_tenants() == []
    assert await _source(lambda request: httpx.Response(200, json=["tenant-1"])).user_tenants() == []
