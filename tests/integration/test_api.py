"""Integration smoke tests for the HTTP surface (fake UoW and in-memory units via dependency override)."""
from __future__ import annotations

import json

import jwt
import pytest
from fastapi.testclient import TestClient

from harbor_realtime.api.deps import get_registry, get_uow
from harbor_realtime.app import create_app
from harbor_realtime.config import settings
from harbor_realtime.infrastructure.coordination.registry import build_registry
from harbor_realtime.infrastructure.coordination.storage import MemoryUnitStorage
from tests.conftest import ALICE, BOB, TENANT_ID, FakeUoW, make_message


def _make_token(email: str = ALICE, role: str = "subscriber") -> str:
    return jwt.encode(
        {"sub": email, "email": email, "role": role},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def _auth(email: str = ALICE, role: str = "subscriber") -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(email, role)}"}


@pytest.fixture
def app_with_uow():
    app = create_app()
    uow = FakeUoW()
    uow.tenants.add(TENANT_ID, ALICE, name="Harbor One")
    uow.tenants.add(TENANT_ID, BOB, name="Harbor One")
    registry = build_registry(MemoryUnitStorage(), settings)

    async def _override():
        yield uow

    app.dependency_overrides[get_uow] = _override
    app.dependency_overrides[get_registry] = lambda: registry
    return app, uow


@pytest.fixture
def client(app_with_uow):
    app, _ = app_with_uow
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def uow(app_with_uow):
    _, uow = app_with_uow
    return uow


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_request_id_is_echoed(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"


# -- unread snapshot ---------------------------------------------------------


def test_unread_snapshot_shape(client, uow):
    uow.messages._messages[1] = make_message(message_id=1, subject="Quarterly report")

    resp = client.get("/api/messaging/unread-count", headers=_auth())

    assert resp.status_code == 200
    data = resp.json()
    assert data["unreadCount"] == 1
    assert data["tenantId"] == TENANT_ID
    assert data["tenantName"] == "Harbor One"
    assert "timestamp" in data
    recent = data["recentUnreadMessages"][0]
    assert recent["Id"] == 1
    assert recent["Subject"] == "Quarterly report"
    assert recent["SenderEmail"] == BOB


def test_unread_snapshot_requires_token(client):
    resp = client.get("/api/messaging/unread-count")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_unread_snapshot_rejects_bad_token(client):
    resp = client.get("/api/messaging/unread-count", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_unread_snapshot_is_for_subscribers(client):
    resp = client.get("/api/messaging/unread-count", headers=_auth(role="admin"))
    assert resp.status_code == 403


def test_unread_snapshot_without_tenant(client):
    resp = client.get("/api/messaging/unread-count", headers=_auth("nobody@harbor.dev"))
    assert resp.status_code == 404


def test_user_tenants(client):
    resp = client.get("/api/user/tenants", headers=_auth())
    assert resp.status_code == 200
    assert resp.json() == [{"id": TENANT_ID, "name": "Harbor One"}]


# -- message commands --------------------------------------------------------


def test_send_message_writes_outbox(client, uow):
    resp = client.post(
        "/api/messaging/send",
        headers=_auth(BOB),
        json={"tenantId": TENANT_ID, "subject": "Hello", "body": "hi", "recipients": [ALICE]},
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["senderEmail"] == BOB
    assert data["recipients"] == [ALICE]
    assert uow.outbox._records[0]["event_type"] == "message:new"


def test_send_message_requires_recipients(client):
    resp = client.post(
        "/api/messaging/send",
        headers=_auth(BOB),
        json={"tenantId": TENANT_ID, "subject": "Hello", "recipients": []},
    )
    assert resp.status_code == 422


def test_send_message_to_foreign_tenant(client):
    resp = client.post(
        "/api/messaging/send",
        headers=_auth(BOB),
        json={"tenantId": "tenant-other", "subject": "Hello", "recipients": [ALICE]},
    )
    assert resp.status_code == 403


def test_mark_read_then_delete(client, uow):
    uow.messages._messages[1] = make_message(message_id=1)

    first = client.post("/api/messaging/messages/1/read", headers=_auth())
    again = client.post("/api/messaging/messages/1/read", headers=_auth())

    assert first.json() == {"messageId": 1, "changed": True}
    assert again.json()["changed"] is False

    assert client.delete("/api/messaging/messages/1", headers=_auth()).status_code == 403
    assert client.delete("/api/messaging/messages/1", headers=_auth(BOB)).status_code == 204
    assert client.post("/api/messaging/messages/1/read", headers=_auth()).status_code == 404


# -- event stream ------------------------------------------------------------


def test_stream_requires_token(client):
    assert client.get(f"/api/messaging/stream/{TENANT_ID}").status_code == 401


def test_stream_rejects_non_member(client):
    resp = client.get(f"/api/messaging/stream/tenant-other?token={_make_token()}")
    assert resp.status_code == 403


# -- coordination ------------------------------------------------------------


def test_coordination_short_path(client):
    resp = client.get("/coordination/workflow")
    assert resp.status_code == 400


def test_coordination_unknown_entity_type(client):
    resp = client.get("/coordination/chatroom/abc", headers=_auth())
    assert resp.status_code == 400


def test_coordination_workflow_requires_bearer(client):
    resp = client.get(f"/coordination/workflow/wf-1/messages?tenantId={TENANT_ID}")
    assert resp.status_code == 401


def test_coordination_workflow_requires_tenant(client):
    resp = client.get("/coordination/workflow/wf-1/messages", headers=_auth())
    assert resp.status_code == 400


def test_coordination_workflow_message_notifies_participants(client):
    bob_post = client.post(
        "/coordination/workflow/wf-1/messages",
        headers=_auth(BOB),
        content=json.dumps({"tenantId": TENANT_ID, "content": "draft ready"}),
    )
    alice_post = client.post(
        "/coordination/workflow/wf-1/messages",
        headers=_auth(ALICE),
        content=json.dumps({"tenantId": TENANT_ID, "content": "looking now"}),
    )
    listed = client.get(f"/coordination/workflow/wf-1/messages?tenantId={TENANT_ID}", headers=_auth())
    feed = client.get(f"/coordination/notifications/{BOB}/check")

    assert bob_post.status_code == 201
    assert alice_post.json()["senderEmail"] == ALICE
    assert [m["content"] for m in listed.json()["messages"]] == ["draft ready", "looking now"]
    assert feed.json()["count"] == 1
    assert feed.json()["notifications"][0]["messageContent"] == "looking now"


def test_coordination_notifications_clear(client):
    resp = client.post(f"/coordination/notifications/{ALICE}/clear")
    assert resp.status_code == 200
    assert resp.text == "Notifications cleared"


def test_coordination_forwarding_failure_is_generic(app_with_uow):
    app, _ = app_with_uow

    class BrokenRegistry:
        async def dispatch(self, entity_type, name, request):
            raise RuntimeError("unit storage unavailable")

    app.dependency_overrides[get_registry] = lambda: BrokenRegistry()
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.get(f"/coordination/notifications/{ALICE}/check")

    assert resp.status_code == 500
    assert resp.text == "Internal server error"


def test_coordination_socket_rejects_missing_token(client):
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/coordination/workflow/wf-1/websocket?tenantId={TENANT_ID}"):
            pass
    assert exc_info.value.code == 4401


def test_coordination_socket_roundtrip(client):
    token = _make_token()
    url = f"/coordination/workflow/wf-1/websocket?tenantId={TENANT_ID}&token={token}"

    with client.websocket_connect(url) as ws:
        ws.send_text(json.dumps({"type": "ping"}))
        assert ws.receive_json()["type"] == "pong"
        ws.send_text(json.dumps({"type": "message", "data": {"content": "over the socket"}}))
        message = ws.receive_json()

    assert message["type"] == "message"
    assert message["data"]["content"] == "over the socket"
