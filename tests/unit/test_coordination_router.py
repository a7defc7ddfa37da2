from __future__ import annotations

import json
import logging

import pytest

from harbor_realtime.application.dto.forwarding import ForwardedRequest, UnitResponse
from harbor_realtime.application.exceptions import BadRequestError, UnauthorizedError
from harbor_realtime.domain.value_objects.enums import EntityType
from harbor_realtime.infrastructure.coordination.registry import stable_address
from harbor_realtime.services.coordination_service import (
    CoordinationRouter,
    parse_path,
    resolve_tenant,
)
from tests.conftest import ALICE, FakeVerifier


class SpyRegistry:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[EntityType, str, ForwardedRequest]] = []
        self._error = error

    async def dispatch(self, entity_type, name, request):
        self.calls.append((entity_type, name, request))
        if self._error:
            raise self._error
        return UnitResponse.json({"ok": True})


@pytest.fixture
def registry():
    return SpyRegistry()


@pytest.fixture
def router(registry):
    return CoordinationRouter(registry, FakeVerifier())


AUTH = {"Authorization": f"Bearer {ALICE}"}


@pytest.mark.parametrize("path", ["", "/", "/workflow", "workflow/"])
def test_short_path_is_rejected(path):
    with pytest.raises(BadRequestError):
        parse_path(path)


def test_unknown_entity_type_is_rejected():
    with pytest.raises(BadRequestError):
        parse_path("/chatroom/abc")


def test_unknown_action_maps_to_default():
    target = parse_path("/workflow/wf-1/launch")
    assert target.action == ""
    assert parse_path("/workflow/wf-1/messages").action == "messages"


@pytest.mark.asyncio
async def test_workflow_without_bearer_is_unauthorized_and_not_forwarded(router, registry):
    with pytest.raises(UnauthorizedError):
        await router.route("/workflow/wf-1/messages", "GET", {}, {"tenantId": "t1"})
    assert registry.calls == []


@pytest.mark.asyncio
async def test_workflow_with_invalid_bearer_is_unauthorized(router, registry):
    with pytest.raises(UnauthorizedError):
        await router.route("/workflow/wf-1", "GET", {"Authorization": "Bearer bad"}, {"tenantId": "t1"})
    with pytest.raises(UnauthorizedError):
        await router.route("/workflow/wf-1", "GET", {"Authorization": "Basic abc"}, {"tenantId": "t1"})
    assert registry.calls == []


@pytest.mark.asyncio
async def test_workflow_post_without_tenant_is_rejected(router, registry):
    body = json.dumps({"content": "hi"}).encode()

    with pytest.raises(BadRequestError):
        await router.route("/workflow/wf-1/messages", "POST", AUTH, {}, body)
    assert registry.calls == []


@pytest.mark.asyncio
async def test_workflow_tenant_from_body_on_post(router, registry):
    body = json.dumps({"tenantId": "t-body", "content": "hi"}).encode()

    result = await router.route("/workflow/wf-1/messages", "POST", AUTH, {}, body)

    assert result.status == 200
    entity_type, name, forwarded = registry.calls[0]
    assert entity_type == EntityType.WORKFLOW
    assert name == "wf-1"
    assert forwarded.query == {"userEmail": ALICE, "tenantId": "t-body", "workflowId": "wf-1"}
    assert forwarded.body == body
    assert forwarded.action == "messages"


def test_tenant_is_not_read_from_body_on_get():
    body = json.dumps({"tenantId": "t-body"}).encode()

    assert resolve_tenant("GET", {}, body) is None
    assert resolve_tenant("PATCH", {}, body) == "t-body"
    assert resolve_tenant("POST", {}, b"{broken") is None
    assert resolve_tenant("POST", {"tenantId": "t-q"}, body) == "t-q"


@pytest.mark.asyncio
async def test_workflow_forwards_status_and_strips_hop_headers(router, registry):
    await router.route(
        "/workflow/wf-1/messages",
        "get",
        {**AUTH, "Host": "edge", "Content-Length": "0", "X-Trace": "1"},
        {"tenantId": "t1", "status": "sent"},
    )

    _, _, forwarded = registry.calls[0]
    assert forwarded.method == "GET"
    assert forwarded.query["status"] == "sent"
    assert "host" not in forwarded.headers
    assert "content-length" not in forwarded.headers
    assert forwarded.headers["x-trace"] == "1"


@pytest.mark.asyncio
async def test_notifications_need_no_auth_and_use_name_as_user(router, registry):
    await router.route("/notifications/bob@harbor.dev/check", "GET", {}, {})

    entity_type, name, forwarded = registry.calls[0]
    assert entity_type == EntityType.NOTIFICATIONS
    assert forwarded.query == {"userEmail": "bob@harbor.dev"}
    assert forwarded.action == "check"


@pytest.mark.asyncio
async def test_forwarding_failure_is_logged_and_generic(caplog):
    router = CoordinationRouter(SpyRegistry(RuntimeError("storage exploded")), FakeVerifier())

    with caplog.at_level(logging.ERROR):
        result = await router.route("/notifications/bob@harbor.dev/check", "GET", {}, {})

    assert result.status == 500
    assert result.body == "Internal server error"
    assert "storage exploded" not in str(result.body)
    assert "Coordination forwarding failed" in caplog.text


@pytest.mark.asyncio
async def test_socket_authorization_mirrors_http_checks(router):
    with pytest.raises(UnauthorizedError):
        await router.authorize_socket("workflow", "wf-1", None, "t1")
    with pytest.raises(BadRequestError):
        await router.authorize_socket("workflow", "wf-1", ALICE, None)
    with pytest.raises(BadRequestError):
        await router.authorize_socket("chatroom", "x", ALICE, "t1")

    kind, user, query = await router.authorize_socket("workflow", "wf-1", ALICE, "t1")
    assert kind == EntityType.WORKFLOW
    assert user == ALICE
    assert query["tenantId"] == "t1"


def test_stable_address_is_deterministic_and_type_scoped():
    assert stable_address("workflow", "abc") == stable_address(EntityType.WORKFLOW, "abc")
    assert stable_address("workflow", "abc") != stable_address("notifications", "abc")
    assert stable_address("workflow", "abc") != stable_address("workflow", "abd")
    assert len(stable_address("workflow", "abc")) == 64
