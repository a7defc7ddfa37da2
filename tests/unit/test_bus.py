from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from harbor_realtime.api.deps import get_gateway
from harbor_realtime.app import _on_pubsub_event
from harbor_realtime.infrastructure.bus.serializer import deserialize_envelope, serialize_envelope
from tests.conftest import ALICE, BOB


def test_envelope_wire_form():
    raw = serialize_envelope({
        "event_type": "message:read",
        "tenant_id": "tenant-1",
        "data": {"messageId": 3, "readAt": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    })

    assert json.loads(raw)["data"]["readAt"] == "2024-01-01T00:00:00+00:00"
    assert deserialize_envelope(raw)[:2] == ("message:read", "tenant-1")


def test_envelope_without_tenant_is_rejected():
    with pytest.raises(ValueError):
        deserialize_envelope(json.dumps({"event_type": "message:new", "data": {}}))


@pytest.mark.asyncio
async def test_pubsub_envelope_reaches_tenant_streams():
    gateway = get_gateway()
    mine = gateway.subscribe("tenant-bus", ALICE)
    other = gateway.subscribe("tenant-elsewhere", ALICE)
    try:
        await _on_pubsub_event("message:new", "tenant-bus", {
            "messageId": 11,
            "senderEmail": BOB,
            "recipients": [ALICE],
            "timestamp": "2024-01-01T00:00:00+00:00",
        })

        event = await mine.get(timeout=0.1)
        assert event.type == "message:new"
        assert event.data.message_id == 11
        assert await other.get(timeout=0.01) is None
    finally:
        gateway.unsubscribe(mine)
        gateway.unsubscribe(other)


@pytest.mark.asyncio
async def test_malformed_pubsub_event_is_dropped(caplog):
    gateway = get_gateway()
    sub = gateway.subscribe("tenant-bus", ALICE)
    try:
        with caplog.at_level(logging.WARNING):
            await _on_pubsub_event("message:new", "tenant-bus", {"messageId": "not-a-number"})
        assert await sub.get(timeout=0.01) is None
        assert "Dropping malformed" in caplog.text
    finally:
        gateway.unsubscribe(sub)
