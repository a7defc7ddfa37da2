"""Wire form of outbox envelopes on the Redis channel."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_envelope(envelope: dict[str, Any]) -> str:
    return json.dumps(
        {
            "event_type": envelope.get("event_type", "unknown"),
            "tenant_id": envelope["tenant_id"],
            "data": envelope.get("data") or {},
        },
        cls=_Encoder,
    )


def deserialize_envelope(raw: str | bytes) -> tuple[str, str, dict[str, Any]]:
    """Return ``(event_type, tenant_id, data)``; raises ``ValueError`` on a malformed envelope."""
    envelope = json.loads(raw)
    try:
        return str(envelope["event_type"]), str(envelope["tenant_id"]), envelope.get("data") or {}
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed envelope: {exc}") from exc
