from __future__ import annotations

from harbor_realtime.domain.events.stream import StreamEvent, dump_event

KEEPALIVE_FRAME = ": keep-alive\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: StreamEvent) -> str:
    return f"data: {dump_event(event)}\n\n"
