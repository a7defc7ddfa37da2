from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from harbor_realtime.api.deps import (
    BearerCredentials,
    GatewayDep,
    UoWDep,
    VerifierDep,
    authenticate,
    get_uow_factory,
)
from harbor_realtime.application.policies.permissions import assert_tenant_member
from harbor_realtime.application.ports.clock import isoformat_now
from harbor_realtime.config import settings
from harbor_realtime.domain.events.stream import ConnectionEstablished, ConnectionEstablishedData
from harbor_realtime.infrastructure.stream.gateway import EventGateway
from harbor_realtime.infrastructure.stream.sse import KEEPALIVE_FRAME, SSE_HEADERS, format_sse
from harbor_realtime.infrastructure.stream.unread_watcher import UnreadWatcher, UowFactory

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/messaging", tags=["stream"])


@router.get("/stream/{tenant_id}")
async def stream_events(
    tenant_id: str,
    credentials: BearerCredentials,
    verifier: VerifierDep,
    uow: UoWDep,
    gateway: GatewayDep,
    uow_factory: UowFactory = Depends(get_uow_factory),
    token: str | None = Query(None),
) -> StreamingResponse:
    # EventSource cannot send headers, so the query token is accepted too.
    principal = await authenticate(credentials.credentials if credentials else token, verifier)
    await assert_tenant_member(principal, tenant_id, uow.tenants)

    established = ConnectionEstablished(
        data=ConnectionEstablishedData(
            tenant_id=tenant_id,
            user_email=principal.email,
            timestamp=isoformat_now(),
        ),
    )
    return StreamingResponse(
        _frames(gateway, established, uow_factory),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def _frames(
    gateway: EventGateway,
    established: ConnectionEstablished,
    uow_factory: UowFactory,
) -> AsyncIterator[str]:
    # The subscription lives exactly as long as the response body.
    sub = gateway.subscribe(established.data.tenant_id, established.data.user_email)
    watcher_task = None
    try:
        if settings.STREAM_UNREAD_POLL_SECONDS > 0:
            watcher = UnreadWatcher(sub, uow_factory, settings.STREAM_UNREAD_POLL_SECONDS)
            watcher_task = asyncio.create_task(
                watcher.run(), name=f"unread-watcher-{sub.tenant_id}-{sub.user_email}",
            )
        async for event in gateway.stream(
            sub, established, idle_timeout=settings.STREAM_HEARTBEAT_SECONDS,
        ):
            yield KEEPALIVE_FRAME if event is None else format_sse(event)
    finally:
        if watcher_task is not None:
            watcher_task.cancel()
        gateway.unsubscribe(sub)
        logger.info("Stream ended: tenant=%s user=%s", sub.tenant_id, sub.user_email)
