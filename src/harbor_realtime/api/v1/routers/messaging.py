from __future__ import annotations

from fastapi import APIRouter, Response

from harbor_realtime.api.deps import CurrentPrincipal, UoWDep
from harbor_realtime.api.v1.schemas.messaging import (
    MarkReadResponse,
    MessageResponse,
    SendMessageRequest,
    TenantResponse,
    UnreadSnapshotResponse,
)
from harbor_realtime.application.dto.message import SendMessageDTO
from harbor_realtime.config import settings
from harbor_realtime.services import messaging_service, unread_service

router = APIRouter(prefix="/api", tags=["messaging"])


@router.get("/messaging/unread-count", response_model=UnreadSnapshotResponse)
async def unread_snapshot(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadSnapshotResponse:
    snapshot = await unread_service.get_snapshot(
        principal, uow, recent_limit=settings.SNAPSHOT_RECENT_LIMIT,
    )
    return UnreadSnapshotResponse.from_snapshot(snapshot)


@router.get("/user/tenants", response_model=list[TenantResponse])
async def user_tenants(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[TenantResponse]:
    tenants = await unread_service.list_user_tenants(principal, uow)
    return [TenantResponse.model_validate(t, from_attributes=True) for t in tenants]


@router.post("/messaging/send", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await messaging_service.send_message(
        principal,
        SendMessageDTO(
            tenant_id=body.tenant_id,
            subject=body.subject,
            body=body.body,
            recipients=body.recipients,
        ),
        uow,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)


@router.post("/messaging/messages/{message_id}/read", response_model=MarkReadResponse)
async def mark_read(
    message_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MarkReadResponse:
    changed = await messaging_service.mark_read(message_id, principal, uow)
    return MarkReadResponse(message_id=message_id, changed=changed)


@router.delete("/messaging/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await messaging_service.delete_message(message_id, principal, uow)
    return Response(status_code=204)
