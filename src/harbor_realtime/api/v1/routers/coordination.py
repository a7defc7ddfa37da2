from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from harbor_realtime.api.deps import CoordinationRouterDep, RegistryDep
from harbor_realtime.application.dto.forwarding import UnitResponse
from harbor_realtime.application.exceptions import AppError, UnauthorizedError
from harbor_realtime.config import settings
from harbor_realtime.infrastructure.coordination.registry import CoordinationRegistry
from harbor_realtime.infrastructure.coordination.units import CoordinationUnit
from harbor_realtime.infrastructure.ws.protocol import WsInbound, WsOutbound

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coordination", tags=["coordination"])

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _to_response(result: UnitResponse) -> Response:
    if result.media_type == "application/json":
        return JSONResponse(status_code=result.status, content=result.body)
    return PlainTextResponse(str(result.body or ""), status_code=result.status, media_type=result.media_type)


@router.api_route("/{path:path}", methods=_METHODS)
async def route_to_unit(
    path: str,
    request: Request,
    coordination: CoordinationRouterDep,
) -> Response:
    result = await coordination.route(
        path,
        request.method,
        dict(request.headers),
        dict(request.query_params),
        await request.body(),
    )
    return _to_response(result)


@router.websocket("/{entity_type}/{entity_name}/websocket")
async def unit_socket(
    websocket: WebSocket,
    entity_type: str,
    entity_name: str,
    coordination: CoordinationRouterDep,
    registry: RegistryDep,
    token: str | None = Query(None),
    tenant_id: str | None = Query(None, alias="tenantId"),
) -> None:
    try:
        kind, user_email, query = await coordination.authorize_socket(
            entity_type, entity_name, token, tenant_id,
        )
    except AppError as exc:
        code = 4401 if isinstance(exc, UnauthorizedError) else 4400
        await websocket.close(code=code, reason=exc.detail)
        return

    await websocket.accept()
    unit = await registry.connect_socket(kind, entity_name, websocket, user_email, query)
    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"coord-heartbeat-{entity_type}-{entity_name}",
    )
    try:
        await _read_loop(websocket, registry, unit, user_email)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Coordination socket error: %s/%s user=%s", entity_type, entity_name, user_email)
    finally:
        heartbeat_task.cancel()
        await registry.disconnect_socket(unit, websocket, user_email)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Heartbeat stopped", exc_info=True)


async def _read_loop(
    ws: WebSocket,
    registry: CoordinationRegistry,
    unit: CoordinationUnit,
    user_email: str,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            await ws.send_text(
                WsOutbound(type="error", data={"code": "invalid_payload"}).model_dump_json()
            )
            continue
        await registry.socket_message(unit, user_email, msg)
