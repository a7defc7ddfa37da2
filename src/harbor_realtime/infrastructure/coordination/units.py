"""Stateful coordination units.

A unit owns all state for one named entity. The registry guarantees a single
instance per name and runs every request for it under ``unit.lock``, so
handlers here never race on their own fields.
"""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar

from fastapi import WebSocket

from harbor_realtime.application.dto.forwarding import ForwardedRequest, UnitResponse
from harbor_realtime.application.ports.clock import Clock, isoformat_now
from harbor_realtime.application.ports.storage import UnitStorage
from harbor_realtime.domain.value_objects.enums import EntityType
from harbor_realtime.infrastructure.ws.manager import SocketGroup
from harbor_realtime.infrastructure.ws.protocol import WsInbound

if TYPE_CHECKING:
    from harbor_realtime.infrastructure.coordination.registry import CoordinationRegistry

logger = logging.getLogger(__name__)

Handler = Callable[[ForwardedRequest], Awaitable[UnitResponse]]


def _has_message_body(body: dict[str, Any]) -> bool:
    return bool(str(body.get("content") or "").strip() or body.get("mediaFileId"))


class CoordinationUnit:
    entity_type: ClassVar[EntityType]

    def __init__(
        self,
        address: str,
        name: str,
        storage: UnitStorage,
        registry: CoordinationRegistry,
        clock: Clock | None = None,
    ) -> None:
        self.address = address
        self.name = name
        self.lock = asyncio.Lock()
        self.sockets = SocketGroup()
        self._storage = storage
        self._registry = registry
        self._clock = clock
        self._loaded = False

    async def ensure_loaded(self) -> None:
        if self._loaded:
            return
        state = await self._storage.load(self.address)
        self._restore(state or {})
        self._loaded = True
        logger.debug("%s unit %s loaded", self.entity_type, self.name)

    async def persist(self) -> None:
        await self._storage.save(self.address, self._dump())

    def _now(self) -> str:
        return isoformat_now(self._clock)

    def _restore(self, state: dict[str, Any]) -> None:
        raise NotImplementedError

    def _dump(self) -> dict[str, Any]:
        raise NotImplementedError

    def _handlers(self) -> dict[str, Handler]:
        raise NotImplementedError

    async def fetch(self, request: ForwardedRequest) -> UnitResponse:
        handler = self._handlers().get(request.action)
        if handler is None:
            return UnitResponse.text(400, f"Unsupported action: {request.action or '/'}")
        try:
            return await handler(request)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return UnitResponse.text(400, "Invalid JSON body")

    async def websocket_over_http(self, request: ForwardedRequest) -> UnitResponse:
        return UnitResponse.text(400, "WebSocket upgrade required")

    async def attach_socket(self, ws: WebSocket, user_email: str, query: dict[str, str]) -> None:
        self.sockets.add(ws, user_email)

    async def detach_socket(self, ws: WebSocket, user_email: str) -> None:
        self.sockets.remove(ws, user_email)

    async def on_socket_message(self, user_email: str, message: WsInbound) -> None:
        if message.type == "ping":
            await self.sockets.send_to(user_email, "pong", {})
        else:
            await self.sockets.send_to(
                user_email, "error", {"code": "unknown_type", "type": message.type},
            )


class WorkflowUnit(CoordinationUnit):
    """Live side of one workflow: participants, message log and attached sockets."""

    entity_type = EntityType.WORKFLOW

    def __init__(self, *args: Any, max_messages: int = 500, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._max_messages = max_messages
        self.tenant_id: str | None = None
        self.participants: list[str] = []
        self.messages: list[dict[str, Any]] = []

    def _restore(self, state: dict[str, Any]) -> None:
        self.tenant_id = state.get("tenantId")
        self.participants = list(state.get("participants", []))
        self.messages = list(state.get("messages", []))

    def _dump(self) -> dict[str, Any]:
        return {
            "tenantId": self.tenant_id,
            "participants": self.participants,
            "messages": self.messages,
        }

    def _handlers(self) -> dict[str, Handler]:
        return {
            "": self._summary,
            "messages": self._messages,
            "notification": self._notification,
            "check": self._check,
            "cleanup": self._cleanup,
            "websocket": self.websocket_over_http,
        }

    def _join(self, user_email: str | None, tenant_id: str | None) -> bool:
        changed = False
        if tenant_id and self.tenant_id is None:
            self.tenant_id = tenant_id
            changed = True
        if user_email and user_email not in self.participants:
            self.participants.append(user_email)
            changed = True
        return changed

    async def _summary(self, request: ForwardedRequest) -> UnitResponse:
        return UnitResponse.json({
            "workflowId": self.name,
            "tenantId": self.tenant_id,
            "participants": self.participants,
            "messageCount": len(self.messages),
            "connected": self.sockets.users,
        })

    async def _messages(self, request: ForwardedRequest) -> UnitResponse:
        if request.method == "GET":
            messages = self.messages
            status = request.query.get("status")
            if status:
                messages = [m for m in messages if m.get("status", "sent") == status]
            return UnitResponse.json({"workflowId": self.name, "messages": messages})
        if request.method != "POST":
            return UnitResponse.text(400, "Unsupported method")

        body = request.json()
        if not isinstance(body, dict):
            return UnitResponse.text(400, "Invalid message payload")
        if not _has_message_body(body):
            return UnitResponse.text(400, "Message content is required")
        record = await self.post_message(request.query.get("userEmail", ""), body, request.query.get("tenantId"))
        return UnitResponse.json(record, status=201)

    async def post_message(
        self,
        sender_email: str,
        body: dict[str, Any],
        tenant_id: str | None = None,
    ) -> dict[str, Any]:
        """Append to the log, broadcast to sockets and notify the other participants."""
        self._join(sender_email, tenant_id)
        record = {
            "id": str(uuid.uuid4()),
            "workflowId": self.name,
            "senderEmail": sender_email,
            "messageType": body.get("messageType") or body.get("type") or "message",
            "content": str(body.get("content") or ""),
            "mediaFileId": body.get("mediaFileId"),
            "shareToken": body.get("shareToken"),
            "createdAt": self._now(),
        }
        self.messages.append(record)
        if len(self.messages) > self._max_messages:
            del self.messages[: len(self.messages) - self._max_messages]
        await self.persist()

        await self.sockets.broadcast("message", record, timestamp=record["createdAt"])
        await self._notify_participants(record)
        return record

    async def _notify_participants(self, record: dict[str, Any]) -> None:
        payload = json.dumps({
            "type": "new_workflow_message",
            "data": {
                "workflowId": self.name,
                "messageId": record["id"],
                "senderEmail": record["senderEmail"],
                "messageContent": record["content"],
                "timestamp": record["createdAt"],
            },
        }).encode()
        for email in self.participants:
            if email == record["senderEmail"]:
                continue
            try:
                await self._registry.dispatch(
                    EntityType.NOTIFICATIONS,
                    email,
                    ForwardedRequest(
                        method="POST",
                        action="notification",
                        query={"userEmail": email},
                        headers={"content-type": "application/json"},
                        body=payload,
                    ),
                )
            except Exception:
                logger.exception("Failed to notify %s about workflow %s", email, self.name)

    async def _notification(self, request: ForwardedRequest) -> UnitResponse:
        body = request.json()
        if not isinstance(body, dict) or not body.get("type"):
            return UnitResponse.text(400, "Notification type is required")
        await self.sockets.broadcast(str(body["type"]), body.get("data") or {}, timestamp=self._now())
        return UnitResponse.text(200, "OK")

    async def _check(self, request: ForwardedRequest) -> UnitResponse:
        user_email = request.query.get("userEmail", "")
        return UnitResponse.json({"userEmail": user_email, "connected": self.sockets.is_connected(user_email)})

    async def _cleanup(self, request: ForwardedRequest) -> UnitResponse:
        return UnitResponse.json({"removed": self.sockets.prune()})

    async def attach_socket(self, ws: WebSocket, user_email: str, query: dict[str, str]) -> None:
        await super().attach_socket(ws, user_email, query)
        if self._join(user_email, query.get("tenantId")):
            await self.persist()

    async def detach_socket(self, ws: WebSocket, user_email: str) -> None:
        if self.sockets.remove(ws, user_email):
            await self.sockets.broadcast(
                "participant_left",
                {"userEmail": user_email, "workflowId": self.name},
                timestamp=self._now(),
            )

    async def on_socket_message(self, user_email: str, message: WsInbound) -> None:
        if message.type == "message":
            if not _has_message_body(message.data):
                await self.sockets.send_to(
                    user_email, "error", {"code": "invalid_message", "message": "Message content is required"},
                )
                return
            await self.post_message(user_email, message.data)
        elif message.type in ("typing_start", "typing_stop"):
            await self.sockets.broadcast(
                message.type,
                {"userEmail": user_email, "workflowId": self.name},
                timestamp=self._now(),
            )
        else:
            await super().on_socket_message(user_email, message)


class NotificationsUnit(CoordinationUnit):
    """One user's workflow notification feed."""

    entity_type = EntityType.NOTIFICATIONS

    def __init__(self, *args: Any, max_stored: int = 100, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._max_stored = max_stored
        self.notifications: list[dict[str, Any]] = []

    def _restore(self, state: dict[str, Any]) -> None:
        self.notifications = list(state.get("notifications", []))

    def _dump(self) -> dict[str, Any]:
        return {"notifications": self.notifications}

    def _handlers(self) -> dict[str, Handler]:
        return {
            "notification": self._notification,
            "clear": self._clear,
            "check": self._check,
            "websocket": self.websocket_over_http,
        }

    async def _notification(self, request: ForwardedRequest) -> UnitResponse:
        body = request.json()
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            return UnitResponse.text(400, "Notification data is required")
        notification = {
            "id": str(uuid.uuid4()),
            "workflowId": data.get("workflowId"),
            "messageId": data.get("messageId"),
            "senderEmail": data.get("senderEmail"),
            "messageContent": data.get("messageContent"),
            "timestamp": data.get("timestamp") or self._now(),
        }
        self.notifications.append(notification)
        if len(self.notifications) > self._max_stored:
            del self.notifications[: len(self.notifications) - self._max_stored]
        await self.persist()
        await self.sockets.broadcast(
            body.get("type") or "new_workflow_message", notification, timestamp=self._now(),
        )
        return UnitResponse.text(200, "OK")

    async def _clear(self, request: ForwardedRequest) -> UnitResponse:
        self.notifications = []
        await self.persist()
        return UnitResponse.text(200, "Notifications cleared")

    async def _check(self, request: ForwardedRequest) -> UnitResponse:
        return UnitResponse.json({"count": len(self.notifications), "notifications": self.notifications})
