"""Routing of ``/{entityType}/{entityName}/{action?}`` requests to coordination units.

All validation happens in :meth:`CoordinationRouter.prepare`; nothing reaches
a unit until the path, credential and tenant checks have passed.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Mapping

from harbor_realtime.application.dto.forwarding import ForwardedRequest, UnitResponse
from harbor_realtime.application.exceptions import BadRequestError, UnauthorizedError
from harbor_realtime.application.ports.auth import TokenVerifier
from harbor_realtime.domain.value_objects.enums import EntityType
from harbor_realtime.infrastructure.coordination.registry import CoordinationRegistry

logger = logging.getLogger(__name__)

KNOWN_ACTIONS: dict[EntityType, frozenset[str]] = {
    EntityType.WORKFLOW: frozenset({"messages", "websocket", "notification", "check", "cleanup"}),
    EntityType.NOTIFICATIONS: frozenset({"clear", "check", "websocket", "notification"}),
}

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
_HOP_HEADERS = frozenset({"host", "content-length"})


@dataclass(frozen=True, slots=True)
class RouteTarget:
    entity_type: EntityType
    entity_name: str
    action: str


def parse_path(path: str) -> RouteTarget:
    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        raise BadRequestError("Invalid path. Expected /{entityType}/{entityName}/{action?}")
    try:
        entity_type = EntityType(segments[0])
    except ValueError:
        raise BadRequestError(f"Unknown entity type: {segments[0]}") from None

    action = segments[2] if len(segments) > 2 else ""
    if action not in KNOWN_ACTIONS[entity_type]:
        action = ""
    return RouteTarget(entity_type, segments[1], action)


def extract_bearer(headers: Mapping[str, str]) -> str | None:
    raw = next((v for k, v in headers.items() if k.lower() == "authorization"), None)
    if not raw:
        return None
    scheme, _, value = raw.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def resolve_tenant(method: str, query: Mapping[str, str], body: bytes) -> str | None:
    """Tenant id from the query string, or from a JSON body on write methods."""
    tenant_id = query.get("tenantId")
    if tenant_id:
        return tenant_id
    if method.upper() not in _BODY_METHODS or not body:
        return None
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(payload, dict) and payload.get("tenantId"):
        return str(payload["tenantId"])
    return None


class CoordinationRouter:
    def __init__(self, registry: CoordinationRegistry, verifier: TokenVerifier) -> None:
        self._registry = registry
        self._verifier = verifier

    async def _identify(self, token: str | None) -> str:
        if not token:
            raise UnauthorizedError("Unauthorized")
        try:
            principal = await self._verifier.verify(token)
        except Exception as exc:
            logger.debug("Coordination auth failed: %s", exc)
            raise UnauthorizedError("Unauthorized") from exc
        return principal.email

    async def prepare(
        self,
        path: str,
        method: str,
        headers: Mapping[str, str],
        query: Mapping[str, str],
        body: bytes = b"",
    ) -> tuple[RouteTarget, ForwardedRequest]:
        """Validate the request and build what the owning unit will see.

        Raises :class:`BadRequestError` or :class:`UnauthorizedError`.
        """
        target = parse_path(path)
        method = method.upper()

        if target.entity_type == EntityType.WORKFLOW:
            user_email = await self._identify(extract_bearer(headers))
            tenant_id = resolve_tenant(method, query, body)
            if not tenant_id:
                raise BadRequestError("tenantId is required")
            forwarded_query = {
                "userEmail": user_email,
                "tenantId": tenant_id,
                "workflowId": target.entity_name,
            }
            if query.get("status"):
                forwarded_query["status"] = query["status"]
        else:
            forwarded_query = {"userEmail": target.entity_name}

        forwarded = ForwardedRequest(
            method=method,
            action=target.action,
            query=forwarded_query,
            headers={k.lower(): v for k, v in headers.items() if k.lower() not in _HOP_HEADERS},
            body=body,
        )
        return target, forwarded

    async def route(
        self,
        path: str,
        method: str,
        headers: Mapping[str, str],
        query: Mapping[str, str],
        body: bytes = b"",
    ) -> UnitResponse:
        target, forwarded = await self.prepare(path, method, headers, query, body)
        try:
            return await self._registry.dispatch(target.entity_type, target.entity_name, forwarded)
        except Exception:
            logger.exception(
                "Coordination forwarding failed for %s/%s/%s",
                target.entity_type, target.entity_name, target.action,
            )
            return UnitResponse.text(500, "Internal server error")

    async def authorize_socket(
        self,
        entity_type: str,
        entity_name: str,
        token: str | None,
        tenant_id: str | None,
    ) -> tuple[EntityType, str, dict[str, str]]:
        """Same checks as :meth:`prepare` for a socket upgrade; returns type, user and query."""
        target = parse_path(f"{entity_type}/{entity_name}/websocket")
        if target.entity_type == EntityType.WORKFLOW:
            user_email = await self._identify(token)
            if not tenant_id:
                raise BadRequestError("tenantId is required")
            return target.entity_type, user_email, {"tenantId": tenant_id, "workflowId": entity_name}
        return target.entity_type, entity_name, {"userEmail": entity_name}
