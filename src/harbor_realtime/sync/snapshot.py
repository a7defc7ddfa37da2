from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from harbor_realtime.domain.entities.message import MessageSummary

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """The snapshot could not be fetched; prior state should be kept."""


class SnapshotAuthError(SnapshotError):
    """401/403: the caller has no unread data to show, which is not a failure."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"snapshot denied with HTTP {status_code}")


@dataclass(frozen=True, slots=True)
class TenantRef:
    id: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class Snapshot:
    unread_count: int
    tenant_id: str | None = None
    tenant_name: str | None = None
    recent: list[MessageSummary] = field(default_factory=list)
    timestamp: str | None = None


class SnapshotSource(Protocol):
    async def fetch(self) -> Snapshot: ...

    async def user_tenants(self) -> list[TenantRef]: ...


def _summary_from_wire(raw: dict[str, Any]) -> MessageSummary:
    if not isinstance(raw, dict):
        raise TypeError(f"recent message must be an object, got {type(raw).__name__}")
    return MessageSummary(
        id=int(raw["Id"]),
        subject=raw.get("Subject") or "",
        sender_email=raw.get("SenderEmail") or "",
        sender_name=raw.get("SenderName"),
        created_at=raw.get("CreatedAt") or "",
        has_attachments=bool(raw.get("HasAttachments", False)),
        attachment_count=int(raw.get("AttachmentCount") or 0),
    )


def snapshot_from_wire(body: dict[str, Any]) -> Snapshot:
    """Raises ``TypeError`` or ``ValueError`` when ``body`` is not a snapshot object."""
    if not isinstance(body, dict):
        raise TypeError(f"snapshot must be an object, got {type(body).__name__}")
    return Snapshot(
        unread_count=int(body.get("unreadCount") or 0),
        tenant_id=body.get("tenantId") or None,
        tenant_name=body.get("tenantName"),
        recent=[_summary_from_wire(m) for m in body.get("recentUnreadMessages") or []],
        timestamp=body.get("timestamp"),
    )


class HttpSnapshotSource:
    """Reads the snapshot and tenant list over HTTP with a shared httpx client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        snapshot_path: str = "/api/messaging/unread-count",
        tenants_path: str = "/api/user/tenants",
    ) -> None:
        self._client = client
        self._snapshot_path = snapshot_path
        self._tenants_path = tenants_path

    async def fetch(self) -> Snapshot:
        try:
            response = await self._client.get(self._snapshot_path)
        except httpx.HTTPError as exc:
            raise SnapshotError(f"snapshot request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise SnapshotAuthError(response.status_code)
        if response.status_code != 200:
            raise SnapshotError(f"snapshot returned HTTP {response.status_code}")
        try:
            return snapshot_from_wire(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise SnapshotError(f"malformed snapshot: {exc}") from exc

    async def user_tenants(self) -> list[TenantRef]:
        try:
            response = await self._client.get(self._tenants_path)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Tenant lookup failed: %s", exc)
            return []
        if not isinstance(body, list):
            logger.debug("Tenant lookup returned %s, expected a list", type(body).__name__)
            return []
        return [
            TenantRef(id=str(t["id"]), name=t.get("name") or "")
            for t in body
            if isinstance(t, dict) and t.get("id")
        ]
