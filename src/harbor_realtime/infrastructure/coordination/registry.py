from __future__ import annotations

import functools
import hashlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import WebSocket

from harbor_realtime.application.dto.forwarding import ForwardedRequest, UnitResponse
from harbor_realtime.application.ports.clock import Clock
from harbor_realtime.application.ports.storage import UnitStorage
from harbor_realtime.config import Settings
from harbor_realtime.domain.value_objects.enums import EntityType
from harbor_realtime.infrastructure.coordination.units import (
    CoordinationUnit,
    NotificationsUnit,
    WorkflowUnit,
)
from harbor_realtime.infrastructure.ws.protocol import WsInbound

logger = logging.getLogger(__name__)

UnitFactory = Callable[..., CoordinationUnit]


def stable_address(entity_type: EntityType | str, name: str) -> str:
    """Deterministic unit address: same type and name always map to the same unit."""
    return hashlib.sha256(f"{EntityType(entity_type)}:{name}".encode()).hexdigest()


class CoordinationRegistry:
    """Owns one live unit per address and serializes access to it."""

    def __init__(
        self,
        storage: UnitStorage,
        factories: dict[EntityType, UnitFactory],
        clock: Clock | None = None,
    ) -> None:
        self._storage = storage
        self._factories = factories
        self._clock = clock
        self._units: dict[str, CoordinationUnit] = {}
        self._pending: dict[str, int] = {}

    def __contains__(self, entity_type: object) -> bool:
        try:
            return EntityType(entity_type) in self._factories
        except ValueError:
            return False

    def get(self, entity_type: EntityType | str, name: str) -> CoordinationUnit:
        entity_type = EntityType(entity_type)
        address = stable_address(entity_type, name)
        unit = self._units.get(address)
        if unit is None:
            factory = self._factories[entity_type]
            unit = factory(address, name, self._storage, self, clock=self._clock)
            self._units[address] = unit
            logger.debug("Created %s unit %s (%s)", entity_type, name, address[:12])
        return unit

    def __len__(self) -> int:
        return len(self._units)

    @asynccontextmanager
    async def _hold(self, unit: CoordinationUnit) -> AsyncIterator[CoordinationUnit]:
        """Run under the unit's lock; drop the unit afterwards if nothing else needs it.

        State is persisted after every mutation, so an evicted unit is rebuilt from
        storage on the next ``get``. Units with open sockets or queued callers stay.
        """
        self._pending[unit.address] = self._pending.get(unit.address, 0) + 1
        try:
            async with unit.lock:
                await unit.ensure_loaded()
                yield unit
        finally:
            remaining = self._pending[unit.address] - 1
            if remaining:
                self._pending[unit.address] = remaining
            else:
                del self._pending[unit.address]
                if not len(unit.sockets) and self._units.get(unit.address) is unit:
                    del self._units[unit.address]
                    logger.debug("Evicted idle %s unit %s", unit.entity_type, unit.name)

    async def dispatch(
        self,
        entity_type: EntityType | str,
        name: str,
        request: ForwardedRequest,
    ) -> UnitResponse:
        async with self._hold(self.get(entity_type, name)) as unit:
            return await unit.fetch(request)

    async def connect_socket(
        self,
        entity_type: EntityType | str,
        name: str,
        ws: WebSocket,
        user_email: str,
        query: dict[str, str],
    ) -> CoordinationUnit:
        async with self._hold(self.get(entity_type, name)) as unit:
            await unit.attach_socket(ws, user_email, query)
        return unit

    async def socket_message(self, unit: CoordinationUnit, user_email: str, message: WsInbound) -> None:
        async with self._hold(unit):
            await unit.on_socket_message(user_email, message)

    async def disconnect_socket(self, unit: CoordinationUnit, ws: WebSocket, user_email: str) -> None:
        async with self._hold(unit):
            await unit.detach_socket(ws, user_email)


def build_registry(storage: UnitStorage, settings: Settings, clock: Clock | None = None) -> CoordinationRegistry:
    return CoordinationRegistry(
        storage,
        {
            EntityType.WORKFLOW: functools.partial(
                WorkflowUnit, max_messages=settings.WORKFLOW_MAX_STORED_MESSAGES,
            ),
            EntityType.NOTIFICATIONS: functools.partial(
                NotificationsUnit, max_stored=settings.NOTIFICATIONS_MAX_STORED,
            ),
        },
        clock=clock,
    )
