"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

import redis.asyncio as aioredis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from harbor_realtime.application.dto.principal import Principal
from harbor_realtime.application.exceptions import UnauthorizedError
from harbor_realtime.application.ports.auth import TokenVerifier
from harbor_realtime.application.ports.storage import UnitStorage
from harbor_realtime.config import settings
from harbor_realtime.infrastructure.auth.hs256_verifier import HS256Verifier
from harbor_realtime.infrastructure.auth.identity_verifier import IdentityVerifier
from harbor_realtime.infrastructure.coordination.registry import CoordinationRegistry, build_registry
from harbor_realtime.infrastructure.coordination.storage import MemoryUnitStorage, RedisUnitStorage
from harbor_realtime.infrastructure.db.session import AsyncSessionLocal, open_uow
from harbor_realtime.infrastructure.db.uow import SqlAlchemyUoW
from harbor_realtime.infrastructure.stream.gateway import EventGateway
from harbor_realtime.infrastructure.stream.unread_watcher import UowFactory
from harbor_realtime.services.coordination_service import CoordinationRouter

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def get_uow_factory() -> UowFactory:
    return open_uow


def _get_verifier() -> TokenVerifier:
    if settings.AUTH_MODE == "identity":
        return IdentityVerifier()
    assert settings.JWT_SECRET, "JWT_SECRET must be set when AUTH_MODE=hs256"
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


VerifierDep = Annotated[TokenVerifier, Depends(get_verifier)]


async def authenticate(token: str | None, verifier: TokenVerifier) -> Principal:
    if not token:
        raise UnauthorizedError("Not authenticated")
    try:
        return await verifier.verify(token)
    except Exception as exc:
        raise UnauthorizedError(str(exc) or "Invalid credentials") from exc


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    verifier: VerifierDep,
) -> Principal:
    return await authenticate(credentials.credentials if credentials else None, verifier)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)]


_gateway = EventGateway(queue_size=settings.STREAM_QUEUE_SIZE)


def get_gateway() -> EventGateway:
    return _gateway


GatewayDep = Annotated[EventGateway, Depends(get_gateway)]


def _get_unit_storage() -> UnitStorage:
    if settings.COORDINATION_STORAGE == "memory":
        return MemoryUnitStorage()
    return RedisUnitStorage(aioredis.from_url(settings.REDIS_URL, decode_responses=True))


_registry: CoordinationRegistry | None = None


def get_registry() -> CoordinationRegistry:
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = build_registry(_get_unit_storage(), settings)
    return _registry


RegistryDep = Annotated[CoordinationRegistry, Depends(get_registry)]


def get_coordination_router(registry: RegistryDep, verifier: VerifierDep) -> CoordinationRouter:
    return CoordinationRouter(registry, verifier)


CoordinationRouterDep = Annotated[CoordinationRouter, Depends(get_coordination_router)]
