"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
services, collaborators (rails, notification gateway, clock, locks), the
Redis client and configuration. Tests replace the collaborators through
app.dependency_overrides.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002 - resolved by FastAPI at runtime

from realty_escrow.config import Settings, get_settings
from realty_escrow.domain.ports import NotificationGateway  # noqa: TC001
from realty_escrow.domain.timekeeping import Clock, utcnow  # noqa: TC001
from realty_escrow.infrastructure.database.engine import get_async_session
from realty_escrow.infrastructure.locks import EntityLockRegistry, get_lock_registry
from realty_escrow.infrastructure.redis_client import get_redis, redis_available
from realty_escrow.providers import ProviderFactory, build_notification_gateway
from realty_escrow.services import (
    ContractService,
    InvoiceService,
    PaymentService,
    RetractionService,
    SignatureService,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import redis.asyncio as aioredis


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


@lru_cache(maxsize=1)
def get_notifier() -> NotificationGateway:
    """Provide the process-wide notification gateway."""
    return build_notification_gateway(get_settings())


@lru_cache(maxsize=1)
def get_provider_factory() -> ProviderFactory:
    """Provide the process-wide mobile-money rail factory."""
    return ProviderFactory(get_settings())


def get_clock() -> Clock:
    return utcnow


def get_locks() -> EntityLockRegistry:
    return get_lock_registry()


def get_idempotency_store() -> aioredis.Redis | None:
    """Provide the Redis client, or None when Redis is not connected."""
    return get_redis() if redis_available() else None


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


async def get_contract_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
    clock: Clock = Depends(get_clock),
    locks: EntityLockRegistry = Depends(get_locks),
) -> ContractService:
    return ContractService(session, settings, clock, locks)


async def get_signature_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
    notifier: NotificationGateway = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
    locks: EntityLockRegistry = Depends(get_locks),
) -> SignatureService:
    return SignatureService(session, settings, notifier, clock=clock, locks=locks)


async def get_retraction_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
    notifier: NotificationGateway = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
    locks: EntityLockRegistry = Depends(get_locks),
) -> RetractionService:
    return RetractionService(session, settings, notifier, clock, locks)


async def get_invoice_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
    clock: Clock = Depends(get_clock),
    locks: EntityLockRegistry = Depends(get_locks),
) -> InvoiceService:
    return InvoiceService(session, settings, clock, locks)


async def get_payment_service(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
    providers: ProviderFactory = Depends(get_provider_factory),
    notifier: NotificationGateway = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
    locks: EntityLockRegistry = Depends(get_locks),
) -> PaymentService:
    return PaymentService(session, settings, providers, notifier, clock, locks)
