"""Per-entity mutual exclusion.

Every state transition on a contract or payment runs inside
``registry.hold(kind, entity_id)``. Within one process that serializes the
request handlers and the sweeps; across processes the SELECT ... FOR UPDATE
re-read in the repositories does the same job on PostgreSQL.

Locks are not reentrant. Services split their public, lock-taking methods
from internal ``_locked`` helpers that assume the caller already holds it.

Usage:
    registry = get_lock_registry()
    async with registry.hold("payment", payment_id):
        payment = await repo.get_for_update(payment_id)
        ...
        await session.commit()
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from realty_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from collections.abc import AsyncIterator

logger = get_logger(__name__)

CONTRACT = "contract"
PAYMENT = "payment"
OTP = "otp"


class EntityLockRegistry:
    """Hands out one asyncio.Lock per (kind, id), dropped once nobody holds it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, kind: str, entity_id: uuid.UUID | str) -> AsyncIterator[None]:
        key = f"{kind}:{entity_id}"
        lock = self._lock_for(key)
        if lock.locked():
            logger.debug("lock.waiting", key=key)
        async with lock:
            yield

    def is_held(self, kind: str, entity_id: uuid.UUID | str) -> bool:
        lock = self._locks.get(f"{kind}:{entity_id}")
        return lock is not None and lock.locked()


_registry: EntityLockRegistry | None = None


def get_lock_registry() -> EntityLockRegistry:
    """Return the process-wide registry (lazy singleton)."""
    global _registry
    if _registry is None:
        _registry = EntityLockRegistry()
    return _registry
