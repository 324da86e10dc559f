"""Background sweep scheduler.

The time-driven transitions of the system are idempotent sweeps run on a
fixed interval from the FastAPI lifespan:

    retraction_activation   SIGNED -> ACTIVE once the window closed
    retraction_reminders    one reminder before the window closes
    escrow_auto_release     ESCROW -> CONFIRMED once the hold elapsed
    stale_processing        PROCESSING -> FAILED after the rail deadline
    natural_expiry          ACTIVE -> TERMINATED after the end date

Each run opens its own session. A failing job is logged and retried at its
next interval; it never stops the loop or the other jobs.

Usage:
    scheduler = build_sweep_scheduler(get_session_factory(), settings)
    scheduler.launch()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from realty_escrow.domain.timekeeping import utcnow
from realty_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from realty_escrow.config import Settings
    from realty_escrow.domain.ports import NotificationGateway
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.locks import EntityLockRegistry
    from realty_escrow.providers import ProviderFactory

    SweepJob = Callable[[AsyncSession], Awaitable[Any]]

logger = get_logger(__name__)


class SweepScheduler:
    """Runs registered jobs, each at its own interval."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tick_seconds: float = 5.0,
        clock: Clock = utcnow,
    ) -> None:
        self.jobs: list[dict] = []
        self.running = False
        self._session_factory = session_factory
        self._tick_seconds = tick_seconds
        self._clock = clock
        self._task: asyncio.Task | None = None

    def add_job(self, name: str, func: SweepJob, interval_seconds: int) -> None:
        self.jobs.append(
            {"name": name, "func": func, "interval": interval_seconds, "last_run": None}
        )
        logger.info("scheduler.job_added", job=name, interval_seconds=interval_seconds)

    async def run_once(self, now: datetime | None = None) -> dict[str, Any]:
        """Run every job that is due at `now`. Returns results by job name."""
        now = now or self._clock()
        results: dict[str, Any] = {}
        for job in self.jobs:
            last_run = job["last_run"]
            if last_run is not None and (now - last_run).total_seconds() < job["interval"]:
                continue
            with structlog.contextvars.bound_contextvars(job=job["name"]):
                try:
                    async with self._session_factory() as session:
                        results[job["name"]] = await job["func"](session)
                except Exception as exc:
                    logger.error("scheduler.job_failed", error=str(exc), exc_info=True)
            job["last_run"] = now
        return results

    async def start(self) -> None:
        self.running = True
        logger.info("scheduler.started", jobs=[job["name"] for job in self.jobs])
        while self.running:
            await self.run_once()
            await asyncio.sleep(self._tick_seconds)

    def launch(self) -> asyncio.Task:
        """Start the loop as a background task."""
        self._task = asyncio.create_task(self.start(), name="sweep-scheduler")
        return self._task

    async def stop(self) -> None:
        self.running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("scheduler.stopped")


def build_sweep_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    notifier: NotificationGateway | None = None,
    providers: ProviderFactory | None = None,
    clock: Clock = utcnow,
    locks: EntityLockRegistry | None = None,
) -> SweepScheduler:
    """Create a scheduler with every sweep registered at the configured interval."""
    from realty_escrow.services.contract_service import ContractService
    from realty_escrow.services.payment_service import PaymentService
    from realty_escrow.services.retraction_service import RetractionService

    def retraction(session: AsyncSession) -> RetractionService:
        return RetractionService(session, settings, notifier, clock, locks)

    def payments(session: AsyncSession) -> PaymentService:
        return PaymentService(session, settings, providers, notifier, clock, locks)

    async def retraction_activation(session: AsyncSession) -> list:
        return await retraction(session).sweep_activations()

    async def retraction_reminders(session: AsyncSession) -> list:
        return await retraction(session).sweep_reminders()

    async def escrow_auto_release(session: AsyncSession) -> list:
        return await payments(session).sweep_auto_release()

    async def stale_processing(session: AsyncSession) -> list:
        return await payments(session).fail_stale_processing()

    async def natural_expiry(session: AsyncSession) -> list:
        return await ContractService(session, settings, clock, locks).expire_ended_contracts()

    scheduler = SweepScheduler(session_factory, clock=clock)
    interval = settings.sweep_interval_seconds
    scheduler.add_job("retraction_activation", retraction_activation, interval)
    scheduler.add_job("retraction_reminders", retraction_reminders, interval)
    scheduler.add_job("escrow_auto_release", escrow_auto_release, interval)
    scheduler.add_job("stale_processing", stale_processing, interval)
    scheduler.add_job("natural_expiry", natural_expiry, interval)
    return scheduler
