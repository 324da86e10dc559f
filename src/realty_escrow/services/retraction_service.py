"""Retraction Service — the 48-hour cooling-off period after signature.

Window arithmetic lives in domain/retraction.py; this service adds the
persistence side: cancelling inside the window, the activation sweep once it
closes, and a one-time reminder shortly before it does.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from realty_escrow.config import get_settings
from realty_escrow.domain.enums import ContractStatus, EntityType, EventType
from realty_escrow.domain.exceptions import (
    CancellationReasonRequiredError,
    ContractNotFoundError,
)
from realty_escrow.domain.timekeeping import utcnow
from realty_escrow.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
)
from realty_escrow.infrastructure.locks import CONTRACT, get_lock_registry
from realty_escrow.logging_config import get_logger
from realty_escrow.providers.notifications import LoggingGateway
from realty_escrow.services.contract_service import ContractService, window_of

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.config import Settings
    from realty_escrow.domain.ports import NotificationGateway
    from realty_escrow.domain.retraction import RetractionWindow
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.database.orm_models import Contract
    from realty_escrow.infrastructure.locks import EntityLockRegistry

logger = get_logger(__name__)


class RetractionService:
    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        notifier: NotificationGateway | None = None,
        clock: Clock = utcnow,
        locks: EntityLockRegistry | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._notifier = notifier or LoggingGateway()
        self._clock = clock
        self._locks = locks or get_lock_registry()
        self._contract_repo = ContractRepository(session)
        self._audit_repo = AuditRepository(session)
        self._contracts = ContractService(session, self._settings, clock, self._locks)

    async def window(self, contract_id: uuid.UUID) -> RetractionWindow:
        contract = await self._contracts.get_contract(contract_id)
        return window_of(contract)

    async def remaining(self, contract_id: uuid.UUID) -> timedelta:
        return (await self.window(contract_id)).remaining(self._clock())

    async def cancel(self, contract_id: uuid.UUID, reason: str, actor: str) -> Contract:
        """Retract a signed contract. Valid only while the window is open."""
        if not reason or not reason.strip():
            raise CancellationReasonRequiredError()
        return await self._contracts.cancel(contract_id, reason, actor)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def sweep_activations(self) -> list[uuid.UUID]:
        """Activate every SIGNED contract whose window has closed.

        Safe to run concurrently with itself and with cancellations: each
        contract is re-checked under its lock.
        """
        activated = []
        for contract_id in await self._contract_repo.ids_with_retraction_elapsed(self._clock()):
            if await self._contracts.activate_if_window_elapsed(contract_id) is not None:
                activated.append(contract_id)
        if activated:
            logger.info("retraction.sweep_activated", count=len(activated))
        return activated

    async def sweep_reminders(self) -> list[uuid.UUID]:
        """Remind both parties once when the window is about to close."""
        now = self._clock()
        horizon = now + timedelta(hours=self._settings.retraction_reminder_hours)
        reminded = []

        for contract_id in await self._contract_repo.ids_needing_retraction_reminder(now, horizon):
            async with self._locks.hold(CONTRACT, contract_id):
                contract = await self._contract_repo.get_for_update(contract_id)
                if contract is None:
                    raise ContractNotFoundError(str(contract_id))
                if (
                    contract.status != ContractStatus.SIGNED.value
                    or contract.retraction_reminder_sent_at is not None
                ):
                    continue
                contract.retraction_reminder_sent_at = now
                await self._audit_repo.record(
                    entity_type=EntityType.CONTRACT,
                    entity_id=contract.id,
                    event_type=EventType.RETRACTION_REMINDER_SENT,
                    old_status=contract.status,
                    new_status=contract.status,
                )
                await self._session.commit()

            remaining = window_of(contract).remaining(now)
            hours = max(int(remaining.total_seconds() // 3600), 0)
            message = (
                f"Contract {contract.reference}: the retraction period ends in about "
                f"{hours} hour(s). After that the contract becomes active and can no "
                "longer be cancelled."
            )
            for party_id in (contract.owner_id, contract.counterparty_id):
                await self._notifier.send(contract.party_phone(party_id), message)
            reminded.append(contract_id)

        if reminded:
            logger.info("retraction.reminders_sent", count=len(reminded))
        return reminded
