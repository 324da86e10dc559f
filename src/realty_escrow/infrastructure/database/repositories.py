"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).

`get_for_update` methods re-read the row under SELECT ... FOR UPDATE
(ignored by SQLite) and refresh the identity map, so a service holding the
entity lock always decides on the latest committed state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from realty_escrow.domain.enums import ContractStatus, OtpState, PaymentStatus
from realty_escrow.infrastructure.database.orm_models import (
    AuditEvent,
    Contract,
    Invoice,
    OtpChallenge,
    Payment,
    SignatureRecord,
)

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.domain.enums import EntityType, EventType


class ContractRepository:
    """Data access for contracts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, contract: Contract) -> Contract:
        """Insert a new contract."""
        self._session.add(contract)
        await self._session.flush()
        return contract

    async def get_by_id(self, contract_id: uuid.UUID) -> Contract | None:
        """Fetch a contract by its UUID."""
        result = await self._session.execute(select(Contract).where(Contract.id == contract_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, contract_id: uuid.UUID) -> Contract | None:
        """Re-read a contract with a row lock and a fresh identity-map entry."""
        result = await self._session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_fresh(self, contract_id: uuid.UUID) -> Contract | None:
        """Re-read a contract's committed state without locking the row."""
        result = await self._session.execute(
            select(Contract)
            .where(Contract.id == contract_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def reference_exists(self, reference: str) -> bool:
        result = await self._session.execute(
            select(Contract.id).where(Contract.reference == reference)
        )
        return result.scalar_one_or_none() is not None

    async def get_by_party(self, party_id: str) -> list[Contract]:
        """Fetch all contracts where the user is owner or counterparty."""
        result = await self._session.execute(
            select(Contract)
            .where((Contract.owner_id == party_id) | (Contract.counterparty_id == party_id))
            .order_by(Contract.created_at.desc())
        )
        return list(result.scalars().all())

    async def ids_with_retraction_elapsed(self, now: datetime) -> list[uuid.UUID]:
        """SIGNED contracts whose retraction window has closed."""
        result = await self._session.execute(
            select(Contract.id).where(
                Contract.status == ContractStatus.SIGNED.value,
                Contract.retraction_expires_at.is_not(None),
                Contract.retraction_expires_at <= now,
            )
        )
        return list(result.scalars().all())

    async def ids_needing_retraction_reminder(
        self, now: datetime, horizon: datetime
    ) -> list[uuid.UUID]:
        """SIGNED contracts closing within the horizon that were not reminded yet."""
        result = await self._session.execute(
            select(Contract.id).where(
                Contract.status == ContractStatus.SIGNED.value,
                Contract.retraction_reminder_sent_at.is_(None),
                Contract.retraction_expires_at > now,
                Contract.retraction_expires_at <= horizon,
            )
        )
        return list(result.scalars().all())

    async def active_with_end_date(self) -> list[Contract]:
        """ACTIVE contracts that can run out (fixed end date or duration)."""
        result = await self._session.execute(
            select(Contract).where(
                Contract.status == ContractStatus.ACTIVE.value,
                (Contract.end_date.is_not(None)) | (Contract.duration_months.is_not(None)),
            )
        )
        return list(result.scalars().all())


class SignatureRepository:
    """Data access for signature records. Insert-only."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, record: SignatureRecord) -> SignatureRecord:
        self._session.add(record)
        await self._session.flush()
        return record

    async def get_by_contract(self, contract_id: uuid.UUID) -> list[SignatureRecord]:
        """Fetch a contract's signatures, oldest first."""
        result = await self._session.execute(
            select(SignatureRecord)
            .where(SignatureRecord.contract_id == contract_id)
            .order_by(SignatureRecord.signed_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())


class OtpRepository:
    """Data access for OTP challenges."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, challenge: OtpChallenge) -> OtpChallenge:
        self._session.add(challenge)
        await self._session.flush()
        return challenge

    async def get_live(self, purpose: str) -> OtpChallenge | None:
        """The single LIVE challenge for a purpose, if any."""
        result = await self._session.execute(
            select(OtpChallenge)
            .where(
                OtpChallenge.purpose == purpose,
                OtpChallenge.state == OtpState.LIVE.value,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_latest(self, purpose: str) -> OtpChallenge | None:
        """Most recent challenge for a purpose, whatever its state."""
        result = await self._session.execute(
            select(OtpChallenge)
            .where(OtpChallenge.purpose == purpose)
            .order_by(OtpChallenge.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class InvoiceRepository:
    """Data access for invoices."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, invoice: Invoice) -> Invoice:
        self._session.add(invoice)
        await self._session.flush()
        return invoice

    async def get_by_id(self, invoice_id: uuid.UUID) -> Invoice | None:
        result = await self._session.execute(select(Invoice).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none()

    async def get_for_payer(self, contract_id: uuid.UUID, payer_id: str) -> Invoice | None:
        result = await self._session.execute(
            select(Invoice).where(
                Invoice.contract_id == contract_id,
                Invoice.payer_id == payer_id,
            )
        )
        return result.scalar_one_or_none()


class PaymentRepository:
    """Data access for payments."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payment: Payment) -> Payment:
        self._session.add(payment)
        await self._session.flush()
        return payment

    async def get_by_id(self, payment_id: uuid.UUID) -> Payment | None:
        result = await self._session.execute(select(Payment).where(Payment.id == payment_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, payment_id: uuid.UUID) -> Payment | None:
        """Re-read a payment with a row lock and a fresh identity-map entry."""
        result = await self._session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_contract(self, contract_id: uuid.UUID) -> list[Payment]:
        result = await self._session.execute(
            select(Payment)
            .where(Payment.contract_id == contract_id)
            .order_by(Payment.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def ids_by_contract_and_status(
        self, contract_id: uuid.UUID, statuses: list[PaymentStatus]
    ) -> list[uuid.UUID]:
        result = await self._session.execute(
            select(Payment.id).where(
                Payment.contract_id == contract_id,
                Payment.status.in_([s.value for s in statuses]),
            )
        )
        return list(result.scalars().all())

    async def ids_due_for_release(self, now: datetime) -> list[uuid.UUID]:
        """ESCROW payments whose hold has elapsed. DISPUTED ones are excluded."""
        result = await self._session.execute(
            select(Payment.id).where(
                Payment.status == PaymentStatus.ESCROW.value,
                Payment.escrow_release_due_at <= now,
            )
        )
        return list(result.scalars().all())

    async def ids_stale_processing(self, cutoff: datetime) -> list[uuid.UUID]:
        """PROCESSING payments started before the cutoff."""
        result = await self._session.execute(
            select(Payment.id).where(
                Payment.status == PaymentStatus.PROCESSING.value,
                Payment.processing_started_at <= cutoff,
            )
        )
        return list(result.scalars().all())


class AuditRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        event_type: EventType,
        old_status: str | None,
        new_status: str,
        actor: str = "SYSTEM",
        metadata: dict | None = None,
    ) -> AuditEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = AuditEvent(
            entity_type=entity_type.value,
            entity_id=entity_id,
            event_type=event_type.value,
            old_status=str(old_status) if old_status is not None else None,
            new_status=str(new_status),
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_for_entity(
        self, entity_type: EntityType, entity_id: uuid.UUID
    ) -> list[AuditEvent]:
        """Fetch all events for an entity in chronological order."""
        result = await self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type.value,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.created_at.asc())
        )
        return list(result.scalars().all())
