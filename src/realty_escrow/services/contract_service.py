"""Contract Service — contract lifecycle from draft to termination.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - Repositories (data access)
    - Audit log (one event per transition)
    - Entity locks (one writer per contract at a time)

Every mutating method takes the contract lock, re-reads the row, fires the
transition and commits before releasing the lock. The signature coordinator
and the retraction sweep reuse the `_locked` helpers while already holding
the lock.
"""

from __future__ import annotations

import secrets
import string
from typing import TYPE_CHECKING

from realty_escrow.config import get_settings
from realty_escrow.domain.enums import (
    ContractStatus,
    ContractType,
    DurationMode,
    EntityType,
    EventType,
    PropertyKind,
    TerminationReason,
)
from realty_escrow.domain.exceptions import (
    CancellationReasonRequiredError,
    ContractNotFoundError,
    ContractValidationError,
    NotAPartyError,
    RetractionWindowClosedError,
)
from realty_escrow.domain.phones import NATIONAL_LENGTH, normalize_phone
from realty_escrow.domain.retraction import RetractionWindow, compute_expiry
from realty_escrow.domain.state_machine import ContractStateMachine, apply_event
from realty_escrow.domain.terms import ContractTerms
from realty_escrow.domain.timekeeping import utcnow
from realty_escrow.infrastructure.database.orm_models import Contract
from realty_escrow.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    SignatureRepository,
)
from realty_escrow.infrastructure.locks import CONTRACT, get_lock_registry
from realty_escrow.logging_config import get_logger

if TYPE_CHECKING:
    import uuid
    from datetime import date, datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.config import Settings
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.database.orm_models import AuditEvent
    from realty_escrow.infrastructure.locks import EntityLockRegistry

logger = get_logger(__name__)

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
_REFERENCE_ATTEMPTS = 5


def terms_of(contract: Contract) -> ContractTerms:
    """Rebuild the value object from a persisted contract."""
    return ContractTerms(
        contract_type=ContractType(contract.contract_type),
        start_date=contract.start_date,
        duration_mode=DurationMode(contract.duration_mode),
        property_kind=PropertyKind(contract.property_kind) if contract.property_kind else None,
        monthly_rent=contract.monthly_rent,
        sale_price=contract.sale_price,
        deposit_months=contract.deposit_months,
        advance_months=contract.advance_months,
        end_date=contract.end_date,
        duration_months=contract.duration_months,
    )


def window_of(contract: Contract) -> RetractionWindow:
    return RetractionWindow(contract.retraction_expires_at)


class ContractService:
    """Manages the contract lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        clock: Clock = utcnow,
        locks: EntityLockRegistry | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._clock = clock
        self._locks = locks or get_lock_registry()
        self._contract_repo = ContractRepository(session)
        self._audit_repo = AuditRepository(session)
        self._signature_repo = SignatureRepository(session)

    # ------------------------------------------------------------------
    # Drafting
    # ------------------------------------------------------------------

    async def create_draft(
        self,
        owner_id: str,
        counterparty_id: str,
        owner_phone: str,
        counterparty_phone: str,
        terms: ContractTerms,
    ) -> Contract:
        """Validate the terms and persist a DRAFT contract.

        Raises:
            ContractValidationError: Inconsistent terms, identical parties or
                an unusable phone number.
        """
        terms.validate()
        if owner_id == counterparty_id:
            raise ContractValidationError("Owner and counterparty must be different parties")

        phones = {}
        for label, raw in (("owner_phone", owner_phone), ("counterparty_phone", counterparty_phone)):
            phone = normalize_phone(raw)
            if len(phone) != NATIONAL_LENGTH:
                raise ContractValidationError(f"{label} is not a valid phone number: {raw}")
            phones[label] = phone

        contract = Contract(
            reference=await self._new_reference(),
            contract_type=terms.contract_type.value,
            property_kind=terms.property_kind.value if terms.property_kind else None,
            owner_id=owner_id,
            counterparty_id=counterparty_id,
            owner_phone=phones["owner_phone"],
            counterparty_phone=phones["counterparty_phone"],
            monthly_rent=terms.monthly_rent,
            sale_price=terms.sale_price,
            deposit_months=terms.deposit_months,
            advance_months=terms.advance_months,
            duration_mode=terms.duration_mode.value,
            start_date=terms.start_date,
            end_date=terms.end_date,
            duration_months=terms.duration_months,
            status=ContractStatus.DRAFT.value,
        )
        contract = await self._contract_repo.create(contract)

        await self._audit_repo.record(
            entity_type=EntityType.CONTRACT,
            entity_id=contract.id,
            event_type=EventType.CONTRACT_CREATED,
            old_status=None,
            new_status=ContractStatus.DRAFT,
            actor=owner_id,
            metadata={"reference": contract.reference, "contract_type": contract.contract_type},
        )
        await self._session.commit()

        logger.info(
            "contract.created",
            contract_id=str(contract.id),
            reference=contract.reference,
            contract_type=contract.contract_type,
        )
        return contract

    async def submit_for_signature(self, contract_id: uuid.UUID, actor: str) -> Contract:
        """DRAFT -> AWAITING_SIGNATURE."""
        async with self._locks.hold(CONTRACT, contract_id):
            contract = await self._get_for_update_or_raise(contract_id)
            await self._transition(
                contract,
                "submit_for_signature",
                EventType.CONTRACT_SUBMITTED,
                actor=actor,
            )
            await self._session.commit()

        logger.info("contract.submitted", contract_id=str(contract_id))
        return contract

    # ------------------------------------------------------------------
    # Signature completion (called by SignatureService under the lock)
    # ------------------------------------------------------------------

    async def record_full_signature_locked(
        self,
        contract: Contract,
        signed_at: datetime,
        seal: str,
        actor: str,
    ) -> None:
        """AWAITING_SIGNATURE -> SIGNED and open the retraction window.

        The caller holds the contract lock and commits. The expiry is set
        exactly once, from the instant of the second signature.
        """
        await self._transition(
            contract,
            "complete_signatures",
            EventType.CONTRACT_SIGNED,
            actor=actor,
            metadata={"seal_hash": seal},
        )
        contract.signed_at = signed_at
        contract.retraction_expires_at = compute_expiry(
            signed_at, self._settings.retraction_window_hours
        )
        contract.seal_hash = seal

        logger.info(
            "contract.signed",
            contract_id=str(contract.id),
            retraction_expires_at=contract.retraction_expires_at.isoformat(),
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel(self, contract_id: uuid.UUID, reason: str, actor: str) -> Contract:
        """Retract a SIGNED contract while the retraction window is open.

        Window state and status are checked together under the contract lock,
        so a cancel racing the activation sweep either wins or sees ACTIVE.

        Raises:
            CancellationReasonRequiredError: Blank reason.
            NotAPartyError: `actor` is neither owner nor counterparty.
            RetractionWindowClosedError: Window elapsed or contract ACTIVE.
            InvalidTransitionError: Contract not SIGNED (e.g. already CANCELLED).
        """
        if not reason or not reason.strip():
            raise CancellationReasonRequiredError()

        async with self._locks.hold(CONTRACT, contract_id):
            contract = await self._get_for_update_or_raise(contract_id)
            if contract.party_role(actor) is None:
                raise NotAPartyError(str(contract_id), actor)
            await self._cancel_locked(contract, reason.strip(), actor)
            await self._session.commit()

        logger.info("contract.cancelled", contract_id=str(contract_id), by=actor)
        return contract

    async def _cancel_locked(self, contract: Contract, reason: str, actor: str) -> None:
        now = self._clock()
        if contract.status == ContractStatus.ACTIVE.value:
            raise RetractionWindowClosedError(str(contract.id))
        if contract.status == ContractStatus.SIGNED.value and not window_of(contract).is_open(now):
            raise RetractionWindowClosedError(str(contract.id))

        await self._transition(
            contract,
            "retract",
            EventType.CONTRACT_CANCELLED,
            actor=actor,
            metadata={"reason": reason},
        )
        contract.cancellation_reason = reason
        contract.cancelled_at = now
        contract.cancelled_by = actor

    async def withdraw(self, contract_id: uuid.UUID, reason: str, actor: str) -> Contract:
        """Owner pulls a contract that is not fully signed yet."""
        if not reason or not reason.strip():
            raise CancellationReasonRequiredError()

        async with self._locks.hold(CONTRACT, contract_id):
            contract = await self._get_for_update_or_raise(contract_id)
            if actor != contract.owner_id:
                raise NotAPartyError(str(contract_id), actor)
            await self._transition(
                contract,
                "withdraw",
                EventType.CONTRACT_WITHDRAWN,
                actor=actor,
                metadata={"reason": reason.strip()},
            )
            contract.cancellation_reason = reason.strip()
            contract.cancelled_at = self._clock()
            contract.cancelled_by = actor
            await self._session.commit()

        logger.info("contract.withdrawn", contract_id=str(contract_id))
        return contract

    # ------------------------------------------------------------------
    # Activation & termination
    # ------------------------------------------------------------------

    async def activate_if_window_elapsed(self, contract_id: uuid.UUID) -> Contract | None:
        """SIGNED -> ACTIVE once the retraction window has closed.

        Idempotent: returns None, changing nothing, for a contract that is not
        SIGNED any more (activated by an earlier run, or cancelled in time) or
        whose window is still open.
        """
        async with self._locks.hold(CONTRACT, contract_id):
            contract = await self._get_for_update_or_raise(contract_id)
            now = self._clock()

            if contract.status != ContractStatus.SIGNED.value:
                logger.info(
                    "contract.activation_skipped",
                    contract_id=str(contract_id),
                    status=contract.status,
                )
                return None
            if window_of(contract).is_open(now):
                return None

            await self._transition(
                contract,
                "retraction_elapsed",
                EventType.CONTRACT_ACTIVATED,
                actor="SYSTEM",
            )
            contract.activated_at = now
            await self._session.commit()

        logger.info("contract.activated", contract_id=str(contract_id))
        return contract

    async def terminate(
        self,
        contract_id: uuid.UUID,
        reason: TerminationReason,
        actor: str = "SYSTEM",
    ) -> Contract:
        """ACTIVE -> TERMINATED."""
        async with self._locks.hold(CONTRACT, contract_id):
            contract = await self._get_for_update_or_raise(contract_id)
            await self._terminate_locked(contract, reason, actor)
            await self._session.commit()

        logger.info("contract.terminated", contract_id=str(contract_id), reason=reason.value)
        return contract

    async def _terminate_locked(
        self, contract: Contract, reason: TerminationReason, actor: str
    ) -> None:
        await self._transition(
            contract,
            "terminate",
            EventType.CONTRACT_TERMINATED,
            actor=actor,
            metadata={"reason": reason.value},
        )
        contract.termination_reason = reason.value
        contract.terminated_at = self._clock()

    async def expire_ended_contracts(self, today: date | None = None) -> list[uuid.UUID]:
        """Terminate ACTIVE contracts whose computed end date has passed."""
        today = today or self._clock().date()
        expired: list[uuid.UUID] = []

        for candidate in await self._contract_repo.active_with_end_date():
            end = terms_of(candidate).computed_end_date()
            if end is None or today <= end:
                continue
            async with self._locks.hold(CONTRACT, candidate.id):
                contract = await self._get_for_update_or_raise(candidate.id)
                if contract.status != ContractStatus.ACTIVE.value:
                    continue
                await self._terminate_locked(contract, TerminationReason.NATURAL_EXPIRY, "SYSTEM")
                await self._session.commit()
            expired.append(candidate.id)
            logger.info("contract.expired", contract_id=str(candidate.id), end_date=str(end))

        return expired

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_contract(self, contract_id: uuid.UUID) -> Contract:
        """Get a contract or raise."""
        return await self._get_contract_or_raise(contract_id)

    async def get_status(self, contract_id: uuid.UUID) -> dict:
        """Get contract status with allowed events and the retraction countdown."""
        contract = await self._get_contract_or_raise(contract_id)
        sm = ContractStateMachine(current_status=contract.status)
        window = window_of(contract)
        now = self._clock()
        return {
            "contract_id": str(contract.id),
            "reference": contract.reference,
            "status": contract.status,
            "allowed_events": sm.get_allowed_events(),
            "signature_count": len(await self._signature_repo.get_by_contract(contract.id)),
            "retraction_expires_at": contract.retraction_expires_at,
            "retraction_open": window.is_open(now),
            "retraction_remaining_seconds": int(window.remaining(now).total_seconds()),
        }

    async def get_events(self, contract_id: uuid.UUID) -> list[AuditEvent]:
        """Get audit trail."""
        await self._get_contract_or_raise(contract_id)
        return await self._audit_repo.get_for_entity(EntityType.CONTRACT, contract_id)

    async def list_for_party(self, party_id: str) -> list[Contract]:
        return await self._contract_repo.get_by_party(party_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_contract_or_raise(self, contract_id: uuid.UUID) -> Contract:
        contract = await self._contract_repo.get_by_id(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    async def _get_for_update_or_raise(self, contract_id: uuid.UUID) -> Contract:
        contract = await self._contract_repo.get_for_update(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    async def _transition(
        self,
        contract: Contract,
        event_name: str,
        event_type: EventType,
        actor: str,
        metadata: dict | None = None,
    ) -> None:
        """Fire the transition, update the row and append the audit event.

        Raises InvalidTransitionError if the transition is illegal.
        """
        old_status = contract.status
        contract.status = apply_event(ContractStateMachine, old_status, event_name)
        await self._audit_repo.record(
            entity_type=EntityType.CONTRACT,
            entity_id=contract.id,
            event_type=event_type,
            old_status=old_status,
            new_status=contract.status,
            actor=actor,
            metadata=metadata,
        )

    async def _new_reference(self) -> str:
        prefix = f"CTR-{self._clock():%Y%m}-"
        for _ in range(_REFERENCE_ATTEMPTS):
            reference = prefix + "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
            if not await self._contract_repo.reference_exists(reference):
                return reference
        raise ContractValidationError("Could not allocate a unique contract reference")


__all__ = ["ContractService", "terms_of", "window_of"]
