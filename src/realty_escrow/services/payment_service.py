"""Payment Service — collection, escrow hold and release.

Mobile money:
    PENDING -> PROCESSING -> ESCROW -> CONFIRMED   (owner validation / auto-release)
                          -> FAILED                (timeout, rejection, stale)
    ESCROW  -> DISPUTED   -> CONFIRMED | REFUNDED
    ESCROW  -> REFUNDED

Cash:
    PENDING -> CONFIRMED  (no rail, no hold)

Every transition snapshots the amount breakdown before and after and runs
guard_transition: the total must stay the sum of its components and the
commission component may never change. A refund returns rent and deposit and
keeps the commission.

A contract can be cancelled while one of its payments is still PROCESSING.
Such a payment is refunded as soon as it reaches ESCROW, and a release on a
cancelled contract becomes a refund, so its rent and deposit never reach
the beneficiary.

Release is reachable from two writers (the beneficiary and the auto-release
sweep). Both run under the payment lock and re-read the row, so exactly one
wins and the other becomes a logged no-op.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

from realty_escrow.config import get_settings
from realty_escrow.domain.amounts import PaymentAmounts, guard_transition
from realty_escrow.domain.enums import (
    CashReceiver,
    ContractStatus,
    EntityType,
    EventType,
    LoyaltyTier,
    PaymentMethod,
    PaymentStatus,
    ProviderStatus,
    ReleaseTrigger,
)
from realty_escrow.domain.exceptions import (
    ConcurrencyConflict,
    ContractNotFoundError,
    DisclosureNotAcceptedError,
    EscrowAlreadyReleasedError,
    MoneySafetyError,
    NotAPartyError,
    NotBeneficiaryError,
    PaymentNotFoundError,
    ProviderRejectedError,
    ProviderTimeoutError,
)
from realty_escrow.domain.phones import check_provider_prefix
from realty_escrow.domain.state_machine import PaymentStateMachine, apply_event
from realty_escrow.domain.timekeeping import ensure_utc, utcnow
from realty_escrow.infrastructure.database.orm_models import Payment
from realty_escrow.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    PaymentRepository,
)
from realty_escrow.infrastructure.locks import PAYMENT, get_lock_registry
from realty_escrow.logging_config import get_logger
from realty_escrow.providers import ProviderFactory
from realty_escrow.providers.notifications import LoggingGateway
from realty_escrow.services.invoice_service import InvoiceService, check_payable, sections_of

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.config import Settings
    from realty_escrow.domain.ports import NotificationGateway
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.database.orm_models import AuditEvent, Contract, Invoice
    from realty_escrow.infrastructure.locks import EntityLockRegistry

logger = get_logger(__name__)

REFUNDABLE_STATUSES = [PaymentStatus.ESCROW, PaymentStatus.DISPUTED]
# PROCESSING payments are visited too: their lock is held until a pending
# confirmation commits, after which they may be refundable.
CANCEL_SCAN_STATUSES = [PaymentStatus.PROCESSING, *REFUNDABLE_STATUSES]


def amounts_of(payment: Payment) -> PaymentAmounts:
    return PaymentAmounts(
        rent=payment.rent_component,
        deposit=payment.deposit_component,
        commission=payment.commission_component,
        total=payment.total,
    )


class PaymentService:
    """Manages payments and the escrow hold."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        providers: ProviderFactory | None = None,
        notifier: NotificationGateway | None = None,
        clock: Clock = utcnow,
        locks: EntityLockRegistry | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._providers = providers or ProviderFactory(self._settings)
        self._notifier = notifier or LoggingGateway()
        self._clock = clock
        self._locks = locks or get_lock_registry()
        self._payment_repo = PaymentRepository(session)
        self._contract_repo = ContractRepository(session)
        self._audit_repo = AuditRepository(session)
        self._invoices = InvoiceService(session, self._settings, clock, self._locks)

    # ------------------------------------------------------------------
    # Mobile money
    # ------------------------------------------------------------------

    async def submit_mobile_money(
        self,
        contract_id: uuid.UUID,
        payer_id: str,
        method: PaymentMethod,
        phone_number: str,
        tier: LoyaltyTier = LoyaltyTier.TIER_0,
    ) -> Payment:
        """Collect the payer's invoice through a mobile-money rail.

        The phone prefix is checked before anything is written or any rail is
        called. A rail timeout or rejection does not raise: the payment is
        returned FAILED with its `failure_reason`, and the payer retries by
        submitting a new payment.

        Raises:
            ProviderMismatchError: The number does not belong to `method`.
            ContractNotPayableError / NotAPartyError: See InvoiceService.
        """
        phone = check_provider_prefix(phone_number, method, self._providers.prefixes_for(method))
        provider = self._providers.for_method(method)

        contract = await self._get_contract_or_raise(contract_id)
        check_payable(contract, payer_id)
        invoice = await self._invoices.issue_invoice(contract_id, payer_id, tier)

        payment = await self._create_payment(contract, invoice, payer_id, method, phone)
        await self._transition(payment, "begin_processing", EventType.PAYMENT_PROCESSING)
        payment.processing_started_at = self._clock()
        await self._session.commit()

        async with self._locks.hold(PAYMENT, payment.id):
            try:
                receipt = await asyncio.wait_for(
                    provider.initiate(phone, payment.total, payment.reference),
                    timeout=self._settings.provider_timeout_seconds,
                )
            except TimeoutError:
                error = ProviderTimeoutError(method.value, self._settings.provider_timeout_seconds)
                return await self._fail_after_rail_error(payment.id, error)
            except (ProviderTimeoutError, ProviderRejectedError) as error:
                return await self._fail_after_rail_error(payment.id, error)

            payment = await self._get_for_update_or_raise(payment.id)
            payment.provider_reference = receipt.reference
            if receipt.status is ProviderStatus.CONFIRMED:
                await self._escrow_locked(payment)
            elif receipt.status is ProviderStatus.FAILED:
                await self._fail_locked(payment, "Provider declined the payment")
            await self._session.commit()

        logger.info(
            "payment.initiated",
            payment_id=str(payment.id),
            method=method.value,
            total=payment.total,
            status=payment.status,
        )
        if payment.status == PaymentStatus.ESCROW.value:
            await self._notify_escrowed(payment)
        return payment

    async def refresh_provider_status(self, payment_id: uuid.UUID) -> Payment:
        """Poll the rail for a PROCESSING payment. Anything else is returned as is."""
        async with self._locks.hold(PAYMENT, payment_id):
            payment = await self._get_for_update_or_raise(payment_id)
            if payment.status != PaymentStatus.PROCESSING.value or not payment.provider_reference:
                return payment

            provider = self._providers.for_method(PaymentMethod(payment.method))
            try:
                status = await asyncio.wait_for(
                    provider.status(payment.provider_reference),
                    timeout=self._settings.provider_timeout_seconds,
                )
            except (TimeoutError, ProviderTimeoutError, ProviderRejectedError) as exc:
                logger.warning(
                    "payment.status_query_failed", payment_id=str(payment_id), error=str(exc)
                )
                return payment

            if status is ProviderStatus.CONFIRMED:
                await self._escrow_locked(payment)
            elif status is ProviderStatus.FAILED:
                await self._fail_locked(payment, "Provider reported the payment as failed")
            else:
                return payment
            await self._session.commit()

        if payment.status == PaymentStatus.ESCROW.value:
            await self._notify_escrowed(payment)
        return payment

    # ------------------------------------------------------------------
    # Cash
    # ------------------------------------------------------------------

    async def record_cash(
        self,
        contract_id: uuid.UUID,
        payer_id: str,
        received_by: CashReceiver,
        commission_collected: bool,
        disclosure_accepted: bool,
        tier: LoyaltyTier = LoyaltyTier.TIER_0,
        actor: str | None = None,
    ) -> Payment:
        """Record a cash payment, confirmed immediately without escrow.

        Raises:
            DisclosureNotAcceptedError: The payer did not acknowledge that the
                commission is non-refundable.
        """
        if not disclosure_accepted:
            raise DisclosureNotAcceptedError()

        contract = await self._get_contract_or_raise(contract_id)
        check_payable(contract, payer_id)
        invoice = await self._invoices.issue_invoice(contract_id, payer_id, tier)

        payment = await self._create_payment(contract, invoice, payer_id, PaymentMethod.CASH, None)
        payment.disclosure_accepted_at = self._clock()
        await self._transition(
            payment,
            "record_cash",
            EventType.PAYMENT_CASH_RECORDED,
            actor=actor or payer_id,
            metadata={
                "received_by": received_by.value,
                "commission_collected": commission_collected,
            },
        )
        payment.cash_received_by = received_by.value
        payment.commission_collected = commission_collected
        await self._session.commit()

        logger.info(
            "payment.cash_recorded",
            payment_id=str(payment.id),
            total=payment.total,
            received_by=received_by.value,
        )
        return payment

    # ------------------------------------------------------------------
    # Escrow release
    # ------------------------------------------------------------------

    async def validate_release(
        self,
        payment_id: uuid.UUID,
        actor: str,
        approve: bool = True,
        reason: str | None = None,
    ) -> Payment:
        """Beneficiary confirms receipt (release) or rejects it (dispute).

        Losing the race to the auto-release sweep is a no-op. Validating a
        payment the beneficiary already released is a money-safety error.

        Raises:
            NotBeneficiaryError: `actor` is not the payment's beneficiary.
            EscrowAlreadyReleasedError: Released earlier by a validation or a
                dispute resolution.
        """
        async with self._locks.hold(PAYMENT, payment_id):
            payment = await self._get_for_update_or_raise(payment_id)
            if actor != payment.beneficiary_id:
                raise NotBeneficiaryError(str(payment_id), actor)

            try:
                self._ensure_not_released(payment, "validate_release")
            except ConcurrencyConflict as conflict:
                logger.info("payment.release_conflict", detail=conflict.message)
                return payment

            if approve:
                await self._release_locked(payment, ReleaseTrigger.OWNER_VALIDATION, actor)
            else:
                await self._dispute_locked(payment, reason or "Rejected by beneficiary", actor)
            await self._session.commit()

        if payment.status == PaymentStatus.CONFIRMED.value:
            await self._notify_released(payment)
        return payment

    async def auto_release_if_due(self, payment_id: uuid.UUID) -> Payment | None:
        """Release an ESCROW payment whose hold has elapsed.

        Returns None, changing nothing, when the payment is no longer in
        ESCROW (validated, disputed, refunded) or the hold is still running.
        Also returns None when the contract was cancelled and the payment was
        refunded instead.
        """
        async with self._locks.hold(PAYMENT, payment_id):
            payment = await self._get_for_update_or_raise(payment_id)
            if payment.status != PaymentStatus.ESCROW.value:
                conflict = ConcurrencyConflict(str(payment_id), payment.status, "auto_release")
                logger.info("payment.release_conflict", detail=conflict.message)
                return None
            due = payment.escrow_release_due_at
            if due is None or self._clock() < ensure_utc(due):
                return None

            await self._release_locked(payment, ReleaseTrigger.AUTO_RELEASE, "SYSTEM")
            await self._session.commit()

        if payment.status != PaymentStatus.CONFIRMED.value:
            return None
        await self._notify_released(payment)
        return payment

    async def sweep_auto_release(self) -> list[uuid.UUID]:
        released = []
        for payment_id in await self._payment_repo.ids_due_for_release(self._clock()):
            if await self.auto_release_if_due(payment_id) is not None:
                released.append(payment_id)
        if released:
            logger.info("payment.sweep_released", count=len(released))
        return released

    # ------------------------------------------------------------------
    # Disputes & refunds
    # ------------------------------------------------------------------

    async def open_dispute(self, payment_id: uuid.UUID, actor: str, reason: str) -> Payment:
        """ESCROW -> DISPUTED. Freezes auto-release until resolved."""
        async with self._locks.hold(PAYMENT, payment_id):
            payment = await self._get_for_update_or_raise(payment_id)
            if actor not in (payment.payer_id, payment.beneficiary_id):
                raise NotAPartyError(str(payment.contract_id), actor)
            await self._dispute_locked(payment, reason, actor)
            await self._session.commit()
        return payment

    async def refund(self, payment_id: uuid.UUID, reason: str, actor: str = "SYSTEM") -> Payment:
        """Return rent and deposit to the payer. The commission is kept."""
        async with self._locks.hold(PAYMENT, payment_id):
            payment = await self._get_for_update_or_raise(payment_id)
            await self._refund_locked(payment, reason, actor)
            await self._session.commit()

        logger.info(
            "payment.refunded",
            payment_id=str(payment_id),
            refunded_amount=payment.refunded_amount,
            commission_retained=payment.commission_component,
        )
        return payment

    async def refund_contract_payments(
        self, contract_id: uuid.UUID, reason: str, actor: str = "SYSTEM"
    ) -> list[uuid.UUID]:
        """Refund every ESCROW or DISPUTED payment of a contract.

        A payment still PROCESSING is left to its own confirmation, which
        refunds it once it reaches ESCROW on a cancelled contract.
        """
        refunded = []
        candidates = await self._payment_repo.ids_by_contract_and_status(
            contract_id, CANCEL_SCAN_STATUSES
        )
        for payment_id in candidates:
            async with self._locks.hold(PAYMENT, payment_id):
                payment = await self._get_for_update_or_raise(payment_id)
                if payment.status not in {s.value for s in REFUNDABLE_STATUSES}:
                    continue
                await self._refund_locked(payment, reason, actor)
                await self._session.commit()
            refunded.append(payment_id)
        if refunded:
            logger.info("payment.contract_refunded", contract_id=str(contract_id), count=len(refunded))
        return refunded

    async def resolve_for_beneficiary(self, payment_id: uuid.UUID, actor: str) -> Payment:
        """DISPUTED -> CONFIRMED: the dispute was settled in the beneficiary's favour."""
        async with self._locks.hold(PAYMENT, payment_id):
            payment = await self._get_for_update_or_raise(payment_id)
            await self._release_locked(payment, ReleaseTrigger.DISPUTE_RESOLUTION, actor)
            await self._session.commit()

        if payment.status == PaymentStatus.CONFIRMED.value:
            await self._notify_released(payment)
        return payment

    # ------------------------------------------------------------------
    # Stale processing
    # ------------------------------------------------------------------

    async def fail_stale_processing(self) -> list[uuid.UUID]:
        """Fail PROCESSING payments the rail never settled."""
        minutes = self._settings.payment_processing_timeout_minutes
        cutoff = self._clock() - timedelta(minutes=minutes)
        failed = []
        for payment_id in await self._payment_repo.ids_stale_processing(cutoff):
            async with self._locks.hold(PAYMENT, payment_id):
                payment = await self._get_for_update_or_raise(payment_id)
                if payment.status != PaymentStatus.PROCESSING.value:
                    continue
                await self._fail_locked(payment, f"Not confirmed within {minutes} minutes")
                await self._session.commit()
            failed.append(payment_id)
        if failed:
            logger.info("payment.stale_failed", count=len(failed))
        return failed

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_payment(self, payment_id: uuid.UUID) -> Payment:
        payment = await self._payment_repo.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    async def get_escrow_view(self, payment_id: uuid.UUID) -> dict:
        """Hold status of a payment, with the allowed next events."""
        payment = await self.get_payment(payment_id)
        now = self._clock()
        due = payment.escrow_release_due_at
        remaining = 0
        if payment.status == PaymentStatus.ESCROW.value and due is not None:
            remaining = max(int((ensure_utc(due) - now).total_seconds()), 0)
        return {
            "payment_id": str(payment.id),
            "reference": payment.reference,
            "status": payment.status,
            "allowed_events": PaymentStateMachine(payment.status).get_allowed_events(),
            "total": payment.total,
            "rent_component": payment.rent_component,
            "deposit_component": payment.deposit_component,
            "commission_component": payment.commission_component,
            "refunded_amount": payment.refunded_amount,
            "escrow_started_at": payment.escrow_started_at,
            "escrow_release_due_at": due,
            "hold_remaining_seconds": remaining,
            "release_trigger": payment.release_trigger,
        }

    async def get_events(self, payment_id: uuid.UUID) -> list[AuditEvent]:
        await self.get_payment(payment_id)
        return await self._audit_repo.get_for_entity(EntityType.PAYMENT, payment_id)

    async def list_for_contract(self, contract_id: uuid.UUID) -> list[Payment]:
        return await self._payment_repo.get_by_contract(contract_id)

    # ------------------------------------------------------------------
    # Locked transitions (caller holds the payment lock and commits)
    # ------------------------------------------------------------------

    async def _escrow_locked(self, payment: Payment) -> None:
        now = self._clock()
        await self._transition(payment, "provider_confirmed", EventType.PAYMENT_ESCROWED)
        payment.escrow_started_at = now
        payment.escrow_release_due_at = now + timedelta(hours=self._settings.escrow_hold_hours)
        logger.info(
            "payment.escrowed",
            payment_id=str(payment.id),
            release_due_at=payment.escrow_release_due_at.isoformat(),
        )
        await self._refund_if_contract_cancelled(payment)

    async def _fail_locked(self, payment: Payment, reason: str) -> None:
        await self._transition(
            payment, "provider_failed", EventType.PAYMENT_FAILED, metadata={"reason": reason}
        )
        payment.failure_reason = reason
        logger.info("payment.failed", payment_id=str(payment.id), reason=reason)

    async def _release_locked(self, payment: Payment, trigger: ReleaseTrigger, actor: str) -> None:
        self._ensure_not_released(payment, trigger.value)
        if await self._refund_if_contract_cancelled(payment):
            return
        event = (
            "resolve_for_beneficiary"
            if trigger is ReleaseTrigger.DISPUTE_RESOLUTION
            else "release_funds"
        )
        await self._transition(
            payment,
            event,
            EventType.ESCROW_RELEASED,
            actor=actor,
            metadata={"trigger": trigger.value},
        )
        payment.release_trigger = trigger.value
        payment.escrow_validated_at = self._clock()
        logger.info("payment.escrow_released", payment_id=str(payment.id), trigger=trigger.value)

    async def _dispute_locked(self, payment: Payment, reason: str, actor: str) -> None:
        await self._transition(
            payment,
            "open_dispute",
            EventType.PAYMENT_DISPUTED,
            actor=actor,
            metadata={"reason": reason},
        )
        payment.dispute_reason = reason
        logger.info("payment.disputed", payment_id=str(payment.id), by=actor)

    async def _refund_locked(self, payment: Payment, reason: str, actor: str) -> None:
        before = amounts_of(payment)
        await self._transition(
            payment,
            "refund_payment",
            EventType.PAYMENT_REFUNDED,
            actor=actor,
            after=before.after_refund(),
            metadata={"reason": reason, "refunded_amount": before.refundable},
        )
        payment.refunded_amount = before.refundable
        payment.refund_reason = reason

    async def _refund_if_contract_cancelled(self, payment: Payment) -> bool:
        """Refund a held payment whose contract was cancelled after it was submitted.

        Covers payments that were still PROCESSING when the contract-wide
        refund ran. Returns True when the payment was refunded.
        """
        contract = await self._contract_repo.get_fresh(payment.contract_id)
        if contract is None or contract.status != ContractStatus.CANCELLED.value:
            return False
        logger.warning(
            "payment.contract_cancelled",
            payment_id=str(payment.id),
            contract_id=str(contract.id),
            status=payment.status,
        )
        reason = contract.cancellation_reason or "retracted"
        await self._refund_locked(payment, f"Contract cancelled: {reason}", "SYSTEM")
        return True

    def _ensure_not_released(self, payment: Payment, action: str) -> None:
        """Raise if the funds already left escrow.

        ConcurrencyConflict when the sweep released them (a benign race),
        EscrowAlreadyReleasedError when a person did.
        """
        if payment.status != PaymentStatus.CONFIRMED.value or payment.release_trigger is None:
            return
        if payment.release_trigger == ReleaseTrigger.AUTO_RELEASE.value:
            raise ConcurrencyConflict(str(payment.id), payment.status, action)
        logger.error(
            "payment.double_release_attempt",
            payment_id=str(payment.id),
            trigger=payment.release_trigger,
            action=action,
        )
        raise EscrowAlreadyReleasedError(str(payment.id))

    async def _transition(
        self,
        payment: Payment,
        event_name: str,
        event_type: EventType,
        actor: str = "SYSTEM",
        after: PaymentAmounts | None = None,
        metadata: dict | None = None,
    ) -> None:
        """Fire the transition, check the money invariants, append the audit event.

        Raises:
            InvalidTransitionError: Illegal transition.
            MoneySafetyError: The amounts after the transition break an invariant.
        """
        before = amounts_of(payment)
        after = after or before
        try:
            guard_transition(str(payment.id), before, after)
        except MoneySafetyError as exc:
            logger.error(
                "payment.money_invariant_violated",
                payment_id=str(payment.id),
                event=event_name,
                error=exc.message,
            )
            raise

        old_status = payment.status
        payment.status = apply_event(PaymentStateMachine, old_status, event_name)
        payment.rent_component = after.rent
        payment.deposit_component = after.deposit
        payment.commission_component = after.commission
        payment.total = after.total

        await self._audit_repo.record(
            entity_type=EntityType.PAYMENT,
            entity_id=payment.id,
            event_type=event_type,
            old_status=old_status,
            new_status=payment.status,
            actor=actor,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _create_payment(
        self,
        contract: Contract,
        invoice: Invoice,
        payer_id: str,
        method: PaymentMethod,
        phone: str | None,
    ) -> Payment:
        composed = sections_of(invoice)
        amounts = PaymentAmounts.of(
            rent=composed.rent_amount,
            deposit=composed.deposit_amount,
            commission=composed.commission_amount,
        )
        beneficiary = (
            contract.counterparty_id if payer_id == contract.owner_id else contract.owner_id
        )
        payment = await self._payment_repo.create(
            Payment(
                reference=f"PAY-{self._clock():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}",
                contract_id=contract.id,
                invoice_id=invoice.id,
                payer_id=payer_id,
                beneficiary_id=beneficiary,
                method=method.value,
                phone_number=phone,
                rent_component=amounts.rent,
                deposit_component=amounts.deposit,
                commission_component=amounts.commission,
                total=amounts.total,
                refunded_amount=0,
                status=PaymentStatus.PENDING.value,
            )
        )
        await self._audit_repo.record(
            entity_type=EntityType.PAYMENT,
            entity_id=payment.id,
            event_type=EventType.PAYMENT_CREATED,
            old_status=None,
            new_status=PaymentStatus.PENDING,
            actor=payer_id,
            metadata={"method": method.value, "invoice_id": str(invoice.id), "total": amounts.total},
        )
        return payment

    async def _fail_after_rail_error(
        self, payment_id: uuid.UUID, error: ProviderTimeoutError | ProviderRejectedError
    ) -> Payment:
        logger.warning("payment.rail_error", payment_id=str(payment_id), code=error.code)
        payment = await self._get_for_update_or_raise(payment_id)
        await self._fail_locked(payment, error.message)
        await self._session.commit()
        return payment

    async def _get_contract_or_raise(self, contract_id: uuid.UUID) -> Contract:
        contract = await self._contract_repo.get_by_id(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    async def _get_for_update_or_raise(self, payment_id: uuid.UUID) -> Payment:
        payment = await self._payment_repo.get_for_update(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    async def _notify_escrowed(self, payment: Payment) -> None:
        contract = await self._contract_repo.get_by_id(payment.contract_id)
        hours = self._settings.escrow_hold_hours
        await self._notifier.send(
            contract.party_phone(payment.beneficiary_id),
            f"Payment {payment.reference} of {payment.total:,} GNF is held in escrow. "
            f"Confirm receipt or it is released automatically within {hours} hours.",
        )

    async def _notify_released(self, payment: Payment) -> None:
        contract = await self._contract_repo.get_by_id(payment.contract_id)
        await self._notifier.send(
            contract.party_phone(payment.beneficiary_id),
            f"Payment {payment.reference} has been released to you.",
        )
