"""Invoice Service — prices a signed contract for one payer.

An invoice is issued once per (contract, payer) and then frozen: the loyalty
tier and every section amount are stored, so a later tier change never
re-prices money that is already being collected.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from realty_escrow.config import get_settings
from realty_escrow.domain.enums import ContractStatus, LoyaltyTier
from realty_escrow.domain.exceptions import (
    ContractNotFoundError,
    ContractNotPayableError,
    InvoiceNotFoundError,
    NotAPartyError,
)
from realty_escrow.domain.invoice import ComposedInvoice, InvoiceSection, compose_invoice
from realty_escrow.domain.timekeeping import utcnow
from realty_escrow.infrastructure.database.orm_models import Invoice
from realty_escrow.infrastructure.database.repositories import (
    ContractRepository,
    InvoiceRepository,
)
from realty_escrow.infrastructure.locks import get_lock_registry
from realty_escrow.logging_config import get_logger
from realty_escrow.services.contract_service import terms_of

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.config import Settings
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.database.orm_models import Contract
    from realty_escrow.infrastructure.locks import EntityLockRegistry

logger = get_logger(__name__)

INVOICE = "invoice"
PAYABLE_STATUSES = (ContractStatus.SIGNED.value, ContractStatus.ACTIVE.value)


def sections_of(invoice: Invoice) -> ComposedInvoice:
    """Rebuild the composed view of a stored invoice."""
    return ComposedInvoice(
        payer_tier=LoyaltyTier(invoice.payer_tier),
        sections=tuple(InvoiceSection.from_dict(item) for item in invoice.sections),
    )


class InvoiceService:
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
        self._invoice_repo = InvoiceRepository(session)

    async def preview(self, contract_id: uuid.UUID, tier: LoyaltyTier) -> ComposedInvoice:
        """Price the contract without issuing anything."""
        contract = await self._get_contract_or_raise(contract_id)
        return compose_invoice(terms_of(contract), tier, self._settings.minimum_commission)

    async def issue_invoice(
        self,
        contract_id: uuid.UUID,
        payer_id: str,
        tier: LoyaltyTier = LoyaltyTier.TIER_0,
    ) -> Invoice:
        """Issue the payer's invoice, or return the one already issued.

        Raises:
            ContractNotPayableError: Contract is not SIGNED or ACTIVE.
            NotAPartyError: `payer_id` is not a party to the contract.
        """
        async with self._locks.hold(INVOICE, f"{contract_id}:{payer_id}"):
            contract = await self._get_contract_or_raise(contract_id)
            check_payable(contract, payer_id)

            existing = await self._invoice_repo.get_for_payer(contract.id, payer_id)
            if existing is not None:
                if existing.payer_tier != tier.value:
                    logger.info(
                        "invoice.tier_frozen",
                        invoice_id=str(existing.id),
                        frozen_tier=existing.payer_tier,
                        requested_tier=tier.value,
                    )
                return existing

            composed = compose_invoice(terms_of(contract), tier, self._settings.minimum_commission)
            invoice = await self._invoice_repo.create(
                Invoice(
                    contract_id=contract.id,
                    payer_id=payer_id,
                    payer_tier=tier.value,
                    sections=[s.to_dict() for s in composed.sections],
                    total=composed.total,
                    issued_at=self._clock(),
                )
            )
            await self._session.commit()

        logger.info(
            "invoice.issued",
            invoice_id=str(invoice.id),
            contract_id=str(contract_id),
            total=invoice.total,
            commission=composed.commission_amount,
        )
        return invoice

    async def get_invoice(self, invoice_id: uuid.UUID) -> Invoice:
        invoice = await self._invoice_repo.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    async def _get_contract_or_raise(self, contract_id: uuid.UUID) -> Contract:
        contract = await self._contract_repo.get_by_id(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract


def check_payable(contract: Contract, payer_id: str) -> None:
    if contract.status not in PAYABLE_STATUSES:
        raise ContractNotPayableError(str(contract.id), contract.status)
    if contract.party_role(payer_id) is None:
        raise NotAPartyError(str(contract.id), payer_id)
