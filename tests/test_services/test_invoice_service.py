"""Tests for InvoiceService: issue once per payer, then frozen."""

from __future__ import annotations

import uuid

import pytest
from conftest import OWNER_ID, TENANT_ID, draft_contract, signed_contract

from realty_escrow.domain.enums import InvoiceSectionKind, LoyaltyTier
from realty_escrow.domain.exceptions import (
    ContractNotPayableError,
    InvoiceNotFoundError,
    NotAPartyError,
)
from realty_escrow.services.invoice_service import sections_of


class TestIssueInvoice:
    async def test_itemized_total(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        invoice = await services.invoices.issue_invoice(contract.id, TENANT_ID)

        assert invoice.total == 11_250_000
        composed = sections_of(invoice)
        amounts = {s.kind: s.amount for s in composed.sections}
        assert amounts[InvoiceSectionKind.RENT_ADVANCE] == 5_000_000
        assert amounts[InvoiceSectionKind.DEPOSIT] == 5_000_000
        assert amounts[InvoiceSectionKind.COMMISSION] == 1_250_000

    async def test_second_issue_returns_same_invoice(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        first = await services.invoices.issue_invoice(contract.id, TENANT_ID)
        second = await services.invoices.issue_invoice(contract.id, TENANT_ID)
        assert first.id == second.id

    async def test_tier_is_frozen_at_first_issue(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        first = await services.invoices.issue_invoice(contract.id, TENANT_ID, LoyaltyTier.TIER_0)
        later = await services.invoices.issue_invoice(contract.id, TENANT_ID, LoyaltyTier.TIER_3)

        assert later.id == first.id
        assert later.payer_tier == LoyaltyTier.TIER_0.value
        assert later.total == 11_250_000

    async def test_each_payer_gets_own_invoice(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        tenant = await services.invoices.issue_invoice(contract.id, TENANT_ID)
        owner = await services.invoices.issue_invoice(contract.id, OWNER_ID, LoyaltyTier.TIER_1)

        assert tenant.id != owner.id
        assert owner.payer_tier == LoyaltyTier.TIER_1.value

    async def test_unsigned_contract_not_payable(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        with pytest.raises(ContractNotPayableError):
            await services.invoices.issue_invoice(contract.id, TENANT_ID)

    async def test_outsider_not_invoiced(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        with pytest.raises(NotAPartyError):
            await services.invoices.issue_invoice(contract.id, "stranger")

    async def test_preview_writes_nothing(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        preview = await services.invoices.preview(contract.id, LoyaltyTier.TIER_2)
        assert preview.commission_amount == 1_125_000

    async def test_unknown_invoice(self, services) -> None:
        with pytest.raises(InvoiceNotFoundError):
            await services.invoices.get_invoice(uuid.uuid4())
