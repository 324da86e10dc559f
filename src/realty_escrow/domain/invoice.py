"""Invoice composition.

An invoice always has three sections in a fixed order: rent/advance, deposit,
commission. The total is the sum of the already-rounded section amounts, so
the displayed line items always add up to the displayed total.

    Lease, rent 2,500,000, 2 months advance, 2 months deposit, TIER_0:
        RENT_ADVANCE  5,000,000
        DEPOSIT       5,000,000
        COMMISSION    1,250,000  (non-refundable)
        TOTAL        11,250,000
"""

from __future__ import annotations

from dataclasses import dataclass, field

from realty_escrow.domain.commission import commission, transaction_type_for
from realty_escrow.domain.enums import ContractType, InvoiceSectionKind, LoyaltyTier
from realty_escrow.domain.terms import ContractTerms


@dataclass(frozen=True)
class InvoiceSection:
    kind: InvoiceSectionKind
    label: str
    amount: int
    non_refundable: bool = False
    recurring: bool = False

    def to_dict(self) -> dict:
        """Serialize for storage in the invoice's JSON column."""
        return {
            "kind": self.kind.value,
            "label": self.label,
            "amount": self.amount,
            "non_refundable": self.non_refundable,
            "recurring": self.recurring,
        }

    @classmethod
    def from_dict(cls, data: dict) -> InvoiceSection:
        return cls(
            kind=InvoiceSectionKind(data["kind"]),
            label=data["label"],
            amount=int(data["amount"]),
            non_refundable=bool(data.get("non_refundable", False)),
            recurring=bool(data.get("recurring", False)),
        )


@dataclass(frozen=True)
class ComposedInvoice:
    """Result of composing an invoice for one payer at one tier."""

    payer_tier: LoyaltyTier
    sections: tuple[InvoiceSection, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return sum(section.amount for section in self.sections)

    def section(self, kind: InvoiceSectionKind) -> InvoiceSection:
        for s in self.sections:
            if s.kind is kind:
                return s
        raise KeyError(kind)

    @property
    def rent_amount(self) -> int:
        return self.section(InvoiceSectionKind.RENT_ADVANCE).amount

    @property
    def deposit_amount(self) -> int:
        return self.section(InvoiceSectionKind.DEPOSIT).amount

    @property
    def commission_amount(self) -> int:
        return self.section(InvoiceSectionKind.COMMISSION).amount


def compose_invoice(
    terms: ContractTerms,
    tier: LoyaltyTier,
    minimum_commission: int = 0,
) -> ComposedInvoice:
    """Build the three invoice sections for a contract's terms.

    Args:
        terms: Validated contract terms.
        tier: Payer's loyalty tier, frozen into the result.
        minimum_commission: Floor for a non-zero commission.
    """
    ct = terms.contract_type

    if ct.is_lease:
        rent = terms.monthly_rent * terms.advance_months
        rent_label = f"Rent advance ({terms.advance_months} month(s))"
    elif ct is ContractType.SALE_PROMISE:
        rent = terms.sale_price
        rent_label = "Sale price"
    else:
        rent = 0
        rent_label = "Rent advance"

    if ct.is_lease or ct is ContractType.DEPOSIT_ATTESTATION:
        deposit = terms.monthly_rent * terms.deposit_months
    else:
        deposit = 0

    tx_type = transaction_type_for(ct, terms.property_kind)
    if tx_type is None:
        fee = 0
    else:
        base = terms.sale_price if ct is ContractType.SALE_PROMISE else terms.monthly_rent
        fee = commission(tx_type, base, tier, minimum=minimum_commission)

    sections = (
        InvoiceSection(InvoiceSectionKind.RENT_ADVANCE, rent_label, rent),
        InvoiceSection(
            InvoiceSectionKind.DEPOSIT,
            f"Deposit ({terms.deposit_months} month(s))",
            deposit,
        ),
        InvoiceSection(
            InvoiceSectionKind.COMMISSION,
            "Platform commission",
            fee,
            non_refundable=True,
            recurring=ct is ContractType.MANAGEMENT_MANDATE,
        ),
    )
    return ComposedInvoice(payer_tier=tier, sections=sections)
