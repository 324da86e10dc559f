"""Platform commission calculation.

Pure functions, no I/O. All arithmetic happens in Decimal and the result is
rounded exactly once, half-up, to a whole currency unit:

    commission = round_half_up(base_amount * rate * (1 - tier_discount))

Examples:
    >>> commission(TransactionType.LEASE, 2_500_000, LoyaltyTier.TIER_0)
    1250000
    >>> commission(TransactionType.LEASE, 2_500_000, LoyaltyTier.TIER_2)
    1125000
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from realty_escrow.domain.enums import (
    ContractType,
    LoyaltyTier,
    PropertyKind,
    TransactionType,
)

COMMISSION_RATES: dict[TransactionType, Decimal] = {
    TransactionType.LEASE: Decimal("0.50"),  # of one month's rent
    TransactionType.LAND_SALE: Decimal("0.01"),
    TransactionType.BUILT_PROPERTY_SALE: Decimal("0.02"),
    TransactionType.MANAGEMENT_MANDATE: Decimal("0.08"),  # of monthly rent, recurring
}

TIER_DISCOUNTS: dict[LoyaltyTier, Decimal] = {
    LoyaltyTier.TIER_0: Decimal("0"),
    LoyaltyTier.TIER_1: Decimal("0.05"),
    LoyaltyTier.TIER_2: Decimal("0.10"),
    LoyaltyTier.TIER_3: Decimal("0.15"),
}


def round_to_unit(value: Decimal) -> int:
    """Round to the nearest whole currency unit, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def effective_rate(transaction_type: TransactionType, tier: LoyaltyTier) -> Decimal:
    """Base rate for the transaction type with the tier discount applied."""
    return COMMISSION_RATES[transaction_type] * (Decimal(1) - TIER_DISCOUNTS[tier])


def commission(
    transaction_type: TransactionType,
    base_amount: int,
    tier: LoyaltyTier = LoyaltyTier.TIER_0,
    minimum: int = 0,
) -> int:
    """Compute the platform commission for a transaction.

    Args:
        transaction_type: Which rate applies.
        base_amount: Monthly rent (lease, mandate) or sale price, in whole units.
        tier: Loyalty tier of the payer.
        minimum: Floor applied to a non-zero commission.

    Raises:
        ValueError: If base_amount is negative.
    """
    if base_amount < 0:
        raise ValueError(f"base_amount must be >= 0, got {base_amount}")

    amount = round_to_unit(Decimal(base_amount) * effective_rate(transaction_type, tier))
    if amount > 0 and amount < minimum:
        return minimum
    return amount


def transaction_type_for(
    contract_type: ContractType,
    property_kind: PropertyKind | None = None,
) -> TransactionType | None:
    """Map a contract template to its commission basis.

    Returns None for deposit attestations, which carry no commission.
    """
    if contract_type.is_lease:
        return TransactionType.LEASE
    if contract_type is ContractType.SALE_PROMISE:
        if property_kind is PropertyKind.LAND:
            return TransactionType.LAND_SALE
        return TransactionType.BUILT_PROPERTY_SALE
    if contract_type is ContractType.MANAGEMENT_MANDATE:
        return TransactionType.MANAGEMENT_MANDATE
    return None
