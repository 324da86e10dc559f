"""Tests for commission calculation."""

from __future__ import annotations

import pytest

from realty_escrow.domain.commission import commission, effective_rate, transaction_type_for
from realty_escrow.domain.enums import ContractType, LoyaltyTier, PropertyKind, TransactionType


class TestCommissionRates:
    def test_lease_is_half_a_month(self) -> None:
        assert commission(TransactionType.LEASE, 2_500_000) == 1_250_000

    def test_land_sale_one_percent(self) -> None:
        assert commission(TransactionType.LAND_SALE, 300_000_000) == 3_000_000

    def test_built_sale_two_percent(self) -> None:
        assert commission(TransactionType.BUILT_PROPERTY_SALE, 300_000_000) == 6_000_000

    def test_management_mandate_eight_percent(self) -> None:
        assert commission(TransactionType.MANAGEMENT_MANDATE, 1_000_000) == 80_000


class TestTierDiscounts:
    @pytest.mark.parametrize(
        ("tier", "expected"),
        [
            (LoyaltyTier.TIER_0, 1_250_000),
            (LoyaltyTier.TIER_1, 1_187_500),
            (LoyaltyTier.TIER_2, 1_125_000),
            (LoyaltyTier.TIER_3, 1_062_500),
        ],
    )
    def test_lease_by_tier(self, tier: LoyaltyTier, expected: int) -> None:
        assert commission(TransactionType.LEASE, 2_500_000, tier) == expected

    def test_effective_rate_never_negative(self) -> None:
        for tx in TransactionType:
            for tier in LoyaltyTier:
                assert effective_rate(tx, tier) > 0


class TestRounding:
    def test_half_rounds_up(self) -> None:
        # 0.5 * 1_000_001 = 500_000.5
        assert commission(TransactionType.LEASE, 1_000_001) == 500_001

    def test_below_half_rounds_down(self) -> None:
        # 0.08 * 1_000_005 = 80_000.4
        assert commission(TransactionType.MANAGEMENT_MANDATE, 1_000_005) == 80_000


class TestMinimum:
    def test_floor_applies_to_small_commission(self) -> None:
        assert commission(TransactionType.MANAGEMENT_MANDATE, 500_000, minimum=100_000) == 100_000

    def test_zero_base_stays_zero(self) -> None:
        assert commission(TransactionType.LEASE, 0, minimum=100_000) == 0

    def test_negative_base_rejected(self) -> None:
        with pytest.raises(ValueError, match="base_amount"):
            commission(TransactionType.LEASE, -1)


class TestTransactionTypeFor:
    def test_mapping(self) -> None:
        assert transaction_type_for(ContractType.LEASE_COMMERCIAL) is TransactionType.LEASE
        assert (
            transaction_type_for(ContractType.SALE_PROMISE, PropertyKind.LAND)
            is TransactionType.LAND_SALE
        )
        assert (
            transaction_type_for(ContractType.SALE_PROMISE, PropertyKind.BUILT)
            is TransactionType.BUILT_PROPERTY_SALE
        )
        assert (
            transaction_type_for(ContractType.MANAGEMENT_MANDATE)
            is TransactionType.MANAGEMENT_MANDATE
        )

    def test_deposit_attestation_has_no_commission(self) -> None:
        assert transaction_type_for(ContractType.DEPOSIT_ATTESTATION) is None
