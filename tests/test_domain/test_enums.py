"""Tests for domain enumerations."""

from __future__ import annotations

from realty_escrow.domain.enums import (
    ContractStatus,
    ContractType,
    EventType,
    PaymentMethod,
    PaymentStatus,
)


class TestContractStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {
            "DRAFT", "AWAITING_SIGNATURE", "SIGNED",
            "ACTIVE", "CANCELLED", "TERMINATED",
        }
        actual = {s.value for s in ContractStatus}
        assert actual == expected

    def test_status_is_str_enum(self) -> None:
        assert isinstance(ContractStatus.SIGNED, str)
        assert ContractStatus.SIGNED == "SIGNED"


class TestPaymentStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {
            "PENDING", "PROCESSING", "ESCROW", "FAILED",
            "CONFIRMED", "REFUNDED", "DISPUTED",
        }
        assert {s.value for s in PaymentStatus} == expected


class TestContractType:
    def test_leases(self) -> None:
        assert ContractType.LEASE_RESIDENTIAL.is_lease
        assert ContractType.LEASE_COMMERCIAL.is_lease
        assert not ContractType.SALE_PROMISE.is_lease
        assert not ContractType.MANAGEMENT_MANDATE.is_lease


class TestPaymentMethod:
    def test_mobile_money(self) -> None:
        assert PaymentMethod.ORANGE_MONEY.is_mobile_money
        assert PaymentMethod.MTN_MOMO.is_mobile_money
        assert not PaymentMethod.CASH.is_mobile_money


class TestEventType:
    def test_event_type_is_str_enum(self) -> None:
        assert isinstance(EventType.CONTRACT_CREATED, str)

    def test_every_contract_status_has_an_entry_event(self) -> None:
        names = {e.value for e in EventType}
        for event in (
            "CONTRACT_SUBMITTED", "CONTRACT_SIGNED", "CONTRACT_ACTIVATED",
            "CONTRACT_CANCELLED", "CONTRACT_TERMINATED",
        ):
            assert event in names
