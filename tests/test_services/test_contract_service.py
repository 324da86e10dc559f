"""Tests for ContractService: drafting, cancellation, activation and expiry."""

from __future__ import annotations

import dataclasses
import uuid
from datetime import date

import pytest
from conftest import OWNER_ID, TENANT_ID, draft_contract, signed_contract

from realty_escrow.domain.enums import ContractStatus, EventType, TerminationReason
from realty_escrow.domain.exceptions import (
    CancellationReasonRequiredError,
    ContractNotFoundError,
    ContractValidationError,
    InvalidTransitionError,
    NotAPartyError,
    RetractionWindowClosedError,
)


class TestCreateDraft:
    async def test_persists_draft_with_reference(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)

        assert contract.status == ContractStatus.DRAFT.value
        assert contract.reference.startswith("CTR-202603-")
        assert contract.owner_phone == "621000001"
        assert contract.monthly_rent == 2_500_000

        events = await services.contracts.get_events(contract.id)
        assert [e.event_type for e in events] == [EventType.CONTRACT_CREATED.value]

    async def test_references_are_unique(self, services, lease_terms) -> None:
        first = await draft_contract(services, lease_terms)
        second = await draft_contract(services, lease_terms)
        assert first.reference != second.reference

    async def test_same_party_twice_rejected(self, services, lease_terms) -> None:
        with pytest.raises(ContractValidationError):
            await services.contracts.create_draft(
                owner_id=OWNER_ID,
                counterparty_id=OWNER_ID,
                owner_phone="621000001",
                counterparty_phone="664000002",
                terms=lease_terms,
            )

    async def test_bad_phone_rejected(self, services, lease_terms) -> None:
        with pytest.raises(ContractValidationError, match="counterparty_phone"):
            await services.contracts.create_draft(
                owner_id=OWNER_ID,
                counterparty_id=TENANT_ID,
                owner_phone="621000001",
                counterparty_phone="12",
                terms=lease_terms,
            )

    async def test_inconsistent_terms_rejected(self, services, lease_terms) -> None:
        with pytest.raises(ContractValidationError):
            await draft_contract(services, dataclasses.replace(lease_terms, monthly_rent=0))

    async def test_unknown_contract(self, services) -> None:
        with pytest.raises(ContractNotFoundError):
            await services.contracts.get_contract(uuid.uuid4())


class TestSubmitAndWithdraw:
    async def test_submit_moves_to_awaiting_signature(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        contract = await services.contracts.submit_for_signature(contract.id, actor=OWNER_ID)
        assert contract.status == ContractStatus.AWAITING_SIGNATURE.value

    async def test_submit_twice_is_invalid(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        await services.contracts.submit_for_signature(contract.id, actor=OWNER_ID)
        with pytest.raises(InvalidTransitionError):
            await services.contracts.submit_for_signature(contract.id, actor=OWNER_ID)

    async def test_owner_withdraws_unsigned_contract(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        await services.contracts.submit_for_signature(contract.id, actor=OWNER_ID)

        contract = await services.contracts.withdraw(contract.id, " changed my mind ", OWNER_ID)

        assert contract.status == ContractStatus.CANCELLED.value
        assert contract.cancellation_reason == "changed my mind"
        assert contract.cancelled_by == OWNER_ID

    async def test_tenant_cannot_withdraw(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        with pytest.raises(NotAPartyError):
            await services.contracts.withdraw(contract.id, "no", TENANT_ID)

    async def test_withdraw_needs_reason(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        with pytest.raises(CancellationReasonRequiredError):
            await services.contracts.withdraw(contract.id, "  ", OWNER_ID)


class TestCancel:
    async def test_either_party_cancels_within_window(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=47, minutes=59)

        contract = await services.contracts.cancel(contract.id, "Found another flat", TENANT_ID)

        assert contract.status == ContractStatus.CANCELLED.value
        assert contract.cancelled_by == TENANT_ID
        assert contract.cancelled_at == clock.now

    async def test_blank_reason_rejected(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        with pytest.raises(CancellationReasonRequiredError):
            await services.contracts.cancel(contract.id, "", OWNER_ID)

    async def test_outsider_rejected(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        with pytest.raises(NotAPartyError):
            await services.contracts.cancel(contract.id, "reason", "stranger")

    async def test_window_closed_exactly_at_expiry(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=48)

        with pytest.raises(RetractionWindowClosedError):
            await services.contracts.cancel(contract.id, "too late", OWNER_ID)

    async def test_active_contract_cannot_be_cancelled(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=49)
        await services.contracts.activate_if_window_elapsed(contract.id)

        with pytest.raises(RetractionWindowClosedError):
            await services.contracts.cancel(contract.id, "too late", OWNER_ID)

    async def test_unsigned_contract_is_not_cancellable(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        with pytest.raises(InvalidTransitionError):
            await services.contracts.cancel(contract.id, "reason", OWNER_ID)

    async def test_second_cancel_is_invalid(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        await services.contracts.cancel(contract.id, "reason", OWNER_ID)
        with pytest.raises(InvalidTransitionError):
            await services.contracts.cancel(contract.id, "again", TENANT_ID)


class TestActivation:
    async def test_noop_while_window_open(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=12)

        assert await services.contracts.activate_if_window_elapsed(contract.id) is None
        contract = await services.contracts.get_contract(contract.id)
        assert contract.status == ContractStatus.SIGNED.value

    async def test_activates_after_window(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=48)

        contract = await services.contracts.activate_if_window_elapsed(contract.id)

        assert contract.status == ContractStatus.ACTIVE.value
        assert contract.activated_at == clock.now

    async def test_second_activation_is_noop(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=48)
        await services.contracts.activate_if_window_elapsed(contract.id)

        assert await services.contracts.activate_if_window_elapsed(contract.id) is None
        events = await services.contracts.get_events(contract.id)
        activations = [e for e in events if e.event_type == EventType.CONTRACT_ACTIVATED.value]
        assert len(activations) == 1

    async def test_cancelled_contract_never_activates(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        await services.contracts.cancel(contract.id, "reason", OWNER_ID)
        clock.advance(hours=72)

        assert await services.contracts.activate_if_window_elapsed(contract.id) is None
        contract = await services.contracts.get_contract(contract.id)
        assert contract.status == ContractStatus.CANCELLED.value


class TestTermination:
    async def _active(self, services, lease_terms, clock):
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=48)
        return await services.contracts.activate_if_window_elapsed(contract.id)

    async def test_mutual_termination(self, services, lease_terms, clock) -> None:
        contract = await self._active(services, lease_terms, clock)
        contract = await services.contracts.terminate(
            contract.id, TerminationReason.MUTUAL, actor=OWNER_ID
        )
        assert contract.status == ContractStatus.TERMINATED.value
        assert contract.termination_reason == TerminationReason.MUTUAL.value

    async def test_signed_contract_cannot_be_terminated(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        with pytest.raises(InvalidTransitionError):
            await services.contracts.terminate(contract.id, TerminationReason.MUTUAL)

    async def test_natural_expiry(self, services, lease_terms, clock) -> None:
        contract = await self._active(services, lease_terms, clock)

        assert await services.contracts.expire_ended_contracts(date(2026, 12, 1)) == []
        expired = await services.contracts.expire_ended_contracts(date(2027, 6, 1))

        assert expired == [contract.id]
        contract = await services.contracts.get_contract(contract.id)
        assert contract.termination_reason == TerminationReason.NATURAL_EXPIRY.value


class TestStatus:
    async def test_status_reports_countdown(self, services, lease_terms, clock) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=10)

        status = await services.contracts.get_status(contract.id)

        assert status["status"] == ContractStatus.SIGNED.value
        assert status["signature_count"] == 2
        assert status["retraction_open"] is True
        assert status["retraction_remaining_seconds"] == 38 * 3600
        assert "retract" in status["allowed_events"]

    async def test_list_for_party(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        assert [c.id for c in await services.contracts.list_for_party(TENANT_ID)] == [contract.id]
        assert await services.contracts.list_for_party("nobody") == []
