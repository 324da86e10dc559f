"""Tests for the three-step signature protocol and the signature certificate."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import (
    OWNER_ID,
    OWNER_PHONE,
    TENANT_ID,
    TENANT_PHONE,
    draft_contract,
    sign_as,
    signed_contract,
)

from realty_escrow.domain.enums import ContractStatus, EventType, PartyRole
from realty_escrow.domain.exceptions import (
    AlreadySignedError,
    CodeMismatchError,
    InvalidTransitionError,
    NotAPartyError,
    OtpExpiredError,
    TermsNotAcceptedError,
)
from realty_escrow.services import otp_service


async def _awaiting(services, terms):
    contract = await draft_contract(services, terms)
    return await services.contracts.submit_for_signature(contract.id, actor=OWNER_ID)


class TestSignatureOtp:
    async def test_terms_must_be_accepted(self, services, lease_terms) -> None:
        contract = await _awaiting(services, lease_terms)
        with pytest.raises(TermsNotAcceptedError):
            await services.signatures.request_signature_otp(contract.id, OWNER_ID, False)

    async def test_code_goes_to_the_party_phone(self, services, lease_terms, notifier) -> None:
        contract = await _awaiting(services, lease_terms)
        challenge = await services.signatures.request_signature_otp(contract.id, TENANT_ID, True)

        assert notifier.last_code_for(TENANT_PHONE) == challenge.code
        recipient, message = notifier.sent[-1]
        assert recipient == TENANT_PHONE
        assert contract.reference in message

    async def test_draft_cannot_be_signed(self, services, lease_terms) -> None:
        contract = await draft_contract(services, lease_terms)
        with pytest.raises(InvalidTransitionError):
            await services.signatures.request_signature_otp(contract.id, OWNER_ID, True)

    async def test_outsider_gets_no_code(self, services, lease_terms) -> None:
        contract = await _awaiting(services, lease_terms)
        with pytest.raises(NotAPartyError):
            await services.signatures.request_signature_otp(contract.id, "stranger", True)

    async def test_accept_terms_checks_without_writing(self, services, lease_terms) -> None:
        contract = await _awaiting(services, lease_terms)
        checked = await services.signatures.accept_terms(contract.id, OWNER_ID)
        assert checked.status == ContractStatus.AWAITING_SIGNATURE.value


class TestSign:
    async def test_first_signature_keeps_contract_awaiting(self, services, lease_terms) -> None:
        contract = await _awaiting(services, lease_terms)
        record = await sign_as(services, contract.id, OWNER_ID)

        assert record.role == PartyRole.OWNER.value
        assert record.signature_code.startswith("SIG-")
        contract = await services.contracts.get_contract(contract.id)
        assert contract.status == ContractStatus.AWAITING_SIGNATURE.value
        assert contract.retraction_expires_at is None

    async def test_second_signature_opens_window(self, services, lease_terms, clock) -> None:
        contract = await _awaiting(services, lease_terms)
        await sign_as(services, contract.id, TENANT_ID)
        clock.advance(hours=3)
        await sign_as(services, contract.id, OWNER_ID)

        contract = await services.contracts.get_contract(contract.id)
        assert contract.status == ContractStatus.SIGNED.value
        assert contract.signed_at == clock.now
        assert contract.retraction_expires_at == clock.now + timedelta(hours=48)
        assert contract.seal_hash is not None

    async def test_both_parties_notified_once_fully_signed(
        self, services, lease_terms, notifier
    ) -> None:
        await signed_contract(services, lease_terms)

        final_messages = [(to, m) for to, m in notifier.sent if "signed by both parties" in m]
        assert {to for to, _ in final_messages} == {OWNER_PHONE, TENANT_PHONE}

    async def test_already_signed(self, services, lease_terms) -> None:
        contract = await _awaiting(services, lease_terms)
        await sign_as(services, contract.id, OWNER_ID)

        with pytest.raises(AlreadySignedError):
            await services.signatures.request_signature_otp(contract.id, OWNER_ID, True)

    async def test_wrong_code_does_not_sign(self, services, lease_terms) -> None:
        contract = await _awaiting(services, lease_terms)
        challenge = await services.signatures.request_signature_otp(contract.id, OWNER_ID, True)
        wrong = "1" * len(challenge.code) if challenge.code != "1" * 6 else "2" * 6

        with pytest.raises(CodeMismatchError):
            await services.signatures.sign(contract.id, OWNER_ID, wrong)

        status = await services.contracts.get_status(contract.id)
        assert status["signature_count"] == 0

    async def test_code_of_one_party_does_not_sign_for_the_other(
        self, services, lease_terms, monkeypatch
    ) -> None:
        codes = iter(["111111", "222222"])
        monkeypatch.setattr(otp_service, "generate_code", lambda length: next(codes))
        contract = await _awaiting(services, lease_terms)
        owner_challenge = await services.signatures.request_signature_otp(
            contract.id, OWNER_ID, True
        )
        tenant_challenge = await services.signatures.request_signature_otp(
            contract.id, TENANT_ID, True
        )
        assert (owner_challenge.code, tenant_challenge.code) == ("111111", "222222")

        with pytest.raises(CodeMismatchError):
            await services.signatures.sign(contract.id, TENANT_ID, owner_challenge.code)

    async def test_expired_code(self, services, lease_terms, clock, settings) -> None:
        contract = await _awaiting(services, lease_terms)
        challenge = await services.signatures.request_signature_otp(contract.id, OWNER_ID, True)
        clock.advance(seconds=settings.otp_ttl_seconds + 1)

        with pytest.raises(OtpExpiredError):
            await services.signatures.sign(contract.id, OWNER_ID, challenge.code)

    async def test_audit_trail(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        events = [e.event_type for e in await services.contracts.get_events(contract.id)]
        assert sorted(events) == sorted(
            [
                EventType.CONTRACT_CREATED.value,
                EventType.CONTRACT_SUBMITTED.value,
                EventType.PARTY_SIGNED.value,
                EventType.PARTY_SIGNED.value,
                EventType.CONTRACT_SIGNED.value,
            ]
        )


class TestCertificate:
    async def test_certificate_lists_both_signers(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        cert = await services.signatures.get_signature_certificate(contract.id)

        assert cert["fully_signed"] is True
        assert {s["role"] for s in cert["signers"]} == {"OWNER", "COUNTERPARTY"}
        assert all(len(s["document_hash"]) == 16 for s in cert["signers"])
        assert len(cert["seal_hash"]) == 16

    async def test_integrity_holds_for_untouched_contract(self, services, lease_terms) -> None:
        contract = await signed_contract(services, lease_terms)
        report = await services.signatures.verify_signature_integrity(contract.id)

        assert report["valid"] is True
        assert report["seal_valid"] is True
        assert all(c["document_unchanged"] for c in report["signatures"])

    async def test_integrity_detects_changed_terms(self, services, lease_terms, session) -> None:
        contract = await signed_contract(services, lease_terms)
        contract.monthly_rent = 1_000_000
        await session.commit()

        report = await services.signatures.verify_signature_integrity(contract.id)

        assert report["valid"] is False
        assert report["seal_valid"] is False
        assert not any(c["document_unchanged"] for c in report["signatures"])
        assert all(c["signature_valid"] for c in report["signatures"])
