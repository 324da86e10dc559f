"""Tests for OtpService: issue, supersede, verify, expiry and attempt limits."""

from __future__ import annotations

import pytest

from realty_escrow.domain.enums import OtpInvalidation, OtpState
from realty_escrow.domain.exceptions import (
    AttemptsExceededError,
    ChallengeNotFoundError,
    CodeMismatchError,
    OtpExpiredError,
)
from realty_escrow.infrastructure.database.orm_models import OtpChallenge
from realty_escrow.infrastructure.database.repositories import OtpRepository

PURPOSE = "login:owner-1"
PHONE = "621000001"


def _wrong(code: str) -> str:
    return "0" * len(code) if code != "0" * len(code) else "1" * len(code)


class TestRequestChallenge:
    async def test_code_is_delivered_and_stored_hashed(self, services, notifier, session) -> None:
        issued = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)

        assert issued.delivered is True
        assert notifier.last_code_for(PHONE) == issued.code

        stored = await OtpRepository(session).get_live(PURPOSE)
        assert stored.id == issued.challenge_id
        assert stored.code_hash != issued.code
        assert stored.state == OtpState.LIVE.value

    async def test_new_request_supersedes_live_challenge(self, services) -> None:
        first = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        second = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)

        assert first.challenge_id != second.challenge_id
        if first.code != second.code:
            with pytest.raises(CodeMismatchError):
                await services.otp.verify(PURPOSE, first.code)
        proof = await services.otp.verify(PURPOSE, second.code)
        assert proof.challenge_id == second.challenge_id

    async def test_superseded_row_is_marked(self, services, session) -> None:
        first = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        await services.otp.request_challenge("owner-1", PURPOSE, PHONE)

        old = await session.get(OtpChallenge, first.challenge_id)
        assert old.state == OtpState.INVALIDATED.value
        assert old.invalidated_reason == OtpInvalidation.SUPERSEDED.value


class TestVerify:
    async def test_nothing_issued(self, services) -> None:
        with pytest.raises(ChallengeNotFoundError):
            await services.otp.verify(PURPOSE, "123456")

    async def test_correct_code_consumes(self, services, clock) -> None:
        issued = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        proof = await services.otp.verify(PURPOSE, issued.code)

        assert proof.subject_id == "owner-1"
        assert proof.verified_at == clock.now

        with pytest.raises(OtpExpiredError, match="already used"):
            await services.otp.verify(PURPOSE, issued.code)

    async def test_expired_code_rejected(self, services, clock, settings) -> None:
        issued = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        clock.advance(seconds=settings.otp_ttl_seconds)

        with pytest.raises(OtpExpiredError):
            await services.otp.verify(PURPOSE, issued.code)
        # Still expired on retry, never silently revived
        with pytest.raises(OtpExpiredError):
            await services.otp.verify(PURPOSE, issued.code)

    async def test_mismatch_reports_remaining_attempts(self, services) -> None:
        issued = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)

        with pytest.raises(CodeMismatchError) as exc_info:
            await services.otp.verify(PURPOSE, _wrong(issued.code))
        assert exc_info.value.remaining_attempts == 2

    async def test_attempts_exhausted_invalidates(self, services) -> None:
        issued = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        wrong = _wrong(issued.code)

        for _ in range(2):
            with pytest.raises(CodeMismatchError):
                await services.otp.verify(PURPOSE, wrong)
        with pytest.raises(AttemptsExceededError):
            await services.otp.verify(PURPOSE, wrong)

        # The right code no longer helps
        with pytest.raises(AttemptsExceededError):
            await services.otp.verify(PURPOSE, issued.code)

    async def test_fresh_request_after_lockout(self, services) -> None:
        issued = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        for _ in range(3):
            with pytest.raises((CodeMismatchError, AttemptsExceededError)):
                await services.otp.verify(PURPOSE, _wrong(issued.code))

        again = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        proof = await services.otp.verify(PURPOSE, again.code)
        assert proof.challenge_id == again.challenge_id

    async def test_purposes_are_independent(self, services) -> None:
        mine = await services.otp.request_challenge("owner-1", PURPOSE, PHONE)
        await services.otp.request_challenge("tenant-1", "login:tenant-1", "664000002")

        proof = await services.otp.verify(PURPOSE, mine.code)
        assert proof.purpose == PURPOSE
