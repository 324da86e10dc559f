"""OTP Service — issues and verifies one-time codes.

Challenges are keyed by purpose. Requesting a new challenge supersedes the
live one, so at most one code is ever valid for a purpose (the partial unique
index on otp_challenges backs this up). Expiry is evaluated lazily here, at
verification time; no timer is involved.

Failure paths commit before raising: an attempt counter that rolls back with
the request would give an attacker unlimited guesses.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from realty_escrow.config import get_settings
from realty_escrow.domain.enums import OtpInvalidation, OtpState
from realty_escrow.domain.exceptions import (
    AttemptsExceededError,
    ChallengeNotFoundError,
    CodeMismatchError,
    OtpExpiredError,
)
from realty_escrow.domain.otp import (
    IssuedChallenge,
    OtpProof,
    code_matches,
    generate_code,
    hash_code,
)
from realty_escrow.domain.timekeeping import ensure_utc, utcnow
from realty_escrow.infrastructure.database.orm_models import OtpChallenge
from realty_escrow.infrastructure.database.repositories import OtpRepository
from realty_escrow.infrastructure.locks import OTP, get_lock_registry
from realty_escrow.logging_config import get_logger
from realty_escrow.providers.notifications import LoggingGateway

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.config import Settings
    from realty_escrow.domain.ports import NotificationGateway
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.locks import EntityLockRegistry

logger = get_logger(__name__)


class OtpService:
    """Manages OTP challenges for a purpose."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        notifier: NotificationGateway | None = None,
        clock: Clock = utcnow,
        locks: EntityLockRegistry | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._notifier = notifier or LoggingGateway()
        self._clock = clock
        self._locks = locks or get_lock_registry()
        self._repo = OtpRepository(session)

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    async def request_challenge(
        self,
        subject_id: str,
        purpose: str,
        recipient: str,
        message: str = "Your verification code is {code}. It expires in {minutes} minutes.",
    ) -> IssuedChallenge:
        """Issue a fresh challenge for `purpose`, superseding any live one.

        The code is delivered through the notification gateway. Delivery
        failure is logged and reported in `delivered`, never raised.
        """
        now = self._clock()
        code = generate_code(self._settings.otp_code_length)

        async with self._locks.hold(OTP, purpose):
            previous = await self._repo.get_live(purpose)
            if previous is not None:
                previous.state = OtpState.INVALIDATED.value
                previous.invalidated_reason = OtpInvalidation.SUPERSEDED.value
                # Flush the invalidation before inserting so the partial unique
                # index never sees two LIVE rows
                await self._session.flush()

            challenge = await self._repo.create(
                OtpChallenge(
                    subject_id=subject_id,
                    purpose=purpose,
                    code_hash=hash_code(code),
                    created_at=now,
                    expires_at=now + timedelta(seconds=self._settings.otp_ttl_seconds),
                    attempt_count=0,
                    max_attempts=self._settings.otp_max_attempts,
                    state=OtpState.LIVE.value,
                )
            )
            await self._session.commit()

        logger.info(
            "otp.issued",
            purpose=purpose,
            challenge_id=str(challenge.id),
            superseded=str(previous.id) if previous is not None else None,
        )

        minutes = max(self._settings.otp_ttl_seconds // 60, 1)
        delivered = await self._notifier.send(recipient, message.format(code=code, minutes=minutes))
        if not delivered:
            logger.warning("otp.delivery_failed", purpose=purpose, challenge_id=str(challenge.id))

        return IssuedChallenge(
            challenge_id=challenge.id,
            purpose=purpose,
            code=code,
            expires_at=challenge.expires_at,
            delivered=delivered,
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    async def verify(self, purpose: str, code: str, commit_success: bool = True) -> OtpProof:
        """Consume the live challenge for `purpose` if `code` is correct.

        Args:
            purpose: The purpose the challenge was issued for.
            code: The code the subject typed.
            commit_success: Commit the consumption here. Callers that must
                write something atomically with it pass False and commit
                themselves.

        Raises:
            ChallengeNotFoundError: Nothing was ever issued for this purpose.
            OtpExpiredError: Past expiry, already consumed, or superseded.
            CodeMismatchError: Wrong code, attempts remain.
            AttemptsExceededError: Wrong code and no attempts remain.
        """
        async with self._locks.hold(OTP, purpose):
            return await self._verify_locked(purpose, code, commit_success)

    async def _verify_locked(self, purpose: str, code: str, commit_success: bool) -> OtpProof:
        now = self._clock()
        challenge = await self._repo.get_live(purpose)

        if challenge is None:
            latest = await self._repo.get_latest(purpose)
            if latest is None:
                raise ChallengeNotFoundError(purpose)
            if latest.invalidated_reason == OtpInvalidation.ATTEMPTS_EXCEEDED.value:
                raise AttemptsExceededError(latest.max_attempts)
            raise OtpExpiredError(
                "Code already used" if latest.state == OtpState.CONSUMED.value else "Code expired"
            )

        if now >= ensure_utc(challenge.expires_at):
            await self._invalidate(challenge, OtpInvalidation.EXPIRED)
            logger.info("otp.expired", purpose=purpose, challenge_id=str(challenge.id))
            raise OtpExpiredError()

        if not code_matches(code, challenge.code_hash):
            challenge.attempt_count += 1
            remaining = challenge.max_attempts - challenge.attempt_count
            if remaining <= 0:
                await self._invalidate(challenge, OtpInvalidation.ATTEMPTS_EXCEEDED)
                logger.warning(
                    "otp.attempts_exceeded", purpose=purpose, challenge_id=str(challenge.id)
                )
                raise AttemptsExceededError(challenge.max_attempts)
            await self._session.commit()
            logger.info("otp.mismatch", purpose=purpose, remaining=remaining)
            raise CodeMismatchError(remaining)

        challenge.state = OtpState.CONSUMED.value
        challenge.consumed_at = now
        await self._session.flush()
        if commit_success:
            await self._session.commit()

        logger.info("otp.verified", purpose=purpose, challenge_id=str(challenge.id))
        return OtpProof(
            challenge_id=challenge.id,
            subject_id=challenge.subject_id,
            purpose=purpose,
            code_hash=challenge.code_hash,
            verified_at=now,
        )

    async def _invalidate(self, challenge: OtpChallenge, reason: OtpInvalidation) -> None:
        challenge.state = OtpState.INVALIDATED.value
        challenge.invalidated_reason = reason.value
        await self._session.commit()
