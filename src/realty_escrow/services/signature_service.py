"""Signature Service — OTP-authenticated electronic signatures.

Per party, strictly in order:
    1. accept_terms            (gate, nothing persisted)
    2. request_signature_otp   (code sent to the party's phone)
    3. sign                    (code verified, SignatureRecord written)

The record and the OTP consumption commit together. When the second party
signs, the contract moves to SIGNED in the same commit and the retraction
window opens from that instant.

Lock order is always contract, then OTP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from realty_escrow.config import get_settings
from realty_escrow.domain.enums import ContractStatus, EntityType, EventType, PartyRole
from realty_escrow.domain.exceptions import (
    AlreadySignedError,
    ContractNotFoundError,
    InvalidTransitionError,
    NotAPartyError,
    TermsNotAcceptedError,
)
from realty_escrow.domain.otp import signature_purpose
from realty_escrow.domain.signature import (
    document_hash,
    hashes_equal,
    seal_hash,
    signature_code,
    signature_hash,
)
from realty_escrow.domain.timekeeping import utcnow
from realty_escrow.infrastructure.database.orm_models import SignatureRecord
from realty_escrow.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    SignatureRepository,
)
from realty_escrow.infrastructure.locks import CONTRACT, get_lock_registry
from realty_escrow.logging_config import get_logger
from realty_escrow.providers.documents import CanonicalJsonRenderer
from realty_escrow.providers.notifications import LoggingGateway
from realty_escrow.services.contract_service import ContractService
from realty_escrow.services.otp_service import OtpService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from realty_escrow.config import Settings
    from realty_escrow.domain.otp import IssuedChallenge
    from realty_escrow.domain.ports import DocumentRenderer, NotificationGateway
    from realty_escrow.domain.timekeeping import Clock
    from realty_escrow.infrastructure.database.orm_models import Contract
    from realty_escrow.infrastructure.locks import EntityLockRegistry

logger = get_logger(__name__)

_ROLE_ORDER = {PartyRole.OWNER.value: 0, PartyRole.COUNTERPARTY.value: 1}


def document_snapshot(contract: Contract) -> dict:
    """The signed content: parties and terms, never status or signatures."""
    return {
        "contract_id": str(contract.id),
        "reference": contract.reference,
        "contract_type": contract.contract_type,
        "property_kind": contract.property_kind,
        "owner_id": contract.owner_id,
        "counterparty_id": contract.counterparty_id,
        "monthly_rent": contract.monthly_rent,
        "sale_price": contract.sale_price,
        "deposit_months": contract.deposit_months,
        "advance_months": contract.advance_months,
        "duration_mode": contract.duration_mode,
        "start_date": contract.start_date,
        "end_date": contract.end_date,
        "duration_months": contract.duration_months,
    }


class SignatureService:
    """Coordinates the two-party signature protocol."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        notifier: NotificationGateway | None = None,
        renderer: DocumentRenderer | None = None,
        clock: Clock = utcnow,
        locks: EntityLockRegistry | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._notifier = notifier or LoggingGateway()
        self._renderer = renderer or CanonicalJsonRenderer()
        self._clock = clock
        self._locks = locks or get_lock_registry()
        self._contract_repo = ContractRepository(session)
        self._signature_repo = SignatureRepository(session)
        self._audit_repo = AuditRepository(session)
        self._contracts = ContractService(session, self._settings, clock, self._locks)
        self._otp = OtpService(session, self._settings, self._notifier, clock, self._locks)

    # ------------------------------------------------------------------
    # Steps 1 and 2
    # ------------------------------------------------------------------

    async def accept_terms(self, contract_id: uuid.UUID, party_id: str) -> Contract:
        """Check that `party_id` may sign `contract_id` now. Persists nothing."""
        contract = await self._get_contract_or_raise(contract_id)
        await self._check_can_sign(contract, party_id)
        return contract

    async def request_signature_otp(
        self,
        contract_id: uuid.UUID,
        party_id: str,
        accepted_terms: bool,
    ) -> IssuedChallenge:
        """Send a signature code to the party, superseding any earlier one.

        Raises:
            TermsNotAcceptedError: `accepted_terms` is false.
            NotAPartyError / AlreadySignedError / InvalidTransitionError:
                The party cannot sign this contract now.
        """
        if not accepted_terms:
            raise TermsNotAcceptedError()

        contract = await self._get_contract_or_raise(contract_id)
        await self._check_can_sign(contract, party_id)

        message = (
            f"Your signature code for contract {contract.reference} is {{code}}. "
            "It expires in {minutes} minutes. Never share it."
        )
        challenge = await self._otp.request_challenge(
            subject_id=party_id,
            purpose=signature_purpose(contract.id, party_id),
            recipient=contract.party_phone(party_id),
            message=message,
        )
        logger.info(
            "signature.otp_requested",
            contract_id=str(contract_id),
            party_id=party_id,
            delivered=challenge.delivered,
        )
        return challenge

    # ------------------------------------------------------------------
    # Step 3
    # ------------------------------------------------------------------

    async def sign(self, contract_id: uuid.UUID, party_id: str, code: str) -> SignatureRecord:
        """Verify the code and record the party's signature.

        Raises:
            NotAPartyError, AlreadySignedError, InvalidTransitionError,
            and any OtpError from verification.
        """
        async with self._locks.hold(CONTRACT, contract_id):
            contract = await self._contract_repo.get_for_update(contract_id)
            if contract is None:
                raise ContractNotFoundError(str(contract_id))
            signatures = await self._check_can_sign(contract, party_id)

            proof = await self._otp.verify(
                signature_purpose(contract.id, party_id), code, commit_success=False
            )

            signed_at = self._clock()
            role = contract.party_role(party_id)
            doc_hash = document_hash(self._renderer.render(document_snapshot(contract)))
            record = await self._signature_repo.create(
                SignatureRecord(
                    contract_id=contract.id,
                    party_id=party_id,
                    role=role,
                    otp_challenge_id=proof.challenge_id,
                    otp_code_hash=proof.code_hash,
                    otp_verified_at=proof.verified_at,
                    signed_at=signed_at,
                    document_hash=doc_hash,
                    signature_hash=signature_hash(
                        contract.id, contract.reference, party_id, role, signed_at, doc_hash
                    ),
                    signature_code=signature_code(),
                )
            )
            await self._audit_repo.record(
                entity_type=EntityType.CONTRACT,
                entity_id=contract.id,
                event_type=EventType.PARTY_SIGNED,
                old_status=contract.status,
                new_status=contract.status,
                actor=party_id,
                metadata={"role": role, "signature_code": record.signature_code},
            )

            all_signatures = [*signatures, record]
            fully_signed = len({s.party_id for s in all_signatures}) == 2
            if fully_signed:
                ordered = sorted(all_signatures, key=lambda s: _ROLE_ORDER[s.role])
                seal = seal_hash(contract.id, doc_hash, [s.signature_hash for s in ordered])
                await self._contracts.record_full_signature_locked(
                    contract, signed_at, seal, actor=party_id
                )

            await self._session.commit()

        logger.info(
            "signature.recorded",
            contract_id=str(contract_id),
            party_id=party_id,
            role=role,
            fully_signed=fully_signed,
        )
        if fully_signed:
            await self._notify_signed(contract)
        return record

    # ------------------------------------------------------------------
    # Certificate & integrity
    # ------------------------------------------------------------------

    async def get_signature_certificate(self, contract_id: uuid.UUID) -> dict:
        """Who signed, as what, and short fingerprints of what they signed."""
        contract = await self._get_contract_or_raise(contract_id)
        signatures = await self._signature_repo.get_by_contract(contract.id)
        return {
            "contract_id": str(contract.id),
            "reference": contract.reference,
            "status": contract.status,
            "fully_signed": contract.signed_at is not None,
            "signed_at": contract.signed_at,
            "retraction_expires_at": contract.retraction_expires_at,
            "seal_hash": contract.seal_hash[:16] if contract.seal_hash else None,
            "signers": [
                {
                    "party_id": s.party_id,
                    "role": s.role,
                    "signed_at": s.signed_at,
                    "signature_code": s.signature_code,
                    "document_hash": s.document_hash[:16],
                    "signature_hash": s.signature_hash[:16],
                }
                for s in signatures
            ],
        }

    async def verify_signature_integrity(self, contract_id: uuid.UUID) -> dict:
        """Recompute every hash from the stored terms and compare."""
        contract = await self._get_contract_or_raise(contract_id)
        signatures = await self._signature_repo.get_by_contract(contract.id)
        current_doc = document_hash(self._renderer.render(document_snapshot(contract)))

        checks = []
        for s in signatures:
            expected = signature_hash(
                contract.id, contract.reference, s.party_id, s.role, s.signed_at, s.document_hash
            )
            checks.append(
                {
                    "party_id": s.party_id,
                    "role": s.role,
                    "document_unchanged": hashes_equal(s.document_hash, current_doc),
                    "signature_valid": hashes_equal(s.signature_hash, expected),
                }
            )

        seal_valid = None
        if contract.seal_hash is not None:
            ordered = sorted(signatures, key=lambda s: _ROLE_ORDER[s.role])
            seal_valid = hashes_equal(
                contract.seal_hash,
                seal_hash(contract.id, current_doc, [s.signature_hash for s in ordered]),
            )

        valid = all(c["document_unchanged"] and c["signature_valid"] for c in checks)
        if seal_valid is False:
            valid = False
        if not valid:
            logger.warning("signature.integrity_failed", contract_id=str(contract_id))
        return {
            "contract_id": str(contract.id),
            "valid": valid,
            "seal_valid": seal_valid,
            "signatures": checks,
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_contract_or_raise(self, contract_id: uuid.UUID) -> Contract:
        contract = await self._contract_repo.get_by_id(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        return contract

    async def _check_can_sign(self, contract: Contract, party_id: str) -> list[SignatureRecord]:
        if contract.party_role(party_id) is None:
            raise NotAPartyError(str(contract.id), party_id)
        signatures = await self._signature_repo.get_by_contract(contract.id)
        if any(s.party_id == party_id for s in signatures):
            raise AlreadySignedError(str(contract.id), party_id)
        if contract.status != ContractStatus.AWAITING_SIGNATURE.value:
            raise InvalidTransitionError(contract.status, "sign")
        return signatures

    async def _notify_signed(self, contract: Contract) -> None:
        hours = self._settings.retraction_window_hours
        message = (
            f"Contract {contract.reference} is signed by both parties. "
            f"You can cancel it within {hours} hours, until "
            f"{contract.retraction_expires_at:%Y-%m-%d %H:%M} UTC."
        )
        for party_id in (contract.owner_id, contract.counterparty_id):
            await self._notifier.send(contract.party_phone(party_id), message)
