"""Contract lifecycle API routes.

Drafting, the three-step signature flow, the retraction window,
termination and invoicing. Payment operations live in routes/payments.py.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002 - resolved by FastAPI at runtime

from realty_escrow.api.deps import (
    get_app_settings,
    get_clock,
    get_contract_service,
    get_db_session,
    get_invoice_service,
    get_locks,
    get_notifier,
    get_provider_factory,
    get_retraction_service,
    get_signature_service,
)
from realty_escrow.config import Settings  # noqa: TC001
from realty_escrow.domain.ports import NotificationGateway  # noqa: TC001
from realty_escrow.domain.timekeeping import Clock  # noqa: TC001
from realty_escrow.infrastructure.locks import EntityLockRegistry  # noqa: TC001
from realty_escrow.orchestration.workflows import cancel_contract_with_refunds
from realty_escrow.providers import ProviderFactory  # noqa: TC001
from realty_escrow.schemas import (
    AcceptTermsRequest,
    ActorRequest,
    AuditEventResponse,
    CancelContractRequest,
    CancellationResponse,
    ContractResponse,
    ContractStatusResponse,
    CreateContractRequest,
    InvoiceRequest,
    InvoiceResponse,
    RetractionResponse,
    SignatureCertificateResponse,
    SignatureIntegrityResponse,
    SignatureOtpRequest,
    SignatureOtpResponse,
    SignatureResponse,
    SignRequest,
    TerminateContractRequest,
)
from realty_escrow.services import (
    ContractService,
    InvoiceService,
    RetractionService,
    SignatureService,
)

router = APIRouter(prefix="/api/v1/contracts", tags=["Contracts"])


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=ContractResponse,
    status_code=201,
    summary="Draft a new rental or sale-promise contract",
)
async def create_contract(
    body: CreateContractRequest,
    service: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await service.create_draft(
        owner_id=body.owner_id,
        counterparty_id=body.counterparty_id,
        owner_phone=body.owner_phone,
        counterparty_phone=body.counterparty_phone,
        terms=body.to_terms(),
    )
    return ContractResponse.model_validate(contract)


@router.get(
    "",
    response_model=list[ContractResponse],
    summary="List the contracts a party is involved in",
)
async def list_contracts(
    party_id: str = Query(..., min_length=1, max_length=64),
    service: ContractService = Depends(get_contract_service),
) -> list[ContractResponse]:
    contracts = await service.list_for_party(party_id)
    return [ContractResponse.model_validate(c) for c in contracts]


@router.get(
    "/{contract_id}",
    response_model=ContractResponse,
    summary="Get contract details",
)
async def get_contract(
    contract_id: uuid.UUID,
    service: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await service.get_contract(contract_id)
    return ContractResponse.model_validate(contract)


@router.get(
    "/{contract_id}/status",
    response_model=ContractStatusResponse,
    summary="Get contract status, allowed events and retraction countdown",
)
async def get_contract_status(
    contract_id: uuid.UUID,
    service: ContractService = Depends(get_contract_service),
) -> ContractStatusResponse:
    status = await service.get_status(contract_id)
    return ContractStatusResponse(**status)


@router.get(
    "/{contract_id}/events",
    response_model=list[AuditEventResponse],
    summary="Get the contract's audit trail",
)
async def get_contract_events(
    contract_id: uuid.UUID,
    service: ContractService = Depends(get_contract_service),
) -> list[AuditEventResponse]:
    events = await service.get_events(contract_id)
    return [AuditEventResponse.model_validate(e) for e in events]


@router.post(
    "/{contract_id}/submit",
    response_model=ContractResponse,
    summary="Freeze the draft and open it for signature",
)
async def submit_contract(
    contract_id: uuid.UUID,
    body: ActorRequest,
    service: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await service.submit_for_signature(contract_id, actor=body.actor)
    return ContractResponse.model_validate(contract)


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------


@router.post(
    "/{contract_id}/accept-terms",
    response_model=ContractResponse,
    summary="Step 1: check the party may sign and show the terms",
)
async def accept_terms(
    contract_id: uuid.UUID,
    body: AcceptTermsRequest,
    service: SignatureService = Depends(get_signature_service),
) -> ContractResponse:
    contract = await service.accept_terms(contract_id, body.party_id)
    return ContractResponse.model_validate(contract)


@router.post(
    "/{contract_id}/signature-otp",
    response_model=SignatureOtpResponse,
    summary="Step 2: send a one-time signature code to the party's phone",
)
async def request_signature_otp(
    contract_id: uuid.UUID,
    body: SignatureOtpRequest,
    service: SignatureService = Depends(get_signature_service),
    settings: Settings = Depends(get_app_settings),
) -> SignatureOtpResponse:
    challenge = await service.request_signature_otp(
        contract_id, body.party_id, accepted_terms=body.accepted_terms
    )
    return SignatureOtpResponse(
        challenge_id=challenge.challenge_id,
        expires_at=challenge.expires_at,
        delivered=challenge.delivered,
        code=challenge.code if settings.otp_expose_code else None,
    )


@router.post(
    "/{contract_id}/sign",
    response_model=SignatureResponse,
    summary="Step 3: sign with the received code",
)
async def sign_contract(
    contract_id: uuid.UUID,
    body: SignRequest,
    service: SignatureService = Depends(get_signature_service),
    contracts: ContractService = Depends(get_contract_service),
) -> SignatureResponse:
    record = await service.sign(contract_id, body.party_id, body.code)
    contract = await contracts.get_contract(contract_id)
    response = SignatureResponse.model_validate(record)
    response.contract_status = contract.status
    return response


@router.get(
    "/{contract_id}/certificate",
    response_model=SignatureCertificateResponse,
    summary="Get the signature certificate",
)
async def get_certificate(
    contract_id: uuid.UUID,
    service: SignatureService = Depends(get_signature_service),
) -> SignatureCertificateResponse:
    certificate = await service.get_signature_certificate(contract_id)
    return SignatureCertificateResponse(**certificate)


@router.get(
    "/{contract_id}/integrity",
    response_model=SignatureIntegrityResponse,
    summary="Re-check signature hashes against the stored terms",
)
async def verify_integrity(
    contract_id: uuid.UUID,
    service: SignatureService = Depends(get_signature_service),
) -> SignatureIntegrityResponse:
    report = await service.verify_signature_integrity(contract_id)
    return SignatureIntegrityResponse(**report)


# ---------------------------------------------------------------------------
# Retraction, withdrawal and termination
# ---------------------------------------------------------------------------


@router.get(
    "/{contract_id}/retraction",
    response_model=RetractionResponse,
    summary="Get the retraction window countdown",
)
async def get_retraction(
    contract_id: uuid.UUID,
    service: RetractionService = Depends(get_retraction_service),
    contracts: ContractService = Depends(get_contract_service),
    clock: Clock = Depends(get_clock),
) -> RetractionResponse:
    contract = await contracts.get_contract(contract_id)
    window = await service.window(contract_id)
    now = clock()
    return RetractionResponse(
        contract_id=contract.id,
        status=contract.status,
        is_open=window.is_open(now),
        expires_at=window.expires_at,
        remaining_seconds=int(window.remaining(now).total_seconds()),
    )


@router.post(
    "/{contract_id}/cancel",
    response_model=CancellationResponse,
    summary="Retract a signed contract and refund its payments",
)
async def cancel_contract(
    contract_id: uuid.UUID,
    body: CancelContractRequest,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
    notifier: NotificationGateway = Depends(get_notifier),
    providers: ProviderFactory = Depends(get_provider_factory),
    clock: Clock = Depends(get_clock),
    locks: EntityLockRegistry = Depends(get_locks),
) -> CancellationResponse:
    outcome = await cancel_contract_with_refunds(
        contract_id,
        body.reason,
        body.actor,
        session,
        settings=settings,
        notifier=notifier,
        providers=providers,
        clock=clock,
        locks=locks,
    )
    return CancellationResponse(**outcome)


@router.post(
    "/{contract_id}/withdraw",
    response_model=ContractResponse,
    summary="Owner withdraws a contract before it is fully signed",
)
async def withdraw_contract(
    contract_id: uuid.UUID,
    body: CancelContractRequest,
    service: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await service.withdraw(contract_id, body.reason, actor=body.actor)
    return ContractResponse.model_validate(contract)


@router.post(
    "/{contract_id}/terminate",
    response_model=ContractResponse,
    summary="Terminate an active contract",
)
async def terminate_contract(
    contract_id: uuid.UUID,
    body: TerminateContractRequest,
    service: ContractService = Depends(get_contract_service),
) -> ContractResponse:
    contract = await service.terminate(contract_id, body.reason, actor=body.actor)
    return ContractResponse.model_validate(contract)


# ---------------------------------------------------------------------------
# Invoicing
# ---------------------------------------------------------------------------


@router.post(
    "/{contract_id}/invoice",
    response_model=InvoiceResponse,
    status_code=201,
    summary="Issue (or fetch) the payer's invoice",
)
async def issue_invoice(
    contract_id: uuid.UUID,
    body: InvoiceRequest,
    service: InvoiceService = Depends(get_invoice_service),
) -> InvoiceResponse:
    invoice = await service.issue_invoice(contract_id, body.payer_id, body.tier)
    return InvoiceResponse.model_validate(invoice)
