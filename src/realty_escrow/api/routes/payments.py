"""Payment and escrow API routes."""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis  # noqa: TC002 - resolved by FastAPI at runtime
import structlog
from fastapi import APIRouter, Depends, Header

from realty_escrow.api.deps import get_idempotency_store, get_payment_service
from realty_escrow.domain.exceptions import DuplicateOperationError
from realty_escrow.infrastructure.redis_client import (
    claim_idempotency,
    complete_idempotency,
    is_pending,
    release_idempotency,
)
from realty_escrow.schemas import (
    AuditEventResponse,
    CashPaymentRequest,
    DisputeRequest,
    EscrowViewResponse,
    MobileMoneyPaymentRequest,
    PaymentResponse,
    RefundRequest,
    ResolveRequest,
    ValidateReleaseRequest,
)
from realty_escrow.services import PaymentService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])

_MOBILE_MONEY_SCOPE = "mobile-money"


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post(
    "/mobile-money",
    response_model=PaymentResponse,
    status_code=201,
    summary="Pay an invoice through Orange Money or MTN MoMo",
)
async def submit_mobile_money(
    body: MobileMoneyPaymentRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    service: PaymentService = Depends(get_payment_service),
    redis: aioredis.Redis | None = Depends(get_idempotency_store),
) -> PaymentResponse:
    """Submit a mobile-money payment.

    With an `Idempotency-Key` header and Redis connected, a repeated request
    returns the payment created by the first one instead of charging twice.
    """
    if idempotency_key and redis is not None:
        existing = await claim_idempotency(redis, _MOBILE_MONEY_SCOPE, idempotency_key)
        if existing is not None:
            if is_pending(existing):
                raise DuplicateOperationError(idempotency_key)
            logger.info("payment.idempotent_replay", key=idempotency_key, payment_id=existing)
            payment = await service.get_payment(uuid.UUID(existing))
            return PaymentResponse.model_validate(payment)

    try:
        payment = await service.submit_mobile_money(
            contract_id=body.contract_id,
            payer_id=body.payer_id,
            method=body.method,
            phone_number=body.phone_number,
            tier=body.tier,
        )
    except Exception:
        if idempotency_key and redis is not None:
            await release_idempotency(redis, _MOBILE_MONEY_SCOPE, idempotency_key)
        raise

    if idempotency_key and redis is not None:
        await complete_idempotency(redis, _MOBILE_MONEY_SCOPE, idempotency_key, str(payment.id))
    return PaymentResponse.model_validate(payment)


@router.post(
    "/cash",
    response_model=PaymentResponse,
    status_code=201,
    summary="Record a cash payment",
)
async def record_cash(
    body: CashPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.record_cash(
        contract_id=body.contract_id,
        payer_id=body.payer_id,
        received_by=body.received_by,
        commission_collected=body.commission_collected,
        disclosure_accepted=body.disclosure_accepted,
        tier=body.tier,
        actor=body.actor,
    )
    return PaymentResponse.model_validate(payment)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Get payment details",
)
async def get_payment(
    payment_id: uuid.UUID,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.get_payment(payment_id)
    return PaymentResponse.model_validate(payment)


@router.get(
    "/{payment_id}/escrow",
    response_model=EscrowViewResponse,
    summary="Get the escrow hold status",
)
async def get_escrow_view(
    payment_id: uuid.UUID,
    service: PaymentService = Depends(get_payment_service),
) -> EscrowViewResponse:
    view = await service.get_escrow_view(payment_id)
    return EscrowViewResponse(**view)


@router.get(
    "/{payment_id}/events",
    response_model=list[AuditEventResponse],
    summary="Get the payment's audit trail",
)
async def get_payment_events(
    payment_id: uuid.UUID,
    service: PaymentService = Depends(get_payment_service),
) -> list[AuditEventResponse]:
    events = await service.get_events(payment_id)
    return [AuditEventResponse.model_validate(e) for e in events]


# ---------------------------------------------------------------------------
# Escrow actions
# ---------------------------------------------------------------------------


@router.post(
    "/{payment_id}/refresh",
    response_model=PaymentResponse,
    summary="Poll the rail for a PROCESSING payment",
)
async def refresh_payment(
    payment_id: uuid.UUID,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.refresh_provider_status(payment_id)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/validate",
    response_model=PaymentResponse,
    summary="Beneficiary approves or rejects the release of escrowed funds",
)
async def validate_release(
    payment_id: uuid.UUID,
    body: ValidateReleaseRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.validate_release(
        payment_id, actor=body.actor, approve=body.approve, reason=body.reason
    )
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/dispute",
    response_model=PaymentResponse,
    summary="Open a dispute on escrowed funds",
)
async def open_dispute(
    payment_id: uuid.UUID,
    body: DisputeRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.open_dispute(payment_id, actor=body.actor, reason=body.reason)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/refund",
    response_model=PaymentResponse,
    summary="Refund the refundable part of a payment",
)
async def refund_payment(
    payment_id: uuid.UUID,
    body: RefundRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.refund(payment_id, reason=body.reason, actor=body.actor)
    return PaymentResponse.model_validate(payment)


@router.post(
    "/{payment_id}/resolve",
    response_model=PaymentResponse,
    summary="Resolve a dispute in the beneficiary's favour",
)
async def resolve_dispute(
    payment_id: uuid.UUID,
    body: ResolveRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    payment = await service.resolve_for_beneficiary(payment_id, actor=body.actor)
    return PaymentResponse.model_validate(payment)
