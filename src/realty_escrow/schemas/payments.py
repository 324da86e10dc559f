"""Pydantic schemas for the payment and escrow API."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from realty_escrow.domain.enums import CashReceiver, LoyaltyTier, PaymentMethod

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class MobileMoneyPaymentRequest(BaseModel):
    """Request body for paying an invoice through Orange Money or MTN MoMo."""

    contract_id: uuid.UUID
    payer_id: str = Field(..., min_length=1, max_length=64)
    method: PaymentMethod = Field(..., examples=["ORANGE_MONEY"])
    phone_number: str = Field(..., min_length=9, max_length=20, examples=["621000002"])
    tier: LoyaltyTier = LoyaltyTier.TIER_0

    @field_validator("method")
    @classmethod
    def _mobile_money_only(cls, value: PaymentMethod) -> PaymentMethod:
        if not value.is_mobile_money:
            raise ValueError("use the cash endpoint for cash payments")
        return value


class CashPaymentRequest(BaseModel):
    """Request body for recording a cash payment."""

    contract_id: uuid.UUID
    payer_id: str = Field(..., min_length=1, max_length=64)
    received_by: CashReceiver
    commission_collected: bool
    disclosure_accepted: bool = Field(
        default=False,
        description="Payer acknowledged that the commission is non-refundable",
    )
    tier: LoyaltyTier = LoyaltyTier.TIER_0
    actor: str | None = Field(default=None, max_length=64)


class ValidateReleaseRequest(BaseModel):
    """Beneficiary approves (release) or rejects (dispute) the escrowed funds."""

    actor: str = Field(..., min_length=1, max_length=64)
    approve: bool = True
    reason: str | None = Field(default=None, max_length=2000)


class DisputeRequest(BaseModel):
    actor: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1, max_length=2000)


class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)
    actor: str = Field(default="SYSTEM", min_length=1, max_length=64)


class ResolveRequest(BaseModel):
    actor: str = Field(..., min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class PaymentResponse(BaseModel):
    """Response schema for a payment."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    reference: str
    contract_id: uuid.UUID
    invoice_id: uuid.UUID
    payer_id: str
    beneficiary_id: str
    method: str
    phone_number: str | None
    provider_reference: str | None
    rent_component: int
    deposit_component: int
    commission_component: int
    total: int
    refunded_amount: int
    status: str
    failure_reason: str | None
    escrow_started_at: datetime | None
    escrow_release_due_at: datetime | None
    escrow_validated_at: datetime | None
    release_trigger: str | None
    cash_received_by: str | None
    commission_collected: bool | None
    created_at: datetime
    updated_at: datetime


class EscrowViewResponse(BaseModel):
    payment_id: uuid.UUID
    reference: str
    status: str
    allowed_events: list[str]
    total: int
    rent_component: int
    deposit_component: int
    commission_component: int
    refunded_amount: int
    escrow_started_at: datetime | None
    escrow_release_due_at: datetime | None
    hold_remaining_seconds: int
    release_trigger: str | None
