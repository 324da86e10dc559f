"""Pydantic schemas for the contract API.

Request bodies carry the acting party explicitly (`actor` / `party_id`);
authentication sits in front of this service and is out of its scope.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from realty_escrow.domain.enums import (
    ContractType,
    DurationMode,
    LoyaltyTier,
    PropertyKind,
    TerminationReason,
)
from realty_escrow.domain.terms import MAX_DURATION_MONTHS, ContractTerms

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateContractRequest(BaseModel):
    """Request body for drafting a contract."""

    owner_id: str = Field(..., min_length=1, max_length=64)
    counterparty_id: str = Field(..., min_length=1, max_length=64)
    owner_phone: str = Field(..., min_length=9, max_length=20, examples=["621000001"])
    counterparty_phone: str = Field(..., min_length=9, max_length=20, examples=["+224 664 00 00 02"])
    contract_type: ContractType
    property_kind: PropertyKind | None = Field(
        default=None, description="LAND or BUILT, required for sale promises"
    )
    monthly_rent: int = Field(default=0, ge=0, description="Monthly rent in GNF")
    sale_price: int = Field(default=0, ge=0, description="Sale price in GNF")
    deposit_months: int = Field(default=0, ge=0, le=24)
    advance_months: int = Field(default=0, ge=0, le=24)
    duration_mode: DurationMode = DurationMode.INDEFINITE
    start_date: date
    end_date: date | None = None
    duration_months: int | None = Field(default=None, ge=1, le=MAX_DURATION_MONTHS)

    def to_terms(self) -> ContractTerms:
        return ContractTerms(
            contract_type=self.contract_type,
            start_date=self.start_date,
            duration_mode=self.duration_mode,
            property_kind=self.property_kind,
            monthly_rent=self.monthly_rent,
            sale_price=self.sale_price,
            deposit_months=self.deposit_months,
            advance_months=self.advance_months,
            end_date=self.end_date,
            duration_months=self.duration_months,
        )


class ActorRequest(BaseModel):
    actor: str = Field(..., min_length=1, max_length=64)


class AcceptTermsRequest(BaseModel):
    party_id: str = Field(..., min_length=1, max_length=64)


class SignatureOtpRequest(BaseModel):
    """Ask for a signature code. `accepted_terms` must be true."""

    party_id: str = Field(..., min_length=1, max_length=64)
    accepted_terms: bool = False


class SignRequest(BaseModel):
    party_id: str = Field(..., min_length=1, max_length=64)
    code: str = Field(..., pattern=r"^\s*\d{4,10}\s*$", examples=["042917"])


class CancelContractRequest(BaseModel):
    """Retraction inside the cooling-off period. The reason is mandatory."""

    actor: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1, max_length=2000, examples=["changed mind"])


class TerminateContractRequest(BaseModel):
    actor: str = Field(..., min_length=1, max_length=64)
    reason: TerminationReason


class InvoiceRequest(BaseModel):
    payer_id: str = Field(..., min_length=1, max_length=64)
    tier: LoyaltyTier = LoyaltyTier.TIER_0


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class ContractResponse(BaseModel):
    """Response schema for a contract."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    reference: str
    contract_type: str
    property_kind: str | None
    owner_id: str
    counterparty_id: str
    monthly_rent: int
    sale_price: int
    deposit_months: int
    advance_months: int
    duration_mode: str
    start_date: date
    end_date: date | None
    duration_months: int | None
    status: str
    signed_at: datetime | None
    retraction_expires_at: datetime | None
    activated_at: datetime | None
    cancellation_reason: str | None
    cancelled_at: datetime | None
    termination_reason: str | None
    terminated_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ContractStatusResponse(BaseModel):
    """Lightweight status check response."""

    contract_id: uuid.UUID
    reference: str
    status: str
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )
    signature_count: int
    retraction_expires_at: datetime | None
    retraction_open: bool
    retraction_remaining_seconds: int


class SignatureOtpResponse(BaseModel):
    challenge_id: uuid.UUID
    expires_at: datetime
    delivered: bool
    code: str | None = Field(
        default=None, description="Only returned when otp_expose_code is enabled (development)"
    )


class SignatureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contract_id: uuid.UUID
    party_id: str
    role: str
    signed_at: datetime
    document_hash: str
    signature_code: str
    contract_status: str | None = None


class SignerEntry(BaseModel):
    party_id: str
    role: str
    signed_at: datetime
    signature_code: str
    document_hash: str
    signature_hash: str


class SignatureCertificateResponse(BaseModel):
    contract_id: uuid.UUID
    reference: str
    status: str
    fully_signed: bool
    signed_at: datetime | None
    retraction_expires_at: datetime | None
    seal_hash: str | None
    signers: list[SignerEntry]


class SignatureCheck(BaseModel):
    party_id: str
    role: str
    document_unchanged: bool
    signature_valid: bool


class SignatureIntegrityResponse(BaseModel):
    contract_id: uuid.UUID
    valid: bool
    seal_valid: bool | None
    signatures: list[SignatureCheck]


class RetractionResponse(BaseModel):
    contract_id: uuid.UUID
    status: str
    is_open: bool
    expires_at: datetime | None
    remaining_seconds: int


class CancellationResponse(BaseModel):
    contract_id: uuid.UUID
    status: str
    reason: str
    refunded_payment_ids: list[uuid.UUID] = Field(default_factory=list)


class InvoiceSectionResponse(BaseModel):
    kind: str
    label: str
    amount: int
    non_refundable: bool
    recurring: bool


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contract_id: uuid.UUID
    payer_id: str
    payer_tier: str
    sections: list[InvoiceSectionResponse]
    total: int
    issued_at: datetime
