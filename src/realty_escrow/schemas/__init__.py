"""Pydantic API schemas."""

from realty_escrow.schemas.common import AuditEventResponse, ErrorResponse, HealthResponse
from realty_escrow.schemas.contracts import (
    AcceptTermsRequest,
    ActorRequest,
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
from realty_escrow.schemas.payments import (
    CashPaymentRequest,
    DisputeRequest,
    EscrowViewResponse,
    MobileMoneyPaymentRequest,
    PaymentResponse,
    RefundRequest,
    ResolveRequest,
    ValidateReleaseRequest,
)

__all__ = [
    "AcceptTermsRequest",
    "ActorRequest",
    "AuditEventResponse",
    "CancelContractRequest",
    "CancellationResponse",
    "CashPaymentRequest",
    "ContractResponse",
    "ContractStatusResponse",
    "CreateContractRequest",
    "DisputeRequest",
    "ErrorResponse",
    "EscrowViewResponse",
    "HealthResponse",
    "InvoiceRequest",
    "InvoiceResponse",
    "MobileMoneyPaymentRequest",
    "PaymentResponse",
    "RefundRequest",
    "ResolveRequest",
    "RetractionResponse",
    "SignRequest",
    "SignatureCertificateResponse",
    "SignatureIntegrityResponse",
    "SignatureOtpRequest",
    "SignatureOtpResponse",
    "SignatureResponse",
    "TerminateContractRequest",
    "ValidateReleaseRequest",
]
