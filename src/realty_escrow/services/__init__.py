"""Application services — use case orchestration."""

from realty_escrow.services.contract_service import ContractService
from realty_escrow.services.invoice_service import InvoiceService
from realty_escrow.services.otp_service import OtpService
from realty_escrow.services.payment_service import PaymentService
from realty_escrow.services.retraction_service import RetractionService
from realty_escrow.services.signature_service import SignatureService

__all__ = [
    "ContractService",
    "InvoiceService",
    "OtpService",
    "PaymentService",
    "RetractionService",
    "SignatureService",
]
