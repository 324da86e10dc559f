"""Domain exceptions for the contract and escrow engine.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.

`retryable` tells the caller whether the same request may succeed later
(transient rail failures) or whether the outcome is final (expired window,
already-signed contract).
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base exception for all domain errors."""

    def __init__(
        self,
        message: str,
        code: str = "MARKETPLACE_ERROR",
        retryable: bool = False,
    ) -> None:
        self.message = message
        self.code = code
        self.retryable = retryable
        super().__init__(self.message)


# --- State Machine Errors ---


class InvalidTransitionError(MarketplaceError):
    """Raised when an attempted state change is not permitted from the current state.

    Example: CANCELLED -> ACTIVE (cancellation is final).
    """

    def __init__(self, current_state: str, attempted: str) -> None:
        super().__init__(
            message=f"Invalid transition: {attempted} is not allowed from {current_state}",
            code="INVALID_TRANSITION",
        )
        self.current_state = current_state
        self.attempted = attempted


class ConcurrencyConflict(MarketplaceError):
    """Lost a per-entity race: the entity already moved past this step.

    Benign when the winner produced an equivalent outcome; callers treat it
    as a no-op rather than a user-facing error.
    """

    def __init__(self, entity_id: str, observed_status: str, action: str) -> None:
        super().__init__(
            message=f"{action} skipped for {entity_id}: already {observed_status}",
            code="CONCURRENCY_CONFLICT",
        )
        self.entity_id = entity_id
        self.observed_status = observed_status
        self.action = action


# --- Lookup Errors ---


class ContractNotFoundError(MarketplaceError):
    """Raised when a contract ID does not exist."""

    def __init__(self, contract_id: str) -> None:
        super().__init__(
            message=f"Contract not found: {contract_id}",
            code="CONTRACT_NOT_FOUND",
        )
        self.contract_id = contract_id


class PaymentNotFoundError(MarketplaceError):
    """Raised when a payment ID does not exist."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(
            message=f"Payment not found: {payment_id}",
            code="PAYMENT_NOT_FOUND",
        )
        self.payment_id = payment_id


class InvoiceNotFoundError(MarketplaceError):
    def __init__(self, invoice_id: str) -> None:
        super().__init__(
            message=f"Invoice not found: {invoice_id}",
            code="INVOICE_NOT_FOUND",
        )


# --- Contract Errors ---


class ContractValidationError(MarketplaceError):
    """Raised when contract terms are incomplete or inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="CONTRACT_VALIDATION_ERROR")


class NotAPartyError(MarketplaceError):
    def __init__(self, contract_id: str, party_id: str) -> None:
        super().__init__(
            message=f"{party_id} is not a signing party of contract {contract_id}",
            code="NOT_A_PARTY",
        )


class AlreadySignedError(MarketplaceError):
    def __init__(self, contract_id: str, party_id: str) -> None:
        super().__init__(
            message=f"{party_id} has already signed contract {contract_id}",
            code="ALREADY_SIGNED",
        )


class TermsNotAcceptedError(MarketplaceError):
    def __init__(self) -> None:
        super().__init__(
            message="Contract terms must be accepted before a signature code is issued",
            code="TERMS_NOT_ACCEPTED",
        )


class RetractionWindowClosedError(MarketplaceError):
    def __init__(self, contract_id: str) -> None:
        super().__init__(
            message=f"Retraction period has expired for contract {contract_id}",
            code="RETRACTION_WINDOW_CLOSED",
        )


class CancellationReasonRequiredError(MarketplaceError):
    def __init__(self) -> None:
        super().__init__(
            message="A non-empty cancellation reason is required",
            code="CANCELLATION_REASON_REQUIRED",
        )


# --- OTP Errors ---


class OtpError(MarketplaceError):
    """Base for OTP failures. The caller is expected to request a fresh challenge."""


class ChallengeNotFoundError(OtpError):
    def __init__(self, purpose: str) -> None:
        super().__init__(
            message=f"No signature code was requested for {purpose}",
            code="OTP_NOT_FOUND",
        )


class CodeMismatchError(OtpError):
    def __init__(self, remaining_attempts: int) -> None:
        super().__init__(
            message=f"Incorrect code. {remaining_attempts} attempt(s) remaining.",
            code="OTP_CODE_MISMATCH",
        )
        self.remaining_attempts = remaining_attempts


class OtpExpiredError(OtpError):
    def __init__(self, detail: str = "Code expired") -> None:
        super().__init__(
            message=f"{detail}. Request a new code.",
            code="OTP_EXPIRED",
        )


class AttemptsExceededError(OtpError):
    def __init__(self, max_attempts: int) -> None:
        super().__init__(
            message=f"Maximum of {max_attempts} attempts reached. Request a new code.",
            code="OTP_ATTEMPTS_EXCEEDED",
        )


# --- Payment Errors ---


class ContractNotPayableError(MarketplaceError):
    def __init__(self, contract_id: str, status: str) -> None:
        super().__init__(
            message=f"Contract {contract_id} must be signed before payment (status {status})",
            code="CONTRACT_NOT_PAYABLE",
        )


class DisclosureNotAcceptedError(MarketplaceError):
    def __init__(self) -> None:
        super().__init__(
            message="The non-refundable commission disclosure must be accepted",
            code="DISCLOSURE_NOT_ACCEPTED",
        )


class NotBeneficiaryError(MarketplaceError):
    def __init__(self, payment_id: str, actor: str) -> None:
        super().__init__(
            message=f"Only the beneficiary can validate payment {payment_id} (got {actor})",
            code="NOT_BENEFICIARY",
        )


class ProviderError(MarketplaceError):
    """Base for mobile-money rail failures."""


class ProviderMismatchError(ProviderError):
    """Phone number prefix does not belong to the chosen provider."""

    def __init__(self, phone_number: str, method: str) -> None:
        super().__init__(
            message=f"Phone number {phone_number} is not a {method} number",
            code="PROVIDER_MISMATCH",
        )


class ProviderTimeoutError(ProviderError):
    def __init__(self, method: str, timeout_seconds: float) -> None:
        super().__init__(
            message=f"{method} did not answer within {timeout_seconds}s",
            code="PROVIDER_TIMEOUT",
            retryable=True,
        )


class ProviderRejectedError(ProviderError):
    def __init__(self, method: str, reason: str) -> None:
        super().__init__(
            message=f"{method} rejected the payment: {reason}",
            code="PROVIDER_REJECTED",
            retryable=True,
        )
        self.reason = reason


# --- Money-safety invariant violations ---


class MoneySafetyError(MarketplaceError):
    """An operation would break a money invariant. Never silently corrected."""


class CommissionMutationError(MoneySafetyError):
    def __init__(self, payment_id: str, before: int, after: int) -> None:
        super().__init__(
            message=f"Commission of payment {payment_id} would change from {before} to {after}",
            code="COMMISSION_MUTATION",
        )


class EscrowAlreadyReleasedError(MoneySafetyError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(
            message=f"Escrow for payment {payment_id} has already been released",
            code="ESCROW_ALREADY_RELEASED",
        )


class AmountInvariantError(MoneySafetyError):
    def __init__(self, detail: str) -> None:
        super().__init__(message=detail, code="AMOUNT_INVARIANT")


# --- Idempotency Errors ---


class DuplicateOperationError(MarketplaceError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
