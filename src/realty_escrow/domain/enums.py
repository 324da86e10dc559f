"""Domain enumerations for the contract and escrow engine.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class ContractType(enum.StrEnum):
    """Legal templates a contract can be generated from."""

    LEASE_RESIDENTIAL = "LEASE_RESIDENTIAL"
    LEASE_COMMERCIAL = "LEASE_COMMERCIAL"
    SALE_PROMISE = "SALE_PROMISE"
    MANAGEMENT_MANDATE = "MANAGEMENT_MANDATE"
    DEPOSIT_ATTESTATION = "DEPOSIT_ATTESTATION"

    @property
    def is_lease(self) -> bool:
        return self in (ContractType.LEASE_RESIDENTIAL, ContractType.LEASE_COMMERCIAL)


class PropertyKind(enum.StrEnum):
    """What is being sold under a sale promise (drives the commission rate)."""

    LAND = "LAND"
    BUILT = "BUILT"


class DurationMode(enum.StrEnum):
    FIXED_END_DATE = "FIXED_END_DATE"
    DURATION_IN_MONTHS = "DURATION_IN_MONTHS"
    INDEFINITE = "INDEFINITE"


class ContractStatus(enum.StrEnum):
    """Lifecycle states of a contract.

    State transitions are enforced by the ContractStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    DRAFT = "DRAFT"
    AWAITING_SIGNATURE = "AWAITING_SIGNATURE"
    SIGNED = "SIGNED"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    TERMINATED = "TERMINATED"


class PartyRole(enum.StrEnum):
    OWNER = "OWNER"
    COUNTERPARTY = "COUNTERPARTY"


class TerminationReason(enum.StrEnum):
    NATURAL_EXPIRY = "NATURAL_EXPIRY"
    MUTUAL = "MUTUAL"
    DISPUTE_RESOLUTION = "DISPUTE_RESOLUTION"


class OtpState(enum.StrEnum):
    """A challenge is LIVE until it is consumed or invalidated. Never reused."""

    LIVE = "LIVE"
    CONSUMED = "CONSUMED"
    INVALIDATED = "INVALIDATED"


class OtpInvalidation(enum.StrEnum):
    SUPERSEDED = "SUPERSEDED"
    EXPIRED = "EXPIRED"
    ATTEMPTS_EXCEEDED = "ATTEMPTS_EXCEEDED"


class TransactionType(enum.StrEnum):
    """Commission bases, one rate each."""

    LEASE = "LEASE"
    LAND_SALE = "LAND_SALE"
    BUILT_PROPERTY_SALE = "BUILT_PROPERTY_SALE"
    MANAGEMENT_MANDATE = "MANAGEMENT_MANDATE"


class LoyaltyTier(enum.StrEnum):
    """Certification level of the payer, each granting a commission discount."""

    TIER_0 = "TIER_0"
    TIER_1 = "TIER_1"
    TIER_2 = "TIER_2"
    TIER_3 = "TIER_3"


class InvoiceSectionKind(enum.StrEnum):
    RENT_ADVANCE = "RENT_ADVANCE"
    DEPOSIT = "DEPOSIT"
    COMMISSION = "COMMISSION"


class PaymentMethod(enum.StrEnum):
    ORANGE_MONEY = "ORANGE_MONEY"
    MTN_MOMO = "MTN_MOMO"
    CASH = "CASH"

    @property
    def is_mobile_money(self) -> bool:
        return self is not PaymentMethod.CASH


class PaymentStatus(enum.StrEnum):
    """Lifecycle states of a payment.

    State transitions are enforced by the PaymentStateMachine guard.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    ESCROW = "ESCROW"
    FAILED = "FAILED"
    CONFIRMED = "CONFIRMED"
    REFUNDED = "REFUNDED"
    DISPUTED = "DISPUTED"


class ReleaseTrigger(enum.StrEnum):
    OWNER_VALIDATION = "OWNER_VALIDATION"
    AUTO_RELEASE = "AUTO_RELEASE"
    DISPUTE_RESOLUTION = "DISPUTE_RESOLUTION"


class CashReceiver(enum.StrEnum):
    OWNER = "OWNER"
    PLATFORM = "PLATFORM"


class ProviderStatus(enum.StrEnum):
    """Normalized answer of a mobile-money rail to a status query."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class EntityType(enum.StrEnum):
    CONTRACT = "CONTRACT"
    PAYMENT = "PAYMENT"
    OTP = "OTP"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the audit_events table.

    Every state transition MUST produce exactly one event.
    """

    # Contract lifecycle
    CONTRACT_CREATED = "CONTRACT_CREATED"
    CONTRACT_SUBMITTED = "CONTRACT_SUBMITTED"
    PARTY_SIGNED = "PARTY_SIGNED"
    CONTRACT_SIGNED = "CONTRACT_SIGNED"
    CONTRACT_ACTIVATED = "CONTRACT_ACTIVATED"
    CONTRACT_CANCELLED = "CONTRACT_CANCELLED"
    CONTRACT_WITHDRAWN = "CONTRACT_WITHDRAWN"
    CONTRACT_TERMINATED = "CONTRACT_TERMINATED"
    RETRACTION_REMINDER_SENT = "RETRACTION_REMINDER_SENT"

    # Payments
    PAYMENT_CREATED = "PAYMENT_CREATED"
    PAYMENT_PROCESSING = "PAYMENT_PROCESSING"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_ESCROWED = "PAYMENT_ESCROWED"
    PAYMENT_CASH_RECORDED = "PAYMENT_CASH_RECORDED"
    ESCROW_RELEASED = "ESCROW_RELEASED"
    PAYMENT_DISPUTED = "PAYMENT_DISPUTED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
