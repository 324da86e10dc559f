"""Domain layer — pure business logic with zero framework dependencies."""

from realty_escrow.domain.amounts import PaymentAmounts
from realty_escrow.domain.commission import commission
from realty_escrow.domain.enums import (
    ContractStatus,
    ContractType,
    EventType,
    LoyaltyTier,
    PaymentMethod,
    PaymentStatus,
)
from realty_escrow.domain.exceptions import (
    ContractNotFoundError,
    InvalidTransitionError,
    MarketplaceError,
    MoneySafetyError,
)
from realty_escrow.domain.invoice import ComposedInvoice, compose_invoice
from realty_escrow.domain.retraction import RetractionWindow
from realty_escrow.domain.state_machine import (
    ContractStateMachine,
    PaymentStateMachine,
    apply_event,
)
from realty_escrow.domain.terms import ContractTerms

__all__ = [
    "ComposedInvoice",
    "ContractNotFoundError",
    "ContractStateMachine",
    "ContractStatus",
    "ContractTerms",
    "ContractType",
    "EventType",
    "InvalidTransitionError",
    "LoyaltyTier",
    "MarketplaceError",
    "MoneySafetyError",
    "PaymentAmounts",
    "PaymentMethod",
    "PaymentStateMachine",
    "PaymentStatus",
    "RetractionWindow",
    "apply_event",
    "commission",
    "compose_invoice",
]
