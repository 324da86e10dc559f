"""Database infrastructure — engine, ORM models, and repositories."""

from realty_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
)
from realty_escrow.infrastructure.database.orm_models import (
    AuditEvent,
    Base,
    Contract,
    Invoice,
    OtpChallenge,
    Payment,
    SignatureRecord,
)
from realty_escrow.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    InvoiceRepository,
    OtpRepository,
    PaymentRepository,
    SignatureRepository,
)

__all__ = [
    "AuditEvent",
    "AuditRepository",
    "Base",
    "Contract",
    "ContractRepository",
    "Invoice",
    "InvoiceRepository",
    "OtpChallenge",
    "OtpRepository",
    "Payment",
    "PaymentRepository",
    "SignatureRecord",
    "SignatureRepository",
    "build_engine",
    "build_session_factory",
    "close_db",
    "get_async_session",
    "get_session_factory",
    "init_db",
]
