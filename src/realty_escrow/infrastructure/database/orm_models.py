"""SQLAlchemy 2.0 ORM models for the contract and escrow engine.

Six tables:
    1. contracts          — Agreements between an owner and a counterparty.
    2. signature_records  — One immutable OTP-backed signature per party.
    3. otp_challenges     — Hashed one-time codes, at most one LIVE per purpose.
    4. invoices           — Frozen, itemized invoices per (contract, payer).
    5. payments           — Collection attempts and their escrow hold.
    6. audit_events       — Append-only log of every state transition.

Design decisions:
    - UUIDs as primary keys (generic Uuid type, works on PostgreSQL and SQLite).
    - BigInteger whole-unit amounts (GNF has no minor unit).
    - UTCDateTime so timestamps come back timezone-aware on every backend.
    - JSON columns, stored as JSONB on PostgreSQL.
    - CHECK constraints on status columns and on the amount breakdown.
    - audit_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    event,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that always round-trips as UTC.

    SQLite drops tzinfo on the way in; this puts it back on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001, ANN201
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):  # noqa: ANN001, ANN201
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# Helper: auto-set updated_at on flush
# ---------------------------------------------------------------------------
def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = _utcnow()


# ---------------------------------------------------------------------------
# 1. contracts
# ---------------------------------------------------------------------------
class Contract(Base):
    """A contract between a property owner and a counterparty."""

    __tablename__ = "contracts"

    # --- Primary Key ---
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Human reference, CTR-YYYYMM-XXXXXX",
    )

    # --- Template ---
    contract_type: Mapped[str] = mapped_column(String(32), nullable=False)
    property_kind: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        default=None,
        comment="LAND or BUILT, sale promises only",
    )

    # --- Parties ---
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    counterparty_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    counterparty_phone: Mapped[str] = mapped_column(String(20), nullable=False)

    # --- Monetary Terms ---
    monthly_rent: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    sale_price: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    deposit_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    advance_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # --- Duration ---
    duration_mode: Mapped[str] = mapped_column(String(24), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True, default=None)
    duration_months: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)

    # --- Status (Enum-guarded) ---
    status: Mapped[str] = mapped_column(
        String(24),
        nullable=False,
        default="DRAFT",
        comment="Current lifecycle state (guarded by ContractStateMachine)",
    )

    # --- Signature & Retraction ---
    signed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=None)
    retraction_expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
        default=None,
        comment="Set once, when the second signature completes",
    )
    seal_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
    retraction_reminder_sent_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )
    activated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=None)

    # --- Cancellation & Termination ---
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=None)
    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
    termination_reason: Mapped[str | None] = mapped_column(String(32), nullable=True, default=None)
    terminated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=None)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    # --- Relationships ---
    signatures: Mapped[list[SignatureRecord]] = relationship(
        "SignatureRecord",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="SignatureRecord.signed_at.asc()",
        lazy="selectin",
    )

    # --- Table Constraints & Indexes ---
    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'AWAITING_SIGNATURE', 'SIGNED', 'ACTIVE', "
            "'CANCELLED', 'TERMINATED')",
            name="ck_contract_valid_status",
        ),
        CheckConstraint("owner_id <> counterparty_id", name="ck_contract_distinct_parties"),
        CheckConstraint(
            "monthly_rent >= 0 AND sale_price >= 0",
            name="ck_contract_non_negative_amounts",
        ),
        Index("idx_contract_status", "status"),
        Index("idx_contract_owner", "owner_id"),
        Index("idx_contract_counterparty", "counterparty_id"),
        Index("idx_contract_retraction_expiry", "retraction_expires_at"),
    )

    def party_role(self, party_id: str) -> str | None:
        """Return OWNER, COUNTERPARTY or None for a non-party."""
        if party_id == self.owner_id:
            return "OWNER"
        if party_id == self.counterparty_id:
            return "COUNTERPARTY"
        return None

    def party_phone(self, party_id: str) -> str | None:
        if party_id == self.owner_id:
            return self.owner_phone
        if party_id == self.counterparty_id:
            return self.counterparty_phone
        return None

    def __repr__(self) -> str:
        return f"<Contract id={self.id} ref={self.reference} status={self.status}>"


# ---------------------------------------------------------------------------
# 2. signature_records
# ---------------------------------------------------------------------------
class SignatureRecord(Base):
    """An immutable, OTP-backed signature of one party on one contract."""

    __tablename__ = "signature_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    party_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)

    # --- OTP Proof ---
    otp_challenge_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    otp_code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    otp_verified_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # --- Integrity ---
    signed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    document_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of the document snapshot rendered at signing time",
    )
    signature_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    signature_code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    contract: Mapped[Contract] = relationship("Contract", back_populates="signatures")

    __table_args__ = (
        UniqueConstraint("contract_id", "party_id", name="uq_signature_contract_party"),
        UniqueConstraint("contract_id", "role", name="uq_signature_contract_role"),
        CheckConstraint("role IN ('OWNER', 'COUNTERPARTY')", name="ck_signature_role"),
        Index("idx_signature_contract", "contract_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SignatureRecord contract={self.contract_id} party={self.party_id} "
            f"role={self.role}>"
        )


# ---------------------------------------------------------------------------
# 3. otp_challenges
# ---------------------------------------------------------------------------
class OtpChallenge(Base):
    """A hashed one-time code bound to a subject and a purpose.

    The plain code is never stored. The partial unique index guarantees at
    most one LIVE challenge per purpose.
    """

    __tablename__ = "otp_challenges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purpose: Mapped[str] = mapped_column(String(160), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="LIVE")
    invalidated_reason: Mapped[str | None] = mapped_column(
        String(24), nullable=True, default=None
    )
    consumed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=None)

    __table_args__ = (
        CheckConstraint(
            "state IN ('LIVE', 'CONSUMED', 'INVALIDATED')",
            name="ck_otp_valid_state",
        ),
        CheckConstraint(
            "attempt_count >= 0 AND attempt_count <= max_attempts",
            name="ck_otp_attempt_bounds",
        ),
        Index(
            "uq_otp_live_purpose",
            "purpose",
            unique=True,
            postgresql_where=text("state = 'LIVE'"),
            sqlite_where=text("state = 'LIVE'"),
        ),
        Index("idx_otp_purpose_created", "purpose", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<OtpChallenge id={self.id} purpose={self.purpose} state={self.state}>"


# ---------------------------------------------------------------------------
# 4. invoices
# ---------------------------------------------------------------------------
class Invoice(Base):
    """Itemized invoice, frozen at the payer's tier when it was issued."""

    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    payer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payer_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    sections: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        comment="Ordered [{kind, label, amount, non_refundable, recurring}]",
    )
    total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("contract_id", "payer_id", name="uq_invoice_contract_payer"),
        CheckConstraint("total >= 0", name="ck_invoice_non_negative_total"),
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} contract={self.contract_id} total={self.total}>"


# ---------------------------------------------------------------------------
# 5. payments
# ---------------------------------------------------------------------------
class Payment(Base):
    """A payment against a contract, including its escrow hold."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id"),
        nullable=False,
    )
    payer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    beneficiary_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # --- Method ---
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(20), nullable=True, default=None)
    provider_reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True, default=None
    )

    # --- Amounts ---
    rent_component: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deposit_component: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_component: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    refunded_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # --- Status (Enum-guarded) ---
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="PENDING",
        comment="Current lifecycle state (guarded by PaymentStateMachine)",
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    # --- Escrow ---
    processing_started_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )
    escrow_started_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )
    escrow_release_due_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )
    escrow_validated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
        default=None,
        comment="When funds were released to the beneficiary",
    )
    release_trigger: Mapped[str | None] = mapped_column(String(24), nullable=True, default=None)
    refund_reason: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)

    # --- Cash ---
    disclosure_accepted_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True, default=None
    )
    cash_received_by: Mapped[str | None] = mapped_column(String(16), nullable=True, default=None)
    commission_collected: Mapped[bool | None] = mapped_column(
        Boolean, nullable=True, default=None
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'ESCROW', 'FAILED', 'CONFIRMED', "
            "'REFUNDED', 'DISPUTED')",
            name="ck_payment_valid_status",
        ),
        CheckConstraint(
            "total = rent_component + deposit_component + commission_component",
            name="ck_payment_total_is_sum",
        ),
        CheckConstraint(
            "rent_component >= 0 AND deposit_component >= 0 AND commission_component >= 0",
            name="ck_payment_non_negative_components",
        ),
        Index("idx_payment_contract", "contract_id"),
        Index("idx_payment_status", "status"),
        Index("idx_payment_release_due", "escrow_release_due_at"),
    )

    def __repr__(self) -> str:
        return f"<Payment id={self.id} ref={self.reference} status={self.status} total={self.total}>"


# ---------------------------------------------------------------------------
# 6. audit_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class AuditEvent(Base):
    """Immutable audit record of a state transition on a contract or payment.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level. Every row represents a single atomic event.
    """

    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    entity_type: Mapped[str] = mapped_column(String(16), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # --- Event Details ---
    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value (e.g., CONTRACT_SIGNED, ESCROW_RELEASED)",
    )
    old_status: Mapped[str | None] = mapped_column(
        String(24),
        nullable=True,
        comment="Status before this event (null for creation)",
    )
    new_status: Mapped[str] = mapped_column(String(24), nullable=False)
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="Who triggered this event (user id or SYSTEM)",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        default=None,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_event_entity", "entity_type", "entity_id"),
        Index("idx_event_type", "event_type"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# Register the auto-update listener for updated_at
# ---------------------------------------------------------------------------
event.listen(Contract, "before_update", _set_updated_at)
event.listen(Payment, "before_update", _set_updated_at)
