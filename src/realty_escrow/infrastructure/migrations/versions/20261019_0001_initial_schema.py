"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 08:00:00+00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
TS = sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "contracts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("reference", sa.String(32), nullable=False, unique=True),
        sa.Column("contract_type", sa.String(32), nullable=False),
        sa.Column("property_kind", sa.String(16), nullable=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("counterparty_id", sa.String(64), nullable=False),
        sa.Column("owner_phone", sa.String(20), nullable=False),
        sa.Column("counterparty_phone", sa.String(20), nullable=False),
        sa.Column("monthly_rent", sa.BigInteger(), nullable=False),
        sa.Column("sale_price", sa.BigInteger(), nullable=False),
        sa.Column("deposit_months", sa.Integer(), nullable=False),
        sa.Column("advance_months", sa.Integer(), nullable=False),
        sa.Column("duration_mode", sa.String(24), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("duration_months", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(24), nullable=False),
        sa.Column("signed_at", TS, nullable=True),
        sa.Column("retraction_expires_at", TS, nullable=True),
        sa.Column("seal_hash", sa.String(64), nullable=True),
        sa.Column("retraction_reminder_sent_at", TS, nullable=True),
        sa.Column("activated_at", TS, nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", TS, nullable=True),
        sa.Column("cancelled_by", sa.String(64), nullable=True),
        sa.Column("termination_reason", sa.String(32), nullable=True),
        sa.Column("terminated_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'AWAITING_SIGNATURE', 'SIGNED', 'ACTIVE', "
            "'CANCELLED', 'TERMINATED')",
            name="ck_contract_valid_status",
        ),
        sa.CheckConstraint("owner_id <> counterparty_id", name="ck_contract_distinct_parties"),
        sa.CheckConstraint(
            "monthly_rent >= 0 AND sale_price >= 0",
            name="ck_contract_non_negative_amounts",
        ),
    )
    op.create_index("idx_contract_status", "contracts", ["status"])
    op.create_index("idx_contract_owner", "contracts", ["owner_id"])
    op.create_index("idx_contract_counterparty", "contracts", ["counterparty_id"])
    op.create_index("idx_contract_retraction_expiry", "contracts", ["retraction_expires_at"])

    op.create_table(
        "signature_records",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "contract_id",
            sa.Uuid(),
            sa.ForeignKey("contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("party_id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("otp_challenge_id", sa.Uuid(), nullable=False),
        sa.Column("otp_code_hash", sa.String(64), nullable=False),
        sa.Column("otp_verified_at", TS, nullable=False),
        sa.Column("signed_at", TS, nullable=False),
        sa.Column("document_hash", sa.String(64), nullable=False),
        sa.Column("signature_hash", sa.String(64), nullable=False),
        sa.Column("signature_code", sa.String(16), nullable=False, unique=True),
        sa.UniqueConstraint("contract_id", "party_id", name="uq_signature_contract_party"),
        sa.UniqueConstraint("contract_id", "role", name="uq_signature_contract_role"),
        sa.CheckConstraint("role IN ('OWNER', 'COUNTERPARTY')", name="ck_signature_role"),
    )
    op.create_index("idx_signature_contract", "signature_records", ["contract_id"])

    op.create_table(
        "otp_challenges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("subject_id", sa.String(64), nullable=False),
        sa.Column("purpose", sa.String(160), nullable=False),
        sa.Column("code_hash", sa.String(64), nullable=False),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("expires_at", TS, nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(16), nullable=False),
        sa.Column("invalidated_reason", sa.String(24), nullable=True),
        sa.Column("consumed_at", TS, nullable=True),
        sa.CheckConstraint(
            "state IN ('LIVE', 'CONSUMED', 'INVALIDATED')",
            name="ck_otp_valid_state",
        ),
        sa.CheckConstraint(
            "attempt_count >= 0 AND attempt_count <= max_attempts",
            name="ck_otp_attempt_bounds",
        ),
    )
    op.create_index(
        "uq_otp_live_purpose",
        "otp_challenges",
        ["purpose"],
        unique=True,
        postgresql_where=sa.text("state = 'LIVE'"),
        sqlite_where=sa.text("state = 'LIVE'"),
    )
    op.create_index("idx_otp_purpose_created", "otp_challenges", ["purpose", "created_at"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "contract_id",
            sa.Uuid(),
            sa.ForeignKey("contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("payer_id", sa.String(64), nullable=False),
        sa.Column("payer_tier", sa.String(16), nullable=False),
        sa.Column("sections", JSONType, nullable=False),
        sa.Column("total", sa.BigInteger(), nullable=False),
        sa.Column("issued_at", TS, nullable=False),
        sa.UniqueConstraint("contract_id", "payer_id", name="uq_invoice_contract_payer"),
        sa.CheckConstraint("total >= 0", name="ck_invoice_non_negative_total"),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("reference", sa.String(40), nullable=False, unique=True),
        sa.Column(
            "contract_id",
            sa.Uuid(),
            sa.ForeignKey("contracts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("invoice_id", sa.Uuid(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("payer_id", sa.String(64), nullable=False),
        sa.Column("beneficiary_id", sa.String(64), nullable=False),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("provider_reference", sa.String(100), nullable=True),
        sa.Column("rent_component", sa.BigInteger(), nullable=False),
        sa.Column("deposit_component", sa.BigInteger(), nullable=False),
        sa.Column("commission_component", sa.BigInteger(), nullable=False),
        sa.Column("total", sa.BigInteger(), nullable=False),
        sa.Column("refunded_amount", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("processing_started_at", TS, nullable=True),
        sa.Column("escrow_started_at", TS, nullable=True),
        sa.Column("escrow_release_due_at", TS, nullable=True),
        sa.Column("escrow_validated_at", TS, nullable=True),
        sa.Column("release_trigger", sa.String(24), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("disclosure_accepted_at", TS, nullable=True),
        sa.Column("cash_received_by", sa.String(16), nullable=True),
        sa.Column("commission_collected", sa.Boolean(), nullable=True),
        sa.Column("created_at", TS, nullable=False),
        sa.Column("updated_at", TS, nullable=False),
        sa.CheckConstraint(
            "status IN ('PENDING', 'PROCESSING', 'ESCROW', 'FAILED', 'CONFIRMED', "
            "'REFUNDED', 'DISPUTED')",
            name="ck_payment_valid_status",
        ),
        sa.CheckConstraint(
            "total = rent_component + deposit_component + commission_component",
            name="ck_payment_total_is_sum",
        ),
        sa.CheckConstraint(
            "rent_component >= 0 AND deposit_component >= 0 AND commission_component >= 0",
            name="ck_payment_non_negative_components",
        ),
    )
    op.create_index("idx_payment_contract", "payments", ["contract_id"])
    op.create_index("idx_payment_status", "payments", ["status"])
    op.create_index("idx_payment_release_due", "payments", ["escrow_release_due_at"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_type", sa.String(16), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("old_status", sa.String(24), nullable=True),
        sa.Column("new_status", sa.String(24), nullable=False),
        sa.Column("actor", sa.String(64), nullable=False),
        sa.Column("metadata", JSONType, nullable=True),
        sa.Column("created_at", TS, nullable=False),
    )
    op.create_index("idx_event_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("idx_event_type", "audit_events", ["event_type"])
    op.create_index("idx_event_created_at", "audit_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("payments")
    op.drop_table("invoices")
    op.drop_index("uq_otp_live_purpose", table_name="otp_challenges")
    op.drop_table("otp_challenges")
    op.drop_table("signature_records")
    op.drop_table("contracts")
