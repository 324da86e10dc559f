#!/usr/bin/env python3
"""Realty Escrow — End-to-End Simulation.

Walks an owner and a tenant through the whole marketplace flow, on a
throw-away SQLite database, with the simulated payment rails and a clock
that the script moves forward instead of sleeping:

    Scenario 1: Happy Path
        - Owner drafts a residential lease and submits it for signature
        - Both parties sign with their OTP codes -> SIGNED, 48h window opens
        - Window elapses -> activation sweep -> ACTIVE
        - Tenant pays the invoice with Orange Money -> ESCROW
        - Hold elapses without validation -> auto-release -> CONFIRMED

    Scenario 2: Retraction with Refund
        - Lease signed, tenant pays with MTN MoMo while the window is open
        - Tenant retracts inside the window -> CANCELLED
        - Payment REFUNDED, commission kept as realized revenue

    Scenario 3: Cash and Owner Validation
        - Cash payment refused until the commission disclosure is accepted
        - A second payment goes through mobile money and the owner validates
          the release before the hold elapses

Usage:
    uv run python simulation.py
    uv run python simulation.py --scenario 2
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from realty_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from realty_escrow.config import get_settings  # noqa: E402
from realty_escrow.domain.enums import (  # noqa: E402
    CashReceiver,
    ContractType,
    DurationMode,
    LoyaltyTier,
    PaymentMethod,
)
from realty_escrow.domain.exceptions import DisclosureNotAcceptedError  # noqa: E402
from realty_escrow.domain.terms import ContractTerms  # noqa: E402
from realty_escrow.domain.timekeeping import utcnow  # noqa: E402
from realty_escrow.infrastructure.database.engine import (  # noqa: E402
    build_engine,
    build_session_factory,
)
from realty_escrow.infrastructure.database.orm_models import Base  # noqa: E402
from realty_escrow.infrastructure.locks import EntityLockRegistry  # noqa: E402
from realty_escrow.orchestration import build_sweep_scheduler, cancel_contract_with_refunds  # noqa: E402
from realty_escrow.providers import LoggingGateway, ProviderFactory  # noqa: E402
from realty_escrow.services import (  # noqa: E402
    ContractService,
    InvoiceService,
    PaymentService,
    SignatureService,
)

# Module-level state
_engine = None
_session_factory = None
_tmpdir: tempfile.TemporaryDirectory | None = None


# ---------------------------------------------------------------------------
# Simulated time
# ---------------------------------------------------------------------------
@dataclass
class SimClock:
    """Clock the scenarios move forward explicitly."""

    now: datetime = field(default_factory=utcnow)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)
        print(f"  ⏩ Clock moved to {self.now:%Y-%m-%d %H:%M} UTC")


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database() -> None:
    """Create a SQLite database in a temporary directory."""
    global _engine, _session_factory, _tmpdir

    _tmpdir = tempfile.TemporaryDirectory(prefix="realty-escrow-")
    db_path = Path(_tmpdir.name) / "simulation.db"
    _engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    _session_factory = build_session_factory(_engine)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database.sqlite_initialized", path=str(db_path))


async def shutdown_database() -> None:
    global _engine, _session_factory, _tmpdir

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    if _tmpdir is not None:
        _tmpdir.cleanup()
        _tmpdir = None


# ---------------------------------------------------------------------------
# Marketplace wiring
# ---------------------------------------------------------------------------
@dataclass
class Marketplace:
    """Services sharing one clock, one lock registry and one notifier."""

    clock: SimClock = field(default_factory=SimClock)
    locks: EntityLockRegistry = field(default_factory=EntityLockRegistry)
    notifier: LoggingGateway = field(default_factory=LoggingGateway)
    settings: Any = field(default_factory=lambda: get_settings().model_copy(
        update={"simulate_payments": True}
    ))

    def __post_init__(self) -> None:
        self.providers = ProviderFactory(self.settings)

    def contracts(self, session: Any) -> ContractService:
        return ContractService(session, self.settings, self.clock, self.locks)

    def signatures(self, session: Any) -> SignatureService:
        return SignatureService(
            session, self.settings, self.notifier, clock=self.clock, locks=self.locks
        )

    def invoices(self, session: Any) -> InvoiceService:
        return InvoiceService(session, self.settings, self.clock, self.locks)

    def payments(self, session: Any) -> PaymentService:
        return PaymentService(
            session, self.settings, self.providers, self.notifier, self.clock, self.locks
        )

    def scheduler(self):
        return build_sweep_scheduler(
            _session_factory,
            self.settings,
            notifier=self.notifier,
            providers=self.providers,
            clock=self.clock,
            locks=self.locks,
        )


OWNER = ("owner-1", "621000001")
TENANT = ("tenant-1", "664000002")


async def draft_signed_lease(market: Marketplace, session: Any) -> uuid.UUID:
    """Draft, submit and sign a lease. Returns the contract id."""
    terms = ContractTerms(
        contract_type=ContractType.LEASE_RESIDENTIAL,
        start_date=market.clock().date() + timedelta(days=7),
        duration_mode=DurationMode.DURATION_IN_MONTHS,
        duration_months=12,
        monthly_rent=2_500_000,
        deposit_months=2,
        advance_months=3,
    )
    contract = await market.contracts(session).create_draft(
        owner_id=OWNER[0],
        counterparty_id=TENANT[0],
        owner_phone=OWNER[1],
        counterparty_phone=TENANT[1],
        terms=terms,
    )
    print(f"  🏠 Drafted {contract.reference} ({contract.contract_type})")
    await market.contracts(session).submit_for_signature(contract.id, actor=OWNER[0])

    signer = market.signatures(session)
    for party_id, _phone in (OWNER, TENANT):
        challenge = await signer.request_signature_otp(contract.id, party_id, accepted_terms=True)
        record = await signer.sign(contract.id, party_id, challenge.code)
        print(f"  ✍️  {party_id} signed as {record.role} (code {record.signature_code})")

    status = await market.contracts(session).get_status(contract.id)
    print(
        f"  Status: {status['status']} | retraction open: {status['retraction_open']} "
        f"| remaining: {timedelta(seconds=status['retraction_remaining_seconds'])}"
    )
    return contract.id


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_payment(payment: Any) -> None:
    print(
        f"  💰 {payment.reference}: {payment.status} | total {payment.total:,} GNF "
        f"(rent {payment.rent_component:,}, deposit {payment.deposit_component:,}, "
        f"commission {payment.commission_component:,}) | refunded {payment.refunded_amount:,}"
    )


async def print_invoice(market: Marketplace, session: Any, contract_id: uuid.UUID) -> None:
    composed = await market.invoices(session).preview(contract_id, LoyaltyTier.TIER_0)
    print("  🧾 Invoice:")
    for s in composed.sections:
        flag = " (non-refundable)" if s.non_refundable else ""
        print(f"    - {s.label}: {s.amount:,} GNF{flag}")
    print(f"    = {composed.total:,} GNF")


async def print_audit_trail(market: Marketplace, session: Any, contract_id: uuid.UUID) -> None:
    events = await market.contracts(session).get_events(contract_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "—"
        print(f"    {i}. [{evt.event_type}] {old} → {evt.new_status} (by {evt.actor})")
    print()


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    banner("SCENARIO 1: Happy Path (sign, activate, pay, auto-release)")
    market = Marketplace()
    scheduler = market.scheduler()

    async with _session_factory() as session:
        section("Signature")
        contract_id = await draft_signed_lease(market, session)

        section("Retraction window elapses")
        market.clock.advance(hours=49)
        results = await scheduler.run_once()
        print(f"  Activated: {len(results.get('retraction_activation', []))} contract(s)")

        section("Payment")
        await print_invoice(market, session, contract_id)
        payments = market.payments(session)
        payment = await payments.submit_mobile_money(
            contract_id, TENANT[0], PaymentMethod.ORANGE_MONEY, "621234567"
        )
        payment = await payments.refresh_provider_status(payment.id)
        print_payment(payment)

        section("Escrow hold elapses without validation")
        market.clock.advance(hours=48, minutes=1)
        results = await scheduler.run_once()
        print(f"  Auto-released: {len(results.get('escrow_auto_release', []))} payment(s)")

    async with _session_factory() as session:
        payment = await market.payments(session).get_payment(payment.id)
        print_payment(payment)
        print(f"  Release trigger: {payment.release_trigger}")
        await print_audit_trail(market, session, contract_id)


# ===========================================================================
# Scenario 2: Retraction with Refund
# ===========================================================================
async def scenario_2_retraction_refund() -> None:
    banner("SCENARIO 2: Retraction inside the window, refund keeps commission")
    market = Marketplace()

    async with _session_factory() as session:
        section("Signature")
        contract_id = await draft_signed_lease(market, session)

        section("Payment while the window is open")
        payments = market.payments(session)
        payment = await payments.submit_mobile_money(
            contract_id, TENANT[0], PaymentMethod.MTN_MOMO, "670000009"
        )
        payment = await payments.refresh_provider_status(payment.id)
        print_payment(payment)

        section("Tenant retracts")
        market.clock.advance(hours=20)
        outcome = await cancel_contract_with_refunds(
            contract_id,
            "Found a closer apartment",
            TENANT[0],
            session,
            settings=market.settings,
            clock=market.clock,
            locks=market.locks,
            notifier=market.notifier,
            providers=market.providers,
        )
        print(f"  Contract: {outcome['status']} | reason: {outcome['reason']}")
        print(f"  Refunded payments: {len(outcome['refunded_payment_ids'])}")

        payment = await market.payments(session).get_payment(payment.id)
        print_payment(payment)
        await print_audit_trail(market, session, contract_id)


# ===========================================================================
# Scenario 3: Cash and Owner Validation
# ===========================================================================
async def scenario_3_cash_and_validation() -> None:
    banner("SCENARIO 3: Cash disclosure and owner validation")
    market = Marketplace()

    async with _session_factory() as session:
        section("Signature")
        contract_id = await draft_signed_lease(market, session)
        payments = market.payments(session)

        section("Cash without the disclosure")
        try:
            await payments.record_cash(
                contract_id,
                TENANT[0],
                received_by=CashReceiver.OWNER,
                commission_collected=False,
                disclosure_accepted=False,
            )
        except DisclosureNotAcceptedError as exc:
            print(f"  ⛔ Refused: {exc.message}")

        section("Cash with the disclosure")
        cash = await payments.record_cash(
            contract_id,
            TENANT[0],
            received_by=CashReceiver.OWNER,
            commission_collected=False,
            disclosure_accepted=True,
            actor=OWNER[0],
        )
        print_payment(cash)

        section("Owner validates a mobile-money payment")
        payment = await payments.submit_mobile_money(
            contract_id, TENANT[0], PaymentMethod.ORANGE_MONEY, "631234567"
        )
        payment = await payments.refresh_provider_status(payment.id)
        market.clock.advance(hours=3)
        payment = await payments.validate_release(payment.id, actor=OWNER[0])
        print_payment(payment)
        print(f"  Release trigger: {payment.release_trigger}")

        section("Auto-release sweep afterwards is a no-op")
        market.clock.advance(hours=48)
        results = await market.scheduler().run_once()
        print(f"  Auto-released: {len(results.get('escrow_auto_release', []))} payment(s)")


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_retraction_refund,
    3: scenario_3_cash_and_validation,
}


async def run(scenario: int = 0) -> None:
    await init_database()
    try:
        print("\n" + "🏡" * 35)
        print("  REALTY ESCROW — SIMULATION")
        print(f"  Today: {date.today():%Y-%m-%d} | Database: SQLite (temporary)")
        print("🏡" * 35 + "\n")

        if scenario == 0:
            for fn in SCENARIOS.values():
                await fn()
        elif scenario in SCENARIOS:
            await SCENARIOS[scenario]()
        else:
            print(f"Unknown scenario {scenario}. Available: 1, 2, 3")
            return

        print("\n" + "=" * 70)
        print("  ✅ SIMULATION COMPLETED")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Realty Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    args = parser.parse_args()
    asyncio.run(run(args.scenario))
