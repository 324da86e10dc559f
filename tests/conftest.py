"""Shared test fixtures for the Realty Escrow test suite.

Provides:
    - A throw-away SQLite database per test (aiosqlite, create_all)
    - A clock the tests move forward instead of sleeping
    - A log-only notifier that remembers what it sent
    - Simulated payment rails wired into a ProviderFactory
    - Factory helpers that drive a contract to a given status
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest
import pytest_asyncio

from realty_escrow.config import Settings
from realty_escrow.domain.enums import ContractType, DurationMode, PaymentMethod
from realty_escrow.domain.terms import ContractTerms
from realty_escrow.infrastructure.database.engine import build_engine, build_session_factory
from realty_escrow.infrastructure.database.orm_models import Base
from realty_escrow.infrastructure.locks import EntityLockRegistry
from realty_escrow.providers import LoggingGateway, ProviderFactory, SimulatedProvider
from realty_escrow.services import (
    ContractService,
    InvoiceService,
    OtpService,
    PaymentService,
    RetractionService,
    SignatureService,
)

OWNER_ID = "owner-1"
TENANT_ID = "tenant-1"
OWNER_PHONE = "621000001"
TENANT_PHONE = "664000002"
ORANGE_PHONE = "621234567"
MTN_PHONE = "670000009"

_CODE_IN_MESSAGE = re.compile(r"\bis (\d{4,10})\b")


# ---------------------------------------------------------------------------
# Time and collaborators
# ---------------------------------------------------------------------------


@dataclass
class FakeClock:
    """Callable clock; `advance` moves it forward."""

    now: datetime = field(default_factory=lambda: datetime(2026, 3, 2, 9, 0, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingGateway(LoggingGateway):
    """Log-only notifier with a helper to read back the last OTP code."""

    def last_code_for(self, recipient: str) -> str:
        for to, message in reversed(self.sent):
            if to == recipient:
                match = _CODE_IN_MESSAGE.search(message)
                if match:
                    return match.group(1)
        raise AssertionError(f"no code sent to {recipient}")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="development",
        database_url="sqlite+aiosqlite:///:memory:",
        simulate_payments=True,
        scheduler_enabled=False,
        otp_expose_code=True,
        waha_url="",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def locks() -> EntityLockRegistry:
    return EntityLockRegistry()


@pytest.fixture
def orange_rail() -> SimulatedProvider:
    return SimulatedProvider(name="ORANGE_MONEY")


@pytest.fixture
def mtn_rail() -> SimulatedProvider:
    return SimulatedProvider(name="MTN_MOMO")


@pytest.fixture
def providers(settings, orange_rail, mtn_rail) -> ProviderFactory:
    return ProviderFactory(
        settings,
        overrides={PaymentMethod.ORANGE_MONEY: orange_rail, PaymentMethod.MTN_MOMO: mtn_rail},
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Every service bound to one session and the shared collaborators."""

    contracts: ContractService
    signatures: SignatureService
    retraction: RetractionService
    invoices: InvoiceService
    payments: PaymentService
    otp: OtpService


def build_services(session, settings, clock, notifier, providers, locks) -> Services:
    return Services(
        contracts=ContractService(session, settings, clock, locks),
        signatures=SignatureService(session, settings, notifier, clock=clock, locks=locks),
        retraction=RetractionService(session, settings, notifier, clock, locks),
        invoices=InvoiceService(session, settings, clock, locks),
        payments=PaymentService(session, settings, providers, notifier, clock, locks),
        otp=OtpService(session, settings, notifier, clock, locks),
    )


@pytest.fixture
def services(session, settings, clock, notifier, providers, locks) -> Services:
    return build_services(session, settings, clock, notifier, providers, locks)


# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def lease_terms() -> ContractTerms:
    """Residential lease: rent 2,500,000, two months advance, two months deposit."""
    return ContractTerms(
        contract_type=ContractType.LEASE_RESIDENTIAL,
        start_date=date(2026, 4, 1),
        duration_mode=DurationMode.DURATION_IN_MONTHS,
        duration_months=12,
        monthly_rent=2_500_000,
        deposit_months=2,
        advance_months=2,
    )


async def draft_contract(services: Services, terms: ContractTerms):
    return await services.contracts.create_draft(
        owner_id=OWNER_ID,
        counterparty_id=TENANT_ID,
        owner_phone=OWNER_PHONE,
        counterparty_phone=TENANT_PHONE,
        terms=terms,
    )


async def sign_as(services: Services, contract_id, party_id: str):
    challenge = await services.signatures.request_signature_otp(
        contract_id, party_id, accepted_terms=True
    )
    return await services.signatures.sign(contract_id, party_id, challenge.code)


async def signed_contract(services: Services, terms: ContractTerms):
    """Draft, submit and have both parties sign. Returns the SIGNED contract."""
    contract = await draft_contract(services, terms)
    await services.contracts.submit_for_signature(contract.id, actor=OWNER_ID)
    await sign_as(services, contract.id, OWNER_ID)
    await sign_as(services, contract.id, TENANT_ID)
    return await services.contracts.get_contract(contract.id)


async def escrowed_payment(services: Services, contract_id, method=PaymentMethod.ORANGE_MONEY):
    """Tenant pays through the simulated rail; returns the payment in ESCROW."""
    phone = ORANGE_PHONE if method is PaymentMethod.ORANGE_MONEY else MTN_PHONE
    payment = await services.payments.submit_mobile_money(contract_id, TENANT_ID, method, phone)
    return await services.payments.refresh_provider_status(payment.id)
