"""Tests for the sweep scheduler, the cancel-with-refunds workflow and
races between a person and a sweep on the same entity."""

from __future__ import annotations

import asyncio

from conftest import (
    MTN_PHONE,
    ORANGE_PHONE,
    OWNER_ID,
    TENANT_ID,
    escrowed_payment,
    signed_contract,
)

from realty_escrow.domain.enums import (
    ContractStatus,
    EventType,
    PaymentMethod,
    PaymentStatus,
    ReleaseTrigger,
)
from realty_escrow.orchestration.scheduler import SweepScheduler, build_sweep_scheduler
from realty_escrow.orchestration.workflows import cancel_contract_with_refunds
from realty_escrow.services import ContractService, PaymentService


class TestSweepScheduler:
    async def test_registers_every_sweep(self, session_factory, settings) -> None:
        scheduler = build_sweep_scheduler(session_factory, settings)
        assert [job["name"] for job in scheduler.jobs] == [
            "retraction_activation",
            "retraction_reminders",
            "escrow_auto_release",
            "stale_processing",
            "natural_expiry",
        ]

    async def test_run_once_drives_the_lifecycle(
        self, services, session_factory, settings, notifier, providers, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await escrowed_payment(services, contract.id)
        scheduler = build_sweep_scheduler(
            session_factory, settings, notifier=notifier, providers=providers,
            clock=clock, locks=locks,
        )

        clock.advance(hours=48)
        results = await scheduler.run_once()

        assert results["retraction_activation"] == [contract.id]
        assert results["escrow_auto_release"] == [payment.id]

        async with session_factory() as fresh:
            reloaded = await ContractService(fresh, settings, clock, locks).get_contract(
                contract.id
            )
            assert reloaded.status == ContractStatus.ACTIVE.value

    async def test_jobs_respect_their_interval(self, session_factory, clock) -> None:
        calls = []

        async def job(session) -> list:
            calls.append(clock.now)
            return []

        scheduler = SweepScheduler(session_factory, clock=clock)
        scheduler.add_job("probe", job, interval_seconds=300)

        await scheduler.run_once()
        clock.advance(seconds=120)
        await scheduler.run_once()
        clock.advance(seconds=180)
        await scheduler.run_once()

        assert len(calls) == 2

    async def test_failing_job_does_not_stop_the_others(self, session_factory, clock) -> None:
        async def broken(session) -> list:
            raise RuntimeError("boom")

        async def healthy(session) -> list:
            return ["ok"]

        scheduler = SweepScheduler(session_factory, clock=clock)
        scheduler.add_job("broken", broken, interval_seconds=60)
        scheduler.add_job("healthy", healthy, interval_seconds=60)

        results = await scheduler.run_once()

        assert "broken" not in results
        assert results["healthy"] == ["ok"]

    async def test_launch_and_stop(self, session_factory, clock) -> None:
        scheduler = SweepScheduler(session_factory, tick_seconds=0.01, clock=clock)
        scheduler.launch()
        await asyncio.sleep(0.05)
        assert scheduler.running is True

        await scheduler.stop()
        assert scheduler.running is False


class TestCancelWithRefunds:
    async def test_cancel_refunds_escrowed_payments(
        self, services, session, settings, notifier, providers, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await escrowed_payment(services, contract.id, PaymentMethod.MTN_MOMO)

        outcome = await cancel_contract_with_refunds(
            contract.id,
            "Found a cheaper flat",
            TENANT_ID,
            session,
            settings=settings,
            clock=clock,
            locks=locks,
            notifier=notifier,
            providers=providers,
        )

        assert outcome["status"] == ContractStatus.CANCELLED.value
        assert outcome["refunded_payment_ids"] == [str(payment.id)]

        payment = await services.payments.get_payment(payment.id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refunded_amount == 10_000_000
        assert payment.commission_component == 1_250_000
        assert payment.refund_reason == "Contract cancelled: Found a cheaper flat"

    async def test_processing_and_released_payments_untouched(
        self, services, session, settings, notifier, providers, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        released = await escrowed_payment(services, contract.id)
        await services.payments.validate_release(released.id, OWNER_ID)
        processing = await services.payments.submit_mobile_money(
            contract.id, TENANT_ID, PaymentMethod.MTN_MOMO, MTN_PHONE
        )

        outcome = await cancel_contract_with_refunds(
            contract.id, "Changed plans", OWNER_ID, session,
            settings=settings, clock=clock, locks=locks, notifier=notifier, providers=providers,
        )

        assert outcome["refunded_payment_ids"] == []
        assert (await services.payments.get_payment(released.id)).status == (
            PaymentStatus.CONFIRMED.value
        )
        assert (await services.payments.get_payment(processing.id)).status == (
            PaymentStatus.PROCESSING.value
        )


class TestRaces:
    async def test_validation_racing_auto_release_releases_once(
        self, services, session_factory, settings, notifier, providers, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await escrowed_payment(services, contract.id)
        clock.advance(hours=48)

        async with session_factory() as owner_session, session_factory() as sweep_session:
            by_owner = PaymentService(owner_session, settings, providers, notifier, clock, locks)
            by_sweep = PaymentService(sweep_session, settings, providers, notifier, clock, locks)
            validated, swept = await asyncio.gather(
                by_owner.validate_release(payment.id, OWNER_ID),
                by_sweep.auto_release_if_due(payment.id),
            )

        assert validated.status == PaymentStatus.CONFIRMED.value
        async with session_factory() as check:
            svc = PaymentService(check, settings, providers, notifier, clock, locks)
            final = await svc.get_payment(payment.id)
            events = await svc.get_events(payment.id)

        releases = [e for e in events if e.event_type == EventType.ESCROW_RELEASED.value]
        assert final.status == PaymentStatus.CONFIRMED.value
        assert len(releases) == 1
        if swept is None:
            assert final.release_trigger == ReleaseTrigger.OWNER_VALIDATION.value
        else:
            assert final.release_trigger == ReleaseTrigger.AUTO_RELEASE.value

    async def test_cancel_racing_activation_has_one_winner(
        self, services, session_factory, settings, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        clock.advance(hours=47, minutes=59, seconds=59)

        async def cancel() -> str:
            async with session_factory() as s:
                try:
                    await ContractService(s, settings, clock, locks).cancel(
                        contract.id, "last second", TENANT_ID
                    )
                except Exception as exc:
                    return type(exc).__name__
                return "cancelled"

        async def activate() -> str:
            async with session_factory() as s:
                result = await ContractService(s, settings, clock, locks).activate_if_window_elapsed(
                    contract.id
                )
                return "noop" if result is None else "activated"

        outcomes = await asyncio.gather(cancel(), activate())

        # The window is still open by one second, so the cancel wins
        assert outcomes == ["cancelled", "noop"]
        async with session_factory() as s:
            final = await ContractService(s, settings, clock, locks).get_contract(contract.id)
        assert final.status == ContractStatus.CANCELLED.value


class TestPaymentsOnCancelledContracts:
    async def test_payment_in_flight_at_cancel_is_refunded_once_confirmed(
        self, services, session, settings, notifier, providers, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await services.payments.submit_mobile_money(
            contract.id, TENANT_ID, PaymentMethod.ORANGE_MONEY, ORANGE_PHONE
        )
        assert payment.status == PaymentStatus.PROCESSING.value

        outcome = await cancel_contract_with_refunds(
            contract.id, "changed mind", TENANT_ID, session,
            settings=settings, clock=clock, locks=locks, notifier=notifier, providers=providers,
        )
        assert outcome["refunded_payment_ids"] == []

        payment = await services.payments.refresh_provider_status(payment.id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refunded_amount == 10_000_000
        assert payment.commission_component == 1_250_000
        assert payment.refund_reason == "Contract cancelled: changed mind"

        clock.advance(hours=49)
        assert await services.payments.sweep_auto_release() == []

        payment = await services.payments.get_payment(payment.id)
        events = [e.event_type for e in await services.payments.get_events(payment.id)]
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.release_trigger is None
        assert EventType.ESCROW_RELEASED.value not in events
        assert not any("held in escrow" in m for _, m in notifier.sent)

    async def test_auto_release_on_cancelled_contract_refunds(
        self, services, clock, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await escrowed_payment(services, contract.id)
        await services.contracts.cancel(contract.id, "changed mind", TENANT_ID)

        clock.advance(hours=49)
        assert await services.payments.sweep_auto_release() == []

        payment = await services.payments.get_payment(payment.id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refunded_amount == 10_000_000

    async def test_owner_validation_on_cancelled_contract_refunds(
        self, services, lease_terms, notifier
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await escrowed_payment(services, contract.id)
        await services.contracts.cancel(contract.id, "changed mind", OWNER_ID)

        payment = await services.payments.validate_release(payment.id, OWNER_ID)

        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.release_trigger is None
        assert not any("released to you" in m for _, m in notifier.sent)

    async def test_cancel_racing_confirmation_never_pays_out(
        self, services, session_factory, settings, notifier, providers, clock, locks, lease_terms
    ) -> None:
        contract = await signed_contract(services, lease_terms)
        payment = await services.payments.submit_mobile_money(
            contract.id, TENANT_ID, PaymentMethod.MTN_MOMO, MTN_PHONE
        )

        async def cancel() -> None:
            async with session_factory() as s:
                await cancel_contract_with_refunds(
                    contract.id, "changed mind", TENANT_ID, s,
                    settings=settings, clock=clock, locks=locks,
                    notifier=notifier, providers=providers,
                )

        async def confirm() -> None:
            async with session_factory() as s:
                svc = PaymentService(s, settings, providers, notifier, clock, locks)
                await svc.refresh_provider_status(payment.id)

        await asyncio.gather(cancel(), confirm())
        clock.advance(hours=49)

        async with session_factory() as s:
            svc = PaymentService(s, settings, providers, notifier, clock, locks)
            await svc.sweep_auto_release()
            final = await svc.get_payment(payment.id)

        assert final.status == PaymentStatus.REFUNDED.value
        assert final.refunded_amount == 10_000_000
