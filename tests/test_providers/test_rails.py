"""Tests for the HTTP adapters against an in-process httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest

from realty_escrow.config import Settings
from realty_escrow.domain.enums import PaymentMethod, ProviderStatus
from realty_escrow.domain.exceptions import ProviderRejectedError, ProviderTimeoutError
from realty_escrow.providers import (
    CanonicalJsonRenderer,
    LoggingGateway,
    MtnMomoProvider,
    OrangeMoneyProvider,
    ProviderFactory,
    SimulatedProvider,
    WahaGateway,
    build_notification_gateway,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Orange Money
# ---------------------------------------------------------------------------


class TestOrangeMoney:
    def _provider(self, handler) -> OrangeMoneyProvider:
        return OrangeMoneyProvider(
            base_url="https://orange.test/",
            client_id="id",
            client_secret="secret",
            merchant_key="mk",
            client=_client(handler),
        )

    async def test_initiate_then_status(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/oauth/v3/token":
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            if request.url.path == "/omcoreapis/1.0.2/mp/pay":
                return httpx.Response(201, json={"pay_token": "PT-1", "status": 201})
            return httpx.Response(200, json={"status": "SUCCESS"})

        provider = self._provider(handler)
        receipt = await provider.initiate("621234567", 11_250_000, "PAY-20260302-ABCD")
        status = await provider.status(receipt.reference)

        assert receipt.reference == "PT-1"
        assert receipt.status is ProviderStatus.PENDING
        assert status is ProviderStatus.CONFIRMED

        pay = json.loads(seen[1].content)
        assert pay["subscriber_msisdn"] == "224621234567"
        assert pay["amount"] == 11_250_000
        assert seen[1].headers["Authorization"] == "Bearer tok"
        # Token is cached across calls
        assert [r.url.path for r in seen].count("/oauth/v3/token") == 1

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("INITIATED", ProviderStatus.PENDING),
            ("PENDING", ProviderStatus.PENDING),
            ("FAILED", ProviderStatus.FAILED),
            ("EXPIRED", ProviderStatus.FAILED),
        ],
    )
    async def test_status_mapping(self, raw: str, expected: ProviderStatus) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v3/token":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200, json={"status": raw})

        assert await self._provider(handler).status("PT-1") is expected

    async def test_http_error_is_rejection(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v3/token":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(400, json={"message": "bad msisdn"})

        with pytest.raises(ProviderRejectedError, match="HTTP 400"):
            await self._provider(handler).initiate("621234567", 1000, "PAY-1")

    async def test_missing_pay_token_is_rejection(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/oauth/v3/token":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(201, json={"status": 201})

        with pytest.raises(ProviderRejectedError, match="pay_token"):
            await self._provider(handler).initiate("621234567", 1000, "PAY-1")

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderTimeoutError):
            await self._provider(handler).initiate("621234567", 1000, "PAY-1")


# ---------------------------------------------------------------------------
# MTN MoMo
# ---------------------------------------------------------------------------


class TestMtnMomo:
    def _provider(self, handler) -> MtnMomoProvider:
        return MtnMomoProvider(
            base_url="https://mtn.test",
            subscription_key="sub",
            api_user="user",
            api_key="key",
            client=_client(handler),
        )

    async def test_request_to_pay(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/collection/token/":
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            return httpx.Response(202)

        receipt = await self._provider(handler).initiate("670000009", 500_000, "PAY-2")

        request = seen[1]
        assert request.headers["X-Reference-Id"] == receipt.reference
        assert request.headers["Ocp-Apim-Subscription-Key"] == "sub"
        assert request.headers["X-Target-Environment"] == "sandbox"
        body = json.loads(request.content)
        assert body["amount"] == "500000"
        assert body["payer"]["partyId"] == "224670000009"
        assert receipt.status is ProviderStatus.PENDING

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("SUCCESSFUL", ProviderStatus.CONFIRMED),
            ("PENDING", ProviderStatus.PENDING),
            ("REJECTED", ProviderStatus.FAILED),
            ("TIMEOUT", ProviderStatus.FAILED),
        ],
    )
    async def test_status_mapping(self, raw: str, expected: ProviderStatus) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/collection/token/":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200, json={"status": raw})

        assert await self._provider(handler).status("ref") is expected

    async def test_server_error_is_rejection(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="down")

        with pytest.raises(ProviderRejectedError):
            await self._provider(handler).status("ref")


# ---------------------------------------------------------------------------
# WAHA
# ---------------------------------------------------------------------------


class TestWaha:
    async def test_send_text(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "msg"})

        gateway = WahaGateway("https://waha.test", api_key="k", client=_client(handler))
        assert await gateway.send("621000001", "hello") is True

        body = json.loads(seen[0].content)
        assert seen[0].url.path == "/api/sendText"
        assert body == {"session": "default", "chatId": "224621000001@c.us", "text": "hello"}
        assert seen[0].headers["X-Api-Key"] == "k"

    async def test_delivery_failure_returns_false(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        gateway = WahaGateway("https://waha.test", client=_client(handler))
        assert await gateway.send("621000001", "hello") is False


# ---------------------------------------------------------------------------
# Factory, simulated rail, renderer
# ---------------------------------------------------------------------------


class TestProviderFactory:
    def test_simulated_by_default(self, settings: Settings) -> None:
        factory = ProviderFactory(settings)
        provider = factory.for_method(PaymentMethod.MTN_MOMO)
        assert isinstance(provider, SimulatedProvider)
        assert factory.for_method(PaymentMethod.MTN_MOMO) is provider

    def test_real_rails_when_simulation_off(self, settings: Settings) -> None:
        factory = ProviderFactory(settings.model_copy(update={"simulate_payments": False}))
        assert isinstance(factory.for_method(PaymentMethod.ORANGE_MONEY), OrangeMoneyProvider)
        assert isinstance(factory.for_method(PaymentMethod.MTN_MOMO), MtnMomoProvider)

    def test_cash_has_no_rail(self, settings: Settings) -> None:
        with pytest.raises(ValueError):
            ProviderFactory(settings).for_method(PaymentMethod.CASH)

    def test_prefixes(self, settings: Settings) -> None:
        factory = ProviderFactory(settings)
        assert factory.prefixes_for(PaymentMethod.ORANGE_MONEY) == {"62", "63", "64", "65", "66"}
        assert factory.prefixes_for(PaymentMethod.MTN_MOMO) == {"66", "67", "68", "69"}
        assert factory.prefixes_for(PaymentMethod.CASH) == frozenset()

    def test_notification_gateway_choice(self, settings: Settings) -> None:
        assert isinstance(build_notification_gateway(settings), LoggingGateway)
        waha = settings.model_copy(update={"waha_url": "https://waha.test"})
        assert isinstance(build_notification_gateway(waha), WahaGateway)


class TestSimulatedProvider:
    async def test_outcomes(self) -> None:
        confirm = SimulatedProvider(outcome="confirm")
        receipt = await confirm.initiate("621234567", 1000, "PAY-1")
        assert receipt.status is ProviderStatus.PENDING
        assert await confirm.status(receipt.reference) is ProviderStatus.CONFIRMED

        assert await SimulatedProvider(outcome="pending").status("x") is ProviderStatus.PENDING
        assert await SimulatedProvider(outcome="fail").status("x") is ProviderStatus.FAILED
        with pytest.raises(ProviderRejectedError):
            await SimulatedProvider(outcome="reject").initiate("621234567", 1000, "PAY-1")


class TestCanonicalJsonRenderer:
    def test_key_order_does_not_matter(self) -> None:
        renderer = CanonicalJsonRenderer()
        assert renderer.render({"b": 1, "a": 2}) == renderer.render({"a": 2, "b": 1})
        assert renderer.render({"a": 2, "b": 1}) == b'{"a":2,"b":1}'
