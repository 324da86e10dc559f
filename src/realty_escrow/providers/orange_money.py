"""Orange Money Web Payment client.

Flow:
    1. POST {base}/oauth/v3/token (client credentials, cached until expiry)
    2. POST {base}/omcoreapis/1.0.2/mp/pay         -> pay_token
    3. GET  {base}/omcoreapis/1.0.2/mp/paymentstatus/{pay_token}

Orange answers INITIATED/PENDING while the payer confirms on their handset,
then SUCCESS, or FAILED/EXPIRED.
"""

from __future__ import annotations

import time

import httpx

from realty_escrow.domain.enums import ProviderStatus
from realty_escrow.domain.exceptions import ProviderRejectedError, ProviderTimeoutError
from realty_escrow.domain.phones import international
from realty_escrow.domain.ports import ProviderReceipt
from realty_escrow.logging_config import get_logger

logger = get_logger(__name__)

NAME = "ORANGE_MONEY"

_STATUS_MAP = {
    "SUCCESS": ProviderStatus.CONFIRMED,
    "SUCCESSFUL": ProviderStatus.CONFIRMED,
    "FAILED": ProviderStatus.FAILED,
    "EXPIRED": ProviderStatus.FAILED,
    "CANCELLED": ProviderStatus.FAILED,
}


class OrangeMoneyProvider:
    """Async client for the Orange Money Web Payment API."""

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        merchant_key: str,
        timeout_seconds: float = 15.0,
        currency: str = "GNF",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._merchant_key = merchant_key
        self._currency = currency
        self._timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        data = await self._request(
            "POST",
            "/oauth/v3/token",
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
        )
        self._token = data["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + int(data.get("expires_in", 3600)) - 60
        return self._token

    async def _request(self, method: str, path: str, **kwargs) -> dict:  # noqa: ANN003
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.error("provider.timeout", provider=NAME, path=path, error=str(exc))
            raise ProviderTimeoutError(NAME, self._timeout_seconds) from exc
        except httpx.HTTPStatusError as exc:
            logger.error(
                "provider.http_error",
                provider=NAME,
                path=path,
                status_code=exc.response.status_code,
                response_text=exc.response.text[:500],
            )
            raise ProviderRejectedError(NAME, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("provider.transport_error", provider=NAME, path=path, error=str(exc))
            raise ProviderRejectedError(NAME, str(exc)) from exc
        return response.json()

    async def initiate(self, phone: str, amount: int, reference: str) -> ProviderReceipt:
        token = await self._access_token()
        payload = {
            "merchant_key": self._merchant_key,
            "currency": self._currency,
            "order_id": reference,
            "amount": amount,
            "reference": reference,
            "subscriber_msisdn": international(phone),
            "lang": "fr",
        }
        data = await self._request(
            "POST",
            "/omcoreapis/1.0.2/mp/pay",
            json=payload,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        pay_token = data.get("pay_token")
        if not pay_token:
            raise ProviderRejectedError(NAME, "no pay_token in response")

        logger.info("provider.initiated", provider=NAME, reference=reference, pay_token=pay_token)
        return ProviderReceipt(reference=pay_token, status=ProviderStatus.PENDING, raw=data)

    async def status(self, reference: str) -> ProviderStatus:
        token = await self._access_token()
        data = await self._request(
            "GET",
            f"/omcoreapis/1.0.2/mp/paymentstatus/{reference}",
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        raw_status = str(data.get("status", "")).upper()
        return _STATUS_MAP.get(raw_status, ProviderStatus.PENDING)
