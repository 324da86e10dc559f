"""MTN MoMo Collection client.

Flow:
    1. POST {base}/collection/token/ (basic auth + subscription key, cached)
    2. POST {base}/collection/v1_0/requesttopay with our X-Reference-Id -> 202
    3. GET  {base}/collection/v1_0/requesttopay/{reference_id}

MTN answers PENDING until the payer approves, then SUCCESSFUL or FAILED.
"""

from __future__ import annotations

import time
import uuid

import httpx

from realty_escrow.domain.enums import ProviderStatus
from realty_escrow.domain.exceptions import ProviderRejectedError, ProviderTimeoutError
from realty_escrow.domain.phones import international
from realty_escrow.domain.ports import ProviderReceipt
from realty_escrow.logging_config import get_logger

logger = get_logger(__name__)

NAME = "MTN_MOMO"


class MtnMomoProvider:
    """Async client for the MTN MoMo Collection API."""

    def __init__(
        self,
        base_url: str,
        subscription_key: str,
        api_user: str,
        api_key: str,
        target_environment: str = "sandbox",
        currency: str = "GNF",
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._subscription_key = subscription_key
        self._api_user = api_user
        self._api_key = api_key
        self._target_environment = target_environment
        self._currency = currency
        self._timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"Ocp-Apim-Subscription-Key": self._subscription_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
            headers["X-Target-Environment"] = self._target_environment
        return headers

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:  # noqa: ANN003
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
        return response

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = await self._send(
            "POST",
            "/collection/token/",
            auth=(self._api_user, self._api_key),
            headers=self._headers(),
        )
        data = response.json()
        self._token = data["access_token"]
        self._token_expires_at = time.monotonic() + int(data.get("expires_in", 3600)) - 60
        return self._token

    async def initiate(self, phone: str, amount: int, reference: str) -> ProviderReceipt:
        token = await self._access_token()
        reference_id = str(uuid.uuid4())
        payload = {
            "amount": str(amount),
            "currency": self._currency,
            "externalId": reference,
            "payer": {"partyIdType": "MSISDN", "partyId": international(phone)},
            "payerMessage": f"Payment {reference}",
            "payeeNote": f"Payment {reference}",
        }
        await self._send(
            "POST",
            "/collection/v1_0/requesttopay",
            json=payload,
            headers={**self._headers(token), "X-Reference-Id": reference_id},
        )
        logger.info(
            "provider.initiated",
            provider=NAME,
            reference=reference,
            provider_reference=reference_id,
        )
        return ProviderReceipt(
            reference=reference_id,
            status=ProviderStatus.PENDING,
            raw={"reference_id": reference_id, "external_id": reference},
        )

    async def status(self, reference: str) -> ProviderStatus:
        token = await self._access_token()
        response = await self._send(
            "GET",
            f"/collection/v1_0/requesttopay/{reference}",
            headers=self._headers(token),
        )
        raw_status = str(response.json().get("status", "")).upper()
        if raw_status == "SUCCESSFUL":
            return ProviderStatus.CONFIRMED
        if raw_status in ("FAILED", "REJECTED", "TIMEOUT"):
            return ProviderStatus.FAILED
        return ProviderStatus.PENDING
