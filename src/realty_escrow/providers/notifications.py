"""Notification gateways.

WahaGateway posts WhatsApp text messages through a WAHA instance
(``POST {waha_url}/api/sendText``). LoggingGateway only logs, and is what
development runs use when no WAHA URL is configured.

A gateway never raises for a delivery problem: it logs and returns False.
Callers decide whether an undelivered message matters.
"""

from __future__ import annotations

import httpx

from realty_escrow.domain.phones import international
from realty_escrow.logging_config import get_logger

logger = get_logger(__name__)


class LoggingGateway:
    """Log-only gateway. Records what would have been sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, recipient: str, message: str) -> bool:
        self.sent.append((recipient, message))
        logger.info("notification.logged", recipient=recipient, length=len(message))
        return True


class WahaGateway:
    """WhatsApp delivery through the WAHA HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        session: str = "default",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-Api-Key"] = api_key
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds), headers=headers
        )
        self._headers = headers

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, recipient: str, message: str) -> bool:
        chat_id = f"{international(recipient)}@c.us"
        try:
            response = await self._client.post(
                f"{self._base_url}/api/sendText",
                json={"session": self._session, "chatId": chat_id, "text": message},
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("notification.delivery_failed", channel="waha", error=str(exc))
            return False

        logger.info("notification.sent", channel="waha", chat_id=chat_id)
        return True
