"""In-process payment rail for development, simulations and tests.

Mirrors the shape of the real rails without any network call. Behavior per
instance:
    - outcome "confirm": initiate answers PENDING, status answers CONFIRMED
    - outcome "pending": status keeps answering PENDING
    - outcome "fail":    status answers FAILED
    - outcome "reject":  initiate raises ProviderRejectedError
    - delay_seconds > 0: initiate sleeps first (exercises the timeout path)
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Literal

from realty_escrow.domain.enums import ProviderStatus
from realty_escrow.domain.exceptions import ProviderRejectedError
from realty_escrow.domain.ports import ProviderReceipt
from realty_escrow.logging_config import get_logger

logger = get_logger(__name__)

Outcome = Literal["confirm", "pending", "fail", "reject"]


class SimulatedProvider:
    """Fake mobile-money rail with a configurable outcome."""

    def __init__(
        self,
        name: str = "SIMULATED",
        outcome: Outcome = "confirm",
        delay_seconds: float = 0.0,
    ) -> None:
        self.name = name
        self.outcome = outcome
        self.delay_seconds = delay_seconds
        self.initiated: dict[str, dict] = {}

    async def initiate(self, phone: str, amount: int, reference: str) -> ProviderReceipt:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.outcome == "reject":
            raise ProviderRejectedError(self.name, "simulated rejection")

        provider_ref = f"SIM-{uuid.uuid4().hex[:16].upper()}"
        self.initiated[provider_ref] = {"phone": phone, "amount": amount, "reference": reference}
        logger.info(
            "provider.simulated_initiate",
            provider=self.name,
            reference=reference,
            provider_reference=provider_ref,
            amount=amount,
        )
        return ProviderReceipt(
            reference=provider_ref,
            status=ProviderStatus.PENDING,
            raw={"mode": "simulated", "provider": self.name},
        )

    async def status(self, reference: str) -> ProviderStatus:
        if self.outcome == "confirm":
            return ProviderStatus.CONFIRMED
        if self.outcome == "fail":
            return ProviderStatus.FAILED
        return ProviderStatus.PENDING
