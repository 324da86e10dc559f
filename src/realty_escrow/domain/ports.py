"""Ports to external collaborators.

These are Protocols (structural subtyping), so concrete adapters don't need to
inherit from a base class; they just need to match the shape. The domain layer
has ZERO imports from httpx or any provider SDK.

Concrete implementations live in providers/:
    - providers/simulated.py      (in-process rail for dev and tests)
    - providers/orange_money.py   (Orange Money Web Payment API)
    - providers/mtn_momo.py       (MTN MoMo Collection API)
    - providers/notifications.py  (WhatsApp via WAHA, or log-only)
    - providers/documents.py      (canonical JSON snapshot renderer)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from realty_escrow.domain.enums import ProviderStatus


@dataclass(frozen=True)
class ProviderReceipt:
    """Answer of a rail to `initiate`.

    Attributes:
        reference: The rail's own reference, used for later status queries.
        status: Immediate outcome; most rails answer PENDING and settle later.
        raw: Provider payload kept for the audit log.
    """

    reference: str
    status: ProviderStatus
    raw: dict = field(default_factory=dict)


@runtime_checkable
class MobileMoneyProvider(Protocol):
    """A mobile-money collection rail."""

    async def initiate(self, phone: str, amount: int, reference: str) -> ProviderReceipt:
        """Ask the payer's wallet to pay `amount`.

        Args:
            phone: Normalized national number (digits only, no country code).
            amount: Whole currency units.
            reference: Our payment reference, echoed back by the rail.

        Raises:
            ProviderRejectedError: If the rail refuses the request.
        """
        ...

    async def status(self, reference: str) -> ProviderStatus:
        """Return PENDING, CONFIRMED or FAILED for a reference from `initiate`."""
        ...


@runtime_checkable
class NotificationGateway(Protocol):
    """Delivers OTP codes and status messages to a person."""

    async def send(self, recipient: str, message: str) -> bool:
        """Return True on delivery, False on failure. Never raises for delivery errors."""
        ...


@runtime_checkable
class DocumentRenderer(Protocol):
    """Produces the immutable byte snapshot a signature's hash is computed over."""

    def render(self, snapshot: Mapping[str, Any]) -> bytes:
        ...
