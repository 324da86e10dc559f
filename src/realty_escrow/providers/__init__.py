"""External collaborator adapters and their factory.

Rails:
    - OrangeMoneyProvider:  Orange Money Web Payment API (httpx)
    - MtnMomoProvider:      MTN MoMo Collection API (httpx)
    - SimulatedProvider:    In-process rail with a configurable outcome

Notifications:
    - WahaGateway:          WhatsApp through WAHA (httpx)
    - LoggingGateway:       Log-only, for development

Documents:
    - CanonicalJsonRenderer: Deterministic byte snapshot of contract terms

ProviderFactory builds the rail for a payment method from Settings. With
simulate_payments on (the default) every mobile-money method gets a
SimulatedProvider named after it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from realty_escrow.domain.enums import PaymentMethod
from realty_escrow.domain.ports import (
    DocumentRenderer,
    MobileMoneyProvider,
    NotificationGateway,
    ProviderReceipt,
)
from realty_escrow.providers.documents import CanonicalJsonRenderer
from realty_escrow.providers.mtn_momo import MtnMomoProvider
from realty_escrow.providers.notifications import LoggingGateway, WahaGateway
from realty_escrow.providers.orange_money import OrangeMoneyProvider
from realty_escrow.providers.simulated import SimulatedProvider

if TYPE_CHECKING:
    from realty_escrow.config import Settings


class ProviderFactory:
    """Creates the rail for a payment method, caching one client per method.

    Usage:
        factory = ProviderFactory(settings)
        provider = factory.for_method(PaymentMethod.ORANGE_MONEY)
        receipt = await provider.initiate("621000000", 1_000_000, "PAY-...")

        # Tests swap in their own rails:
        factory = ProviderFactory(settings, overrides={PaymentMethod.MTN_MOMO: fake})
    """

    def __init__(
        self,
        settings: Settings,
        overrides: dict[PaymentMethod, MobileMoneyProvider] | None = None,
    ) -> None:
        self._settings = settings
        self._cache: dict[PaymentMethod, MobileMoneyProvider] = dict(overrides or {})

    def for_method(self, method: PaymentMethod) -> MobileMoneyProvider:
        """Return the provider for a mobile-money method.

        Raises:
            ValueError: For CASH, which has no rail.
        """
        if not method.is_mobile_money:
            raise ValueError(f"{method.value} has no payment rail")
        if method not in self._cache:
            self._cache[method] = self._build(method)
        return self._cache[method]

    def prefixes_for(self, method: PaymentMethod) -> frozenset[str]:
        if method is PaymentMethod.ORANGE_MONEY:
            return self._settings.orange_money_prefix_set
        if method is PaymentMethod.MTN_MOMO:
            return self._settings.mtn_momo_prefix_set
        return frozenset()

    def _build(self, method: PaymentMethod) -> MobileMoneyProvider:
        s = self._settings
        if s.simulate_payments:
            return SimulatedProvider(name=method.value)
        if method is PaymentMethod.ORANGE_MONEY:
            return OrangeMoneyProvider(
                base_url=s.orange_money_base_url,
                client_id=s.orange_money_client_id,
                client_secret=s.orange_money_client_secret,
                merchant_key=s.orange_money_merchant_key,
                timeout_seconds=s.provider_timeout_seconds,
            )
        return MtnMomoProvider(
            base_url=s.mtn_momo_base_url,
            subscription_key=s.mtn_momo_subscription_key,
            api_user=s.mtn_momo_api_user,
            api_key=s.mtn_momo_api_key,
            target_environment=s.mtn_momo_target_environment,
            currency=s.mtn_momo_currency,
            timeout_seconds=s.provider_timeout_seconds,
        )


def build_notification_gateway(settings: Settings) -> NotificationGateway:
    """WAHA when a URL is configured, log-only otherwise."""
    if settings.waha_url:
        return WahaGateway(
            base_url=settings.waha_url,
            api_key=settings.waha_api_key,
            session=settings.waha_session,
        )
    return LoggingGateway()


__all__ = [
    "CanonicalJsonRenderer",
    "DocumentRenderer",
    "LoggingGateway",
    "MobileMoneyProvider",
    "MtnMomoProvider",
    "NotificationGateway",
    "OrangeMoneyProvider",
    "ProviderFactory",
    "ProviderReceipt",
    "SimulatedProvider",
    "WahaGateway",
    "build_notification_gateway",
]
