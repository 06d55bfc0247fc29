"""Payment gateway factory.

The provider is chosen once from the session currency at checkout and
stored on the session; later steps look the gateway up by provider.
"""

import logging
from functools import lru_cache

from src.core.exceptions import UnsupportedCurrencyError
from src.gateways.base import PaymentGateway
from src.models.session import PaymentProvider

logger = logging.getLogger(__name__)

CURRENCY_PROVIDERS = {
    "usd": PaymentProvider.STRIPE,
    "ngn": PaymentProvider.PAYSTACK,
}


def provider_for_currency(currency: str) -> PaymentProvider:
    """Select the checkout provider for a currency.

    Raises:
        UnsupportedCurrencyError: Currency is neither usd nor ngn
    """
    provider = CURRENCY_PROVIDERS.get(currency.lower())
    if provider is None:
        raise UnsupportedCurrencyError(currency)
    return provider


@lru_cache(maxsize=2)
def get_payment_gateway(provider: PaymentProvider) -> PaymentGateway:
    """Get the gateway for a provider.

    Raises:
        ValueError: If provider is not supported
    """
    if provider == PaymentProvider.STRIPE:
        from src.gateways.stripe_gateway import StripeGateway

        return StripeGateway()
    elif provider == PaymentProvider.PAYSTACK:
        from src.gateways.paystack_gateway import PaystackGateway

        return PaystackGateway()
    else:
        raise ValueError(f"Unsupported payment provider: {provider}")
