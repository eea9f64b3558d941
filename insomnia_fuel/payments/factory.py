from __future__ import annotations

import logging

from insomnia_fuel.core.config import IS_PROD, PAYMENT_PROVIDER, STRIPE_CURRENCY
from insomnia_fuel.payments.base import PaymentGateway
from insomnia_fuel.payments.mock_gateway import MockGateway
from insomnia_fuel.payments.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def build_payment_gateway(provider: str | None = None) -> PaymentGateway:
    selected = (provider or PAYMENT_PROVIDER or "stripe").strip().lower()
    if selected == "mock":
        if IS_PROD:
            raise RuntimeError("Mock payment provider is forbidden in production environment")
        logger.warning("using mock payment gateway")
        return MockGateway(currency=STRIPE_CURRENCY)
    if selected == "stripe":
        return StripeGateway()
    raise RuntimeError(f"Unknown PAYMENT_PROVIDER: {selected}")
