"""Payment gateway clients."""

from .base import PaymentGatewayClient
from .paypal_client import PayPalGatewayClient
from .stripe_client import StripeGatewayClient

__all__ = ["PaymentGatewayClient", "PayPalGatewayClient", "StripeGatewayClient"]
