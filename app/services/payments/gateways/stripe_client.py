"""
Stripe client over the official ``stripe`` SDK.

The SDK is blocking, so each call runs in a worker thread and is bounded
by the gateway timeout.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional

import stripe

from app.domain.enums import PaymentMethod
from app.domain.value_objects.money import Money
from app.services.payments.gateways.base import PaymentGatewayClient
from app.services.payments.results import (
    CaptureFailed,
    CapturePending,
    CaptureResult,
    CaptureSucceeded,
    PaymentInitiation,
    RefundResult,
)
from app.utils.error_handler import GatewayException

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"

# Intent states that may still settle without a new payment attempt
PENDING_INTENT_STATUSES = {"processing", "requires_action", "requires_confirmation", "requires_capture"}


def to_payload(stripe_object: Any) -> Dict[str, Any]:
    """Plain-dict copy of a Stripe object for audit storage."""
    if isinstance(stripe_object, dict) and not isinstance(stripe_object, stripe.StripeObject):
        return stripe_object
    return json.loads(str(stripe_object))


def parse_payment_intent(intent: Dict[str, Any]) -> CaptureResult:
    """
    Translate a PaymentIntent into a capture result.

    Used for both ``retrieve`` responses and ``payment_intent.*`` webhook
    objects. Amounts arrive in minor units.
    """
    intent_id = intent.get("id")
    status = intent.get("status", "unknown")
    currency = (intent.get("currency") or "usd").upper()
    payer_id = intent.get("customer")

    if status == "succeeded":
        return CaptureSucceeded(
            gateway_reference=intent_id,
            amount=Money.from_cents(int(intent.get("amount_received") or intent.get("amount") or 0), currency),
            payer_id=payer_id,
            raw_payload=intent,
        )

    if status in PENDING_INTENT_STATUSES:
        return CapturePending(gateway_reference=intent_id, status=status, raw_payload=intent)

    last_error = intent.get("last_payment_error") or {}
    amount = intent.get("amount")
    return CaptureFailed(
        gateway_reference=intent_id,
        reason=last_error.get("message") or f"Payment intent status: {status}",
        raw_payload=intent,
        amount=Money.from_cents(int(amount), currency) if amount is not None else None,
        payer_id=payer_id,
    )


class StripeGatewayClient(PaymentGatewayClient):
    """Client for Stripe PaymentIntents."""

    name = "stripe"
    method = PaymentMethod.STRIPE

    def __init__(
        self,
        secret_key: str,
        webhook_secret: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[stripe.StripeClient] = None,
    ):
        super().__init__(timeout=timeout)
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.client = client or stripe.StripeClient(secret_key)

    async def _call(self, operation: str, func: Callable, *args, **kwargs):
        """
        Run a blocking SDK call in a thread, bounded by the timeout.

        Raises:
            GatewayTimeoutException: If Stripe does not answer in time
            GatewayException: If Stripe rejects the request
        """
        try:
            return await self._bounded(asyncio.to_thread(func, *args, **kwargs), operation)
        except stripe.StripeError as e:
            logger.warning(f"Stripe '{operation}' failed: {e.user_message or e}")
            raise GatewayException(
                f"Stripe {operation} failed: {e.user_message or str(e)}",
                gateway=self.name,
                api_response_code=e.http_status,
                endpoint=operation,
            ) from e

    async def authenticate(self) -> str:
        """Stripe uses a static secret key."""
        return self.secret_key

    async def initiate_payment(self, amount: Money, reference: str, description: str) -> PaymentInitiation:
        intent = await self._call(
            "payment_intents.create",
            self.client.payment_intents.create,
            params={
                "amount": amount.cents,
                "currency": amount.currency.lower(),
                "description": description,
                "metadata": {"tracking_code": reference},
                "automatic_payment_methods": {"enabled": True},
            },
        )
        logger.info(f"Stripe payment intent {intent.id} created for {reference}")
        return PaymentInitiation(method=self.method, gateway_order_id=intent.id, approval_handle=intent.client_secret)

    async def capture_payment(self, gateway_order_id: str) -> CaptureResult:
        """Read the final state of a payment intent confirmed client-side."""
        intent = await self._call("payment_intents.retrieve", self.client.payment_intents.retrieve, gateway_order_id)
        return parse_payment_intent(to_payload(intent))

    async def refund_payment(self, gateway_reference: str, amount: Optional[Money] = None) -> RefundResult:
        params: Dict[str, Any] = {"payment_intent": gateway_reference}
        if amount is not None:
            params["amount"] = amount.cents
        refund = await self._call("refunds.create", self.client.refunds.create, params=params)
        return RefundResult(
            gateway_reference=gateway_reference,
            refund_id=refund.id,
            status=refund.status,
            raw_payload=to_payload(refund),
        )

    async def verify_webhook_signature(
        self, headers: Mapping[str, str], raw_body: bytes, secret: Optional[str] = None
    ) -> bool:
        """Verify the ``Stripe-Signature`` header against the endpoint secret."""
        endpoint_secret = secret or self.webhook_secret
        if not endpoint_secret:
            logger.error("Stripe webhook received but no webhook secret is configured")
            return False

        signature = {key.lower(): value for key, value in headers.items()}.get(SIGNATURE_HEADER)
        if not signature:
            return False

        try:
            stripe.Webhook.construct_event(raw_body, signature, endpoint_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Stripe webhook signature rejected: {e}")
            return False
        return True
